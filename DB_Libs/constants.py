"""
Constants and configuration values for the AI Drawing Book.

This module centralizes all constant values, magic numbers, and
configuration settings used throughout the application.
"""

# History ring constants
HISTORY_CAPACITY = 5
STORAGE_FILE_NAME = "drawing_book_storage.json"
STORAGE_KEY_HISTORY = "drawingHistory"
STORAGE_KEY_SELECTED_INDEX = "selectedHistoryIndex"

# Creation record field names (persisted format)
FIELD_RECORD_ID = "id"
FIELD_SKETCH = "sketch"
FIELD_GENERATED = "generated"
FIELD_RECOGNIZED = "recognizedImage"
FIELD_PROMPT = "prompt"
FIELD_STORY = "story"
FIELD_STORY_IMAGE = "storyImageBase64"

# Canvas constants
DEFAULT_CANVAS_WIDTH = 512
DEFAULT_CANVAS_HEIGHT = 512
SKETCH_SNAPSHOT_MAX_SIZE = 200
SKETCH_BACKGROUND_COLOR = (255, 255, 255, 255)
DEFAULT_FILL_COLOR = "#FF0000"
DEFAULT_BRUSH_SIZE = 8
PHOTO_PROMPT_LABEL = "[Photo]"

COLOR_PALETTE = [
    "#FF0000", "#0000FF", "#00FF00", "#FFFF00", "#FF7F00",
    "#BF00BF", "#00FFFF", "#FFC0CB", "#8B4513", "#808080", "#FFFFFF",
]

# Narration timing (seconds) and relative volumes
VISIBILITY_SHOW_DELAY = 0.1
VISIBILITY_FIRST_HOLD = 5.0
VISIBILITY_TOGGLE_PERIOD = 5.0
AUDIO_POLL_INTERVAL = 0.05
NARRATION_VOLUME = 1.0
AMBIENT_VOLUME = 0.1
WIN_SOUND_VOLUME = 0.5

# Video frame layout
FRAME_WIDTH = 1280
FRAME_HEIGHT = 720
FRAME_PADDING = 20
FRAME_GAP = 20
FRAME_PANE_COUNT = 3
PANE_BORDER_WIDTH = 6
PANE_INNER_PADDING = 12
FRAME_BACKGROUND_COLOR = "#1f2937"
PANE_BACKGROUND_COLOR = "#374151"
PLACEHOLDER_TEXT_COLOR = "#9ca3af"
PLACEHOLDER_FONT_SIZE = 24
STORY_PANE_BORDER_COLOR = "#3b82f6"
SKETCH_PANE_BORDER_COLOR = "#10b981"
GENERATED_PANE_BORDER_COLOR = "#f59e0b"
STORY_PANE_LABEL = "Story Image"
SKETCH_PANE_LABEL = "Sketch"
GENERATED_PANE_LABEL = "Generated Image"

# Video export
VIDEO_FPS = 24
VIDEO_CODEC = "libx264"
VIDEO_AUDIO_CODEC = "aac"
VIDEO_PIXEL_FORMAT = "yuv420p"
VIDEO_FILE_PREFIX = "ai-story-"
DEFAULT_AUDIO_DURATION = 10.0
AUDIO_BYTES_PER_SECOND_ESTIMATE = 16000

# Narration providers
PROVIDER_POLLINATIONS = "pollinations"
PROVIDER_ELEVENLABS = "elevenlabs"
DEFAULT_NARRATION_PROVIDER = PROVIDER_POLLINATIONS

# Service endpoints and defaults
GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
POLLINATIONS_IMAGE_URL = "https://image.pollinations.ai/prompt/{prompt}"
POLLINATIONS_TEXT_URL = "https://text.pollinations.ai/{prompt}"
POLLINATIONS_AUDIO_MODEL = "openai-audio"
POLLINATIONS_VOICE = "alloy"
ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"
ELEVENLABS_MODEL = "eleven_multilingual_v2"
DEFAULT_ELEVENLABS_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"

# Environment variable names
ENV_GEMINI_API_KEY = "GEMINI_API_KEY"
ENV_GEMINI_MODEL = "GEMINI_MODEL"
ENV_POLLINATIONS_API_KEY = "POLLINATIONS_API_KEY"
ENV_ELEVENLABS_API_KEY = "ELEVENLABS_API_KEY"
ENV_ELEVENLABS_VOICE_ID = "ELEVENLABS_VOICE_ID"
ENV_DATA_DIR = "DRAWING_BOOK_DATA_DIR"
ENV_AMBIENT_TRACK = "DRAWING_BOOK_AMBIENT_TRACK"
ENV_WIN_SOUND = "DRAWING_BOOK_WIN_SOUND"
ENV_REQUEST_TIMEOUT = "DRAWING_BOOK_REQUEST_TIMEOUT"

DEFAULT_DATA_DIR_NAME = ".drawing_book"
DEFAULT_AMBIENT_TRACK = "sounds/pianoSound.mp3"
DEFAULT_WIN_SOUND = "sounds/winSound.mp3"
