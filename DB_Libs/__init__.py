"""
DB_Libs - AI Drawing Book Library Modules

This package contains core functionality for the AI Drawing Book project,
organized into specialized sub-packages:

- CanvasLib: Pixel buffer access, flood fill and glossy brush compositing
- HistoryLib: Bounded history ring of creations and its durable storage
- NarrationLib: Story narration state machine and audio playback backend
- VideoLib: Three-pane story video frame composition and export
- ServicesLib: Clients for description, image generation and narration services
- CaptureLib: Webcam still-frame capture
- AppLib: Drawing book workflow controller tying the pieces together
"""

__version__ = "0.1.0"
