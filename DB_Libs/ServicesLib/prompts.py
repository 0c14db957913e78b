"""
Fixed prompt templates sent to the generative services.

Functions:
    outline_prompt: Prompt for a coloring-book outline of a new sketch
    reuse_outline_prompt: Prompt used when regenerating an unchanged sketch
    photo_outline_prompt: Prompt for an outline of a captured photo
    story_image_prompt: Prompt for the illustration of a story
    narration_text: Text handed to a narration provider
"""

SKETCH_RECOGNITION_INSTRUCTION = (
    "This is a child's simple sketch. In a few words, say what it shows "
    "(for example: 'a cat sitting on a mat'). Reply with the description only."
)

PHOTO_RECOGNITION_INSTRUCTION = (
    "Describe the main subject of this photo in one short phrase that a "
    "child could draw. Reply with the description only."
)

DRAWING_IDEA_INSTRUCTION = (
    "Suggest one simple, fun thing for a young child to draw, in at most "
    "eight words. Reply with the idea only."
)

STORY_INSTRUCTION_TEMPLATE = (
    "Write a short, gentle moral story for a 4 year old about {description}. "
    "Use simple words and keep it under 150 words."
)

NARRATION_PREFIX = "Tell a 4 year old kid a moral story about"
STORY_IMAGE_PREFIX = "colorful child scene+no+nudit"


def outline_prompt(description: str) -> str:
    return f"Simple black line art of {description}, kids' coloring book, no fill, white background."


def reuse_outline_prompt(description: str) -> str:
    return (
        f"{description},coloring book style, line art, no fill, No sexual content , "
        "child friendly, black lines, white background"
    )


def photo_outline_prompt(description: str) -> str:
    return (
        f"A black connected line drawing of: {description} for children's coloring book "
        "with no internal colors, on a plain white background."
    )


def story_image_prompt(story: str) -> str:
    return STORY_IMAGE_PREFIX + story


def story_instruction(description: str) -> str:
    return STORY_INSTRUCTION_TEMPLATE.format(description=description)


def narration_text(story: str) -> str:
    return f"{NARRATION_PREFIX} {story}"
