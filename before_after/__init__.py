"""before-after-api - Backend for the "before or after" trivia card game."""

__version__ = "1.0.0"
__author__ = "before-after-api Team"
__description__ = (
    "API server that serves comparison cards, evaluates guesses and "
    "manages card and loss GIF content with image uploads"
)
