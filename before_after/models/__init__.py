"""Data models for before-after-api."""

from .api_models import CardCreate, CardResponse, GuessRequest, LossGifResponse
from .database_models import Card, LossGif, UploadLog

__all__ = [
    "CardCreate",
    "CardResponse",
    "GuessRequest",
    "LossGifResponse",
    "Card",
    "LossGif",
    "UploadLog",
]
