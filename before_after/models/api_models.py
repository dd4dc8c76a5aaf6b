"""API request and response models for the card game."""


from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..middleware.validation import sanitize_string


class CardFields(BaseModel):
    """Validated text fields shared by card create and update requests.

    Multipart forms deliver every value as a string, so numeric fields are
    coerced here rather than by the decoder.
    """

    title: str = Field(..., description="Card title")
    year: int = Field(..., description="Year the item was released")
    month: int = Field(..., description="Month the item was released (1-12)")
    category: str = Field(..., description="Card category (movie, album, ...)")
    sourceUrl: str = Field(..., description="Attribution URL for the item")

    @field_validator("title", "category", "sourceUrl")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Strip control characters and reject empty values."""
        if len(v) > 1000:
            raise ValueError("Value too long (max 1000 characters)")
        v = sanitize_string(v, max_length=1000)
        if not v:
            raise ValueError("Value cannot be empty")
        return v

    @field_validator("year")
    @classmethod
    def validate_year(cls, v: int) -> int:
        if v < 0 or v > 9999:
            raise ValueError(f"Year out of range: {v}")
        return v

    @field_validator("month")
    @classmethod
    def validate_month(cls, v: int) -> int:
        if v < 1 or v > 12:
            raise ValueError(f"Month must be between 1 and 12: {v}")
        return v


class CardCreate(CardFields):
    """JSON body for creating a card from already uploaded images."""

    imageUrl: str = Field(..., description="Large image URL")
    thumbnailUrl: str | None = Field(None, description="Thumbnail image URL")


class CardResponse(BaseModel):
    """Card as returned to clients."""

    id: int
    title: str
    year: int
    month: int
    imageUrl: str
    thumbnailUrl: str | None = None
    sourceUrl: str
    category: str
    createdAt: datetime
    updatedAt: datetime

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 42,
                "title": "The Matrix",
                "year": 1999,
                "month": 3,
                "imageUrl": "https://bucket.s3.us-east-1.amazonaws.com/images/abc-large.webp",
                "thumbnailUrl": "https://bucket.s3.us-east-1.amazonaws.com/thumbnails/abc-thumb.webp",
                "sourceUrl": "https://en.wikipedia.org/wiki/The_Matrix",
                "category": "movie",
                "createdAt": "2024-01-01T12:00:00Z",
                "updatedAt": "2024-01-01T12:00:00Z",
            }
        }
    )


class GuessRequest(BaseModel):
    """Body of a guess: is the current card before or after the previous one?"""

    previousYear: int | None = Field(None, description="Year of the previous card")
    currentYear: int | None = Field(None, description="Year of the current card")
    guess: str | None = Field(None, description="'before' or 'after'")


class GuessResponse(BaseModel):
    """Outcome of a guess."""

    correct: bool = Field(..., description="Whether the guess was right")
    nextCard: CardResponse | None = Field(
        None, description="Next card to play (only when the guess was correct)"
    )


class LossGifFields(BaseModel):
    """Validated text fields shared by loss GIF create and update requests."""

    category: str = Field(..., description="Loss GIF category")
    streakThreshold: int = Field(..., description="Shown for scores below this")

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        v = sanitize_string(v, max_length=1000)
        if not v:
            raise ValueError("Category cannot be empty")
        return v

    @field_validator("streakThreshold")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Streak threshold cannot be negative")
        return v


class LossGifCreate(LossGifFields):
    """JSON body for creating a loss GIF from already uploaded images."""

    imageUrl: str = Field(..., description="Large image URL")
    thumbnailUrl: str | None = Field(None, description="Thumbnail image URL")


class LossGifResponse(BaseModel):
    """Loss GIF as returned to clients."""

    id: int
    category: str
    streakThreshold: int
    imageUrl: str
    thumbnailUrl: str | None = None
    createdAt: datetime
    updatedAt: datetime


class MessageResponse(BaseModel):
    """Simple message response."""

    message: str


class HealthCheckResponse(BaseModel):
    """Health check endpoint response."""

    status: str = Field("healthy", description="Service health status")
    timestamp: datetime = Field(..., description="Current server time")
    version: str = Field(..., description="API version")
    database: str = Field(..., description="Database connection status")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-01T12:00:00Z",
                "version": "1.0.0",
                "database": "connected",
            }
        }
    )


class StatisticsResponse(BaseModel):
    """Statistics endpoint response."""

    total_cards: int = Field(..., description="Number of cards")
    total_loss_gifs: int = Field(..., description="Number of loss GIFs")
    cards_by_category: dict[str, int] = Field(
        default_factory=dict, description="Card count by category"
    )
    uploads_total: int = Field(..., description="Admin image upload attempts")
    uploads_failed: int = Field(..., description="Failed admin image uploads")
    storage: dict[str, Any] = Field(
        default_factory=dict, description="Object storage statistics"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total_cards": 250,
                "total_loss_gifs": 12,
                "cards_by_category": {"movie": 150, "album": 100},
                "uploads_total": 270,
                "uploads_failed": 8,
                "storage": {"total_files": 524, "total_size_mb": 48.2},
            }
        }
    )
