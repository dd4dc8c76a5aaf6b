"""Database models for cards, loss GIFs and upload logs."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Card(Base):
    """A dated item (movie, album, ...) players compare against another."""

    __tablename__ = "cards"

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(String(255), nullable=False)
    year = Column(Integer, nullable=False, index=True)
    month = Column(Integer, nullable=False)
    category = Column(String(100), nullable=False, index=True)

    # Images and attribution
    image_url = Column(String(1000), nullable=False)
    thumbnail_url = Column(String(1000), nullable=True)
    source_url = Column(String(1000), nullable=False)

    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (Index("idx_year_category", "year", "category"),)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "year": self.year,
            "month": self.month,
            "imageUrl": self.image_url,
            "thumbnailUrl": self.thumbnail_url,
            "sourceUrl": self.source_url,
            "category": self.category,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class LossGif(Base):
    """GIF shown when a game ends, chosen by the streak the player reached."""

    __tablename__ = "loss_gifs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    category = Column(String(100), nullable=False, index=True)
    streak_threshold = Column(Integer, nullable=False, index=True)

    image_url = Column(String(1000), nullable=False)
    thumbnail_url = Column(String(1000), nullable=True)

    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_threshold_category", "streak_threshold", "category"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "streakThreshold": self.streak_threshold,
            "imageUrl": self.image_url,
            "thumbnailUrl": self.thumbnail_url,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class UploadLog(Base):
    """Table for logging all admin image upload attempts."""

    __tablename__ = "upload_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(
        DateTime, default=lambda: datetime.now(UTC), nullable=False, index=True
    )

    # Request information
    client_ip = Column(String(45), nullable=False, index=True)
    user_agent = Column(String(500), nullable=True)
    api_key_used = Column(String(100), nullable=True)
    endpoint = Column(String(255), nullable=True)

    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)

    # File details (if upload was attempted)
    filename = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    content_type = Column(String(100), nullable=True)

    # Response details
    response_code = Column(Integer, nullable=True)
    processing_time_ms = Column(Float, nullable=True)
