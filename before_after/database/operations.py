"""Database operations for cards, loss GIFs and upload logs."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, or_

from ..models.database_models import Card, LossGif, UploadLog
from .connection import DatabaseManager

logger = logging.getLogger(__name__)


def _search_year(term: str) -> int:
    try:
        return int(term)
    except ValueError:
        return 0


class DatabaseOperations:
    """High-level database operations for game content."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize database operations.

        Args:
            db_manager: DatabaseManager instance
        """
        self.db_manager = db_manager

    # Cards

    def create_card(
        self,
        title: str,
        year: int,
        month: int,
        category: str,
        image_url: str,
        source_url: str,
        thumbnail_url: str | None = None,
    ) -> Card:
        """Insert a new card.

        Returns:
            The created Card
        """
        with self.db_manager.get_session() as session:
            card = Card(
                title=title,
                year=year,
                month=month,
                category=category,
                image_url=image_url,
                thumbnail_url=thumbnail_url,
                source_url=source_url,
            )
            session.add(card)
            session.commit()

            logger.info(f"Created card: ID={card.id}, Title={card.title}, Year={card.year}")
            return card

    def get_card(self, card_id: int) -> Card | None:
        with self.db_manager.get_session() as session:
            return session.get(Card, card_id)

    def list_cards(
        self, limit: int = 20, cursor: int | None = None, search: str | None = None
    ) -> list[Card]:
        """List cards in id order for the admin view.

        Args:
            limit: Maximum number of cards to return
            cursor: Only return cards with an id greater than this
            search: Case-insensitive match on title or category, or exact year

        Returns:
            List of Card objects
        """
        with self.db_manager.get_session() as session:
            query = session.query(Card)

            if cursor is not None:
                query = query.filter(Card.id > cursor)

            if search and search.strip():
                term = search.strip()
                pattern = f"%{term}%"
                query = query.filter(
                    or_(
                        Card.title.ilike(pattern),
                        Card.category.ilike(pattern),
                        Card.year == _search_year(term),
                    )
                )

            return query.order_by(Card.id).limit(limit).all()

    def get_all_cards(self) -> list[Card]:
        with self.db_manager.get_session() as session:
            return session.query(Card).order_by(Card.id).all()

    def get_random_card(self) -> Card | None:
        """Pick one card uniformly at random, or None if there are none."""
        with self.db_manager.get_session() as session:
            return session.query(Card).order_by(func.random()).first()

    def update_card(self, card_id: int, **values: Any) -> Card | None:
        """Update card columns.

        Args:
            card_id: Card to update
            **values: Column names and new values

        Returns:
            The updated Card, or None if no card has that id
        """
        with self.db_manager.get_session() as session:
            card = session.get(Card, card_id)
            if card is None:
                return None

            for column, value in values.items():
                setattr(card, column, value)
            card.updated_at = datetime.now(UTC)
            session.commit()

            logger.info(f"Updated card {card_id}: {sorted(values)}")
            return card

    def delete_card(self, card_id: int) -> bool:
        with self.db_manager.get_session() as session:
            deleted = session.query(Card).filter(Card.id == card_id).delete()
            session.commit()

        if deleted:
            logger.info(f"Deleted card {card_id}")
        return bool(deleted)

    # Loss GIFs

    def create_loss_gif(
        self,
        category: str,
        streak_threshold: int,
        image_url: str,
        thumbnail_url: str | None = None,
    ) -> LossGif:
        with self.db_manager.get_session() as session:
            loss_gif = LossGif(
                category=category,
                streak_threshold=streak_threshold,
                image_url=image_url,
                thumbnail_url=thumbnail_url,
            )
            session.add(loss_gif)
            session.commit()

            logger.info(
                f"Created loss GIF: ID={loss_gif.id}, Category={loss_gif.category}, "
                f"Threshold={loss_gif.streak_threshold}"
            )
            return loss_gif

    def get_loss_gif(self, loss_gif_id: int) -> LossGif | None:
        with self.db_manager.get_session() as session:
            return session.get(LossGif, loss_gif_id)

    def list_loss_gifs(self, limit: int = 20, cursor: int | None = None) -> list[LossGif]:
        """List loss GIFs ordered by ascending streak threshold."""
        with self.db_manager.get_session() as session:
            query = session.query(LossGif)
            if cursor is not None:
                query = query.filter(LossGif.id > cursor)
            return (
                query.order_by(LossGif.streak_threshold, LossGif.id).limit(limit).all()
            )

    def update_loss_gif(self, loss_gif_id: int, **values: Any) -> LossGif | None:
        with self.db_manager.get_session() as session:
            loss_gif = session.get(LossGif, loss_gif_id)
            if loss_gif is None:
                return None

            for column, value in values.items():
                setattr(loss_gif, column, value)
            loss_gif.updated_at = datetime.now(UTC)
            session.commit()
            return loss_gif

    def delete_loss_gif(self, loss_gif_id: int) -> bool:
        with self.db_manager.get_session() as session:
            deleted = session.query(LossGif).filter(LossGif.id == loss_gif_id).delete()
            session.commit()
        return bool(deleted)

    def get_loss_gif_for_score(self, score: int) -> LossGif | None:
        """Select the loss GIF for a final score.

        The GIF with the lowest streak threshold strictly above the score
        wins.

        Args:
            score: Score the player reached

        Returns:
            Matching LossGif, or None when every threshold is at or below the score
        """
        with self.db_manager.get_session() as session:
            return (
                session.query(LossGif)
                .filter(LossGif.streak_threshold > score)
                .order_by(LossGif.streak_threshold, LossGif.id)
                .first()
            )

    # Upload logs and statistics

    def log_upload_attempt(
        self,
        client_ip: str,
        success: bool,
        endpoint: str | None = None,
        api_key_used: str | None = None,
        user_agent: str | None = None,
        filename: str | None = None,
        file_size: int | None = None,
        content_type: str | None = None,
        error_message: str | None = None,
        response_code: int | None = None,
        processing_time_ms: float | None = None,
    ) -> None:
        """Log an image upload attempt for security and debugging.

        Args:
            client_ip: IP address of client
            success: Whether upload was successful
            endpoint: Request path
            api_key_used: Admin key ID used
            user_agent: User agent string
            filename: Uploaded filename
            file_size: File size in bytes
            content_type: MIME type
            error_message: Error message if failed
            response_code: HTTP response code
            processing_time_ms: Processing time in milliseconds
        """
        with self.db_manager.get_session() as session:
            log_entry = UploadLog(
                client_ip=client_ip,
                user_agent=user_agent,
                api_key_used=api_key_used,
                endpoint=endpoint,
                success=success,
                error_message=error_message,
                filename=filename,
                file_size=file_size,
                content_type=content_type,
                response_code=response_code,
                processing_time_ms=processing_time_ms,
            )

            session.add(log_entry)
            session.commit()

    def get_statistics(self) -> dict[str, Any]:
        """Get overall statistics.

        Returns:
            Dictionary with statistics
        """
        stats: dict[str, Any] = {}

        with self.db_manager.get_session() as session:
            stats["total_cards"] = session.query(Card).count()
            stats["total_loss_gifs"] = session.query(LossGif).count()

            category_counts = (
                session.query(Card.category, func.count(Card.id))
                .group_by(Card.category)
                .all()
            )
            stats["cards_by_category"] = {
                str(category): count for category, count in category_counts
            }

            stats["uploads_total"] = session.query(UploadLog).count()
            stats["uploads_failed"] = (
                session.query(UploadLog).filter(UploadLog.success.is_(False)).count()
            )

        return stats

    # Seeding

    def seed_cards(self, cards: Iterable[dict[str, Any]], replace: bool = False) -> int:
        """Bulk insert cards from plain dictionaries.

        Args:
            cards: Dicts with title, year, month, category, imageUrl, sourceUrl
                and optional thumbnailUrl
            replace: Delete existing cards first

        Returns:
            Number of cards inserted
        """
        with self.db_manager.get_session() as session:
            if replace:
                session.query(Card).delete()

            count = 0
            for item in cards:
                session.add(
                    Card(
                        title=item["title"],
                        year=int(item["year"]),
                        month=int(item.get("month", 1)),
                        category=item["category"],
                        image_url=item["imageUrl"],
                        thumbnail_url=item.get("thumbnailUrl"),
                        source_url=item["sourceUrl"],
                    )
                )
                count += 1
            session.commit()

        logger.info(f"Seeded {count} cards")
        return count

    def seed_loss_gifs(
        self, loss_gifs: Iterable[dict[str, Any]], replace: bool = False
    ) -> int:
        with self.db_manager.get_session() as session:
            if replace:
                session.query(LossGif).delete()

            count = 0
            for item in loss_gifs:
                session.add(
                    LossGif(
                        category=item["category"],
                        streak_threshold=int(item["streakThreshold"]),
                        image_url=item["imageUrl"],
                        thumbnail_url=item.get("thumbnailUrl"),
                    )
                )
                count += 1
            session.commit()

        logger.info(f"Seeded {count} loss GIFs")
        return count
