"""SQLite engine and session handling for cards, loss GIFs and upload logs."""

import logging
import shutil
import threading
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import NullPool

from ..config import DatabaseConfig
from ..exceptions import DatabaseError
from ..models.database_models import Base, Card, LossGif, UploadLog

logger = logging.getLogger(__name__)

# Applied to every new SQLite connection after the journal mode
SQLITE_PRAGMAS = (
    "PRAGMA synchronous=NORMAL",
    "PRAGMA cache_size=10000",
    "PRAGMA temp_store=MEMORY",
)

# Row counts reported by get_stats()
COUNTED_TABLES = {
    "cards": Card,
    "loss_gifs": LossGif,
    "upload_logs": UploadLog,
}


class DatabaseManager:
    """Owns the SQLite engine and hands out sessions.

    One instance is created per application and closed on shutdown; request
    handlers receive it through the app state instead of a module-level
    connection.
    """

    _schema_lock = threading.Lock()

    def __init__(
        self,
        database_path: str | DatabaseConfig,
        enable_wal: bool = True,
        echo: bool = False,
    ):
        """Open (and if needed create) the database.

        Args:
            database_path: SQLite file path, or a DatabaseConfig carrying the
                path and WAL setting
            enable_wal: Use Write-Ahead Logging (ignored for a DatabaseConfig)
            echo: Log every SQL statement
        """
        if isinstance(database_path, DatabaseConfig):
            enable_wal = database_path.enable_wal
            database_path = database_path.path

        self.database_path = Path(database_path)
        self.enable_wal = enable_wal
        self.echo = echo

        self.database_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = self._create_engine()
        self.Session = scoped_session(
            sessionmaker(bind=self.engine, expire_on_commit=False)
        )

        with self._schema_lock:
            try:
                Base.metadata.create_all(self.engine, checkfirst=True)
            except SQLAlchemyError as e:
                logger.error(f"Failed to create card game schema: {e}")
                raise DatabaseError(f"Failed to create schema: {e}") from e

        logger.info(f"Database ready at: {self.database_path}")

    def _create_engine(self) -> Engine:
        engine = create_engine(
            f"sqlite:///{self.database_path}",
            echo=self.echo,
            # SQLite connections are cheap; sharing them across threads is not
            poolclass=NullPool,
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_pre_ping=True,
        )
        journal_mode = "WAL" if self.enable_wal else "DELETE"

        @event.listens_for(engine, "connect")
        def configure_connection(dbapi_conn: Any, connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute(f"PRAGMA journal_mode={journal_mode}")
            for pragma in SQLITE_PRAGMAS:
                cursor.execute(pragma)
            cursor.close()

        return engine

    @contextmanager
    def get_session(self) -> Generator[Session]:
        """Yield a session that is committed when it holds pending changes.

        Usage:
            with db_manager.get_session() as session:
                session.add(card)
        """
        session = self.Session()
        try:
            yield session
            if session.new or session.dirty or session.deleted:
                session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
            # The next call from this thread starts from a fresh session
            self.Session.remove()

    def close(self) -> None:
        """Dispose of the engine and any thread-local sessions."""
        self.Session.remove()
        self.engine.dispose()
        logger.info("Database connections closed")

    def get_stats(self) -> dict[str, Any]:
        """File size in MB and the row count of every table."""
        size_bytes = (
            self.database_path.stat().st_size if self.database_path.exists() else 0
        )
        with self.get_session() as session:
            tables = {
                name: int(session.query(model).count())
                for name, model in COUNTED_TABLES.items()
            }
        return {"size_mb": size_bytes / (1024 * 1024), "tables": tables}

    def backup(self, backup_path: str) -> None:
        """Copy the database file to backup_path.

        In WAL mode the log is checkpointed first so the copy holds every
        committed card.
        """
        target = Path(backup_path)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            if self.enable_wal:
                with self.engine.connect() as conn:
                    conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))
            shutil.copy2(self.database_path, target)
        except (OSError, SQLAlchemyError) as e:
            logger.error(f"Database backup to {target} failed: {e}")
            raise DatabaseError(f"Database backup failed: {e}") from e

        logger.info(f"Database backed up to: {target}")
