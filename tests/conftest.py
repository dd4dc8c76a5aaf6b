"""Pytest configuration and fixtures."""

import tempfile
from collections.abc import Callable, Generator
from io import BytesIO
from pathlib import Path
from typing import Any

import pytest
import yaml
from fastapi.testclient import TestClient
from PIL import Image

from before_after.api.app import create_app
from before_after.config import Config
from before_after.database.connection import DatabaseManager
from before_after.database.operations import DatabaseOperations

ADMIN_KEY = "test-admin-key"


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config_dict(temp_dir: Path) -> dict:
    """Create test configuration dictionary."""
    return {
        "server": {
            "host": "127.0.0.1",
            "port": 8080,
            "debug": False,
            "cors_origins": ["*"],
            "enable_docs": True,
        },
        "database": {
            "path": str(temp_dir / "test.db"),
            "enable_wal": True,
        },
        "security": {
            "admin_keys": [{"key": ADMIN_KEY, "description": "Test admin"}],
            "rate_limit": {
                "enabled": False,
                "max_requests_per_minute": 60,
                "admin_requests_per_minute": 30,
            },
        },
        "storage": {
            "backend": "memory",
            "public_base_url": "https://cdn.example.test",
        },
        "monitoring": {
            "health_check": {"enabled": True, "path": "/health"},
            "metrics": {"enabled": True, "path": "/metrics"},
        },
        "logging": {
            "level": "DEBUG",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": {
                "enabled": False,
                "path": str(temp_dir / "test.log"),
                "max_size_mb": 10,
                "backup_count": 3,
            },
            "console": {
                "enabled": True,
                "colorize": False,
            },
        },
    }


@pytest.fixture
def test_config_path(temp_dir: Path, test_config_dict: dict) -> Path:
    """Write test configuration to file."""
    config_path = temp_dir / "config.yaml"
    with open(config_path, "w") as f:
        yaml.dump(test_config_dict, f, default_flow_style=False)
    return config_path


@pytest.fixture
def test_config(test_config_dict: dict) -> Config:
    """Create test Config object."""
    return Config(**test_config_dict)


@pytest.fixture
def test_app(test_config_path: Path, test_config: Config) -> Any:
    """Create test FastAPI app."""
    return create_app(config_path=str(test_config_path), override_config=test_config)


@pytest.fixture
def test_client(test_app: Any) -> Generator[TestClient]:
    """Create test client."""
    with TestClient(test_app) as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Headers carrying the configured admin key."""
    return {"X-API-Key": ADMIN_KEY}


@pytest.fixture
def app_db_ops(test_client: TestClient) -> DatabaseOperations:
    """Database operations bound to the running test app."""
    return test_client.app.state.db_ops  # type: ignore[attr-defined]


@pytest.fixture
def db_manager(test_config: Config) -> Generator[DatabaseManager]:
    """Create test database manager."""
    manager = DatabaseManager(test_config.database)
    yield manager
    manager.close()


@pytest.fixture
def db_ops(db_manager: DatabaseManager) -> DatabaseOperations:
    """Create database operations on the test database."""
    return DatabaseOperations(db_manager)


def _render_image(
    image_format: str = "JPEG",
    size: tuple[int, int] = (800, 600),
    mode: str = "RGB",
    color: Any = (200, 80, 40),
) -> bytes:
    output = BytesIO()
    Image.new(mode, size, color).save(output, format=image_format)
    return output.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory rendering a solid color image in the requested format."""
    return _render_image


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A landscape 800x600 JPEG."""
    return _render_image("JPEG")


@pytest.fixture
def gif_bytes() -> bytes:
    """A two frame animated GIF."""
    frames = [
        Image.new("P", (120, 90), 1),
        Image.new("P", (120, 90), 2),
    ]
    output = BytesIO()
    frames[0].save(
        output,
        format="GIF",
        save_all=True,
        append_images=frames[1:],
        duration=100,
        loop=0,
    )
    return output.getvalue()


@pytest.fixture
def card_values() -> dict[str, Any]:
    """Keyword arguments for DatabaseOperations.create_card."""
    return {
        "title": "The Matrix",
        "year": 1999,
        "month": 3,
        "category": "movie",
        "image_url": "https://cdn.example.test/images/matrix-large.webp",
        "source_url": "https://en.wikipedia.org/wiki/The_Matrix",
        "thumbnail_url": "https://cdn.example.test/thumbnails/matrix-thumb.webp",
    }
