#!/usr/bin/env python3
"""Command line interface for BeforeAfterAPI."""

import argparse
import asyncio
import csv
import json
import sys
from pathlib import Path
from typing import Any

import yaml
from hypercorn.asyncio import serve
from hypercorn.config import Config as HypercornConfig

from before_after import __version__
from before_after.api import create_app
from before_after.config import AdminKeyConfig, Config, setup_logging
from before_after.database import DatabaseManager, DatabaseOperations
from before_after.exceptions import DatabaseError

# Placeholder loss GIFs covering every final score
DEFAULT_LOSS_GIFS: list[dict[str, Any]] = [
    {
        "category": "Terrible",
        "streakThreshold": 2,
        "imageUrl": "https://placeholder-gif-url.com/terrible.gif",
        "thumbnailUrl": "https://placeholder-gif-url.com/terrible-thumb.gif",
    },
    {
        "category": "Frustrated",
        "streakThreshold": 5,
        "imageUrl": "https://placeholder-gif-url.com/frustrated.gif",
        "thumbnailUrl": "https://placeholder-gif-url.com/frustrated-thumb.gif",
    },
    {
        "category": "Decent",
        "streakThreshold": 8,
        "imageUrl": "https://placeholder-gif-url.com/decent.gif",
        "thumbnailUrl": "https://placeholder-gif-url.com/decent-thumb.gif",
    },
    {
        "category": "Satisfied",
        "streakThreshold": 12,
        "imageUrl": "https://placeholder-gif-url.com/satisfied.gif",
        "thumbnailUrl": "https://placeholder-gif-url.com/satisfied-thumb.gif",
    },
    {
        "category": "Ecstatic",
        "streakThreshold": 999999,
        "imageUrl": "https://placeholder-gif-url.com/ecstatic.gif",
        "thumbnailUrl": "https://placeholder-gif-url.com/ecstatic-thumb.gif",
    },
]

EXAMPLE_CONFIG = """# BeforeAfterAPI Configuration

# API Server Configuration
server:
  host: "0.0.0.0"
  port: 8080
  cors_origins: ["*"]
  enable_docs: true
  debug: false

# Database Configuration
database:
  # SQLite database file path
  path: "data/before_after.db"
  # Enable WAL mode for better concurrent performance
  enable_wal: true

# API Security Configuration
security:
  # Admin API keys, sent in the X-API-Key header.
  # With no keys configured every admin request is rejected.
  # ADMIN_API_KEY in the environment adds one more key.
  admin_keys: []
  # Example:
  # admin_keys:
  #   - key: "your-secret-key-here"
  #     description: "Content editor"
  #     allowed_ips: []  # Empty means all IPs allowed

  rate_limit:
    enabled: true
    max_requests_per_minute: 60
    admin_requests_per_minute: 30

# Image Storage Configuration
# S3_BUCKET_NAME, S3_REGION, AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY
# override these values; setting S3_BUCKET_NAME selects the s3 backend.
storage:
  # Backend: "memory", "filesystem" or "s3"
  backend: "filesystem"
  # For filesystem storage
  directory: "data/images"
  # URL prefix stored images are served from
  public_base_url: null
  # For S3 storage
  bucket: null
  region: "us-east-1"
  endpoint_url: null
  access_key_id: null
  secret_access_key: null
  cache_control: "max-age=31536000"

# Uploaded Image Processing
images:
  allowed_types: ["image/jpeg", "image/png", "image/webp", "image/gif"]
  max_file_size_mb: 10
  # "crop" fills the box, "scale" fits inside it
  default_crop_mode: "scale"
  thumbnail:
    width: 256
    height: 320
    quality: 80
  large:
    width: 640
    height: 800
    quality: 85

# Logging Configuration
logging:
  level: "INFO"
  format: "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

  file:
    enabled: true
    path: "logs/before_after_api.log"
    max_size_mb: 100
    backup_count: 5

  console:
    enabled: true
    colorize: true

# Monitoring Configuration
monitoring:
  health_check:
    enabled: true
    path: "/health"
  metrics:
    enabled: true
    path: "/metrics"
"""


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        description="BeforeAfterAPI - backend for the before or after card game",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start server with default config
  %(prog)s serve

  # Start server with custom config and port
  %(prog)s serve -c config/myconfig.yaml --port 9000

  # Generate example configuration
  %(prog)s init

  # Load cards and the default loss GIFs
  %(prog)s seed cards.json --default-loss-gifs

  # Export all cards
  %(prog)s export -o cards.csv
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config/config.yaml",
        help="Path to configuration file (default: config/config.yaml)",
    )
    parser.add_argument(
        "-l",
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level (overrides config file setting)",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", help="Override server host")
    serve_parser.add_argument("--port", type=int, help="Override server port")
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    serve_parser.add_argument(
        "--no-docs", action="store_true", help="Disable API documentation"
    )
    serve_parser.add_argument("--admin-key", help="Add an admin API key")
    serve_parser.add_argument(
        "--storage",
        choices=["memory", "filesystem", "s3"],
        help="Override image storage backend",
    )
    serve_parser.add_argument("--db-path", help="Override database path")

    init_parser = subparsers.add_parser(
        "init", help="Generate example configuration file"
    )
    init_parser.add_argument(
        "-o",
        "--output",
        default="config/config.example.yaml",
        help="Output file path (default: config/config.example.yaml)",
    )
    init_parser.add_argument(
        "--force", action="store_true", help="Overwrite existing file"
    )

    seed_parser = subparsers.add_parser(
        "seed", help="Load cards and loss GIFs from a JSON or YAML file"
    )
    seed_parser.add_argument(
        "file",
        nargs="?",
        help="File with 'cards' and/or 'lossGifs' lists",
    )
    seed_parser.add_argument(
        "--replace", action="store_true", help="Delete existing records first"
    )
    seed_parser.add_argument(
        "--default-loss-gifs",
        action="store_true",
        help="Create the five placeholder loss GIFs if none exist",
    )

    subparsers.add_parser("stats", help="Show content and upload statistics")

    subparsers.add_parser("test-db", help="Test database connection and show info")

    export_parser = subparsers.add_parser("export", help="Export cards to CSV")
    export_parser.add_argument(
        "-o", "--output", default="cards_export.csv", help="Output CSV file"
    )
    export_parser.add_argument("--category", help="Only export this category")

    backup_parser = subparsers.add_parser("backup", help="Copy the database file")
    backup_parser.add_argument("output", help="Backup file path")

    return parser


async def serve_command(args: Any, config: Config) -> None:
    """Run the server with given arguments."""
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.debug:
        config.server.debug = True
    if args.no_docs:
        config.server.enable_docs = False
    if args.admin_key:
        config.security.admin_keys = [
            AdminKeyConfig(key=args.admin_key, description="CLI-provided admin key")
        ]
    if args.storage:
        config.storage.backend = args.storage
    if args.db_path:
        config.database.path = args.db_path

    app = create_app(config_path=args.config, override_config=config)

    hypercorn_config = HypercornConfig()
    hypercorn_config.bind = [f"{config.server.host}:{config.server.port}"]
    hypercorn_config.use_reloader = args.reload

    hypercorn_config.accesslog = "-" if config.server.debug else None
    hypercorn_config.errorlog = "-"

    print("\n>> Starting BeforeAfterAPI Server")
    print(f"  - Address: http://{config.server.host}:{config.server.port}")
    print(f"  - Debug Mode: {config.server.debug}")
    if config.server.enable_docs:
        print(f"  - API Docs: http://{config.server.host}:{config.server.port}/docs")
    print(f"  - Database: {config.database.path}")
    print(f"  - Image Storage: {config.storage.backend}")
    if config.security.admin_keys:
        print(f"  - Admin Keys: {len(config.security.admin_keys)} configured")
    else:
        print("  - Admin Keys: None (admin API disabled)")

    print("\nPress Ctrl+C to stop the server\n")

    # hypercorn's serve has complex ASGI typing
    await serve(app, hypercorn_config)  # type: ignore[arg-type]


def init_command(args: Any) -> int:
    """Generate example configuration file."""
    output_path = Path(args.output)

    if output_path.exists() and not args.force:
        print(f"[ERROR] File {output_path} already exists. Use --force to overwrite.")
        return 1

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(EXAMPLE_CONFIG)
    print(f"[SUCCESS] Generated example configuration at {output_path}")
    print("\nNext steps:")
    print(f"1. Copy to config.yaml: cp {output_path} config/config.yaml")
    print("2. Add an admin key and storage settings to config/config.yaml")
    print(f"3. Start the server: {sys.argv[0]} serve")
    return 0


def load_seed_file(path: Path) -> dict[str, Any]:
    """Read seed data from a JSON or YAML file.

    A bare list is treated as a list of cards.
    """
    text = path.read_text()
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)

    if isinstance(data, list):
        return {"cards": data}
    if not isinstance(data, dict):
        raise ValueError(f"Seed file must contain a mapping or a list: {path}")
    return data


def seed_command(args: Any, config: Config) -> int:
    """Insert cards and loss GIFs."""
    setup_logging(config.logging)

    if not args.file and not args.default_loss_gifs:
        print("[ERROR] Nothing to seed. Pass a file or --default-loss-gifs.")
        return 1

    db_manager = DatabaseManager(config.database)
    db_ops = DatabaseOperations(db_manager)

    try:
        if args.file:
            data = load_seed_file(Path(args.file))
            cards = data.get("cards", [])
            loss_gifs = data.get("lossGifs", [])

            if cards:
                count = db_ops.seed_cards(cards, replace=args.replace)
                print(f"[SUCCESS] Inserted {count} cards")
            if loss_gifs:
                count = db_ops.seed_loss_gifs(loss_gifs, replace=args.replace)
                print(f"[SUCCESS] Inserted {count} loss GIFs")

        if args.default_loss_gifs:
            existing = db_ops.get_statistics()["total_loss_gifs"]
            if existing and not args.replace:
                print(
                    f"Found {existing} existing loss GIF records. "
                    "Skipping default loss GIFs."
                )
            else:
                count = db_ops.seed_loss_gifs(DEFAULT_LOSS_GIFS, replace=args.replace)
                print(f"[SUCCESS] Created {count} default loss GIFs")

    except (OSError, ValueError, KeyError, yaml.YAMLError) as e:
        print(f"[ERROR] Seeding failed: {e}")
        return 1
    finally:
        db_manager.close()

    return 0


def stats_command(args: Any, config: Config) -> int:
    """Show content and upload statistics."""
    setup_logging(config.logging)

    db_manager = DatabaseManager(config.database)
    db_ops = DatabaseOperations(db_manager)

    try:
        stats = db_ops.get_statistics()
    finally:
        db_manager.close()

    print("\n=== Content ===")
    print("-" * 50)
    print(f"Total Cards: {stats['total_cards']:,}")
    print(f"Total Loss GIFs: {stats['total_loss_gifs']:,}")

    if stats["cards_by_category"]:
        print("\nCards by Category:")
        for category, count in sorted(stats["cards_by_category"].items()):
            print(f"  {category}: {count:,} cards")

    print("\n=== Image Uploads ===")
    print("-" * 50)
    print(f"Attempts: {stats['uploads_total']:,}")
    print(f"Failed: {stats['uploads_failed']:,}")

    return 0


def test_db_command(args: Any, config: Config) -> int:
    """Test database connection."""
    setup_logging(config.logging)

    print(">> Testing database connection...")
    print(f"Database path: {config.database.path}")

    try:
        db_manager = DatabaseManager(config.database)
        try:
            stats = db_manager.get_stats()
        finally:
            db_manager.close()

    except Exception as e:
        print("\n[ERROR] Database connection failed!")
        print(f"Error: {e}")
        return 1

    print("\n[SUCCESS] Database connection successful!")
    for table, count in stats["tables"].items():
        print(f"  - {table}: {count:,} rows")
    print(f"  - Database Size: {stats['size_mb']:.2f} MB")
    return 0


def export_command(args: Any, config: Config) -> int:
    """Export cards to CSV."""
    setup_logging(config.logging)

    db_manager = DatabaseManager(config.database)
    try:
        cards = DatabaseOperations(db_manager).get_all_cards()
    finally:
        db_manager.close()

    if args.category:
        cards = [card for card in cards if card.category == args.category]

    if not cards:
        print("No cards found to export.")
        return 0

    fieldnames = [
        "id",
        "title",
        "year",
        "month",
        "category",
        "imageUrl",
        "thumbnailUrl",
        "sourceUrl",
        "createdAt",
        "updatedAt",
    ]
    with open(args.output, "w", newline="") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
        writer.writeheader()

        for card in cards:
            row = card.to_dict()
            row["createdAt"] = card.created_at.isoformat()
            row["updatedAt"] = card.updated_at.isoformat()
            writer.writerow(row)

    print(f"[SUCCESS] Exported {len(cards)} cards to {args.output}")
    return 0


def backup_command(args: Any, config: Config) -> int:
    """Copy the database to a backup file."""
    setup_logging(config.logging)

    db_manager = DatabaseManager(config.database)
    try:
        db_manager.backup(args.output)
    except DatabaseError as e:
        print(f"[ERROR] Backup failed: {e}")
        return 1
    finally:
        db_manager.close()

    print(f"[SUCCESS] Database backed up to {args.output}")
    return 0


async def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    config = Config.load_from_file(args.config)

    if args.log_level:
        config.logging.level = args.log_level

    if args.command == "serve":
        await serve_command(args, config)
        return 0
    elif args.command == "init":
        return init_command(args)
    elif args.command == "seed":
        return seed_command(args, config)
    elif args.command == "stats":
        return stats_command(args, config)
    elif args.command == "test-db":
        return test_db_command(args, config)
    elif args.command == "export":
        return export_command(args, config)
    elif args.command == "backup":
        return backup_command(args, config)
    else:
        parser.print_help()
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
