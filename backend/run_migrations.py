from __future__ import annotations

import argparse
import logging
import sys

from bootstrap import MIGRATION_MARKER_KEY, clear_bootstrap_marker, has_bootstrap_marker, run_bootstrap
from config import Settings
from database import Base, build_engine, build_session_factory
from time_utils import configure_timezone

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create tables and seed the default admin account.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run bootstrap even if the marker already exists.",
    )
    parser.add_argument(
        "--clear-marker",
        action="store_true",
        help=f"Clear marker key `{MIGRATION_MARKER_KEY}` before running.",
    )
    parser.add_argument(
        "--clear-only",
        action="store_true",
        help="Clear marker and exit without running bootstrap.",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = Settings.from_env()
    configure_timezone(settings.timezone)
    engine = build_engine(settings.database_url)
    session_factory = build_session_factory(engine)

    try:
        Base.metadata.create_all(bind=engine)
        db = session_factory()
        try:
            if args.clear_marker or args.clear_only:
                if clear_bootstrap_marker(db):
                    logger.info("Cleared migration marker `%s`.", MIGRATION_MARKER_KEY)
                else:
                    logger.info("Marker `%s` was already absent.", MIGRATION_MARKER_KEY)
                if args.clear_only:
                    return 0

            if has_bootstrap_marker(db) and not args.force:
                logger.info(
                    "Migration marker `%s` already exists. Nothing to do. Use --force to rerun.",
                    MIGRATION_MARKER_KEY,
                )
                return 0
        finally:
            db.close()

        logger.info("Running backend bootstrap...")
        run_bootstrap(engine, session_factory, settings)
        logger.info("Bootstrap completed and marker `%s` updated.", MIGRATION_MARKER_KEY)
        return 0
    finally:
        engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
