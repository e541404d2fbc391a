#!/usr/bin/env python3
"""Import profiles from a YAML file into the database.

Usage:
    python scripts/import_profiles.py config/profiles.example.yaml

Environment variables:
    DATABASE_URL: Target database (default: sqlite:///transfer_match.db)
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from scripts.bootstrap import settings
from transfer_match.logging_config import setup_logging_from_settings
from transfer_match.persistence.database import get_session, init_db
from transfer_match.persistence.store import upsert_profiles
from transfer_match.profiles.models import Profile
from transfer_match.profiles.store import YamlProfileStore

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import profiles from YAML into the database.")
    parser.add_argument("path", type=Path, help="Profiles YAML file")
    args = parser.parse_args(argv)

    setup_logging_from_settings(settings)
    logger.info("Database: %s...", settings.database_url[:50])

    profiles: list[Profile] = []
    skipped = 0
    for entry in YamlProfileStore.load_entries(args.path):
        try:
            profiles.append(Profile.from_dict(entry))
        except (TypeError, ValueError) as e:
            logger.warning("Skipping entry %s: %s", entry.get("id", "?"), e)
            skipped += 1

    init_db()
    with get_session() as session:
        written = upsert_profiles(session, profiles)

    logger.info("Imported %d profiles (%d skipped)", written, skipped)
    return 0


if __name__ == "__main__":
    sys.exit(main())
