#!/usr/bin/env python3
"""Run one recommendation request and print the result as JSON.

Usage:
    python scripts/recommend.py p-001 --limit 5
    python scripts/recommend.py p-001 --profiles config/profiles.example.yaml --external

Environment variables:
    DATABASE_URL: Database with the profiles table (when --profiles is not given)
    EXTERNAL_SCORER_KIND / EXTERNAL_SCORER_URL: Optional external scorer
"""
import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from scripts.bootstrap import settings
from transfer_match.exceptions import MatchingError
from transfer_match.logging_config import setup_logging_from_settings
from transfer_match.service import RecommendationService

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recommend transfer matches for a profile.")
    parser.add_argument("seeker_id", help="Id of the seeker profile")
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.default_limit,
        help=f"Number of recommendations (default: {settings.default_limit})",
    )
    parser.add_argument(
        "--external",
        action="store_true",
        help="Annotate top matches with the configured external scorer",
    )
    parser.add_argument(
        "--target-role",
        choices=["player", "coach", "club"],
        help="Only match against this role",
    )
    parser.add_argument("--profiles", type=Path, help="Profiles YAML file (instead of the database)")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging_from_settings(settings)

    if args.profiles:
        settings.profiles_file = args.profiles

    try:
        service = RecommendationService.from_settings(settings)
        result = service.request_recommendations(
            args.seeker_id,
            args.limit,
            use_external_scoring=args.external,
            target_role=args.target_role,
        )
    except MatchingError as e:
        logger.error("Recommendation failed: %s", e)
        return 1

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
