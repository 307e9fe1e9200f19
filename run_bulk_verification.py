#!/usr/bin/env python3
"""
Aqua Assist - Bulk Verification
Verifies the oldest pending reports against weather, news and social sources.
Meant to be run periodically (cron).
"""
import argparse
import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from aquaassist.core.config import settings
from aquaassist.core.exceptions import ValidationError
from aquaassist.core.logging import setup_logging
from aquaassist.database.connection import get_db
from aquaassist.verification import BulkVerificationScheduler, VerificationService


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Verify pending Aqua Assist reports")
    parser.add_argument(
        "--limit",
        type=int,
        default=settings.bulk_default_limit,
        help=f"Reports to verify (1-{settings.bulk_max_limit}, default {settings.bulk_default_limit})",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()

    db = get_db()
    db.create_tables()
    scheduler = BulkVerificationScheduler(VerificationService(db))

    print("=" * 60)
    print("Aqua Assist - Bulk Report Verification")
    print("=" * 60)
    print(f"\nNews API configured:   {'yes' if settings.news_api_key else 'no'}")
    print(f"Social API configured: {'yes' if settings.social_access_token else 'no'}")
    print(f"Limit:                 {args.limit}")

    try:
        result = asyncio.run(scheduler.run_bulk(args.limit))
    except ValidationError as e:
        print(f"ERROR: {e.message}")
        return 2
    finally:
        db.close()

    print("\nResults:")
    for key, value in result.to_dict().items():
        print(f"  - {key.replace('_', ' ').capitalize():<20} {value}")
    print("=" * 60)

    return 1 if result.failed else 0


if __name__ == "__main__":
    sys.exit(main())
