#!/usr/bin/env python3
"""
Show a customer profile's completeness and optionally repair its flag.

With ``--fix-flag`` the ``profile_completed`` flag is set when every required
field is filled but the flag was never updated.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from b2b_portal.core.config import settings
from b2b_portal.db.persistence import PersistenceError, RecordNotFoundError, SqlAlchemyPersistence
from b2b_portal.db.session import build_engine
from b2b_portal.services.profiles import (
    REQUIRED_PROFILE_FIELDS,
    ProfileRepository,
    completion_percentage,
    missing_profile_fields,
)


async def inspect_profile(repository: ProfileRepository, email: str, fix_flag: bool) -> bool:
    """Print the profile state. Returns True when the profile is complete."""
    profile = await repository.get_profile(email)

    print(f"📊 Profile {profile['email']}")
    for field in REQUIRED_PROFILE_FIELDS:
        value = profile.get(field)
        print(f"   {'✓' if value and str(value).strip() else '✗'} {field}: {value or '-'}")
    print(f"   Password configured: {bool(profile.get('password_hash'))}")
    print(f"   Completed flag: {profile['profile_completed']}")
    print(f"\n📈 Completion: {completion_percentage(profile)}%")

    missing = missing_profile_fields(profile)
    if missing:
        print(f"⚠️  Missing fields: {', '.join(missing)}")

    if fix_flag:
        _, changed = await repository.sync_completed_flag(email)
        if changed:
            print("🔧 profile_completed set to True")
        else:
            print("ℹ️  Flag left unchanged")
    elif not missing and not profile["profile_completed"]:
        print("💡 All fields are filled but the flag is off; rerun with --fix-flag")

    return not missing


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect a customer profile")
    parser.add_argument("--email", required=True, help="Profile email (exact match)")
    parser.add_argument(
        "--fix-flag",
        action="store_true",
        help="Set profile_completed when all required fields are present",
    )
    parser.add_argument("--database-url", default=settings.DATABASE_URL)
    args = parser.parse_args(argv)

    engine = build_engine(args.database_url)
    try:
        complete = asyncio.run(inspect_profile(ProfileRepository(SqlAlchemyPersistence(engine)), args.email, args.fix_flag))
    except RecordNotFoundError:
        print(f"❌ No profile found for {args.email}", file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"❌ Error reading profile: {e}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()

    return 0 if complete else 3


if __name__ == "__main__":
    sys.exit(main())
