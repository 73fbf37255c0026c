#!/usr/bin/env python3
"""
Fill in fields of a customer profile from the command line.

Sets ``profile_completed`` when every required field ends up filled, then
re-reads the profile and reports what is still missing.

Example:
    python scripts/complete_profile.py --email buyer@company.cl \
        --field company_rut=76123456-7 --field comuna=Providencia
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Dict, List, Optional

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

# Columns a maintainer may edit with this script
EDITABLE_FIELDS = REQUIRED_PROFILE_FIELDS


def parse_fields(pairs: List[str]) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or key not in EDITABLE_FIELDS:
            raise ValueError(f"Invalid field {pair!r}; expected one of {', '.join(EDITABLE_FIELDS)} as key=value")
        fields[key] = value.strip()
    return fields


async def complete_profile(repository: ProfileRepository, email: str, fields: Dict[str, str]) -> List[str]:
    """Apply ``fields`` and return the required fields that are still missing."""
    await repository.complete_profile(email, fields)
    profile = await repository.get_profile(email)

    print("📊 Resulting profile:")
    print(f"   Email: {profile['email']}")
    print(f"   Name: {profile.get('first_name') or '-'} {profile.get('last_name') or '-'}")
    print(f"   Company: {profile.get('company_name') or '-'}")
    print(f"   Completed flag: {profile['profile_completed']}")
    print(f"   Completion: {completion_percentage(profile)}%")
    return missing_profile_fields(profile)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Update required fields of a customer profile")
    parser.add_argument("--email", required=True, help="Profile email (exact match)")
    parser.add_argument(
        "--field",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Field to set; may be repeated",
    )
    parser.add_argument("--database-url", default=settings.DATABASE_URL)
    args = parser.parse_args(argv)

    try:
        fields = parse_fields(args.field)
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    if not fields:
        print("❌ Nothing to update; pass at least one --field", file=sys.stderr)
        return 2

    engine = build_engine(args.database_url)
    repository = ProfileRepository(SqlAlchemyPersistence(engine))
    print(f"📝 Updating profile {args.email} ({', '.join(sorted(fields))})")
    try:
        missing = asyncio.run(complete_profile(repository, args.email, fields))
    except RecordNotFoundError:
        print(f"❌ No profile found for {args.email}", file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"❌ Error updating profile: {e}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()

    if missing:
        print(f"⚠️  Still missing: {', '.join(missing)}")
    else:
        print("✅ Profile is complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
