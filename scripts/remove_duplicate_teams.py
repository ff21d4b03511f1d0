#!/usr/bin/env python3
"""
Merge teams that share a name (case-insensitive) and age group.

Each group collapses into its oldest team; players, matches and coach
assignments move across before the duplicates are deleted.

Usage:
    python scripts/remove_duplicate_teams.py [--dry-run]
"""

import argparse
import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from academy.database.db import AsyncSessionLocal
from academy.services import team_service


async def main(dry_run: bool = False):
    async with AsyncSessionLocal() as session:
        groups = await team_service.find_duplicate_teams(session)
        if not groups:
            print("✅ No duplicate teams found")
            return
        for group in groups:
            keep_id, *others = group["team_ids"]
            print(f"  {group['name']} ({group['age_group']}): keep #{keep_id}, merge {others}")
        if dry_run:
            print("\n(dry run, nothing changed)")
            return
        result = await team_service.merge_duplicate_teams(session)
        await session.commit()
    print(f"\n✅ Merged {result['groups']} group(s), removed {result['teams_removed']} team(s)")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Merge duplicate teams")
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    asyncio.run(main(dry_run=args.dry_run))
