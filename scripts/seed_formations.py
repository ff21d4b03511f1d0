#!/usr/bin/env python3
"""
Seed the standard formation templates (4-3-3, 4-4-2, 4-2-3-1, 3-5-2, 3-4-3).

Idempotent: templates that already exist are left alone.

Usage:
    python scripts/seed_formations.py
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from academy.database.db import AsyncSessionLocal
from academy.services import formation_service


async def main():
    print("\n⚽ Seeding formation templates...\n")
    async with AsyncSessionLocal() as session:
        created = await formation_service.seed_templates(session)
        await session.commit()
    print(f"  ✅ {created} template(s) created")


if __name__ == "__main__":
    asyncio.run(main())
