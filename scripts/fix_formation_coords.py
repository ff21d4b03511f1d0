#!/usr/bin/env python3
"""
Normalise stored formation coordinates.

Formations saved from the builder in pixels (or with positions off the
pitch) are converted to percentages and clamped to 0-100.

Usage:
    python scripts/fix_formation_coords.py
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from academy.database.db import AsyncSessionLocal
from academy.services import formation_service


async def main():
    print("\n📐 Fixing formation coordinates...\n")
    async with AsyncSessionLocal() as session:
        changed = await formation_service.fix_formation_coordinates(session)
        await session.commit()
    print(f"  ✅ {changed} formation(s) updated")


if __name__ == "__main__":
    asyncio.run(main())
