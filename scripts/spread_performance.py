#!/usr/bin/env python3
"""
Redistribute performance metric dates evenly over the last N months.

Metrics are taken oldest-first and split into N equal groups; each group is
moved into one month, ending with the current month. Useful after importing
demo data that all landed on the same day.

Usage:
    python scripts/spread_performance.py [--months 12] [--player-id 7]
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select

from academy.database.db import AsyncSessionLocal
from academy.database.models import PerformanceMetric
from academy.utils.datetime_utils import today_utc


def month_start(today: date, months_back: int) -> date:
    total = today.year * 12 + (today.month - 1) - months_back
    return date(total // 12, total % 12 + 1, 1)


def spread_dates(count: int, months: int, today: date):
    """
    One date per metric: group i of ``months`` gets the 1st-28th of month
    ``months - 1 - i`` back from today, spaced evenly within the month.
    """
    per_month = max(count // months, 1)
    dates = []
    for index in range(count):
        group = min(index // per_month, months - 1)
        start = month_start(today, months - 1 - group)
        slot = index - group * per_month
        group_size = per_month if group < months - 1 else count - group * per_month
        day = 1 + (slot * 27) // max(group_size, 1)
        candidate = start.replace(day=min(day, 28))
        dates.append(min(candidate, today))
    return dates


async def main(months: int, player_id: int = None):
    async with AsyncSessionLocal() as session:
        query = select(PerformanceMetric).order_by(PerformanceMetric.session_date, PerformanceMetric.id)
        if player_id is not None:
            query = query.where(PerformanceMetric.player_id == player_id)
        metrics = (await session.execute(query)).scalars().all()
        if not metrics:
            print("No performance metrics found")
            return

        print(f"\n📅 Spreading {len(metrics)} metrics across {months} months...\n")
        for metric, new_date in zip(metrics, spread_dates(len(metrics), months, today_utc())):
            metric.session_date = new_date
        await session.commit()

        distribution = {}
        for metric in metrics:
            key = metric.session_date.strftime("%Y-%m")
            distribution[key] = distribution.get(key, 0) + 1
        for month, count in sorted(distribution.items()):
            print(f"  {month}: {count}")
    print("\n✅ Done")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Spread performance metrics over recent months")
    parser.add_argument("--months", type=int, default=12)
    parser.add_argument("--player-id", type=int, default=None)
    args = parser.parse_args()
    asyncio.run(main(args.months, args.player_id))
