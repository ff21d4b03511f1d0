#!/usr/bin/env python3
"""
Initialize default database values.
This script is run on startup to populate default settings, badges, streak
rewards, formation templates and this week's challenges.
"""

import asyncio
import os

from academy.database.db import AsyncSessionLocal
from academy.services import (
    settings_service,
    badge_service,
    streak_service,
    formation_service,
    challenge_service,
)

DEFAULT_SETTINGS = {
    "enable_email": "true",
    "log_level": "INFO",
}


async def init_defaults():
    """Initialize default database values."""
    print("Initializing default database values...")

    async with AsyncSessionLocal() as session:
        for key, value in DEFAULT_SETTINGS.items():
            if await settings_service.get_setting(session, key) is None:
                await settings_service.set_setting(session, key, value)
                print(f"✓ Set default setting {key}={value}")

        # Bootstrap admin emails are merged into the existing list
        default_admin = os.getenv("DEFAULT_ADMIN_EMAIL", "").strip().lower()
        if default_admin:
            existing_admins = await settings_service.get_setting(session, "system_admin_emails")
            admin_set = {e.strip().lower() for e in (existing_admins or "").split(",") if e.strip()}
            if default_admin not in admin_set:
                admin_set.add(default_admin)
                await settings_service.set_setting(session, "system_admin_emails", ",".join(sorted(admin_set)))
                print(f"✓ Added default system admin: {default_admin}")
            else:
                print(f"✓ Default system admin already exists: {default_admin}")

        badges = await badge_service.initialize_default_badges(session)
        print(f"✓ {badges} default badges created")

        rewards = await streak_service.initialize_streak_rewards(session)
        print(f"✓ {rewards} streak rewards created")

        templates = await formation_service.seed_templates(session)
        print(f"✓ {templates} formation templates created")

        challenges = await challenge_service.initialize_weekly_challenges(session)
        print(f"✓ {challenges} weekly challenges created")

        await session.commit()

    print("✓ Default values initialized")


if __name__ == "__main__":
    asyncio.run(init_defaults())
