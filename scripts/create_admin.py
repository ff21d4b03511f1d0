#!/usr/bin/env python3
"""
Create an approved admin account, or promote an existing one.

Usage:
    python scripts/create_admin.py --email admin@academy.test --password "change-me-now" --name "Head of Academy"
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add the project root to the path so we can import academy modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from academy.database.db import AsyncSessionLocal
from academy.database.models import AccountStatus, UserRole
from academy.services import auth_service, user_service


async def create_admin(email: str, password: str, name: str = None) -> dict:
    email = auth_service.normalize_email(email)
    async with AsyncSessionLocal() as session:
        existing = await user_service.get_user_by_email(session, email)
        if existing:
            await user_service.approve_user(session, existing["id"], role=UserRole.ADMIN.value)
            await session.commit()
            print(f"✅ Promoted existing user #{existing['id']} ({email}) to admin")
            return existing

        auth_service.validate_password(password)
        user = await user_service.create_user(
            session,
            email=email,
            password_hash=auth_service.hash_password(password),
            name=name,
            role=UserRole.ADMIN.value,
            account_status=AccountStatus.APPROVED.value,
            requested_role=UserRole.ADMIN.value,
        )
        await session.commit()
        print(f"✅ Created admin user #{user['id']} ({email})")
        return user


def main():
    parser = argparse.ArgumentParser(description="Create an approved admin user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--name", default=None)
    args = parser.parse_args()

    try:
        asyncio.run(create_admin(args.email, args.password, args.name))
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
