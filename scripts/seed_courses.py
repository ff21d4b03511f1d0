#!/usr/bin/env python3
"""
Seed coaching courses with lessons and a final quiz.

Idempotent: courses are matched by title and skipped when present.

Usage:
    python scripts/seed_courses.py
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select

from academy.database.db import AsyncSessionLocal
from academy.database.models import CoachingCourse
from academy.services import course_service

COURSES = [
    {
        "title": "Foundations of Youth Coaching",
        "description": "Session planning, communication and safeguarding for grassroots coaches.",
        "category": "coaching",
        "level": "beginner",
        "duration_minutes": 90,
        "modules": [
            ("The role of the youth coach", "Coaching philosophy, player-centred learning and setting standards.", 20),
            ("Planning a session", "Warm-up, skill practice, game-related practice and cool-down.", 25),
            ("Communicating with players and parents", "Feedback, questioning and keeping parents informed.", 20),
            ("Safeguarding basics", "Duty of care, reporting concerns and safe environments.", 25),
        ],
        "quiz": [
            ("What should a typical session start with?", "A match", "A warm-up", "Fitness testing", "Penalties", "B"),
            ("Player-centred coaching means...", "Players do whatever they like", "The coach talks all session",
             "Practices are built around players' needs", "Only the best players train", "C"),
            ("A safeguarding concern should be...", "Ignored unless serious", "Reported through the club's procedure",
             "Discussed on social media", "Raised only with the child", "B"),
        ],
    },
    {
        "title": "Tactical Principles: Playing Out From the Back",
        "description": "Building possession from the goalkeeper through the thirds.",
        "category": "tactics",
        "level": "intermediate",
        "duration_minutes": 75,
        "modules": [
            ("Shape in build-up", "Width, depth and the goalkeeper as an extra player.", 25),
            ("Breaking the first line", "Third-man runs, switching play and passing lanes.", 25),
            ("Coping with a high press", "Triggers, safe options and when to go long.", 25),
        ],
        "quiz": [
            ("In a back-four build-up the full-backs usually...", "Stay narrow", "Provide width",
             "Play as strikers", "Mark the goalkeeper", "B"),
            ("A third-man run is...", "A run by a substitute", "A run that receives after a lay-off",
             "A run behind your own goal", "A dribble", "B"),
        ],
    },
    {
        "title": "Physical Development in Young Players",
        "description": "Age-appropriate conditioning, growth and injury prevention.",
        "category": "physical",
        "level": "advanced",
        "duration_minutes": 60,
        "modules": [
            ("Growth and maturation", "Peak height velocity and managing training load.", 20),
            ("Speed and agility", "Acceleration mechanics and change-of-direction drills.", 20),
            ("Injury prevention", "Warm-up programmes and recovery.", 20),
        ],
        "quiz": [
            ("During a growth spurt training load should be...", "Increased sharply", "Monitored and adapted",
             "Ignored", "Doubled", "B"),
            ("Which is an injury prevention warm-up?", "FIFA 11+", "Static stretching only",
             "A full match", "Penalty practice", "A"),
        ],
    },
]


async def main():
    print("\n🎓 Seeding coaching courses...\n")
    async with AsyncSessionLocal() as session:
        existing = set((await session.execute(select(CoachingCourse.title))).scalars().all())
        for order, spec in enumerate(COURSES):
            if spec["title"] in existing:
                print(f"  ⏭️  {spec['title']} already exists")
                continue
            course = await course_service.create_course(
                session,
                spec["title"],
                description=spec["description"],
                category=spec["category"],
                level=spec["level"],
                duration_minutes=spec["duration_minutes"],
                is_published=True,
                display_order=order,
            )
            for position, (title, content, minutes) in enumerate(spec["modules"]):
                await course_service.add_module(
                    session, course["id"], title, content=content, duration_minutes=minutes, display_order=position
                )
            for position, (question, a, b, c, d, answer) in enumerate(spec["quiz"]):
                await course_service.add_quiz_question(
                    session, course["id"], question, a, b, answer, option_c=c, option_d=d, display_order=position
                )
            print(f"  ✅ {spec['title']} ({len(spec['modules'])} lessons, {len(spec['quiz'])} questions)")
        await session.commit()


if __name__ == "__main__":
    asyncio.run(main())
