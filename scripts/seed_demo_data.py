#!/usr/bin/env python3
"""
Seed demo teams, players, performance metrics and skill assessments.

Values are randomised around position-typical baselines with a fixed seed so
repeated runs on an empty database produce the same data. Teams that already
exist by name and age group are skipped along with their players.

Usage:
    python scripts/seed_demo_data.py [--players-per-team 12] [--sessions 8]
"""

import argparse
import asyncio
import random
import sys
from datetime import date, timedelta
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import select

from academy.database.db import AsyncSessionLocal
from academy.database.models import Team, PlayerPosition
from academy.services import team_service, player_service, performance_service, skill_service
from academy.utils.datetime_utils import today_utc

TEAMS = [
    ("Academy U12", "U12", "academy"),
    ("Academy U14", "U14", "academy"),
    ("Academy U16", "U16", "academy"),
    ("First Team", "U19", "main"),
]

FIRST_NAMES = ["Omar", "Yusuf", "Khalid", "Faisal", "Saud", "Nasser", "Ali", "Hamad",
               "Salem", "Majed", "Rakan", "Turki", "Fahad", "Ziyad", "Badr", "Mishal"]
LAST_NAMES = ["Al-Harbi", "Al-Qahtani", "Al-Otaibi", "Al-Dosari", "Al-Ghamdi", "Al-Zahrani",
              "Al-Shehri", "Al-Mutairi", "Al-Anazi", "Al-Subaie"]

# (position, squad share) for an 11-a-side squad
SQUAD_SHAPE = [
    (PlayerPosition.GOALKEEPER.value, 2),
    (PlayerPosition.DEFENDER.value, 4),
    (PlayerPosition.MIDFIELDER.value, 4),
    (PlayerPosition.FORWARD.value, 2),
]

SKILL_BIAS = {
    "goalkeeper": {"positioning": 12, "composure": 8, "jumping": 10},
    "defender": {"marking": 12, "tackling": 12, "heading": 8, "strength": 6},
    "midfielder": {"passing": 12, "vision": 10, "stamina": 8, "first_touch": 6},
    "forward": {"shooting": 12, "dribbling": 10, "speed": 8, "acceleration": 6},
}

SKILL_FIELDS = [
    "ball_control", "first_touch", "dribbling", "passing", "shooting", "crossing", "heading",
    "left_foot_score", "right_foot_score", "speed", "acceleration", "agility", "stamina",
    "strength", "jumping", "positioning", "vision", "composure", "decision_making", "work_rate",
    "marking", "tackling", "interceptions",
]


def birth_date_for(age_group: str, rng: random.Random, today: date) -> date:
    # U{n} players turn n-1 this year
    age = int(age_group[1:]) - 1
    return date(today.year - age, rng.randint(1, 12), rng.randint(1, 28))


def random_skills(position: str, rng: random.Random) -> dict:
    bias = SKILL_BIAS.get(position, {})
    return {field: max(20, min(95, int(rng.gauss(55, 10)) + bias.get(field, 0))) for field in SKILL_FIELDS}


def random_session(position: str, rng: random.Random) -> dict:
    passes = rng.randint(15, 60)
    shots = rng.randint(0, 6) if position != "goalkeeper" else 0
    dribbles = rng.randint(0, 10)
    return {
        "touches": passes + rng.randint(10, 40),
        "passes": passes,
        "pass_accuracy": rng.randint(60, 92),
        "shots": shots,
        "shots_on_target": rng.randint(0, shots),
        "dribbles": dribbles,
        "successful_dribbles": rng.randint(0, dribbles),
        "distance_covered": rng.randint(3500, 9500),
        "top_speed": round(rng.uniform(22, 32), 1),
        "sprints": rng.randint(4, 25),
        "accelerations": rng.randint(10, 40),
        "decelerations": rng.randint(10, 40),
        "possession_won": rng.randint(0, 10),
        "possession_lost": rng.randint(0, 10),
        "interceptions": rng.randint(0, 6),
        "tackles": rng.randint(0, 8),
        "technical_score": rng.randint(50, 90),
        "physical_score": rng.randint(50, 90),
        "tactical_score": rng.randint(50, 90),
    }


async def main(players_per_team: int, sessions: int, seed: int = 42):
    rng = random.Random(seed)
    today = today_utc()
    print("\n⚽ Seeding demo data...\n")

    async with AsyncSessionLocal() as session:
        for name, age_group, team_type in TEAMS:
            existing = (await session.execute(
                select(Team.id).where(Team.name == name, Team.age_group == age_group)
            )).scalar_one_or_none()
            if existing:
                print(f"  ⏭️  {name} already exists (team #{existing})")
                continue

            team = await team_service.create_team(session, name, age_group, team_type=team_type)
            positions = [p for p, share in SQUAD_SHAPE for _ in range(share)]
            for index in range(players_per_team):
                position = positions[index % len(positions)]
                player = await player_service.create_player(
                    session,
                    first_name=rng.choice(FIRST_NAMES),
                    last_name=rng.choice(LAST_NAMES),
                    date_of_birth=birth_date_for(age_group, rng, today),
                    position=position,
                    preferred_foot=rng.choice(["right", "right", "right", "left", "both"]),
                    jersey_number=index + 1,
                    team_id=team["id"],
                    join_date=today - timedelta(days=rng.randint(30, 700)),
                )
                for offset in range(sessions):
                    await performance_service.create_metric(
                        session,
                        player["id"],
                        today - timedelta(days=7 * offset + rng.randint(0, 3)),
                        rng.choice(["training", "training", "match"]),
                        **random_session(position, rng),
                    )
                await skill_service.create_skill_score(
                    session,
                    player["id"],
                    assessment_date=today - timedelta(days=rng.randint(0, 30)),
                    **random_skills(position, rng),
                )
            print(f"  ✅ {name}: {players_per_team} players, {sessions} sessions each")

        await session.commit()
    print("\n✅ Demo data seeded")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo academy data")
    parser.add_argument("--players-per-team", type=int, default=12)
    parser.add_argument("--sessions", type=int, default=8)
    args = parser.parse_args()
    asyncio.run(main(args.players_per_team, args.sessions))
