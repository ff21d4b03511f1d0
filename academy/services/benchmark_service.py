"""
Benchmark comparisons and talent identification.

Benchmarks are static per-position and per-age-group reference values for
session averages. Talent scores are derived from the latest skill assessment.
"""

from datetime import date
from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from academy.database.models import Player
from academy.services import performance_service, skill_service
from academy.utils.number_utils import round_int
from academy.utils.datetime_utils import today_utc
import logging

logger = logging.getLogger(__name__)

# metric name -> (summary key, divisor applied to the summary value)
METRIC_SOURCES = {
    "Passes per Match": ("avg_passes", 1),
    "Pass Accuracy": ("avg_pass_accuracy", 1),
    "Tackles per Match": ("avg_tackles", 1),
    "Interceptions per Match": ("avg_interceptions", 1),
    "Shots per Match": ("avg_shots", 1),
    "Dribbles per Match": ("avg_dribbles", 1),
    "Sprint Count": ("avg_sprints", 1),
    "Distance Covered (km)": ("avg_distance_covered", 1000),
}

POSITION_BENCHMARKS: Dict[str, Dict[str, float]] = {
    "goalkeeper": {
        "Pass Accuracy": 65,
        "Distance Covered (km)": 5.0,
    },
    "defender": {
        "Tackles per Match": 4.0,
        "Interceptions per Match": 3.0,
        "Pass Accuracy": 80,
        "Distance Covered (km)": 9.0,
    },
    "midfielder": {
        "Passes per Match": 65,
        "Pass Accuracy": 82,
        "Tackles per Match": 3.5,
        "Distance Covered (km)": 10.0,
    },
    "forward": {
        "Shots per Match": 3.0,
        "Dribbles per Match": 4.0,
        "Pass Accuracy": 72,
        "Sprint Count": 18,
    },
}

AGE_GROUP_BENCHMARKS: Dict[str, Dict[str, float]] = {
    "U13": {"Distance Covered (km)": 6.5},
    "U15": {"Distance Covered (km)": 8.0},
    "U17": {"Distance Covered (km)": 9.5},
    "U19": {"Distance Covered (km)": 10.0},
}

TALENT_CATEGORIES = {
    "technical": ("ball_control", "passing", "shooting", "dribbling", "heading", "first_touch"),
    "physical": ("speed", "strength", "stamina", "agility", "acceleration", "jumping"),
    "mental": ("composure", "decision_making", "work_rate", "vision"),
    "tactical": ("positioning", "vision", "marking", "tackling", "interceptions"),
}

SKILL_LABELS = {
    "ball_control": "Ball Control",
    "first_touch": "First Touch",
    "decision_making": "Decision Making",
    "work_rate": "Work Rate",
}

CATEGORY_SUMMARIES = {
    "elite": "Exceptional talent with elite-level attributes across all categories.",
    "high_potential": "Strong all-round profile with clear potential to progress to a high level.",
    "developing": "Solid foundation with several attributes that need targeted development.",
    "emerging": "Early-stage player building the fundamentals of the game.",
}

CATEGORY_RECOMMENDATIONS = {
    "elite": [
        "Expose to higher-level competition and training environments",
        "Individual development plan focused on marginal gains",
        "Monitor workload closely to prevent burnout",
    ],
    "high_potential": [
        "Targeted training on identified development areas",
        "Regular match exposure in competitive fixtures",
        "Quarterly skill reassessment to track progress",
    ],
    "developing": [
        "Structured technical sessions on weaker attributes",
        "Increase small-sided game exposure",
        "Set short-term measurable goals with the coaching staff",
    ],
    "emerging": [
        "Focus on fundamental ball skills and coordination",
        "Prioritise enjoyment and consistent training attendance",
        "Introduce basic tactical concepts gradually",
    ],
}

DEVELOPMENT_TIMELINES = {
    "elite": "2-3 years to professional level",
    "high_potential": "3-4 years to professional level",
    "developing": "4-5 years to semi-professional level",
    "emerging": "5+ years for competitive level",
}


def compare_to_benchmark(metric: str, player_value: float, benchmark: float) -> Dict:
    """
    Compare a value against its benchmark.

    variance is the percentage difference from the benchmark and percentile is
    ``clamp(50 + variance * 3.4, 0, 100)``.
    """
    variance = (player_value - benchmark) / benchmark * 100 if benchmark else 0
    percentile = max(0, min(100, 50 + variance * 3.4))

    if variance > 20:
        interpretation = f"Significantly above benchmark in {metric} - excellent performance"
    elif variance > 10:
        interpretation = f"Above benchmark in {metric} - strong performance"
    elif variance > -10:
        interpretation = f"Close to benchmark in {metric} - average performance"
    elif variance > -20:
        interpretation = f"Below benchmark in {metric} - needs improvement"
    else:
        interpretation = f"Significantly below benchmark in {metric} - requires focused development"

    return {
        "metric": metric,
        "player_value": round(player_value, 1),
        "benchmark": benchmark,
        "variance": round(variance, 1),
        "percentile": round_int(percentile),
        "interpretation": interpretation,
    }


def get_benchmarks(position: Optional[str] = None, age_group: Optional[str] = None) -> Dict[str, float]:
    """Position benchmarks overlaid with the age group's values."""
    benchmarks = dict(POSITION_BENCHMARKS.get(position, {}))
    benchmarks.update(AGE_GROUP_BENCHMARKS.get(age_group, {}))
    return benchmarks


def benchmark_summary(summary: Dict, position: Optional[str], age_group: Optional[str]) -> List[Dict]:
    comparisons = []
    for metric, benchmark in get_benchmarks(position, age_group).items():
        key, divisor = METRIC_SOURCES[metric]
        value = (summary.get(key) or 0) / divisor
        comparisons.append(compare_to_benchmark(metric, value, benchmark))
    return comparisons


async def benchmark_player(session: AsyncSession, player_id: int, days: int = 90) -> Dict:
    """
    Compare a player's recent session averages with the benchmarks for their
    position and age group.

    Raises:
        ValueError: If the player does not exist
    """
    player = (await session.execute(select(Player).where(Player.id == player_id))).scalar_one_or_none()
    if not player:
        raise ValueError(f"Player {player_id} not found")
    summary = await performance_service.get_player_summary(session, player_id, days)
    return {
        "player_id": player_id,
        "position": player.position,
        "age_group": player.age_group,
        "sessions": summary["sessions"],
        "comparisons": benchmark_summary(summary, player.position, player.age_group) if summary["sessions"] else [],
    }


# ============================================================================
# Talent identification
# ============================================================================


def _label(skill: str) -> str:
    return SKILL_LABELS.get(skill, skill.replace("_", " ").title())


def categorize_talent(score: float) -> str:
    if score >= 85:
        return "elite"
    if score >= 75:
        return "high_potential"
    if score >= 60:
        return "developing"
    return "emerging"


def projected_level(talent: float, age: int) -> str:
    years_to_maturity = max(0, 23 - age)
    projected = talent + years_to_maturity * 2
    if projected >= 90:
        return "Professional / Elite Level"
    if projected >= 80:
        return "Professional Level"
    if projected >= 70:
        return "Semi-Professional Level"
    if projected >= 60:
        return "Competitive Amateur Level"
    return "Recreational Level"


def estimate_market_value(talent: float, age: int) -> int:
    if age < 20:
        multiplier = 0.8
    elif age < 25:
        multiplier = 1.2
    elif age < 30:
        multiplier = 1.0
    else:
        multiplier = 0.7
    return round_int(talent * 50 * multiplier)


def talent_score(skills: Dict, age: int) -> Dict:
    """
    Talent score from a skill assessment.

    Each category is the mean of its skills and the talent score is the mean of
    the four categories. Potential grows with the years left before 23.
    """
    categories = {
        name: round(sum(skills.get(k) or 0 for k in keys) / len(keys), 1)
        for name, keys in TALENT_CATEGORIES.items()
    }
    current = round(sum(categories.values()) / len(categories), 1)
    growth = min(1.3, 1 + (max(0, 23 - age) / 10) * 0.3)
    potential = round(min(100, current + (100 - current) * growth * 0.7), 1)

    all_skills = {k: skills.get(k) or 0 for keys in TALENT_CATEGORIES.values() for k in keys}
    ranked = sorted(all_skills.items(), key=lambda item: item[1])
    development_areas = [_label(k) for k, v in ranked if v < 60][:3]
    strengths = [_label(k) for k, v in reversed(ranked) if v > 75][:3]

    category = categorize_talent(current)
    return {
        "talent_score": current,
        "potential_score": potential,
        "category": category,
        "category_scores": categories,
        "projected_level": projected_level(current, age),
        "estimated_market_value": estimate_market_value(current, age),
        "strengths": strengths,
        "development_areas": development_areas,
    }


def _age_on(date_of_birth: date, reference_date: date) -> int:
    age = reference_date.year - date_of_birth.year
    if (reference_date.month, reference_date.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


async def get_talent_report(session: AsyncSession, player_id: int) -> Dict:
    """
    Talent score plus summary, recommendations and development timeline.

    Raises:
        ValueError: If the player does not exist or has no skill assessment
    """
    player = (await session.execute(select(Player).where(Player.id == player_id))).scalar_one_or_none()
    if not player:
        raise ValueError(f"Player {player_id} not found")
    latest = await skill_service.get_latest_skill_score(session, player_id)
    if not latest:
        raise ValueError(f"No skill assessment found for player {player_id}")

    age = _age_on(player.date_of_birth, today_utc())
    result = talent_score(latest, age)
    category = result["category"]
    return {
        "player_id": player_id,
        "name": f"{player.first_name} {player.last_name}",
        "age": age,
        **result,
        "summary": CATEGORY_SUMMARIES[category],
        "recommendations": CATEGORY_RECOMMENDATIONS[category],
        "development_timeline": DEVELOPMENT_TIMELINES[category],
        "assessment_date": latest["assessment_date"],
    }
