"""
Numeric helpers shared by the scoring services.
"""

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Round with halves going up (72.5 -> 73), unlike the built-in round()
    which rounds halves to the nearest even number.
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def round_int(value: float) -> int:
    """round_half_up to a whole number."""
    return int(round_half_up(value))
