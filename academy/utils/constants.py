"""
Constants shared across the academy services.
"""

# Score ranges
SCORE_MIN = 0
SCORE_MAX = 100

# Formation coordinates are stored as pitch percentages within these bounds
COORD_MIN = 5.0
COORD_MAX = 95.0

# Tactical board canvas (horizontal pitch, x goal-to-goal)
BOARD_WIDTH = 1200
BOARD_HEIGHT = 800

# Login streak milestones (days)
STREAK_MILESTONES = [3, 7, 14, 30, 60, 90, 180, 365]

# Quiz pass mark (percent)
QUIZ_PASS_MARK = 70

# Points needed per player level
POINTS_PER_LEVEL = 500

# Default WhatsApp country code (Saudi Arabia)
DEFAULT_COUNTRY_CODE = "+966"

# Earth radius in metres for Haversine distance
EARTH_RADIUS_M = 6371e3
