"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter, constants) lives here; every sub-router
imports what it needs from this package.
"""

import os

from fastapi import APIRouter, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
if IS_TEST_ENV:
    limiter = Limiter(key_func=get_remote_address)

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()
else:
    limiter = Limiter(key_func=get_remote_address)

# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------
INVALID_CREDENTIALS_RESPONSE = HTTPException(
    status_code=401, detail="Email or password is incorrect"
)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from academy.api.routes.auth import router as auth_router
from academy.api.routes.users import router as users_router
from academy.api.routes.admin import router as admin_router
from academy.api.routes.players import router as players_router
from academy.api.routes.teams import router as teams_router
from academy.api.routes.matches import router as matches_router
from academy.api.routes.performance import router as performance_router
from academy.api.routes.skills import router as skills_router
from academy.api.routes.formations import router as formations_router
from academy.api.routes.gps import router as gps_router
from academy.api.routes.playermaker import router as playermaker_router
from academy.api.routes.ai import router as ai_router
from academy.api.routes.courses import router as courses_router
from academy.api.routes.gamification import router as gamification_router
from academy.api.routes.notifications import router as notifications_router
from academy.api.routes.whatsapp import router as whatsapp_router
from academy.api.routes.parents import router as parents_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(admin_router)
router.include_router(players_router)
router.include_router(teams_router)
router.include_router(matches_router)
router.include_router(performance_router)
router.include_router(skills_router)
router.include_router(formations_router)
router.include_router(gps_router)
router.include_router(playermaker_router)
router.include_router(ai_router)
router.include_router(courses_router)
router.include_router(gamification_router)
router.include_router(notifications_router)
router.include_router(whatsapp_router)
router.include_router(parents_router)
