"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address, enabled=not IS_TEST_ENV)

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from pickleball.api.routes.rounds import router as rounds_router  # noqa: E402
from pickleball.api.routes.matches import router as matches_router  # noqa: E402
from pickleball.api.routes.players import router as players_router  # noqa: E402

router = APIRouter()
router.include_router(rounds_router)
router.include_router(matches_router)
router.include_router(players_router)
