"""FastAPI API endpoints under /api.

Endpoint groups: health + settings, content catalogs (perks, events,
endings), runs, and stats. Everything a run does (perk choice, attribute
allocation, advancing, choices, export, replay) is nested under
/api/runs/{slug}/.
"""

from fastapi import APIRouter

from .content import router as content_router
from .runs import router as runs_router
from .settings import router as settings_router
from .stats import router as stats_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(content_router)
router.include_router(runs_router)
router.include_router(stats_router)
