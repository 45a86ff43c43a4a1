"""Read-only catalog endpoints: perks, events, endings."""

from fastapi import APIRouter, HTTPException

from backend.game import build_engine
from hengdian.models import STAGE_ORDER

router = APIRouter()


@router.get("/perks")
async def list_perks(category: str | None = None):
    """List perks, optionally filtered by category (initial/unlocked)."""
    perks = build_engine().perks.all()
    if category:
        perks = [p for p in perks if p.category == category]
    return [p.model_dump() for p in perks]


@router.get("/events")
async def list_events(stage: str | None = None):
    """List events, optionally for one stage."""
    engine = build_engine()
    if stage is None:
        return [e.model_dump() for e in engine.events.all()]
    if stage not in STAGE_ORDER:
        raise HTTPException(400, f"Unknown stage: {stage}")
    return [e.model_dump() for e in engine.events.events_for_stage(stage)]


@router.get("/endings")
async def list_endings():
    """List all endings."""
    return [e.model_dump() for e in build_engine().endings.all()]
