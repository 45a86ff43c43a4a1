"""Local play analytics endpoints."""

from fastapi import APIRouter
from fastapi.responses import Response

from backend import storage

router = APIRouter()


@router.get("/stats")
async def get_stats():
    """Aggregated stats over recent sessions."""
    return storage.get_stats()


@router.get("/stats/export")
async def export_stats():
    """Download sessions and stats as a JSON file."""
    return Response(
        content=storage.export_data(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="hengdian-analytics.json"'},
    )


@router.delete("/stats")
async def clear_stats():
    """Delete all recorded sessions."""
    storage.clear_data()
    return {"ok": True}
