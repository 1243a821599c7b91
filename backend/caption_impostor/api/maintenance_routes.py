"""
Maintenance API routes: cleanup, heartbeat sweep, scheduler and image catalog
"""

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
from caption_impostor.core.config import settings
from caption_impostor.core.database import get_db
from caption_impostor.core.errors import NotAuthorized, error_response
from caption_impostor.services.cleanup_service import CleanupService
from caption_impostor.services.image_service import ImageService
from caption_impostor.schemas.room_schemas import CleanupRequest

router = APIRouter()

@router.post("/cleanup-room")
async def cleanup_rooms(
    request: CleanupRequest,
    x_api_key: Optional[str] = Header(default=None),
    db: Session = Depends(get_db)
):
    """Remove old rooms and, optionally, empty lobbies"""
    try:
        if settings.ADMIN_API_KEY and x_api_key != settings.ADMIN_API_KEY:
            raise NotAuthorized("Invalid admin key")
        stats = await CleanupService(db).cleanup_rooms(request.older_than_hours, request.include_empty_rooms)
        return {"success": True, "stats": stats}
    except Exception as e:
        return error_response(e)

@router.get("/room-heartbeat")
async def sweep_room_heartbeats(
    hours: Optional[float] = None,
    maxRooms: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Check rooms whose heartbeat stopped"""
    try:
        stats = await CleanupService(db).sweep_inactive_rooms(hours, maxRooms)
        return {"success": True, **stats}
    except Exception as e:
        return error_response(e)

@router.get("/scheduler")
async def run_scheduler(x_api_key: Optional[str] = Header(default=None), db: Session = Depends(get_db)):
    """Run every maintenance job once"""
    if not settings.SCHEDULER_API_KEY or x_api_key != settings.SCHEDULER_API_KEY:
        return JSONResponse(status_code=401, content={"success": False, "error": "Unauthorized"})
    try:
        results = await CleanupService(db).run_all_jobs()
        return {"success": True, "results": results}
    except Exception as e:
        return error_response(e)

@router.post("/populate-images")
async def populate_images(db: Session = Depends(get_db)):
    """Seed the sample image catalog"""
    try:
        return {"success": True, **ImageService(db).populate_sample_images()}
    except Exception as e:
        return error_response(e)
