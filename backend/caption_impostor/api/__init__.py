"""
API routers
"""

from fastapi import APIRouter
from .room_routes import router as room_router
from .game_routes import router as game_router
from .maintenance_routes import router as maintenance_router
from .websocket_routes import router as ws_router

# Main router
api_router = APIRouter()

# Feature routers share the /api prefix applied in main.py
api_router.include_router(room_router, tags=["Rooms"])
api_router.include_router(game_router, tags=["Game"])
api_router.include_router(maintenance_router, tags=["Maintenance"])
api_router.include_router(ws_router, prefix="/ws", tags=["WebSocket"])
