# Service layer
from .room_service import RoomService
from .game_service import GameService
from .image_service import ImageService
from .cleanup_service import CleanupService
from .websocket_service import WebSocketManager, get_websocket_manager

__all__ = ["RoomService", "GameService", "ImageService", "CleanupService", "WebSocketManager", "get_websocket_manager"]
