"""
WebSocket change feed routes
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from sqlalchemy.orm import Session
from caption_impostor.core.database import get_db
from caption_impostor.core.errors import GameError
from caption_impostor.services.game_service import GameService
from caption_impostor.services.websocket_service import get_websocket_manager
import json

router = APIRouter()

@router.websocket("/room/{room_id}")
async def websocket_room_endpoint(
    websocket: WebSocket,
    room_id: int,
    db: Session = Depends(get_db)
):
    """Subscribe to one room's change events"""
    manager = get_websocket_manager()
    await manager.connect(websocket, room_id)

    try:
        await manager.send_personal_message({
            "type": "connected",
            "room_id": room_id,
        }, websocket)

        while True:
            data = await websocket.receive_text()
            try:
                message_data = json.loads(data)
            except json.JSONDecodeError:
                print(f"Invalid JSON from room {room_id} subscriber: {data}")
                continue

            message_type = message_data.get("type") if isinstance(message_data, dict) else None
            if message_type == "ping":
                await manager.send_personal_message({
                    "type": "pong",
                    "timestamp": message_data.get("timestamp")
                }, websocket)

            elif message_type == "get_room_state":
                try:
                    db.expire_all()
                    state = GameService(db, manager).get_room_state(room_id, message_data.get("userId"))
                    await manager.send_personal_message({
                        "type": "room_state",
                        "room_id": room_id,
                        "state": state.model_dump(),
                    }, websocket)
                except GameError as e:
                    await manager.send_personal_message({
                        "type": "error",
                        "room_id": room_id,
                        "error": str(e),
                    }, websocket)

    except WebSocketDisconnect:
        manager.disconnect(websocket, room_id)
    except Exception as e:
        print(f"WebSocket error on room {room_id}: {e}")
        manager.disconnect(websocket, room_id)
