"""
Room API routes: lifecycle, presence and queries
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from caption_impostor.core.database import get_db
from caption_impostor.core.errors import error_response
from caption_impostor.core.utils import format_timestamp_with_timezone
from caption_impostor.services.room_service import RoomService
from caption_impostor.services.game_service import GameService
from caption_impostor.schemas.room_schemas import (
    CreateRoomRequest, JoinRoomRequest, LeaveRoomRequest, TransferHostRequest, DeleteRoomRequest,
    PlayerHeartbeatRequest, RoomHeartbeatRequest, RoomInfo, PlayerInfo
)

router = APIRouter()

@router.post("/create-room")
async def create_room(request: CreateRoomRequest, db: Session = Depends(get_db)):
    """Create a room; the creator becomes its host"""
    try:
        room, player = await RoomService(db).create_room(request.user_id, request.player_name, request.room_name)
        return {
            "success": True,
            "room": RoomInfo.model_validate(room).model_dump(),
            "player": PlayerInfo.model_validate(player).model_dump(),
        }
    except Exception as e:
        return error_response(e)

@router.post("/join-room")
async def join_room(request: JoinRoomRequest, db: Session = Depends(get_db)):
    """Join a room by its code"""
    try:
        room, player, reconnected = await RoomService(db).join_room(request.code, request.user_id)
        return {
            "success": True,
            "room": RoomInfo.model_validate(room).model_dump(),
            "player": PlayerInfo.model_validate(player).model_dump(),
            "reconnected": reconnected,
        }
    except Exception as e:
        return error_response(e)

@router.post("/leave-room")
async def leave_room(request: LeaveRoomRequest, db: Session = Depends(get_db)):
    """Leave a room. Always succeeds so clients can navigate away"""
    try:
        return await RoomService(db).leave_room(request.player_id, request.user_id, request.force_delete)
    except Exception as e:
        db.rollback()
        print(f"⚠️ Leave room completed with errors: {e}")
        return {
            "success": True,
            "warning": "Leave completed with errors",
            "errorDetails": str(e),
        }

@router.post("/transfer-host")
async def transfer_host(request: TransferHostRequest, db: Session = Depends(get_db)):
    try:
        new_host = await RoomService(db).transfer_host(request.room_id, request.current_host_id, request.new_host_id)
        return {"success": True, "newHostId": new_host.id, "newHostUserId": new_host.user_id}
    except Exception as e:
        return error_response(e)

@router.post("/delete-room")
async def delete_room(request: DeleteRoomRequest, db: Session = Depends(get_db)):
    try:
        return await RoomService(db).delete_room(request.room_id, request.host_id)
    except Exception as e:
        return error_response(e)

@router.post("/player-heartbeat")
async def player_heartbeat(request: PlayerHeartbeatRequest, db: Session = Depends(get_db)):
    try:
        player = await RoomService(db).player_heartbeat(request.player_id, request.user_id)
        return {"success": True, "player": PlayerInfo.model_validate(player).model_dump()}
    except Exception as e:
        return error_response(e)

@router.post("/room-heartbeat")
async def room_heartbeat(request: RoomHeartbeatRequest, db: Session = Depends(get_db)):
    try:
        room = await RoomService(db).room_heartbeat(request.room_id)
        return {"success": True, "roomId": room.id, "lastHeartbeat": format_timestamp_with_timezone(room.last_heartbeat)}
    except Exception as e:
        return error_response(e)

@router.get("/rooms")
async def list_rooms(db: Session = Depends(get_db)):
    """Joinable rooms, newest first"""
    rooms = RoomService(db).get_active_rooms()
    return {"success": True, "rooms": [RoomInfo.model_validate(r).model_dump() for r in rooms]}

@router.get("/rooms/code/{code}")
async def get_room_by_code(code: str, db: Session = Depends(get_db)):
    try:
        room = RoomService(db).get_room_by_code(code)
        return {"success": True, "room": RoomInfo.model_validate(room).model_dump()}
    except Exception as e:
        return error_response(e)

@router.get("/rooms/{room_id}/players")
async def get_room_players(room_id: int, includeOffline: bool = False, db: Session = Depends(get_db)):
    try:
        service = RoomService(db)
        service.get_room(room_id)
        players = service.get_players(room_id, include_offline=includeOffline)
        return {"success": True, "players": [PlayerInfo.model_validate(p).model_dump() for p in players]}
    except Exception as e:
        return error_response(e)

@router.get("/rooms/{room_id}/state")
async def get_room_state(room_id: int, userId: str = "", db: Session = Depends(get_db)):
    """Room snapshot with the server-resolved phase"""
    try:
        state = GameService(db).get_room_state(room_id, userId)
        return {"success": True, **state.model_dump()}
    except Exception as e:
        return error_response(e)
