"""
Room lifecycle service: create, join, leave, host transfer, deletion and presence
"""

import random
from typing import List, Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from caption_impostor.core.config import settings
from caption_impostor.core.errors import Conflict, DataIntegrityError, InvalidRequest, NotAuthorized, NotFound
from caption_impostor.core.utils import generate_room_code, utc_now
from caption_impostor.models.room import Room, LOBBY, DORMANT, COMPLETED
from caption_impostor.models.player import Player
from caption_impostor.models.round_model import Round
from caption_impostor.models.caption import Caption
from caption_impostor.models.vote import Vote
from caption_impostor.services.websocket_service import WebSocketManager, get_websocket_manager

class RoomService:
    """Room lifecycle service"""

    # Alias pool
    ADJECTIVES = [
        "Happy", "Sleepy", "Grumpy", "Sneezy", "Dopey", "Bashful", "Doc", "Brave",
        "Clever", "Daring", "Eager", "Fancy", "Gentle", "Honest", "Jolly", "Kind",
        "Lucky", "Mighty", "Noble", "Polite", "Quick", "Swift", "Tiny", "Wise", "Zany"
    ]

    ANIMALS = [
        "Panda", "Tiger", "Eagle", "Shark", "Wolf", "Bear", "Fox", "Koala", "Lion",
        "Otter", "Parrot", "Rabbit", "Snake", "Turtle", "Whale", "Zebra", "Duck",
        "Crow", "Frog", "Seal", "Owl", "Goat", "Horse", "Mouse", "Llama"
    ]

    MAX_CODE_ATTEMPTS = 20

    def __init__(self, db: Session, websocket_manager: Optional[WebSocketManager] = None,
                 rng: Optional[random.Random] = None):
        self.db = db
        self.ws = websocket_manager or get_websocket_manager()
        self.rng = rng or random

    # ---------- helpers ----------

    def generate_alias(self, existing_aliases=()) -> str:
        """Adjective+animal alias not present in ``existing_aliases``.

        Up to ALIAS_MAX_ATTEMPTS random candidates are tried; after that a
        numeric suffix is appended, counting up until it is unused.
        """
        used = set(existing_aliases)
        alias = None
        for _ in range(settings.ALIAS_MAX_ATTEMPTS):
            alias = f"{self.rng.choice(self.ADJECTIVES)}{self.rng.choice(self.ANIMALS)}"
            if alias not in used:
                return alias

        base = alias or f"{self.ADJECTIVES[0]}{self.ANIMALS[0]}"
        suffix = len(used) + 1
        while f"{base}{suffix}" in used:
            suffix += 1
        return f"{base}{suffix}"

    def _unique_code(self) -> str:
        for _ in range(self.MAX_CODE_ATTEMPTS):
            code = generate_room_code(self.rng)
            if not self.db.query(Room.id).filter(Room.code == code).first():
                return code
        raise DataIntegrityError("Could not allocate a unique room code")

    def get_room(self, room_id: int) -> Room:
        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            raise NotFound("Room not found")
        return room

    def get_room_by_code(self, code: str) -> Room:
        room = self.db.query(Room).filter(Room.code == (code or "").strip().upper()).first()
        if not room:
            raise NotFound("Room not found")
        return room

    def get_active_rooms(self) -> List[Room]:
        """Joinable rooms, newest first"""
        return self.db.query(Room).filter(Room.status == LOBBY).order_by(Room.created_at.desc(), Room.id.desc()).all()

    def get_players(self, room_id: int, include_offline: bool = False) -> List[Player]:
        query = self.db.query(Player).filter(Player.room_id == room_id)
        if not include_offline:
            query = query.filter(Player.is_online.is_(True))
        return query.order_by(Player.joined_at, Player.id).all()

    def count_online(self, room_id: int) -> int:
        return self.db.query(Player).filter(
            Player.room_id == room_id,
            Player.is_online.is_(True)
        ).count()

    def _assign_host(self, room: Room, new_host: Player) -> None:
        """Move the host flag to ``new_host``; caller commits"""
        self.db.query(Player).filter(
            Player.room_id == room.id,
            Player.id != new_host.id,
            Player.is_host.is_(True)
        ).update({"is_host": False}, synchronize_session="fetch")
        new_host.is_host = True
        room.host_id = new_host.user_id
        room.updated_at = utc_now()

    def _next_host_candidate(self, room_id: int, exclude_player_id: int) -> Optional[Player]:
        """Earliest-joined online player other than the one leaving"""
        return self.db.query(Player).filter(
            Player.room_id == room_id,
            Player.is_online.is_(True),
            Player.id != exclude_player_id
        ).order_by(Player.joined_at, Player.id).first()

    def settle_if_empty(self, room: Room) -> Optional[str]:
        """Close a room nobody is online in; caller commits.

        A lobby goes dormant, a started game is marked completed. Returns the
        new status, or None when players remain online.
        """
        if self.count_online(room.id) > 0:
            return None
        room.status = DORMANT if room.status in (LOBBY, DORMANT) else COMPLETED
        room.completed_at = utc_now()
        return room.status

    def revive_for(self, room: Room, player: Player) -> bool:
        """Reopen a dormant lobby for an online ``player``; caller commits.

        When the recorded host is not online, ``player`` takes over so the
        room always has an active host. Returns True when anything changed.
        """
        changed = False
        if room.status == DORMANT:
            room.status = LOBBY
            room.completed_at = None
            changed = True

        host = self.db.query(Player).filter(
            Player.room_id == room.id,
            Player.user_id == room.host_id
        ).first()
        if host is None or not host.is_online:
            self._assign_host(room, player)
            print(f"Player {player.id} took over as host of room {room.id}")
            changed = True
        return changed

    # ---------- create / join ----------

    async def create_room(self, user_id: str, player_name: str, room_name: str) -> Tuple[Room, Player]:
        """Create a room and seat its host in one transaction"""
        if not user_id:
            raise InvalidRequest("User ID is required")
        if not player_name:
            raise InvalidRequest("Player name is required")
        if not room_name:
            raise InvalidRequest("Room name is required")

        now = utc_now()
        try:
            room = Room(
                code=self._unique_code(),
                name=room_name,
                host_id=user_id,
                status=LOBBY,
                current_round=0,
                created_at=now,
                last_heartbeat=now,
            )
            self.db.add(room)
            self.db.flush()

            player = Player(
                room_id=room.id,
                user_id=user_id,
                display_name=player_name,
                game_alias=self.generate_alias(),
                is_host=True,
                is_online=True,
                joined_at=now,
                last_seen=now,
            )
            self.db.add(player)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            print(f"❌ Failed to create room: {e}")
            raise DataIntegrityError(f"Failed to create room: {e}")

        self.db.refresh(room)
        self.db.refresh(player)
        print(f"✅ Room {room.id} ({room.code}) created by {user_id} as {player.game_alias}")
        return room, player

    async def join_room(self, code: str, user_id: str) -> Tuple[Room, Player, bool]:
        """Join by code; an existing player row for the user is a reconnect"""
        if not user_id:
            raise InvalidRequest("User ID is required")
        if not code:
            raise InvalidRequest("Room code is required")

        room = self.get_room_by_code(code)
        room_id = room.id

        last_error = None
        for attempt in range(settings.ALIAS_INSERT_RETRIES):
            existing = self.db.query(Player).filter(
                Player.room_id == room_id,
                Player.user_id == user_id
            ).first()

            if existing:
                existing.is_online = True
                existing.last_seen = utc_now()
                revived = self.revive_for(room, existing)
                room.last_heartbeat = utc_now()
                self.db.commit()
                self.db.refresh(existing)
                self.db.refresh(room)
                print(f"Player {existing.id} reconnected to room {room_id}")
                await self.ws.notify("players_updated", room_id)
                if revived:
                    await self.ws.notify("room_updated", room_id)
                return room, existing, True

            if room.status not in (LOBBY, DORMANT):
                raise Conflict("Game already in progress")

            aliases = [alias for (alias,) in self.db.query(Player.game_alias).filter(Player.room_id == room_id)]
            now = utc_now()
            player = Player(
                room_id=room_id,
                user_id=user_id,
                game_alias=self.generate_alias(aliases),
                is_host=room.host_id == user_id,
                is_online=True,
                joined_at=now,
                last_seen=now,
            )
            self.db.add(player)
            try:
                self.db.flush()
                # Reviving an empty lobby: the joiner takes over as host
                self.revive_for(room, player)
                room.last_heartbeat = now
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                last_error = e
                print(f"⚠️ Alias or seat conflict joining room {room_id}, retrying ({attempt + 1}/{settings.ALIAS_INSERT_RETRIES})")
                room = self.get_room(room_id)
                continue

            self.db.refresh(player)
            self.db.refresh(room)
            print(f"✅ Player {player.id} joined room {room_id} as {player.game_alias}")
            await self.ws.notify("players_updated", room_id)
            return room, player, False

        raise DataIntegrityError(f"Failed to create player with unique alias: {last_error}")

    # ---------- leave / host transfer ----------

    async def leave_room(self, player_id: int, user_id: str, force_delete: bool = False) -> dict:
        """Leave a room; best effort, never fails the caller for cleanup problems"""
        if not player_id or not user_id:
            raise InvalidRequest("Missing playerId or userId")

        player = self.db.query(Player).filter(
            Player.id == player_id,
            Player.user_id == user_id
        ).first()
        if not player:
            return {"success": True, "message": "Player not found or already removed"}

        room = self.db.query(Room).filter(Room.id == player.room_id).first()
        room_id = player.room_id
        result = {"success": True}

        # Hand host over before going offline; a failed handover does not stop the leave
        if player.is_host and room:
            try:
                candidate = self._next_host_candidate(room_id, player.id)
                if candidate:
                    player.is_host = False
                    self._assign_host(room, candidate)
                    self.db.commit()
                    result["newHostId"] = candidate.id
                    print(f"Host of room {room_id} passed to player {candidate.id}")
            except SQLAlchemyError as e:
                self.db.rollback()
                print(f"⚠️ Host transfer failed while leaving room {room_id}: {e}")
                result["warning"] = "Host transfer failed"

        # Offline first so a failed delete still frees the seat
        player.is_online = False
        player.last_seen = utc_now()
        self.db.commit()

        if force_delete:
            try:
                self.db.query(Caption).filter(Caption.player_id == player_id).delete(synchronize_session=False)
                self.db.query(Vote).filter(
                    or_(Vote.voter_id == player_id, Vote.voted_for_id == player_id)
                ).delete(synchronize_session=False)
                self.db.query(Player).filter(Player.id == player_id).delete(synchronize_session="fetch")
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                print(f"⚠️ Could not delete player {player_id}, left offline: {e}")
                result["warning"] = "Player left offline, seat not deleted"

        if room:
            new_status = self.settle_if_empty(room)
            if new_status:
                self.db.commit()
                result["roomStatus"] = new_status
                print(f"Room {room_id} is empty, marked {new_status}")
                await self.ws.notify("room_updated", room_id)

        await self.ws.notify("players_updated", room_id)
        return result

    async def transfer_host(self, room_id: int, current_host_id: str, new_host_player_id: int) -> Player:
        """Transfer host to an online player; all writes commit together"""
        if not room_id:
            raise InvalidRequest("Room ID is required")
        if not current_host_id:
            raise InvalidRequest("Current host ID is required")
        if not new_host_player_id:
            raise InvalidRequest("New host ID is required")

        room = self.get_room(room_id)

        if room.host_id != current_host_id:
            # host_id may lag behind the player flag
            flagged = self.db.query(Player).filter(
                Player.room_id == room_id,
                Player.user_id == current_host_id,
                Player.is_host.is_(True)
            ).first()
            if not flagged:
                raise NotAuthorized("Only the current host can transfer host status")

        new_host = self.db.query(Player).filter(
            Player.id == new_host_player_id,
            Player.room_id == room_id,
            Player.is_online.is_(True)
        ).first()
        if not new_host:
            raise InvalidRequest("The selected player is not in this room or not online")

        try:
            self._assign_host(room, new_host)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise DataIntegrityError(f"Failed to transfer host: {e}")

        self.db.refresh(new_host)
        print(f"✅ Host of room {room_id} transferred to player {new_host.id}")
        await self.ws.notify("players_updated", room_id)
        await self.ws.notify("room_updated", room_id)
        return new_host

    # ---------- deletion ----------

    def cascade_delete_room(self, room_id: int) -> bool:
        """Delete a room with its captions, votes, rounds and players"""
        try:
            round_ids = [rid for (rid,) in self.db.query(Round.id).filter(Round.room_id == room_id)]
            if round_ids:
                self.db.query(Caption).filter(Caption.round_id.in_(round_ids)).delete(synchronize_session=False)
            self.db.query(Vote).filter(Vote.room_id == room_id).delete(synchronize_session=False)
            self.db.query(Round).filter(Round.room_id == room_id).delete(synchronize_session=False)
            self.db.query(Player).filter(Player.room_id == room_id).delete(synchronize_session=False)
            self.db.query(Room).filter(Room.id == room_id).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            print(f"❌ Failed to delete room {room_id}: {e}")
            return False
        print(f"🧹 Room {room_id} deleted with all its data")
        return True

    def mark_completed(self, room_id: int) -> bool:
        try:
            self.db.query(Room).filter(Room.id == room_id).update(
                {"status": COMPLETED, "completed_at": utc_now()}, synchronize_session="fetch"
            )
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            print(f"❌ Failed to mark room {room_id} completed: {e}")
            return False

    async def delete_room(self, room_id: int, host_id: Optional[str] = None) -> dict:
        """Delete an empty room whose host has not changed"""
        if not room_id:
            raise InvalidRequest("Missing required field: roomId")

        room = self.db.query(Room).filter(Room.id == room_id).first()
        if not room:
            return {"success": True, "message": "Room already deleted"}

        if host_id and room.host_id != host_id:
            raise NotAuthorized("Host has changed, deletion cancelled")

        if self.count_online(room_id) > 0:
            raise Conflict("Room is not empty, deletion cancelled")

        if self.cascade_delete_room(room_id):
            await self.ws.notify("room_deleted", room_id)
            return {"success": True, "message": "Room successfully deleted"}

        if self.mark_completed(room_id):
            await self.ws.notify("room_updated", room_id)
            return {"success": True, "message": "Room marked as completed (deletion failed)"}
        raise DataIntegrityError("Failed to delete or mark room as completed")

    # ---------- presence ----------

    async def player_heartbeat(self, player_id: int, user_id: str) -> Player:
        if not player_id:
            raise InvalidRequest("Player ID is required")
        if not user_id:
            raise InvalidRequest("User ID is required")

        player = self.db.query(Player).filter(
            Player.id == player_id,
            Player.user_id == user_id
        ).first()
        if not player:
            raise NotFound("Player not found or does not belong to user")

        now = utc_now()
        came_back = not player.is_online
        player.is_online = True
        player.last_seen = now
        room = self.db.query(Room).filter(Room.id == player.room_id).first()
        revived = False
        if room:
            room.last_heartbeat = now
            if came_back or room.status == DORMANT:
                revived = self.revive_for(room, player)
        self.db.commit()
        self.db.refresh(player)

        if came_back:
            await self.ws.notify("players_updated", player.room_id)
        if revived:
            await self.ws.notify("room_updated", player.room_id)
        return player

    async def room_heartbeat(self, room_id: int) -> Room:
        if not room_id:
            raise InvalidRequest("Room ID is required")
        room = self.get_room(room_id)
        room.last_heartbeat = utc_now()
        self.db.commit()
        self.db.refresh(room)
        return room
