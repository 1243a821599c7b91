"""
Maintenance jobs: admin cleanup, heartbeat sweeps and the in-process scheduler
"""

import asyncio
from datetime import timedelta
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from caption_impostor.core.config import settings
from caption_impostor.core.utils import utc_now
from caption_impostor.models.room import Room, LOBBY, DORMANT, IN_PROGRESS
from caption_impostor.models.player import Player
from caption_impostor.services.room_service import RoomService
from caption_impostor.services.websocket_service import WebSocketManager, get_websocket_manager

class CleanupService:
    """Room and presence housekeeping"""

    def __init__(self, db: Session, websocket_manager: Optional[WebSocketManager] = None):
        self.db = db
        self.ws = websocket_manager or get_websocket_manager()
        self.room_service = RoomService(db, self.ws)

    def _last_activity(self, room: Room):
        times = [t for t in (room.created_at, room.last_heartbeat) if t is not None]
        return max(times) if times else None

    async def cleanup_rooms(self, older_than_hours: int = 24, include_empty_rooms: bool = True) -> dict:
        """Remove rooms idle since the cutoff, and optionally empty lobbies"""
        cutoff = utc_now() - timedelta(hours=older_than_hours)
        stats = {"staleRoomsRemoved": 0, "emptyRoomsRemoved": 0, "errors": 0}

        for room in self.db.query(Room).all():
            room_id = room.id
            last_activity = self._last_activity(room)
            if last_activity is not None and last_activity < cutoff:
                if self.room_service.cascade_delete_room(room_id):
                    stats["staleRoomsRemoved"] += 1
                    await self.ws.notify("room_deleted", room_id)
                else:
                    stats["errors"] += 1
                continue

            if include_empty_rooms and room.status in (LOBBY, DORMANT):
                player_count = self.db.query(Player).filter(Player.room_id == room_id).count()
                if player_count == 0:
                    if self.room_service.cascade_delete_room(room_id):
                        stats["emptyRoomsRemoved"] += 1
                        await self.ws.notify("room_deleted", room_id)
                    else:
                        stats["errors"] += 1

        print(f"🧹 Cleanup: {stats['staleRoomsRemoved']} stale, {stats['emptyRoomsRemoved']} empty, {stats['errors']} errors")
        return stats

    async def sweep_inactive_rooms(self, hours: Optional[float] = None, max_rooms: Optional[int] = None) -> dict:
        """Check rooms without a recent heartbeat; delete the empty ones, refresh the rest"""
        hours = settings.ROOM_INACTIVE_HOURS if hours is None else hours
        max_rooms = settings.MAX_ROOMS_PER_SWEEP if max_rooms is None else max_rooms
        cutoff = utc_now() - timedelta(hours=hours)

        rooms = self.db.query(Room).filter(
            Room.status.in_([LOBBY, IN_PROGRESS]),
            or_(Room.last_heartbeat.is_(None), Room.last_heartbeat < cutoff)
        ).order_by(Room.id).limit(max_rooms).all()

        stats = {"checked": 0, "emptied": 0, "marked_completed": 0, "errors": 0, "skipped": 0}
        for room in rooms:
            room_id = room.id
            stats["checked"] += 1
            try:
                if self.room_service.count_online(room_id) == 0:
                    if self.room_service.cascade_delete_room(room_id):
                        stats["emptied"] += 1
                        await self.ws.notify("room_deleted", room_id)
                    elif self.room_service.mark_completed(room_id):
                        stats["marked_completed"] += 1
                        await self.ws.notify("room_updated", room_id)
                    else:
                        stats["errors"] += 1
                else:
                    room.last_heartbeat = utc_now()
                    self.db.commit()
                    stats["skipped"] += 1
            except SQLAlchemyError as e:
                self.db.rollback()
                stats["errors"] += 1
                print(f"❌ Heartbeat sweep failed for room {room_id}: {e}")

        if stats["checked"]:
            print(f"🧹 Heartbeat sweep: {stats}")
        return stats

    async def sweep_stale_players(self, stale_seconds: Optional[int] = None) -> dict:
        """Mark silent players offline, hand host over and settle emptied rooms"""
        stale_seconds = settings.PLAYER_STALE_SECONDS if stale_seconds is None else stale_seconds
        cutoff = utc_now() - timedelta(seconds=stale_seconds)

        stale = self.db.query(Player).filter(
            Player.is_online.is_(True),
            or_(Player.last_seen.is_(None), Player.last_seen < cutoff)
        ).all()

        stats = {"playersMarkedOffline": 0, "hostsTransferred": 0, "roomsSettled": 0, "errors": 0}
        touched_rooms = set()
        for player in stale:
            player.is_online = False
            stats["playersMarkedOffline"] += 1
            touched_rooms.add(player.room_id)
        if not stale:
            return stats
        self.db.commit()

        for room_id in sorted(touched_rooms):
            room = self.db.query(Room).filter(Room.id == room_id).first()
            if not room:
                continue
            try:
                host = self.db.query(Player).filter(
                    Player.room_id == room_id,
                    Player.user_id == room.host_id
                ).first()
                if host is None or not host.is_online:
                    candidate = self.db.query(Player).filter(
                        Player.room_id == room_id,
                        Player.is_online.is_(True)
                    ).order_by(Player.joined_at, Player.id).first()
                    if candidate:
                        self.room_service._assign_host(room, candidate)
                        stats["hostsTransferred"] += 1
                if self.room_service.settle_if_empty(room):
                    stats["roomsSettled"] += 1
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                stats["errors"] += 1
                print(f"❌ Presence sweep failed for room {room_id}: {e}")
                continue

            await self.ws.notify("players_updated", room_id)
            await self.ws.notify("room_updated", room_id)

        print(f"🧹 Presence sweep: {stats}")
        return stats

    async def sweep_stale_lobbies(self, minutes: Optional[int] = None) -> dict:
        """Close lobbies, dormant ones included, whose heartbeat stopped"""
        minutes = settings.STALE_LOBBY_MINUTES if minutes is None else minutes
        cutoff = utc_now() - timedelta(minutes=minutes)

        room_ids = [rid for (rid,) in self.db.query(Room.id).filter(
            Room.status.in_([LOBBY, DORMANT]),
            or_(Room.last_heartbeat.is_(None), Room.last_heartbeat < cutoff)
        )]

        stats = {"lobbiesClosed": 0, "errors": 0}
        for room_id in room_ids:
            # Completed first so a failed delete still takes the lobby out of listings
            self.room_service.mark_completed(room_id)
            if self.room_service.cascade_delete_room(room_id):
                stats["lobbiesClosed"] += 1
                await self.ws.notify("room_deleted", room_id)
            else:
                stats["errors"] += 1

        if room_ids:
            print(f"🧹 Stale lobby sweep: {stats}")
        return stats

    async def run_all_jobs(self) -> dict:
        """One scheduler tick"""
        return {
            "stalePlayers": await self.sweep_stale_players(),
            "staleLobbies": await self.sweep_stale_lobbies(),
            "inactiveRooms": await self.sweep_inactive_rooms(),
            "oldRooms": await self.cleanup_rooms(settings.CLEANUP_OLDER_THAN_HOURS, include_empty_rooms=False),
        }


async def scheduler_loop(session_factory, interval_seconds: Optional[int] = None):
    """Run every maintenance job forever, one fresh session per tick"""
    interval = settings.SCHEDULER_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
    print(f"🚀 Maintenance scheduler running every {interval}s")
    while True:
        await asyncio.sleep(interval)
        db = session_factory()
        try:
            await CleanupService(db).run_all_jobs()
        except Exception as e:
            # One failed tick must not stop the loop
            db.rollback()
            print(f"❌ Scheduled maintenance failed: {e}")
        finally:
            db.close()
