"""
WebSocket change feed
"""

from fastapi import WebSocket
from typing import Dict, List
import json

class WebSocketManager:
    """Per-room WebSocket subscribers; services push a change event after every write"""

    def __init__(self):
        self.room_connections: Dict[int, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, room_id: int):
        """Accept a subscriber for a room"""
        await websocket.accept()
        if room_id not in self.room_connections:
            self.room_connections[room_id] = []

        # Avoid duplicate registrations
        if websocket not in self.room_connections[room_id]:
            self.room_connections[room_id].append(websocket)
            print(f"New subscriber on room {room_id}, connections: {len(self.room_connections[room_id])}")

    def disconnect(self, websocket: WebSocket, room_id: int):
        """Drop a subscriber"""
        if room_id in self.room_connections:
            if websocket in self.room_connections[room_id]:
                self.room_connections[room_id].remove(websocket)
                print(f"Subscriber left room {room_id}, connections: {len(self.room_connections[room_id])}")
            if not self.room_connections[room_id]:
                del self.room_connections[room_id]

    def connection_count(self, room_id: int) -> int:
        return len(self.room_connections.get(room_id, []))

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send to a single subscriber"""
        try:
            await websocket.send_text(json.dumps(message, ensure_ascii=False))
        except Exception as e:
            print(f"Failed to send personal message: {e}")

    async def broadcast_to_room(self, message: dict, room_id: int):
        """Send an event to every subscriber of a room"""
        connections = list(self.room_connections.get(room_id, []))
        if not connections:
            return

        print(f"📡 Broadcasting {message.get('type', 'unknown')} to {len(connections)} subscribers of room {room_id}")

        message_text = json.dumps(message, ensure_ascii=False, default=str)
        failed_connections = []

        for connection in connections:
            try:
                await connection.send_text(message_text)
            except Exception as e:
                print(f"Broadcast failed: {e}")
                failed_connections.append(connection)

        # Drop dead connections
        for failed_connection in failed_connections:
            self.disconnect(failed_connection, room_id)

        if failed_connections:
            print(f"Removed {len(failed_connections)} dead connections from room {room_id}")

    async def notify(self, event_type: str, room_id: int, **payload):
        """Broadcast a change event tagged with its room"""
        await self.broadcast_to_room({"type": event_type, "room_id": room_id, **payload}, room_id)


# Shared manager used by routes and services
_manager = None

def get_websocket_manager() -> WebSocketManager:
    """Return the process-wide WebSocket manager"""
    global _manager
    if _manager is None:
        _manager = WebSocketManager()
    return _manager
