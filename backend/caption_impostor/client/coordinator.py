"""
Client-side game-state coordinator.

Mirrors one room from the backend: the room row, its players, the current
round and the server-resolved phase. State is reconciled from change-feed
events (``subscribe`` feeding ``apply_event``) and from backup polling
(``poll_forever``), both of which end in ``refresh``. Polling also keeps the
player and room heartbeats going so presence sweeps leave an active client
alone.

Actions never raise for backend or network failures. They record a
human-readable message in ``error`` and return None, which UIs show as a
toast.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional
import httpx
from httpx_ws import HTTPXWSException, aconnect_ws
from caption_impostor.core.config import settings

ROUND_MISSING_ERROR = "Round data is missing, returning to the lobby"
ROOM_DELETED_ERROR = "The room was closed"


class GameCoordinator:
    """Room state and player actions for one user"""

    def __init__(self, user_id: str, base_url: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None, poll_interval: Optional[float] = None,
                 clock=time.monotonic):
        self.user_id = user_id
        self.client = client or httpx.AsyncClient(
            base_url=base_url or f"http://localhost:{settings.PORT}/api",
            timeout=settings.CLIENT_REQUEST_TIMEOUT,
        )
        self.poll_interval = settings.CLIENT_POLL_INTERVAL if poll_interval is None else poll_interval
        self.clock = clock

        self.room: Optional[Dict[str, Any]] = None
        self.players: List[Dict[str, Any]] = []
        self.current_round: Optional[Dict[str, Any]] = None
        self.phase: str = "lobby"
        self.player_id: Optional[int] = None
        self.is_host: bool = False
        self.is_impostor: bool = False
        self.error: Optional[str] = None

        self._voted_rounds = set()
        self._last_host_action: Dict[str, float] = {}
        self._last_player_heartbeat: Optional[float] = None
        self._last_room_heartbeat: Optional[float] = None

    @property
    def room_id(self) -> Optional[int]:
        return self.room["id"] if self.room else None

    async def close(self):
        await self.client.aclose()

    # ---------- transport ----------

    async def _request(self, method: str, path: str, **kwargs) -> Optional[dict]:
        """Send a request; failures land in ``error`` and return None"""
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            self.error = f"Network error: {e}"
            print(f"❌ {method} {path} failed: {e}")
            return None

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error or body.get("success") is False:
            self.error = body.get("error") or f"Request failed with status {response.status_code}"
            return None

        self.error = None
        return body

    def _clear_room(self):
        self.room = None
        self.players = []
        self.current_round = None
        self.phase = "lobby"
        self.player_id = None
        self.is_host = False
        self.is_impostor = False
        self._voted_rounds.clear()
        self._last_host_action.clear()
        self._last_player_heartbeat = None
        self._last_room_heartbeat = None

    # ---------- room lifecycle ----------

    async def create_room(self, player_name: str, room_name: str) -> Optional[dict]:
        body = await self._request("POST", "/create-room", json={
            "userId": self.user_id, "playerName": player_name, "roomName": room_name,
        })
        if body is None:
            return None
        self.room = body["room"]
        self.player_id = body["player"]["id"]
        await self.refresh()
        return self.room

    async def join_room(self, code: str) -> Optional[dict]:
        body = await self._request("POST", "/join-room", json={"userId": self.user_id, "code": code})
        if body is None:
            return None
        self.room = body["room"]
        self.player_id = body["player"]["id"]
        await self.refresh()
        return self.room

    async def leave_room(self, force_delete: bool = False) -> None:
        """Leave best effort; local state is cleared whatever the backend says"""
        if self.player_id is not None:
            body = await self._request("POST", "/leave-room", json={
                "playerId": self.player_id, "userId": self.user_id, "forceDelete": force_delete,
            })
            if body and body.get("warning"):
                print(f"⚠️ Leave room: {body['warning']}")
        self._clear_room()

    async def send_heartbeat(self) -> bool:
        if self.player_id is None:
            return False
        body = await self._request("POST", "/player-heartbeat", json={
            "playerId": self.player_id, "userId": self.user_id,
        })
        if body is None:
            return False
        self._last_player_heartbeat = self.clock()
        return True

    async def send_room_heartbeat(self) -> bool:
        if not self.room:
            return False
        body = await self._request("POST", "/room-heartbeat", json={"roomId": self.room_id})
        if body is None:
            return False
        self._last_room_heartbeat = self.clock()
        return True

    async def heartbeat_if_due(self) -> None:
        """Player heartbeat every 30s and room heartbeat every 60s by default"""
        now = self.clock()
        last = self._last_player_heartbeat
        if last is None or now - last >= settings.CLIENT_PLAYER_HEARTBEAT_SECONDS:
            await self.send_heartbeat()
        last = self._last_room_heartbeat
        if last is None or now - last >= settings.CLIENT_ROOM_HEARTBEAT_SECONDS:
            await self.send_room_heartbeat()

    # ---------- game actions ----------

    async def start_game(self) -> Optional[dict]:
        if not self.room:
            self.error = "Not in a room"
            return None
        body = await self._request("POST", "/start-game", json={"roomId": self.room_id, "userId": self.user_id})
        if body is None:
            return None
        self._voted_rounds.clear()
        await self.refresh()
        return body["round"]

    async def submit_caption(self, caption_text: str) -> Optional[dict]:
        if not self.current_round or self.player_id is None:
            self.error = "No active round"
            return None
        body = await self._request("POST", "/caption-submit", json={
            "roundId": self.current_round["id"],
            "playerId": self.player_id,
            "userId": self.user_id,
            "captionText": caption_text,
        })
        return body["data"] if body else None

    async def submit_vote(self, voted_for_id: int) -> Optional[dict]:
        if not self.current_round or self.player_id is None:
            self.error = "No active round"
            return None
        round_id = self.current_round["id"]
        if round_id in self._voted_rounds:
            self.error = "You already voted this round"
            return None

        body = await self._request("POST", "/vote-submit", json={
            "roomId": self.room_id,
            "userId": self.user_id,
            "voterId": self.player_id,
            "votedForId": voted_for_id,
            "roundId": round_id,
        })
        if body is None:
            return None
        self._voted_rounds.add(round_id)
        return body["vote"]

    async def _host_action(self, action: str) -> Optional[dict]:
        now = self.clock()
        last = self._last_host_action.get(action)
        if last is not None and now - last < settings.HOST_ACTION_COOLDOWN:
            self.error = "Please wait before trying again"
            return None
        if not self.room:
            self.error = "Not in a room"
            return None

        self._last_host_action[action] = now
        body = await self._request("POST", "/round-meta", json={
            "roomId": self.room_id,
            "userId": self.user_id,
            "action": action,
            "roundId": self.current_round["id"] if self.current_round else None,
        })
        if body is None:
            return None
        await self.refresh()
        return body

    async def skip_timer(self) -> Optional[dict]:
        return await self._host_action("skip_timer")

    async def skip_voting(self) -> Optional[dict]:
        return await self._host_action("skip_voting")

    async def next_round(self) -> Optional[dict]:
        body = await self._request("POST", "/next-round", json={"roomId": self.room_id, "userId": self.user_id})
        if body is None:
            return None
        await self.refresh()
        return body

    async def return_to_lobby(self) -> Optional[dict]:
        body = await self._request("POST", "/return-to-lobby", json={"roomId": self.room_id, "userId": self.user_id})
        if body is None:
            return None
        self._voted_rounds.clear()
        await self.refresh()
        return body["room"]

    async def get_round_results(self) -> Optional[list]:
        if not self.current_round:
            return None
        body = await self._request("GET", "/round-results", params={"roundId": self.current_round["id"]})
        return body["results"] if body else None

    async def get_final_results(self) -> Optional[dict]:
        if not self.room:
            return None
        return await self._request("GET", "/final-results", params={"roomId": self.room_id})

    # ---------- reconciliation ----------

    async def refresh(self) -> bool:
        """Pull the room snapshot and adopt the server's phase"""
        if not self.room:
            return False
        room_id = self.room_id
        try:
            response = await self.client.get(f"/rooms/{room_id}/state", params={"userId": self.user_id})
        except httpx.HTTPError as e:
            self.error = f"Network error: {e}"
            return False

        if response.status_code == 404:
            self._clear_room()
            self.error = ROOM_DELETED_ERROR
            return False
        if response.is_error:
            self.error = f"Failed to refresh room ({response.status_code})"
            return False

        state = response.json()
        self.room = state["room"]
        self.players = state["players"]
        self.current_round = state["current_round"]
        self.is_host = self.room["host_id"] == self.user_id
        self.is_impostor = state["is_impostor"]

        if state["round_missing"]:
            self.phase = "lobby"
            self.current_round = None
            self.error = ROUND_MISSING_ERROR
        else:
            self.phase = state["phase"]
        return True

    async def apply_event(self, message: dict) -> None:
        """Reconcile one change-feed event"""
        if not self.room or message.get("room_id") != self.room_id:
            return
        event_type = message.get("type")
        if event_type == "room_deleted":
            self._clear_room()
            self.error = ROOM_DELETED_ERROR
            return
        if event_type in ("pong", "connected"):
            return
        await self.refresh()

    async def poll_once(self) -> bool:
        """One polling tick: heartbeats when due, then a snapshot refresh"""
        if not self.room:
            return False
        await self.heartbeat_if_due()
        return await self.refresh()

    async def poll_forever(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Backup polling until ``stop_event`` is set or the room is gone"""
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set() and self.room:
            await self.poll_once()
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def subscribe(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Follow the room's change feed until ``stop_event`` is set or the room is gone"""
        if not self.room:
            return
        stop_event = stop_event or asyncio.Event()
        room_id = self.room_id
        try:
            async with aconnect_ws(f"/ws/room/{room_id}", self.client) as ws:
                print(f"📡 Subscribed to room {room_id}")
                stopped = asyncio.ensure_future(stop_event.wait())
                try:
                    while not stop_event.is_set() and self.room_id == room_id:
                        receive = asyncio.ensure_future(ws.receive_json())
                        done, _ = await asyncio.wait({receive, stopped}, return_when=asyncio.FIRST_COMPLETED)
                        if receive not in done:
                            receive.cancel()
                            break
                        await self.apply_event(receive.result())
                finally:
                    stopped.cancel()
        except (httpx.HTTPError, HTTPXWSException) as e:
            self.error = f"Change feed lost: {e}"
            print(f"❌ Change feed for room {room_id} failed: {e}")
