"""
Request and response schemas for rooms, players and rounds
"""

from pydantic import BaseModel, Field, field_serializer
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime


def _serialize_dt(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() + 'Z'


class CamelRequest(BaseModel):
    """Request bodies arrive in camelCase"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ---------- Requests ----------

class CreateRoomRequest(CamelRequest):
    user_id: str = Field(default="", description="Requesting user id")
    player_name: str = Field(default="", description="Host display name")
    room_name: str = Field(default="", description="Room name")

class JoinRoomRequest(CamelRequest):
    user_id: str = ""
    code: str = ""

class StartGameRequest(CamelRequest):
    room_id: Optional[int] = None
    user_id: str = ""

class LeaveRoomRequest(CamelRequest):
    player_id: Optional[int] = None
    user_id: str = ""
    force_delete: bool = False

class TransferHostRequest(CamelRequest):
    room_id: Optional[int] = None
    current_host_id: str = Field(default="", description="User id of the current host")
    new_host_id: Optional[int] = Field(default=None, description="Player id of the new host")

class DeleteRoomRequest(CamelRequest):
    room_id: Optional[int] = None
    host_id: Optional[str] = None

class RoundMetaRequest(CamelRequest):
    room_id: Optional[int] = None
    user_id: str = ""
    action: str = ""
    round_id: Optional[int] = None

class HostActionRequest(CamelRequest):
    room_id: Optional[int] = None
    user_id: str = ""

class CaptionSubmitRequest(CamelRequest):
    round_id: Optional[int] = None
    player_id: Optional[int] = None
    user_id: str = ""
    caption_text: Optional[str] = None

class VoteSubmitRequest(CamelRequest):
    room_id: Optional[int] = None
    user_id: str = ""
    voter_id: Optional[int] = None
    voted_for_id: Optional[int] = None
    round_id: Optional[int] = None

class PlayerHeartbeatRequest(CamelRequest):
    player_id: Optional[int] = None
    user_id: str = ""

class RoomHeartbeatRequest(CamelRequest):
    room_id: Optional[int] = None

class CleanupRequest(CamelRequest):
    older_than_hours: int = 24
    include_empty_rooms: bool = True


# ---------- Responses ----------

class RoomInfo(BaseModel):
    """Room row"""
    id: int
    code: str
    name: str
    host_id: str
    status: str
    current_round: int
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    last_heartbeat: Optional[datetime] = None

    @field_serializer('created_at', 'started_at', 'completed_at', 'last_heartbeat')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt(dt)

    class Config:
        from_attributes = True

class PlayerInfo(BaseModel):
    """Player row"""
    id: int
    room_id: int
    user_id: str
    display_name: Optional[str] = None
    game_alias: str
    is_host: bool
    is_online: bool
    joined_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None

    @field_serializer('joined_at', 'last_seen')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt(dt)

    class Config:
        from_attributes = True

class RoundInfo(BaseModel):
    """Round row without image paths; clients fetch their own image through round-meta"""
    id: int
    room_id: int
    round_number: int
    started_at: Optional[datetime] = None
    deadline_at: Optional[datetime] = None
    voting_deadline_at: Optional[datetime] = None
    has_images: bool = False

    @field_serializer('started_at', 'deadline_at', 'voting_deadline_at')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt(dt)

    @classmethod
    def from_round(cls, round_obj) -> "RoundInfo":
        return cls(
            id=round_obj.id,
            room_id=round_obj.room_id,
            round_number=round_obj.round_number,
            started_at=round_obj.started_at,
            deadline_at=round_obj.deadline_at,
            voting_deadline_at=round_obj.voting_deadline_at,
            has_images=bool(round_obj.real_image_url and round_obj.fake_image_url),
        )

class CaptionInfo(BaseModel):
    """Caption row"""
    id: int
    round_id: int
    player_id: int
    caption: str
    submitted_at: Optional[datetime] = None

    @field_serializer('submitted_at')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt(dt)

    class Config:
        from_attributes = True

class VoteInfo(BaseModel):
    """Vote row"""
    id: int
    room_id: int
    round_id: int
    voter_id: int
    voted_for_id: int
    voted_at: Optional[datetime] = None

    @field_serializer('voted_at')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt(dt)

    class Config:
        from_attributes = True

class RoundResultEntry(BaseModel):
    """One caption's standing in a round"""
    id: int
    caption: str
    player_id: int
    player_alias: str
    vote_count: int
    points: int
    is_impostor: bool

class PlayerRoundResult(BaseModel):
    roundNumber: int
    caption: str
    voteCount: int
    isWinner: bool

class PlayerGameScore(BaseModel):
    """A player's totals across the game"""
    playerId: int
    playerAlias: str
    totalVotes: int = 0
    totalPoints: int = 0
    roundsWon: int = 0
    roundResults: List[PlayerRoundResult] = []

class RoomState(BaseModel):
    """Everything a client needs to render one room"""
    room: RoomInfo
    players: List[PlayerInfo]
    current_round: Optional[RoundInfo] = None
    phase: str
    round_missing: bool = False
    is_impostor: bool = False
    server_time: datetime

    @field_serializer('server_time')
    def serialize_dt(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt(dt)
