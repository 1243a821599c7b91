"""
Game room model
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from caption_impostor.core.database import Base
from caption_impostor.core.utils import utc_now

# Room statuses
LOBBY = "lobby"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
DORMANT = "dormant"  # lobby with nobody online, revived by the next join

class Room(Base):
    """Game room table"""
    __tablename__ = "game_rooms"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(6), nullable=False, unique=True, index=True)  # join code
    name = Column(String(100), nullable=False, default="Game Room")
    host_id = Column(String(64), nullable=False)                       # user id of the host
    status = Column(String(20), nullable=False, default=LOBBY)         # lobby, in_progress, completed, dormant
    current_round = Column(Integer, nullable=False, default=0)
    impostor_id = Column(String(64), nullable=True)                    # user id, set at game start
    created_at = Column(DateTime, default=utc_now)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    last_heartbeat = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    # Relationships
    players = relationship("Player", back_populates="room", order_by="Player.joined_at")
