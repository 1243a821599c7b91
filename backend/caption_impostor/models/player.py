"""
Player model
"""

from sqlalchemy import Column, Integer, String, ForeignKey, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from caption_impostor.core.database import Base
from caption_impostor.core.utils import utc_now

class Player(Base):
    """Player table; one row per user per room is the unit of presence"""
    __tablename__ = "game_players"
    __table_args__ = (
        UniqueConstraint("room_id", "game_alias", name="uq_player_room_alias"),
        UniqueConstraint("room_id", "user_id", name="uq_player_room_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("game_rooms.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    display_name = Column(String(50), nullable=True)   # account name given at room creation
    game_alias = Column(String(50), nullable=False)    # generated in-game name
    is_host = Column(Boolean, nullable=False, default=False)
    is_online = Column(Boolean, nullable=False, default=True)
    joined_at = Column(DateTime, default=utc_now)
    last_seen = Column(DateTime, default=utc_now)

    # Relationships
    room = relationship("Room", back_populates="players")
