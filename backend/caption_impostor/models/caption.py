"""
Caption model
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from caption_impostor.core.database import Base
from caption_impostor.core.utils import utc_now

class Caption(Base):
    """Player caption table, one per player per round"""
    __tablename__ = "player_captions"
    __table_args__ = (
        UniqueConstraint("round_id", "player_id", name="uq_caption_round_player"),
    )

    id = Column(Integer, primary_key=True, index=True)
    round_id = Column(Integer, ForeignKey("game_rounds.id"), nullable=False, index=True)
    player_id = Column(Integer, ForeignKey("game_players.id"), nullable=False)
    caption = Column(Text, nullable=False)
    submitted_at = Column(DateTime, default=utc_now)

    # Relationships
    round = relationship("Round", back_populates="captions")
    player = relationship("Player")
