"""
Vote model
"""

from sqlalchemy import Column, Integer, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from caption_impostor.core.database import Base
from caption_impostor.core.utils import utc_now

class Vote(Base):
    """Vote table"""
    __tablename__ = "player_votes"
    __table_args__ = (
        UniqueConstraint("round_id", "voter_id", name="uq_vote_round_voter"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("game_rooms.id"), nullable=False, index=True)
    round_id = Column(Integer, ForeignKey("game_rounds.id"), nullable=False, index=True)
    voter_id = Column(Integer, ForeignKey("game_players.id"), nullable=False)       # voter
    voted_for_id = Column(Integer, ForeignKey("game_players.id"), nullable=False)   # caption author
    voted_at = Column(DateTime, default=utc_now)

    # Relationships
    round = relationship("Round")
    voter = relationship("Player", foreign_keys=[voter_id])
    voted_for = relationship("Player", foreign_keys=[voted_for_id])
