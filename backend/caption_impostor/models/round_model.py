"""
Round model
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from caption_impostor.core.database import Base

class Round(Base):
    """Round table; all rounds of a game are created at game start"""
    __tablename__ = "game_rounds"
    __table_args__ = (
        UniqueConstraint("room_id", "round_number", name="uq_round_room_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("game_rooms.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    real_image_url = Column(String(500), nullable=True)    # shown to everyone else
    fake_image_url = Column(String(500), nullable=True)    # shown to the impostor
    started_at = Column(DateTime, nullable=True)           # null until the round is reached
    deadline_at = Column(DateTime, nullable=True)          # end of captioning
    voting_deadline_at = Column(DateTime, nullable=True)   # end of voting

    # Relationships
    room = relationship("Room")
    captions = relationship("Caption", back_populates="round")
