"""
Image catalog model
"""

from sqlalchemy import Column, Integer, String
from caption_impostor.core.database import Base

class ImageTitle(Base):
    """Static image catalog used to build real/fake pairs"""
    __tablename__ = "image_titles"

    id = Column(Integer, primary_key=True, index=True)
    file_path = Column(String(500), nullable=True)   # entries without a path are skipped
    file_name = Column(String(200), nullable=True)
    title = Column(String(200), nullable=True)
    category = Column(String(100), nullable=True, index=True)
