import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Boolean, DateTime
from signboard.db import Base, DEFAULT_DURATION_SECONDS

DEFAULT_TITLE = "Untitled Announcement"
TRANSITIONS = ("fade", "slide", "none")


class DisplayItem(Base):
    __tablename__ = "display_item"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    media_url = Column(String, nullable=False)
    title = Column(String, default=DEFAULT_TITLE)
    duration_seconds = Column(Integer, default=DEFAULT_DURATION_SECONDS)
    transition = Column(String(16), default="fade")
    active = Column(Boolean, nullable=False, default=True)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
