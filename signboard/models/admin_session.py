from datetime import datetime
from sqlalchemy import Column, DateTime, String
from signboard.db import Base


class AdminSession(Base):
    __tablename__ = "admin_session"
    token = Column(String(64), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow)
