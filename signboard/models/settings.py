from sqlalchemy import Boolean, Column, Integer, String
from signboard.db import (
    Base,
    DEFAULT_DURATION_SECONDS,
    DEFAULT_REFRESH_INTERVAL_MINUTES,
    SETTINGS_ROW_ID,
)


class BoardSettings(Base):
    __tablename__ = "settings"
    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    refresh_interval_minutes = Column(Integer, default=DEFAULT_REFRESH_INTERVAL_MINUTES)
    default_duration_seconds = Column(Integer, default=DEFAULT_DURATION_SECONDS)
    security_enabled = Column(Boolean, nullable=False, default=False)
    admin_password = Column(String, nullable=True)  # null means setup mode
