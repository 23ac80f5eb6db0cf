from pydantic import BaseModel


class SettingsOut(BaseModel):
    id: int
    refresh_interval_minutes: int
    default_duration_seconds: int
    security_enabled: bool
    password_set: bool = False

    class Config:
        from_attributes = True
