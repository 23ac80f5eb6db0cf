from pydantic import BaseModel


class Notice(BaseModel):
    """Transient user-facing notification, the server-side stand-in for a toast."""

    level: str
    message: str
