from datetime import datetime
from pydantic import BaseModel, computed_field
from signboard.schemas.notice import Notice
from signboard.services.storage import media_kind_for


class DisplayItemOut(BaseModel):
    id: str
    media_url: str
    title: str | None = None
    duration_seconds: int | None = None
    transition: str = "fade"
    active: bool = True
    order_index: int = 0
    created_at: datetime | None = None

    class Config:
        from_attributes = True

    @computed_field
    @property
    def media_kind(self) -> str:
        return media_kind_for(self.media_url)


class EditorStateOut(BaseModel):
    items: list[DisplayItemOut]
    dirty: bool
    notices: list[Notice] = []
