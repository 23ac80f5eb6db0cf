import base64
import logging
import uuid

from signboard.db import Base, SessionLocal, engine, ensure_settings_row
from signboard.services.content_store import ContentStore
from signboard.services.storage import MediaStore, ensure_storage

logger = logging.getLogger(__name__)

PLACEHOLDER_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGNgYAAAAAMAASsJTYQAAAAASUVORK5CYII="
)


def seed(store: ContentStore | None = None, media: MediaStore | None = None) -> list[str]:
    """Create a couple of placeholder slides on an empty board; returns the new item ids."""
    Base.metadata.create_all(bind=engine)
    ensure_settings_row()
    ensure_storage()
    store = store or ContentStore(SessionLocal)
    media = media or MediaStore()

    if store.list_items():
        logger.info("Board already has content, skipping seed")
        return []

    created = []
    for position, (title, duration) in enumerate([("Welcome", 10), ("Notice Board", 15)], start=1):
        filename = f"{uuid.uuid4()}.png"
        media.upload(filename, PLACEHOLDER_PNG)
        item = store.insert_item(
            media_url=media.get_public_url(filename),
            title=title,
            duration_seconds=duration,
            transition="fade",
            active=True,
            order_index=position,
        )
        created.append(item.id)
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
