import os
import logging
import uuid
from fastapi import UploadFile

logger = logging.getLogger(__name__)

MEDIA_DIR = os.getenv("SIGNAGE_MEDIA_DIR", "storage/media")
PUBLIC_PREFIX = "/storage/media"
MAX_IMAGE_BYTES = int(os.getenv("SIGNAGE_MAX_IMAGE_BYTES", str(15 * 1024 * 1024)))
MAX_VIDEO_BYTES = int(os.getenv("SIGNAGE_MAX_VIDEO_BYTES", str(250 * 1024 * 1024)))
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".webm", ".ogg", ".mov"}


class MediaStoreError(Exception):
    pass


def ensure_storage() -> None:
    os.makedirs(MEDIA_DIR, exist_ok=True)


def media_kind_for(url: str | None) -> str:
    # Query strings and fragments do not change the kind.
    path = (url or "").split("?", 1)[0].split("#", 1)[0]
    _, ext = os.path.splitext(path.lower())
    return "video" if ext in ALLOWED_VIDEO_EXTENSIONS else "image"


def _validate_extension(filename: str) -> str:
    _, ext = os.path.splitext(filename.lower())
    if ext not in ALLOWED_IMAGE_EXTENSIONS and ext not in ALLOWED_VIDEO_EXTENSIONS:
        raise ValueError("Unsupported media format. Use JPG/JPEG/PNG/WEBP/GIF or MP4/WEBM/OGG/MOV.")
    return ext


class MediaStore:
    """Local-disk bucket whose files are served publicly under PUBLIC_PREFIX."""

    def __init__(self, root: str | None = None, public_prefix: str = PUBLIC_PREFIX) -> None:
        self.root = root or MEDIA_DIR
        self.public_prefix = public_prefix.rstrip("/")

    def _resolve(self, path: str) -> str:
        name = os.path.basename((path or "").replace("\\", "/")).strip()
        if not name or name in {".", ".."}:
            raise MediaStoreError(f"Invalid media path: {path!r}")
        return os.path.join(self.root, name)

    def upload(self, path: str, content: bytes) -> None:
        target = self._resolve(path)
        try:
            os.makedirs(self.root, exist_ok=True)
            # "xb" refuses to overwrite an existing object.
            with open(target, "xb") as f:
                f.write(content)
        except FileExistsError as exc:
            raise MediaStoreError(f"Media already exists: {path}") from exc
        except OSError as exc:
            raise MediaStoreError(f"Could not store media {path}: {exc}") from exc

    def get_public_url(self, path: str) -> str:
        return f"{self.public_prefix}/{os.path.basename(path)}"

    def path_from_url(self, url: str | None) -> str | None:
        name = (url or "").split("?", 1)[0].rstrip("/").split("/")[-1]
        return name or None

    def remove(self, path: str) -> None:
        target = self._resolve(path)
        try:
            os.remove(target)
        except OSError as exc:
            raise MediaStoreError(f"Could not remove media {path}: {exc}") from exc


def save_upload(store: MediaStore, file: UploadFile) -> str:
    """Validate an uploaded file and store it under a fresh name; returns the stored path."""
    content = file.file.read()
    if not content:
        raise ValueError("Empty files cannot be uploaded.")
    filename = os.path.basename((file.filename or "").strip())
    ext = _validate_extension(filename)
    size = len(content)
    if ext in ALLOWED_IMAGE_EXTENSIONS and size > MAX_IMAGE_BYTES:
        raise ValueError(f"Image exceeds the {MAX_IMAGE_BYTES // (1024 * 1024)} MB limit.")
    if ext in ALLOWED_VIDEO_EXTENSIONS and size > MAX_VIDEO_BYTES:
        raise ValueError(f"Video exceeds the {MAX_VIDEO_BYTES // (1024 * 1024)} MB limit.")
    path = f"{uuid.uuid4()}{ext}"
    store.upload(path, content)
    logger.info("Stored upload %s as %s (%d bytes)", filename, path, size)
    return path
