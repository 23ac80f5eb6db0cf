import io
import os

import pytest
from fastapi import UploadFile

from signboard import seed as seed_module
from signboard.services.storage import MediaStore, MediaStoreError, media_kind_for, save_upload


def test_media_kind_from_extension():
    assert media_kind_for("/storage/media/a.mp4") == "video"
    assert media_kind_for("https://cdn.example/x/clip.MOV?token=1") == "video"
    assert media_kind_for("/storage/media/a.webm") == "video"
    assert media_kind_for("/storage/media/a.ogg") == "video"
    assert media_kind_for("/storage/media/a.png") == "image"
    assert media_kind_for("/storage/media/no-extension") == "image"


def test_upload_url_and_remove(media):
    media.upload("one.png", b"data")

    assert media.get_public_url("one.png") == "/storage/media/one.png"
    assert media.path_from_url("/storage/media/one.png") == "one.png"
    assert os.path.exists(os.path.join(media.root, "one.png"))

    media.remove("one.png")
    assert not os.path.exists(os.path.join(media.root, "one.png"))


def test_upload_refuses_overwrite(media):
    media.upload("dup.png", b"first")
    with pytest.raises(MediaStoreError):
        media.upload("dup.png", b"second")


def test_remove_missing_file_raises(media):
    with pytest.raises(MediaStoreError):
        media.remove("ghost.png")


def test_paths_cannot_escape_the_bucket(media, tmp_path):
    media.upload("../escape.png", b"data")
    assert os.path.exists(os.path.join(media.root, "escape.png"))
    assert not (tmp_path / "escape.png").exists()
    with pytest.raises(MediaStoreError):
        media.upload("..", b"data")


def _upload_file(name, content):
    return UploadFile(file=io.BytesIO(content), filename=name)


def test_save_upload_renames_and_stores(media):
    path = save_upload(media, _upload_file("Holiday Hours.JPG", b"jpeg-bytes"))

    assert path.endswith(".jpg")
    assert path != "Holiday Hours.JPG"
    with open(os.path.join(media.root, path), "rb") as f:
        assert f.read() == b"jpeg-bytes"


def test_save_upload_rejects_bad_input(media):
    with pytest.raises(ValueError):
        save_upload(media, _upload_file("empty.png", b""))
    with pytest.raises(ValueError):
        save_upload(media, _upload_file("notes.txt", b"hello"))


def test_save_upload_enforces_image_limit(media, monkeypatch):
    monkeypatch.setattr("signboard.services.storage.MAX_IMAGE_BYTES", 4)
    with pytest.raises(ValueError):
        save_upload(media, _upload_file("big.png", b"12345"))


def test_seed_populates_empty_board_once(store, media):
    created = seed_module.seed(store=store, media=media)

    assert len(created) == 2
    assert [item.title for item in store.list_items(active_only=True)] == ["Welcome", "Notice Board"]
    assert seed_module.seed(store=store, media=media) == []


def test_default_media_store_uses_configured_dir():
    assert MediaStore().root == os.environ["SIGNAGE_MEDIA_DIR"]


def test_seed_after_database_reset_reuses_media_dir(store, media):
    for item_id in seed_module.seed(store=store, media=media):
        store.delete_item(item_id)
    leftover = sorted(os.listdir(media.root))

    created = seed_module.seed(store=store, media=media)

    assert len(created) == 2
    assert len(os.listdir(media.root)) == len(leftover) + 2
