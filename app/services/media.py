import logging
import shutil
from pathlib import Path

from app.core.config import settings

logger = logging.getLogger("library.media")

IMAGES_DIR = "bookImages"
UPLOADS_DIR = "uploads"


def is_safe_segment(name: str) -> bool:
    return bool(name.strip()) and name not in (".", "..") and "/" not in name and "\\" not in name


def safe_segment(name: str) -> str:
    """Return ``name`` if it is usable as a single path component."""
    if not is_safe_segment(name):
        raise ValueError(f"invalid path segment: {name!r}")
    return name.strip()


def base_name(file_name: str) -> str:
    # uploads only keep their base name
    return Path(file_name.replace("\\", "/")).name


def file_segment(file_name: str) -> str:
    return safe_segment(base_name(file_name))


class MediaStorage:
    """Book images and profile pictures kept on the local filesystem.

    Images of a book live in ``<root>/bookImages/<book name>/`` and are
    addressed by the relative URL ``bookImages/<book name>/<file name>``.
    """

    def __init__(self, root):
        self.root = Path(root)

    def book_dir(self, book_name: str) -> Path:
        return self.root / IMAGES_DIR / safe_segment(book_name)

    def store(self, data: bytes, book_name: str, file_name: str) -> str:
        folder = self.book_dir(book_name)
        folder.mkdir(parents=True, exist_ok=True)
        fname = file_segment(file_name)
        (folder / fname).write_bytes(data)
        return f"{IMAGES_DIR}/{folder.name}/{fname}"

    def wipe(self, book_name: str) -> None:
        folder = self.book_dir(book_name)
        if folder.exists():
            shutil.rmtree(folder)
        folder.mkdir(parents=True, exist_ok=True)

    def delete_all(self, book_name: str) -> bool:
        if not is_safe_segment(book_name):
            return False
        folder = self.book_dir(book_name)
        if not folder.is_dir():
            return False
        shutil.rmtree(folder)
        logger.info(f"Removed image directory {folder}")
        return True

    def store_profile_picture(self, data: bytes, folder_name: str, file_name: str) -> str:
        folder = self.root / UPLOADS_DIR / safe_segment(folder_name)
        folder.mkdir(parents=True, exist_ok=True)
        target = folder / file_segment(file_name)
        target.write_bytes(data)
        return f"{UPLOADS_DIR}/{folder.name}/{target.name}"


def get_media_storage() -> MediaStorage:
    return MediaStorage(settings.media_root)
