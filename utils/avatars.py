from __future__ import annotations

import logging
import os
import time
import uuid

from werkzeug.datastructures import FileStorage

from utils.exceptions import UnsupportedMediaType

logger = logging.getLogger(__name__)

ALLOWED_MIMETYPES = {"image/png": ".png", "image/jpeg": ".jpg"}


def new_avatar_path(directory: str, ext: str) -> str:
    """Fresh posix path under directory, named by upload time."""
    os.makedirs(directory, exist_ok=True)
    name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"
    return os.path.join(directory, name).replace(os.sep, "/")


def save_avatar(upload: FileStorage, directory: str) -> str:
    """Persist an uploaded PNG/JPEG and return its path."""
    ext = ALLOWED_MIMETYPES.get(upload.mimetype)
    if ext is None:
        raise UnsupportedMediaType()
    path = new_avatar_path(directory, ext)
    upload.save(path)
    return path


def remove_avatar(path: str | None) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.debug("avatar %s already gone", path)
