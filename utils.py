"""Utility helpers shared across server modules."""

import mimetypes
from urllib.parse import unquote

from config import MAX_KEY_LENGTH


class InvalidKeyError(ValueError):
    """Raised when a request path cannot name a stored file."""


def get_content_type(key: str) -> str:
    content_type, _encoding = mimetypes.guess_type(key.rsplit("/", 1)[-1])
    return content_type or "application/octet-stream"


def storage_key_from_path(request_path: str, prefix: str = "/") -> str | None:
    """Derive the storage key for a request path.

    Returns None when the path has no resource under ``prefix`` and raises
    InvalidKeyError when it names one that is unsafe to store.
    """
    path = request_path.partition("?")[0].partition("#")[0]
    if not path.startswith(prefix):
        return None

    raw_key = unquote(path.removeprefix(prefix))
    if not raw_key:
        return None

    if len(raw_key) > MAX_KEY_LENGTH:
        raise InvalidKeyError("Key too long")
    if "\\" in raw_key or any(ord(char) < 32 or ord(char) == 127 for char in raw_key):
        raise InvalidKeyError("Key contains forbidden characters")

    for segment in raw_key.split("/"):
        if segment in {"", ".", ".."}:
            raise InvalidKeyError("Key contains an empty or relative segment")

    return raw_key
