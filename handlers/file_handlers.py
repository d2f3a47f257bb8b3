"""Upload and download handlers backed by FileStorage."""

import logging
from dataclasses import dataclass
from urllib.parse import quote

from file_storage import FileStorage, StorageError, StoredFileNotFoundError
from request import HTTPRequest, has_control_characters
from response import HTTPResponse, error_response
from utils import get_content_type

logger = logging.getLogger(__name__)


def _stored_content_type(request: HTTPRequest) -> str | None:
    content_type = request.content_type
    if content_type is None or has_control_characters(content_type):
        return None
    return content_type.strip() or None


@dataclass
class UploadHandler:
    storage: FileStorage

    def __call__(self, request: HTTPRequest, *, key: str) -> HTTPResponse:
        try:
            created = self.storage.put(key, request.body, _stored_content_type(request))
        except StorageError:
            logger.exception("Storage write failed for key=%s", key)
            return error_response(500)

        size = request.content_length
        if created:
            return HTTPResponse(
                status_code=201,
                headers={"Location": "/" + quote(key)},
                body=f"Stored {size} bytes at /{key}",
            )
        return HTTPResponse(status_code=200, body=f"Replaced /{key} with {size} bytes")


@dataclass
class DownloadHandler:
    storage: FileStorage

    def __call__(self, request: HTTPRequest, *, key: str) -> HTTPResponse:
        _ = request
        try:
            stored = self.storage.get(key)
        except StoredFileNotFoundError:
            return HTTPResponse(status_code=404, body=b"")
        except StorageError:
            logger.exception("Storage read failed for key=%s", key)
            return error_response(500)

        return HTTPResponse(
            status_code=200,
            headers={"Content-Type": stored.content_type or get_content_type(key)},
            body=stored.content,
        )
