"""Routing table for method/path handlers."""

from collections.abc import Callable
from functools import partial

from file_storage import FileStorage
from handlers.file_handlers import DownloadHandler, UploadHandler
from request import HTTPRequest
from response import HTTPResponse
from utils import InvalidKeyError, storage_key_from_path

Handler = Callable[[HTTPRequest], HTTPResponse]
ResourceHandler = Callable[..., HTTPResponse]


def not_found(request: HTTPRequest) -> HTTPResponse:
    _ = request
    return HTTPResponse(status_code=404, body=b"")


def bad_request(request: HTTPRequest) -> HTTPResponse:
    _ = request
    return HTTPResponse(status_code=400, body="Bad Request")


class Router:
    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], Handler] = {}
        self._resource_routes: list[tuple[str, str, ResourceHandler]] = []

    def add_route(self, method: str, path: str, handler: Handler) -> None:
        normalized_method = _normalize_method(method)
        if not path.startswith("/"):
            raise ValueError("path must start with '/'")
        self._routes[(normalized_method, path)] = handler

    def add_resource_route(self, method: str, prefix: str, handler: ResourceHandler) -> None:
        """Route every key under ``prefix``; the handler receives ``key=`` alongside the request."""
        normalized_method = _normalize_method(method)
        if not prefix.startswith("/") or not prefix.endswith("/"):
            raise ValueError("prefix must start and end with '/'")
        self._resource_routes.append((normalized_method, prefix, handler))
        # Longest prefix wins.
        self._resource_routes.sort(key=lambda route: len(route[1]), reverse=True)

    def resolve(self, method: str, path: str) -> Handler | None:
        normalized_method = method.upper().strip()
        handler = self._routes.get((normalized_method, path))
        if handler is not None:
            return handler

        for route_method, prefix, resource_handler in self._resource_routes:
            if route_method != normalized_method:
                continue
            try:
                key = storage_key_from_path(path, prefix)
            except InvalidKeyError:
                return bad_request
            if key is not None:
                return partial(resource_handler, key=key)
        return None

    def route(self, request: HTTPRequest) -> Handler:
        """Pick the handler for a request; never performs I/O and never returns None."""
        handler = self.resolve(request.method, request.path)
        if handler is not None:
            return handler
        if request.method == "GET":
            return not_found
        return bad_request


def _normalize_method(method: str) -> str:
    normalized_method = method.upper().strip()
    if not normalized_method:
        raise ValueError("method cannot be empty")
    return normalized_method


def build_file_router(storage: FileStorage) -> Router:
    router = Router()
    router.add_resource_route("GET", "/", DownloadHandler(storage))
    upload = UploadHandler(storage)
    router.add_resource_route("POST", "/", upload)
    router.add_resource_route("PUT", "/", upload)
    return router
