"""Configuration constants for the raw-socket HTTP file server."""

PORT: int = 8080
LISTEN_BACKLOG: int = 10
ACCEPT_POLL_SECS: float = 0.2
READ_CHUNK_SIZE: int = 65_536
WRITE_CHUNK_SIZE: int = 65_536
SOCKET_TIMEOUT_SECS: int = 5
REQUEST_DEADLINE_SECS: int = 30
MAX_HEADER_BYTES: int = 16_384
MAX_BODY_BYTES: int = 64 * 1024 * 1024
MAX_KEY_LENGTH: int = 1024
SERVER_NAME: str = "raw-http-file-server/0.1"
SERVER_ENGINE: str = "threadpool"
WORKER_COUNT: int = 8
REQUEST_QUEUE_SIZE: int = 64
DRAIN_TIMEOUT_SECS: float = 5.0
STORAGE_BACKEND: str = "sqlite"
STORAGE_DB_FILE: str = "data/files.sqlite3"
ADDRESS_COMMANDS: tuple[tuple[str, ...], ...] = (
    ("ifconfig",),
    ("ip", "-4", "addr", "show"),
)
ADDRESS_COMMAND_TIMEOUT_SECS: float = 3.0
LOG_FORMAT: str = "plain"
LOG_LEVEL: str = "INFO"
