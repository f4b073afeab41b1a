"""
logs.py - Structured logging for docguard.

Provides:
- JSON log formatter
- Logging configuration for applications and the CLI
- Event helpers for collection lifecycle and persistence

The library never configures logging on import; call
configure_logging() from the application entry point.
"""

import json
import logging
import os


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    _RESERVED = frozenset((
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'pathname', 'process', 'processName', 'relativeCreated',
        'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
        'message', 'taskName'
    ))

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra
        self._hostname = os.environ.get("HOSTNAME", "unknown")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self._hostname
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for key, value in record.__dict__.items():
                if key not in self._RESERVED:
                    log_data[key] = value

        return json.dumps(log_data, default=str)


class CollectionLogger:
    """
    Structured logger for collection lifecycle events.

    Every event carries an ``event`` field so JSON output can be
    filtered without parsing messages.
    """

    def __init__(self, name: str = "docguard"):
        self._logger = logging.getLogger(name)

    def collection_created(self, collection: str, unique: list[str]) -> None:
        self._logger.info(
            f"Collection {collection} created",
            extra={
                "event": "collection_created",
                "collection": collection,
                "unique": list(unique)
            }
        )

    def collection_rebuilt(
        self,
        collection: str,
        unique: list[str],
        record_count: int,
        duration_ms: float
    ) -> None:
        self._logger.info(
            f"Collection {collection} rebuilt: {record_count} records replayed",
            extra={
                "event": "collection_rebuilt",
                "collection": collection,
                "unique": list(unique),
                "record_count": record_count,
                "duration_ms": duration_ms
            }
        )

    def rebuild_rejected(self, collection: str, reason: str) -> None:
        """Existing data cannot satisfy the required constraints."""
        self._logger.warning(
            f"Rebuild of {collection} rejected: {reason}",
            extra={
                "event": "rebuild_rejected",
                "collection": collection,
                "reason": reason
            }
        )

    def database_saved(self, path: str, collections: int, size_bytes: int) -> None:
        self._logger.info(
            f"Database saved: {collections} collections, {size_bytes} bytes",
            extra={
                "event": "database_saved",
                "path": path,
                "collections": collections,
                "size_bytes": size_bytes
            }
        )

    def database_loaded(self, path: str, collections: int) -> None:
        self._logger.info(
            f"Database loaded: {collections} collections",
            extra={
                "event": "database_loaded",
                "path": path,
                "collections": collections
            }
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None
) -> None:
    """
    Configure logging for applications embedding docguard.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON formatting
        log_file: Optional log file path
    """
    handlers = []

    console = logging.StreamHandler()
    if json_format:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    handlers.append(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True
    )
