"""Error types raised by the store, importer, exporter and quiz engine.

Every error carries a human-readable ``message``. The API layer turns them
into JSON responses and keeps the latest one in an :class:`ErrorState`.
"""

import threading
from typing import Optional


class KotobaError(Exception):
    kind: str = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LoadError(KotobaError):
    kind = "load_error"


class SaveError(KotobaError):
    kind = "save_error"


class DecodeError(KotobaError):
    kind = "decode_error"


class SourceIOError(KotobaError):
    kind = "io_error"


class InvalidURLError(KotobaError):
    kind = "invalid_url"


class NetworkError(KotobaError):
    kind = "network_error"


class HTTPStatusError(KotobaError):
    kind = "http_status"

    def __init__(self, status_code: int):
        super().__init__(f"Server responded with HTTP {status_code}")
        self.status_code = status_code


class EmptyBodyError(KotobaError):
    kind = "empty_body"

    def __init__(self, message: str = "No data received"):
        super().__init__(message)


class DuplicateNameError(KotobaError):
    kind = "duplicate_name"

    def __init__(self, name: str):
        super().__init__(f"A word source named '{name}' already exists")
        self.name = name


class SerializeError(KotobaError):
    kind = "serialize_error"


class EmptySourceError(KotobaError):
    kind = "empty_source"

    def __init__(self, message: str = "Word source has no words"):
        super().__init__(message)


class InvalidTransitionError(KotobaError):
    kind = "invalid_transition"


class SourceNotFoundError(KotobaError):
    kind = "not_found"

    def __init__(self, source_id: str):
        super().__init__(f"Word source {source_id} not found")
        self.source_id = source_id


class ErrorState:
    """Holds the single most recent error until it is dismissed."""

    def __init__(self):
        self._lock = threading.Lock()
        self._current: Optional[KotobaError] = None

    @property
    def current(self) -> Optional[KotobaError]:
        return self._current

    def report(self, error: KotobaError) -> None:
        with self._lock:
            self._current = error

    def dismiss(self) -> None:
        with self._lock:
            self._current = None

    def as_dict(self) -> Optional[dict]:
        err = self._current
        if err is None:
            return None
        return {"error": err.kind, "message": err.message}
