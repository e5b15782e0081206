from __future__ import annotations

from .model import StatusError, TransportError

DEFAULT_MAX_RETRIES = 3


def is_transient(exc: BaseException) -> bool:
    """Timeouts and server-side statuses are worth retrying; nothing else is."""
    if isinstance(exc, TransportError):
        return exc.timeout
    if isinstance(exc, StatusError):
        return exc.is_server_error
    return False


class RetryPolicy:
    """Bounded budget of immediate retries, restored after each delivered chunk."""

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        if max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        self.max_retries = max_retries
        self.remaining = max_retries

    def reset(self) -> None:
        self.remaining = self.max_retries

    def consume(self, exc: BaseException) -> bool:
        """Return True (and spend one attempt) if `exc` may be retried."""
        if not is_transient(exc) or self.remaining == 0:
            return False
        self.remaining -= 1
        return True
