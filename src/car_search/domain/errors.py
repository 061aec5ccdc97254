"""Errors raised by availability search components."""

from __future__ import annotations


class CarSearchError(Exception):
    """Base class for availability search errors."""

    pass


class SubmissionError(CarSearchError):
    """Raised when a search could not be submitted. No search exists."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """
        Initialize submission error.

        Args:
            message: Human readable failure reason
            status_code: HTTP status returned by the backend, if any
        """
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class PollTransportError(CarSearchError):
    """Raised when a single poll failed at transport level. Retryable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class PollerStateError(CarSearchError):
    """Raised when a poller is used outside of its lifecycle."""

    pass


class SearchNotFoundError(CarSearchError):
    """Raised when a search is not tracked (unknown or expired)."""

    pass
