"""Error taxonomy for the ruote-kit client."""

from __future__ import annotations


class RuoteError(Exception):
    """Base class for every error raised by the client."""


class ValidationError(RuoteError):
    """Raised when a launch item fails local checks before any request is made."""


class ProtocolError(RuoteError):
    """Raised when the server answers with a payload missing an expected field."""


class ConflictError(RuoteError):
    """Raised when an update or proceed was not applied by the server."""


class TransportError(RuoteError):
    """Raised when the HTTP exchange itself fails.

    ``status_code`` is ``None`` for network-level failures (connection
    refused, timeouts) and carries the HTTP status for non-2xx responses.
    """

    def __init__(
        self, status_code: int | None, message: str, body: str = ""
    ) -> None:
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"ruote-kit transport error: {message}")
        else:
            super().__init__(f"ruote-kit API error {status_code}: {message}")
