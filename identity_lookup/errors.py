"""Exceptions raised by the identity lookup client."""

from __future__ import annotations

from typing import Any


class IdentityLookupError(Exception):
    """Base exception for identity lookup client errors."""

    pass


class ProtocolError(IdentityLookupError):
    """Raised when the identity server does not follow the lookup protocol."""

    pass


class CapabilityError(ProtocolError):
    """Raised when /hash_details is missing the pepper or the algorithms."""

    pass


class UnsupportedAlgorithmError(ProtocolError):
    """Raised when no usable lookup algorithm is advertised."""

    pass


class ProtocolConsistencyError(ProtocolError):
    """Raised when lookup results cannot be matched back to the query."""

    pass


class TransportError(IdentityLookupError):
    """Raised when a request to the identity server fails."""

    pass


class IdentityServerConnectionError(TransportError):
    """Raised when the identity server cannot be reached (network, timeout)."""

    pass


class IdentityServerHTTPError(TransportError):
    """Raised when the identity server answers with a non-2xx status.

    The standard error body is ``{"errcode": "M_...", "error": "..."}``; both
    fields are exposed when present.
    """

    def __init__(self, status_code: int, body: Any = None):
        self.status_code = status_code
        self.body = body
        self.errcode: str | None = None
        self.error: str | None = None
        if isinstance(body, dict):
            self.errcode = body.get("errcode")
            self.error = body.get("error")

        detail = self.error or (body if isinstance(body, str) else "")
        message = f"Identity server returned HTTP {status_code}"
        if self.errcode:
            message += f" ({self.errcode})"
        if detail:
            message += f": {detail}"
        super().__init__(message)
