"""Error taxonomy shared by every layer of the payment pipeline.

Each error carries a stable `code` and the HTTP status a transport should map it to. Messages are
safe to show to the end user; internal details stay in the logs.
"""

from __future__ import annotations


class PaymentError(Exception):
    """Base class for user-visible pipeline errors."""

    code = "error"
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PaymentError):
    """Malformed or missing input, invalid address, unsupported token."""

    code = "validation_error"
    http_status = 400


class UnsupportedMediaError(ValidationError):
    """Audio payload in a format the speech collaborator does not accept."""

    code = "unsupported_media"
    http_status = 415


class PayloadTooLargeError(ValidationError):
    """Audio payload above the configured size limit."""

    code = "payload_too_large"
    http_status = 413


class NotFoundError(PaymentError):
    """Unknown transaction id."""

    code = "not_found"
    http_status = 404


class ConflictError(PaymentError):
    """Operation not legal in the record's current state."""

    code = "conflict"
    http_status = 400


class RateLimitedError(PaymentError):
    """The client exhausted its request budget for a route."""

    code = "rate_limited"
    http_status = 429


class UpstreamError(PaymentError):
    """An external collaborator (NLP, speech, chain RPC) failed or timed out."""

    code = "upstream_error"
    http_status = 502
