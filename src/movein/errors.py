"""Error taxonomy for the checkout flow.

All errors derive from :class:`MoveInError` and carry an optional
machine-readable ``code`` so callers (and the CLI) can branch on the
failure kind without parsing messages.

- :class:`ValidationError` is client-side only and never reaches the network.
- :class:`NotFoundError` means the address produced zero meter matches.
- :class:`UpstreamError` wraps any non-2xx or transport failure.
- :class:`RateLimitError` is raised once catalog retries are exhausted.
- :class:`PartialFailure` is a submission failure after documents were
  already attached; the document references survive on the exception.
"""

from __future__ import annotations

from typing import Any


class MoveInError(Exception):
    """Base exception for checkout-flow errors."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class ValidationError(MoveInError):
    """One or more fields failed client-side validation.

    :param errors: Mapping of field name to a plain-language message.
    """

    def __init__(self, errors: dict[str, str], *, code: str = "VALIDATION_ERROR") -> None:
        self.errors = dict(errors)
        summary = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(summary or "Validation failed", code=code)


class NotFoundError(MoveInError):
    """A lookup matched nothing (e.g. no meter identifier for an address)."""


class SessionError(MoveInError):
    """The per-session identity could not be obtained."""


class UpstreamError(MoveInError):
    """A remote collaborator failed or returned a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message, code=code)
        self.status = status


class RateLimitError(UpstreamError):
    """Rate-limit responses persisted after every retry attempt."""

    def __init__(self, message: str, *, attempts: int, code: str = "RATE_LIMIT_EXHAUSTED") -> None:
        super().__init__(message, code=code, status=429)
        self.attempts = attempts


class PartialFailure(UpstreamError):
    """Submission failed after documents were attached to the request."""

    def __init__(
        self,
        message: str,
        *,
        documents: dict[str, Any],
        code: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(message, code=code, status=status)
        self.documents = dict(documents)
