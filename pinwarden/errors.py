"""
Exception hierarchy shared by every pinwarden component.

Provider lookups distinguish "not found" (an answer, fed into classification)
from transient failures (network, rate limits) that are retried and then
surfaced. Cache failures are never fatal; callers log and move on.
"""

from typing import Optional


class PinwardenError(Exception):
    """Base class for all pinwarden errors."""


class ParseError(PinwardenError):
    """A workflow document or reference string could not be parsed."""


class UnsupportedRefForm(ParseError):
    """A `uses:` value has a shape we do not know how to classify."""

    def __init__(self, raw: str, detail: str = ""):
        self.raw = raw
        message = f"unsupported reference form: {raw!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ProviderError(PinwardenError):
    """The hosting provider could not answer a query."""


class NotFoundError(ProviderError):
    """The requested repository, ref, or commit does not exist."""


class TransientProviderError(ProviderError):
    """Network failure or rate limit that survived every retry."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class CacheError(PinwardenError):
    """The classification cache could not be read or written."""


class RemediationError(PinwardenError):
    """A remediation span was not found where the issue said it would be."""


class ScanCancelled(PinwardenError):
    """The scan was cancelled before the current check finished."""


class ScanError(PinwardenError):
    """A check failed; wraps the underlying error with the failing phase."""

    def __init__(self, phase: str, check: str, cause: Exception):
        self.phase = phase
        self.check = check
        self.cause = cause
        super().__init__(f"check '{check}' failed during {phase}: {cause}")
