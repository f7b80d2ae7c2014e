"""
src/Core/exceptions.py
======================
Error taxonomy shared by the provider gateway, the pipeline stages and the
HTTP routes.

- ValidationError: bad input, rejected before any work is attempted
- TimestampNormalizationError: one record's timestamp is unusable; callers
  drop the record and continue
- SessionUnavailable: no usable provider token and no way to obtain one
- ProviderError: provider answered with a nonzero status
    - ProviderRateLimited: rate-limit status after the retry budget
    - ProviderTokenInvalid: token rejected even after a fresh login
    - ProviderUnavailable: network/HTTP failure after the retry budget
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(PipelineError):
    """Malformed or missing required input."""


class TimestampNormalizationError(PipelineError, ValueError):
    """A provider timestamp could not be converted to a UTC instant."""

    def __init__(self, value: Any, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot normalize timestamp {value!r}: {reason}")


class SessionUnavailable(PipelineError):
    """No valid provider session and automated login is not configured."""


class ProviderError(PipelineError):
    """Nonzero provider status, with the provider's cause string attached."""

    def __init__(self, status: Optional[int], cause: str, action: str = ""):
        self.status = status
        self.cause = cause
        self.action = action
        super().__init__(f"Provider error on '{action}' (status {status}): {cause}")


class ProviderRateLimited(ProviderError):
    """Provider kept rejecting calls for rate reasons after all retries."""


class ProviderTokenInvalid(ProviderError):
    """Provider rejected the session token."""


class ProviderUnavailable(ProviderError):
    """Network or HTTP-level failure after all retries."""
