# File: apiwizard/errors.py
"""
NexaFlow APIWizard - Error Taxonomy
====================================
Exceptions raised by the service client, the coordinator and the
configuration engine.

Retry decisions are made from ``WizardError.retryable``:

    TransportError        connectivity failure            retryable
    RequestTimeoutError   attempt exceeded its max wait   retryable
    ServerError           4xx                             not retryable
                          408 / 429 / 5xx                 retryable
    ExecutionError        generation run failed           never retried
    ConfigurationError    invalid configuration values    not retryable
"""

from __future__ import annotations

from typing import Any, FrozenSet, Optional

#: Status codes worth another attempt.
RETRYABLE_STATUS_CODES: FrozenSet[int] = frozenset({408, 429, 500, 502, 503, 504})


class WizardError(Exception):
    """Base class for every error raised by apiwizard."""

    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message: str = message


class TransportError(WizardError):
    """The service could not be reached."""

    retryable = True


class RequestTimeoutError(TransportError):
    """A single attempt took longer than its allowed wait."""


class ServerError(WizardError):
    """The service answered with an error status."""

    def __init__(
        self,
        status_code: int,
        message: str,
        payload: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.status_code: int = status_code
        self.payload: Optional[Any] = payload

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code in RETRYABLE_STATUS_CODES or self.status_code >= 500

    def __repr__(self) -> str:
        return f"<ServerError {self.status_code}: {self.message}>"


class ExecutionError(WizardError):
    """Endpoint generation failed. Never retried automatically."""


class ConfigurationError(WizardError, ValueError):
    """A configuration update carried invalid values."""


__all__ = [
    "RETRYABLE_STATUS_CODES",
    "WizardError",
    "TransportError",
    "RequestTimeoutError",
    "ServerError",
    "ExecutionError",
    "ConfigurationError",
]
