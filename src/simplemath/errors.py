"""Error types shared across the SimpleMath package."""

from __future__ import annotations

from typing import Optional


class SimpleMathError(Exception):
    """Base class for all SimpleMath errors."""


class LLMClientError(SimpleMathError):
    """Base class for failures raised by a language-model client."""


class ConfigurationError(LLMClientError):
    """Credential, endpoint or other setting is missing or invalid."""


class RemoteError(LLMClientError):
    """The completion endpoint failed or returned an unusable payload.

    Attributes:
        status: HTTP status returned by the remote, or None when the request
            never got a response (connection failure, timeout, bad JSON).
        remote_message: Error message supplied by the remote, if any.
    """

    def __init__(self, message: str, status: Optional[int] = None, remote_message: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.remote_message = remote_message


class EmptyResponseError(LLMClientError):
    """The remote returned zero choices."""


class PersistenceError(SimpleMathError):
    """Serializing, deserializing or writing persisted state failed."""


class ValidationError(SimpleMathError):
    """User input was rejected before any state change."""


class OrchestratorBusyError(ValidationError):
    """A round pipeline run is already in flight."""


class AnimationError(SimpleMathError):
    """The animation collaborator could not create an animation."""
