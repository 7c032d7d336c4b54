"""Custom exceptions for the application."""


class ApiException(Exception):
    """Base exception for all API errors."""

    def __init__(
        self,
        status_code: int,
        message: str,
        details: dict | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(ApiException):
    """Resource not found exception."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(404, f"{resource} not found: {identifier}")


class UnauthorizedError(ApiException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(401, message)


class ValidationError(ApiException):
    """Request validation error."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(422, message, details)


class ExternalServiceError(ApiException):
    """External service (GitHub, Discord, Slack) error."""

    def __init__(self, service: str, message: str) -> None:
        self.service = service
        super().__init__(502, f"{service} error: {message}")


class ChatServiceError(ExternalServiceError):
    """A chat platform call failed."""


class PRNotFoundError(NotFoundError):
    """Pull request is not tracked."""

    def __init__(self, identifier: str) -> None:
        super().__init__("Pull request", identifier)


class SignatureVerificationError(UnauthorizedError):
    """Webhook signature verification failed."""

    def __init__(self, source: str = "webhook") -> None:
        super().__init__(f"Invalid {source} signature")


class RelayError(Exception):
    """Base exception for event processing failures."""


class ConfigurationError(RelayError):
    """Settings or configuration files are invalid."""


class StoreError(RelayError):
    """The shadow state store could not be read or written."""


class PRCreationError(RelayError):
    """The chat-side representation of a PR could not be created."""

    def __init__(self, pr_number: int, reason: str) -> None:
        self.pr_number = pr_number
        super().__init__(f"Failed to create notification for PR #{pr_number}: {reason}")


class CreationTimeoutError(PRCreationError):
    """Timed out waiting for a concurrent creation of the same PR."""

    def __init__(self, pr_number: int, timeout: float) -> None:
        super().__init__(pr_number, f"concurrent creation did not finish within {timeout}s")


class MaterializationError(RelayError):
    """An untracked PR could not be materialized from the event at hand."""

    def __init__(self, pr_number: int, reason: str) -> None:
        self.pr_number = pr_number
        super().__init__(f"Cannot materialize PR #{pr_number}: {reason}")


class TemplateError(RelayError):
    """Message templates could not be loaded or rendered."""
