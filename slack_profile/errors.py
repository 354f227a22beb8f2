from __future__ import annotations


class SlackProfileError(Exception):
    pass


class ValidationError(SlackProfileError):
    """Input rejected before any remote call is made."""


class MissingCredentialError(ValidationError):
    pass


class ProfileApiError(SlackProfileError):
    kind = "api"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RemoteDomainError(ProfileApiError):
    """Slack answered the request with ``"ok": false``."""

    kind = "remote"

    def __init__(self, error: str, api_method: str = "") -> None:
        super().__init__(error)
        self.error = error
        self.api_method = api_method

    def __str__(self) -> str:
        return f"Slack API error: {self.error}"


class TransportError(ProfileApiError):
    kind = "transport"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
