"""Setup error types."""

from __future__ import annotations


class LoyalSetupError(RuntimeError):
    """Base setup error."""


class EnvironmentCapabilityError(LoyalSetupError):
    """A required runtime capability is missing."""


class IdentityError(LoyalSetupError, ValueError):
    """Raised when identity material is invalid or cannot be loaded."""


class ConfigError(LoyalSetupError, ValueError):
    """Raised when settings or local config are invalid."""


class RemoteRequestError(LoyalSetupError):
    """Server could not be reached or returned an error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExternalToolError(LoyalSetupError):
    """The OpenClaw CLI is installed but a config call failed."""


class ConfigParseError(LoyalSetupError):
    """An existing OpenClaw config file is not valid JSON."""

    def __init__(self, message: str, *, path: object | None = None) -> None:
        super().__init__(message)
        self.path = path


class SetupAborted(LoyalSetupError):
    """The operator closed the prompt (EOF or interrupt)."""
