"""Exception hierarchy for social login flows.

Provides specific exception types for each failure mode so callers can tell
CSRF failures, provider refusals, malformed provider responses and setup
mistakes apart.
"""

from __future__ import annotations

from typing import Any


class SocialLoginError(Exception):
    """Base exception for all social login errors."""

    pass


class StateValidationError(SocialLoginError):
    """Raised when the CSRF state parameter fails validation.

    Terminal: a callback that fails state validation must never be retried.
    """

    pass


class MissingState(StateValidationError):
    """Raised when the callback carries no state parameter."""

    def __init__(self, message: str = "Callback is missing the 'state' parameter"):
        super().__init__(message)


class UnknownAuthorization(StateValidationError):
    """Raised when no stored state exists for the callback.

    Happens for forged callbacks and for replays after the state was consumed.
    """

    def __init__(self, message: str = "No pending authorization for this state"):
        super().__init__(message)


class InvalidState(StateValidationError):
    """Raised when the stored state does not match the callback state."""

    def __init__(self, message: str = "State parameter mismatch"):
        super().__init__(message)


class AuthorizationDenied(SocialLoginError):
    """Raised when the user or the provider declined the authorization.

    Attributes:
        error: Raw error code returned by the provider, if any
        error_description: Optional human readable description from the provider
    """

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_description: str | None = None,
    ):
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class MissingCode(SocialLoginError):
    """Raised when the callback carries neither an error nor a code."""

    def __init__(self, message: str = "Callback is missing the 'code' parameter"):
        super().__init__(message)


class InvalidAccessToken(SocialLoginError):
    """Raised when the token endpoint response cannot be turned into a token."""

    pass


class InvalidResponse(SocialLoginError):
    """Raised when a provider API response is malformed or unsuccessful.

    Attributes:
        response: The offending response (or raw body) for logging
    """

    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.response = response


class InvalidArgumentType(SocialLoginError, TypeError):
    """Raised when an operation receives an argument of the wrong shape."""

    pass


class TokenDecodeError(SocialLoginError):
    """Raised when an identity token fails signature, expiry or claim checks."""

    pass


class InvalidProviderConfiguration(SocialLoginError):
    """Raised when a provider profile is missing or mistypes a required setting.

    Raised at construction time, never while handling a request.

    Attributes:
        parameter: Name of the offending configuration parameter
    """

    def __init__(self, message: str, parameter: str | None = None):
        super().__init__(message)
        self.parameter = parameter


class PKCEError(SocialLoginError):
    """Raised when PKCE parameter generation or validation fails."""

    pass


class FlowStateError(SocialLoginError):
    """Raised when a flow operation is called from a state that forbids it."""

    pass


class TransportError(SocialLoginError):
    """Raised when the HTTP transport fails to deliver a request."""

    pass
