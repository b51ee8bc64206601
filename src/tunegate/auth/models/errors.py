"""Exception hierarchy for the authorization and playback subsystem.

Provides specific exception types for each failure mode so the login
boundary can turn them into precise user-facing messages.
"""

from __future__ import annotations

from typing import Any


class OAuth2Error(Exception):
    """Base exception for all authorization related errors."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when client id, secret, or redirect URI are missing or invalid.

    Always raised before any network call is made.
    """

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class InvalidLengthError(PKCEError):
    """Raised when a code verifier length falls outside 43-128."""

    pass


class EncodingError(PKCEError):
    """Raised when the SHA-256 primitive is unavailable in this environment."""

    pass


class StorageError(OAuth2Error):
    """Raised when the stored code verifier is absent or unreadable.

    Aborts the current login attempt only.
    """

    pass


class AuthorizationError(OAuth2Error):
    """Raised when user authorization fails or navigation to the provider fails."""

    pass


class AuthorizationCallbackError(OAuth2Error):
    """Raised when the return redirect is malformed."""

    pass


class NetworkError(OAuth2Error):
    """Raised on transport failures. Never retried automatically."""

    pass


class TokenExchangeError(OAuth2Error):
    """Raised when the token endpoint answers with a non-success response.

    Carries the provider's raw error payload so callers can report it as-is.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DeviceError(OAuth2Error):
    """Raised for remote playback client initialization, auth, or account errors."""

    def __init__(self, message: str, kind: str | None = None):
        super().__init__(message)
        self.kind = kind


class PlaybackNotReadyError(DeviceError):
    """Raised when playback is requested without a token or a ready device."""

    pass


class PlaybackError(OAuth2Error):
    """Raised when the playback endpoint rejects a play request."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CatalogError(OAuth2Error):
    """Raised when the catalog search endpoint answers with an error."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
