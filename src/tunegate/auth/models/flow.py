"""Authorization flow models.

Contains models for the authorization request, the return redirect, and
the code exchange lifecycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlencode


class ExchangeState(str, Enum):
    """Lifecycle of a single authorization code exchange."""

    IDLE = "idle"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the PKCE code flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: str = "S256"
    scopes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def scope(self) -> str:
        """Space-delimited scope string, in the order the scopes were given."""
        return " ".join(self.scopes)

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL.

        The challenge goes under the standard ``code_challenge`` name.
        """
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "code_challenge_method": self.code_challenge_method,
            "code_challenge": self.code_challenge,
        }

        if self.scopes:
            params["scope"] = self.scope

        return f"{self.authorization_endpoint}?{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationResponse:
    code: str | None = None
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def is_success(self) -> bool:
        return self.error is None and self.code is not None

    def is_error(self) -> bool:
        return self.error is not None

    def is_empty(self) -> bool:
        """True for a plain visit to the app with no authorization result."""
        return self.code is None and self.error is None
