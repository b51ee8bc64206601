"""Token state and token endpoint models.

Contains the in-memory access token state and the request/response shapes
for both grants this package speaks: authorization code with PKCE, and
client credentials for the catalog collaborator.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


@dataclass
class TokenState:
    """Access token held for the lifetime of the authenticated session.

    Expiry is recorded from the provider's ``expires_in`` but not enforced.
    """

    access_token: str = field(repr=False)
    token_type: str = "Bearer"
    expires_at: float | None = None  # Unix timestamp
    scope: str | None = None

    @property
    def scopes(self) -> set[str]:
        return set(self.scope.split()) if self.scope else set()

    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3).

    ``redirect_uri`` must be byte-identical to the one sent to the
    authorization endpoint.
    """

    token_endpoint: str
    code: str = field(repr=False)
    redirect_uri: str
    client_id: str
    code_verifier: str = field(repr=False)  # RFC 7636 PKCE

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Returns:
            Dictionary suitable for httpx data parameter
        """
        return {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }


@dataclass(frozen=True)
class ClientCredentialsRequest:
    """Client credentials grant parameters (RFC 6749 Section 4.4).

    Used only by the catalog collaborator. Never carries a PKCE verifier.
    """

    token_endpoint: str
    client_id: str
    client_secret: str = field(repr=False)

    grant_type: str = "client_credentials"

    def to_form_data(self) -> dict[str, str]:
        return {"grant_type": self.grant_type}

    def basic_auth_header(self) -> str:
        """HTTP Basic credentials: base64(client_id:client_secret)."""
        raw = f"{self.client_id}:{self.client_secret}".encode("utf-8")
        return f"Basic {base64.b64encode(raw).decode('ascii')}"


class TokenResponse(BaseModel):
    """Token endpoint response (RFC 6749 Section 5).

    Represents both successful responses (Section 5.1) and error
    responses (Section 5.2). Unknown provider fields are kept.
    """

    model_config = ConfigDict(extra="allow")

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return self.error is None and bool(self.access_token)

    def is_error(self) -> bool:
        """Check if token response indicates an error."""
        return self.error is not None

    def calculate_expires_at(self) -> float | None:
        if self.expires_in is None:
            return None
        return time.time() + self.expires_in

    def to_token_state(self) -> TokenState:
        """Convert successful token response to TokenState.

        Raises:
            ValueError: If response is not successful
        """
        if not self.is_success():
            raise ValueError("Cannot convert error response to TokenState")

        return TokenState(
            access_token=self.access_token,
            token_type=self.token_type,
            expires_at=self.calculate_expires_at(),
            scope=self.scope,
        )
