"""Authorization redirect orchestration.

Builds the provider authorization URL, persists the code verifier, and hands
control to the provider's login page. Also parses the return redirect.
"""

from __future__ import annotations

import logging
import webbrowser
from collections.abc import Iterable
from typing import Protocol
from urllib.parse import parse_qs, urlencode, urlparse

from tunegate.auth.models.errors import (
    AuthorizationCallbackError,
    AuthorizationError,
    ConfigurationError,
)
from tunegate.auth.models.flow import AuthorizationRequest, AuthorizationResponse
from tunegate.auth.primitives.pkce import PKCEManager
from tunegate.auth.services.security import validate_redirect_uri
from tunegate.auth.services.storage import VerifierStore

logger = logging.getLogger(__name__)

AUTHORIZATION_RESULT_PARAMS = frozenset(
    {"code", "state", "error", "error_description", "error_uri"}
)


class Browser(Protocol):
    """The user's address bar.

    ``navigate`` leaves the application for another page. ``replace_url``
    rewrites the visible address in place, without a network round trip.
    """

    def navigate(self, url: str) -> bool: ...

    def replace_url(self, url: str) -> None: ...


class SystemBrowser:
    """Browser backed by the platform's default web browser.

    The visible address cannot be rewritten from outside the browser, so
    ``replace_url`` only records it; the loopback callback page performs the
    in-page rewrite.
    """

    def __init__(self):
        self.current_url: str | None = None

    def navigate(self, url: str) -> bool:
        return webbrowser.open(url)

    def replace_url(self, url: str) -> None:
        self.current_url = url


def normalize_scopes(scopes: Iterable[str] | str | None) -> tuple[str, ...]:
    """Deduplicate scopes, keeping first-seen order. Accepts a space-joined string."""
    if scopes is None:
        return ()
    if isinstance(scopes, str):
        scopes = scopes.split()
    seen: dict[str, None] = {}
    for scope in scopes:
        scope = scope.strip()
        if scope:
            seen.setdefault(scope, None)
    return tuple(seen)


class AuthorizationRedirector:
    """Starts a PKCE authorization code flow.

    Handles:
    - PKCE parameter generation
    - Verifier persistence before navigation
    - Authorization URL construction
    - Navigation to the provider's login page
    """

    def __init__(
        self,
        verifier_store: VerifierStore,
        browser: Browser,
        pkce_manager: PKCEManager | None = None,
    ):
        self.verifier_store = verifier_store
        self.browser = browser
        self._pkce_manager = pkce_manager or PKCEManager()

    def build_authorization_url(
        self,
        authorization_endpoint: str,
        client_id: str,
        redirect_uri: str,
        scopes: Iterable[str] | str | None,
        challenge: str,
    ) -> str:
        """Build the provider authorization URL for a code challenge.

        Raises:
            ConfigurationError: If client id or redirect URI is missing or invalid
        """
        if not client_id:
            raise ConfigurationError("client_id is required")
        if not redirect_uri or not validate_redirect_uri(redirect_uri):
            raise ConfigurationError(f"Invalid redirect_uri: {redirect_uri!r}")

        auth_request = AuthorizationRequest(
            authorization_endpoint=authorization_endpoint,
            client_id=client_id,
            redirect_uri=redirect_uri,
            code_challenge=challenge,
            scopes=normalize_scopes(scopes),
        )
        return auth_request.build_authorization_url()

    async def start_authorization_flow(
        self,
        authorization_endpoint: str,
        client_id: str,
        redirect_uri: str,
        scopes: Iterable[str] | str | None = None,
    ) -> str:
        """Generate PKCE parameters, store the verifier, and navigate away.

        Returns:
            The authorization URL the browser was sent to

        Raises:
            ConfigurationError: If client id or redirect URI is invalid
            PKCEError: If PKCE generation fails
            StorageError: If the verifier cannot be persisted
            AuthorizationError: If navigation to the provider fails
        """
        pkce_params = self._pkce_manager.generate_parameters()
        authorization_url = self.build_authorization_url(
            authorization_endpoint,
            client_id,
            redirect_uri,
            scopes,
            pkce_params.code_challenge,
        )

        # Navigation discards in-memory state
        self.verifier_store.save(pkce_params.code_verifier)

        logger.info(f"Generated authorization URL for client {client_id}")

        try:
            opened = self.browser.navigate(authorization_url)
        except Exception as e:
            self.verifier_store.clear()
            raise AuthorizationError(
                f"Failed to navigate to the authorization page: {e}"
            ) from e

        if opened is False:
            self.verifier_store.clear()
            raise AuthorizationError(
                f"Could not open the authorization page; visit {authorization_url}"
            )

        return authorization_url


def parse_return_url(return_url: str) -> AuthorizationResponse:
    """Parse the return redirect into an AuthorizationResponse.

    Raises:
        AuthorizationCallbackError: If the URL is malformed
    """
    try:
        parsed = urlparse(return_url)
        query_params = parse_qs(parsed.query)
    except ValueError as e:
        raise AuthorizationCallbackError(f"Failed to parse return URL: {e}") from e

    # Extract single values from query parameter lists
    def get_single_param(key: str) -> str | None:
        values = query_params.get(key, [])
        return values[0] if values else None

    return AuthorizationResponse(
        code=get_single_param("code"),
        error=get_single_param("error"),
        error_description=get_single_param("error_description"),
        error_uri=get_single_param("error_uri"),
    )


def clean_return_url(return_url: str) -> str:
    """Drop the authorization result parameters, keeping anything else."""
    parsed = urlparse(return_url)
    kept = [
        (key, value)
        for key, values in parse_qs(parsed.query, keep_blank_values=True).items()
        if key not in AUTHORIZATION_RESULT_PARAMS
        for value in values
    ]
    return parsed._replace(query=urlencode(kept), fragment="").geturl()
