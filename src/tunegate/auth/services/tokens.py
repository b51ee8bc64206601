"""Token endpoint client.

Implements the RFC 6749 token endpoint interactions this package needs:
authorization code exchange with PKCE (RFC 7636), and the client
credentials grant used by the catalog collaborator.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from tunegate.auth.models.errors import NetworkError, TokenExchangeError
from tunegate.auth.models.tokens import (
    ClientCredentialsRequest,
    TokenRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)


class OAuth2TokenManager:
    """Talks to the provider's token endpoint.

    Handles:
    - Authorization code to access token exchange (RFC 6749 Section 4.1.3)
    - Client credentials grant with HTTP Basic auth (RFC 6749 Section 4.4)

    Uses application/x-www-form-urlencoded encoding as required by OAuth 2.1.
    Nothing is retried: a code is invalidated provider-side after first use.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize token manager.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest
    ) -> TokenResponse:
        """Exchange an authorization code for an access token.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenResponse: Successful token response

        Raises:
            NetworkError: On transport failure
            TokenExchangeError: On a non-success response, carrying the raw body
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        form_data = token_request.to_form_data()

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"HTTP error during token exchange: {e}") from e

        return self._parse_token_response(response)

    async def request_client_credentials_token(
        self, credentials_request: ClientCredentialsRequest
    ) -> TokenResponse:
        """Obtain an application token with the client credentials grant.

        Raises:
            NetworkError: On transport failure
            TokenExchangeError: On a non-success response, carrying the raw body
        """
        logger.debug(
            f"Requesting client credentials token at "
            f"{credentials_request.token_endpoint} for client "
            f"{credentials_request.client_id}"
        )

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
            "Authorization": credentials_request.basic_auth_header(),
        }

        try:
            response = await self._http_client.post(
                credentials_request.token_endpoint,
                data=credentials_request.to_form_data(),
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise NetworkError(
                f"HTTP error during client credentials request: {e}"
            ) from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse a token endpoint response.

        Raises:
            TokenExchangeError: For error statuses, error payloads, or a
                success payload without ``access_token``
        """
        body = _raw_body(response)

        if not 200 <= response.status_code < 300:
            logger.warning(
                f"Token request failed with {response.status_code}: {body}"
            )
            raise TokenExchangeError(
                f"Token request failed with status {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        if not isinstance(body, dict):
            raise TokenExchangeError(
                "Token response is not a JSON object",
                status_code=response.status_code,
                body=body,
            )

        try:
            token_response = TokenResponse(**body)
        except ValidationError as e:
            raise TokenExchangeError(
                f"Invalid token response format: {e}",
                status_code=response.status_code,
                body=body,
            ) from e

        if not token_response.is_success():
            raise TokenExchangeError(
                "Token response missing required access_token",
                status_code=response.status_code,
                body=body,
            )

        logger.info("Token request successful")
        return token_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()


def _raw_body(response: httpx.Response) -> Any:
    """Decoded JSON body when possible, otherwise the response text."""
    try:
        return response.json()
    except ValueError:
        return response.text
