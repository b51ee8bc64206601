"""Tests for token endpoint interactions.

Covers both grants:
- Authorization code exchange with PKCE verifier
- Client credentials with HTTP Basic auth
- Error payloads carried through TokenExchangeError
"""

import base64
from unittest.mock import AsyncMock

import httpx
import pytest

from tunegate.auth.models.errors import NetworkError, TokenExchangeError
from tunegate.auth.models.tokens import ClientCredentialsRequest, TokenRequest
from tunegate.auth.services.tokens import OAuth2TokenManager


def _token_request(code: str = "auth-code-123") -> TokenRequest:
    return TokenRequest(
        token_endpoint="https://auth.example.com/api/token",
        code=code,
        redirect_uri="http://localhost:3000",
        client_id="client-456",
        code_verifier="A" * 43,
    )


class TestTokenExchange:
    def setup_method(self):
        # Arrange
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()

    async def test_successful_exchange_sends_form_encoded_pkce_request(
        self, response_factory
    ):
        # Arrange
        self.token_manager._http_client.post.return_value = response_factory(
            200,
            {
                "access_token": "access-token-xyz",
                "token_type": "Bearer",
                "expires_in": 3600,
                "scope": "streaming user-read-email",
            },
        )

        # Act
        token_response = await self.token_manager.exchange_code_for_token(
            _token_request()
        )

        # Assert
        assert token_response.is_success()
        assert token_response.access_token == "access-token-xyz"
        assert token_response.expires_in == 3600

        call_args = self.token_manager._http_client.post.call_args
        assert call_args[0][0] == "https://auth.example.com/api/token"

        form_data = call_args[1]["data"]
        assert form_data == {
            "grant_type": "authorization_code",
            "code": "auth-code-123",
            "redirect_uri": "http://localhost:3000",
            "client_id": "client-456",
            "code_verifier": "A" * 43,
        }

        headers = call_args[1]["headers"]
        assert headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert "Authorization" not in headers

    async def test_invalid_grant_raises_with_raw_body(self, response_factory):
        # Arrange
        self.token_manager._http_client.post.return_value = response_factory(
            400, {"error": "invalid_grant"}
        )

        # Act & Assert
        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code_for_token(_token_request())

        assert exc_info.value.status_code == 400
        assert exc_info.value.body == {"error": "invalid_grant"}

    async def test_non_json_error_body_is_kept_as_text(self, response_factory):
        self.token_manager._http_client.post.return_value = response_factory(
            502, text="Bad Gateway"
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code_for_token(_token_request())

        assert exc_info.value.body == "Bad Gateway"

    async def test_success_status_without_access_token_raises(self, response_factory):
        self.token_manager._http_client.post.return_value = response_factory(
            200, {"token_type": "Bearer"}
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.exchange_code_for_token(_token_request())

        assert "access_token" in str(exc_info.value)

    async def test_transport_failure_raises_network_error(self):
        self.token_manager._http_client.post.side_effect = httpx.ConnectError(
            "connection refused"
        )

        with pytest.raises(NetworkError):
            await self.token_manager.exchange_code_for_token(_token_request())

        self.token_manager._http_client.post.assert_awaited_once()

    async def test_close_closes_http_client(self):
        await self.token_manager.close()
        self.token_manager._http_client.aclose.assert_awaited_once()


class TestClientCredentials:
    def setup_method(self):
        self.token_manager = OAuth2TokenManager()
        self.token_manager._http_client = AsyncMock()
        self.request = ClientCredentialsRequest(
            token_endpoint="https://auth.example.com/api/token",
            client_id="client-456",
            client_secret="secret-789",
        )

    async def test_uses_basic_auth_and_no_verifier(self, response_factory):
        # Arrange
        self.token_manager._http_client.post.return_value = response_factory(
            200, {"access_token": "app-token", "token_type": "Bearer", "expires_in": 3600}
        )

        # Act
        token_response = await self.token_manager.request_client_credentials_token(
            self.request
        )

        # Assert
        assert token_response.access_token == "app-token"

        call_args = self.token_manager._http_client.post.call_args
        assert call_args[1]["data"] == {"grant_type": "client_credentials"}

        expected = base64.b64encode(b"client-456:secret-789").decode("ascii")
        assert call_args[1]["headers"]["Authorization"] == f"Basic {expected}"

    async def test_rejected_credentials_raise(self, response_factory):
        self.token_manager._http_client.post.return_value = response_factory(
            401, {"error": "invalid_client"}
        )

        with pytest.raises(TokenExchangeError) as exc_info:
            await self.token_manager.request_client_credentials_token(self.request)

        assert exc_info.value.body == {"error": "invalid_client"}

    def test_secret_hidden_from_repr(self):
        assert "secret-789" not in repr(self.request)
