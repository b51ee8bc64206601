"""Authorization code exchange.

Turns the return redirect into an access token. Each authorization code is
redeemed at most once: providers invalidate a code after its first use,
successful or not, so nothing here retries.
"""

from __future__ import annotations

import logging

from tunegate.auth.models.errors import AuthorizationError, StorageError
from tunegate.auth.models.flow import ExchangeState
from tunegate.auth.models.tokens import TokenRequest, TokenState
from tunegate.auth.services.flow import Browser, clean_return_url, parse_return_url
from tunegate.auth.services.storage import VerifierStore
from tunegate.auth.services.tokens import OAuth2TokenManager
from tunegate.session.state import SessionState

logger = logging.getLogger(__name__)


class CodeExchanger:
    """State machine for redeeming an authorization code.

    States: IDLE -> EXCHANGING -> AUTHENTICATED | FAILED. Both outcomes are
    terminal for the code that produced them. A different, unseen code (a new
    login attempt) starts a fresh exchange.
    """

    def __init__(
        self,
        token_endpoint: str,
        token_manager: OAuth2TokenManager,
        verifier_store: VerifierStore,
        session_state: SessionState,
        browser: Browser,
    ):
        self.token_endpoint = token_endpoint
        self.token_manager = token_manager
        self.verifier_store = verifier_store
        self.session_state = session_state
        self.browser = browser

        self._state = ExchangeState.IDLE
        self._redeemed_codes: set[str] = set()

    @property
    def state(self) -> ExchangeState:
        return self._state

    def has_redeemed(self, code: str) -> bool:
        return code in self._redeemed_codes

    async def handle_return(
        self, return_url: str, client_id: str, redirect_uri: str
    ) -> TokenState | None:
        """Process the address the provider redirected back to.

        Returns:
            The new token state, or None if the address carries no code

        Raises:
            AuthorizationError: The provider reported an error (e.g. consent denied)
            StorageError: A code arrived but no verifier is stored
            TokenExchangeError: The token endpoint rejected the code
            NetworkError: The token endpoint could not be reached
        """
        auth_response = parse_return_url(return_url)

        if auth_response.is_empty():
            return None

        if auth_response.is_error():
            self._state = ExchangeState.FAILED
            self._end_attempt(return_url)
            logger.warning(
                f"Authorization returned error: {auth_response.error} - "
                f"{auth_response.error_description}"
            )
            raise AuthorizationError(
                f"Authorization failed: {auth_response.error} "
                f"({auth_response.error_description or ''})"
            )

        code = auth_response.code
        if self.has_redeemed(code):
            logger.warning("Ignoring an authorization code that was already redeemed")
            self.browser.replace_url(clean_return_url(return_url))
            return None

        try:
            verifier = self.verifier_store.require()
        except StorageError:
            self._redeemed_codes.add(code)
            self._state = ExchangeState.FAILED
            self.browser.replace_url(clean_return_url(return_url))
            logger.warning("Authorization code received but no code verifier stored")
            raise

        return await self.exchange_code(
            code, verifier, client_id, redirect_uri, return_url=return_url
        )

    async def exchange_code(
        self,
        code: str,
        verifier: str,
        client_id: str,
        redirect_uri: str,
        return_url: str | None = None,
    ) -> TokenState:
        """Redeem ``code`` for an access token and store it in the session.

        On success the stored verifier is erased and the code is stripped from
        the visible address. On failure the verifier is erased too and the
        error is raised to the caller.

        Raises:
            AuthorizationError: An exchange is already running, or the code
                was already redeemed
            TokenExchangeError: Non-success token response (raw body attached)
            NetworkError: Transport failure
        """
        if self._state is ExchangeState.EXCHANGING:
            raise AuthorizationError("A code exchange is already in progress")
        if self.has_redeemed(code):
            raise AuthorizationError("Authorization code has already been redeemed")

        self._redeemed_codes.add(code)
        self._state = ExchangeState.EXCHANGING

        token_request = TokenRequest(
            token_endpoint=self.token_endpoint,
            code=code,
            redirect_uri=redirect_uri,
            client_id=client_id,
            code_verifier=verifier,
        )

        # FAILED unless the token lands in the session, cancellation included
        outcome = ExchangeState.FAILED
        try:
            token_response = await self.token_manager.exchange_code_for_token(
                token_request
            )
            token_state = token_response.to_token_state()
            self.session_state.set_token(token_state)
            outcome = ExchangeState.AUTHENTICATED
        finally:
            self._state = outcome
            self._end_attempt(return_url or redirect_uri)

        logger.info(f"Authorization code exchanged for client {client_id}")
        return token_state

    def _end_attempt(self, return_url: str) -> None:
        """Erase the verifier and strip the code from the visible address."""
        try:
            self.verifier_store.clear()
        except StorageError as e:
            logger.warning(f"Failed to clear code verifier: {e}")
        self.browser.replace_url(clean_return_url(return_url))
