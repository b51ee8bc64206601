"""Login session orchestration.

``LoginCoordinator`` is the session context: it owns the session state, the
verifier slot and every component that reads or writes them, and it is the
boundary where errors become user-visible messages.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from tunegate.auth.models.errors import (
    AuthorizationCallbackError,
    AuthorizationError,
    CatalogError,
    ConfigurationError,
    DeviceError,
    NetworkError,
    OAuth2Error,
    PKCEError,
    PlaybackError,
    StorageError,
    TokenExchangeError,
)
from tunegate.auth.primitives.pkce import PKCEManager
from tunegate.auth.services.exchange import CodeExchanger
from tunegate.auth.services.flow import AuthorizationRedirector, Browser, SystemBrowser
from tunegate.auth.services.storage import (
    InMemoryVerifierStore,
    JsonFileVerifierStore,
    VerifierStore,
)
from tunegate.auth.services.tokens import OAuth2TokenManager
from tunegate.collaborators.catalog import CatalogSearchService
from tunegate.collaborators.playback import PlaybackSessionService
from tunegate.config import AppConfig
from tunegate.playback.device import DeviceReadinessTracker
from tunegate.playback.events import RemotePlayer
from tunegate.session.state import SessionState

logger = logging.getLogger(__name__)

UserMessageCallback = Callable[[str], Awaitable[None]]


def user_message_for(error: OAuth2Error) -> str:
    """Short, user-facing description of an error."""
    if isinstance(error, ConfigurationError):
        return f"The app is not configured correctly: {error}"
    if isinstance(error, StorageError):
        return "Login could not be completed because the login session was lost. Please log in again."
    if isinstance(error, TokenExchangeError):
        return f"Login failed: the provider rejected the request ({error.body})."
    if isinstance(error, AuthorizationCallbackError):
        return f"Login failed: {error}"
    if isinstance(error, AuthorizationError):
        return f"Login was not completed: {error}"
    if isinstance(error, NetworkError):
        return "Could not reach the provider. Check your connection and try again."
    if isinstance(error, DeviceError):
        return f"The player is unavailable: {error}"
    if isinstance(error, PKCEError):
        return f"Login could not be started: {error}"
    if isinstance(error, (CatalogError, PlaybackError)):
        return f"Request failed: {error}"
    return f"Unexpected error: {error}"


class LoginCoordinator:
    """Wires the login flow, the session, and its collaborators together.

    Created at app start; each ``begin_login`` is a new attempt.
    """

    def __init__(
        self,
        config: AppConfig,
        browser: Browser | None = None,
        verifier_store: VerifierStore | None = None,
        player: RemotePlayer | None = None,
        token_manager: OAuth2TokenManager | None = None,
    ):
        self.config = config
        self.session_state = SessionState()
        self.browser = browser or SystemBrowser()
        self.verifier_store = verifier_store or self._default_verifier_store(config)
        self.token_manager = token_manager or OAuth2TokenManager(
            timeout=config.http_timeout
        )

        self.redirector = AuthorizationRedirector(
            self.verifier_store,
            self.browser,
            PKCEManager(verifier_length=config.verifier_length),
        )
        self.exchanger = CodeExchanger(
            config.token_endpoint,
            self.token_manager,
            self.verifier_store,
            self.session_state,
            self.browser,
        )

        self.device_tracker: DeviceReadinessTracker | None = None
        self.playback: PlaybackSessionService | None = None
        if player is not None:
            self.device_tracker = DeviceReadinessTracker(self.session_state, player)
            self.device_tracker.on_error(self._report)
            self.playback = PlaybackSessionService(
                config.api_base_url,
                self.session_state,
                self.device_tracker,
                timeout=config.http_timeout,
            )

        secret = config.client_secret.get_secret_value() if config.client_secret else None
        self.catalog = CatalogSearchService(
            config.api_base_url,
            config.token_endpoint,
            config.client_id,
            secret,
            timeout=config.http_timeout,
        )

        self._on_user_message: UserMessageCallback | None = None

    @staticmethod
    def _default_verifier_store(config: AppConfig) -> VerifierStore:
        if config.verifier_store_path is not None:
            return JsonFileVerifierStore(config.verifier_store_path)
        return InMemoryVerifierStore()

    @property
    def is_authenticated(self) -> bool:
        return self.session_state.is_authenticated

    def on_user_message(self, callback: UserMessageCallback) -> None:
        """Register the callback that shows messages to the user."""
        self._on_user_message = callback

    async def begin_login(self) -> str | None:
        """Send the user to the provider's login page.

        Returns:
            The authorization URL, or None if the attempt could not start
        """
        try:
            return await self.redirector.start_authorization_flow(
                self.config.authorization_endpoint,
                self.config.client_id,
                self.config.redirect_uri,
                self.config.scopes,
            )
        except OAuth2Error as e:
            logger.error(f"Failed to start login: {e}")
            await self._report(e)
            return None

    async def complete_login(self, return_url: str) -> bool:
        """Handle the address the provider redirected back to.

        Exchanges the code, then connects the playback device when a player
        is configured.

        Returns:
            True if the session is now authenticated by this call
        """
        try:
            token_state = await self.exchanger.handle_return(
                return_url, self.config.client_id, self.config.redirect_uri
            )
        except OAuth2Error as e:
            logger.warning(f"Login failed: {type(e).__name__}: {e}")
            await self._report(e)
            return False

        if token_state is None:
            return False

        await self.connect_device()
        return True

    async def connect_device(self) -> bool:
        """Connect the playback device if a player and a token are available."""
        if self.device_tracker is None:
            return False
        try:
            return await self.device_tracker.start()
        except DeviceError as e:
            # Already reported through the tracker's error callback
            logger.debug(f"Device connect failed: {e}")
            return False

    async def close(self) -> None:
        if self.device_tracker is not None:
            await self.device_tracker.stop()
        if self.playback is not None:
            await self.playback.close()
        await self.catalog.close()
        await self.token_manager.close()

    async def _report(self, error: OAuth2Error) -> None:
        message = user_message_for(error)
        if self._on_user_message is None:
            logger.warning(f"User message: {message}")
            return
        try:
            await self._on_user_message(message)
        except Exception as e:
            logger.warning(f"User message callback failed: {e}")
