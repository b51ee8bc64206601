"""Session-scoped holder of the current access token."""

from __future__ import annotations

import logging

from tunegate.auth.models.tokens import TokenState

logger = logging.getLogger(__name__)


class SessionState:
    """Holds at most one access token for the authenticated session.

    Starts empty. Only the code exchanger writes it; the catalog, the device
    tracker and the playback service read it. Setting a new token silently
    supersedes the previous one. The token is never persisted.
    """

    def __init__(self):
        self._token_state: TokenState | None = None

    @property
    def token_state(self) -> TokenState | None:
        return self._token_state

    @property
    def access_token(self) -> str | None:
        """Current access token, or None before a successful exchange."""
        if self._token_state is None:
            return None
        return self._token_state.access_token or None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def has_scope(self, scope: str) -> bool:
        """True if the current token was granted ``scope``.

        Providers may omit ``scope`` from the token response; that reads as
        no known scopes.
        """
        return self._token_state is not None and scope in self._token_state.scopes

    def set_token(self, token_state: TokenState) -> None:
        if not token_state.access_token:
            raise ValueError("Cannot store an empty access token")
        if self._token_state is not None:
            logger.debug("Replacing existing access token")
        self._token_state = token_state
        logger.info("Session authenticated")

    async def get_access_token(self) -> str | None:
        """Token-on-demand callback for clients that authenticate lazily.

        Reads the token at call time, so a replaced token is observed by
        later calls.
        """
        return self.access_token
