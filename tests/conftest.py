from unittest.mock import MagicMock

import pytest

from tunegate.auth.services.storage import InMemoryVerifierStore
from tunegate.playback.events import PlayerEventChannel, TokenProvider
from tunegate.session.state import SessionState


class FakeBrowser:
    """Records navigation and address rewrites instead of opening anything."""

    def __init__(self, opens: bool = True):
        self.opens = opens
        self.navigated: list[str] = []
        self.replaced: list[str] = []

    def navigate(self, url: str) -> bool:
        self.navigated.append(url)
        return self.opens

    def replace_url(self, url: str) -> None:
        self.replaced.append(url)


class FakePlayer:
    """Remote player whose events are published by the test."""

    def __init__(self, connect_result: bool = True):
        self.events = PlayerEventChannel()
        self.connect_result = connect_result
        self.load_error: Exception | None = None
        self.loaded = False
        self.connected = False
        self.disconnected = False
        self.token_provider: TokenProvider | None = None

    async def load(self) -> None:
        if self.load_error:
            raise self.load_error
        self.loaded = True

    async def connect(self, token_provider: TokenProvider) -> bool:
        self.token_provider = token_provider
        self.connected = self.connect_result
        return self.connect_result

    async def disconnect(self) -> None:
        self.disconnected = True
        self.events.close()


def make_response(status_code: int, body=None, text: str | None = None) -> MagicMock:
    """httpx.Response stand-in with a JSON body or raw text."""
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("not JSON")
        response.text = text or ""
    else:
        response.json.return_value = body
        response.text = text if text is not None else str(body)
    return response


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def verifier_store() -> InMemoryVerifierStore:
    return InMemoryVerifierStore()


@pytest.fixture
def session_state() -> SessionState:
    return SessionState()


@pytest.fixture
def player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def response_factory():
    return make_response
