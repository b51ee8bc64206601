"""Remote playback client events and the channel that carries them.

The remote client adapter publishes events into a ``PlayerEventChannel``;
the device tracker consumes them in order. Tests publish into the same
channel to drive the tracker without a network-connected player.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str | None]]

PlayerErrorKind = Literal["initialization", "authentication", "account"]


@dataclass(frozen=True)
class PlayerReady:
    """The remote client registered a playback device."""

    device_id: str


@dataclass(frozen=True)
class PlayerNotReady:
    """The device went offline."""

    device_id: str | None = None


@dataclass(frozen=True)
class PlayerError:
    """Initialization, authentication, or account error from the remote client."""

    kind: PlayerErrorKind
    message: str
    payload: Any = None


PlayerEvent = PlayerReady | PlayerNotReady | PlayerError

# Listener names used by browser-hosted playback SDKs
_ERROR_LISTENERS: dict[str, PlayerErrorKind] = {
    "initialization_error": "initialization",
    "authentication_error": "authentication",
    "account_error": "account",
}


def event_from_listener(name: str, payload: dict[str, Any] | None) -> PlayerEvent:
    """Translate an SDK listener callback into a player event.

    Raises:
        ValueError: For listener names this package does not track
    """
    payload = payload or {}
    if name == "ready":
        device_id = payload.get("device_id")
        if not device_id:
            raise ValueError("ready event without device_id")
        return PlayerReady(device_id=device_id)
    if name == "not_ready":
        return PlayerNotReady(device_id=payload.get("device_id"))
    if name in _ERROR_LISTENERS:
        return PlayerError(
            kind=_ERROR_LISTENERS[name],
            message=str(payload.get("message", name)),
            payload=payload,
        )
    raise ValueError(f"Unknown player listener: {name}")


class PlayerEventChannel:
    """Single-consumer FIFO of player events."""

    def __init__(self):
        self._queue: asyncio.Queue[PlayerEvent | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: PlayerEvent) -> None:
        """Enqueue an event. Events published after close are dropped."""
        if self._closed:
            logger.debug(f"Dropping player event after channel close: {event}")
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[PlayerEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class RemotePlayer(Protocol):
    """Adapter around a provider-hosted playback client.

    ``connect`` receives a callback that supplies the current access token on
    demand; implementations must call it whenever they need a token rather
    than caching the first value.
    """

    events: PlayerEventChannel

    async def load(self) -> None: ...

    async def connect(self, token_provider: TokenProvider) -> bool: ...

    async def disconnect(self) -> None: ...
