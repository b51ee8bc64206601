"""Remote playback device readiness tracking."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from tunegate.auth.models.errors import DeviceError
from tunegate.playback.events import (
    PlayerError,
    PlayerEvent,
    PlayerNotReady,
    PlayerReady,
    RemotePlayer,
)
from tunegate.session.state import SessionState

logger = logging.getLogger(__name__)


class DeviceState(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    READY = "ready"
    OFFLINE = "offline"
    ERROR = "error"


ErrorCallback = Callable[[DeviceError], Awaitable[None]]


class DeviceReadinessTracker:
    """Tracks whether the remote playback device is usable.

    Transitions:
    - UNINITIALIZED -> CONNECTING on ``start()`` once a token exists
    - CONNECTING -> READY when the player reports a device id
    - READY -> OFFLINE when the device goes offline (no reconnect)
    - CONNECTING | READY -> OFFLINE on ``stop()``
    - CONNECTING | READY | OFFLINE -> ERROR on player errors (no retry)

    Events arrive over the player's channel and may be late or duplicated;
    events that do not apply to the current state are ignored.
    """

    def __init__(self, session_state: SessionState, player: RemotePlayer):
        self.session_state = session_state
        self.player = player

        self._state = DeviceState.UNINITIALIZED
        self._device_id: str | None = None
        self._last_error: DeviceError | None = None
        self._event_task: asyncio.Task[None] | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def state(self) -> DeviceState:
        return self._state

    @property
    def last_error(self) -> DeviceError | None:
        return self._last_error

    @property
    def running(self) -> bool:
        """True while the event consumer is processing player events."""
        return self._event_task is not None and not self._event_task.done()

    def current_device_id(self) -> str | None:
        """Device id to play on, or None when the device is not ready."""
        if self._state is not DeviceState.READY:
            return None
        return self._device_id

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a callback invoked with each DeviceError."""
        self._on_error = callback

    # ================================
    # Lifecycle
    # ================================

    async def start(self) -> bool:
        """Load the remote player and connect it.

        Returns:
            True if a connect request was issued, False if skipped because no
            token is available or the tracker already started

        Raises:
            DeviceError: If loading or connecting the player fails
        """
        if not self.session_state.is_authenticated:
            logger.debug("Not connecting playback device: no access token yet")
            return False
        if self._state is not DeviceState.UNINITIALIZED:
            logger.debug(f"Playback device already started ({self._state.value})")
            return False

        self._state = DeviceState.CONNECTING
        self._event_task = asyncio.create_task(
            self._event_loop(), name="player_events"
        )

        try:
            await self.player.load()
            connected = await self.player.connect(self.session_state.get_access_token)
        except Exception as e:
            error = DeviceError(f"Failed to connect playback device: {e}", "initialization")
            await self._cancel_event_task()
            await self._fail(error)
            raise error from e

        if not connected:
            error = DeviceError("Playback device refused to connect", "initialization")
            await self._cancel_event_task()
            await self._fail(error)
            raise error

        logger.info("Playback device connecting")
        return True

    async def stop(self) -> None:
        """Disconnect the player and stop consuming events. Safe to call twice.

        A connecting or ready device goes OFFLINE; ERROR is kept.
        """
        await self._cancel_event_task()

        if self._state is DeviceState.UNINITIALIZED:
            return

        try:
            await self.player.disconnect()
        except Exception as e:
            logger.warning(f"Error disconnecting playback device: {e}")

        self._device_id = None
        if self._state in (DeviceState.CONNECTING, DeviceState.READY):
            self._state = DeviceState.OFFLINE
            logger.info("Playback device disconnected")

    async def _cancel_event_task(self) -> None:
        if self._event_task is None:
            return
        self._event_task.cancel()
        try:
            await self._event_task
        except asyncio.CancelledError:
            pass
        self._event_task = None

    # ================================
    # Event handling
    # ================================

    async def _event_loop(self) -> None:
        """Applies player events until the channel closes or the task is cancelled."""
        async for event in self.player.events:
            try:
                await self.handle_event(event)
            except Exception as e:
                logger.warning(f"Error handling player event {event}: {e}")

    async def handle_event(self, event: PlayerEvent) -> None:
        """Apply one player event to the state machine."""
        if isinstance(event, PlayerReady):
            self._handle_ready(event)
        elif isinstance(event, PlayerNotReady):
            self._handle_not_ready(event)
        elif isinstance(event, PlayerError):
            await self._handle_error(event)
        else:
            logger.warning(f"Unknown player event: {event!r}")

    def _handle_ready(self, event: PlayerReady) -> None:
        if self._state not in (DeviceState.CONNECTING, DeviceState.READY):
            logger.debug(f"Ignoring ready event in state {self._state.value}")
            return
        if self._state is DeviceState.READY and self._device_id == event.device_id:
            return

        self._device_id = event.device_id
        self._state = DeviceState.READY
        logger.info(f"Playback device ready: {event.device_id}")

    def _handle_not_ready(self, event: PlayerNotReady) -> None:
        if self._state is not DeviceState.READY:
            logger.debug(f"Ignoring offline event in state {self._state.value}")
            return
        if event.device_id is not None and event.device_id != self._device_id:
            logger.debug(f"Ignoring offline event for stale device {event.device_id}")
            return

        logger.warning(f"Playback device went offline: {self._device_id}")
        self._device_id = None
        self._state = DeviceState.OFFLINE

    async def _handle_error(self, event: PlayerError) -> None:
        if self._state in (DeviceState.UNINITIALIZED, DeviceState.ERROR):
            logger.debug(
                f"Ignoring {event.kind} error in state {self._state.value}: "
                f"{event.message}"
            )
            return

        await self._fail(
            DeviceError(f"Playback {event.kind} error: {event.message}", event.kind)
        )

    async def _fail(self, error: DeviceError) -> None:
        logger.error(str(error))
        self._device_id = None
        self._state = DeviceState.ERROR
        self._last_error = error

        if self._on_error:
            try:
                await self._on_error(error)
            except Exception as e:
                logger.warning(f"Device error callback failed: {e}")
