"""Tests for the playback device readiness state machine.

Events are published into the fake player's channel, the same path a real
remote client adapter uses.
"""

import asyncio

import pytest

from tunegate.auth.models.errors import DeviceError
from tunegate.auth.models.tokens import TokenState
from tunegate.playback.device import DeviceReadinessTracker, DeviceState
from tunegate.playback.events import PlayerError, PlayerNotReady, PlayerReady


async def drain(tracker: DeviceReadinessTracker) -> None:
    """Let the event consumer process everything already published."""
    for _ in range(10):
        if tracker.player.events._queue.empty():
            break
        await asyncio.sleep(0)
    await asyncio.sleep(0)


@pytest.fixture
def authenticated(session_state):
    session_state.set_token(TokenState(access_token="access-token-xyz"))
    return session_state


@pytest.fixture
async def tracker(authenticated, player):
    tracker = DeviceReadinessTracker(authenticated, player)
    yield tracker
    await tracker.stop()


class TestStart:
    async def test_does_not_connect_without_token(self, session_state, player):
        # Arrange
        tracker = DeviceReadinessTracker(session_state, player)

        # Act
        started = await tracker.start()

        # Assert
        assert not started
        assert tracker.state is DeviceState.UNINITIALIZED
        assert not player.loaded
        assert player.token_provider is None

    async def test_start_loads_and_connects_with_token_callback(
        self, tracker, player, authenticated
    ):
        # Act
        started = await tracker.start()

        # Assert
        assert started
        assert tracker.state is DeviceState.CONNECTING
        assert player.loaded and player.connected
        assert tracker.current_device_id() is None

        # Token is supplied on demand, so a replaced token is observed
        assert await player.token_provider() == "access-token-xyz"
        authenticated.set_token(TokenState(access_token="rotated"))
        assert await player.token_provider() == "rotated"

    async def test_second_start_is_ignored(self, tracker, player):
        await tracker.start()

        assert not await tracker.start()
        assert tracker.state is DeviceState.CONNECTING

    async def test_load_failure_moves_to_error(self, tracker, player):
        # Arrange
        player.load_error = RuntimeError("script blocked")
        reported = []

        async def on_error(error):
            reported.append(error)

        tracker.on_error(on_error)

        # Act & Assert
        with pytest.raises(DeviceError):
            await tracker.start()

        assert tracker.state is DeviceState.ERROR
        assert reported == [tracker.last_error]
        assert not tracker.running

    async def test_refused_connect_moves_to_error(self, tracker, player):
        player.connect_result = False

        with pytest.raises(DeviceError):
            await tracker.start()

        assert tracker.state is DeviceState.ERROR
        assert not tracker.running


class TestEvents:
    async def test_ready_then_offline(self, tracker, player):
        # Arrange
        await tracker.start()

        # Act
        player.events.publish(PlayerReady(device_id="dev-123"))
        await drain(tracker)

        # Assert
        assert tracker.state is DeviceState.READY
        assert tracker.current_device_id() == "dev-123"

        # Act
        player.events.publish(PlayerNotReady(device_id="dev-123"))
        await drain(tracker)

        # Assert
        assert tracker.state is DeviceState.OFFLINE
        assert tracker.current_device_id() is None

    async def test_duplicate_ready_is_idempotent(self, tracker):
        await tracker.start()

        await tracker.handle_event(PlayerReady(device_id="dev-123"))
        await tracker.handle_event(PlayerReady(device_id="dev-123"))

        assert tracker.state is DeviceState.READY
        assert tracker.current_device_id() == "dev-123"

    async def test_late_ready_after_offline_does_not_reconnect(self, tracker):
        await tracker.start()
        await tracker.handle_event(PlayerReady(device_id="dev-123"))
        await tracker.handle_event(PlayerNotReady(device_id="dev-123"))

        await tracker.handle_event(PlayerReady(device_id="dev-123"))

        assert tracker.state is DeviceState.OFFLINE
        assert tracker.current_device_id() is None

    async def test_offline_for_stale_device_is_ignored(self, tracker):
        await tracker.start()
        await tracker.handle_event(PlayerReady(device_id="dev-123"))

        await tracker.handle_event(PlayerNotReady(device_id="dev-old"))

        assert tracker.current_device_id() == "dev-123"

    async def test_events_before_start_are_ignored(self, tracker):
        await tracker.handle_event(PlayerReady(device_id="dev-123"))
        await tracker.handle_event(PlayerError(kind="account", message="premium only"))

        assert tracker.state is DeviceState.UNINITIALIZED
        assert tracker.current_device_id() is None

    @pytest.mark.parametrize("kind", ["initialization", "authentication", "account"])
    async def test_player_errors_move_to_error_and_are_surfaced(self, tracker, kind):
        # Arrange
        reported = []

        async def on_error(error):
            reported.append(error)

        tracker.on_error(on_error)
        await tracker.start()
        await tracker.handle_event(PlayerReady(device_id="dev-123"))

        # Act
        await tracker.handle_event(PlayerError(kind=kind, message="boom"))

        # Assert
        assert tracker.state is DeviceState.ERROR
        assert tracker.current_device_id() is None
        assert len(reported) == 1
        assert reported[0].kind == kind

    async def test_error_is_terminal(self, tracker):
        await tracker.start()
        await tracker.handle_event(PlayerError(kind="authentication", message="bad token"))

        await tracker.handle_event(PlayerReady(device_id="dev-123"))

        assert tracker.state is DeviceState.ERROR
        assert tracker.current_device_id() is None

    async def test_error_from_offline(self, tracker):
        await tracker.start()
        await tracker.handle_event(PlayerReady(device_id="dev-123"))
        await tracker.handle_event(PlayerNotReady())

        await tracker.handle_event(PlayerError(kind="account", message="expired"))

        assert tracker.state is DeviceState.ERROR

    async def test_failing_error_callback_does_not_break_tracker(self, tracker):
        async def on_error(error):
            raise RuntimeError("ui gone")

        tracker.on_error(on_error)
        await tracker.start()

        await tracker.handle_event(PlayerError(kind="account", message="expired"))

        assert tracker.state is DeviceState.ERROR

    async def test_device_id_only_exposed_when_ready(self, tracker):
        events = [
            PlayerReady(device_id="dev-1"),
            PlayerNotReady(device_id="dev-1"),
            PlayerReady(device_id="dev-2"),
            PlayerError(kind="account", message="x"),
            PlayerReady(device_id="dev-3"),
        ]
        await tracker.start()

        for event in events:
            await tracker.handle_event(event)
            if tracker.state is not DeviceState.READY:
                assert tracker.current_device_id() is None


class TestStop:
    async def test_stop_disconnects_and_cancels_consumer(self, tracker, player):
        await tracker.start()
        assert tracker.running

        await tracker.stop()

        assert not tracker.running
        assert player.disconnected

    async def test_stop_releases_ready_device(self, tracker, player):
        # Arrange
        await tracker.start()
        await tracker.handle_event(PlayerReady(device_id="dev-123"))
        assert tracker.current_device_id() == "dev-123"

        # Act
        await tracker.stop()

        # Assert
        assert player.disconnected
        assert tracker.state is DeviceState.OFFLINE
        assert tracker.current_device_id() is None

    async def test_stop_keeps_error_state(self, tracker, player):
        await tracker.start()
        await tracker.handle_event(PlayerError(kind="account", message="Premium required"))

        await tracker.stop()

        assert tracker.state is DeviceState.ERROR

    async def test_stop_before_start_does_not_disconnect(self, tracker, player):
        await tracker.stop()
        await tracker.stop()

        assert not player.disconnected
