"""Playback session collaborator.

Starts full-track playback on the remote device unlocked by the login. The
device id is looked up from the tracker on every call, never cached.
"""

from __future__ import annotations

import logging

import httpx

from tunegate.auth.models.errors import NetworkError, PlaybackError, PlaybackNotReadyError
from tunegate.playback.device import DeviceReadinessTracker
from tunegate.session.state import SessionState

logger = logging.getLogger(__name__)


class PlaybackSessionService:
    def __init__(
        self,
        api_base_url: str,
        session_state: SessionState,
        device_tracker: DeviceReadinessTracker,
        timeout: float = 30.0,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.session_state = session_state
        self.device_tracker = device_tracker
        self.now_playing: str | None = None
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def play_track(self, track_uri: str) -> None:
        """Play ``track_uri`` on the ready device.

        Raises:
            PlaybackNotReadyError: No access token, or no ready device
            PlaybackError: The playback endpoint rejected the request
            NetworkError: On transport failure
        """
        token_state = self.session_state.token_state
        if token_state is None or not token_state.access_token:
            raise PlaybackNotReadyError("Log in to enable full playback", "authentication")

        device_id = self.device_tracker.current_device_id()
        if device_id is None:
            raise PlaybackNotReadyError("Player is not ready yet")

        try:
            response = await self._http_client.put(
                f"{self.api_base_url}/me/player/play",
                params={"device_id": device_id},
                json={"uris": [track_uri]},
                headers={"Authorization": token_state.authorization_header()},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"HTTP error starting playback: {e}") from e

        if not 200 <= response.status_code < 300:
            body = response.text
            logger.warning(f"Playback request failed with {response.status_code}: {body}")
            raise PlaybackError(
                f"Playback request failed with status {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        self.now_playing = track_uri
        logger.info(f"Playing {track_uri} on device {device_id}")

    async def close(self) -> None:
        await self._http_client.aclose()
