"""Loopback receiver for the authorization return redirect.

Listens on the host, port and path of a loopback ``redirect_uri``, hands the
full return URL to the login coordinator, and answers with a page that
rewrites the browser's address in place so a refresh cannot replay the code.
"""

from __future__ import annotations

import asyncio
import json
import logging
from urllib.parse import urlparse

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from tunegate.auth.models.errors import AuthorizationCallbackError, ConfigurationError
from tunegate.auth.services.flow import clean_return_url, parse_return_url
from tunegate.auth.services.security import LOOPBACK_HOSTS

logger = logging.getLogger(__name__)

_PAGE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>{title}</title></head>
<body>
<p>{message}</p>
<script>window.history.replaceState({{}}, document.title, {clean_url});</script>
</body>
</html>
"""


class LoopbackCallbackServer:
    """HTTP receiver for the return redirect on a loopback address."""

    def __init__(self, redirect_uri: str):
        parsed = urlparse(redirect_uri)
        if parsed.scheme != "http" or parsed.hostname not in LOOPBACK_HOSTS:
            raise ConfigurationError(
                f"Loopback receiver needs an http loopback redirect URI: {redirect_uri}"
            )

        self.host = parsed.hostname
        self.port = parsed.port or 80
        self.path = parsed.path or "/"
        self.received_urls: list[str] = []

        self._received: asyncio.Queue[str] = asyncio.Queue()
        self._app = Starlette(
            routes=[Route(self.path, self._handle_callback, methods=["GET"])]
        )
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None

    @property
    def app(self) -> Starlette:
        return self._app

    async def start(self) -> None:
        """Start serving in a background task."""
        if self._serve_task is not None:
            return

        config = uvicorn.Config(
            app=self._app, host=self.host, port=self.port, log_level="warning"
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())
        logger.info(f"Callback receiver listening on {self.host}:{self.port}{self.path}")

    async def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            await self._serve_task
            self._serve_task = None
        self._server = None

    async def wait_for_callback(self, timeout: float | None = 300.0) -> str:
        """Wait for the provider to redirect back.

        Raises:
            AuthorizationCallbackError: If nothing arrives within ``timeout``
        """
        try:
            return await asyncio.wait_for(self._received.get(), timeout)
        except asyncio.TimeoutError as e:
            raise AuthorizationCallbackError(
                f"No authorization callback received within {timeout} seconds"
            ) from e

    async def _handle_callback(self, request: Request) -> Response:
        return_url = str(request.url)
        auth_response = parse_return_url(return_url)

        if auth_response.is_empty():
            return Response("Missing authorization result", status_code=400)

        self.received_urls.append(return_url)
        self._received.put_nowait(return_url)
        logger.debug("Authorization callback received")

        clean_url = urlparse(clean_return_url(return_url))
        clean_path = clean_url.path + (f"?{clean_url.query}" if clean_url.query else "")

        if auth_response.is_error():
            title, message = "Login failed", "Login was not completed. You can close this tab."
        else:
            title, message = "Logged in", "Login complete. You can close this tab."

        return HTMLResponse(
            _PAGE.format(
                title=title,
                message=message,
                clean_url=json.dumps(clean_path).replace("<", "\\u003c"),
            )
        )
