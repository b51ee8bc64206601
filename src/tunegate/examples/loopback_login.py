"""
Log in from the command line and search the catalog.

Opens the provider's login page in your browser and receives the return
redirect on a loopback address. Set these in the environment or a .env file:

    TUNEGATE_CLIENT_ID=...
    TUNEGATE_CLIENT_SECRET=...          # only needed for search
    TUNEGATE_REDIRECT_URI=http://localhost:3000/callback
    TUNEGATE_AUTH_SERVER_URL=https://auth.example.com
    TUNEGATE_API_BASE_URL=https://api.example.com/v1
    TUNEGATE_SCOPES="user-read-email streaming"
"""

import asyncio
import logging
import sys

from tunegate.auth.callback_server import LoopbackCallbackServer
from tunegate.auth.models.errors import OAuth2Error
from tunegate.config import AppConfig
from tunegate.login import LoginCoordinator, user_message_for


async def show(message: str) -> None:
    print(message, file=sys.stderr)


async def main(query: str | None) -> int:
    try:
        config = AppConfig.from_env()
    except OAuth2Error as e:
        await show(user_message_for(e))
        return 2

    coordinator = LoginCoordinator(config)
    coordinator.on_user_message(show)
    receiver = LoopbackCallbackServer(config.redirect_uri)

    await receiver.start()
    try:
        if await coordinator.begin_login() is None:
            return 1

        try:
            return_url = await receiver.wait_for_callback()
        except OAuth2Error as e:
            await show(user_message_for(e))
            return 1

        if not await coordinator.complete_login(return_url):
            return 1
        print("Authenticated!")

        if config.client_secret is not None:
            try:
                tracks = await coordinator.catalog.search_tracks(query)
            except OAuth2Error as e:
                await show(user_message_for(e))
                return 1
            for track in tracks:
                print(f"{track.name} - {', '.join(track.artists)}")
        return 0
    finally:
        await receiver.stop()
        await coordinator.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(main(" ".join(sys.argv[1:]) or None)))
