"""Catalog search collaborator.

Anonymous track search authenticated with an application token from the
client credentials grant. This path holds the client secret and never sees
the user's PKCE verifier or access token.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from tunegate.auth.models.errors import CatalogError, ConfigurationError, NetworkError
from tunegate.auth.models.tokens import ClientCredentialsRequest
from tunegate.auth.services.tokens import OAuth2TokenManager

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "top hits"


class Track(BaseModel):
    """The slice of a catalog track the app shows and plays."""

    id: str
    name: str
    uri: str | None = None
    preview_url: str | None = None
    artists: list[str] = Field(default_factory=list)
    album_image_url: str | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> Track:
        images = (item.get("album") or {}).get("images") or []
        return cls(
            id=item["id"],
            name=item.get("name", ""),
            uri=item.get("uri"),
            preview_url=item.get("preview_url"),
            artists=[a.get("name", "") for a in item.get("artists") or []],
            album_image_url=images[0].get("url") if images else None,
        )


class CatalogSearchService:
    """Searches the provider catalog for tracks."""

    def __init__(
        self,
        api_base_url: str,
        token_endpoint: str,
        client_id: str | None,
        client_secret: str | None,
        token_manager: OAuth2TokenManager | None = None,
        timeout: float = 30.0,
    ):
        self.api_base_url = api_base_url.rstrip("/")
        self.token_endpoint = token_endpoint
        self.client_id = client_id
        self._client_secret = client_secret
        self.token_manager = token_manager or OAuth2TokenManager(timeout=timeout)
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def search_tracks(self, query: str | None, limit: int = 10) -> list[Track]:
        """Search tracks matching ``query``.

        Raises:
            ConfigurationError: If client id or secret is missing
            TokenExchangeError: If the app token request is rejected
            CatalogError: If the search endpoint answers with an error
            NetworkError: On transport failure
        """
        if not self.client_id or not self._client_secret:
            raise ConfigurationError(
                "Catalog search requires both client_id and client_secret"
            )

        q = (query or "").strip() or DEFAULT_QUERY
        app_token = await self.token_manager.request_client_credentials_token(
            ClientCredentialsRequest(
                token_endpoint=self.token_endpoint,
                client_id=self.client_id,
                client_secret=self._client_secret,
            )
        )

        logger.debug(f"Searching catalog for {q!r} (limit={limit})")
        try:
            response = await self._http_client.get(
                f"{self.api_base_url}/search",
                params={"q": q, "type": "track", "limit": limit},
                headers={"Authorization": f"Bearer {app_token.access_token}"},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"HTTP error during catalog search: {e}") from e

        if response.status_code != 200:
            body = response.text
            logger.warning(f"Catalog search failed with {response.status_code}: {body}")
            raise CatalogError(
                f"Catalog search failed with status {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        try:
            items = response.json().get("tracks", {}).get("items", [])
            tracks = [Track.from_api(item) for item in items]
        except (ValueError, AttributeError, KeyError) as e:
            raise CatalogError(f"Invalid catalog search response: {e}") from e

        logger.info(f"Catalog search returned {len(tracks)} tracks")
        return tracks

    async def close(self) -> None:
        await self._http_client.aclose()
        await self.token_manager.close()
