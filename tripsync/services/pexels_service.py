"""
Pexels Image Service - Fetches destination background images from the Pexels API.
"""

import io
import logging
from typing import List, Optional

import httpx
from PIL import Image, UnidentifiedImageError

from tripsync.config.settings import PexelsSettings, get_settings
from tripsync.core.exceptions import (
    ArtifactNotFoundError,
    ArtifactTransportError,
    MissingCredentialError,
    RateLimitedError,
)
from tripsync.core.metrics import record_latency

logger = logging.getLogger(__name__)

# Rotated by variation so repeated searches for one country look different.
SEARCH_SUFFIXES = ["travel", "tourism", "landscape", "city", "destination"]

# Preferred first; medium loads fastest on a trip card.
PHOTO_SIZES = ["medium", "large", "original"]


class PexelsImageService:
    """
    Artifact provider backed by Pexels photo search.

    `fetch(query, variation)` maps the variation index onto a search-term
    suffix, a result page and a photo within that page, so the same trip
    always asks for the same picture.
    """

    def __init__(
        self,
        settings: Optional[PexelsSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings().pexels
        self.api_url = self.settings.api_url.rstrip("/")
        self.api_key = self.settings.api_key
        self.timeout = self.settings.timeout_seconds
        self._transport = transport

        if self.api_key:
            logger.info("Pexels API configured with access key")
        else:
            logger.warning(
                "Pexels API key not configured. "
                "Set PEXELS_API_KEY in .env file."
            )

    def _get_headers(self) -> dict:
        """Get headers for Pexels API requests."""
        return {"Authorization": self.api_key or ""}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self._get_headers(),
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    def search_term(self, query: str, variation: int) -> str:
        return f"{query} {SEARCH_SUFFIXES[variation % len(SEARCH_SUFFIXES)]}"

    def page_for(self, variation: int) -> int:
        return variation % self.settings.max_page + 1

    async def search_photo_urls(self, query: str, variation: int = 0) -> List[str]:
        """
        Search Pexels for landscape photos of a destination.

        Args:
            query: Destination name (e.g., "Japan", "Murree")
            variation: Non-negative variation index

        Returns:
            Photo URLs of the result page, best available size each

        Raises:
            ArtifactFetchError subclasses on credential, rate-limit, empty
            result or transport failures
        """
        if not self.api_key:
            raise MissingCredentialError(query=query)

        term = self.search_term(query, variation)
        params = {
            "query": term,
            "per_page": self.settings.per_page,
            "page": self.page_for(variation),
            "orientation": "landscape",
            "size": "medium",
        }

        logger.info(f"Fetching Pexels photos for: {term}", extra={"page": params["page"]})

        try:
            async with self._client() as client:
                response = await client.get(f"{self.api_url}/search", params=params)
        except httpx.TimeoutException as e:
            raise ArtifactTransportError(f"timeout searching photos: {e}", query=query) from e
        except httpx.HTTPError as e:
            raise ArtifactTransportError(str(e), query=query) from e

        if response.status_code == 401:
            raise MissingCredentialError("Pexels API rejected the API key", query=query)
        if response.status_code == 429:
            raise RateLimitedError(query=query)
        if response.status_code != 200:
            raise ArtifactTransportError(
                f"Pexels API returned status code: {response.status_code}", query=query
            )

        try:
            photos = response.json().get("photos") or []
        except ValueError as e:
            raise ArtifactTransportError(f"invalid JSON from Pexels: {e}", query=query) from e

        urls = []
        for photo in photos:
            src = photo.get("src") or {}
            url = next((src[size] for size in PHOTO_SIZES if src.get(size)), None)
            if url:
                urls.append(url)

        if not urls:
            raise ArtifactNotFoundError(term)

        logger.info(f"Found {len(urls)} photos for '{term}'")
        return urls

    async def download(self, url: str, query: Optional[str] = None) -> bytes:
        """Download one photo and make sure it decodes as an image."""
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise ArtifactTransportError(f"failed to download image: {e}", query=query) from e

        if response.status_code != 200:
            raise ArtifactTransportError(
                f"image download returned {response.status_code}", query=query
            )

        data = response.content
        if self.settings.validate_images:
            try:
                with Image.open(io.BytesIO(data)) as image:
                    image.verify()
            except (UnidentifiedImageError, OSError, SyntaxError) as e:
                raise ArtifactTransportError(f"downloaded payload is not an image: {e}", query=query) from e

        logger.info(f"Image downloaded successfully (size: {len(data)} bytes)")
        return data

    async def fetch(self, query: str, variation: int) -> bytes:
        """Artifact provider entry point: image bytes for `query`."""
        with record_latency("artifact.fetch"):
            urls = await self.search_photo_urls(query, variation)
            url = urls[(variation // self.settings.max_page) % len(urls)]
            return await self.download(url, query=query)
