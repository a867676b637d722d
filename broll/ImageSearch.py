"""
Stock photo lookup for visual keywords, backed by the Pixabay API.

Search failures are not fatal to a run: every error is logged and reported
as "no image" so the enrichment pipeline can move on to the next segment.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from .config import CONFIG, PIXABAY_KEY_PLACEHOLDER, get_api_key

logger = logging.getLogger(f"broll.{__name__}")


def pick_image_url(payload: Dict[str, Any]) -> Optional[str]:
    """Returns the first hit's webformatURL (or largeImageURL), or None when there are no hits."""
    for hit in payload.get('hits') or []:
        if not isinstance(hit, dict):
            continue
        url = hit.get('webformatURL') or hit.get('largeImageURL')
        if url:
            return url
    return None


class PixabayImageSearch:
    def __init__(self, api_key: Optional[str] = None, per_page: Optional[int] = None,
                 timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key or get_api_key("PIXABAY_API_KEY", placeholder=PIXABAY_KEY_PLACEHOLDER)
        self.per_page = per_page or CONFIG["PIXABAY_PER_PAGE"]
        self.timeout = timeout or CONFIG["HTTP_TIMEOUT_SEC"]
        self._transport = transport

    def _params(self, query: str) -> Dict[str, Any]:
        return {
            "key": self.api_key,
            "q": query,
            "image_type": CONFIG["PIXABAY_IMAGE_TYPE"],
            "orientation": CONFIG["PIXABAY_ORIENTATION"],
            "safesearch": "true" if CONFIG["PIXABAY_SAFESEARCH"] else "false",
            "per_page": self.per_page,
        }

    async def search(self, query: str) -> Optional[str]:
        """
        Looks up a single image for a keyword.

        Args:
            query (str): A short visual keyword phrase.

        Returns:
            Optional[str]: URL of the best hit, or None if the query is blank, nothing
                           matched, or the request failed.
        """
        if not query or not query.strip():
            return None

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(CONFIG["PIXABAY_URL"], params=self._params(query.strip()))
        except httpx.HTTPError as e:
            logger.error(f"Error fetching image from Pixabay for '{query}': {e}")
            return None

        if response.is_error:
            logger.error(f"Pixabay API error: {response.status_code}")
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.error("Pixabay returned a non-JSON response.")
            return None

        url = pick_image_url(payload) if isinstance(payload, dict) else None
        if url:
            logger.debug(f"Pixabay hit for '{query}': {url}")
        else:
            logger.info(f"No Pixabay results for '{query}'.")
        return url
