"""Client for the external video extraction API"""
import logging

import httpx
from pydantic import ValidationError

from trendvault.core.config import Settings
from trendvault.core.exceptions import ExtractionError
from trendvault.schemas.video import ExtractorResponse

logger = logging.getLogger(__name__)


class ExtractorClient:
    """Turns a post URL into a direct download URL plus metadata"""

    def __init__(self, http_client: httpx.AsyncClient, settings: Settings):
        self.http_client = http_client
        self.api_url = settings.EXTRACTOR_API_URL
        self.timeout = settings.EXTRACTOR_TIMEOUT

    async def fetch(self, url: str, is_adult_content: bool, is_non_adult_content: bool = False) -> ExtractorResponse:
        """Call the extractor

        Raises:
            ExtractionError: 400 if the extractor reported failure, 502 if it was
                unreachable, timed out, answered non-2xx or returned garbage
        """
        try:
            response = await self.http_client.post(
                self.api_url,
                json={
                    "url": url,
                    "is_adult_content": is_adult_content,
                    "is_non_adult_content": is_non_adult_content,
                },
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"Extractor timed out for {url}")
            raise ExtractionError(retryable=True) from e
        except httpx.HTTPError as e:
            logger.error(f"Extractor request failed for {url}: {e}")
            raise ExtractionError(retryable=True) from e

        if response.status_code < 200 or response.status_code >= 300:
            logger.error(f"Extractor responded with status {response.status_code} for {url}")
            raise ExtractionError(retryable=response.status_code >= 500)

        try:
            payload = ExtractorResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Extractor returned an unreadable payload for {url}: {e}")
            raise ExtractionError() from e

        if not payload.success:
            raise ExtractionError(
                payload.message or "Failed to fetch video from external API",
                status_code=400
            )

        logger.info(f"Extractor resolved {url}: {payload.title!r} by {payload.uploader!r}")
        return payload
