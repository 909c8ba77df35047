"""
WebhookService - Trigger the external generation pipeline over HTTP.

The pipeline's only visible contract is "POST a JSON payload, eventually rows
appear in named tables". Success is judged by HTTP status alone. Calls are
never retried automatically: a generation request is not idempotent.
"""

import logging
import httpx
from typing import Any, Dict, Optional
from dataclasses import dataclass

from ..core.config import Config
from .errors import WebhookError

logger = logging.getLogger(__name__)


@dataclass
class WebhookResult:
    """Result of a webhook POST."""
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    body: str = ""


class WebhookService:
    """
    Service for calling the generation webhooks.

    Endpoints are given either as absolute URLs or as names resolved through
    Config.webhook_url (e.g. 'ad_creation' -> <WEBHOOK_BASE_URL>/creacion-anuncios).

    Example:
        >>> service = WebhookService()
        >>> result = await service.post_json("brief_generation", {"project_id": "p1"})
        >>> print(result.success)
        True
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize WebhookService.

        Args:
            base_url: Base for endpoint names (defaults to Config.WEBHOOK_BASE_URL)
            timeout: Request timeout in seconds (defaults to Config.WEBHOOK_TIMEOUT)
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url
        self.timeout = timeout or Config.WEBHOOK_TIMEOUT
        self._transport = transport

    def url_for(self, endpoint: str) -> str:
        return Config.webhook_url(endpoint, self.base_url)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def post_json(self, endpoint: str, payload: Dict[str, Any]) -> WebhookResult:
        """
        POST a JSON payload to a webhook.

        Args:
            endpoint: Endpoint name or absolute URL
            payload: JSON body

        Returns:
            WebhookResult with success status, or the error text on failure
        """
        url = self.url_for(endpoint)

        try:
            logger.info(f"Calling webhook {url}")

            async with self._client() as client:
                response = await client.post(url, json=payload)

            if response.is_success:
                logger.info(f"Webhook {url} accepted request ({response.status_code})")
                return WebhookResult(success=True, status_code=response.status_code, body=response.text)

            error_msg = response.text or "No additional error info"
            logger.error(f"Webhook {url} failed with status {response.status_code}: {error_msg}")
            return WebhookResult(
                success=False,
                status_code=response.status_code,
                error=error_msg,
                body=response.text,
            )

        except httpx.HTTPError as e:
            error_msg = str(e) or e.__class__.__name__
            logger.error(f"Failed to reach webhook {url}: {error_msg}")
            return WebhookResult(success=False, error=error_msg)

    async def trigger(self, endpoint: str, payload: Dict[str, Any]) -> WebhookResult:
        """POST a payload and raise WebhookError unless the webhook accepted it."""
        result = await self.post_json(endpoint, payload)
        if not result.success:
            raise WebhookError(
                self.url_for(endpoint),
                result.error or "request failed",
                status_code=result.status_code,
                body=result.body,
            )
        return result

    async def download(self, endpoint: str, payload: Dict[str, Any]) -> bytes:
        """
        POST a payload and return the binary response body (e.g. a PDF report).

        Raises:
            WebhookError: On network failure or a non-2xx response
        """
        url = self.url_for(endpoint)

        try:
            async with self._client() as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise WebhookError(url, str(e) or e.__class__.__name__) from e

        if not response.is_success:
            raise WebhookError(url, response.text or "download failed", status_code=response.status_code, body=response.text)

        logger.info(f"Downloaded {len(response.content)} bytes from {url}")
        return response.content
