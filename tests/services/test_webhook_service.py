"""
Tests for WebhookService: status handling, errors and binary downloads.
"""

import json

import httpx
import pytest

from marketops.core.config import Config
from marketops.services.errors import WebhookError
from marketops.services.webhook_service import WebhookService


@pytest.fixture(autouse=True)
def base_url(monkeypatch):
    monkeypatch.setattr(Config, "WEBHOOK_BASE_URL", "https://hooks.example.com/webhook")


def service_with(handler):
    return WebhookService(timeout=5, transport=httpx.MockTransport(handler))


class TestPostJson:
    @pytest.mark.asyncio
    async def test_success_posts_json_to_resolved_url(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text="ok")

        result = await service_with(handler).post_json("brief_generation", {"project_id": "p1"})

        assert result.success is True
        assert result.status_code == 200
        assert seen["url"] == "https://hooks.example.com/webhook/buyer-parte1"
        assert seen["body"] == {"project_id": "p1"}

    @pytest.mark.asyncio
    async def test_non_2xx_is_a_failure_with_status(self):
        result = await service_with(lambda r: httpx.Response(500, text="boom")).post_json("ad_creation", {})

        assert result.success is False
        assert result.status_code == 500
        assert result.error == "boom"

    @pytest.mark.asyncio
    async def test_empty_error_body_gets_placeholder(self):
        result = await service_with(lambda r: httpx.Response(404)).post_json("ad_creation", {})

        assert result.success is False
        assert result.error == "No additional error info"

    @pytest.mark.asyncio
    async def test_network_error_is_a_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await service_with(handler).post_json("ad_creation", {})

        assert result.success is False
        assert result.status_code is None
        assert "connection refused" in result.error


class TestTrigger:
    @pytest.mark.asyncio
    async def test_raises_on_failure(self):
        service = service_with(lambda r: httpx.Response(502, text="bad gateway"))

        with pytest.raises(WebhookError) as exc_info:
            await service.trigger("competitor_ads_analysis", {"project_id": "p1"})

        assert exc_info.value.status_code == 502
        assert exc_info.value.url.endswith("/analisisanuncios")

    @pytest.mark.asyncio
    async def test_returns_result_on_success(self):
        result = await service_with(lambda r: httpx.Response(202)).trigger("ad_creation", {})

        assert result.success is True


class TestDownload:
    @pytest.mark.asyncio
    async def test_returns_bytes(self):
        service = service_with(lambda r: httpx.Response(200, content=b"%PDF-1.4 data"))

        assert await service.download("avatar_report", {"avatar_id": "a1"}) == b"%PDF-1.4 data"

    @pytest.mark.asyncio
    async def test_raises_on_error_status(self):
        service = service_with(lambda r: httpx.Response(500, text="no report"))

        with pytest.raises(WebhookError, match="500"):
            await service.download("avatar_report", {"avatar_id": "a1"})


class TestBaseUrl:
    @pytest.mark.asyncio
    async def test_explicit_base_url_overrides_config(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200)

        service = WebhookService(
            base_url="https://other.example.com/hooks/",
            transport=httpx.MockTransport(handler),
        )
        await service.post_json("ad_creation", {})

        assert seen["url"] == "https://other.example.com/hooks/creacion-anuncios"
