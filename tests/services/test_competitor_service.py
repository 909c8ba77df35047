"""
Tests for CompetitorService: row normalization, ad filters and analysis requests.
"""

import pytest

from marketops.services.competitor_service import (
    CompetitorService,
    filter_competitor_ads,
    normalize_competitor_ad,
    normalize_web_url,
    validate_ads_analysis_input,
)
from marketops.services.errors import MarketOpsError
from marketops.services.models import CompetitorAd, CompetitorAdsInput


@pytest.fixture
def service(mock_db, mock_webhooks):
    return CompetitorService(supabase=mock_db, webhooks=mock_webhooks)


def entries(count):
    return [
        CompetitorAdsInput(name=f"Comp {i}", ads_library_url=f"https://facebook.com/ads/library/?id={i}")
        for i in range(count)
    ]


class TestNormalization:
    def test_web_url_gets_scheme(self):
        assert normalize_web_url("acme.com") == "https://acme.com"
        assert normalize_web_url("http://acme.com") == "http://acme.com"
        assert normalize_web_url("  ") is None

    def test_ad_keys_are_case_insensitive(self):
        ad = normalize_competitor_ad(
            {"id": "ad1", "Competitor_Id": "c1", "Media_Url": "https://cdn/x.mp4", "MEDIA_TYPE": "Video", "Hook_Gancho": "¿Cansado?"},
            {"c1": "Acme"},
        )

        assert ad.competitor_name == "Acme"
        assert ad.media_url == "https://cdn/x.mp4"
        assert ad.is_video is True
        assert ad.hook_gancho == "¿Cansado?"

    def test_unknown_competitor_name(self):
        assert normalize_competitor_ad({"id": "ad1"}, {}).competitor_name == "Competidor"


class TestFilterCompetitorAds:
    ADS = [
        CompetitorAd(id="1", competitor_name="Acme", media_type="video"),
        CompetitorAd(id="2", competitor_name="Acme", media_type="image"),
        CompetitorAd(id="3", competitor_name="Globex", media_type="image"),
    ]

    def test_by_format(self):
        assert [a.id for a in filter_competitor_ads(self.ADS, media_format="video")] == ["1"]
        assert [a.id for a in filter_competitor_ads(self.ADS, media_format="image")] == ["2", "3"]

    def test_by_competitor(self):
        assert [a.id for a in filter_competitor_ads(self.ADS, competitor="Globex")] == ["3"]
        assert len(filter_competitor_ads(self.ADS, competitor="all")) == 3

    def test_rejects_unknown_format(self):
        with pytest.raises(ValueError):
            filter_competitor_ads(self.ADS, media_format="gif")


class TestValidateAdsAnalysisInput:
    def test_accepts_three_to_five(self):
        validate_ads_analysis_input(entries(3))
        validate_ads_analysis_input(entries(5))

    def test_rejects_too_few_or_too_many(self):
        with pytest.raises(MarketOpsError, match="At least 3"):
            validate_ads_analysis_input(entries(2))
        with pytest.raises(MarketOpsError, match="At most 5"):
            validate_ads_analysis_input(entries(6))

    def test_rejects_blank_fields(self):
        items = entries(3)
        items[1].ads_library_url = "  "

        with pytest.raises(MarketOpsError, match="name and an ads library URL"):
            validate_ads_analysis_input(items)


class TestService:
    @pytest.mark.asyncio
    async def test_list_competitor_ads_resolves_names(self, service, tables, chain):
        tables["competitors_strategic"] = chain(data=[{"id": "c1", "nombre": "Acme", "web_url": "acme.com"}])
        tables["competitor_ads_tactical"] = chain(data=[
            {"id": "ad1", "competitor_id": "c1", "media_type": "video"},
            {"id": "ad2", "competitor_id": "c1", "media_type": "image"},
        ])

        ads = await service.list_competitor_ads("p1", media_format="video")

        assert [a.id for a in ads] == ["ad1"]
        assert ads[0].competitor_name == "Acme"

    @pytest.mark.asyncio
    async def test_get_strategy(self, service, mock_db, chain):
        query = chain(data={"id": "s1", "project_id": "p1", "analisis_final_ia": {"resumen": "R"}})
        mock_db.table.return_value = query

        strategy = await service.get_strategy("p1")

        assert strategy.analisis_final_ia == {"resumen": "R"}
        query.limit.assert_called_once_with(1)

    @pytest.mark.asyncio
    async def test_get_overview(self, service, tables, chain):
        tables["competitor_strategies"] = chain(data={"id": "s1", "project_id": "p1", "analisis_final_ia": "Resumen"})
        tables["competitors_strategic"] = chain(data=[{"id": "c1", "nombre": "Acme"}])

        strategy, competitors = await service.get_overview("p1")

        assert strategy.analisis_final_ia == "Resumen"
        assert [c.nombre for c in competitors] == ["Acme"]
        tables["competitors_strategic"].order.assert_called_once_with("nombre")

    @pytest.mark.asyncio
    async def test_get_overview_without_strategy(self, service, tables, chain):
        tables["competitor_strategies"] = chain(data=None)
        tables["competitors_strategic"] = chain(data=[])

        assert await service.get_overview("p1") == (None, [])

    @pytest.mark.asyncio
    async def test_get_competitor_missing(self, service, mock_db, chain):
        mock_db.table.return_value = chain(data=None)

        assert await service.get_competitor("c9") is None

    @pytest.mark.asyncio
    async def test_request_ads_analysis_payload(self, service, mock_webhooks):
        items = entries(3)
        items[0].name = "  Acme  "

        await service.request_ads_analysis("p1", items)

        endpoint, payload = mock_webhooks.trigger.call_args[0]
        assert endpoint == "competitor_ads_analysis"
        assert payload["project_id"] == "p1"
        assert payload["competitors"][0]["name"] == "Acme"
        assert len(payload["competitors"]) == 3

    @pytest.mark.asyncio
    async def test_invalid_request_never_calls_webhook(self, service, mock_webhooks):
        with pytest.raises(MarketOpsError):
            await service.request_ads_analysis("p1", entries(1))

        mock_webhooks.trigger.assert_not_called()
