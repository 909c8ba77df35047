"""
Tests for BriefService: validation rules, upsert and generation kickoff.
"""

import pytest
from unittest.mock import patch

from marketops.services.brief_service import (
    BRIEF_VERSION,
    BriefService,
    coerce_brief_payload,
    missing_field_messages,
    validate_brief_payload,
)
from marketops.services.errors import BriefValidationError, MarketOpsError, WebhookError
from marketops.services.models import BriefPayload


@pytest.fixture
def service(mock_db, mock_webhooks):
    with patch(
        "marketops.services.brief_service.get_supabase_client",
        return_value=mock_db,
    ):
        svc = BriefService(webhooks=mock_webhooks)
    return svc


# ============================================================================
# Validation
# ============================================================================

class TestValidateBriefPayload:
    def test_complete_brief_is_ok(self, valid_brief):
        result = validate_brief_payload(valid_brief)

        assert result.ok is True
        assert result.missing == []

    def test_accepts_model_instances(self, valid_brief):
        assert validate_brief_payload(BriefPayload(**valid_brief)).ok is True

    def test_whitespace_only_counts_as_missing(self, valid_brief):
        valid_brief["sector"] = "   "

        result = validate_brief_payload(valid_brief)

        assert result.ok is False
        assert result.missing == ["sector"]

    def test_empty_payload_lists_every_required_field(self):
        result = validate_brief_payload({})

        assert len(result.missing) == 16
        assert "detalles_limites_comunicacion" not in result.missing

    def test_limit_details_required_only_when_limits_apply(self, valid_brief):
        valid_brief["tiene_limites_comunicacion"] = "si"

        assert validate_brief_payload(valid_brief).missing == ["detalles_limites_comunicacion"]

        valid_brief["detalles_limites_comunicacion"] = "No hablar de medicamentos"
        assert validate_brief_payload(valid_brief).ok is True

    @pytest.mark.parametrize("url", [
        "kalma dot com",
        "https://exa mple.com",
        "http://:80",
        "https://<script>",
        "http://a b/",
        "https://kalma..com",
        "https://kalma.com:99999",
        "kalma.com",
    ])
    def test_malformed_url_is_flagged(self, valid_brief, url):
        valid_brief["url_producto"] = url

        assert validate_brief_payload(valid_brief).missing == ["url_producto"]

    @pytest.mark.parametrize("url", [
        "https://kalma.com",
        " https://www.kalma-app.es/producto?ref=ads ",
        "http://localhost:8080/",
        "http://127.0.0.1/tienda",
        "https://café.es",
    ])
    def test_well_formed_url_is_accepted(self, valid_brief, url):
        valid_brief["url_producto"] = url

        assert validate_brief_payload(valid_brief).ok is True

    def test_empty_url_is_allowed(self, valid_brief):
        valid_brief["url_producto"] = ""

        assert validate_brief_payload(valid_brief).ok is True

    def test_messages_use_field_labels(self):
        messages = missing_field_messages(["sector", "url_producto"])

        assert messages[0] == {"field": "sector", "message": 'El campo "Sector / Industria" es obligatorio.'}
        assert messages[1]["message"] == "La URL no es válida."


class TestCoerceBriefPayload:
    def test_fills_gaps_and_splits_list_strings(self):
        payload = coerce_brief_payload('{"sector": "Salud", "competidores_relevantes": "A, B ,", "tema_clave": null}')

        assert payload.sector == "Salud"
        assert payload.competidores_relevantes == ["A", "B"]
        assert payload.tema_clave == ""

    def test_unreadable_payload_gives_empty_form(self):
        assert coerce_brief_payload("not json") == BriefPayload()
        assert coerce_brief_payload({"sector": ["not", "a", "string"]}) == BriefPayload()


# ============================================================================
# Service
# ============================================================================

class TestGetBrief:
    @pytest.mark.asyncio
    async def test_returns_none_without_row(self, service, mock_db, chain):
        mock_db.table.return_value = chain(data=None)

        assert await service.get_brief("p1") is None

    @pytest.mark.asyncio
    async def test_maps_row(self, service, mock_db, chain, valid_brief):
        mock_db.table.return_value = chain(data={
            "id": "b1",
            "project_id": "p1",
            "payload": valid_brief,
            "version": 1,
            "is_valid": True,
            "missing_fields": None,
        })

        brief = await service.get_brief("p1")

        assert brief.id == "b1"
        assert brief.payload.nombre_comercial == "Kalma"
        assert brief.missing_fields == []


class TestSaveBrief:
    @pytest.mark.asyncio
    async def test_invalid_brief_never_touches_the_store(self, service, mock_db, valid_brief):
        valid_brief["mision_empresa"] = ""

        with pytest.raises(BriefValidationError) as exc_info:
            await service.save_brief("p1", valid_brief)

        assert exc_info.value.missing == ["mision_empresa"]
        mock_db.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_upserts_on_project_id(self, service, mock_db, chain, valid_brief):
        query = chain(data=[{"id": "b1"}])
        mock_db.table.return_value = query

        brief_id = await service.save_brief("p1", valid_brief)

        assert brief_id == "b1"
        mock_db.table.assert_called_with("briefs")
        record = query.upsert.call_args[0][0]
        assert query.upsert.call_args[1] == {"on_conflict": "project_id"}
        assert record["project_id"] == "p1"
        assert record["version"] == BRIEF_VERSION
        assert record["is_valid"] is True
        assert record["missing_fields"] == []
        assert record["payload"]["nombre_comercial"] == "Kalma"

    @pytest.mark.asyncio
    async def test_bad_field_types_are_rejected(self, service, valid_brief):
        valid_brief["competidores_relevantes"] = 42

        with pytest.raises(MarketOpsError, match="invalid field types"):
            await service.save_brief("p1", valid_brief)

    @pytest.mark.asyncio
    async def test_missing_id_in_response_raises(self, service, mock_db, chain, valid_brief):
        mock_db.table.return_value = chain(data=[])

        with pytest.raises(MarketOpsError, match="no id"):
            await service.save_brief("p1", valid_brief)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_requires_user(self, service, mock_db, mock_webhooks, valid_brief):
        with pytest.raises(MarketOpsError, match="user id"):
            await service.generate("p1", valid_brief, None)

        mock_db.table.assert_not_called()
        mock_webhooks.trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_saves_then_triggers_generation(self, service, mock_db, mock_webhooks, chain, valid_brief):
        mock_db.table.return_value = chain(data=[{"id": "b1"}])

        result = await service.generate("p1", valid_brief, "u1")

        assert result.success is True
        mock_webhooks.trigger.assert_awaited_once_with(
            "brief_generation",
            {"project_id": "p1", "brief_id": "b1", "user_id": "u1", "brief_version": BRIEF_VERSION},
        )

    @pytest.mark.asyncio
    async def test_incomplete_brief_does_not_trigger(self, service, mock_webhooks):
        with pytest.raises(BriefValidationError):
            await service.generate("p1", {"sector": "Salud"}, "u1")

        mock_webhooks.trigger.assert_not_called()

    @pytest.mark.asyncio
    async def test_webhook_failure_propagates(self, service, mock_db, mock_webhooks, chain, valid_brief):
        mock_db.table.return_value = chain(data=[{"id": "b1"}])
        mock_webhooks.trigger.side_effect = WebhookError("https://hooks/x", "boom", status_code=500)

        with pytest.raises(WebhookError):
            await service.generate("p1", valid_brief, "u1")
