"""
Shared fixtures: Supabase query chains and a fully filled brief.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from marketops.services.webhook_service import WebhookResult

CHAIN_METHODS = ("select", "eq", "in_", "order", "limit", "maybe_single", "insert", "upsert", "delete")


def make_chain(data=None, count=None):
    """A query builder mock whose filters return itself and whose execute() returns `data`."""
    chain = MagicMock()
    for method in CHAIN_METHODS:
        getattr(chain, method).return_value = chain
    chain.execute.return_value = MagicMock(data=data, count=count)
    return chain


@pytest.fixture
def mock_db():
    """Create a mock Supabase client."""
    return MagicMock()


@pytest.fixture
def chain():
    """Factory for query chains, see make_chain."""
    return make_chain


@pytest.fixture
def tables(mock_db):
    """Per-table query chains: fill tables[name] and mock_db.table(name) returns it."""
    routed = {}
    mock_db.table.side_effect = lambda name: routed[name]
    return routed


@pytest.fixture
def mock_webhooks():
    """WebhookService stand-in whose trigger() succeeds."""
    webhooks = MagicMock()
    webhooks.trigger = AsyncMock(return_value=WebhookResult(success=True, status_code=200))
    webhooks.download = AsyncMock(return_value=b"%PDF-1.4")
    return webhooks


@pytest.fixture
def valid_brief():
    return {
        "nombre_comercial": "Kalma",
        "nombre_interno": "Kalma Sleep",
        "mision_empresa": "Ayudar a dormir mejor",
        "vision_empresa": "Ser la marca de descanso de referencia",
        "tipo_oferta": "producto",
        "sector": "Bienestar",
        "propuesta_valor_promesa": "Duerme 8 horas sin pastillas",
        "url_producto": "https://kalma.example.com",
        "segmento_cliente_objetivo": "Profesionales de 30 a 45 años",
        "problema_principal_resuelve": "Insomnio por estrés",
        "personas_experimentan_problema": "Trabajadores con jornadas largas",
        "transformacion_deseada": "Despertar con energía",
        "pais_objetivo": "España",
        "precio_aprox": "39€",
        "objetivo_proyecto": "Lanzamiento",
        "tema_clave": "Descanso",
        "competidores_relevantes": ["Sleepy"],
        "referentes_inspiracion": [],
        "tiene_limites_comunicacion": "no",
        "detalles_limites_comunicacion": "",
    }
