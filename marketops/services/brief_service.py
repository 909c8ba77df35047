"""
BriefService - Project brief validation, storage and generation kickoff.

The brief is the questionnaire the generation pipeline starts from. It is
stored as one row per project (upserted on project_id) and, once valid,
posted to the brief generation webhook which builds the buyer avatars.
"""

import ipaddress
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlparse

from pydantic import ValidationError

from ..core.database import get_supabase_client
from .errors import BriefValidationError, MarketOpsError
from .models import Brief, BriefPayload, BriefValidation
from .normalization import as_dict
from .store import first_row, run_query
from .webhook_service import WebhookResult, WebhookService

logger = logging.getLogger(__name__)

BRIEF_VERSION = 1

REQUIRED_FIELDS = [
    'nombre_comercial',
    'nombre_interno',
    'mision_empresa',
    'vision_empresa',
    'tipo_oferta',
    'sector',
    'propuesta_valor_promesa',
    'segmento_cliente_objetivo',
    'problema_principal_resuelve',
    'personas_experimentan_problema',
    'transformacion_deseada',
    'pais_objetivo',
    'precio_aprox',
    'objetivo_proyecto',
    'tema_clave',
    'tiene_limites_comunicacion',
]

OPTIONAL_LIST_FIELDS = ('competidores_relevantes', 'referentes_inspiracion')

FIELD_LABELS = {
    'nombre_comercial': 'Nombre comercial',
    'nombre_interno': 'Nombre del producto/servicio (interno)',
    'mision_empresa': 'Misión de la empresa',
    'vision_empresa': 'Visión de la empresa',
    'tipo_oferta': 'Tipo de oferta',
    'sector': 'Sector / Industria',
    'propuesta_valor_promesa': 'Propuesta de valor / Promesa',
    'url_producto': 'URL del producto/servicio (opcional)',
    'segmento_cliente_objetivo': 'Segmento de cliente objetivo',
    'problema_principal_resuelve': 'Problema principal que resuelve',
    'personas_experimentan_problema': '¿Quiénes experimentan este problema?',
    'transformacion_deseada': 'Transformación deseada del cliente',
    'objetivo_proyecto': 'Objetivo del proyecto',
    'tema_clave': 'Tema clave',
    'pais_objetivo': 'País objetivo',
    'precio_aprox': 'Precio aproximado',
    'competidores_relevantes': 'Competidores relevantes (opcional)',
    'referentes_inspiracion': 'Marcas referentes / Inspiración (opcional)',
    'tiene_limites_comunicacion': '¿Hay límites o líneas rojas en comunicación?',
    'detalles_limites_comunicacion': 'Detalles de los límites',
}

BriefInput = Union[BriefPayload, Mapping[str, Any]]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


_HOST_LABEL = re.compile(r"^[\w-]+$")


def _is_valid_host(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass
    labels = host.rstrip(".").split(".")
    return all(_HOST_LABEL.match(label) for label in labels)


def is_valid_url(value: str) -> bool:
    """An absolute URL with a scheme and a well-formed host."""
    value = value.strip()
    if any(ch.isspace() for ch in value):
        return False
    try:
        parsed = urlparse(value)
        parsed.port  # raises ValueError for a malformed port
    except ValueError:
        return False
    if not parsed.scheme or not parsed.hostname:
        return False
    return _is_valid_host(parsed.hostname)


def validate_brief_payload(payload: BriefInput) -> BriefValidation:
    """
    Check a brief for required fields.

    - every required field must be non-empty and not whitespace-only
    - detalles_limites_comunicacion is required when tiene_limites_comunicacion is 'si'
    - a non-empty url_producto must parse as an absolute URL

    Returns:
        BriefValidation with ok and the list of offending field keys
    """
    data = payload.model_dump() if isinstance(payload, BriefPayload) else dict(payload or {})

    missing: List[str] = [key for key in REQUIRED_FIELDS if _is_blank(data.get(key))]

    if data.get('tiene_limites_comunicacion') == 'si' and _is_blank(data.get('detalles_limites_comunicacion')):
        missing.append('detalles_limites_comunicacion')

    url = data.get('url_producto')
    if url and (not isinstance(url, str) or not is_valid_url(url)):
        if 'url_producto' not in missing:
            missing.append('url_producto')

    return BriefValidation(ok=not missing, missing=missing)


def missing_field_messages(missing: List[str]) -> List[Dict[str, str]]:
    """User-facing message per offending field."""
    messages = []
    for field in missing:
        if field == 'url_producto':
            message = 'La URL no es válida.'
        else:
            message = f'El campo "{FIELD_LABELS.get(field, field)}" es obligatorio.'
        messages.append({'field': field, 'message': message})
    return messages


def coerce_brief_payload(raw: Any) -> BriefPayload:
    """
    Build a BriefPayload from a stored value, filling gaps with empty fields.

    Stored payloads may be JSON strings, partial, or carry nulls; anything
    that can't be read falls back to an empty form.
    """
    data = {k: v for k, v in as_dict(raw).items() if v is not None}
    for key in OPTIONAL_LIST_FIELDS:
        if isinstance(data.get(key), str):
            data[key] = [item.strip() for item in data[key].split(',') if item.strip()]
    try:
        return BriefPayload(**data)
    except ValidationError as e:
        logger.warning(f"Stored brief payload is malformed, using empty form: {e.error_count()} errors")
        return BriefPayload()


class BriefService:
    """
    Service for project briefs.

    Features:
    - Load the stored brief for a project
    - Validate and upsert a brief
    - Save and trigger avatar generation in one step
    """

    def __init__(self, supabase=None, webhooks: Optional[WebhookService] = None):
        self.supabase = supabase or get_supabase_client()
        self.webhooks = webhooks or WebhookService()

    async def get_brief(self, project_id: str) -> Optional[Brief]:
        """
        Get the brief for a project.

        Returns:
            Brief, or None if the project has no brief yet
        """
        result = await run_query(
            "briefs",
            self.supabase.table("briefs")
                .select("id, project_id, payload, version, is_valid, missing_fields")
                .eq("project_id", project_id)
                .maybe_single()
        )
        row = first_row(result)
        if not row:
            return None

        return Brief(
            id=row.get("id"),
            project_id=row.get("project_id") or project_id,
            payload=coerce_brief_payload(row.get("payload")),
            version=row.get("version") or BRIEF_VERSION,
            is_valid=bool(row.get("is_valid")),
            missing_fields=row.get("missing_fields") or [],
        )

    async def save_brief(self, project_id: str, payload: BriefInput) -> str:
        """
        Validate and upsert the brief for a project.

        Returns:
            The brief id

        Raises:
            BriefValidationError: If required fields are missing or malformed
        """
        validation = validate_brief_payload(payload)
        if not validation.ok:
            raise BriefValidationError(validation.missing)

        if isinstance(payload, BriefPayload):
            brief = payload
        else:
            try:
                brief = BriefPayload(**{k: v for k, v in payload.items() if v is not None})
            except ValidationError as e:
                raise MarketOpsError(f"Brief payload has invalid field types: {e}") from e

        record = {
            "project_id": project_id,
            "payload": brief.model_dump(),
            "version": BRIEF_VERSION,
            "is_valid": validation.ok,
            "missing_fields": validation.missing,
        }

        result = await run_query(
            "briefs",
            self.supabase.table("briefs").upsert(record, on_conflict="project_id")
        )
        row = first_row(result)
        if not row or not row.get("id"):
            raise MarketOpsError("Brief was saved but no id was returned")

        logger.info(f"Saved brief {row['id']} for project {project_id}")
        return row["id"]

    async def generate(self, project_id: str, payload: BriefInput, user_id: Optional[str]) -> WebhookResult:
        """
        Save the brief and ask the pipeline to generate avatars from it.

        Raises:
            MarketOpsError: If no user id is given
            BriefValidationError: If the brief is incomplete
            WebhookError: If the generation webhook rejects the request
        """
        if not user_id:
            raise MarketOpsError("A user id is required to start generation")

        brief_id = await self.save_brief(project_id, payload)

        webhook_payload = {
            "project_id": project_id,
            "brief_id": brief_id,
            "user_id": user_id,
            "brief_version": BRIEF_VERSION,
        }
        logger.info(f"Starting generation for project {project_id} (brief {brief_id})")
        return await self.webhooks.trigger("brief_generation", webhook_payload)
