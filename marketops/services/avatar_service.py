"""
AvatarService - Buyer avatar profiles and their analysis output.

Avatars are written by the generation pipeline with a free-form `profile`
JSON blob. This service turns those rows into NormalizedAvatar, reads the
research contexts the avatars were built from, and exposes the per-avatar
master dossier and consciousness-level analysis.
"""

import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..core.database import get_supabase_client
from .errors import AvatarDataNotFound
from .models import LevelBlock, MarketContext, NormalizedAvatar, SocialContext, SocialItem
from .normalization import as_dict, as_list, first_text, get_value, parse_json_field, unwrap
from .store import first_row, rows_of, run_query
from .webhook_service import WebhookService

logger = logging.getLogger(__name__)

AGE_KEYS = ['rango_edad', 'edad', 'age', 'years', 'rango_de_edad']
GENDER_KEYS = ['sexo', 'genero', 'gender', 'sex']
INCOME_KEYS = ['nivel_ingresos', 'ingresos', 'income', 'nse', 'nivel_socioeconomico']

_GENERIC_NAME = re.compile(r'^avatar\s*\d+$', re.IGNORECASE)
_UNSAFE_FILENAME_CHARS = re.compile(r'[^a-z0-9áéíóúñ\s-]', re.IGNORECASE)


# ============================================================================
# Row normalization
# ============================================================================

def avatar_display_name(profile: Dict[str, Any], etiqueta: Optional[str], slot: Any) -> str:
    """
    Pick the name to show for an avatar.

    Order: a real name in the profile (generic "Avatar N" placeholders are
    skipped), then the row label, then "Avatar <slot>".
    """
    data = as_dict(profile.get('data'))
    for candidate in (data.get('nombre'), profile.get('nombre'), data.get('name'), profile.get('name')):
        name = first_text(candidate)
        if name and not _GENERIC_NAME.match(name):
            return name

    label = first_text(etiqueta)
    if label:
        return label

    return f"Avatar {slot if slot is not None else ''}".strip()


def normalize_avatar(row: Dict[str, Any]) -> NormalizedAvatar:
    """Build a NormalizedAvatar from an `avatars` row."""
    profile = as_dict(row.get('profile'))
    data = as_dict(profile.get('data'))

    return NormalizedAvatar(
        id=row['id'],
        project_id=row.get('project_id'),
        name=avatar_display_name(profile, row.get('etiqueta'), row.get('slot')),
        description=first_text(profile.get('headline')) or 'Sin descripción.',
        age=_as_text(get_value(data, AGE_KEYS)),
        gender=_as_text(get_value(data, GENDER_KEYS)),
        income=_as_text(get_value(data, INCOME_KEYS)),
        slot=row.get('slot'),
        data=data,
    )


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def extract_market_context(content: Any) -> Optional[MarketContext]:
    """Market research context (context_p1), optionally wrapped in 'p1_contexto'."""
    parsed = parse_json_field(content)
    if not isinstance(parsed, dict):
        return None

    root = unwrap(parsed, 'p1_contexto')
    return MarketContext(
        resumen_ejecutivo=root.get('ResumenEjecutivo') or '',
        evidencias_y_datos=[i for i in as_list(root.get('EvidenciasYDatos')) if isinstance(i, dict)],
        dolencias_que_alivia=[i for i in as_list(root.get('DolenciasQueAlivia')) if isinstance(i, dict)],
        insights_publicitarios=[str(i) for i in as_list(root.get('InsightsPublicitarios'))],
    )


def _social_item(item: Dict[str, Any], kind: str) -> SocialItem:
    cita = item.get('cita') or ''
    if kind == 'dolor':
        tag = item.get('dolor_validado') or 'Dolor validado'
        source = item.get('fuente') or 'Fuente externa'
    elif kind == 'fallo':
        tag = item.get('motivo_fallo') or 'Fallo detectado'
        source = item.get('producto_criticado') or 'Producto competencia'
    else:
        cita = item.get('duda_textual') or cita
        tag = item.get('freno_mental') or item.get('objecion_validada') or 'Objeción'
        source = item.get('fuente') or 'Fuente externa'

    return SocialItem(cita=cita, url=item.get('url') or '#', display_tag=tag, display_source=source)


def extract_social_context(content: Any) -> Optional[SocialContext]:
    """Social listening context (context_p2), optionally wrapped in 'p2_contexto'."""
    parsed = parse_json_field(content)
    if not isinstance(parsed, dict):
        return None

    root = unwrap(parsed, 'p2_contexto')

    def _items(key: str, kind: str) -> List[SocialItem]:
        return [_social_item(i, kind) for i in as_list(root.get(key)) if isinstance(i, dict)]

    return SocialContext(
        dolores=_items('cazador_dolor', 'dolor'),
        fallos=_items('cazador_fallos', 'fallo'),
        objeciones=_items('cazador_objeciones', 'objecion'),
    )


def report_filename(name: Optional[str]) -> str:
    safe_name = _UNSAFE_FILENAME_CHARS.sub('', name or 'avatar').strip() or 'avatar'
    return f"Informe-{safe_name}.pdf"


# ============================================================================
# Service
# ============================================================================

class AvatarService:
    """
    Service for reading generated avatars.

    Features:
    - Normalized avatar listing per project
    - Market and social research contexts
    - Master dossier sections and consciousness-level blocks per avatar
    - PDF report download through the report webhook
    """

    def __init__(self, supabase=None, webhooks: Optional[WebhookService] = None):
        self.supabase = supabase or get_supabase_client()
        self.webhooks = webhooks or WebhookService()

    async def list_avatars(self, project_id: str) -> List[NormalizedAvatar]:
        """List a project's avatars ordered by slot."""
        result = await run_query(
            "avatars",
            self.supabase.table("avatars")
                .select("id, project_id, slot, etiqueta, profile")
                .eq("project_id", project_id)
                .order("slot")
        )
        return [normalize_avatar(row) for row in rows_of(result)]

    async def get_contexts(self, project_id: str) -> Tuple[Optional[MarketContext], Optional[SocialContext]]:
        """
        Get the research contexts the avatars were generated from.

        Returns:
            (market context, social context); either is None when absent
        """
        result = await run_query(
            "contexts",
            self.supabase.table("contexts")
                .select("kind, content")
                .eq("project_id", project_id)
                .in_("kind", ["context_p1", "context_p2"])
        )
        by_kind = {row.get('kind'): row.get('content') for row in rows_of(result)}
        return (
            extract_market_context(by_kind.get('context_p1')),
            extract_social_context(by_kind.get('context_p2')),
        )

    async def get_master_sections(
        self,
        project_id: str,
        avatar_id: str,
        job_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Get the master dossier for an avatar, keyed by section name.

        Section data that isn't valid JSON is replaced by an empty dict.

        Raises:
            AvatarDataNotFound: If no output exists for the avatar
        """
        query = (
            self.supabase.table("avatar_master_outputs")
                .select("*")
                .eq("project_id", project_id)
                .eq("avatar_id", avatar_id)
        )
        if job_id:
            query = query.eq("job_id", job_id)

        rows = rows_of(await run_query("avatar_master_outputs", query))
        if not rows:
            raise AvatarDataNotFound(f"No analysis output found for avatar {avatar_id}")

        sections: Dict[str, Any] = {}
        for row in rows:
            section = row.get('section')
            if not section:
                continue
            parsed = parse_json_field(row.get('data'), default=None)
            if parsed is None:
                logger.warning(f"Section '{section}' of avatar {avatar_id} is not valid JSON")
                parsed = {}
            sections[section] = parsed

        return sections

    async def get_avatar_profile(self, avatar_id: str) -> Dict[str, Any]:
        """
        Get an avatar's profile merged into one flat dict.

        Root profile keys and profile['data'] keys are merged (data wins), and
        'nombre'/'headline' are always filled.
        """
        result = await run_query(
            "avatars",
            self.supabase.table("avatars").select("etiqueta, profile, slot").eq("id", avatar_id).maybe_single()
        )
        row = first_row(result)
        if not row:
            raise AvatarDataNotFound(f"Avatar {avatar_id} not found")

        profile = as_dict(row.get('profile'))
        merged = {**profile, **as_dict(profile.get('data'))}

        name = first_text(merged.get('nombre'), merged.get('name'), row.get('etiqueta'))
        if not name:
            name = f"Avatar {row.get('slot') or ''}".strip()

        return {
            **merged,
            'nombre': name,
            'headline': merged.get('headline') or merged.get('resumen_biografia'),
        }

    async def get_level_blocks(self, project_id: str, avatar_id: str, level: int) -> List[LevelBlock]:
        """
        Get the consciousness-level analysis for an avatar, grouped by block.

        Blocks are returned in ascending order. Section data that isn't valid
        JSON is kept as the raw string.
        """
        result = await run_query(
            "avatar_level_outputs",
            self.supabase.table("avatar_level_outputs")
                .select("*")
                .eq("project_id", project_id)
                .eq("avatar_id", avatar_id)
                .eq("level", level)
        )

        grouped: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
        for row in rows_of(result):
            raw = row.get('data')
            grouped[int(row.get('block') or 0)].append({**row, 'data': parse_json_field(raw, default=raw)})

        return [LevelBlock(block=block, sections=grouped[block]) for block in sorted(grouped)]

    async def download_report(
        self,
        project_id: str,
        avatar_id: str,
        dest_dir: Path,
        name: Optional[str] = None
    ) -> Path:
        """
        Download the PDF report for an avatar.

        Args:
            project_id: Project UUID
            avatar_id: Avatar UUID
            dest_dir: Directory to write the PDF into
            name: Display name used in the file name

        Returns:
            Path of the written PDF
        """
        content = await self.webhooks.download(
            "avatar_report",
            {"project_id": project_id, "avatar_id": avatar_id}
        )

        dest_dir = Path(dest_dir)
        dest_dir.mkdir(parents=True, exist_ok=True)
        path = dest_dir / report_filename(name)
        path.write_bytes(content)

        logger.info(f"Saved report for avatar {avatar_id} to {path}")
        return path
