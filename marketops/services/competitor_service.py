"""
CompetitorService - Strategic competitor research and competitor ad analysis.

Reads the competitor strategy summary and competitor list the pipeline
writes for a project, the tactical ad library scraped per competitor, and
requests new ad-library analyses through the analysis webhook.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.database import get_supabase_client
from .errors import MarketOpsError
from .models import Competitor, CompetitorAd, CompetitorAdsInput, CompetitorStrategy
from .normalization import as_dict, first_text, get_value
from .store import first_row, rows_of, run_query
from .webhook_service import WebhookResult, WebhookService

logger = logging.getLogger(__name__)

MIN_COMPETITORS_FOR_ANALYSIS = 3
MAX_COMPETITORS_FOR_ANALYSIS = 5

MEDIA_FORMATS = ('all', 'video', 'image')


def normalize_web_url(url: Optional[str]) -> Optional[str]:
    """Prefix https:// when a stored web URL has no scheme."""
    if not url or not url.strip():
        return None
    url = url.strip()
    if url.startswith('http'):
        return url
    return f"https://{url}"


def normalize_competitor(row: Dict[str, Any]) -> Competitor:
    known = {'id', 'project_id', 'nombre', 'web_url', 'clasificacion', 'propuesta_valor'}
    return Competitor(
        id=row['id'],
        project_id=row.get('project_id'),
        nombre=row.get('nombre') or '',
        web_url=normalize_web_url(row.get('web_url')),
        clasificacion=row.get('clasificacion'),
        propuesta_valor=row.get('propuesta_valor'),
        data={k: v for k, v in row.items() if k not in known},
    )


def normalize_competitor_ad(row: Dict[str, Any], names_by_id: Dict[str, str]) -> CompetitorAd:
    """
    Map a competitor_ads_tactical row onto CompetitorAd.

    Rows come with inconsistent key casing (media_url / Media_Url / Media_url).
    """
    competitor_id = get_value(row, ['competitor_id'])
    name = (
        names_by_id.get(competitor_id or '')
        or first_text(row.get('competitor_name'))
        or 'Competidor'
    )
    return CompetitorAd(
        id=row.get('id'),
        competitor_id=competitor_id,
        competitor_name=name,
        media_url=get_value(row, ['media_url']) or '',
        media_type=get_value(row, ['media_type']) or 'image',
        hook_gancho=get_value(row, ['hook_gancho']) or '',
        created_at=row.get('created_at'),
        data=row,
    )


def filter_competitor_ads(
    ads: List[CompetitorAd],
    competitor: Optional[str] = None,
    media_format: str = 'all'
) -> List[CompetitorAd]:
    """Filter ads by competitor name and by 'video' / 'image' format."""
    if media_format not in MEDIA_FORMATS:
        raise ValueError(f"media_format must be one of {', '.join(MEDIA_FORMATS)}")

    filtered = []
    for ad in ads:
        if competitor and competitor != 'all' and ad.competitor_name != competitor:
            continue
        if media_format == 'video' and not ad.is_video:
            continue
        if media_format == 'image' and ad.is_video:
            continue
        filtered.append(ad)
    return filtered


def validate_ads_analysis_input(competitors: List[CompetitorAdsInput]) -> None:
    """
    Raises:
        MarketOpsError: Unless 3 to 5 competitors are given, each fully filled in
    """
    if len(competitors) < MIN_COMPETITORS_FOR_ANALYSIS:
        raise MarketOpsError(f"At least {MIN_COMPETITORS_FOR_ANALYSIS} competitors are required")
    if len(competitors) > MAX_COMPETITORS_FOR_ANALYSIS:
        raise MarketOpsError(f"At most {MAX_COMPETITORS_FOR_ANALYSIS} competitors can be analysed at once")
    if any(not c.name.strip() or not c.ads_library_url.strip() for c in competitors):
        raise MarketOpsError("Every competitor needs a name and an ads library URL")


class CompetitorService:
    """
    Service for competitor research.

    Features:
    - Latest strategic analysis and competitor list per project
    - Competitor ad library with format/competitor filters
    - Request an ad-library analysis for 3-5 competitors
    """

    def __init__(self, supabase=None, webhooks: Optional[WebhookService] = None):
        self.supabase = supabase or get_supabase_client()
        self.webhooks = webhooks or WebhookService()

    async def get_strategy(self, project_id: str) -> Optional[CompetitorStrategy]:
        """Latest strategic analysis for a project, or None."""
        result = await run_query(
            "competitor_strategies",
            self.supabase.table("competitor_strategies")
                .select("id, project_id, analisis_final_ia, created_at")
                .eq("project_id", project_id)
                .order("created_at", desc=True)
                .limit(1)
                .maybe_single()
        )
        row = first_row(result)
        return CompetitorStrategy(**row) if row else None

    async def list_competitors(self, project_id: str) -> List[Competitor]:
        result = await run_query(
            "competitors_strategic",
            self.supabase.table("competitors_strategic")
                .select("id, project_id, nombre, web_url, clasificacion, propuesta_valor")
                .eq("project_id", project_id)
                .order("nombre")
        )
        return [normalize_competitor(row) for row in rows_of(result)]

    async def get_overview(self, project_id: str) -> Tuple[Optional[CompetitorStrategy], List[Competitor]]:
        """Strategy summary and competitor list, read concurrently."""
        strategy, competitors = await asyncio.gather(
            self.get_strategy(project_id),
            self.list_competitors(project_id),
        )
        return strategy, competitors

    async def get_competitor(self, competitor_id: str) -> Optional[Competitor]:
        result = await run_query(
            "competitors_strategic",
            self.supabase.table("competitors_strategic").select("*").eq("id", competitor_id).maybe_single()
        )
        row = first_row(result)
        return normalize_competitor(row) if row else None

    async def get_ads_analysis(self, project_id: str) -> Any:
        """Final written analysis of competitor ads, if the pipeline produced one."""
        result = await run_query(
            "competitor_strategies",
            self.supabase.table("competitor_strategies")
                .select("analisis_final_anuncios")
                .eq("project_id", project_id)
                .limit(1)
                .maybe_single()
        )
        row = first_row(result)
        return row.get("analisis_final_anuncios") if row else None

    async def list_competitor_ads(
        self,
        project_id: str,
        competitor: Optional[str] = None,
        media_format: str = 'all'
    ) -> List[CompetitorAd]:
        """
        List scraped competitor ads, newest first.

        Args:
            project_id: Project UUID
            competitor: Only ads of this competitor name
            media_format: 'all', 'video' or 'image'
        """
        competitors = await self.list_competitors(project_id)
        names_by_id = {c.id: c.nombre for c in competitors}

        result = await run_query(
            "competitor_ads_tactical",
            self.supabase.table("competitor_ads_tactical")
                .select("*")
                .eq("project_id", project_id)
                .order("created_at", desc=True)
        )
        ads = [normalize_competitor_ad(as_dict(row), names_by_id) for row in rows_of(result)]
        return filter_competitor_ads(ads, competitor=competitor, media_format=media_format)

    async def request_ads_analysis(self, project_id: str, competitors: List[CompetitorAdsInput]) -> WebhookResult:
        """
        Ask the pipeline to scrape and analyse competitors' ad libraries.

        Raises:
            MarketOpsError: If the competitor list is incomplete
            WebhookError: If the analysis webhook rejects the request
        """
        validate_ads_analysis_input(competitors)

        payload = {
            "project_id": project_id,
            "competitors": [
                {"name": c.name.strip(), "ads_library_url": c.ads_library_url.strip()}
                for c in competitors
            ],
        }
        logger.info(f"Requesting ad analysis for {len(competitors)} competitors of project {project_id}")
        return await self.webhooks.trigger("competitor_ads_analysis", payload)
