"""
AdCreationService - Request ad creatives for an avatar and manage the results.

An ad request picks an avatar, a funnel stage (TOFU/MOFU/BOFU), a format and
a persuasion angle. Angles come from the avatar's funnel column for that
stage when present, otherwise from the project's narrative persuasion stack.
The ad creation webhook writes the finished creative into `ads_creation`.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.database import get_supabase_client
from .errors import AdRequestError
from .models import AdCreation, AdFormat, AdRequest
from .narrative_service import persuasion_stack
from .normalization import as_dict, first_text, parse_json_field
from .store import rows_of, run_query
from .webhook_service import WebhookService

logger = logging.getLogger(__name__)

FUNNEL_COLUMNS = ('tofu', 'mofu', 'bofu')
STAGE_ANGLE_PREFIX = 'Estrategia '


def build_ad_payload(request: AdRequest) -> Dict[str, Any]:
    """
    Validate an ad request and build the webhook payload.

    Raises:
        AdRequestError: If required fields are missing for the chosen format
    """
    if not (request.avatar_id and request.funnel_stage and request.format and request.angle):
        raise AdRequestError("Avatar, funnel stage, format and angle are required")

    video_duration_seconds = None
    carousel_slides = None

    if request.format == AdFormat.VIDEO.value:
        if not request.script_type:
            raise AdRequestError("Video ads need a script type")
        if request.video_duration_preset == 'custom':
            if not request.custom_video_duration:
                raise AdRequestError("Enter a custom video duration in seconds")
            video_duration_seconds = _parse_seconds(request.custom_video_duration)
        else:
            video_duration_seconds = _parse_seconds(request.video_duration_preset)
    elif request.format == AdFormat.CAROUSEL.value:
        carousel_slides = request.carousel_slides

    # Angles offered from the avatar's funnel column are not real stack sources
    angle_source = request.angle_source or None
    if angle_source and angle_source.startswith(STAGE_ANGLE_PREFIX):
        angle_source = None

    return {
        "project_id": request.project_id,
        "avatar_id": request.avatar_id,
        "funnel_stage": request.funnel_stage,
        "format": request.format,
        "script_type": request.script_type,
        "angle": request.angle,
        "angle_idea": request.angle,
        "angle_source": angle_source,
        "video_duration_seconds": video_duration_seconds,
        "carousel_slides": carousel_slides,
    }


def _parse_seconds(value: str) -> int:
    try:
        seconds = int(str(value).strip())
    except ValueError:
        raise AdRequestError(f"Invalid video duration: {value!r}") from None
    if seconds <= 0:
        raise AdRequestError("Video duration must be positive")
    return seconds


def available_angles(
    avatar: Optional[Dict[str, Any]],
    stack_persuasion: Any,
    funnel_stage: Optional[str] = None
) -> Dict[str, Any]:
    """
    Angles to choose from, grouped by source.

    Args:
        avatar: Avatar row with optional tofu/mofu/bofu columns
        stack_persuasion: The avatar's narrative persuasion stack
        funnel_stage: 'TOFU', 'MOFU' or 'BOFU'

    Returns:
        Mapping of group name to angles; a flat funnel list is grouped
        under 'Estrategia <STAGE>'
    """
    if avatar and funnel_stage:
        content = avatar.get(funnel_stage.lower())
        if content:
            if isinstance(content, str):
                parsed = parse_json_field(content, default=None)
                content = parsed if parsed is not None else [content]
            if isinstance(content, list):
                return {f"{STAGE_ANGLE_PREFIX}{funnel_stage}": content}
            if isinstance(content, dict):
                return content

    return persuasion_stack(stack_persuasion)


class AdCreationService:
    """
    Service for ad creatives.

    Features:
    - List generated ads with avatar names
    - Angle options per avatar and funnel stage
    - Request a new creative through the ad creation webhook
    - Delete a creative
    """

    def __init__(self, supabase=None, webhooks: Optional[WebhookService] = None):
        self.supabase = supabase or get_supabase_client()
        self.webhooks = webhooks or WebhookService()

    async def _avatar_rows(self, project_id: str) -> List[Dict[str, Any]]:
        result = await run_query(
            "avatars",
            self.supabase.table("avatars")
                .select("id, etiqueta, profile, tofu, mofu, bofu")
                .eq("project_id", project_id)
                .order("slot")
        )
        return rows_of(result)

    @staticmethod
    def _avatar_name(row: Dict[str, Any]) -> str:
        name = first_text(row.get('etiqueta'), as_dict(row.get('profile')).get('name'))
        return name or f"Avatar {str(row.get('id', ''))[:4]}"

    async def list_ads(self, project_id: str) -> List[AdCreation]:
        """List a project's ads, newest first, with avatar names filled in."""
        names = {row['id']: self._avatar_name(row) for row in await self._avatar_rows(project_id)}

        result = await run_query(
            "ads_creation",
            self.supabase.table("ads_creation")
                .select("*")
                .eq("project_id", project_id)
                .order("created_at", desc=True)
        )

        ads = []
        for row in rows_of(result):
            ads.append(AdCreation(
                id=row['id'],
                project_id=row.get('project_id'),
                avatar_id=row.get('avatar_id'),
                avatar_name=names.get(row.get('avatar_id'), 'Avatar'),
                funnel_stage=row.get('funnel_stage'),
                format=row.get('format'),
                angle=row.get('angle'),
                created_at=row.get('created_at'),
                data=row,
            ))
        return ads

    async def get_angles(self, project_id: str, avatar_id: str, funnel_stage: Optional[str] = None) -> Dict[str, Any]:
        """Angle options for an avatar, see available_angles."""
        avatar = next((row for row in await self._avatar_rows(project_id) if row['id'] == avatar_id), None)

        result = await run_query(
            "narratives",
            self.supabase.table("narratives")
                .select("avatar_id, stack_persuasion")
                .eq("project_id", project_id)
        )
        narrative = next((row for row in rows_of(result) if row.get('avatar_id') == avatar_id), None)

        return available_angles(avatar, narrative.get('stack_persuasion') if narrative else None, funnel_stage)

    async def generate_ad(self, request: AdRequest) -> List[AdCreation]:
        """
        Request a creative and return the project's refreshed ad list.

        Raises:
            AdRequestError: If the request is incomplete
            WebhookError: If the ad creation webhook rejects the request
        """
        payload = build_ad_payload(request)
        logger.info(f"Requesting {request.format} ad for avatar {request.avatar_id} ({request.funnel_stage})")
        await self.webhooks.trigger("ad_creation", payload)
        return await self.list_ads(request.project_id)

    async def delete_ad(self, ad_id: str) -> bool:
        await run_query("ads_creation", self.supabase.table("ads_creation").delete().eq("id", ad_id))
        logger.info(f"Deleted ad {ad_id}")
        return True
