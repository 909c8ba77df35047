"""
Services layer for MarketOps.

Thin, typed wrappers over the Supabase tables the generation pipeline writes
and the webhooks that drive it, plus progress aggregation and polling.
"""

from .models import (
    JobStatus,
    AnalysisJob,
    SectionRow,
    ProgressSnapshot,
    JobResult,
    Project,
    ProjectStats,
    Brief,
    BriefPayload,
    BriefValidation,
    NormalizedAvatar,
    MarketContext,
    SocialContext,
    LevelBlock,
    Competitor,
    CompetitorAd,
    CompetitorAdsInput,
    CompetitorStrategy,
    Narrative,
    AdRequest,
    AdCreation,
)
from .errors import (
    MarketOpsError,
    StoreError,
    WebhookError,
    BriefValidationError,
    AvatarDataNotFound,
    AdRequestError,
)
from .progress import aggregate_progress, normalize_section_name, resolve_display_status
from .progress_tracker import ProgressTracker, StoreRowSource, Subscription, TrackingScope
from .brief_service import BriefService, validate_brief_payload
