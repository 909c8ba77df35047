"""
Pydantic models for MarketOps services.

These models provide typed views over rows the external pipeline writes:
- Projects, briefs and their validation result
- Analysis jobs, section rows and derived progress snapshots
- Avatars and their market/social research contexts
- Competitors, narratives and ad creatives

All models use Pydantic v2. Row payloads coming from the LLM pipeline have no
fixed schema, so free-form blobs are kept as Dict[str, Any].
"""

from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any, Tuple


# ============================================================================
# Jobs & Progress
# ============================================================================

class JobStatus(str, Enum):
    """Status of an analysis job as reported by the pipeline."""
    QUEUED = "queued"
    PROCESSING = "processing"
    RUNNING = "running"
    DONE = "done"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    JobStatus.DONE,
    JobStatus.SUCCEEDED,
    JobStatus.FAILED,
    JobStatus.CANCELED,
})


class AnalysisJob(BaseModel):
    """One unit of pipeline work for one avatar within a project."""
    id: str
    project_id: str
    avatar_id: Optional[str] = None
    avatar_slot: Optional[int] = None
    status: Optional[JobStatus] = None
    created_at: Optional[datetime] = None
    error: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class SectionRow(BaseModel):
    """One named analytical section written for a job or avatar."""
    owner_id: str = Field(..., description="job_id or avatar_id, depending on the table")
    section: str
    data: Any = None
    created_at: Optional[datetime] = None


class ProgressSnapshot(BaseModel):
    """Derived per-owner progress; never persisted."""
    owner_id: str
    completed_sections: int = Field(default=0, ge=0)
    total_expected: int = Field(default=0, ge=0)
    is_ready: bool = False
    observed_sections: List[str] = Field(default_factory=list)
    missing_sections: List[str] = Field(default_factory=list)
    status: Optional[JobStatus] = None

    @property
    def has_failed(self) -> bool:
        """Reported failed or canceled before all sections were written."""
        return not self.is_ready and self.status in (JobStatus.FAILED, JobStatus.CANCELED)

    @property
    def is_settled(self) -> bool:
        """Ready, or the owner reached a terminal status and will write nothing more."""
        return self.is_ready or (self.status is not None and self.status.is_terminal)


class JobResult(BaseModel):
    """An analysis job joined with its output sections."""
    job_id: str
    avatar_id: Optional[str] = None
    status: Optional[JobStatus] = None
    display_status: Optional[JobStatus] = None
    name: str
    headline: str = ""
    avatar_slot: Optional[int] = None
    created_at: Optional[datetime] = None
    error: Optional[str] = None
    sections: List[Dict[str, Any]] = Field(default_factory=list)
    progress: ProgressSnapshot


# ============================================================================
# Projects & Briefs
# ============================================================================

class Project(BaseModel):
    id: str
    name: str
    objective: Optional[str] = None
    status: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class ProjectStats(BaseModel):
    """Headline counters shown on the project dashboard."""
    brief_completed: bool = False
    avatars_count: int = 0
    competitors_count: int = 0
    ads_count: int = 0


class BriefPayload(BaseModel):
    """
    Structured questionnaire describing the business and offer.

    Every field defaults to empty so partially-filled drafts load cleanly;
    completeness is checked by validate_brief_payload, not by the model.
    """
    nombre_comercial: str = ""
    nombre_interno: str = ""
    mision_empresa: str = ""
    vision_empresa: str = ""
    tipo_oferta: str = Field(default="", description="producto, servicio, infoproducto or saas")
    sector: str = ""
    propuesta_valor_promesa: str = ""
    url_producto: Optional[str] = ""
    segmento_cliente_objetivo: str = ""
    problema_principal_resuelve: str = ""
    personas_experimentan_problema: str = ""
    transformacion_deseada: str = ""
    pais_objetivo: str = ""
    precio_aprox: str = ""
    objetivo_proyecto: str = ""
    tema_clave: str = ""
    competidores_relevantes: List[str] = Field(default_factory=list)
    referentes_inspiracion: List[str] = Field(default_factory=list)
    tiene_limites_comunicacion: str = Field(default="", description="si, no or empty")
    detalles_limites_comunicacion: str = ""

    model_config = {"extra": "ignore"}


class BriefValidation(BaseModel):
    ok: bool
    missing: List[str] = Field(default_factory=list)


class Brief(BaseModel):
    """A stored brief row."""
    id: Optional[str] = None
    project_id: str
    payload: BriefPayload = Field(default_factory=BriefPayload)
    version: int = 1
    is_valid: bool = False
    missing_fields: List[str] = Field(default_factory=list)


# ============================================================================
# Avatars & Research Context
# ============================================================================

class NormalizedAvatar(BaseModel):
    id: str
    project_id: Optional[str] = None
    name: str
    description: str = "Sin descripción."
    age: Optional[str] = None
    gender: Optional[str] = None
    income: Optional[str] = None
    slot: Optional[int] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class MarketContext(BaseModel):
    """Market research context (context_p1)."""
    resumen_ejecutivo: str = ""
    evidencias_y_datos: List[Dict[str, Any]] = Field(default_factory=list)
    dolencias_que_alivia: List[Dict[str, Any]] = Field(default_factory=list)
    insights_publicitarios: List[str] = Field(default_factory=list)


class SocialItem(BaseModel):
    cita: str = ""
    url: str = "#"
    display_tag: str
    display_source: str


class SocialContext(BaseModel):
    """Social listening context (context_p2)."""
    dolores: List[SocialItem] = Field(default_factory=list)
    fallos: List[SocialItem] = Field(default_factory=list)
    objeciones: List[SocialItem] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.dolores) + len(self.fallos) + len(self.objeciones)


class LevelBlock(BaseModel):
    """Sections belonging to one numbered block of a consciousness-level analysis."""
    block: int
    sections: List[Dict[str, Any]] = Field(default_factory=list)


# ============================================================================
# Competitors, Narrative & Ads
# ============================================================================

class Competitor(BaseModel):
    id: str
    project_id: Optional[str] = None
    nombre: str = ""
    web_url: Optional[str] = None
    clasificacion: Optional[str] = None
    propuesta_valor: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class CompetitorStrategy(BaseModel):
    id: Optional[str] = None
    project_id: str
    analisis_final_ia: Any = None
    created_at: Optional[datetime] = None


class CompetitorAd(BaseModel):
    id: Optional[str] = None
    competitor_id: Optional[str] = None
    competitor_name: str = "Competidor"
    media_url: str = ""
    media_type: str = "image"
    hook_gancho: str = ""
    created_at: Optional[datetime] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_video(self) -> bool:
        return "video" in (self.media_type or "").lower()


class CompetitorAdsInput(BaseModel):
    name: str
    ads_library_url: str


class Narrative(BaseModel):
    id: Optional[str] = None
    project_id: str
    avatar_id: Optional[str] = None
    stack_persuasion: Dict[str, Any] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)


class AdFormat(str, Enum):
    VIDEO = "video"
    CAROUSEL = "carousel"
    STATIC = "static"


class FunnelStage(str, Enum):
    TOFU = "TOFU"
    MOFU = "MOFU"
    BOFU = "BOFU"


class AdRequest(BaseModel):
    """Form data for requesting one ad creative."""
    project_id: str
    avatar_id: str = ""
    funnel_stage: str = ""
    format: str = ""
    angle: str = ""
    angle_source: Optional[str] = None
    script_type: str = ""
    video_duration_preset: str = "30"
    custom_video_duration: Optional[str] = None
    carousel_slides: int = Field(default=5, ge=1)


class AdCreation(BaseModel):
    id: str
    project_id: Optional[str] = None
    avatar_id: Optional[str] = None
    avatar_name: str = "Avatar"
    funnel_stage: Optional[str] = None
    format: Optional[str] = None
    angle: Optional[str] = None
    created_at: Optional[datetime] = None
    data: Dict[str, Any] = Field(default_factory=dict)


StatusLabel = Tuple[str, str]
