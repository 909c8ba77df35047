"""
ResultsService - Analysis jobs joined with the sections they produced.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from ..core.config import Config, SectionManifest, load_section_manifests
from ..core.database import get_supabase_client
from .models import AnalysisJob, JobResult
from .normalization import as_dict
from .progress import aggregate_progress, coerce_status, resolve_display_status
from .store import rows_of, run_query

logger = logging.getLogger(__name__)

JOB_COLUMNS = "id, project_id, avatar_id, avatar_slot, status, created_at, error, payload"


class ResultsService:
    """
    Service for the per-job analysis results of a project.

    Each job's progress is judged against the 'analysis_job' manifest. A job
    whose sections are all present is shown as succeeded even while the
    pipeline still reports it as running (see Config.OPTIMISTIC_COMPLETION).
    """

    JOB_TYPE = "analysis_job"

    def __init__(
        self,
        supabase=None,
        manifests: Optional[Mapping[str, SectionManifest]] = None,
        optimistic: Optional[bool] = None
    ):
        self.supabase = supabase or get_supabase_client()
        self.manifests = manifests or load_section_manifests()
        self.optimistic = Config.OPTIMISTIC_COMPLETION if optimistic is None else optimistic

    @property
    def manifest(self) -> SectionManifest:
        return self.manifests[self.JOB_TYPE]

    async def list_jobs(self, project_id: str) -> List[AnalysisJob]:
        result = await run_query(
            "analysis_jobs",
            self.supabase.table("analysis_jobs")
                .select(JOB_COLUMNS)
                .eq("project_id", project_id)
                .order("created_at", desc=True)
        )
        return [AnalysisJob(**_clean_job(row)) for row in rows_of(result)]

    async def get_job_results(self, project_id: str) -> List[JobResult]:
        """
        Get every analysis job of a project with its output sections.

        Returns:
            JobResult per job, newest first
        """
        jobs = await self.list_jobs(project_id)
        if not jobs:
            return []

        manifest = self.manifest
        result = await run_query(
            manifest.table,
            self.supabase.table(manifest.table).select("*").in_("job_id", [job.id for job in jobs])
        )
        outputs = rows_of(result)

        outputs_by_job: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for output in outputs:
            if output.get("job_id"):
                outputs_by_job[output["job_id"]].append(output)

        snapshots = aggregate_progress(
            outputs,
            manifest,
            owner_key="job_id",
            expected_owners=[job.id for job in jobs],
        )

        return [self._to_result(job, outputs_by_job.get(job.id, []), snapshots[job.id]) for job in jobs]

    def _to_result(self, job: AnalysisJob, sections: List[Dict[str, Any]], snapshot) -> JobResult:
        slot = job.avatar_slot
        return JobResult(
            job_id=job.id,
            avatar_id=job.avatar_id,
            status=job.status,
            display_status=resolve_display_status(job.status, snapshot, optimistic=self.optimistic),
            name=job.payload.get("name") or f"Avatar #{slot if slot is not None else ''}",
            headline=job.payload.get("headline") or "",
            avatar_slot=slot,
            created_at=job.created_at,
            error=job.error,
            sections=sections,
            progress=snapshot,
        )


def _clean_job(row: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unknown statuses and non-dict payloads so the row fits AnalysisJob."""
    return {
        **row,
        "status": coerce_status(row.get("status")) if row.get("status") else None,
        "payload": as_dict(row.get("payload")),
    }
