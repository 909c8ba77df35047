"""
ProjectService - Project listing, creation and dashboard counters.
"""

import logging
from typing import List, Optional

from ..core.database import get_supabase_client
from .errors import MarketOpsError
from .models import Project, ProjectStats
from .store import first_row, rows_of, run_query
from .webhook_service import WebhookResult, WebhookService

logger = logging.getLogger(__name__)


class ProjectService:
    """
    Service for managing projects.

    Features:
    - List and fetch projects
    - Create a project for a user
    - Dashboard counters (brief, avatars, competitors, ads)
    - Kick off context and avatar generation
    """

    def __init__(self, supabase=None, webhooks: Optional[WebhookService] = None):
        self.supabase = supabase or get_supabase_client()
        self.webhooks = webhooks or WebhookService()

    async def list_projects(self) -> List[Project]:
        """List all projects, newest first."""
        result = await run_query(
            "projects",
            self.supabase.table("projects").select("*").order("created_at", desc=True)
        )
        return [Project(**row) for row in rows_of(result)]

    async def get_project(self, project_id: str) -> Optional[Project]:
        result = await run_query(
            "projects",
            self.supabase.table("projects").select("*").eq("id", project_id).maybe_single()
        )
        row = first_row(result)
        return Project(**row) if row else None

    async def create_project(self, name: str, objective: str = "", user_id: Optional[str] = None) -> Project:
        """
        Create a project owned by a user.

        Raises:
            MarketOpsError: If the user or name is missing
        """
        if not user_id:
            raise MarketOpsError("A user id is required to create a project")
        if not name or not name.strip():
            raise MarketOpsError("Project name is required")

        record = {
            "name": name.strip(),
            "objective": objective,
            "user_id": user_id,
        }

        result = await run_query(
            "projects",
            self.supabase.table("projects").insert(record)
        )
        row = first_row(result)
        if not row or not row.get("id"):
            raise MarketOpsError("Project was not created: no id returned")

        logger.info(f"Created project {row['id']} for user {user_id}")
        return Project(id=row["id"], **record)

    async def get_stats(self, project_id: str) -> ProjectStats:
        """Brief status and row counts shown on the project dashboard."""
        brief = await run_query(
            "briefs",
            self.supabase.table("briefs").select("is_valid").eq("project_id", project_id).maybe_single()
        )
        brief_row = first_row(brief)

        counts = {}
        for table in ("avatars", "competitors_strategic", "ads_creation"):
            result = await run_query(
                table,
                self.supabase.table(table).select("id", count="exact").eq("project_id", project_id)
            )
            counts[table] = getattr(result, "count", None) or 0

        return ProjectStats(
            brief_completed=bool(brief_row and brief_row.get("is_valid")),
            avatars_count=counts["avatars"],
            competitors_count=counts["competitors_strategic"],
            ads_count=counts["ads_creation"],
        )

    async def trigger_context_and_avatars(self, project_id: str) -> WebhookResult:
        """Ask the pipeline to build market context and avatars for a project."""
        return await self.webhooks.trigger("context_and_avatars", {"project_id": project_id})
