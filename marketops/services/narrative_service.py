"""
NarrativeService - Narrative strategy and persuasion stack per project.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.database import get_supabase_client
from .models import Narrative
from .normalization import parse_json_field
from .store import first_row, rows_of, run_query

logger = logging.getLogger(__name__)


def persuasion_stack(value: Any) -> Dict[str, Any]:
    """
    Decode a stack_persuasion column.

    The stack is stored either as JSON text or an object, sometimes wrapped
    in a 'STACK_PERSUASION' / 'stack_persuasion' envelope.
    """
    stack = parse_json_field(value, default={})
    if not isinstance(stack, dict):
        return {}
    for key in ('STACK_PERSUASION', 'stack_persuasion'):
        inner = stack.get(key)
        if inner:
            inner = parse_json_field(inner, default={})
            return inner if isinstance(inner, dict) else {}
    return stack


def normalize_narrative(row: Dict[str, Any]) -> Narrative:
    known = {'id', 'project_id', 'avatar_id', 'stack_persuasion'}
    return Narrative(
        id=row.get('id'),
        project_id=row['project_id'],
        avatar_id=row.get('avatar_id'),
        stack_persuasion=persuasion_stack(row.get('stack_persuasion')),
        data={k: parse_json_field(v, default=v) for k, v in row.items() if k not in known},
    )


class NarrativeService:
    """Service for the narrative strategy the pipeline writes per project."""

    def __init__(self, supabase=None):
        self.supabase = supabase or get_supabase_client()

    async def get_narrative(self, project_id: str) -> Optional[Narrative]:
        """Get the project's narrative, or None if it hasn't been generated."""
        result = await run_query(
            "narratives",
            self.supabase.table("narratives").select("*").eq("project_id", project_id).maybe_single()
        )
        row = first_row(result)
        if not row:
            return None
        return normalize_narrative({**row, 'project_id': row.get('project_id') or project_id})

    async def list_stacks(self, project_id: str) -> List[Narrative]:
        """Persuasion stacks of every avatar in the project."""
        result = await run_query(
            "narratives",
            self.supabase.table("narratives").select("project_id, avatar_id, stack_persuasion").eq("project_id", project_id)
        )
        return [
            normalize_narrative({**row, 'project_id': row.get('project_id') or project_id})
            for row in rows_of(result)
        ]
