"""
Local UI preferences.

The only state MarketOps owns outright: which avatar slots a user selected
per project, and whether delete confirmations are skipped. Stored as JSON
at Config.PREFERENCES_PATH.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.config import Config

logger = logging.getLogger(__name__)


class PreferencesStore:
    """JSON-file backed preferences, keyed by project id where relevant."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or Config.PREFERENCES_PATH).expanduser()

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable preferences at {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8')

    @staticmethod
    def _slot_map(data: Dict[str, Any]) -> Dict[str, Any]:
        slots = data.get('selected_avatar_slots')
        return slots if isinstance(slots, dict) else {}

    def selected_avatar_slots(self, project_id: str) -> List[int]:
        slots = self._slot_map(self.load()).get(project_id)
        if not isinstance(slots, list):
            return []
        return [int(s) for s in slots if isinstance(s, int) or str(s).isdigit()]

    def set_selected_avatar_slots(self, project_id: str, slots: List[int]) -> List[int]:
        data = self.load()
        selected = sorted({int(s) for s in slots})
        slot_map = self._slot_map(data)
        slot_map[project_id] = selected
        data['selected_avatar_slots'] = slot_map
        self._save(data)
        return selected

    @property
    def skip_delete_confirm(self) -> bool:
        return bool(self.load().get('skip_delete_confirm', False))

    def set_skip_delete_confirm(self, value: bool) -> None:
        data = self.load()
        data['skip_delete_confirm'] = bool(value)
        self._save(data)
