"""
Configuration management for MarketOps
"""

import os
import yaml
from pathlib import Path
from typing import Optional, Dict, List, Any
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Application configuration"""

    # Supabase
    SUPABASE_URL: str = os.getenv('SUPABASE_URL', '')
    SUPABASE_KEY: str = os.getenv('SUPABASE_KEY', '') or os.getenv('SUPABASE_SERVICE_KEY', '')
    SUPABASE_SCHEMA: str = os.getenv('SUPABASE_SCHEMA', 'mts')

    # Webhooks (generation pipeline)
    WEBHOOK_BASE_URL: str = os.getenv('WEBHOOK_BASE_URL', '')
    WEBHOOK_TIMEOUT: float = float(os.getenv('WEBHOOK_TIMEOUT', '120'))
    WEBHOOK_ENDPOINTS: Dict[str, str] = {
        'brief_generation': 'buyer-parte1',
        'ad_creation': 'creacion-anuncios',
        'competitor_ads_analysis': 'analisisanuncios',
        'avatar_report': 'descargar-doc',
        'context_and_avatars': 'ctx-and-avatars',
    }

    # Progress polling
    POLL_INTERVAL_SECONDS: float = float(os.getenv('POLL_INTERVAL_SECONDS', '5'))
    POLL_MAX_BACKOFF_SECONDS: float = float(os.getenv('POLL_MAX_BACKOFF_SECONDS', '60'))
    OPTIMISTIC_COMPLETION: bool = _env_bool('OPTIMISTIC_COMPLETION', True)
    SECTION_MANIFESTS_PATH: str = os.getenv('SECTION_MANIFESTS_PATH', '')

    # Local preferences
    PREFERENCES_PATH: str = os.getenv(
        'PREFERENCES_PATH',
        str(Path.home() / '.marketops' / 'preferences.json')
    )

    @classmethod
    def validate(cls) -> bool:
        """Validate required configuration"""
        required = {
            'SUPABASE_URL': cls.SUPABASE_URL,
            'SUPABASE_KEY': cls.SUPABASE_KEY,
        }

        missing = [k for k, v in required.items() if not v]

        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

        return True

    @classmethod
    def webhook_url(cls, name: str, base_url: Optional[str] = None) -> str:
        """
        Resolve a webhook endpoint name to an absolute URL.

        Absolute URLs are returned unchanged. Relative names resolve against
        base_url, or WEBHOOK_BASE_URL when none is given. Known endpoint keys
        (e.g. 'ad_creation') map to their path first.

        Raises:
            ValueError: If the name is relative and WEBHOOK_BASE_URL is unset
        """
        if name.startswith(('http://', 'https://')):
            return name

        path = cls.WEBHOOK_ENDPOINTS.get(name, name)

        base = base_url or cls.WEBHOOK_BASE_URL
        if not base:
            raise ValueError(f"WEBHOOK_BASE_URL is not configured (needed for '{name}')")

        return f"{base.rstrip('/')}/{path.lstrip('/')}"


# Section manifests


DEFAULT_MANIFESTS_PATH = Path(__file__).parent / 'section_manifests.yml'


@dataclass
class SectionManifest:
    """Sections a job type is expected to produce for one owner"""
    job_type: str
    table: str
    owner_column: str
    sections: List[str] = field(default_factory=list)
    expected_count: Optional[int] = None
    description: str = ''

    @property
    def total_expected(self) -> int:
        if self.sections:
            return len(self.sections)
        return self.expected_count or 0

    @property
    def by_name(self) -> bool:
        """True when readiness is judged by section names rather than a count"""
        return bool(self.sections)


def _parse_manifest(job_type: str, data: Dict[str, Any]) -> SectionManifest:
    if not isinstance(data, dict):
        raise ValueError(f"Manifest '{job_type}' must be a mapping")

    sections = data.get('sections')
    expected_count = data.get('expected_count')

    if sections is not None and expected_count is not None:
        raise ValueError(f"Manifest '{job_type}' declares both 'sections' and 'expected_count'")
    if sections is None and expected_count is None:
        raise ValueError(f"Manifest '{job_type}' needs 'sections' or 'expected_count'")

    if sections is not None:
        if not isinstance(sections, list) or not sections:
            raise ValueError(f"Manifest '{job_type}' has an empty 'sections' list")
        sections = [str(s) for s in sections]
    else:
        if not isinstance(expected_count, int) or expected_count <= 0:
            raise ValueError(f"Manifest '{job_type}' needs a positive 'expected_count'")

    for key in ('table', 'owner_column'):
        if not data.get(key):
            raise ValueError(f"Manifest '{job_type}' is missing '{key}'")

    return SectionManifest(
        job_type=job_type,
        table=data['table'],
        owner_column=data['owner_column'],
        sections=sections or [],
        expected_count=expected_count,
        description=data.get('description', ''),
    )


def load_section_manifests(path: Optional[str] = None) -> Dict[str, SectionManifest]:
    """
    Load the expected-section manifests per job type.

    Loads from: path argument, then SECTION_MANIFESTS_PATH, then the
    packaged section_manifests.yml.

    Returns:
        Mapping of job type to SectionManifest

    Raises:
        FileNotFoundError: If the manifest file doesn't exist
        ValueError: If an entry is malformed
    """
    manifest_path = Path(path or Config.SECTION_MANIFESTS_PATH or DEFAULT_MANIFESTS_PATH)

    if not manifest_path.exists():
        raise FileNotFoundError(f"Section manifests not found at {manifest_path}")

    with open(manifest_path, 'r', encoding='utf-8') as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ValueError(f"Section manifests at {manifest_path} must be a mapping of job types")

    return {
        job_type: _parse_manifest(job_type, data)
        for job_type, data in raw_config.items()
    }
