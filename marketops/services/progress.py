"""
Progress aggregation for pipeline output.

The generation pipeline writes one row per analytical section and may write
the same section more than once. Progress for an owner (a job or an avatar)
is therefore the set of distinct section names observed, compared against the
manifest configured for that job type.

Everything here is pure: no I/O, no state beyond the rows passed in.
"""

import re
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set, Union

from ..core.config import SectionManifest
from .models import JobStatus, ProgressSnapshot, StatusLabel

ManifestLookup = Union[SectionManifest, Callable[[str], SectionManifest]]

_WHITESPACE = re.compile(r"\s+")

_STATUS_LABELS: Dict[JobStatus, StatusLabel] = {
    JobStatus.QUEUED: ("En cola", "warning"),
    JobStatus.PROCESSING: ("En proceso", "info"),
    JobStatus.RUNNING: ("En proceso", "info"),
    JobStatus.DONE: ("Completado", "success"),
    JobStatus.SUCCEEDED: ("Completado", "success"),
    JobStatus.FAILED: ("Error", "destructive"),
    JobStatus.CANCELED: ("Cancelado", "warning"),
}


def normalize_section_name(name: Any) -> str:
    """Canonical form used to compare section names: no whitespace, lowercase."""
    if name is None:
        return ""
    return _WHITESPACE.sub("", str(name)).lower()


def coerce_status(status: Any) -> Optional[JobStatus]:
    """Map a raw status value to JobStatus, or None if unknown."""
    if isinstance(status, JobStatus):
        return status
    try:
        return JobStatus(str(status).strip().lower())
    except ValueError:
        return None


def _resolve_manifest(manifest_lookup: ManifestLookup, owner_id: str) -> SectionManifest:
    if isinstance(manifest_lookup, SectionManifest):
        return manifest_lookup
    return manifest_lookup(owner_id)


def _row_value(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def build_snapshot(owner_id: str, observed: Set[str], manifest: SectionManifest) -> ProgressSnapshot:
    """Compute one owner's snapshot from its normalized section names."""
    if manifest.by_name:
        expected = {normalize_section_name(s): s for s in manifest.sections}
        completed = sum(1 for key in expected if key in observed)
        missing = sorted(name for key, name in expected.items() if key not in observed)
    else:
        completed = len(observed)
        missing = []

    total = manifest.total_expected
    return ProgressSnapshot(
        owner_id=owner_id,
        completed_sections=completed,
        total_expected=total,
        is_ready=completed >= total,
        observed_sections=sorted(observed),
        missing_sections=missing,
    )


def aggregate_progress(
    rows: Iterable[Any],
    manifest_lookup: ManifestLookup,
    owner_key: str = "owner_id",
    section_key: str = "section",
    expected_owners: Optional[Iterable[str]] = None,
) -> Dict[str, ProgressSnapshot]:
    """
    Group section rows by owner and compute readiness per owner.

    Args:
        rows: Store rows (dicts) or SectionRow-like objects
        manifest_lookup: A SectionManifest, or a callable owner_id -> SectionManifest
        owner_key: Row field holding the owner id (e.g. 'job_id', 'avatar_id')
        section_key: Row field holding the section name
        expected_owners: Owners to report even when no rows exist for them yet

    Returns:
        Mapping of owner id to ProgressSnapshot
    """
    observed_by_owner: Dict[str, Set[str]] = defaultdict(set)

    for owner_id in expected_owners or ():
        observed_by_owner[str(owner_id)]

    for row in rows:
        owner_id = _row_value(row, owner_key)
        section = normalize_section_name(_row_value(row, section_key))
        if not owner_id or not section:
            continue
        observed_by_owner[str(owner_id)].add(section)

    return {
        owner_id: build_snapshot(owner_id, observed, _resolve_manifest(manifest_lookup, owner_id))
        for owner_id, observed in observed_by_owner.items()
    }


def resolve_display_status(
    status: Any,
    snapshot: Optional[ProgressSnapshot],
    optimistic: bool = True,
) -> Optional[JobStatus]:
    """
    Status to show for a job.

    Once every expected section is present, a job whose reported status is
    not terminal is shown as succeeded ahead of the pipeline flipping it.
    """
    reported = coerce_status(status)
    if not optimistic or snapshot is None or not snapshot.is_ready:
        return reported
    if reported is not None and reported.is_terminal:
        return reported
    return JobStatus.SUCCEEDED


def status_label(status: Any) -> StatusLabel:
    """Spanish UI label and tone for a job status; unknown statuses read as queued."""
    return _STATUS_LABELS.get(coerce_status(status), _STATUS_LABELS[JobStatus.QUEUED])


def progress_percentage(snapshot: ProgressSnapshot) -> int:
    if snapshot.total_expected <= 0:
        return 100 if snapshot.is_ready else 0
    return min(100, round(snapshot.completed_sections * 100 / snapshot.total_expected))


def all_ready(snapshots: Mapping[str, ProgressSnapshot]) -> bool:
    """True when at least one owner is tracked and every owner is ready."""
    return bool(snapshots) and all(s.is_ready for s in snapshots.values())


def all_settled(snapshots: Mapping[str, ProgressSnapshot]) -> bool:
    """Like all_ready, but owners in a terminal status count as settled."""
    return bool(snapshots) and all(s.is_settled for s in snapshots.values())
