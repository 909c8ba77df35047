"""
ProgressTracker - Polls the store for pipeline output and reports progress.

One poll loop runs per tracking scope (project, optionally narrowed to an
avatar, for one job type), shared by every subscriber of that scope:

- the first read happens immediately, then every `interval` seconds
- the next read is scheduled only after the previous one finished, so a
  scope never has two reads in flight
- a failed read is reported to `on_error` and the delay doubles per
  consecutive failure up to `max_backoff`; the next success resets it
- readiness is latched per owner, so an owner never goes back to not ready
- job-owned scopes also carry each job's reported status
- stopping the last subscription cancels the loop, including a read that is
  still in flight; its result is discarded

Usage:
    tracker = ProgressTracker(StoreRowSource(manifests), manifests)
    sub = tracker.start_tracking(TrackingScope(project_id), on_update=print)
    ...
    tracker.stop_tracking(sub)
"""

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from ..core.config import Config, SectionManifest
from ..core.database import get_supabase_client
from ..core.observability import get_logfire
from .models import ProgressSnapshot
from .progress import aggregate_progress, all_settled, coerce_status
from .store import rows_of, run_query

logger = logging.getLogger(__name__)

SnapshotMap = Dict[str, ProgressSnapshot]
UpdateCallback = Callable[[SnapshotMap], Union[None, Awaitable[None]]]
ErrorCallback = Callable[[Exception], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class TrackingScope:
    """What a poll loop watches: a project, optionally one avatar, for one job type."""
    project_id: str
    avatar_id: Optional[str] = None
    job_type: str = "avatar_master"

    @property
    def key(self) -> str:
        if self.avatar_id:
            return f"{self.project_id}:{self.avatar_id}:{self.job_type}"
        return f"{self.project_id}:{self.job_type}"


@dataclass
class ScopeRows:
    """Section rows read for a scope plus the owners expected to produce them."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    owners: List[str] = field(default_factory=list)
    statuses: Dict[str, Any] = field(default_factory=dict)


RowSource = Callable[[TrackingScope], Awaitable[ScopeRows]]


class StoreRowSource:
    """
    Reads section rows for a scope from Supabase.

    Owners come from the table the manifest keys on: avatars for
    avatar-owned output, analysis_jobs for job-owned output. Including them
    lets owners with nothing written yet show up as 0 sections.
    """

    def __init__(self, manifests: Mapping[str, SectionManifest], supabase=None):
        self.manifests = manifests
        self.supabase = supabase or get_supabase_client()

    async def __call__(self, scope: TrackingScope) -> ScopeRows:
        manifest = self.manifests[scope.job_type]
        owner_column = manifest.owner_column

        statuses: Dict[str, Any] = {}
        if owner_column == "job_id":
            statuses = await self._job_statuses(scope)
            owners = list(statuses)
            if not owners:
                return ScopeRows()
            query = (
                self.supabase.table(manifest.table)
                .select(f"{owner_column}, section")
                .in_("job_id", owners)
            )
        else:
            owners = await self._avatar_ids(scope)
            query = (
                self.supabase.table(manifest.table)
                .select(f"{owner_column}, section")
                .eq("project_id", scope.project_id)
            )
            if scope.avatar_id:
                query = query.eq("avatar_id", scope.avatar_id)

        rows = await self._execute(manifest.table, query)
        return ScopeRows(rows=rows, owners=owners, statuses=statuses)

    async def _job_statuses(self, scope: TrackingScope) -> Dict[str, Any]:
        query = self.supabase.table("analysis_jobs").select("id, status").eq("project_id", scope.project_id)
        if scope.avatar_id:
            query = query.eq("avatar_id", scope.avatar_id)
        return {row["id"]: row.get("status") for row in await self._execute("analysis_jobs", query)}

    async def _avatar_ids(self, scope: TrackingScope) -> List[str]:
        if scope.avatar_id:
            return [scope.avatar_id]
        query = self.supabase.table("avatars").select("id").eq("project_id", scope.project_id)
        return [row["id"] for row in await self._execute("avatars", query)]

    @staticmethod
    async def _execute(table: str, query) -> List[Dict[str, Any]]:
        return rows_of(await run_query(table, query))


class Subscription:
    """Handle returned by start_tracking; pass it to stop_tracking."""

    def __init__(self, scope: TrackingScope, on_update: UpdateCallback, on_error: Optional[ErrorCallback]):
        self.id = str(uuid.uuid4())
        self.scope = scope
        self.on_update = on_update
        self.on_error = on_error
        self.active = True

    def __repr__(self) -> str:
        return f"Subscription(id={self.id!r}, scope={self.scope.key!r}, active={self.active})"


class ProgressTracker:
    """
    Subscription manager for progress polling, keyed by scope.

    Args:
        fetch_rows: Async callable returning ScopeRows for a scope
        manifests: Manifest per job type, or a callable scope -> SectionManifest
        interval: Seconds between reads (defaults to Config.POLL_INTERVAL_SECONDS)
        max_backoff: Upper bound on the delay after failures
    """

    def __init__(
        self,
        fetch_rows: RowSource,
        manifests: Union[Mapping[str, SectionManifest], Callable[[TrackingScope], SectionManifest]],
        interval: Optional[float] = None,
        max_backoff: Optional[float] = None,
    ):
        self.fetch_rows = fetch_rows
        self.manifests = manifests
        self.interval = Config.POLL_INTERVAL_SECONDS if interval is None else interval
        self.max_backoff = Config.POLL_MAX_BACKOFF_SECONDS if max_backoff is None else max_backoff

        self._subscriptions: Dict[TrackingScope, List[Subscription]] = {}
        self._tasks: Dict[TrackingScope, asyncio.Task] = {}
        self._latched: Dict[TrackingScope, SnapshotMap] = {}

    # =========================================================================
    # Reads
    # =========================================================================

    def manifest_for(self, scope: TrackingScope) -> SectionManifest:
        if callable(self.manifests):
            return self.manifests(scope)
        try:
            return self.manifests[scope.job_type]
        except KeyError:
            raise ValueError(f"No section manifest configured for job type '{scope.job_type}'") from None

    async def fetch_snapshot(self, scope: TrackingScope) -> SnapshotMap:
        """
        Read the scope once and aggregate it.

        Returns:
            Mapping of owner id to ProgressSnapshot for this read only
        """
        manifest = self.manifest_for(scope)
        batch = await self.fetch_rows(scope)
        snapshots = aggregate_progress(
            batch.rows,
            manifest,
            owner_key=manifest.owner_column,
            expected_owners=batch.owners,
        )
        for owner_id, status in batch.statuses.items():
            if owner_id in snapshots:
                snapshots[owner_id] = snapshots[owner_id].model_copy(update={"status": coerce_status(status)})
        return snapshots

    def next_delay(self, failures: int) -> float:
        """Delay before the next read after `failures` consecutive failed reads."""
        if failures <= 0:
            return self.interval
        return min(self.interval * (2 ** failures), self.max_backoff)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def start_tracking(
        self,
        scope: TrackingScope,
        on_update: UpdateCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        Subscribe to progress for a scope. Must be called from a running event loop.

        A second subscription to the same scope shares the existing poll loop.
        """
        self.manifest_for(scope)

        subscription = Subscription(scope, on_update, on_error)
        self._subscriptions.setdefault(scope, []).append(subscription)

        if scope not in self._tasks:
            self._tasks[scope] = asyncio.get_running_loop().create_task(
                self._poll_loop(scope),
                name=f"progress:{scope.key}",
            )
            logger.info(f"Started progress tracking for {scope.key}")

        return subscription

    def stop_tracking(self, subscription: Subscription) -> None:
        """Cancel a subscription. Safe to call more than once."""
        if not subscription.active:
            return
        subscription.active = False

        scope = subscription.scope
        remaining = [s for s in self._subscriptions.get(scope, []) if s is not subscription]

        if remaining:
            self._subscriptions[scope] = remaining
            return

        self._subscriptions.pop(scope, None)
        self._latched.pop(scope, None)
        task = self._tasks.pop(scope, None)
        if task is not None:
            task.cancel()
            logger.info(f"Stopped progress tracking for {scope.key}")

    def stop_all(self) -> None:
        for subscriptions in list(self._subscriptions.values()):
            for subscription in subscriptions:
                self.stop_tracking(subscription)

    async def close(self) -> None:
        """Stop every subscription and wait for the poll loops to exit."""
        tasks = list(self._tasks.values())
        self.stop_all()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "ProgressTracker":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def tracked_scopes(self) -> List[TrackingScope]:
        return list(self._tasks.keys())

    async def wait_until_ready(
        self,
        scope: TrackingScope,
        timeout: Optional[float] = None,
        on_update: Optional[UpdateCallback] = None,
    ) -> SnapshotMap:
        """
        Poll until every owner in the scope is settled.

        An owner is settled once it is ready or reports a terminal status, so
        a job that failed part way through ends the wait instead of holding
        it open. Callers check `has_failed` on the returned snapshots.

        Args:
            scope: Scope to watch
            timeout: Seconds to wait before raising asyncio.TimeoutError
            on_update: Optional callback receiving every intermediate snapshot map

        Returns:
            The first snapshot map in which every owner is settled
        """
        done: asyncio.Future = asyncio.get_running_loop().create_future()

        async def _on_update(snapshots: SnapshotMap) -> None:
            if on_update is not None:
                await _maybe_await(on_update(snapshots))
            if all_settled(snapshots) and not done.done():
                done.set_result(snapshots)

        subscription = self.start_tracking(scope, _on_update)
        try:
            return await asyncio.wait_for(done, timeout)
        finally:
            self.stop_tracking(subscription)

    # =========================================================================
    # Poll loop
    # =========================================================================

    async def _poll_loop(self, scope: TrackingScope) -> None:
        lf = get_logfire()
        failures = 0

        while True:
            try:
                with lf.span("progress_poll", scope=scope.key):
                    snapshots = await self.fetch_snapshot(scope)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                failures += 1
                logger.warning(f"Progress read for {scope.key} failed ({failures} in a row): {e}")
                await self._dispatch(scope, error=e)
            else:
                failures = 0
                await self._dispatch(scope, snapshots=self._latch(scope, snapshots))

            await asyncio.sleep(self.next_delay(failures))

    def _latch(self, scope: TrackingScope, snapshots: SnapshotMap) -> SnapshotMap:
        latched = self._latched.setdefault(scope, {})
        merged: SnapshotMap = {}

        for owner_id, snapshot in snapshots.items():
            previous = latched.get(owner_id)
            if snapshot.is_ready:
                latched[owner_id] = snapshot
            elif previous is not None:
                snapshot = previous
            merged[owner_id] = snapshot

        for owner_id, previous in latched.items():
            merged.setdefault(owner_id, previous)

        return merged

    async def _dispatch(
        self,
        scope: TrackingScope,
        snapshots: Optional[SnapshotMap] = None,
        error: Optional[Exception] = None,
    ) -> None:
        for subscription in list(self._subscriptions.get(scope, [])):
            if not subscription.active:
                continue
            try:
                if error is None:
                    await _maybe_await(subscription.on_update(snapshots))
                elif subscription.on_error is not None:
                    await _maybe_await(subscription.on_error(error))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Progress callback for {scope.key} raised: {e}")


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result
