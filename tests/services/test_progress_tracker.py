"""
Tests for ProgressTracker: subscriptions, backoff, latching and cancellation.

Poll loops run for real with a tiny interval; row sources are plain async
functions so every read is under the test's control.
"""

import asyncio

import pytest

from marketops.core.config import SectionManifest, load_section_manifests
from marketops.services.models import JobStatus
from marketops.services.progress_tracker import (
    ProgressTracker,
    ScopeRows,
    StoreRowSource,
    TrackingScope,
)

INTERVAL = 0.01


@pytest.fixture
def manifests():
    return {
        "analysis_job": SectionManifest(
            job_type="analysis_job", table="avatar_outputs", owner_column="job_id", expected_count=2
        ),
    }


@pytest.fixture
def scope():
    return TrackingScope("p1", job_type="analysis_job")


def job_rows(owner, *sections):
    return [{"job_id": owner, "section": s} for s in sections]


async def wait_for_calls(calls, count, timeout=2.0):
    async def _poll():
        while len(calls) < count:
            await asyncio.sleep(INTERVAL / 2)
    await asyncio.wait_for(_poll(), timeout)


class TestBackoff:
    def test_delay_doubles_and_caps(self, manifests):
        tracker = ProgressTracker(None, manifests, interval=5, max_backoff=60)

        assert tracker.next_delay(0) == 5
        assert tracker.next_delay(1) == 10
        assert tracker.next_delay(2) == 20
        assert tracker.next_delay(3) == 40
        assert tracker.next_delay(4) == 60
        assert tracker.next_delay(10) == 60


class TestTrackingScope:
    def test_key_includes_avatar_when_given(self):
        assert TrackingScope("p1").key == "p1:avatar_master"
        assert TrackingScope("p1", "a1", "analysis_job").key == "p1:a1:analysis_job"

    def test_scopes_are_hashable(self):
        assert {TrackingScope("p1"), TrackingScope("p1")} == {TrackingScope("p1")}


class TestFetchSnapshot:
    @pytest.mark.asyncio
    async def test_single_read(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(rows=job_rows("j1", "a", "a", "b"), owners=["j1", "j2"])

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)
        snapshots = await tracker.fetch_snapshot(scope)

        assert snapshots["j1"].is_ready is True
        assert snapshots["j2"].completed_sections == 0

    @pytest.mark.asyncio
    async def test_statuses_are_attached_to_snapshots(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(rows=job_rows("j1", "a"), owners=["j1", "j2"], statuses={"j1": "Failed", "j2": "mystery"})

        snapshots = await ProgressTracker(fetch, manifests).fetch_snapshot(scope)

        assert snapshots["j1"].status == JobStatus.FAILED
        assert snapshots["j1"].has_failed is True
        assert snapshots["j2"].status is None
        assert snapshots["j2"].is_settled is False


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_unknown_job_type_is_rejected(self, manifests):
        tracker = ProgressTracker(None, manifests)

        with pytest.raises(ValueError, match="No section manifest"):
            tracker.start_tracking(TrackingScope("p1", job_type="nope"), lambda s: None)

    @pytest.mark.asyncio
    async def test_same_scope_shares_one_poll_loop(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(rows=[], owners=["j1"])

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)
        first = tracker.start_tracking(scope, lambda s: None)
        second = tracker.start_tracking(scope, lambda s: None)

        assert tracker.tracked_scopes == [scope]

        tracker.stop_tracking(first)
        assert tracker.tracked_scopes == [scope]

        tracker.stop_tracking(second)
        assert tracker.tracked_scopes == []
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_stop_twice_is_safe_and_silences_callbacks(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(rows=[], owners=["j1"])

        updates = []
        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)
        subscription = tracker.start_tracking(scope, updates.append)

        await wait_for_calls(updates, 1)
        tracker.stop_tracking(subscription)
        tracker.stop_tracking(subscription)
        seen = len(updates)

        await asyncio.sleep(INTERVAL * 5)

        assert len(updates) == seen
        assert subscription.active is False
        assert tracker.tracked_scopes == []

    @pytest.mark.asyncio
    async def test_async_context_manager_cancels_everything(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(rows=[], owners=["j1"])

        async with ProgressTracker(fetch, manifests, interval=INTERVAL) as tracker:
            tracker.start_tracking(scope, lambda s: None)
            tracker.start_tracking(TrackingScope("p2", job_type="analysis_job"), lambda s: None)
            assert len(tracker.tracked_scopes) == 2

        assert tracker.tracked_scopes == []


class TestPollLoop:
    @pytest.mark.asyncio
    async def test_errors_go_to_on_error_and_polling_continues(self, manifests, scope):
        reads = {"count": 0}

        async def fetch(s):
            reads["count"] += 1
            if reads["count"] <= 2:
                raise RuntimeError("store unavailable")
            return ScopeRows(rows=job_rows("j1", "a"), owners=["j1"])

        errors, updates = [], []
        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL, max_backoff=INTERVAL * 4)
        tracker.start_tracking(scope, updates.append, on_error=errors.append)

        await wait_for_calls(updates, 1)
        await tracker.close()

        assert len(errors) == 2
        assert all(isinstance(e, RuntimeError) for e in errors)
        assert updates[0]["j1"].completed_sections == 1

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_the_loop(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(rows=[], owners=["j1"])

        calls = []

        def on_update(snapshots):
            calls.append(snapshots)
            raise ValueError("bad subscriber")

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)
        tracker.start_tracking(scope, on_update)

        await wait_for_calls(calls, 3)
        await tracker.close()

    @pytest.mark.asyncio
    async def test_readiness_is_latched(self, manifests, scope):
        reads = iter([
            ScopeRows(rows=job_rows("j1", "a", "b"), owners=["j1"]),
        ])

        async def fetch(s):
            # Rows disappear after the first read
            return next(reads, ScopeRows(rows=[], owners=["j1"]))

        updates = []
        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)
        tracker.start_tracking(scope, updates.append)

        await wait_for_calls(updates, 3)
        await tracker.close()

        assert all(u["j1"].is_ready for u in updates)

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(rows=[], owners=["j1"])

        seen = []

        async def on_update(snapshots):
            await asyncio.sleep(0)
            seen.append(snapshots)

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)
        tracker.start_tracking(scope, on_update)

        await wait_for_calls(seen, 1)
        await tracker.close()


class TestWaitUntilReady:
    @pytest.mark.asyncio
    async def test_avatar_becomes_ready_once_all_sections_land(self):
        """0 sections, then the 10 dossier sections appear with no job status change."""
        manifests = load_section_manifests()
        state = {"rows": []}

        async def fetch(s):
            return ScopeRows(rows=list(state["rows"]), owners=["a1"])

        seen = []

        def on_update(snapshots):
            seen.append(snapshots["a1"])
            if not state["rows"]:
                state["rows"] = [
                    {"avatar_id": "a1", "section": name}
                    for name in manifests["avatar_master"].sections
                ]

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)
        result = await tracker.wait_until_ready(TrackingScope("p1", "a1"), timeout=2, on_update=on_update)

        assert seen[0].completed_sections == 0
        assert seen[0].is_ready is False
        assert result["a1"].completed_sections == 10
        assert result["a1"].is_ready is True
        assert tracker.tracked_scopes == []

    @pytest.mark.asyncio
    async def test_times_out(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(rows=[], owners=["j1"])

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)

        with pytest.raises(asyncio.TimeoutError):
            await tracker.wait_until_ready(scope, timeout=INTERVAL * 5)

        assert tracker.tracked_scopes == []

    @pytest.mark.asyncio
    async def test_failed_job_settles_the_wait(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(
                rows=job_rows("job-1", "a", "b") + job_rows("job-2", "a"),
                owners=["job-1", "job-2"],
                statuses={"job-1": "succeeded", "job-2": "failed"},
            )

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)
        result = await tracker.wait_until_ready(scope, timeout=2)

        assert result["job-1"].is_ready is True
        assert result["job-1"].has_failed is False
        assert result["job-2"].is_ready is False
        assert result["job-2"].has_failed is True
        assert tracker.tracked_scopes == []

    @pytest.mark.asyncio
    async def test_running_job_keeps_the_wait_open(self, manifests, scope):
        async def fetch(s):
            return ScopeRows(
                rows=job_rows("job-1", "a", "b") + job_rows("job-2", "a"),
                owners=["job-1", "job-2"],
                statuses={"job-1": "succeeded", "job-2": "running"},
            )

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)

        with pytest.raises(asyncio.TimeoutError):
            await tracker.wait_until_ready(scope, timeout=INTERVAL * 5)

    @pytest.mark.asyncio
    async def test_no_owners_never_counts_as_ready(self, manifests, scope):
        async def fetch(s):
            return ScopeRows()

        tracker = ProgressTracker(fetch, manifests, interval=INTERVAL)

        with pytest.raises(asyncio.TimeoutError):
            await tracker.wait_until_ready(scope, timeout=INTERVAL * 5)


class TestStoreRowSource:
    @pytest.mark.asyncio
    async def test_avatar_scope_reads_master_outputs(self, mock_db, tables, chain):
        tables["avatars"] = chain(data=[{"id": "a1"}, {"id": "a2"}])
        tables["avatar_master_outputs"] = chain(data=[{"avatar_id": "a1", "section": "motivadores"}])

        source = StoreRowSource(load_section_manifests(), supabase=mock_db)
        batch = await source(TrackingScope("p1"))

        assert batch.owners == ["a1", "a2"]
        assert batch.rows == [{"avatar_id": "a1", "section": "motivadores"}]
        tables["avatar_master_outputs"].eq.assert_called_with("project_id", "p1")

    @pytest.mark.asyncio
    async def test_job_scope_reads_outputs_of_project_jobs(self, mock_db, tables, chain):
        tables["analysis_jobs"] = chain(data=[{"id": "j1", "status": "failed"}])
        tables["avatar_outputs"] = chain(data=[{"job_id": "j1", "section": "x"}])

        source = StoreRowSource(load_section_manifests(), supabase=mock_db)
        batch = await source(TrackingScope("p1", job_type="analysis_job"))

        assert batch.owners == ["j1"]
        assert batch.statuses == {"j1": "failed"}
        tables["analysis_jobs"].select.assert_called_once_with("id, status")
        tables["avatar_outputs"].in_.assert_called_once_with("job_id", ["j1"])

    @pytest.mark.asyncio
    async def test_project_without_jobs(self, mock_db, tables, chain):
        tables["analysis_jobs"] = chain(data=[])

        source = StoreRowSource(load_section_manifests(), supabase=mock_db)
        batch = await source(TrackingScope("p1", job_type="analysis_job"))

        assert batch.rows == [] and batch.owners == []
