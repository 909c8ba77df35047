"""
Analysis job result commands for MarketOps CLI
"""

import asyncio
from typing import Optional

import click
from ..core.config import load_section_manifests
from ..services.errors import MarketOpsError
from ..services.progress import status_label
from ..services.progress_tracker import ProgressTracker, StoreRowSource, TrackingScope
from ..services.results_service import ResultsService
from .common import fail, header, progress_line, run


@click.group('results')
def results_group():
    """Follow analysis jobs and their output"""
    pass


@results_group.command('list')
@click.argument('project_id')
def list_results(project_id: str):
    """
    List analysis jobs with their progress

    Examples:
        marketops results list <project-id>
    """
    try:
        results = run(ResultsService().get_job_results(project_id))

        if not results:
            click.echo("No analysis jobs for this project.")
            return

        header(f"📊 Analysis jobs ({len(results)})")

        for result in results:
            label, _tone = status_label(result.display_status)
            click.echo(f"{result.name} [{label}]")
            click.echo(f"   Job: {result.job_id}")
            if result.headline:
                click.echo(f"   {result.headline}")
            click.echo(f"   {progress_line('sections', result.progress)}")
            if result.error:
                click.echo(f"   ⚠️  {result.error}")
            click.echo()

    except Exception as e:
        fail(e)


@results_group.command('watch')
@click.argument('project_id')
@click.option('--avatar', 'avatar_id', default=None, help="Only this avatar's jobs")
@click.option('--interval', type=float, default=None, help='Seconds between reads')
@click.option('--timeout', type=float, default=None, help='Give up after this many seconds')
def watch_results(project_id: str, avatar_id: Optional[str], interval: Optional[float], timeout: Optional[float]):
    """
    Poll until every analysis job has written all its sections

    Stops early when a job reports failed or canceled, and exits with an
    error listing those jobs.

    Examples:
        marketops results watch <project-id> --timeout 900
    """
    manifests = load_section_manifests()

    def on_update(snapshots):
        done = sum(1 for s in snapshots.values() if s.is_ready)
        failed = sum(1 for s in snapshots.values() if s.has_failed)
        line = f"⏳ {done}/{len(snapshots)} jobs complete"
        if failed:
            line += f", {failed} failed"
        click.echo(line)

    async def _watch():
        tracker = ProgressTracker(StoreRowSource(manifests), manifests, interval=interval)
        async with tracker:
            return await tracker.wait_until_ready(
                TrackingScope(project_id, avatar_id, job_type=ResultsService.JOB_TYPE),
                timeout=timeout,
                on_update=on_update,
            )

    try:
        snapshots = run(_watch())
        failed = [owner_id for owner_id, s in snapshots.items() if s.has_failed]

        click.echo("\n❌ Some jobs did not finish" if failed else "\n✅ All jobs complete")
        for owner_id, snapshot in snapshots.items():
            click.echo(progress_line(owner_id, snapshot))

        if failed:
            raise MarketOpsError(f"Jobs ended without all sections: {', '.join(failed)}")
    except asyncio.TimeoutError:
        fail(TimeoutError(f"Jobs not complete after {timeout:g}s"))
    except Exception as e:
        fail(e)
