"""
Avatar commands for MarketOps CLI
"""

import asyncio
from pathlib import Path
from typing import Optional

import click
from ..core.config import load_section_manifests
from ..services.avatar_service import AvatarService
from ..services.preferences import PreferencesStore
from ..services.progress_tracker import ProgressTracker, StoreRowSource, TrackingScope
from .common import echo_json, fail, header, progress_line, run


@click.group('avatars')
def avatars_group():
    """Browse generated avatars and follow their progress"""
    pass


def _tracker(interval: Optional[float] = None) -> ProgressTracker:
    manifests = load_section_manifests()
    return ProgressTracker(StoreRowSource(manifests), manifests, interval=interval)


@avatars_group.command('list')
@click.argument('project_id')
def list_avatars(project_id: str):
    """
    List the avatars of a project

    Avatars whose slot is selected (marketops prefs select-avatars) are
    marked with a star.

    Examples:
        marketops avatars list <project-id>
    """
    try:
        avatars = run(AvatarService().list_avatars(project_id))
        selected = set(PreferencesStore().selected_avatar_slots(project_id))

        if not avatars:
            click.echo("No avatars generated yet.")
            return

        header(f"👥 Avatars ({len(avatars)})")

        for avatar in avatars:
            marker = " ⭐" if avatar.slot in selected else ""
            click.echo(f"#{avatar.slot if avatar.slot is not None else '-'} {avatar.name}{marker}")
            click.echo(f"   ID: {avatar.id}")
            details = [value for value in (avatar.age, avatar.gender, avatar.income) if value]
            if details:
                click.echo(f"   {' · '.join(details)}")
            click.echo(f"   {avatar.description}")
            click.echo()

    except Exception as e:
        fail(e)


@avatars_group.command('contexts')
@click.argument('project_id')
def show_contexts(project_id: str):
    """
    Show the market and social research behind the avatars

    Examples:
        marketops avatars contexts <project-id>
    """
    try:
        market, social = run(AvatarService().get_contexts(project_id))

        header("🔎 Market context")
        if market:
            click.echo(market.resumen_ejecutivo or "Sin resumen.")
            for insight in market.insights_publicitarios:
                click.echo(f"   • {insight}")
        else:
            click.echo("Not available yet.")

        header("💬 Social context")
        if social:
            click.echo(f"{social.total_items} items")
            for item in social.dolores + social.fallos + social.objeciones:
                click.echo(f"   [{item.display_tag}] {item.cita} ({item.display_source})")
        else:
            click.echo("Not available yet.")

    except Exception as e:
        fail(e)


@avatars_group.command('sections')
@click.argument('project_id')
@click.argument('avatar_id')
@click.option('--job', 'job_id', default=None, help='Only sections written by this job')
@click.option('--section', '-s', default=None, help='Print one section as JSON')
def show_sections(project_id: str, avatar_id: str, job_id: Optional[str], section: Optional[str]):
    """
    Show an avatar's master dossier

    Examples:
        marketops avatars sections <project-id> <avatar-id>
        marketops avatars sections <project-id> <avatar-id> -s miedos_ocultos
    """
    try:
        sections = run(AvatarService().get_master_sections(project_id, avatar_id, job_id=job_id))

        if section:
            if section not in sections:
                raise click.BadParameter(f"Unknown section '{section}'. Available: {', '.join(sorted(sections))}")
            echo_json(sections[section])
            return

        header(f"📚 Master dossier ({len(sections)} sections)")
        for name, data in sorted(sections.items()):
            size = len(data) if isinstance(data, (dict, list)) else 0
            click.echo(f"   {name} ({size} entries)")

    except Exception as e:
        fail(e)


@avatars_group.command('level')
@click.argument('project_id')
@click.argument('avatar_id')
@click.argument('level', type=int)
def show_level(project_id: str, avatar_id: str, level: int):
    """
    Show the consciousness-level analysis for an avatar

    Examples:
        marketops avatars level <project-id> <avatar-id> 3
    """
    try:
        blocks = run(AvatarService().get_level_blocks(project_id, avatar_id, level))

        if not blocks:
            click.echo(f"No analysis for level {level} yet.")
            return

        header(f"🧭 Level {level}")
        for block in blocks:
            click.echo(f"Block {block.block}")
            for section in block.sections:
                click.echo(f"   • {section.get('section') or '(unnamed)'}")

    except Exception as e:
        fail(e)


@avatars_group.command('progress')
@click.argument('project_id')
@click.option('--avatar', 'avatar_id', default=None, help='Only this avatar')
def show_progress(project_id: str, avatar_id: Optional[str]):
    """
    Show how many dossier sections each avatar has so far

    Examples:
        marketops avatars progress <project-id>
    """
    try:
        snapshots = run(_tracker().fetch_snapshot(TrackingScope(project_id, avatar_id)))

        if not snapshots:
            click.echo("No avatars to track.")
            return

        header("⏳ Avatar progress")
        for owner_id, snapshot in snapshots.items():
            click.echo(progress_line(owner_id, snapshot))
            if snapshot.missing_sections and not snapshot.is_ready:
                click.echo(f"   missing: {', '.join(snapshot.missing_sections)}")

    except Exception as e:
        fail(e)


@avatars_group.command('watch')
@click.argument('project_id')
@click.option('--avatar', 'avatar_id', default=None, help='Only this avatar')
@click.option('--interval', type=float, default=None, help='Seconds between reads')
@click.option('--timeout', type=float, default=None, help='Give up after this many seconds')
def watch_progress(project_id: str, avatar_id: Optional[str], interval: Optional[float], timeout: Optional[float]):
    """
    Poll until every avatar's dossier is complete

    Examples:
        marketops avatars watch <project-id>
        marketops avatars watch <project-id> --avatar <avatar-id> --timeout 600
    """
    def on_update(snapshots):
        done = sum(1 for s in snapshots.values() if s.is_ready)
        click.echo(f"⏳ {done}/{len(snapshots)} avatars ready")

    async def _watch():
        async with _tracker(interval) as tracker:
            return await tracker.wait_until_ready(
                TrackingScope(project_id, avatar_id),
                timeout=timeout,
                on_update=on_update,
            )

    try:
        snapshots = run(_watch())
        click.echo("\n✅ All avatars ready")
        for owner_id, snapshot in snapshots.items():
            click.echo(progress_line(owner_id, snapshot))
    except asyncio.TimeoutError:
        fail(TimeoutError(f"Avatars not ready after {timeout:g}s"))
    except Exception as e:
        fail(e)


@avatars_group.command('report')
@click.argument('project_id')
@click.argument('avatar_id')
@click.option('--output', '-o', 'output_dir', default='.', type=click.Path(file_okay=False), help='Directory for the PDF')
def download_report(project_id: str, avatar_id: str, output_dir: str):
    """
    Download an avatar's PDF report

    Examples:
        marketops avatars report <project-id> <avatar-id> -o reports/
    """
    try:
        service = AvatarService()

        async def _download():
            profile = await service.get_avatar_profile(avatar_id)
            return await service.download_report(project_id, avatar_id, Path(output_dir), name=profile.get('nombre'))

        path = run(_download())
        click.echo(f"✅ Saved report to {path}")

    except Exception as e:
        fail(e)
