"""
Ad creation commands for MarketOps CLI
"""

from typing import Optional

import click
from ..services.ad_creation_service import AdCreationService
from ..services.models import AdFormat, AdRequest, FunnelStage
from ..services.preferences import PreferencesStore
from .common import fail, header, run

FUNNEL_CHOICES = [stage.value for stage in FunnelStage]
FORMAT_CHOICES = [fmt.value for fmt in AdFormat]


@click.group('ads')
def ads_group():
    """Request and manage ad creatives"""
    pass


@ads_group.command('list')
@click.argument('project_id')
def list_ads(project_id: str):
    """
    List a project's ad creatives

    Examples:
        marketops ads list <project-id>
    """
    try:
        ads = run(AdCreationService().list_ads(project_id))

        if not ads:
            click.echo("No ads created yet.")
            return

        header(f"🎨 Ads ({len(ads)})")

        for ad in ads:
            click.echo(f"{ad.avatar_name} · {ad.funnel_stage or '-'} · {ad.format or '-'}")
            click.echo(f"   ID: {ad.id}")
            if ad.angle:
                click.echo(f"   Angle: {ad.angle}")
            click.echo()

    except Exception as e:
        fail(e)


@ads_group.command('angles')
@click.argument('project_id')
@click.argument('avatar_id')
@click.option('--stage', type=click.Choice(FUNNEL_CHOICES), default=None, help='Funnel stage')
def list_angles(project_id: str, avatar_id: str, stage: Optional[str]):
    """
    Show the persuasion angles available for an avatar

    Examples:
        marketops ads angles <project-id> <avatar-id> --stage TOFU
    """
    try:
        angles = run(AdCreationService().get_angles(project_id, avatar_id, stage))

        if not angles:
            click.echo("No angles available for this avatar.")
            return

        for group, items in angles.items():
            header(f"🎯 {group}")
            for item in items if isinstance(items, list) else [items]:
                click.echo(f"   • {item}")

    except Exception as e:
        fail(e)


@ads_group.command('create')
@click.argument('project_id')
@click.option('--avatar', 'avatar_id', required=True, help='Avatar id')
@click.option('--stage', 'funnel_stage', type=click.Choice(FUNNEL_CHOICES), required=True, help='Funnel stage')
@click.option('--format', 'ad_format', type=click.Choice(FORMAT_CHOICES), required=True, help='Creative format')
@click.option('--angle', required=True, help='Persuasion angle')
@click.option('--angle-source', default=None, help='Stack group the angle came from')
@click.option('--script-type', default='', help='Script type (video only)')
@click.option('--duration', default='30', help="Video duration in seconds, or 'custom'")
@click.option('--custom-duration', default=None, help='Seconds when --duration custom')
@click.option('--slides', type=int, default=5, help='Slide count (carousel only)')
def create_ad(
    project_id: str,
    avatar_id: str,
    funnel_stage: str,
    ad_format: str,
    angle: str,
    angle_source: Optional[str],
    script_type: str,
    duration: str,
    custom_duration: Optional[str],
    slides: int
):
    """
    Request a new ad creative

    Examples:
        marketops ads create <project-id> --avatar <avatar-id> --stage TOFU \\
            --format video --script-type ugc --angle "Miedo a perder tiempo"
        marketops ads create <project-id> --avatar <avatar-id> --stage MOFU \\
            --format carousel --slides 7 --angle "Prueba social"
    """
    try:
        request = AdRequest(
            project_id=project_id,
            avatar_id=avatar_id,
            funnel_stage=funnel_stage,
            format=ad_format,
            angle=angle,
            angle_source=angle_source,
            script_type=script_type,
            video_duration_preset=duration,
            custom_video_duration=custom_duration,
            carousel_slides=slides,
        )
        ads = run(AdCreationService().generate_ad(request))
        click.echo(f"✅ Ad requested. The project now has {len(ads)} ads.")
    except Exception as e:
        fail(e)


@ads_group.command('delete')
@click.argument('ad_id')
@click.option('--yes', '-y', is_flag=True, help='Do not ask for confirmation')
@click.option('--dont-ask-again', is_flag=True, help='Skip delete confirmations from now on')
def delete_ad(ad_id: str, yes: bool, dont_ask_again: bool):
    """
    Delete an ad creative

    Examples:
        marketops ads delete <ad-id>
        marketops ads delete <ad-id> --yes --dont-ask-again
    """
    prefs = PreferencesStore()

    if not (yes or prefs.skip_delete_confirm):
        click.confirm(f"Delete ad {ad_id}?", abort=True)

    try:
        if dont_ask_again:
            prefs.set_skip_delete_confirm(True)
        run(AdCreationService().delete_ad(ad_id))
        click.echo(f"🗑️  Deleted ad {ad_id}")
    except Exception as e:
        fail(e)
