"""
Competitor research commands for MarketOps CLI
"""

from typing import Optional, Tuple

import click
from ..services.competitor_service import MEDIA_FORMATS, CompetitorService
from ..services.models import CompetitorAdsInput
from .common import echo_json, fail, header, run


@click.group('competitors')
def competitors_group():
    """Competitor strategy and ad library research"""
    pass


@competitors_group.command('list')
@click.argument('project_id')
@click.option('--strategy', is_flag=True, help='Also print the final strategic analysis')
def list_competitors(project_id: str, strategy: bool):
    """
    List a project's competitors

    Examples:
        marketops competitors list <project-id>
        marketops competitors list <project-id> --strategy
    """
    try:
        analysis, competitors = run(CompetitorService().get_overview(project_id))

        if not competitors:
            click.echo("No competitors analysed yet.")
            return

        header(f"🏁 Competitors ({len(competitors)})")

        for competitor in competitors:
            click.echo(f"🏢 {competitor.nombre}")
            click.echo(f"   ID: {competitor.id}")
            if competitor.clasificacion:
                click.echo(f"   Classification: {competitor.clasificacion}")
            if competitor.web_url:
                click.echo(f"   Web: {competitor.web_url}")
            click.echo()

        if strategy:
            header("🧠 Strategic analysis")
            if analysis and analysis.analisis_final_ia:
                echo_json(analysis.analisis_final_ia)
            else:
                click.echo("Not available yet.")

    except Exception as e:
        fail(e)


@competitors_group.command('show')
@click.argument('competitor_id')
def show_competitor(competitor_id: str):
    """
    Show one competitor's full analysis

    Examples:
        marketops competitors show <competitor-id>
    """
    try:
        competitor = run(CompetitorService().get_competitor(competitor_id))
        if not competitor:
            raise click.BadParameter(f"Competitor '{competitor_id}' not found")

        header(f"🏢 {competitor.nombre}")
        if competitor.propuesta_valor:
            click.echo(f"Value proposition: {competitor.propuesta_valor}\n")
        echo_json(competitor.data)

    except Exception as e:
        fail(e)


@competitors_group.command('ads')
@click.argument('project_id')
@click.option('--competitor', '-c', default=None, help='Only ads of this competitor')
@click.option('--format', 'media_format', type=click.Choice(MEDIA_FORMATS), default='all', help='Media type filter')
@click.option('--analysis', is_flag=True, help='Also print the final ads analysis')
def list_ads(project_id: str, competitor: Optional[str], media_format: str, analysis: bool):
    """
    List scraped competitor ads

    Examples:
        marketops competitors ads <project-id> --format video
        marketops competitors ads <project-id> -c "Acme"
    """
    try:
        service = CompetitorService()
        ads = run(service.list_competitor_ads(project_id, competitor=competitor, media_format=media_format))

        header(f"📣 Competitor ads ({len(ads)})")
        for ad in ads:
            icon = "🎬" if ad.is_video else "🖼️"
            click.echo(f"{icon} {ad.competitor_name}: {ad.hook_gancho or '(no hook)'}")
            if ad.media_url:
                click.echo(f"   {ad.media_url}")

        if analysis:
            final = run(service.get_ads_analysis(project_id))
            header("🧠 Ads analysis")
            if final:
                echo_json(final)
            else:
                click.echo("Not available yet.")

    except Exception as e:
        fail(e)


@competitors_group.command('analyze-ads')
@click.argument('project_id')
@click.option(
    '--competitor', '-c', 'entries', multiple=True, required=True, type=(str, str),
    metavar='NAME URL', help='Competitor name and ads library URL (3 to 5 times)'
)
def analyze_ads(project_id: str, entries: Tuple[Tuple[str, str], ...]):
    """
    Request an ad library analysis for 3-5 competitors

    Examples:
        marketops competitors analyze-ads <project-id> \\
            -c Acme https://www.facebook.com/ads/library/?id=1 \\
            -c Globex https://www.facebook.com/ads/library/?id=2 \\
            -c Initech https://www.facebook.com/ads/library/?id=3
    """
    try:
        competitors = [CompetitorAdsInput(name=name, ads_library_url=url) for name, url in entries]
        run(CompetitorService().request_ads_analysis(project_id, competitors))
        click.echo(f"✅ Analysis requested for {len(competitors)} competitors")
    except Exception as e:
        fail(e)
