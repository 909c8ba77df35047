"""
Narrative commands for MarketOps CLI
"""

import click
from ..services.narrative_service import NarrativeService
from .common import echo_json, fail, header, run


@click.group('narrative')
def narrative_group():
    """Narrative strategy and persuasion stacks"""
    pass


@narrative_group.command('show')
@click.argument('project_id')
@click.option('--stacks', is_flag=True, help='Show every avatar persuasion stack instead')
def show_narrative(project_id: str, stacks: bool):
    """
    Show a project's narrative strategy

    Examples:
        marketops narrative show <project-id>
        marketops narrative show <project-id> --stacks
    """
    try:
        service = NarrativeService()

        if stacks:
            narratives = run(service.list_stacks(project_id))
            if not narratives:
                click.echo("No persuasion stacks yet.")
                return
            for narrative in narratives:
                header(f"🧱 Avatar {narrative.avatar_id or '-'}")
                for group, angles in narrative.stack_persuasion.items():
                    count = len(angles) if isinstance(angles, list) else 1
                    click.echo(f"   {group} ({count})")
            return

        narrative = run(service.get_narrative(project_id))
        if not narrative:
            click.echo("Narrative not generated yet.")
            return

        header("📖 Narrative")
        echo_json(narrative.data)
        if narrative.stack_persuasion:
            header("🧱 Persuasion stack")
            echo_json(narrative.stack_persuasion)

    except Exception as e:
        fail(e)
