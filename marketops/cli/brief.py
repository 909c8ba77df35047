"""
Brief commands for MarketOps CLI
"""

import click
from ..services.brief_service import (
    BriefService,
    FIELD_LABELS,
    missing_field_messages,
    validate_brief_payload,
)
from ..services.errors import BriefValidationError
from .common import fail, header, load_json_file, run


@click.group('brief')
def brief_group():
    """Fill in and submit project briefs"""
    pass


def _echo_missing(missing):
    click.echo(f"❌ Brief is incomplete ({len(missing)} fields):", err=True)
    for item in missing_field_messages(missing):
        click.echo(f"   • {item['message']}", err=True)


@brief_group.command('show')
@click.argument('project_id')
def show_brief(project_id: str):
    """
    Show the stored brief for a project

    Examples:
        marketops brief show <project-id>
    """
    try:
        brief = run(BriefService().get_brief(project_id))
        if not brief:
            click.echo("No brief saved for this project yet.")
            return

        header(f"📝 Brief ({'valid' if brief.is_valid else 'incomplete'}, v{brief.version})")

        payload = brief.payload.model_dump()
        for key, label in FIELD_LABELS.items():
            value = payload.get(key)
            if isinstance(value, list):
                value = ', '.join(value)
            click.echo(f"{label}: {value or '-'}")

        if brief.missing_fields:
            click.echo(f"\n⚠️  Missing: {', '.join(brief.missing_fields)}")

    except Exception as e:
        fail(e)


@brief_group.command('validate')
@click.argument('payload_file', type=click.Path(exists=True, dir_okay=False))
def validate_brief(payload_file: str):
    """
    Check a brief JSON file without saving it

    Examples:
        marketops brief validate brief.json
    """
    try:
        validation = validate_brief_payload(load_json_file(payload_file))
    except Exception as e:
        fail(e)

    if not validation.ok:
        _echo_missing(validation.missing)
        raise click.Abort()

    click.echo("✅ Brief is complete")


@brief_group.command('save')
@click.argument('project_id')
@click.argument('payload_file', type=click.Path(exists=True, dir_okay=False))
def save_brief(project_id: str, payload_file: str):
    """
    Validate and save a brief from a JSON file

    Examples:
        marketops brief save <project-id> brief.json
    """
    try:
        brief_id = run(BriefService().save_brief(project_id, load_json_file(payload_file)))
        click.echo(f"✅ Brief saved (ID: {brief_id})")
    except BriefValidationError as e:
        _echo_missing(e.missing)
        raise click.Abort()
    except Exception as e:
        fail(e)


@brief_group.command('generate')
@click.argument('project_id')
@click.argument('payload_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--user', 'user_id', required=True, envvar='MARKETOPS_USER_ID', help='Requesting user id')
def generate_brief(project_id: str, payload_file: str, user_id: str):
    """
    Save a brief and start avatar generation from it

    Examples:
        marketops brief generate <project-id> brief.json --user 3f2a...
    """
    try:
        run(BriefService().generate(project_id, load_json_file(payload_file), user_id))
        click.echo("✅ Brief saved and generation started")
        click.echo(f"\nFollow progress with: marketops avatars watch {project_id}")
    except BriefValidationError as e:
        _echo_missing(e.missing)
        raise click.Abort()
    except Exception as e:
        fail(e)
