"""
Local preference commands for MarketOps CLI
"""

from typing import Optional, Tuple

import click
from ..services.preferences import PreferencesStore
from .common import echo_json, fail


@click.group('prefs')
def prefs_group():
    """Local preferences"""
    pass


@prefs_group.command('show')
@click.option('--project', 'project_id', default=None, help="Only this project's selected avatar slots")
def show_prefs(project_id: Optional[str]):
    """
    Print stored preferences

    Examples:
        marketops prefs show
        marketops prefs show --project <project-id>
    """
    store = PreferencesStore()
    if project_id:
        slots = store.selected_avatar_slots(project_id)
        if slots:
            click.echo(f"Selected slots: {', '.join(str(s) for s in slots)}")
        else:
            click.echo("No avatar slots selected.")
        return

    click.echo(f"📄 {store.path}")
    echo_json(store.load())


@prefs_group.command('select-avatars')
@click.argument('project_id')
@click.argument('slots', nargs=-1, type=int)
def select_avatars(project_id: str, slots: Tuple[int, ...]):
    """
    Remember which avatar slots are selected for a project

    Examples:
        marketops prefs select-avatars <project-id> 1 3 4
        marketops prefs select-avatars <project-id>        (clears the selection)
    """
    try:
        selected = PreferencesStore().set_selected_avatar_slots(project_id, list(slots))
        if selected:
            click.echo(f"✅ Selected slots: {', '.join(str(s) for s in selected)}")
        else:
            click.echo("✅ Selection cleared")
    except Exception as e:
        fail(e)


@prefs_group.command('reset-delete-confirm')
def reset_delete_confirm():
    """
    Ask for confirmation before deleting again

    Examples:
        marketops prefs reset-delete-confirm
    """
    try:
        PreferencesStore().set_skip_delete_confirm(False)
        click.echo("✅ Delete confirmations re-enabled")
    except Exception as e:
        fail(e)
