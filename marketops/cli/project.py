"""
Project management commands for MarketOps CLI
"""

import click
from ..services.project_service import ProjectService
from .common import fail, header, run


@click.group('project')
def project_group():
    """Manage projects"""
    pass


@project_group.command('list')
def list_projects():
    """
    List all projects

    Examples:
        marketops project list
    """
    try:
        projects = run(ProjectService().list_projects())

        if not projects:
            click.echo("No projects found.")
            click.echo("\nCreate your first project with: marketops project create <name> --user <id>")
            return

        header(f"📁 Projects ({len(projects)})")

        for project in projects:
            click.echo(f"📂 {project.name}")
            click.echo(f"   ID: {project.id}")
            if project.objective:
                click.echo(f"   Objective: {project.objective}")
            if project.status:
                click.echo(f"   Status: {project.status}")
            if project.created_at:
                click.echo(f"   Created: {project.created_at:%Y-%m-%d}")
            click.echo()

    except Exception as e:
        fail(e)


@project_group.command('create')
@click.argument('name')
@click.option('--objective', '-o', default='', help='What the project should achieve')
@click.option('--user', 'user_id', required=True, envvar='MARKETOPS_USER_ID', help='Owner user id')
def create_project(name: str, objective: str, user_id: str):
    """
    Create a new project

    Examples:
        marketops project create "Spring launch" --user 3f2a...
    """
    try:
        project = run(ProjectService().create_project(name, objective, user_id))
        click.echo(f"✅ Created project: {project.name}")
        click.echo(f"   ID: {project.id}")
        click.echo(f"\nFill in the brief with: marketops brief save {project.id} <brief.json>")
    except Exception as e:
        fail(e)


@project_group.command('show')
@click.argument('project_id')
def show_project(project_id: str):
    """
    Show a project with its dashboard counters

    Examples:
        marketops project show <project-id>
    """
    try:
        service = ProjectService()
        project = run(service.get_project(project_id))
        if not project:
            click.echo(f"❌ Project '{project_id}' not found", err=True)
            raise click.Abort()

        stats = run(service.get_stats(project_id))

        header(f"📂 {project.name}")
        click.echo(f"ID: {project.id}")
        if project.objective:
            click.echo(f"Objective: {project.objective}")
        click.echo(f"\n📝 Brief: {'Completado' if stats.brief_completed else 'Pendiente'}")
        click.echo(f"👥 Avatars: {stats.avatars_count}")
        click.echo(f"🏁 Competitors: {stats.competitors_count}")
        click.echo(f"🎨 Ads: {stats.ads_count}")

    except click.Abort:
        raise
    except Exception as e:
        fail(e)


@project_group.command('generate-avatars')
@click.argument('project_id')
def generate_avatars(project_id: str):
    """
    Ask the pipeline to build market context and avatars

    Examples:
        marketops project generate-avatars <project-id>
    """
    try:
        run(ProjectService().trigger_context_and_avatars(project_id))
        click.echo("✅ Generation started. Follow it with: marketops avatars watch " + project_id)
    except Exception as e:
        fail(e)
