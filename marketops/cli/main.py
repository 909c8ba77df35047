"""
Main CLI entry point for MarketOps
"""

import logging

import click

from .. import __version__
from ..core.observability import setup_logfire
from .project import project_group
from .brief import brief_group
from .avatars import avatars_group
from .results import results_group
from .competitors import competitors_group
from .narrative import narrative_group
from .ads import ads_group
from .prefs import prefs_group


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
def cli(verbose: bool):
    """
    MarketOps - Marketing research dashboard

    Fill in a project brief, kick off avatar, competitor and ad generation,
    and follow the pipeline's progress as it writes results.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    setup_logfire()


# Register command groups
cli.add_command(project_group)
cli.add_command(brief_group)
cli.add_command(avatars_group)
cli.add_command(results_group)
cli.add_command(competitors_group)
cli.add_command(narrative_group)
cli.add_command(ads_group)
cli.add_command(prefs_group)


if __name__ == '__main__':
    cli()
