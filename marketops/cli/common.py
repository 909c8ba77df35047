"""
Shared helpers for MarketOps CLI commands
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict

import click

from ..services.models import ProgressSnapshot
from ..services.progress import progress_percentage

RULE = '=' * 60


def run(coro):
    """Run a service coroutine from a synchronous click command."""
    return asyncio.run(coro)


def fail(error: Exception):
    """Report an error the way every command does and abort with exit code 1."""
    click.echo(f"❌ Error: {error}", err=True)
    raise click.Abort()


def header(title: str):
    click.echo(f"\n{RULE}")
    click.echo(title)
    click.echo(f"{RULE}\n")


def load_json_file(path: str) -> Dict[str, Any]:
    data = json.loads(Path(path).read_text(encoding='utf-8'))
    if not isinstance(data, dict):
        raise click.BadParameter(f"{path} must contain a JSON object")
    return data


def echo_json(data: Any):
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def progress_line(name: str, snapshot: ProgressSnapshot) -> str:
    if snapshot.is_ready:
        icon = "✅"
    elif snapshot.has_failed:
        icon = "❌"
    else:
        icon = "⏳"
    return (
        f"{icon} {name}: {snapshot.completed_sections}/{snapshot.total_expected} "
        f"({progress_percentage(snapshot)}%)"
    )
