"""
Logfire tracing for MarketOps.

Traced:
- every progress poll (one span per read, tagged with the tracking scope)
- outbound webhook requests, through the httpx integration

Without LOGFIRE_TOKEN nothing is sent and get_logfire() hands back a stub
whose spans and log calls do nothing, so call sites never need to check.

    setup_logfire()                      # once, at CLI startup
    with get_logfire().span("progress_poll", scope=scope.key):
        ...
"""

import os
import logging
from typing import Optional

import logfire

logger = logging.getLogger(__name__)

_configured = False


def setup_logfire(
    project_name: Optional[str] = None,
    environment: Optional[str] = None,
    service_name: str = "marketops"
) -> bool:
    """
    Configure Logfire once per process.

    Args:
        project_name: Overrides LOGFIRE_PROJECT_NAME (default 'marketops')
        environment: Overrides LOGFIRE_ENVIRONMENT (default 'development')
        service_name: Service name attached to every span

    Returns:
        Whether traces will be exported
    """
    global _configured

    if _configured:
        return True

    token = os.environ.get("LOGFIRE_TOKEN")
    if not token:
        logger.debug("No LOGFIRE_TOKEN, tracing disabled")
        return False

    project = project_name or os.environ.get("LOGFIRE_PROJECT_NAME", "marketops")
    env = environment or os.environ.get("LOGFIRE_ENVIRONMENT", "development")

    try:
        logfire.configure(
            token=token,
            project_name=project,
            service_name=service_name,
            environment=env,
            send_to_logfire=True,
        )
        logfire.instrument_httpx()
    except Exception as e:
        logger.error(f"Logfire setup failed, continuing without tracing: {e}")
        return False

    _configured = True
    logger.info(f"Tracing to Logfire project {project} ({env})")
    return True


def get_logfire():
    """The logfire module once configured, else a do-nothing stand-in."""
    return logfire if _configured else _DisabledLogfire()


class _DisabledLogfire:
    def span(self, *args, **kwargs):
        return _NullSpan()

    def __getattr__(self, name):
        return lambda *args, **kwargs: None


class _NullSpan:
    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False
