"""Logging setup.

Modules log through the standard library (logging.getLogger(__name__)); the
root logger also forwards to Logfire, which ships records when a token is
configured.
"""

import logging

import logfire

from taskmarket.core.config import settings


def configure_logging() -> None:
    logfire.configure(
        token=settings.logfire_token,
        service_name=settings.app_name,
        service_version=settings.api_version,
        environment=settings.env,
        send_to_logfire="if-token-present",
        console=False,
    )
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(), logfire.LogfireLoggingHandler()],
    )
    logging.getLogger(__name__).info("Logging configured (level=%s)", settings.log_level)


def span(name: str, **attributes: object) -> logfire.LogfireSpan:
    """Span around a service entry point.

    Usage:
        with span("task.accept", task_id=str(task_id)):
            ...
    """
    return logfire.span(name, **attributes)
