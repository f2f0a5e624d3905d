"""
Structured logging for the billing core.

Plain structlog on top of the stdlib logging module. Audit events share the
same stream and are told apart by the ``audit`` logger name and their
``audit_*`` keys.
"""

import logging

import structlog
from structlog.typing import EventDict, WrappedLogger

from coldreach_billing.settings import Settings, get_settings

AUDIT_LOGGER_NAME = "audit"


def _service_info(settings: Settings):
    """Processor stamping every entry with the service name and environment."""

    def processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", settings.app_name)
        event_dict.setdefault("environment", settings.environment.value)
        return event_dict

    return processor


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog from ``settings`` (the global settings by default)."""
    settings = settings or get_settings()
    logging.basicConfig(format="%(message)s", level=settings.log_level.value)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _service_info(settings),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def log_audit_event(
    action: str,
    category: str,
    subscription_id: str | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    **kwargs,
) -> None:
    """
    Record an audit event, e.g. ``subscription.upgrade`` or ``credit.debited``.

    Args:
        action: Dotted name of what happened
        category: Audit category, "billing" for everything in this package
        subscription_id: Subscription the event belongs to
        resource_type: Kind of entity touched (subscription, credit, ...)
        resource_id: Id of that entity
        **kwargs: Extra structured fields logged as-is
    """
    structlog.get_logger(AUDIT_LOGGER_NAME).info(
        action,
        audit_category=category,
        audit_subscription_id=subscription_id,
        audit_resource_type=resource_type,
        audit_resource_id=resource_id,
        **kwargs,
    )


setup_logging()
