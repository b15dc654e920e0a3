# Structured logging for the gateway (structlog over stdlib logging)
import sys
import logging
import structlog
from typing import Optional, Dict, Any, Iterable

from core.config.settings import Settings
from .channels import LogChannel, get_channel_for_component

# Global flag to prevent duplicate logging configuration
_logging_configured = False

DEFAULT_REDACT_KEYS = (
    "authorization", "access_token", "public_token", "request_token",
    "api_key", "api_secret", "password", "secret", "token",
)


def make_redactor(keys: Iterable[str]):
    """Build a processor that masks sensitive fields recursively."""
    keys_to_redact = {k.lower() for k in keys}

    def _redact(obj):
        if isinstance(obj, dict):
            out = {}
            for k, v in obj.items():
                if isinstance(k, str) and k.lower() in keys_to_redact:
                    out[k] = "[REDACTED]"
                else:
                    out[k] = _redact(v)
            return out
        if isinstance(obj, list):
            return [_redact(v) for v in obj]
        return obj

    def redact_sensitive(logger, name, event_dict):
        """Redact sensitive fields from event dict recursively."""
        return _redact(event_dict)

    return redact_sensitive


def configure_logging(settings: Settings) -> None:
    """Configure structlog and the root stdlib handler once per process."""
    global _logging_configured

    # Prevent duplicate configuration
    if _logging_configured:
        return

    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    def add_standard_context(logger, name, event_dict):
        """Bind standard context fields once from settings."""
        event_dict.setdefault("env", settings.environment.value)
        event_dict.setdefault("service", settings.app_name)
        return event_dict

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        add_standard_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        make_redactor(settings.logging.redact_keys or DEFAULT_REDACT_KEYS),
    ]

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.logging.json_format
        else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # The SDK logs full request URLs at DEBUG
    logging.getLogger("kiteconnect").setLevel(max(level, logging.INFO))
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    _logging_configured = True


def get_logger(name: str, component: Optional[str] = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    logger = structlog.get_logger(name)
    if component:
        channel = get_channel_for_component(component)
        return logger.bind(component=component, channel=channel.value)
    return logger


def get_channel_logger(name: str, channel: LogChannel) -> structlog.BoundLogger:
    """Get a logger for a specific channel."""
    return structlog.get_logger(name).bind(channel=channel.value)


def get_trading_logger_safe(name: str) -> structlog.BoundLogger:
    """Get a trading logger safely."""
    return get_channel_logger(name, LogChannel.TRADING)


def get_api_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an API logger safely."""
    return get_channel_logger(name, LogChannel.API)


def get_audit_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an audit logger safely."""
    return get_channel_logger(name, LogChannel.AUDIT)


def get_error_logger_safe(name: str) -> structlog.BoundLogger:
    """Get an error logger safely."""
    return get_channel_logger(name, LogChannel.ERROR)


def bind_broker_context(logger: structlog.BoundLogger, broker: str, user_id: Optional[str] = None) -> structlog.BoundLogger:
    """Bind broker context consistently to a logger.

    Adds `broker` and, when known, the broker-side `user_id`.
    Returns a new BoundLogger with the context applied.
    """
    ctx: Dict[str, Any] = {"broker": broker}
    if user_id:
        ctx["user_id"] = user_id
    return logger.bind(**ctx)


# Export all functions
__all__ = [
    "LogChannel",
    "configure_logging",
    "make_redactor",
    "get_logger",
    "get_channel_logger",
    "get_trading_logger_safe",
    "get_api_logger_safe",
    "get_audit_logger_safe",
    "get_error_logger_safe",
    "bind_broker_context",
]
