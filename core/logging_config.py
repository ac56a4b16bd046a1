"""
Structlog logging configuration
"""
import logging
import json
import structlog
from structlog.processors import TimeStamper, add_log_level, JSONRenderer
from structlog.dev import ConsoleRenderer
from structlog.contextvars import merge_contextvars
from structlog.stdlib import ProcessorFormatter
from typing import Any, List, MutableMapping

from core.config import settings


# Event fields that may carry buyer PII or credentials
REDACTED_KEYS = frozenset({
    "email",
    "billing_email",
    "billingEmail",
    "customer",
    "token",
    "signature",
    "api_key",
    "authorization",
})
REDACTED = "[redacted]"


def redact_value(value: Any) -> Any:
    """Mask sensitive keys inside nested dict/list payloads."""
    if isinstance(value, dict):
        return {
            k: (REDACTED if k in REDACTED_KEYS else redact_value(v))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact_value(v) for v in value]
    return value


def redact_sensitive(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """structlog processor masking PII and secrets, including inside request/response payloads."""
    for key in list(event_dict.keys()):
        if key == "event":
            continue
        if key in REDACTED_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(event_dict[key], (dict, list)):
            event_dict[key] = redact_value(event_dict[key])
    return event_dict


def get_renderer() -> Any:
    """Pick a renderer for the environment (Console in DEBUG, JSON otherwise).
    structlog passes default/sort_keys to the serializer, so accept them.
    """
    if settings.DEBUG:
        return ConsoleRenderer(colors=True)

    def _dumps(obj, default=None, **kwargs):
        return json.dumps(obj, ensure_ascii=False, default=default, **kwargs)
    return JSONRenderer(serializer=_dumps)


def configure_logging() -> None:
    """Configure structlog and bridge stdlib logging into the same chain."""
    timestamper = TimeStamper(fmt="iso")

    # Shared by ProcessorFormatter and structlog.configure
    shared_pre_chain: List[Any] = [
        merge_contextvars,
        add_log_level,
        timestamper,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_sensitive,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *shared_pre_chain,
            ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    renderer = get_renderer()
    formatter = ProcessorFormatter(
        foreign_pre_chain=shared_pre_chain,
        processors=[
            ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger."""
    return structlog.get_logger(name)


configure_logging()
