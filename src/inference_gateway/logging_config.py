"""Structured logging for the gateway.

Log events are rendered as JSON in production and as coloured key/value lines
elsewhere. Stdlib loggers (httpx, redis) are routed through the same chain so
every line carries the gateway context, and credential-bearing keys are
masked before rendering.
"""

import logging
import logging.config

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from inference_gateway import __version__

SENSITIVE_KEYS = frozenset({"api_key", "authorization", "credential", "password", "token_secret"})
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "redis")
DEFAULT_APP_NAME = "Inference Gateway"


def app_context(app_name: str = DEFAULT_APP_NAME, version: str = __version__) -> Processor:
    """Build a processor that tags every event with the service name and version."""

    def add_app_context(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("app", app_name)
        event_dict.setdefault("version", version)
        return event_dict

    return add_app_context


def mask_credentials(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace values of credential-like keys with a fixed mask."""
    for key, value in event_dict.items():
        if value and key.lower() in SENSITIVE_KEYS:
            event_dict[key] = "***"
    return event_dict


def _shared_processors(is_production: bool, context: Processor) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        context,
        mask_credentials,
    ]
    if is_production:
        processors.append(structlog.processors.dict_tracebacks)
    return processors


def configure_logging(
    log_level: str = "INFO",
    environment: str = "development",
    app_name: str = DEFAULT_APP_NAME,
    app_version: str = __version__,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Root level name; unknown names fall back to INFO
        environment: "production" selects JSON output
        app_name: Value of the ``app`` key on every event
        app_version: Value of the ``version`` key on every event
    """
    context = app_context(app_name, app_version)
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    is_production = environment.lower() == "production"
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if is_production
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                    "foreign_pre_chain": _shared_processors(is_production, context),
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "structured",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"handlers": ["stdout"], "level": level},
            "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        }
    )

    structlog.configure(
        processors=_shared_processors(is_production, context)
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=logging.getLevelName(level),
        output="json" if is_production else "console",
    )
