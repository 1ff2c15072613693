"""structlog configuration for the API server and the CLI.

Every module logs through ``structlog.get_logger(logger_name=__name__)``;
the chain below turns that ``logger_name`` into a short ``logger`` field
(``services.ingestion.ingestion_pipeline`` rather than the dotted import
path) so pipeline, catalog and vector-store events can be told apart.

Output goes to stderr, leaving stdout to the CLI's JSON reports.  Records
from the standard library (uvicorn access logs, chromadb, httpx) are
passed through the same chain so one stream has one format.

Rendering follows :class:`~ragline.config.settings.Settings`:

* ``LOG_FORMAT=json`` or ``APP_ENV=production``: one JSON object per line,
  tracebacks as structured dicts, loggers cached after first use.
* otherwise: the coloured console renderer.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, TextIO

import structlog

if TYPE_CHECKING:
    from ragline.config.settings import Settings

_PACKAGE_PREFIX = "ragline."

# Libraries whose INFO output repeats what our own events already say.
_QUIET_LOGGERS = ("chromadb", "httpx", "httpcore", "openai", "aiosqlite")


def _short_logger_name(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    name = event_dict.pop("logger_name", None)
    if name is not None:
        event_dict["logger"] = name.removeprefix(_PACKAGE_PREFIX)
    return event_dict


def _wants_json(app_settings: Settings | None) -> bool:
    if app_settings is None:
        return False
    return app_settings.log_format == "json" or app_settings.app_env == "production"


def configure_logging(app_settings: Settings | None = None, *, stream: TextIO | None = None) -> None:
    """Install the ragline processor chain for structlog and stdlib logging.

    Parameters
    ----------
    app_settings:
        Supplies ``log_level``, ``log_format`` and ``app_env``.  ``None``
        means INFO with console output.
    stream:
        Destination for both structlog and stdlib records; stderr by
        default.
    """
    level_name = (app_settings.log_level if app_settings else "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level_name, level = "INFO", logging.INFO
    use_json = _wants_json(app_settings)
    output = stream or sys.stderr

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _short_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        tail: list[structlog.types.Processor] = [structlog.processors.dict_tracebacks, renderer]
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=output.isatty())
        tail = [structlog.dev.set_exc_info, renderer]

    structlog.configure(
        processors=[*shared, *tail],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=use_json,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[structlog.stdlib.add_logger_name, *shared],
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *tail],
    )
    handler = logging.StreamHandler(output)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level_name)

    for noisy in _QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger tagged with *name*, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)
