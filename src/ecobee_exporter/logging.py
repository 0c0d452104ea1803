"""Structured logging configuration using structlog.

Call ``configure_logging()`` once at CLI startup to set up the processor
pipeline and bind a ``run_id`` to every log event the exporter process emits.
Every scrape, token refresh and rejected sensor value then carries the same
``run_id``, which makes one exporter instance easy to pick out of a shared
log stream.

Processor pipeline (applied in order to every log event):

  1. merge_contextvars   — pulls run_id (and any other bound vars) into the event
  2. add_log_level       — adds  level="info" / "error" / …
  3. TimeStamper         — adds  timestamp="2026-10-17T02:41:55Z"
  4. JSONRenderer        — renders as a single JSON line  (format=json)
     ConsoleRenderer     — renders as coloured key=value  (format=text)

Typical usage:

    from ecobee_exporter.logging import configure_logging, get_logger

    run_id = configure_logging()         # call once, at CLI startup
    log = get_logger(__name__)
    log.error("capability value rejected", capability="humidity", value="n/a")
    # → {"timestamp": "…", "level": "error", "run_id": "a3f7b29c",
    #    "event": "capability value rejected", "capability": "humidity", "value": "n/a"}
"""

import logging as _stdlib
import sys
import uuid

import structlog

from ecobee_exporter.config import Settings, get_settings

# Name of the root handler configure_logging() installs; replaced on reconfigure.
HANDLER_NAME = "ecobee_exporter"


def configure_logging(settings: Settings | None = None) -> str:
    """Configure structlog for this process and return the run_id.

    Records from stdlib loggers (``requests``, ``urllib3``) are routed through
    a ``structlog.stdlib.ProcessorFormatter`` on the root logger, so they get
    the same level, timestamp, ``run_id`` and renderer as the exporter's own
    events, plus a ``logger`` key naming their origin.

    Args:
        settings: Pre-loaded settings; loads from ``get_settings()`` if None.

    Returns:
        run_id — 8-character hex string present on every log event this run.
    """
    if settings is None:
        settings = get_settings()

    level_int = getattr(_stdlib, settings.logging.level, _stdlib.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.logging.format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level_int),
        context_class=dict,
        # stdout carries exposition text for `ecobee-exporter scrape`; logs go to stderr.
        # Not cached: CliRunner swaps sys.stderr per invocation.
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    _route_stdlib(shared_processors, renderer, level_int)

    run_id = uuid.uuid4().hex[:8]
    structlog.contextvars.bind_contextvars(run_id=run_id)

    return run_id


def _route_stdlib(shared_processors: list, renderer, level: int) -> None:
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*shared_processors, structlog.stdlib.add_logger_name],
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    handler = _stdlib.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)

    root = _stdlib.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str = "ecobee_exporter") -> structlog.BoundLogger:
    """Return a structlog logger.

    Pass ``__name__`` to associate the logger with the calling module::

        log = get_logger(__name__)
        log.info("thermostats fetched", count=2)
    """
    return structlog.get_logger(name)
