"""Structured logging via structlog.

Configures structlog once at startup. Library modules keep using
``logging.getLogger(__name__)``; the stdlib bridge routes their output
through the same renderer.

Renderer selection:
  debug=True:  `ConsoleRenderer` with colours for local development.
  debug=False: `JSONRenderer` for machine-parseable logs in production.

ContextVar injection:
  The name of the pipeline run whose status is being written is kept in a
  ContextVar and added to every log line as ``pipeline_run``. Concurrent
  reporters each run in their own task, so each sees its own value.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

import structlog

_pipeline_run_var: ContextVar[str] = ContextVar("pipeline_run", default="")


def get_pipeline_run() -> str:
    """Return the pipeline run bound to the current task, or empty string."""
    return _pipeline_run_var.get()


@contextmanager
def bind_pipeline_run(name: str) -> Iterator[None]:
    """Bind *name* as the current pipeline run for the enclosed block."""
    token = _pipeline_run_var.set(name)
    try:
        yield
    finally:
        _pipeline_run_var.reset(token)


def _inject_context_vars(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: inject pipeline_run from its ContextVar."""
    pipeline_run = get_pipeline_run()
    if pipeline_run:
        event_dict["pipeline_run"] = pipeline_run
    return event_dict


def configure_structlog(debug: bool = True) -> None:
    """Configure structlog for the process lifetime.

    Safe to call more than once; the last call wins.
    """
    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging → structlog so httpx and our own modules
    # (which log via logging.getLogger) share the renderer and pick up
    # the pipeline_run field.
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(logging.DEBUG if debug else logging.INFO)
