"""Sentry SDK integration for the GitHub provider.

Captures exceptions raised while writing statuses or resolving
installations, without leaking credentials.

Key decisions:
  - `send_default_pii=False`: no user data sent by default.
  - `before_send` hook scrubs any event field whose key contains a
    sensitive keyword (token, jwt, private_key, secret, password, dsn).
    App JWTs and installation tokens pass through this package's call
    frames, so they must never reach an event payload.
  - No-op when SENTRY_DSN is empty.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Keywords that indicate a value should be redacted from Sentry events
_SENSITIVE_KEYS = frozenset({"token", "jwt", "private_key", "secret", "password", "dsn"})


def _scrub_secrets(event: dict[str, Any], hint: Any) -> dict[str, Any]:
    """Sentry before_send hook: redact values for sensitive keys.

    Walks the event's `extra` dict and the local variables of every stack
    frame, replacing the values of any key matching a sensitive keyword
    with "[REDACTED]".
    """
    _scrub_dict(event.get("extra", {}))
    for exc in event.get("exception", {}).get("values", []):
        for frame in (exc.get("stacktrace") or {}).get("frames", []):
            frame_vars = frame.get("vars")
            if isinstance(frame_vars, dict):
                _scrub_dict(frame_vars)
    return event


def _scrub_dict(d: dict[str, Any]) -> None:
    """Recursively redact sensitive values in-place."""
    for key in list(d.keys()):
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            d[key] = "[REDACTED]"
        elif isinstance(d[key], dict):
            _scrub_dict(d[key])


def init_sentry(dsn: str, environment: str = "development") -> None:
    """Initialise the Sentry SDK.

    If `dsn` is empty, this is a no-op so local and CI environments are
    unaffected.

    Args:
        dsn: Sentry DSN string. Empty string disables Sentry entirely.
        environment: Sentry environment tag ("development" | "production").
    """
    if not dsn or not dsn.strip():
        logger.debug("Sentry DSN not configured, skipping initialisation")
        return

    import sentry_sdk
    from sentry_sdk.integrations.httpx import HttpxIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[HttpxIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=_scrub_secrets,
    )
    logger.info("Sentry initialised (environment=%s)", environment)
