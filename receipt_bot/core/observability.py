"""Observability helpers (Sentry init & common scrubbing).

Centralises Sentry initialisation for the bot and the inspection API so
configuration does not drift. Initialisation and every helper are
no-ops when ``SENTRY_DSN`` is not configured.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from receipt_bot.core.config import settings

_initialised = False


def _before_send(event: Dict[str, Any], hint: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Scrub user text before sending to Sentry.

    - Drop request bodies (the API never needs them)
    - Drop ``extra.text``: chat messages may carry prices and comments
    """
    req = event.get("request")
    if isinstance(req, dict):
        req.pop("data", None)
        headers = req.get("headers") or {}
        for k in list(headers.keys()):
            if k.lower() in ("authorization", "cookie", "set-cookie"):
                headers.pop(k, None)
    extra = event.get("extra")
    if isinstance(extra, dict):
        extra.pop("text", None)
    return event


def _enabled() -> bool:
    return bool(settings.SENTRY_DSN)


def init_sentry(service: str) -> bool:
    """Initialise Sentry once for a given process.

    Returns True if Sentry was initialised; False otherwise.
    """
    global _initialised
    if not _enabled():
        return False
    if _initialised:  # prevent duplicate init in same process
        return True
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[AsyncioIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=float(settings.SENTRY_TRACES_SAMPLE_RATE or 0),
        environment=settings.ENVIRONMENT,
        release=settings.SENTRY_RELEASE,
        before_send=_before_send,
    )
    sentry_sdk.set_tag("service", service)
    _initialised = True
    return True


def sentry_set_tags(tags: Dict[str, Any]) -> None:
    """Set tags on the current Sentry scope (values coerced to short strings)."""
    if not _enabled():
        return
    for k, v in (tags or {}).items():
        sentry_sdk.set_tag(str(k), str(v)[:128] if v is not None else "")


def sentry_breadcrumb(category: str, message: str, level: str = "info", data: Optional[Dict[str, Any]] = None) -> None:
    """Add a breadcrumb for important lifecycle steps."""
    if not _enabled():
        return
    sentry_sdk.add_breadcrumb(category=category, message=message, level=level, data=data or {})


__all__ = ["init_sentry", "sentry_set_tags", "sentry_breadcrumb"]
