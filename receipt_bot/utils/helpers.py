"""Miscellaneous helper functions."""

from __future__ import annotations

import datetime as dt
import math
import re
from typing import Optional

_CURRENCY_RE = re.compile(r"(zł|zl|pln|\$|€)", re.IGNORECASE)


def utcnow() -> dt.datetime:
    """Current UTC time as a naive datetime (SQLite stores no offset)."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def parse_price(value: str | None) -> Optional[float]:
    """Parse a user-entered monetary amount.

    Accepts either ``.`` or ``,`` as the decimal separator and tolerates a
    trailing currency marker (``12,50 zł``). Returns ``None`` for anything
    that is not a non-negative number.
    """
    if not value:
        return None
    cleaned = _CURRENCY_RE.sub("", value).replace(" ", "").replace(",", ".").strip()
    if not cleaned:
        return None
    try:
        amount = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(amount) or amount < 0:
        return None
    return round(amount, 2)


def timestamped_filename(now: Optional[dt.datetime] = None, suffix: str = ".jpg") -> str:
    """Return a file name of the form ``YYYY-MM-DD_HH-MM-SS.jpg``."""
    now = now or dt.datetime.now()
    return now.strftime("%Y-%m-%d_%H-%M-%S") + suffix
