"""Background housekeeping for the bot process.

The retention sweep deletes receipt records (and their line items)
older than ``RETENTION_HOURS``. It runs as an asyncio task on the bot's
event loop next to polling:

```python
task = asyncio.create_task(cleanup_loop(store, timedelta(hours=24), 3600))
...
task.cancel()
```

The sweep only touches records past the retention window, so it never
races with an active flow and does not take the single-flight guard.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from receipt_bot.core.observability import sentry_breadcrumb
from receipt_bot.services.receipt_store import ReceiptStore

logger = logging.getLogger(__name__)


async def run_cleanup_once(store: ReceiptStore, retention: timedelta, now: Optional[datetime] = None) -> int:
    """Run a single retention sweep and return the number of deleted receipts."""
    deleted = await store.cleanup_older_than(retention, now=now)
    sentry_breadcrumb("cleanup", "retention sweep finished", data={"deleted": deleted})
    logger.info("[cleanup] sweep done deleted=%d retention=%s", deleted, retention)
    return deleted


async def cleanup_loop(store: ReceiptStore, retention: timedelta, interval_seconds: float) -> None:
    """Run :func:`run_cleanup_once` every ``interval_seconds`` until cancelled.

    A failed sweep is logged and the loop carries on with the next interval.
    """
    logger.info("[cleanup] loop started interval=%ss retention=%s", interval_seconds, retention)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_cleanup_once(store, retention)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("[cleanup] sweep failed: %s", e)
