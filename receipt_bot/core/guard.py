"""Single-flight guard for receipt conversations.

Only one receipt flow runs per bot process. A trigger that arrives
while the guard is held is dropped by the caller, never queued.

The guard remembers its owner so a release from the wrong party (for
example a stale handler finishing late) is ignored and logged instead
of unlocking someone else's flow. Prefer :meth:`SingleFlightGuard.claim`,
which releases on every exit path including exceptions.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable, Optional

logger = logging.getLogger(__name__)


class SingleFlightGuard:
    """Process-wide try-lock with owner tracking.

    The bot runs on a single event loop, so acquire and release are plain
    attribute updates between suspension points and need no ``asyncio.Lock``.
    """

    def __init__(self) -> None:
        self._owner: Optional[Hashable] = None

    @property
    def held(self) -> bool:
        return self._owner is not None

    @property
    def owner(self) -> Optional[Hashable]:
        return self._owner

    def try_acquire(self, owner: Hashable) -> bool:
        """Take the guard for ``owner``; return False if it is already held."""
        if self._owner is not None:
            logger.info("Guard busy (held by %s), rejecting %s", self._owner, owner)
            return False
        self._owner = owner
        logger.debug("Guard acquired by %s", owner)
        return True

    def release(self, owner: Hashable) -> bool:
        """Release the guard if ``owner`` holds it. Returns whether it was released."""
        if self._owner is None:
            return False
        if self._owner != owner:
            logger.warning("Guard release by %s ignored; held by %s", owner, self._owner)
            return False
        self._owner = None
        logger.debug("Guard released by %s", owner)
        return True

    @asynccontextmanager
    async def claim(self, owner: Hashable) -> AsyncIterator[bool]:
        """Async context manager yielding whether the guard was acquired.

        ``async with guard.claim(chat_id) as acquired: ...``; the guard is
        released on exit only when this block acquired it.
        """
        acquired = self.try_acquire(owner)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(owner)
