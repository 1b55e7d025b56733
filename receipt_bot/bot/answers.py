"""Pull-based answer collection over a single conversation channel.

A receipt flow is a sequence of questions. Rather than registering
callbacks, the flow suspends on :meth:`AnswerCollector.wait_for_answer`
until the transport publishes the next matching message through the
shared :class:`MessageHub`. Each wait carries its own chat id and
filter, so messages from other conversations never leak into a flow.

Waits are always bounded. ``wait_for_answer`` returns ``None`` on
timeout, and ``await_valid`` raises :class:`AnswerTimeoutError` once its
time or turn budget is exhausted.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Deque, Dict, Hashable, List, Optional

from receipt_bot.core.exceptions import AnswerTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class IncomingMessage:
    """Protocol-neutral inbound message."""

    chat_id: Hashable
    text: Optional[str] = None
    has_photo: bool = False


MessageFilter = Callable[[IncomingMessage], bool]
Sender = Callable[[Hashable, str], Awaitable[None]]


def has_text(message: IncomingMessage) -> bool:
    return bool(message.text)


@dataclass(eq=False)
class _Waiter:
    chat_id: Hashable
    accepts: MessageFilter
    future: "asyncio.Future[IncomingMessage]" = field(repr=False)


class MessageHub:
    """Routes inbound messages to suspended waiters.

    The transport calls :meth:`publish` for every inbound text. The first
    waiter (in registration order) whose chat id matches and whose filter
    accepts the message receives it.

    A chat with an open conversation (see :meth:`conversation`) also gets
    a buffer: messages that arrive while its flow is busy between two
    waits are queued there and handed to the next matching wait, so a
    quick user never loses a line.
    """

    def __init__(self) -> None:
        self._waiters: List[_Waiter] = []
        self._buffers: Dict[Hashable, Deque[IncomingMessage]] = {}

    @property
    def pending(self) -> int:
        return len(self._waiters)

    def buffered(self, chat_id: Hashable) -> int:
        return len(self._buffers.get(chat_id, ()))

    def open(self, chat_id: Hashable) -> None:
        self._buffers.setdefault(chat_id, deque())

    def close(self, chat_id: Hashable) -> None:
        leftover = self._buffers.pop(chat_id, None)
        if leftover:
            logger.info("Discarding %d unread messages from chat %s", len(leftover), chat_id)

    @asynccontextmanager
    async def conversation(self, chat_id: Hashable) -> AsyncIterator[None]:
        """Buffer unclaimed messages from ``chat_id`` for the duration of the block."""
        self.open(chat_id)
        try:
            yield
        finally:
            self.close(chat_id)

    def publish(self, message: IncomingMessage) -> bool:
        """Hand ``message`` to a waiter or to its chat's buffer.

        Returns False when nobody consumed it.
        """
        for waiter in list(self._waiters):
            if waiter.future.done() or waiter.chat_id != message.chat_id:
                continue
            if waiter.accepts(message):
                self._waiters.remove(waiter)
                waiter.future.set_result(message)
                return True
        buffer = self._buffers.get(message.chat_id)
        if buffer is not None:
            buffer.append(message)
            return True
        return False

    def _take_buffered(self, chat_id: Hashable, accepts: MessageFilter) -> Optional[IncomingMessage]:
        buffer = self._buffers.get(chat_id)
        if not buffer:
            return None
        for index, message in enumerate(buffer):
            if accepts(message):
                del buffer[index]
                return message
        return None

    async def wait(
        self,
        chat_id: Hashable,
        accepts: Optional[MessageFilter] = None,
        timeout: Optional[float] = None,
    ) -> Optional[IncomingMessage]:
        """Return the first buffered match, else suspend until one arrives or ``timeout`` passes."""
        accepts = accepts or has_text
        queued = self._take_buffered(chat_id, accepts)
        if queued is not None:
            return queued
        future: asyncio.Future[IncomingMessage] = asyncio.get_running_loop().create_future()
        waiter = _Waiter(chat_id=chat_id, accepts=accepts, future=future)
        self._waiters.append(waiter)
        try:
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.info("No answer from chat %s within %ss", chat_id, timeout)
            return None
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)


class AnswerCollector:
    """Question/answer helper bound to one chat.

    ``wait_for_answer`` is the single primitive that touches the hub;
    everything else is built on top of it, which keeps the collector easy
    to script in tests.
    """

    def __init__(self, hub: Optional[MessageHub], sender: Sender, chat_id: Hashable) -> None:
        self._hub = hub
        self._sender = sender
        self.chat_id = chat_id

    async def send(self, text: str) -> None:
        await self._sender(self.chat_id, text)

    async def wait_for_answer(
        self, accepts: Optional[MessageFilter] = None, timeout: Optional[float] = None
    ) -> Optional[IncomingMessage]:
        if self._hub is None:
            raise RuntimeError("AnswerCollector has no message hub")
        return await self._hub.wait(self.chat_id, accepts, timeout)

    async def ask(self, prompt: str, timeout: Optional[float] = None) -> Optional[str]:
        """Send ``prompt`` and return the next text answer, or None on timeout."""
        await self.send(prompt)
        answer = await self.wait_for_answer(timeout=timeout)
        return answer.text if answer is not None else None

    async def await_valid(
        self,
        prompt: str,
        validator: Callable[[str], bool],
        *,
        timeout: Optional[float],
        max_turns: int,
    ) -> str:
        """Send ``prompt`` and return the first answer accepted by ``validator``.

        Rejected answers are consumed and ignored without a reply. Raises
        AnswerTimeoutError when one wait exceeds ``timeout`` or after
        ``max_turns`` rejected answers.
        """
        await self.send(prompt)
        for turn in range(1, max_turns + 1):
            answer = await self.wait_for_answer(timeout=timeout)
            if answer is None:
                raise AnswerTimeoutError(f"No answer within {timeout}s")
            text = answer.text or ""
            if validator(text):
                return text
            logger.debug("Ignoring answer %d/%d from chat %s", turn, max_turns, self.chat_id)
        raise AnswerTimeoutError(f"No valid answer after {max_turns} attempts")
