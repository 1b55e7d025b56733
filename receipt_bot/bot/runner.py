"""Transport-neutral routing of inbound events.

``ReceiptBot`` sits between the chat transport and the lifecycle
controller:

* every inbound text is first offered to the :class:`MessageHub`, so a
  flow waiting for an answer gets it (or finds it buffered at its next
  wait when it was busy sending);
* unconsumed text equal to a manual command starts a manual flow, and
  ``/start`` gets the greeting;
* photos start the photo flow.

Flows run under the single-flight guard. A trigger arriving while a
flow is active is dropped and logged, with no reply to the user.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Hashable, Optional

from receipt_bot.bot.answers import AnswerCollector, IncomingMessage, MessageHub, Sender
from receipt_bot.bot.keywords import Keywords
from receipt_bot.bot.lifecycle import ReceiptLifecycle
from receipt_bot.core.guard import SingleFlightGuard
from receipt_bot.services.translation import Translator

logger = logging.getLogger(__name__)

Downloader = Callable[[], Awaitable[str]]


class ReceiptBot:
    def __init__(
        self,
        lifecycle: ReceiptLifecycle,
        hub: MessageHub,
        guard: SingleFlightGuard,
        sender: Sender,
        translator: Translator,
        keywords: Keywords,
    ) -> None:
        self.lifecycle = lifecycle
        self.hub = hub
        self.guard = guard
        self.sender = sender
        self.t = translator
        self.keywords = keywords

    def collector_for(self, chat_id: Hashable) -> AnswerCollector:
        return AnswerCollector(self.hub, self.sender, chat_id)

    async def on_photo(self, chat_id: Hashable, download: Downloader) -> Optional[int]:
        """Handle a receipt photo; ``download`` fetches it and returns the local path."""
        async with self.guard.claim(chat_id) as acquired:
            if not acquired:
                logger.info("Dropping photo from chat %s: another receipt is in progress", chat_id)
                return None
            try:
                raw_path = await download()
            except Exception as e:  # transport specific download errors
                logger.error("Photo download failed for chat %s: %s", chat_id, e)
                await self.sender(chat_id, self.t.translate("bot.photoDownloadError"))
                return None
            async with self.hub.conversation(chat_id):
                return await self.lifecycle.process_photo(self.collector_for(chat_id), raw_path)

    async def on_text(self, message: IncomingMessage) -> Optional[int]:
        """Route an inbound text message. Returns a receipt id when a flow ran."""
        if self.hub.publish(message):
            return None
        text = (message.text or "").strip()
        if text.startswith("/start"):
            await self.sender(
                message.chat_id,
                self.t.translate("bot.start", manualCommands=", ".join(self.keywords.manual)),
            )
            return None
        if not self.keywords.is_manual_command(text):
            logger.debug("Ignoring unsolicited message from chat %s", message.chat_id)
            return None
        async with self.guard.claim(message.chat_id) as acquired:
            if not acquired:
                logger.info("Dropping manual command from chat %s: another receipt is in progress", message.chat_id)
                return None
            async with self.hub.conversation(message.chat_id):
                return await self.lifecycle.process_manual(self.collector_for(message.chat_id))
