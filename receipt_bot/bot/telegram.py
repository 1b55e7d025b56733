"""Telegram entry point (aiogram 3).

Run with:
    python -m receipt_bot.bot.telegram

or the ``receipt-bot`` console script. ``main`` builds every service
once, wires them into :class:`ReceiptBot`, starts the hourly retention
sweep next to long polling and tears everything down on exit.

Updates are handled as concurrent tasks (aiogram's default), which is
what lets a flow suspended on a question receive the answer through the
message hub while its own handler is still running.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from datetime import timedelta
from pathlib import Path
from typing import Hashable

from aiogram import Bot, Dispatcher, F, Router
from aiogram.types import Message

from receipt_bot.bot.answers import IncomingMessage, MessageHub
from receipt_bot.bot.keywords import Keywords
from receipt_bot.bot.lifecycle import ReceiptLifecycle
from receipt_bot.bot.runner import ReceiptBot
from receipt_bot.core.categories import CategoryDirectory
from receipt_bot.core.config import settings
from receipt_bot.core.database import build_engine, build_sessionmaker, init_db
from receipt_bot.core.exceptions import CollaboratorError
from receipt_bot.core.guard import SingleFlightGuard
from receipt_bot.core.observability import init_sentry
from receipt_bot.core.tasks import cleanup_loop
from receipt_bot.services.export_service import GoogleSheetsExporter
from receipt_bot.services.extraction_service import ExtractionService
from receipt_bot.services.receipt_store import ReceiptStore
from receipt_bot.services.storage_service import ImageNormalizer
from receipt_bot.services.translation import Translator

logger = logging.getLogger(__name__)


def build_router(receipt_bot: ReceiptBot, download_dir: Path) -> Router:
    """Route photos and text messages into ``receipt_bot``."""
    router = Router(name="receipts")

    @router.message(F.photo)
    async def handle_photo(message: Message, bot: Bot) -> None:
        # Telegram sends several sizes; the last one is the largest
        photo = message.photo[-1]

        async def download() -> str:
            destination = download_dir / f"{photo.file_unique_id}.jpg"
            await bot.download(photo, destination=destination)
            return str(destination)

        await receipt_bot.on_photo(message.chat.id, download)

    @router.message(F.text)
    async def handle_text(message: Message) -> None:
        await receipt_bot.on_text(IncomingMessage(chat_id=message.chat.id, text=message.text))

    return router


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    if not settings.TELEGRAM_BOT_TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not configured")
    if not settings.GOOGLE_SHEETS_ID:
        raise RuntimeError("GOOGLE_SHEETS_ID is not configured")
    if init_sentry("bot"):
        logger.info("Sentry SDK initialized for bot")

    engine = build_engine()
    await init_db(engine)
    store = ReceiptStore(build_sessionmaker(engine))

    translator = Translator(settings.LANGUAGE)
    categories = CategoryDirectory.load(settings.CATEGORIES_FILE)
    keywords = Keywords.from_settings(settings)

    exporter = GoogleSheetsExporter(
        settings.GOOGLE_SHEETS_ID,
        translator,
        credentials_path=settings.GOOGLE_CREDENTIALS_PATH,
        common_expense_percentage=settings.COMMON_EXPENSE_PERCENTAGE,
    )
    try:
        await exporter.ensure_headers()
    except CollaboratorError as e:
        logger.error("Could not prepare monthly sheets: %s", e)

    lifecycle = ReceiptLifecycle(
        store,
        ExtractionService(),
        exporter,
        ImageNormalizer(settings.MAX_IMAGE_DIMENSION),
        categories,
        translator,
        keywords,
        settings,
    )

    bot = Bot(token=settings.TELEGRAM_BOT_TOKEN)

    async def send(chat_id: Hashable, text: str) -> None:
        await bot.send_message(chat_id, text)

    download_dir = Path(settings.DOWNLOAD_DIRECTORY)
    download_dir.mkdir(parents=True, exist_ok=True)

    receipt_bot = ReceiptBot(lifecycle, MessageHub(), SingleFlightGuard(), send, translator, keywords)
    dp = Dispatcher()
    dp.include_router(build_router(receipt_bot, download_dir))

    cleanup = asyncio.create_task(
        cleanup_loop(store, timedelta(hours=settings.RETENTION_HOURS), settings.CLEANUP_INTERVAL_SECONDS)
    )
    try:
        logger.info("Starting polling (language=%s)", translator.language)
        await dp.start_polling(bot, handle_as_tasks=True)
    finally:
        cleanup.cancel()
        with suppress(asyncio.CancelledError):
            await cleanup
        await bot.session.close()
        await engine.dispose()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
