"""Receipt lifecycle controller.

Drives one receipt from intake to a terminal state:

```
RECEIVED → PROCESSING (purchase mode) ─┬─ yes ─→ PROCESSING (AI analysis) → ANALYZED_AI
                                       │                          → (sharing) → CATEGORIZED
                                       │                          → PROCESSING (export) → SAVED_TO_SHEETS
                                       └─ no / manual ─→ PROCESSING (manual entry)
                                                                  → PROCESSING (export) → SAVED_TO_SHEETS
                                                      → COMPLETED
```

``PROCESSING`` is re-entered around every sub-step, and each transition
is appended to the record's status history with a detail string naming
the step. Any failure moves the record to ``ERROR`` with the error
message as details, sends the user exactly one message naming what
failed, and ends the flow. Nothing is retried.

The controller keeps its in-memory ``ReceiptRecord`` in sync with the
store (every ``append_status`` result is mirrored on it), so a later
``update`` never rewrites the history with a stale copy.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from receipt_bot.bot.answers import AnswerCollector
from receipt_bot.bot.keywords import Keywords, classify
from receipt_bot.bot.manual_entry import ManualEntryFlow
from receipt_bot.bot.sharing import SharingResolver
from receipt_bot.core.categories import CategoryDirectory
from receipt_bot.core.config import Settings, settings
from receipt_bot.core.exceptions import (
    AnswerTimeoutError,
    CollaboratorError,
    NotFoundError,
    ReceiptBotError,
    StorageError,
    ValidationError,
)
from receipt_bot.core.observability import sentry_breadcrumb, sentry_set_tags
from receipt_bot.models.enums import AnswerKind, ReceiptStatus
from receipt_bot.models.schemas import AnalysisResult, LineItem, ReceiptRecord
from receipt_bot.services.cost_service import estimate_cost
from receipt_bot.services.receipt_store import ReceiptStore
from receipt_bot.services.translation import Translator

logger = logging.getLogger(__name__)

_COLLABORATOR_MESSAGES = {
    "transcription": "bot.analysisError",
    "export": "bot.sheetsError",
    "image": "bot.photoError",
}


class ReceiptLifecycle:
    """State machine for a single receipt conversation.

    All collaborators are injected; the controller owns no global state.
    """

    def __init__(
        self,
        store: ReceiptStore,
        extractor,
        exporter,
        normalizer,
        categories: CategoryDirectory,
        translator: Translator,
        keywords: Keywords,
        config: Settings = settings,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.exporter = exporter
        self.normalizer = normalizer
        self.categories = categories
        self.t = translator
        self.keywords = keywords
        self.config = config
        self.sharing = SharingResolver(
            keywords,
            translator,
            answer_timeout=config.ANSWER_TIMEOUT_SECONDS,
            max_turns=config.ANSWER_MAX_TURNS,
        )
        self.manual = ManualEntryFlow(
            keywords, categories, translator, answer_timeout=config.ANSWER_TIMEOUT_SECONDS
        )

    # ------------------------------------------------------------------
    # Entry points

    async def process_photo(self, collector: AnswerCollector, raw_image_path: str) -> Optional[int]:
        """Run the full flow for a downloaded receipt photo.

        Returns the receipt id, or None when intake failed before a record
        was created.
        """
        try:
            image_path = await self.normalizer.normalize(raw_image_path)
        except CollaboratorError as e:
            logger.error("Error processing image %s: %s", raw_image_path, e)
            await collector.send(self.t.translate("bot.photoError"))
            return None
        await collector.send(self.t.translate("bot.photoSaved"))

        record = await self._intake(collector, ReceiptRecord.new(image_path, "Receipt photo received"))
        if record is None:
            return None
        try:
            await self._run_photo_flow(collector, record)
        except Exception as e:
            await self._fail(collector, record, e, manual=False)
        return record.id

    async def process_manual(self, collector: AnswerCollector) -> Optional[int]:
        """Run the manual entry flow started by a manual command."""
        record = await self._intake(collector, ReceiptRecord.new("", "Manual recipe entry started"))
        if record is None:
            return None
        try:
            await self._transition(record, ReceiptStatus.PROCESSING, "Starting manual recipe entry")
            await self._run_manual_steps(collector, record)
        except Exception as e:
            await self._fail(collector, record, e, manual=True)
        return record.id

    # ------------------------------------------------------------------
    # Flows

    async def _intake(self, collector: AnswerCollector, record: ReceiptRecord) -> Optional[ReceiptRecord]:
        try:
            await self.store.create(record)
        except StorageError:
            await collector.send(self.t.translate("bot.recordError"))
            return None
        sentry_set_tags({"receipt_id": record.id})
        return record

    async def _run_photo_flow(self, collector: AnswerCollector, record: ReceiptRecord) -> None:
        await self._transition(record, ReceiptStatus.PROCESSING, "Processing purchase type")
        mode = await self._ask_analysis_mode(collector)
        if mode in (AnswerKind.MANUAL, AnswerKind.NO):
            # The manual branch reports its own failures with manual wording
            try:
                await self._transition(record, ReceiptStatus.PROCESSING, "Starting manual recipe entry")
                await self._run_manual_steps(collector, record)
            except Exception as e:
                await self._fail(collector, record, e, manual=True)
            return

        record.comments = await self._ask_comments(collector)
        await self.store.update(record.id, record)

        await self._transition(record, ReceiptStatus.PROCESSING, "Starting AI analysis")
        result = await self._analyze(collector, record)
        await self._apply_analysis(record, result)
        await self._transition(record, ReceiptStatus.ANALYZED_AI, "AI analysis completed")
        await collector.send(self._summary(record, result))

        items = await self.sharing.resolve(collector, record.products)
        record.set_products(items)
        await self.store.update(record.id, record)
        shared = sum(1 for item in items if item.is_shared)
        await collector.send(self.t.translate("bot.sharing.done", shared=shared, private=len(items) - shared))
        await self._transition(
            record, ReceiptStatus.CATEGORIZED, f"Sharing resolved: {shared} shared, {len(items) - shared} private"
        )

        await self._export(record, manual=False)
        await collector.send(self.t.translate("bot.sheetsSuccess"))
        await self._transition(record, ReceiptStatus.COMPLETED, "Receipt processing completed successfully")
        await self._log_final(record)

    async def _run_manual_steps(self, collector: AnswerCollector, record: ReceiptRecord) -> None:
        store_name, products = await self.manual.collect(collector)
        record.store = store_name
        record.set_products(products)
        await self.store.update(record.id, record)

        await self._export(record, manual=True)
        await collector.send(self.t.translate("bot.manual.success", count=len(products)))
        await self._transition(record, ReceiptStatus.COMPLETED, "Manual recipe entry completed successfully")
        await self._log_final(record)

    # ------------------------------------------------------------------
    # Steps

    async def _ask_analysis_mode(self, collector: AnswerCollector) -> AnswerKind:
        options = self.keywords.analysis_mode
        prompt = self.t.translate(
            "bot.analysisModeQuestion",
            yesWords=", ".join(self.keywords.yes),
            noWords=", ".join(self.keywords.no),
            manualWords=", ".join(self.keywords.manual),
        )
        answer = await collector.await_valid(
            prompt,
            lambda text: classify(text, options) is not AnswerKind.UNRECOGNIZED,
            timeout=self.config.ANSWER_TIMEOUT_SECONDS,
            max_turns=self.config.ANSWER_MAX_TURNS,
        )
        return classify(answer, options)

    async def _ask_comments(self, collector: AnswerCollector) -> str:
        answer = await collector.ask(
            self.t.translate("bot.commentsQuestion", noWords=", ".join(self.keywords.no)),
            timeout=self.config.COMMENTS_TIMEOUT_SECONDS,
        )
        comments = (answer or "").strip()
        if self.keywords.is_negative(comments):
            comments = ""
        await collector.send(
            self.t.translate("bot.commentsAdded", comments=comments or self.t.translate("bot.noComments"))
        )
        return comments

    async def _analyze(self, collector: AnswerCollector, record: ReceiptRecord) -> AnalysisResult:
        await collector.send(self.t.translate("bot.analysisStarted"))
        try:
            image_data = await asyncio.to_thread(Path(record.source_path).read_bytes)
        except OSError as e:
            raise CollaboratorError("transcription", f"cannot read image {record.source_path}: {e}", e) from e
        result = await self.extractor.analyze(image_data, record.comments, self.categories.for_prompt())
        await collector.send(self.t.translate("bot.analysisComplete"))
        return result

    async def _apply_analysis(self, record: ReceiptRecord, result: AnalysisResult) -> None:
        analysis = result.analysis
        products: List[LineItem] = []
        for product in analysis.products:
            if product.price < 0:
                logger.warning("Skipping product %r with negative price %.2f", product.name, product.price)
                continue
            category = self.categories.resolve(product.category)
            products.append(LineItem(name=product.name, category=category.name, price=product.price))
        record.store = analysis.store_name or None
        record.usage = result.usage
        record.set_products(products)
        if abs(record.total_amount - analysis.total_amount) > 0.01:
            logger.warning(
                "Receipt %s: reported total %.2f differs from item sum %.2f",
                record.id,
                analysis.total_amount,
                record.total_amount,
            )
        await self.store.update(record.id, record)

    def _summary(self, record: ReceiptRecord, result: AnalysisResult) -> str:
        cost = estimate_cost(record.usage, self.config)
        products = "\n".join(
            self.t.translate("bot.productLine", name=p.name, price=f"{p.price:.2f}", category=p.category)
            for p in record.products
        )
        return self.t.translate(
            "bot.receiptSummary",
            store=record.store or "",
            total=f"{result.analysis.total_amount:.2f}",
            products=products,
            inputTokens=record.usage.input_tokens,
            outputTokens=record.usage.output_tokens,
            totalTokens=record.usage.total_tokens,
            inputCost=f"{cost.input_cost:.4f}",
            outputCost=f"{cost.output_cost:.4f}",
            totalCost=f"{cost.total_cost:.4f}",
        )

    async def _export(self, record: ReceiptRecord, *, manual: bool) -> None:
        if manual:
            started, finished = "Saving manual recipe to Google Sheets", "Manual recipe saved to Google Sheets"
        else:
            started, finished = "Saving to Google Sheets", "Data saved to Google Sheets"
        await self._transition(record, ReceiptStatus.PROCESSING, started)
        for item in record.products:
            await self.exporter.append(record.store or "", item.name, item.price, item.category, item.is_shared)
        logger.info("Appended %d rows for receipt %s", len(record.products), record.id)
        await self._transition(record, ReceiptStatus.SAVED_TO_SHEETS, finished)

    # ------------------------------------------------------------------
    # Bookkeeping

    async def _transition(self, record: ReceiptRecord, status: ReceiptStatus, details: str) -> None:
        entry = await self.store.append_status(record.id, status, details)
        record.record_status(entry)
        sentry_breadcrumb("receipt", f"{status.value}: {details}", data={"receipt_id": record.id})

    async def _log_final(self, record: ReceiptRecord) -> None:
        final = await self.store.get_by_id(record.id)
        logger.info("Final record: %s", final.model_dump_json() if final else record.id)

    def _failure_message(self, error: BaseException, manual: bool) -> str:
        if isinstance(error, AnswerTimeoutError):
            return self.t.translate("bot.timeout")
        if isinstance(error, (StorageError, NotFoundError)):
            return self.t.translate("bot.recordError")
        if isinstance(error, CollaboratorError):
            return self.t.translate(_COLLABORATOR_MESSAGES.get(error.collaborator, "bot.unexpectedError"))
        if isinstance(error, ValidationError) or manual:
            return self.t.translate("bot.manual.error", categories=self.categories.human_readable())
        return self.t.translate("bot.unexpectedError")

    @staticmethod
    def _failure_details(error: BaseException, manual: bool) -> str:
        message = str(error) or type(error).__name__
        if manual:
            return f"Manual recipe entry failed: {message}"
        if isinstance(error, CollaboratorError) and error.collaborator == "export":
            return f"Failed to save to Google Sheets: {message}"
        if isinstance(error, CollaboratorError) and error.collaborator == "transcription":
            return f"AI analysis failed: {message}"
        return f"Receipt processing failed: {message}"

    async def _fail(self, collector: AnswerCollector, record: ReceiptRecord, error: Exception, *, manual: bool) -> None:
        """Move ``record`` to ERROR and tell the user once."""
        if isinstance(error, ReceiptBotError):
            logger.error("Receipt %s failed: %s", record.id, error)
        else:
            logger.exception("Receipt %s failed unexpectedly", record.id)
        if not record.is_terminal:
            try:
                await self._transition(record, ReceiptStatus.ERROR, self._failure_details(error, manual))
            except (StorageError, NotFoundError) as e:
                logger.error("Could not record ERROR status for receipt %s: %s", record.id, e)
        await collector.send(self._failure_message(error, manual))
