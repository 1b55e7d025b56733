"""Manual receipt entry dialogue.

Collects a store name, a default purchase type and a list of product
lines terminated by ``stop``. Malformed product lines are reported and
re-prompted; a missing store name, a missing purchase type or an empty
product list abort the dialogue with a terminal ValidationError, and an
expired wait aborts it with AnswerTimeoutError.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from receipt_bot.bot.answers import AnswerCollector
from receipt_bot.bot.keywords import Keywords, classify
from receipt_bot.bot.sharing import parse_manual_line
from receipt_bot.core.categories import CategoryDirectory
from receipt_bot.core.exceptions import AnswerTimeoutError, ValidationError
from receipt_bot.models.enums import AnswerKind
from receipt_bot.models.schemas import LineItem
from receipt_bot.services.translation import Translator

logger = logging.getLogger(__name__)

_REASON_MESSAGES = {
    "format": "bot.manual.invalidFormat",
    "category": "bot.manual.invalidCategory",
    "price": "bot.manual.invalidPrice",
}


class ManualEntryFlow:
    def __init__(
        self,
        keywords: Keywords,
        categories: CategoryDirectory,
        translator: Translator,
        *,
        answer_timeout: Optional[float],
    ) -> None:
        self._keywords = keywords
        self._categories = categories
        self._t = translator
        self._answer_timeout = answer_timeout

    async def _required_answer(self, collector: AnswerCollector, prompt: str, what: str, reason: str) -> str:
        answer = await collector.ask(prompt, timeout=self._answer_timeout)
        if answer is None:
            raise AnswerTimeoutError(f"No {what} received within {self._answer_timeout}s")
        answer = answer.strip()
        if not answer:
            raise ValidationError(f"{what.capitalize()} is required", reason=reason, terminal=True)
        return answer

    async def collect(self, collector: AnswerCollector) -> Tuple[str, List[LineItem]]:
        """Run the dialogue and return ``(store_name, products)``."""
        await collector.send(self._t.translate("bot.manual.info"))

        store_name = await self._required_answer(
            collector, self._t.translate("bot.manual.askStore"), "store name", "store"
        )

        type_answer = await self._required_answer(
            collector,
            self._t.translate(
                "bot.manual.askType",
                sharedWords=", ".join(self._keywords.shared),
                privateWords=", ".join(self._keywords.private),
            ),
            "purchase type",
            "purchase_type",
        )
        # Anything that is not a shared keyword counts as private
        default_shared = classify(type_answer, self._keywords.default_flag) is AnswerKind.SHARED

        products = await self._collect_products(collector, default_shared)
        if not products:
            await collector.send(self._t.translate("bot.manual.itemsRequired"))
            raise ValidationError("At least one product is required", reason="items", terminal=True)
        logger.info("Manual entry collected %d products for %s", len(products), store_name)
        return store_name, products

    async def _collect_products(self, collector: AnswerCollector, default_shared: bool) -> List[LineItem]:
        category_list = self._categories.human_readable()
        await collector.send(
            self._t.translate(
                "bot.manual.askItems",
                stopWords=", ".join(self._keywords.stop),
                categories=category_list,
            )
        )
        products: List[LineItem] = []
        while True:
            answer = await collector.wait_for_answer(timeout=self._answer_timeout)
            if answer is None:
                raise AnswerTimeoutError(f"No product line received within {self._answer_timeout}s")
            text = (answer.text or "").strip()
            if not text or self._keywords.is_stop(text):
                break
            try:
                item = parse_manual_line(text, default_shared, self._keywords, self._categories)
            except ValidationError as e:
                logger.debug("Rejected product line: %s", e)
                await collector.send(
                    self._t.translate(_REASON_MESSAGES.get(e.reason, "bot.manual.invalidFormat"), categories=category_list)
                )
                continue
            products.append(item)
            await collector.send(
                self._t.translate(
                    "bot.manual.itemAdded", name=item.name, price=f"{item.price:.2f}", category=item.category
                )
            )
        return products
