"""Per-product ownership resolution.

Every line item ends up either *shared* (the cost is split, so only
``COMMON_EXPENSE_PERCENTAGE`` lands in the export) or *private*.

For analysed receipts the user picks one of three modes:

* all shared / all private: one answer, no further questions;
* mixed: pick a default flag, then toggle individual items by their
  1-based number until ``stop``.

Manual entry uses a single pass instead: a default flag chosen once and
an optional inline override on each product line (:func:`parse_manual_line`).
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from receipt_bot.bot.answers import AnswerCollector
from receipt_bot.bot.keywords import Keywords, classify
from receipt_bot.core.categories import CategoryDirectory
from receipt_bot.core.exceptions import ValidationError
from receipt_bot.models.enums import AnswerKind
from receipt_bot.models.schemas import LineItem
from receipt_bot.services.translation import Translator
from receipt_bot.utils.helpers import parse_price

logger = logging.getLogger(__name__)


def apply_default(items: Sequence[LineItem], shared: bool) -> List[LineItem]:
    return [item.model_copy(update={"is_shared": shared}) for item in items]


def toggle(items: Sequence[LineItem], indices: Iterable[int]) -> List[LineItem]:
    """Return a copy of ``items`` with the flag of each 1-based index flipped."""
    result = [item.model_copy() for item in items]
    for index in indices:
        item = result[index - 1]
        result[index - 1] = item.model_copy(update={"is_shared": not item.is_shared})
    return result


def parse_selection(text: Optional[str], count: int) -> List[int]:
    """Extract valid 1-based indices from a comma separated answer.

    Non-numeric tokens and numbers outside ``[1, count]`` are dropped,
    repeated numbers are kept once, order is preserved.
    """
    indices: List[int] = []
    for token in (text or "").split(","):
        token = token.strip()
        if not token.isdigit():
            continue
        index = int(token)
        if 1 <= index <= count and index not in indices:
            indices.append(index)
    return indices


def format_items(items: Sequence[LineItem], translator: Translator) -> str:
    """Numbered ``index. name: price (shared|private)`` listing."""
    shared_label = translator.translate("bot.sharing.shared")
    private_label = translator.translate("bot.sharing.private")
    return "\n".join(
        translator.translate(
            "bot.sharing.itemLine",
            index=i,
            name=item.name,
            price=f"{item.price:.2f}",
            flag=shared_label if item.is_shared else private_label,
        )
        for i, item in enumerate(items, start=1)
    )


def parse_manual_line(
    text: str,
    default_shared: bool,
    keywords: Keywords,
    categories: CategoryDirectory,
) -> LineItem:
    """Parse ``name, category, price[, shared|private]`` into a line item.

    A comma used as decimal separator is allowed (``Milk, FOH, 3,50``):
    everything after the category, minus a trailing ownership keyword, is
    read as the price. Raises a non-terminal ValidationError with
    ``reason`` set to ``format``, ``category`` or ``price``.
    """
    parts = [part.strip() for part in (text or "").split(",")]
    if len(parts) < 3 or not parts[0] or not parts[1]:
        raise ValidationError(f"Invalid product line: {text!r}", reason="format")
    name, category_text, *rest = parts

    shared = default_shared
    if len(rest) > 1:
        override = classify(rest[-1], keywords.default_flag)
        if override is not AnswerKind.UNRECOGNIZED:
            shared = override is AnswerKind.SHARED
            rest = rest[:-1]
    price_text = ",".join(rest)
    if not price_text:
        raise ValidationError(f"Invalid product line: {text!r}", reason="format")

    category = categories.find(category_text)
    if category is None:
        raise ValidationError(f"Unknown category: {category_text!r}", reason="category")

    price = parse_price(price_text)
    if price is None:
        raise ValidationError(f"Invalid price: {price_text!r}", reason="price")

    return LineItem(name=name, category=category.name, price=price, is_shared=shared)


class SharingResolver:
    """Runs the sharing dialogue for a list of analysed products."""

    def __init__(
        self,
        keywords: Keywords,
        translator: Translator,
        *,
        answer_timeout: Optional[float],
        max_turns: int,
    ) -> None:
        self._keywords = keywords
        self._t = translator
        self._answer_timeout = answer_timeout
        self._max_turns = max_turns

    def _words(self) -> dict[str, str]:
        k = self._keywords
        return {
            "sharedWords": ", ".join(k.shared),
            "privateWords": ", ".join(k.private),
            "multiWords": ", ".join(k.multi),
        }

    async def _choose(self, collector: AnswerCollector, prompt: str, options) -> AnswerKind:
        answer = await collector.await_valid(
            prompt,
            lambda text: classify(text, options) is not AnswerKind.UNRECOGNIZED,
            timeout=self._answer_timeout,
            max_turns=self._max_turns,
        )
        return classify(answer, options)

    async def resolve(self, collector: AnswerCollector, items: Sequence[LineItem]) -> List[LineItem]:
        """Ask the user how to split ``items`` and return them with flags set."""
        mode = await self._choose(
            collector,
            self._t.translate("bot.sharing.modeQuestion", **self._words()),
            self._keywords.sharing_mode,
        )
        if mode is AnswerKind.SHARED:
            await collector.send(self._t.translate("bot.sharing.allShared"))
            return apply_default(items, True)
        if mode is AnswerKind.PRIVATE:
            await collector.send(self._t.translate("bot.sharing.allPrivate"))
            return apply_default(items, False)

        default = await self._choose(
            collector,
            self._t.translate("bot.sharing.defaultQuestion", **self._words()),
            self._keywords.default_flag,
        )
        resolved = apply_default(items, default is AnswerKind.SHARED)
        return await self._selection_loop(collector, resolved)

    async def _selection_loop(self, collector: AnswerCollector, items: List[LineItem]) -> List[LineItem]:
        await collector.send(
            self._t.translate(
                "bot.sharing.selectionInfo",
                stopWords=", ".join(self._keywords.stop),
                showWords=", ".join(self._keywords.show),
            )
        )
        await collector.send(format_items(items, self._t))
        while True:
            answer = await collector.wait_for_answer(timeout=self._answer_timeout)
            if answer is None:
                logger.info("Selection loop timed out, keeping current flags")
                break
            command = classify(answer.text, self._keywords.selection_commands)
            if command is AnswerKind.STOP:
                break
            if command is AnswerKind.SHOW:
                await collector.send(format_items(items, self._t))
                continue
            indices = parse_selection(answer.text, len(items))
            if not indices:
                await collector.send(self._t.translate("bot.sharing.invalidSelection"))
                continue
            items = toggle(items, indices)
            await collector.send(format_items(items, self._t))
        return items
