from __future__ import annotations

import pytest

from receipt_bot.bot.sharing import (
    SharingResolver,
    format_items,
    parse_manual_line,
    parse_selection,
    toggle,
)
from receipt_bot.core.exceptions import AnswerTimeoutError, ValidationError
from receipt_bot.models.schemas import LineItem


def _items(*flags: bool) -> list[LineItem]:
    names = "ABCDEFG"
    return [
        LineItem(name=names[i], category="Inne wydatki", price=10.0 * (i + 1), is_shared=flag)
        for i, flag in enumerate(flags)
    ]


def _flags(items) -> list[bool]:
    return [item.is_shared for item in items]


def _resolver(keywords, translator, max_turns: int = 5) -> SharingResolver:
    return SharingResolver(keywords, translator, answer_timeout=1, max_turns=max_turns)


def test_toggle_twice_restores_original_flag():
    items = _items(False, True, False)
    once = toggle(items, [2])
    assert _flags(once) == [False, False, False]
    assert _flags(toggle(once, [2])) == _flags(items)
    # Input list is not mutated
    assert _flags(items) == [False, True, False]


def test_parse_selection_drops_invalid_tokens():
    assert parse_selection("1,2", 3) == [1, 2]
    assert parse_selection(" 3 , 1 ", 3) == [3, 1]
    assert parse_selection("99", 3) == []
    assert parse_selection("0, abc, 2, 2", 3) == [2]
    assert parse_selection("", 3) == []


def test_format_items_numbers_from_one(translator):
    text = format_items(_items(True, False), translator)
    assert text.splitlines() == ["1. A: 10.00 (shared)", "2. B: 20.00 (private)"]


@pytest.mark.asyncio
async def test_mixed_mode_selection_loop_toggles(keywords, translator, scripted):
    collector = scripted(["multi", "p", "1,2", "1", "99", "stop"])
    result = await _resolver(keywords, translator).resolve(collector, _items(False, False, False))

    assert _flags(result) == [False, True, False]
    assert translator.translate("bot.sharing.invalidSelection") in collector.sent
    assert collector.answers == []


@pytest.mark.asyncio
async def test_mixed_mode_intermediate_state_after_first_selection(keywords, translator, scripted):
    collector = scripted(["multi", "p", "1,2", "stop"])
    result = await _resolver(keywords, translator).resolve(collector, _items(False, False, False))
    assert _flags(result) == [True, True, False]


@pytest.mark.asyncio
async def test_show_redisplays_without_mutation(keywords, translator, scripted):
    collector = scripted(["m", "w", "show", "stop"])
    result = await _resolver(keywords, translator).resolve(collector, _items(False, False))
    assert _flags(result) == [True, True]
    listing = format_items(result, translator)
    # Initial listing plus the one requested with "show"
    assert collector.sent.count(listing) == 2


@pytest.mark.asyncio
async def test_all_shared_and_all_private_modes(keywords, translator, scripted):
    shared = await _resolver(keywords, translator).resolve(scripted(["wspolne"]), _items(False, False))
    private = await _resolver(keywords, translator).resolve(scripted(["pv"]), _items(True, True))
    assert _flags(shared) == [True, True]
    assert _flags(private) == [False, False]


@pytest.mark.asyncio
async def test_unrecognized_mode_answer_is_ignored(keywords, translator, scripted):
    collector = scripted(["maybe later", "r"])
    result = await _resolver(keywords, translator).resolve(collector, _items(False))
    assert _flags(result) == [True]
    # No reply for the ignored answer: question + confirmation only
    assert len(collector.sent) == 2


@pytest.mark.asyncio
async def test_mode_question_gives_up_after_max_turns(keywords, translator, scripted):
    collector = scripted(["what", "huh", "r"])
    with pytest.raises(AnswerTimeoutError):
        await _resolver(keywords, translator, max_turns=2).resolve(collector, _items(False))


@pytest.mark.asyncio
async def test_selection_timeout_acts_as_stop(keywords, translator, scripted):
    collector = scripted(["multi", "shared", "1", None])
    result = await _resolver(keywords, translator).resolve(collector, _items(False, False, False))
    assert _flags(result) == [False, True, True]


def test_parse_manual_line_uses_default_flag(keywords, categories):
    item = parse_manual_line("Mleko, FOH, 3.49", True, keywords, categories)
    assert item.name == "Mleko"
    assert item.category == "Jedzenie – Dom"
    assert item.price == 3.49
    assert item.is_shared is True


def test_parse_manual_line_accepts_decimal_comma_and_override(keywords, categories):
    item = parse_manual_line("Chleb, jedzenie – dom, 4,20, p", True, keywords, categories)
    assert item.price == 4.2
    assert item.is_shared is False

    item = parse_manual_line("Ser, foh, 12,50 zł", False, keywords, categories)
    assert item.price == 12.5
    assert item.is_shared is False


@pytest.mark.parametrize(
    "line, reason",
    [
        ("Mleko", "format"),
        ("Mleko, FOH", "format"),
        (", FOH, 3", "format"),
        ("Mleko, XYZ, 3", "category"),
        ("Mleko, FOH, abc", "price"),
        ("Mleko, FOH, -2", "price"),
    ],
)
def test_parse_manual_line_rejects_bad_input(keywords, categories, line, reason):
    with pytest.raises(ValidationError) as exc:
        parse_manual_line(line, False, keywords, categories)
    assert exc.value.reason == reason
    assert exc.value.terminal is False
