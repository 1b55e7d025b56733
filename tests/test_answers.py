from __future__ import annotations

import asyncio

import pytest

from receipt_bot.bot.answers import AnswerCollector, IncomingMessage, MessageHub
from receipt_bot.core.exceptions import AnswerTimeoutError


class Outbox:
    def __init__(self) -> None:
        self.sent: list[tuple[int, str]] = []

    async def __call__(self, chat_id, text: str) -> None:
        self.sent.append((chat_id, text))


async def _settle() -> None:
    # Let waiting tasks register with the hub
    for _ in range(3):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_publish_delivers_to_waiting_chat_only():
    hub = MessageHub()
    waiting = asyncio.create_task(hub.wait(1, timeout=1))
    await _settle()

    assert hub.pending == 1
    assert hub.publish(IncomingMessage(chat_id=2, text="hello")) is False
    assert hub.publish(IncomingMessage(chat_id=1, text="tak")) is True

    message = await waiting
    assert message.text == "tak"
    assert hub.pending == 0


@pytest.mark.asyncio
async def test_filter_skips_non_matching_messages():
    hub = MessageHub()
    waiting = asyncio.create_task(hub.wait(1, accepts=lambda m: m.text == "stop", timeout=1))
    await _settle()

    assert hub.publish(IncomingMessage(chat_id=1, text="1,2")) is False
    assert hub.publish(IncomingMessage(chat_id=1, has_photo=True)) is False
    assert hub.publish(IncomingMessage(chat_id=1, text="stop")) is True
    assert (await waiting).text == "stop"


@pytest.mark.asyncio
async def test_default_filter_ignores_photos():
    hub = MessageHub()
    waiting = asyncio.create_task(hub.wait(1, timeout=1))
    await _settle()
    assert hub.publish(IncomingMessage(chat_id=1, has_photo=True)) is False
    assert hub.publish(IncomingMessage(chat_id=1, text="ok")) is True
    await waiting


@pytest.mark.asyncio
async def test_timeout_returns_none_and_removes_waiter():
    hub = MessageHub()
    assert await hub.wait(1, timeout=0.01) is None
    assert hub.pending == 0
    # A late message is no longer consumed
    assert hub.publish(IncomingMessage(chat_id=1, text="late")) is False


@pytest.mark.asyncio
async def test_ask_sends_prompt_and_returns_text():
    hub = MessageHub()
    outbox = Outbox()
    collector = AnswerCollector(hub, outbox, chat_id=7)

    asking = asyncio.create_task(collector.ask("Comments?", timeout=1))
    await _settle()
    hub.publish(IncomingMessage(chat_id=7, text="for the kids"))

    assert await asking == "for the kids"
    assert outbox.sent == [(7, "Comments?")]


@pytest.mark.asyncio
async def test_await_valid_ignores_rejected_answers():
    hub = MessageHub()
    outbox = Outbox()
    collector = AnswerCollector(hub, outbox, chat_id=7)

    asking = asyncio.create_task(collector.await_valid("Yes?", lambda t: t == "yes", timeout=1, max_turns=3))
    for text in ("what", "yes"):
        await _settle()
        hub.publish(IncomingMessage(chat_id=7, text=text))

    assert await asking == "yes"
    # No reply to the rejected answer
    assert outbox.sent == [(7, "Yes?")]


@pytest.mark.asyncio
async def test_await_valid_times_out():
    collector = AnswerCollector(MessageHub(), Outbox(), chat_id=7)
    with pytest.raises(AnswerTimeoutError):
        await collector.await_valid("Yes?", lambda t: True, timeout=0.01, max_turns=3)


@pytest.mark.asyncio
async def test_collector_without_hub_cannot_wait():
    collector = AnswerCollector(None, Outbox(), chat_id=7)
    with pytest.raises(RuntimeError):
        await collector.wait_for_answer(timeout=0.01)


@pytest.mark.asyncio
async def test_open_conversation_buffers_messages_between_waits():
    hub = MessageHub()
    async with hub.conversation(1):
        assert hub.publish(IncomingMessage(chat_id=1, text="Chleb, FOH, 4.20")) is True
        assert hub.publish(IncomingMessage(chat_id=1, text="Mleko, FOH, 3.10")) is True
        assert hub.publish(IncomingMessage(chat_id=2, text="other chat")) is False
        assert hub.buffered(1) == 2

        first = await hub.wait(1, timeout=0.01)
        second = await hub.wait(1, timeout=0.01)
        assert [first.text, second.text] == ["Chleb, FOH, 4.20", "Mleko, FOH, 3.10"]
        assert hub.pending == 0

    # Closing the conversation drops the buffer
    assert hub.buffered(1) == 0
    assert hub.publish(IncomingMessage(chat_id=1, text="late")) is False


@pytest.mark.asyncio
async def test_buffered_message_rejected_by_filter_stays_queued():
    hub = MessageHub()
    async with hub.conversation(1):
        hub.publish(IncomingMessage(chat_id=1, text="1,2"))
        hub.publish(IncomingMessage(chat_id=1, text="stop"))

        matched = await hub.wait(1, accepts=lambda m: m.text == "stop", timeout=0.01)
        assert matched.text == "stop"
        assert (await hub.wait(1, timeout=0.01)).text == "1,2"


@pytest.mark.asyncio
async def test_answers_sent_while_prompt_is_in_flight_are_kept():
    hub = MessageHub()

    async def slow_sender(chat_id, text: str) -> None:
        await asyncio.sleep(0.05)

    collector = AnswerCollector(hub, slow_sender, chat_id=7)

    async def flow() -> list:
        return [await collector.ask("Next product?", timeout=1) for _ in range(3)]

    async with hub.conversation(7):
        asking = asyncio.create_task(flow())
        await asyncio.sleep(0.06)
        for text in ("A", "B", "C"):
            assert hub.publish(IncomingMessage(chat_id=7, text=text)) is True
            await asyncio.sleep(0.01)
        assert await asking == ["A", "B", "C"]
