from __future__ import annotations

import pytest

from receipt_bot.core.guard import SingleFlightGuard


def test_second_acquire_is_rejected_until_release():
    guard = SingleFlightGuard()
    assert guard.try_acquire("chat-1")
    assert not guard.try_acquire("chat-2")
    assert guard.owner == "chat-1"

    assert guard.release("chat-1")
    assert not guard.held
    assert guard.try_acquire("chat-2")


def test_release_by_non_owner_is_ignored():
    guard = SingleFlightGuard()
    guard.try_acquire("chat-1")
    assert guard.release("chat-2") is False
    assert guard.held
    assert guard.release("chat-1") is True
    assert guard.release("chat-1") is False


@pytest.mark.asyncio
async def test_claim_releases_on_exception():
    guard = SingleFlightGuard()
    with pytest.raises(ValueError):
        async with guard.claim("chat-1") as acquired:
            assert acquired
            raise ValueError("boom")
    assert not guard.held


@pytest.mark.asyncio
async def test_rejected_claim_leaves_holder_in_place():
    guard = SingleFlightGuard()
    async with guard.claim("chat-1") as first:
        async with guard.claim("chat-2") as second:
            assert first and not second
        assert guard.owner == "chat-1"
    assert not guard.held
