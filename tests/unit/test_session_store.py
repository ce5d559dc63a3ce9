"""Unit tests for MemorySessionStore."""

from __future__ import annotations

import pytest

from plantops.models.chat import Turn, TurnRole
from plantops.providers.session import MemorySessionStore


class FakeTimer:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _turn(content: str, role: TurnRole = TurnRole.USER) -> Turn:
    return Turn(role=role, content=content)


class TestMemorySessionStore:
    @pytest.mark.asyncio
    async def test_unknown_session_is_empty(self) -> None:
        assert await MemorySessionStore().get_turns("nope") == []

    @pytest.mark.asyncio
    async def test_appends_keep_order(self) -> None:
        store = MemorySessionStore()
        await store.append_turns("s1", [_turn("q1"), _turn("a1", TurnRole.ASSISTANT)])
        await store.append_turns("s1", [_turn("q2")])

        assert [t.content for t in await store.get_turns("s1")] == ["q1", "a1", "q2"]

    @pytest.mark.asyncio
    async def test_oldest_turns_dropped_past_max_turns(self) -> None:
        store = MemorySessionStore(max_turns=3)
        await store.append_turns("s1", [_turn(f"m{i}") for i in range(5)])

        assert [t.content for t in await store.get_turns("s1")] == ["m2", "m3", "m4"]

    @pytest.mark.asyncio
    async def test_session_expires_after_idle_ttl(self) -> None:
        timer = FakeTimer()
        store = MemorySessionStore(ttl=60, timer=timer)
        await store.append_turns("s1", [_turn("q1")])

        timer.now = 50
        await store.append_turns("s1", [_turn("q2")])
        timer.now = 100
        assert len(await store.get_turns("s1")) == 2

        timer.now = 111
        assert await store.get_turns("s1") == []

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        store = MemorySessionStore()
        await store.append_turns("s1", [_turn("q1")])
        await store.delete("s1")
        await store.delete("missing")

        assert await store.get_turns("s1") == []

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self) -> None:
        store = MemorySessionStore()
        await store.append_turns("s1", [_turn("for s1")])
        await store.append_turns("s2", [_turn("for s2")])

        assert [t.content for t in await store.get_turns("s2")] == ["for s2"]
