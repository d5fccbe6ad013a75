"""Unit tests for SessionStore."""

import asyncio

import pytest

from vid2chat.chunk import chunk_transcript
from vid2chat.errors import InvalidInputError, NotFoundError
from vid2chat.sessions import SessionStore

from conftest import make_items


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return SessionStore(ttl_seconds=60, clock=clock)


@pytest.fixture
def three_chunks():
    return chunk_transcript(make_items("aaaa", "bbbb", "cccc"), max_chunk_chars=4)


class TestSessionLifecycle:
    def test_start_session_seeds_history(self, store, three_chunks):
        session_id = store.start_session(three_chunks, "system prompt", source_ref="url", title="T")
        session = store.get_session(session_id)

        assert session.current_chunk_index == 0
        assert session.total_chunks == 3
        assert [m.role for m in session.history] == ["system"]
        assert session.history[0].content == "system prompt"
        assert session.source_ref == "url"
        assert session.title == "T"

    def test_empty_chunks_rejected_and_not_stored(self, store):
        with pytest.raises(InvalidInputError):
            store.start_session([], "system prompt")
        assert len(store) == 0

    def test_ids_are_unique(self, store, three_chunks):
        ids = {store.start_session(three_chunks, "s") for _ in range(50)}
        assert len(ids) == 50

    def test_unknown_session(self, store):
        with pytest.raises(NotFoundError):
            store.get_session("missing")
        with pytest.raises(NotFoundError):
            store.append_turn("missing", "q", "a")
        with pytest.raises(NotFoundError):
            store.advance_chunk("missing")

    def test_append_turn_orders_user_then_assistant(self, store, three_chunks):
        session_id = store.start_session(three_chunks, "s")
        store.append_turn(session_id, "question", "answer")
        store.append_turn(session_id, "question 2", "answer 2")

        history = store.get_session(session_id).history
        assert [(m.role, m.content) for m in history[1:]] == [
            ("user", "question"),
            ("assistant", "answer"),
            ("user", "question 2"),
            ("assistant", "answer 2"),
        ]

    def test_snapshot_is_not_live(self, store, three_chunks):
        session_id = store.start_session(three_chunks, "s")
        before = store.get_session(session_id)
        store.append_turn(session_id, "q", "a")
        assert len(before.history) == 1

    def test_reset_removes_once(self, store, three_chunks):
        session_id = store.start_session(three_chunks, "s")
        store.reset(session_id)

        assert session_id not in store
        with pytest.raises(NotFoundError):
            store.reset(session_id)


class TestAdvanceChunk:
    def test_advance_is_monotonic_and_stops_at_last(self, store, three_chunks):
        session_id = store.start_session(three_chunks, "s")

        assert store.advance_chunk(session_id) is True
        assert store.advance_chunk(session_id) is True
        assert store.get_session(session_id).current_chunk_index == 2

        assert store.advance_chunk(session_id) is False
        session = store.get_session(session_id)
        assert session.current_chunk_index == 2
        assert session.is_last_chunk

    def test_single_chunk_session_never_advances(self, store):
        session_id = store.start_session(chunk_transcript(make_items("only")), "s")
        assert store.advance_chunk(session_id) is False
        assert store.get_session(session_id).current_chunk_index == 0


class TestIdleEviction:
    def test_evicts_only_idle_sessions(self, store, clock, three_chunks):
        old = store.start_session(three_chunks, "s")
        clock.now = 50
        fresh = store.start_session(three_chunks, "s")

        clock.now = 61
        assert store.evict_idle() == 1
        assert old not in store
        assert fresh in store

    def test_activity_postpones_eviction(self, store, clock, three_chunks):
        session_id = store.start_session(three_chunks, "s")
        clock.now = 59
        store.append_turn(session_id, "q", "a")
        clock.now = 100
        assert store.evict_idle() == 0

    def test_zero_ttl_disables_eviction(self, clock, three_chunks):
        store = SessionStore(ttl_seconds=0, clock=clock)
        store.start_session(three_chunks, "s")
        clock.now = 10**9
        assert store.evict_idle() == 0


class TestTurnLock:
    @pytest.mark.asyncio
    async def test_lock_serializes_turns(self, store, three_chunks):
        session_id = store.start_session(three_chunks, "s")
        order = []

        async def turn(name):
            async with store.lock(session_id):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(turn("a"), turn("b"))
        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    @pytest.mark.asyncio
    async def test_lock_on_reset_session_raises(self, store, three_chunks):
        session_id = store.start_session(three_chunks, "s")
        entered = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with store.lock(session_id):
                entered.set()
                await release.wait()

        task = asyncio.create_task(holder())
        await entered.wait()

        async def waiter():
            async with store.lock(session_id):
                pass

        waiting = asyncio.create_task(waiter())
        await asyncio.sleep(0)
        store.reset(session_id)
        release.set()
        await task

        with pytest.raises(NotFoundError):
            await waiting

    @pytest.mark.asyncio
    async def test_start_and_close_sweeper(self, three_chunks):
        store = SessionStore(ttl_seconds=60)
        store.start()
        store.start_session(three_chunks, "s")
        await store.close()
        assert len(store) == 0
