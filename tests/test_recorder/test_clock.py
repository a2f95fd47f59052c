"""
クロック・デバウンサーのテスト

VirtualClock の決定的なタイマー実行と、Debouncer のキー単位の
キャンセル＆再スケジュールを検証する。
"""

from __future__ import annotations

import asyncio

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from e2erec.recorder.clock import AsyncioClock, Debouncer, VirtualClock, should_flush


# ---------------------------------------------------------------------------
# should_flush
# ---------------------------------------------------------------------------

class TestShouldFlush:
    """確定判定の純粋関数のテスト。"""

    def test_boundary(self):
        """経過時間が時間幅ちょうどで確定すること。"""
        assert should_flush(1000, 1500, 500)
        assert not should_flush(1000, 1499, 500)

    @given(
        last=st.integers(min_value=0, max_value=10**9),
        elapsed=st.integers(min_value=0, max_value=10**6),
        window=st.integers(min_value=0, max_value=10**6),
    )
    def test_matches_elapsed_comparison(self, last, elapsed, window):
        assert should_flush(last, last + elapsed, window) == (elapsed >= window)


# ---------------------------------------------------------------------------
# VirtualClock
# ---------------------------------------------------------------------------

class TestVirtualClock:
    """VirtualClock のテスト。"""

    def test_timers_run_in_due_order(self):
        clock = VirtualClock()
        fired = []
        clock.call_later(300, lambda: fired.append(("b", clock.now())))
        clock.call_later(100, lambda: fired.append(("a", clock.now())))
        clock.advance(500)
        assert fired == [("a", 100), ("b", 300)]
        assert clock.now() == 500

    def test_timer_not_due_is_kept(self):
        clock = VirtualClock(start=1000)
        fired = []
        clock.call_later(200, lambda: fired.append(1))
        clock.advance(199)
        assert fired == []
        assert clock.pending == 1
        clock.advance(1)
        assert fired == [1]

    def test_cancelled_timer_does_not_fire(self):
        clock = VirtualClock()
        fired = []
        clock.call_later(10, lambda: fired.append(1)).cancel()
        clock.advance(100)
        assert fired == []
        assert clock.pending == 0

    def test_nested_timer_within_same_advance(self):
        """コールバック内で登録したタイマーも期限内なら同じ advance で実行されること。"""
        clock = VirtualClock()
        fired = []
        clock.call_later(100, lambda: clock.call_later(100, lambda: fired.append(clock.now())))
        clock.advance(250)
        assert fired == [200]

    def test_run_all(self):
        clock = VirtualClock()
        fired = []
        clock.call_later(5000, lambda: fired.append(clock.now()))
        clock.run_all()
        assert fired == [5000]
        assert clock.pending == 0


# ---------------------------------------------------------------------------
# Debouncer
# ---------------------------------------------------------------------------

class TestDebouncer:
    """Debouncer のテスト。"""

    def test_reschedule_keeps_one_timer_per_key(self):
        clock = VirtualClock()
        debouncer = Debouncer(clock, 500)
        fired = []
        for value in ("a", "b", "c"):
            debouncer.schedule("k", lambda v=value: fired.append(v))
            clock.advance(100)
        assert len(debouncer) == 1
        clock.advance(500)
        assert fired == ["c"]
        assert not debouncer.is_pending("k")

    def test_keys_are_independent(self):
        clock = VirtualClock()
        debouncer = Debouncer(clock, 500)
        fired = []
        debouncer.schedule("a", lambda: fired.append("a"))
        clock.advance(300)
        debouncer.schedule("b", lambda: fired.append("b"))
        clock.advance(200)
        assert fired == ["a"]
        clock.advance(300)
        assert fired == ["a", "b"]

    def test_flush_runs_immediately(self):
        clock = VirtualClock()
        debouncer = Debouncer(clock, 500)
        fired = []
        debouncer.schedule("k", lambda: fired.append(1))
        assert debouncer.flush("k") is True
        assert debouncer.flush("k") is False
        clock.advance(1000)
        assert fired == [1]

    def test_flush_all_in_registration_order(self):
        clock = VirtualClock()
        debouncer = Debouncer(clock, 500)
        fired = []
        debouncer.schedule("x", lambda: fired.append("x"))
        debouncer.schedule("y", lambda: fired.append("y"))
        debouncer.flush_all()
        assert fired == ["x", "y"]
        assert len(debouncer) == 0

    def test_cancel_all(self):
        clock = VirtualClock()
        debouncer = Debouncer(clock, 500)
        fired = []
        debouncer.schedule("x", lambda: fired.append("x"))
        debouncer.cancel_all()
        clock.advance(1000)
        assert fired == []
        assert clock.pending == 0

    @settings(max_examples=50)
    @given(intervals=st.lists(st.integers(min_value=0, max_value=499), min_size=1, max_size=20))
    def test_rapid_events_coalesce(self, intervals):
        """時間幅未満の間隔で続くイベントは最後の 1 回だけ確定すること。"""
        clock = VirtualClock()
        debouncer = Debouncer(clock, 500)
        fired = []
        for index, interval in enumerate(intervals):
            debouncer.schedule("field", lambda i=index: fired.append(i))
            clock.advance(interval)
        clock.run_all()
        assert fired == [len(intervals) - 1]


# ---------------------------------------------------------------------------
# AsyncioClock
# ---------------------------------------------------------------------------

class TestAsyncioClock:
    """AsyncioClock のテスト。"""

    async def test_call_later_runs_on_loop(self):
        clock = AsyncioClock()
        done = asyncio.Event()
        clock.call_later(10, done.set)
        await asyncio.wait_for(done.wait(), timeout=1)
        assert done.is_set()

    async def test_cancel(self):
        clock = AsyncioClock()
        fired = []
        clock.call_later(10, lambda: fired.append(1)).cancel()
        await asyncio.sleep(0.05)
        assert fired == []

    def test_bind_without_running_loop(self):
        """ループがない同期コードでは bind() が説明付きの RuntimeError を送出すること。"""
        with pytest.raises(RuntimeError, match="VirtualClock"):
            AsyncioClock().bind()

    def test_bind_with_explicit_loop(self):
        loop = asyncio.new_event_loop()
        try:
            assert AsyncioClock(loop).bind() is loop
        finally:
            loop.close()

    async def test_bind_uses_running_loop(self):
        assert AsyncioClock().bind() is asyncio.get_running_loop()
