"""
クロック — タイマーの抽象化とデバウンサー

記録中のデバウンスやアイドル判定のタイマーはすべて Clock 経由で扱う。
本番では asyncio のイベントループ上で動く AsyncioClock を、
テストや CLI の replay では手動で時間を進める VirtualClock を使う。
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, Hashable, Optional, Protocol

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], None]


def should_flush(last_event_at: float, now: float, window_ms: float) -> bool:
    """デバウンス中の値を確定すべきかを返す。

    最後のイベントから window_ms 以上経過していれば確定する。

    Args:
        last_event_at: 最後のイベント時刻（ミリ秒）
        now: 現在時刻（ミリ秒）
        window_ms: デバウンス時間幅（ミリ秒）

    Returns:
        確定すべき場合 True
    """
    return now - last_event_at >= window_ms


# ---------------------------------------------------------------------------
# Clock プロトコル
# ---------------------------------------------------------------------------

class TimerHandle(Protocol):
    """スケジュール済みタイマーのハンドル。"""

    def cancel(self) -> None: ...


class Clock(Protocol):
    """時刻取得とタイマー登録のインターフェース。"""

    def now(self) -> float: ...

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle: ...


class AsyncioClock:
    """asyncio のイベントループでタイマーを動かすクロック。

    now() はウォールクロックのミリ秒を返す。
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def bind(self) -> asyncio.AbstractEventLoop:
        """タイマーを登録するイベントループを確定する。

        ループを渡されていなければ実行中のループを使う。

        Raises:
            RuntimeError: ループが渡されておらず、実行中のループもない場合
        """
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise RuntimeError(
                    "AsyncioClock は実行中のイベントループが必要です。"
                    "同期コードから記録する場合は loop を渡すか VirtualClock を使ってください"
                ) from e
        return self._loop

    def now(self) -> float:
        return time.time() * 1000

    def call_later(self, delay_ms: float, callback: TimerCallback) -> asyncio.TimerHandle:
        return self.bind().call_later(delay_ms / 1000, callback)


# ---------------------------------------------------------------------------
# VirtualClock
# ---------------------------------------------------------------------------

class VirtualTimer:
    """VirtualClock に登録されたタイマー。"""

    def __init__(self, due: float, seq: int, callback: TimerCallback) -> None:
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other: "VirtualTimer") -> bool:
        return (self.due, self.seq) < (other.due, other.seq)


class VirtualClock:
    """手動で時間を進める決定的なクロック。

    advance() で時間を進めると、期限を迎えたタイマーが期限順に実行される。
    コールバック内で登録されたタイマーも、期限内であれば同じ advance() で実行される。

    Attributes:
        current: 現在時刻（ミリ秒）
    """

    def __init__(self, start: float = 0) -> None:
        self.current = float(start)
        self._timers: list[VirtualTimer] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self.current

    def call_later(self, delay_ms: float, callback: TimerCallback) -> VirtualTimer:
        timer = VirtualTimer(self.current + max(0.0, delay_ms), next(self._seq), callback)
        heapq.heappush(self._timers, timer)
        return timer

    @property
    def pending(self) -> int:
        """未実行かつ未キャンセルのタイマー数を返す。"""
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, ms: float) -> None:
        """時間を ms ミリ秒進め、期限を迎えたタイマーを実行する。"""
        target = self.current + ms
        while self._timers and self._timers[0].due <= target:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self.current = timer.due
            timer.callback()
        self.current = target

    def run_all(self) -> None:
        """登録済みのタイマーがなくなるまで時間を進める。"""
        while self.pending:
            live = [timer for timer in self._timers if not timer.cancelled]
            self.advance(max(0.0, min(timer.due for timer in live) - self.current))


# ---------------------------------------------------------------------------
# Debouncer
# ---------------------------------------------------------------------------

class Debouncer:
    """キーごとにキャンセル＆再スケジュールするデバウンサー。

    同じキーで schedule() すると前回のタイマーはキャンセルされるため、
    キーごとに保留中のタイマーは常に 1 つ以下になる。
    """

    def __init__(self, clock: Clock, delay_ms: float) -> None:
        self._clock = clock
        self._delay_ms = delay_ms
        self._pending: dict[Hashable, tuple[TimerHandle, TimerCallback]] = {}

    def schedule(self, key: Hashable, callback: TimerCallback) -> None:
        """key のタイマーを (再) 登録する。

        タイマー発火時に should_flush() で経過時間を確かめ、
        クロックのずれで早く発火した場合は残り時間で再登録する。
        """
        self.cancel(key)
        scheduled_at = self._clock.now()

        def fire() -> None:
            now = self._clock.now()
            if not should_flush(scheduled_at, now, self._delay_ms):
                remaining = self._delay_ms - (now - scheduled_at)
                self._pending[key] = (self._clock.call_later(remaining, fire), callback)
                return
            self._pending.pop(key, None)
            callback()

        handle = self._clock.call_later(self._delay_ms, fire)
        self._pending[key] = (handle, callback)

    def cancel(self, key: Hashable) -> None:
        entry = self._pending.pop(key, None)
        if entry is not None:
            entry[0].cancel()

    def cancel_all(self) -> None:
        """保留中のタイマーをすべてキャンセルする。"""
        for handle, _ in self._pending.values():
            handle.cancel()
        self._pending.clear()

    def flush(self, key: Hashable) -> bool:
        """key の保留中コールバックを即時実行する。

        Returns:
            実行した場合 True
        """
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        handle, callback = entry
        handle.cancel()
        callback()
        return True

    def flush_all(self) -> None:
        """保留中のコールバックを登録順にすべて即時実行する。"""
        for key in list(self._pending):
            self.flush(key)

    def is_pending(self, key: Hashable) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)
