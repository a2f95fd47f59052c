"""
ネットワーク監視 — fetch / XMLHttpRequest のラップとアイドル検出

記録開始時に Window の fetch と XMLHttpRequest.open / send をラップし、
停止時に元のオブジェクトへ（同一性を保って）戻す。

記録中は完了したすべてのリクエストを CapturedResponse として保持する
（通信失敗は status 0）。直近にユーザー操作があった場合に限り、
リクエストが途絶えてから一定時間後に wait-for-network-idle ステップを挿入する。
実ブラウザのページでは request_started / request_finished を外部から呼ぶ。
"""

from __future__ import annotations

import functools
import logging
import weakref
from typing import Any, Callable, Optional, Protocol

from e2erec.config import RecorderConfig
from e2erec.dom.document import Window
from e2erec.dom.network import Request
from e2erec.export.types import (
    AssertionType,
    CapturedResponse,
    E2EAssertion,
    RecordedStep,
    RecordedStepType,
)
from e2erec.recorder.clock import Clock, TimerHandle

logger = logging.getLogger(__name__)

# 参照系のため response-ok ステップを作らないメソッド
_READ_ONLY_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

_MISSING = object()


class RecorderHooks(Protocol):
    """監視結果を受け取る記録セッション側のインターフェース。"""

    @property
    def is_recording(self) -> bool: ...

    @property
    def last_user_action_at(self) -> float: ...

    def add_synthetic_step(self, step: RecordedStep) -> bool: ...


class NetworkMonitor:
    """1 セッション分のネットワーク監視。

    Attributes:
        responses: 記録中に観測した応答
        pending: 未完了のリクエスト数
        last_activity_at: 最後にリクエストが開始・完了した時刻（ミリ秒）
    """

    def __init__(
        self,
        window: Window,
        clock: Clock,
        config: RecorderConfig,
        hooks: RecorderHooks,
    ) -> None:
        self._window = window
        self._clock = clock
        self._config = config
        self._hooks = hooks
        self.responses: list[CapturedResponse] = []
        self.pending = 0
        self.last_activity_at: float = 0
        self._idle_timer: Optional[TimerHandle] = None
        self._settled_since_idle = False
        self._installed = False
        self._orig_fetch: Any = None
        self._xhr_class: Any = None
        self._orig_open: Any = _MISSING
        self._orig_send: Any = _MISSING
        self._xhr_info: "weakref.WeakKeyDictionary[Any, tuple[str, str]]" = (
            weakref.WeakKeyDictionary()
        )

    @property
    def installed(self) -> bool:
        return self._installed

    # ----- ラップ / 復元 -----

    def install(self) -> "NetworkMonitor":
        """fetch と XMLHttpRequest をラップする。"""
        if self._installed:
            return self
        self._wrap_fetch()
        self._wrap_xhr()
        self._installed = True
        logger.debug("ネットワーク監視を開始しました")
        return self

    def uninstall(self) -> None:
        """ラップを外して元のオブジェクトに戻し、アイドルタイマーを止める。"""
        if not self._installed:
            return
        self._window.fetch = self._orig_fetch
        self._restore_method("open", self._orig_open)
        self._restore_method("send", self._orig_send)
        self._orig_fetch = None
        self._orig_open = _MISSING
        self._orig_send = _MISSING
        self._cancel_idle_timer()
        self.pending = 0
        self._installed = False
        logger.debug("ネットワーク監視を終了しました")

    def _restore_method(self, name: str, original: Any) -> None:
        if original is _MISSING:
            if name in vars(self._xhr_class):
                delattr(self._xhr_class, name)
        else:
            setattr(self._xhr_class, name, original)

    def _wrap_fetch(self) -> None:
        original = self._window.fetch
        self._orig_fetch = original
        monitor = self

        @functools.wraps(original)
        async def fetch(resource: Any, init: Optional[dict[str, Any]] = None) -> Any:
            if not monitor._hooks.is_recording:
                return await original(resource, init)

            request = Request.from_args(resource, init)
            monitor.request_started()
            try:
                response = await original(resource, init)
            except Exception:
                monitor.request_finished(request.url, request.method, 0)
                raise
            monitor.request_finished(request.url, request.method, response.status)
            return response

        self._window.fetch = fetch

    def _wrap_xhr(self) -> None:
        xhr_class = self._window.XMLHttpRequest
        self._xhr_class = xhr_class
        own = vars(xhr_class)
        self._orig_open = own.get("open", _MISSING)
        self._orig_send = own.get("send", _MISSING)
        base_open: Callable[..., Any] = xhr_class.open
        base_send: Callable[..., Any] = xhr_class.send
        monitor = self

        @functools.wraps(base_open)
        def open(xhr: Any, method: str, url: Any, *args: Any) -> Any:
            monitor._xhr_info[xhr] = (str(method).upper(), str(url))
            return base_open(xhr, method, url, *args)

        @functools.wraps(base_send)
        def send(xhr: Any, *args: Any) -> Any:
            info = monitor._xhr_info.get(xhr)
            if info is not None and monitor._hooks.is_recording:
                method, url = info
                monitor.request_started()

                def on_loadend(_: Any) -> None:
                    monitor._xhr_info.pop(xhr, None)
                    monitor.request_finished(url, method, xhr.status)

                xhr.add_event_listener("loadend", on_loadend)
            return base_send(xhr, *args)

        xhr_class.open = open
        xhr_class.send = send

    # ----- リクエスト追跡 -----

    def request_started(self) -> None:
        """リクエストの開始を記録する。"""
        self.pending += 1
        self.last_activity_at = self._clock.now()
        self._cancel_idle_timer()

    def request_finished(self, url: str, method: str, status: int) -> None:
        """リクエストの完了を記録する（通信失敗は status 0）。"""
        self.pending = max(0, self.pending - 1)
        if not self._installed or not self._hooks.is_recording:
            return

        now = self._clock.now()
        self.last_activity_at = now
        self._settled_since_idle = True
        self.responses.append(
            CapturedResponse(url=url, method=method, status=status, timestamp=int(now)),
        )
        logger.debug("応答を記録: %s %s → %d", method, url, status)

        if self._config.record_response_assertions and method not in _READ_ONLY_METHODS:
            self._hooks.add_synthetic_step(_response_step(url, method, status, int(now)))

        if self.pending == 0:
            self._cancel_idle_timer()
            self._idle_timer = self._clock.call_later(self._config.network_idle_ms, self._on_idle)

    def _on_idle(self) -> None:
        self._idle_timer = None
        if not self._hooks.is_recording:
            return
        self._insert_idle_step()

    def _insert_idle_step(self) -> None:
        """直近にユーザー操作があれば wait-for-network-idle を挿入する。"""
        now = self._clock.now()
        if now - self._hooks.last_user_action_at >= self._config.action_staleness_ms:
            logger.debug("直近のユーザー操作がないためアイドル待機を挿入しません")
            return
        step = RecordedStep(
            type=RecordedStepType.WAIT_FOR_NETWORK_IDLE,
            timestamp=int(now),
            label="Wait for network requests to complete",
            wait_timeout=self._config.network_idle_timeout,
        )
        if self._hooks.add_synthetic_step(step):
            self._settled_since_idle = False

    def _cancel_idle_timer(self) -> None:
        if self._idle_timer is not None:
            self._idle_timer.cancel()
            self._idle_timer = None

    def flush_on_stop(self) -> None:
        """停止直前に、保留中のアイドル待機ステップを同期的に挿入する。

        アイドルタイマーが保留中、リクエストが未完了、または
        アイドル待機の挿入後に完了したリクエストが直近にある場合に対象とする。
        """
        now = self._clock.now()
        recent = (
            self._settled_since_idle
            and self.last_activity_at > 0
            and now - self.last_activity_at < self._config.stop_network_window_ms
        )
        if self._idle_timer is None and self.pending == 0 and not recent:
            return
        self._cancel_idle_timer()
        self._insert_idle_step()


def _response_step(url: str, method: str, status: int, timestamp: int) -> RecordedStep:
    """更新系リクエストの response-ok アサーションステップを作る。"""
    return RecordedStep(
        type=RecordedStepType.ASSERT,
        timestamp=timestamp,
        url=url,
        value=method,
        label=f"HTTP {method} → {status}",
        assertion=E2EAssertion(
            type=AssertionType.RESPONSE_OK,
            selector=url,
            expected=str(status),
            description=f"{method} {url} → {status}",
        ),
    )
