"""
NetworkMonitor テスト — fetch / XHR の応答記録とネットワークアイドル検出

fetch はコルーチンのため pytest-asyncio（asyncio_mode = "auto"）で実行する。
タイマーは VirtualClock で進める。
"""

from __future__ import annotations

import pytest

from e2erec.config import RecorderConfig
from e2erec.dom.document import Window
from e2erec.dom.network import NetworkError, Request, Response
from e2erec.export.types import AssertionType, RecordedStepType
from e2erec.recorder.clock import VirtualClock
from e2erec.recorder.session import ActionRecorder


def _idle_steps(recorder: ActionRecorder) -> list:
    return [
        step for step in recorder.get_recording_session().steps
        if step.type == RecordedStepType.WAIT_FOR_NETWORK_IDLE
    ]


# ===========================================================================
# 1. 応答の記録
# ===========================================================================

class TestCapturedResponses:
    """CapturedResponse の記録テスト。"""

    async def test_fetch_response_is_captured(self, recording: ActionRecorder, window: Window):
        response = await window.fetch("/api/items", {"method": "post"})
        assert response.status == 200

        captured = recording.get_captured_responses()
        assert len(captured) == 1
        assert (captured[0].url, captured[0].method, captured[0].status) == ("/api/items", "POST", 200)

    async def test_fetch_failure_records_status_zero_and_reraises(
        self, recording: ActionRecorder, window: Window,
    ):
        """通信失敗は status 0 で記録され、例外はページ側へ再送出されること。"""
        async def failing(request: Request) -> Response:
            raise NetworkError("offline")

        window.fetch_transport = failing
        with pytest.raises(NetworkError):
            await window.fetch("/api/items")
        assert [r.status for r in recording.get_captured_responses()] == [0]

    async def test_nothing_captured_while_paused(self, recording: ActionRecorder, window: Window):
        recording.pause_recording()
        await window.fetch("/api/items")
        assert recording.get_captured_responses() == []

    async def test_responses_readable_after_stop(self, recording: ActionRecorder, window: Window):
        await window.fetch("/api/items")
        recording.stop_recording()
        assert len(recording.get_captured_responses()) == 1

        recording.start_recording()
        assert recording.get_captured_responses() == []

    async def test_fetch_after_stop_is_not_captured(self, recording: ActionRecorder, window: Window):
        recording.stop_recording()
        await window.fetch("/api/items")
        assert recording.get_captured_responses() == []

    def test_xhr_response_is_captured(self, recording: ActionRecorder, window: Window):
        xhr = window.XMLHttpRequest()
        xhr.open("put", "/api/profile")
        xhr.send("{}")
        xhr.respond(204)

        captured = recording.get_captured_responses()
        assert (captured[0].url, captured[0].method, captured[0].status) == ("/api/profile", "PUT", 204)

    def test_xhr_error_records_status_zero(self, recording: ActionRecorder, window: Window):
        xhr = window.XMLHttpRequest()
        xhr.open("GET", "/api/profile")
        xhr.send()
        xhr.fail()
        assert recording.get_captured_responses()[0].status == 0

    def test_xhr_wrapper_keeps_original_behaviour(self, recording: ActionRecorder, window: Window):
        """ラップ後も open / send の本来の処理が行われること。"""
        xhr = window.XMLHttpRequest()
        xhr.open("post", "/api/x")
        xhr.send("body")
        assert xhr.method == "POST"
        assert xhr.request_body == "body"


# ===========================================================================
# 2. ネットワークアイドル
# ===========================================================================

class TestNetworkIdle:
    """wait-for-network-idle ステップ挿入のテスト。"""

    async def test_stale_user_action_inserts_nothing(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        """直近 10 秒にユーザー操作がなければアイドル待機を挿入しないこと。"""
        clock.advance(11_000)
        await window.fetch("/api/poll")
        clock.advance(600)
        assert _idle_steps(recording) == []

    async def test_recent_user_action_inserts_one(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        """ユーザー操作から 10 秒以内の通信はアイドル待機を 1 つ挿入すること。"""
        clock.advance(11_000)
        window.document.click(window.document.require("#help"))
        clock.advance(100)
        await window.fetch("/api/search")
        clock.advance(600)

        idle = _idle_steps(recording)
        assert len(idle) == 1
        assert idle[0].wait_timeout == 10_000
        assert idle[0].label == "Wait for network requests to complete"

    async def test_idle_waits_for_all_requests(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        """未完了のリクエストがある間はアイドルとみなさないこと。"""
        xhr = window.XMLHttpRequest()
        xhr.open("GET", "/api/slow")
        xhr.send()
        await window.fetch("/api/fast")
        clock.advance(600)
        assert _idle_steps(recording) == []

        xhr.respond(200)
        clock.advance(499)
        assert _idle_steps(recording) == []
        clock.advance(1)
        assert len(_idle_steps(recording)) == 1

    async def test_new_request_resets_idle_timer(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        await window.fetch("/api/a")
        clock.advance(400)
        await window.fetch("/api/b")
        clock.advance(400)
        assert _idle_steps(recording) == []
        clock.advance(100)
        assert len(_idle_steps(recording)) == 1

    async def test_synthetic_step_does_not_refresh_user_action(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        """アイドル待機の挿入はユーザー操作の時刻を更新しないこと。"""
        await window.fetch("/api/a")
        clock.advance(600)
        assert recording.last_user_action_at == 0

    async def test_stop_flushes_pending_idle(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        """アイドルタイマーの保留中に停止してもアイドル待機が記録されること。"""
        await window.fetch("/api/save", {"method": "POST"})
        clock.advance(100)
        session = recording.stop_recording()
        assert session.steps[-1].type == RecordedStepType.WAIT_FOR_NETWORK_IDLE
        assert clock.pending == 0

    async def test_stop_after_idle_inserted_adds_nothing(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        await window.fetch("/api/save")
        clock.advance(600)
        session = recording.stop_recording()
        assert len([s for s in session.steps if s.type == RecordedStepType.WAIT_FOR_NETWORK_IDLE]) == 1


# ===========================================================================
# 3. 応答アサーション
# ===========================================================================

class TestResponseAssertions:
    """record_response_assertions 有効時の response-ok ステップのテスト。"""

    @pytest.fixture
    def config(self) -> RecorderConfig:
        return RecorderConfig(record_response_assertions=True)

    async def test_state_changing_request_adds_assert(self, recording: ActionRecorder, window: Window):
        await window.fetch("/api/orders", {"method": "POST"})
        step = recording.get_recording_session().steps[-1]
        assert step.type == RecordedStepType.ASSERT
        assert step.assertion.type == AssertionType.RESPONSE_OK
        assert step.assertion.selector == "/api/orders"
        assert step.assertion.expected == "200"
        assert step.label == "HTTP POST → 200"

    async def test_read_only_request_adds_nothing(self, recording: ActionRecorder, window: Window):
        await window.fetch("/api/orders")
        assert recording.get_recording_session().steps[-1].type == RecordedStepType.NAVIGATE
