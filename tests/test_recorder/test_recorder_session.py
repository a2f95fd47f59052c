"""
ActionRecorder テスト — 記録セッションのライフサイクルとイベント捕捉

VirtualClock 上でページ操作を再現し、記録されるステップを検証する。
"""

from __future__ import annotations

import asyncio

import pytest
from hypothesis import given, settings

from conftest import SIGNUP_HTML, SIGNUP_URL, make_interval_list_strategy, make_typed_text_strategy
from e2erec.dom.document import Window
from e2erec.export.types import RecordedStep, RecordedStepType, RecordingStatus
from e2erec.recorder.clock import VirtualClock
from e2erec.recorder.session import ActionRecorder


def _types(recorder: ActionRecorder) -> list[str]:
    return [step.type.value for step in recorder.get_recording_session().steps]


def _type_slowly(recorder: ActionRecorder, clock: VirtualClock, selector: str, text: str) -> None:
    """100ms 間隔で 1 文字ずつ入力する。"""
    document = recorder._window.document
    el = document.require(selector)
    for char in text:
        document.type_text(el, char)
        clock.advance(100)


# ===========================================================================
# 1. ライフサイクル
# ===========================================================================

class TestLifecycle:
    """開始・一時停止・再開・停止・クリアのテスト。"""

    def test_start_creates_initial_navigate(self, recorder: ActionRecorder):
        """開始直後は現在 URL への navigate ステップが 1 つだけあること。"""
        session = recorder.start_recording()
        assert session.status == RecordingStatus.RECORDING
        assert session.start_url == SIGNUP_URL
        assert len(session.steps) == 1
        first = session.steps[0]
        assert first.type == RecordedStepType.NAVIGATE
        assert first.url == SIGNUP_URL
        assert first.label == "Sign up"

    def test_untitled_page_label(self, clock: VirtualClock):
        recorder = ActionRecorder(Window(url="https://example.com"), clock=clock)
        assert recorder.start_recording().steps[0].label == "Page"

    def test_status_transitions(self, recorder: ActionRecorder):
        assert recorder.get_recording_status() == RecordingStatus.IDLE
        recorder.start_recording()
        assert recorder.pause_recording().status == RecordingStatus.PAUSED
        assert recorder.get_recording_status() == RecordingStatus.PAUSED
        assert recorder.resume_recording().status == RecordingStatus.RECORDING
        assert recorder.stop_recording().status == RecordingStatus.STOPPED
        assert recorder.get_recording_status() == RecordingStatus.STOPPED

    def test_invalid_transitions_return_none(self, recorder: ActionRecorder):
        """無効な状態での操作は例外を出さず None を返すこと。"""
        assert recorder.stop_recording() is None
        assert recorder.pause_recording() is None
        assert recorder.resume_recording() is None
        recorder.start_recording()
        assert recorder.resume_recording() is None
        recorder.pause_recording()
        assert recorder.pause_recording() is None

    def test_stopped_session_stays_readable(self, recording: ActionRecorder):
        session = recording.stop_recording()
        assert recording.get_recording_session() is session
        assert recording.stop_recording() is None

    def test_stop_removes_listeners_and_timers(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        """停止後はリスナー・DOM 監視・タイマーが残らないこと。"""
        window.document.type_text(window.document.require("#name"), "J")
        recording.stop_recording()
        assert window.document.listener_count() == 0
        assert window.listener_count() == 0
        assert window.document.observer_count == 0
        assert clock.pending == 0

    def test_restart_stops_previous_session(self, recording: ActionRecorder, window: Window):
        """記録中に開始すると前のセッションを停止し、リスナーは重複しないこと。"""
        first = recording.get_recording_session()
        second = recording.start_recording()
        assert first.status == RecordingStatus.STOPPED
        assert second is not first
        assert window.document.listener_count("input") == 1

    def test_clear_session(self, recording: ActionRecorder, window: Window):
        recording.clear_session()
        assert recording.get_recording_session() is None
        assert recording.get_recording_status() == RecordingStatus.IDLE
        assert window.document.listener_count() == 0

    def test_clear_without_session_is_safe(self, recorder: ActionRecorder):
        recorder.clear_session()
        assert recorder.get_recording_session() is None


# ===========================================================================
# 2. ネットワークプリミティブの復元
# ===========================================================================

class TestRestoration:
    """停止後に fetch / XMLHttpRequest が元のオブジェクトに戻ること。"""

    def test_primitives_identical_after_stop(self, recorder: ActionRecorder, window: Window):
        fetch = window.fetch
        xhr_class = window.XMLHttpRequest
        open_, send = xhr_class.open, xhr_class.send

        recorder.start_recording()
        assert window.fetch is not fetch
        assert xhr_class.open is not open_
        recorder.stop_recording()

        assert window.fetch is fetch
        assert window.XMLHttpRequest is xhr_class
        assert xhr_class.open is open_
        assert xhr_class.send is send
        assert "open" not in vars(xhr_class)

    def test_start_stop_twice_is_idempotent(self, recorder: ActionRecorder, window: Window):
        fetch = window.fetch
        own = dict(vars(window.XMLHttpRequest))
        for _ in range(2):
            recorder.start_recording()
            recorder.stop_recording()
        assert window.fetch is fetch
        assert dict(vars(window.XMLHttpRequest)) == own
        assert window.document.listener_count() == 0

    def test_clear_restores_primitives(self, recording: ActionRecorder, window: Window):
        recording.clear_session()
        assert window.fetch == window._native_fetch


# ===========================================================================
# 3. テキスト入力
# ===========================================================================

class TestTextInput:
    """テキスト入力のデバウンスと fill ステップのテスト。"""

    def test_typing_coalesces_into_one_fill(self, recording: ActionRecorder, clock: VirtualClock):
        """J, Jo, Joh, John の入力が 1 つの fill にまとまること。"""
        _type_slowly(recording, clock, "#name", "John")
        clock.advance(500)

        steps = recording.get_recording_session().steps
        assert _types(recording) == ["navigate", "fill"]
        fill = steps[1]
        assert fill.selector == "#name"
        assert fill.value == "John"
        assert fill.label == "Full name"
        assert fill.required is True
        assert fill.timestamp == 300

    def test_no_step_before_debounce_window(self, recording: ActionRecorder, clock: VirtualClock):
        _type_slowly(recording, clock, "#name", "Jo")
        clock.advance(399)
        assert _types(recording) == ["navigate"]

    def test_later_typing_updates_fill_in_place(self, recording: ActionRecorder, clock: VirtualClock):
        """確定後に同じフィールドへ追記すると直前の fill が更新されること。"""
        updates = []
        recording.set_on_step_updated(lambda step, index: updates.append((index, step.value)))
        _type_slowly(recording, clock, "#name", "Jo")
        clock.advance(600)
        _type_slowly(recording, clock, "#name", "hn")
        clock.advance(600)

        assert _types(recording) == ["navigate", "fill"]
        assert recording.get_recording_session().steps[1].value == "John"
        assert updates == [(1, "John")]

    def test_textarea_is_recorded(self, recording: ActionRecorder, window: Window, clock: VirtualClock):
        window.document.fill(window.document.require("#bio"), "Hello")
        clock.advance(500)
        step = recording.get_recording_session().steps[-1]
        assert (step.type, step.selector, step.value) == (RecordedStepType.FILL, "#bio", "Hello")

    def test_click_flushes_pending_input_first(
        self, recording: ActionRecorder, window: Window, clock: VirtualClock,
    ):
        """クリック前の入力はクリックより先に記録されること。"""
        _type_slowly(recording, clock, "#name", "Jo")
        window.document.click(window.document.require("#help"))
        assert _types(recording) == ["navigate", "fill", "click"]
        click = recording.get_recording_session().steps[2]
        assert click.selector == "#help"
        assert click.label == "Help"

    def test_pause_flushes_pending_input(self, recording: ActionRecorder, clock: VirtualClock):
        _type_slowly(recording, clock, "#name", "Jo")
        recording.pause_recording()
        assert recording.get_recording_session().steps[-1].value == "Jo"

    def test_stop_flushes_pending_input(self, recording: ActionRecorder, window: Window):
        window.document.type_text(window.document.require("#email"), "a@b.c")
        session = recording.stop_recording()
        assert session.steps[-1].selector == "#email"
        assert session.steps[-1].value == "a@b.c"

    @settings(max_examples=30, deadline=None)
    @given(text=make_typed_text_strategy(), intervals=make_interval_list_strategy(500))
    def test_rapid_events_yield_single_fill(self, text, intervals):
        """時間幅内の連続入力は最後の値を持つ fill 1 つになること。"""
        clock = VirtualClock()
        window = Window(url=SIGNUP_URL, html=SIGNUP_HTML)
        recorder = ActionRecorder(window, clock=clock)
        recorder.start_recording()
        el = window.document.require("#name")

        for index, interval in enumerate(intervals):
            window.document.fill(el, f"{text}{index}")
            clock.advance(interval)
        clock.advance(500)

        fills = [s for s in recorder.get_recording_session().steps if s.type == RecordedStepType.FILL]
        assert len(fills) == 1
        assert fills[0].value == f"{text}{len(intervals) - 1}"


# ===========================================================================
# 4. 選択・チェック
# ===========================================================================

class TestSelectAndCheck:
    """select / checkbox / radio のテスト。"""

    def test_select_records_immediately(self, recording: ActionRecorder, window: Window):
        window.document.select_option(window.document.require("#plan"), "pro")
        assert _types(recording) == ["navigate", "select"]
        assert recording.get_recording_session().steps[1].value == "pro"

    def test_select_change_updates_in_place(self, recording: ActionRecorder, window: Window):
        plan = window.document.require("#plan")
        window.document.select_option(plan, "pro")
        window.document.select_option(plan, "free")
        assert _types(recording) == ["navigate", "select"]
        assert recording.get_recording_session().steps[1].value == "free"

    def test_checkbox_toggle(self, recording: ActionRecorder, window: Window):
        terms = window.document.require("#terms")
        window.document.click(terms)
        window.document.click(terms)
        steps = recording.get_recording_session().steps
        assert _types(recording) == ["navigate", "check", "uncheck"]
        assert steps[1].label == "I agree"

    def test_radio_records_value(self, recording: ActionRecorder, window: Window):
        window.document.click(window.document.require("#size-m"))
        step = recording.get_recording_session().steps[-1]
        assert (step.type, step.selector, step.value) == (RecordedStepType.CHECK, "#size-m", "m")


# ===========================================================================
# 5. 送信・キー・ナビゲーション
# ===========================================================================

class TestSubmitAndNavigation:
    """送信・キー押下・ナビゲーションのテスト。"""

    def test_submit_button_click(self, recording: ActionRecorder, window: Window, clock: VirtualClock):
        """submit ボタンのクリックは submit ステップ 1 つになること（submit イベントは重複抑止）。"""
        _type_slowly(recording, clock, "#name", "Jo")
        window.document.click(window.document.require("#register"))

        steps = recording.get_recording_session().steps
        assert [s.type.value for s in steps].count("submit") == 1
        submit = steps[-1]
        assert submit.selector == "#register"
        assert submit.label == "Register"

    def test_submit_captures_prefilled_fields(self, recording: ActionRecorder, window: Window):
        """入力イベントのない初期値（select の既定値等）を送信前に記録すること。"""
        window.document.click(window.document.require("#register"))
        assert _types(recording) == ["navigate", "select", "submit"]
        select = recording.get_recording_session().steps[1]
        assert (select.selector, select.value) == ("#plan", "free")

    def test_input_submit_click_records_form_submit(self, recording: ActionRecorder, window: Window):
        """input[type=submit] のクリック自体は記録せず、submit イベントを記録すること。"""
        window.document.click(window.document.require("#send"))
        submit = recording.get_recording_session().steps[-1]
        assert submit.type == RecordedStepType.SUBMIT
        assert submit.selector == "#signup"
        assert submit.url == "/api/signup"
        assert submit.label == "Form submit"
        assert "click" not in _types(recording)

    def test_submit_after_dedupe_window(self, recording: ActionRecorder, window: Window, clock: VirtualClock):
        window.document.click(window.document.require("#register"))
        clock.advance(250)
        window.document.submit(window.document.require("#signup"))
        assert _types(recording).count("submit") == 2

    def test_captured_keys_only(self, recording: ActionRecorder, window: Window):
        name = window.document.require("#name")
        window.document.press(name, "a")
        window.document.press(name, "Enter")
        step = recording.get_recording_session().steps[-1]
        assert _types(recording) == ["navigate", "press-key"]
        assert (step.key, step.selector) == ("Enter", "#name")

    def test_before_unload(self, recording: ActionRecorder, window: Window):
        window.navigate("https://example.com/next")
        step = recording.get_recording_session().steps[-1]
        assert step.type == RecordedStepType.NAVIGATE
        assert step.url == SIGNUP_URL
        assert step.label == "Page navigation"

    def test_hash_change(self, recording: ActionRecorder, window: Window):
        window.set_hash("step2")
        step = recording.get_recording_session().steps[-1]
        assert step.type == RecordedStepType.WAIT_FOR_URL
        assert step.value == "#step2"
        assert step.label == "URL hash changed"

    def test_pop_state(self, recording: ActionRecorder, window: Window):
        window.pop_state("https://example.com/prev")
        step = recording.get_recording_session().steps[-1]
        assert (step.type, step.url) == (RecordedStepType.WAIT_FOR_URL, "https://example.com/prev")
        assert step.label == "URL changed (popstate)"

    def test_extension_ui_is_ignored(self, recording: ActionRecorder, window: Window):
        document = window.document
        document.body.append(document.create_fragment(
            '<div data-e2erec-ui><button id="panel-close">x</button></div>',
        ))
        document.click(document.require("#panel-close"))
        assert _types(recording) == ["navigate"]

    def test_events_ignored_while_paused(self, recording: ActionRecorder, window: Window, clock: VirtualClock):
        recording.pause_recording()
        _type_slowly(recording, clock, "#name", "Jo")
        window.document.click(window.document.require("#help"))
        clock.advance(1000)
        recording.resume_recording()
        assert _types(recording) == ["navigate"]


# ===========================================================================
# 6. ステップ編集・コールバック
# ===========================================================================

class TestStepEditing:
    """add_manual_step / remove_step / update_step とコールバックのテスト。"""

    def test_add_manual_step(self, recording: ActionRecorder, clock: VirtualClock):
        added = []
        recording.set_on_step_added(lambda step, index: added.append((index, step.type)))
        _type_slowly(recording, clock, "#name", "J")
        assert recording.add_manual_step({"type": "assert", "timestamp": 5000, "label": "Check"})
        assert _types(recording) == ["navigate", "fill", "assert"]
        assert added == [(1, RecordedStepType.FILL), (2, RecordedStepType.ASSERT)]
        assert recording.last_user_action_at == 5000

    def test_add_manual_step_requires_recording(self, recorder: ActionRecorder):
        step = RecordedStep(type=RecordedStepType.CLICK, timestamp=0, selector="#x")
        assert recorder.add_manual_step(step) is False
        recorder.start_recording()
        recorder.pause_recording()
        assert recorder.add_manual_step(step) is False

    def test_remove_step(self, recording: ActionRecorder, window: Window):
        window.document.click(window.document.require("#help"))
        window.document.press(window.document.require("#name"), "Tab")
        before = [s.model_dump() for s in recording.get_recording_session().steps]

        assert recording.remove_step(1) is True
        after = [s.model_dump() for s in recording.get_recording_session().steps]
        assert len(after) == len(before) - 1
        assert after == before[:1] + before[2:]

    def test_remove_step_out_of_range(self, recording: ActionRecorder):
        assert recording.remove_step(5) is False
        assert recording.remove_step(-1) is False

    def test_update_step(self, recording: ActionRecorder):
        updates = []
        recording.set_on_step_updated(lambda step, index: updates.append(index))
        recording.add_manual_step({"type": "wait-for-element", "timestamp": 0, "selector": "#x"})
        assert recording.update_step(1, value="v", wait_timeout=3000)
        step = recording.get_recording_session().steps[1]
        assert (step.value, step.wait_timeout) == ("v", 3000)
        assert updates == [1]

    def test_editing_stopped_session_is_rejected(self, recording: ActionRecorder):
        recording.stop_recording()
        assert recording.remove_step(0) is False
        assert recording.update_step(0, value="x") is False
        assert len(recording.get_recording_session().steps) == 1

    def test_smart_selector_failure_yields_empty(self, recording: ActionRecorder, window: Window, monkeypatch):
        """代替セレクタの抽出に失敗しても空リストで記録されること。"""
        def boom(el):
            raise RuntimeError("boom")

        monkeypatch.setattr("e2erec.recorder.session.extract_smart_selectors", boom)
        window.document.click(window.document.require("#help"))
        step = recording.get_recording_session().steps[-1]
        assert step.smart_selectors == []
        assert step.selector == "#help"


# ===========================================================================
# 7. 既定のクロック
# ===========================================================================

class TestDefaultClock:
    """clock を渡さない場合（AsyncioClock）のテスト。"""

    def test_sync_start_fails_before_attaching(self):
        """イベントループがなければ開始時に失敗し、ページの操作には影響しないこと。"""
        window = Window(url=SIGNUP_URL, html=SIGNUP_HTML)
        recorder = ActionRecorder(window)

        with pytest.raises(RuntimeError, match="イベントループ"):
            recorder.start_recording()

        assert recorder.get_recording_status() == RecordingStatus.IDLE
        assert window.document.listener_count() == 0
        window.document.type_text(window.document.require("#name"), "J")

    async def test_records_on_running_loop(self):
        window = Window(url=SIGNUP_URL, html=SIGNUP_HTML)
        recorder = ActionRecorder(window)
        recorder.start_recording()

        window.document.type_text(window.document.require("#name"), "J")
        await asyncio.sleep(0.7)

        session = recorder.stop_recording()
        assert [step.type.value for step in session.steps] == ["navigate", "fill"]
        assert session.steps[1].value == "J"
