"""
ActionRecorder — 記録セッションとイベント捕捉

ページのイベント（入力・選択・クリック・送信・キー押下・ナビゲーション）を
捕捉し、RecordedStep の列として記録する。
ネットワーク監視と DOM 変更監視はセッションごとに生成・破棄する。

状態遷移:
  idle → recording ⇄ paused → stopped

主な機能:
  - 記録の開始・一時停止・再開・停止・クリア
  - テキスト入力のデバウンス（連続入力を 1 つの fill にまとめる）
  - 手動ステップの追加、ステップの削除・更新
  - ステップ追加・更新のコールバック通知
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Optional, Union

from bs4 import Tag

from e2erec.config import RecorderConfig
from e2erec.dom import elements as dom
from e2erec.dom.document import Document, Window
from e2erec.dom.events import DomEvent, EventListener, EventTarget
from e2erec.export.labels import find_label
from e2erec.export.selector import build_quick_selector
from e2erec.export.smart_selector import extract_smart_selectors
from e2erec.export.types import (
    CapturedResponse,
    RecordedStep,
    RecordedStepType,
    RecordingSession,
    RecordingStatus,
    SmartSelector,
)
from e2erec.recorder.clock import AsyncioClock, Clock, Debouncer
from e2erec.recorder.mutation_watcher import MutationWatcher
from e2erec.recorder.network_monitor import NetworkMonitor

logger = logging.getLogger(__name__)

StepCallback = Callable[[RecordedStep, int], None]

# 記録対象のキー
CAPTURED_KEYS = frozenset({"Enter", "Escape", "Tab"})

# 値が記録済みとみなすステップ種別
_VALUE_STEP_TYPES = frozenset({
    RecordedStepType.FILL,
    RecordedStepType.SELECT,
    RecordedStepType.CHECK,
    RecordedStepType.UNCHECK,
})


@dataclass
class _PendingInput:
    """デバウンス中のテキスト入力。"""

    element: Tag
    value: str
    last_event_at: float


class ActionRecorder:
    """ページ操作の記録エンジン。

    Window に対してイベントリスナーとネットワークのラップを設置し、
    ユーザー操作を RecordedStep として記録する。
    同時に記録できるセッションは 1 つだけで、start_recording() は
    記録中のセッションを先に停止する。

    Attributes:
        last_user_action_at: 最後にユーザー操作のステップを記録した時刻（ミリ秒）
    """

    def __init__(
        self,
        window: Window,
        clock: Optional[Clock] = None,
        config: Optional[RecorderConfig] = None,
    ) -> None:
        """ActionRecorder を初期化する。

        Args:
            window: 記録対象のウィンドウ
            clock: タイマーに使うクロック（None で AsyncioClock）
            config: 記録設定（None でデフォルト値）
        """
        self._window = window
        self._clock: Clock = clock or AsyncioClock()
        self._config = config or RecorderConfig()
        self._session: Optional[RecordingSession] = None
        self._stopped_session: Optional[RecordingSession] = None
        self._stopped_responses: list[CapturedResponse] = []
        self._document: Optional[Document] = None
        self._listeners: list[tuple[EventTarget, str, EventListener, bool]] = []
        self._input_debouncer: Optional[Debouncer] = None
        self._pending_inputs: dict[str, _PendingInput] = {}
        self._network: Optional[NetworkMonitor] = None
        self._mutations: Optional[MutationWatcher] = None
        self._on_step_added: Optional[StepCallback] = None
        self._on_step_updated: Optional[StepCallback] = None
        self.last_user_action_at: float = 0

    # ------------------------------------------------------------------
    # 状態
    # ------------------------------------------------------------------

    @property
    def is_recording(self) -> bool:
        """記録中（一時停止ではない）かどうかを返す。"""
        return self._session is not None and self._session.status == RecordingStatus.RECORDING

    @property
    def config(self) -> RecorderConfig:
        return self._config

    def _now(self) -> int:
        return int(self._clock.now())

    # ------------------------------------------------------------------
    # ライフサイクル
    # ------------------------------------------------------------------

    def start_recording(self) -> RecordingSession:
        """新しい記録セッションを開始する。

        記録中のセッションがあれば先に停止する。
        開始時点の URL への navigate ステップを 1 つ持った状態で始まる。

        Returns:
            開始したセッション

        Raises:
            RuntimeError: AsyncioClock を使っていて、イベントループがない場合
        """
        if isinstance(self._clock, AsyncioClock):
            # ページのイベント配送中ではなくここで失敗させる
            self._clock.bind()
        if self._session is not None:
            self.stop_recording()

        self._stopped_session = None
        self._stopped_responses = []

        now = self._now()
        url = self._window.url
        self._document = self._window.document
        self._session = RecordingSession(
            status=RecordingStatus.RECORDING,
            start_url=url,
            start_time=now,
            steps=[RecordedStep(
                type=RecordedStepType.NAVIGATE,
                timestamp=now,
                url=url,
                label=self._document.title or "Page",
            )],
        )
        self.last_user_action_at = now

        self._input_debouncer = Debouncer(self._clock, self._config.input_debounce_ms)
        self._attach_listeners(self._document)
        self._mutations = MutationWatcher(self._document, self._clock, self._config, self).start()
        self._network = NetworkMonitor(self._window, self._clock, self._config, self).install()

        logger.info("記録を開始しました: %s", url)
        return self._session

    def pause_recording(self) -> Optional[RecordingSession]:
        """記録を一時停止する。記録中でなければ None を返す。"""
        if not self.is_recording:
            return None
        self._flush_pending_inputs()
        self._session.status = RecordingStatus.PAUSED
        logger.info("記録を一時停止しました")
        return self._session

    def resume_recording(self) -> Optional[RecordingSession]:
        """一時停止中の記録を再開する。一時停止中でなければ None を返す。"""
        if self._session is None or self._session.status != RecordingStatus.PAUSED:
            return None
        self._session.status = RecordingStatus.RECORDING
        logger.info("記録を再開しました")
        return self._session

    def stop_recording(self) -> Optional[RecordingSession]:
        """記録を停止し、セッションを返す。

        保留中の入力とネットワーク待機を確定させてから、
        リスナー・DOM 監視・ネットワークのラップをすべて外す。
        停止後もセッションと応答は get_recording_session() /
        get_captured_responses() で参照できる。

        Returns:
            停止したセッション。アクティブなセッションがなければ None
        """
        session = self._session
        if session is None:
            return None

        self._flush_pending_inputs()
        if self._network is not None:
            self._network.flush_on_stop()
            self._stopped_responses = self._network.responses
        self._teardown()

        session.status = RecordingStatus.STOPPED
        self._stopped_session = session
        self._session = None
        self.last_user_action_at = 0

        logger.info("記録を停止しました（%d ステップ）", len(session.steps))
        return session

    def clear_session(self) -> None:
        """セッションを破棄する。アクティブなセッションがなくても安全に呼べる。"""
        if self._session is not None:
            self._teardown()
        self._session = None
        self._stopped_session = None
        self._stopped_responses = []
        self.last_user_action_at = 0
        logger.info("記録セッションをクリアしました")

    def _teardown(self) -> None:
        for target, event_type, listener, capture in self._listeners:
            target.remove_event_listener(event_type, listener, capture)
        self._listeners.clear()

        if self._input_debouncer is not None:
            self._input_debouncer.cancel_all()
            self._input_debouncer = None
        self._pending_inputs.clear()

        if self._mutations is not None:
            self._mutations.stop()
            self._mutations = None
        if self._network is not None:
            self._network.uninstall()
            self._network = None
        self._document = None

    # ------------------------------------------------------------------
    # 参照・コールバック
    # ------------------------------------------------------------------

    def get_recording_session(self) -> Optional[RecordingSession]:
        """アクティブなセッション、なければ停止済みのセッションを返す。"""
        return self._session or self._stopped_session

    def get_recording_status(self) -> RecordingStatus:
        """現在の記録状態を返す。"""
        if self._session is not None:
            return self._session.status
        if self._stopped_session is not None:
            return RecordingStatus.STOPPED
        return RecordingStatus.IDLE

    def get_captured_responses(self) -> list[CapturedResponse]:
        """記録中（または直近の停止済みセッション）の応答一覧を返す。"""
        if self._session is not None and self._network is not None:
            return list(self._network.responses)
        return list(self._stopped_responses)

    @property
    def network_monitor(self) -> Optional[NetworkMonitor]:
        """記録中のネットワーク監視（記録していなければ None）。"""
        return self._network

    def set_on_step_added(self, callback: Optional[StepCallback]) -> None:
        """ステップ追加時のコールバックを設定する（None で解除）。"""
        self._on_step_added = callback

    def set_on_step_updated(self, callback: Optional[StepCallback]) -> None:
        """ステップ更新時のコールバックを設定する（None で解除）。"""
        self._on_step_updated = callback

    # ------------------------------------------------------------------
    # ステップ編集
    # ------------------------------------------------------------------

    def add_manual_step(self, step: Union[RecordedStep, dict[str, Any]]) -> bool:
        """外部からステップを追加する。記録中でなければ何もしない。

        Returns:
            追加した場合 True
        """
        if not self.is_recording:
            return False
        if not isinstance(step, RecordedStep):
            step = RecordedStep.model_validate(step)
        self._flush_pending_inputs()
        return self._append_step(step)

    def remove_step(self, index: int) -> bool:
        """アクティブなセッションからステップを削除する。

        Returns:
            削除した場合 True。範囲外・セッションなしは False
        """
        if self._session is None or not 0 <= index < len(self._session.steps):
            return False
        step = self._session.steps.pop(index)
        self._notify_updated(step, index)
        return True

    def update_step(
        self,
        index: int,
        value: Optional[str] = None,
        wait_timeout: Optional[int] = None,
    ) -> bool:
        """アクティブなセッションのステップの値・待機時間を更新する。

        Returns:
            更新した場合 True。範囲外・セッションなしは False
        """
        if self._session is None or not 0 <= index < len(self._session.steps):
            return False
        step = self._session.steps[index]
        if value is not None:
            step.value = value
        if wait_timeout is not None:
            step.wait_timeout = wait_timeout
        self._notify_updated(step, index)
        return True

    # ------------------------------------------------------------------
    # ステップ生成（MutationWatcher / NetworkMonitor からも使う）
    # ------------------------------------------------------------------

    def is_extension_ui(self, el: Any) -> bool:
        """要素が記録対象外の UI に属するかを返す。"""
        if not dom.is_element(el):
            return False
        return any(dom.closest(el, selector) is not None for selector in self._config.extension_ui_selectors)

    def build_step(
        self, step_type: RecordedStepType, el: Optional[Tag] = None, **extra: Any,
    ) -> RecordedStep:
        """要素からセレクタ・代替セレクタ・ラベルを解決してステップを作る。"""
        fields = dict(extra)
        fields.setdefault("timestamp", self._now())
        if el is not None:
            fields.setdefault("selector", build_quick_selector(el))
            fields["smart_selectors"] = self._safe_smart_selectors(el)
            if fields.get("label") is None:
                fields["label"] = find_label(el)
        return RecordedStep(type=step_type, **fields)

    def _safe_smart_selectors(self, el: Tag) -> list[SmartSelector]:
        try:
            return extract_smart_selectors(el)
        except Exception:
            logger.debug("スマートセレクタの抽出に失敗しました", exc_info=True)
            return []

    def add_synthetic_step(self, step: RecordedStep) -> bool:
        """待機・アサーション等の自動生成ステップを追加する。

        ユーザー操作の時刻（last_user_action_at）は更新しない。
        """
        return self._append_step(step, user_action=False)

    def _append_step(self, step: RecordedStep, user_action: bool = True) -> bool:
        if not self.is_recording:
            return False
        steps = self._session.steps
        steps.append(step)
        if user_action:
            self.last_user_action_at = step.timestamp
        logger.debug("ステップを記録: %s %s", step.type.value, step.selector or step.url or "")
        if self._on_step_added is not None:
            self._on_step_added(step, len(steps) - 1)
        return True

    def _notify_updated(self, step: RecordedStep, index: int) -> None:
        if self._on_step_updated is not None:
            self._on_step_updated(step, index)

    def _newest_step(self) -> Optional[RecordedStep]:
        if self._session is None or not self._session.steps:
            return None
        return self._session.steps[-1]

    # ------------------------------------------------------------------
    # イベントリスナー
    # ------------------------------------------------------------------

    def _listen(self, target: EventTarget, event_type: str, listener: EventListener, capture: bool) -> None:
        target.add_event_listener(event_type, listener, capture)
        self._listeners.append((target, event_type, listener, capture))

    def _attach_listeners(self, document: Document) -> None:
        self._listen(document, "input", self._on_input, True)
        self._listen(document, "change", self._on_change, True)
        self._listen(document, "click", self._on_click, True)
        self._listen(document, "submit", self._on_submit, True)
        self._listen(document, "keydown", self._on_keydown, True)
        self._listen(self._window, "beforeunload", self._on_before_unload, False)
        self._listen(self._window, "hashchange", self._on_hash_change, False)
        self._listen(self._window, "popstate", self._on_pop_state, False)

    def _accepts(self, event: DomEvent) -> bool:
        el = event.target
        return self.is_recording and dom.is_element(el) and not self.is_extension_ui(el)

    # ----- テキスト入力 -----

    def _on_input(self, event: DomEvent) -> None:
        if not self._accepts(event):
            return
        el: Tag = event.target
        name = dom.tag_name(el)

        if name == "select":
            self._record_select(el)
            return

        if name == "input":
            kind = dom.input_type(el)
            if kind == "checkbox":
                self._flush_pending_inputs()
                step_type = RecordedStepType.CHECK if dom.is_checked(el) else RecordedStepType.UNCHECK
                self._append_step(self.build_step(step_type, el, required=dom.is_required(el)))
                return
            if kind == "radio":
                self._flush_pending_inputs()
                self._append_step(self.build_step(
                    RecordedStepType.CHECK, el, value=dom.get_value(el), required=dom.is_required(el),
                ))
                return
            if kind in dom.BUTTON_INPUT_TYPES:
                return
        elif name != "textarea" and dom.get_attribute(el, "contenteditable") != "true":
            return

        self._schedule_fill(el)

    def _schedule_fill(self, el: Tag) -> None:
        selector = build_quick_selector(el)
        self._pending_inputs[selector] = _PendingInput(el, dom.get_value(el), self._clock.now())
        self._input_debouncer.schedule(selector, partial(self._commit_input, selector))

    def _commit_input(self, selector: str) -> None:
        """デバウンス中の入力を fill ステップとして確定する。

        直前のステップが同じセレクタの fill であれば、その値を更新する。
        """
        pending = self._pending_inputs.pop(selector, None)
        if pending is None or not self.is_recording:
            return

        timestamp = int(pending.last_event_at)
        newest = self._newest_step()
        if newest is not None and newest.type == RecordedStepType.FILL and newest.selector == selector:
            newest.value = pending.value
            newest.timestamp = timestamp
            self.last_user_action_at = timestamp
            self._notify_updated(newest, len(self._session.steps) - 1)
            return

        self._append_step(self.build_step(
            RecordedStepType.FILL,
            pending.element,
            selector=selector,
            value=pending.value,
            timestamp=timestamp,
            required=dom.is_required(pending.element),
        ))

    def _flush_pending_inputs(self) -> None:
        """デバウンス中の入力をすべて即時に確定する。"""
        if self._input_debouncer is not None:
            self._input_debouncer.flush_all()

    # ----- select -----

    def _on_change(self, event: DomEvent) -> None:
        if not self._accepts(event) or dom.tag_name(event.target) != "select":
            return
        self._record_select(event.target)

    def _record_select(self, el: Tag) -> None:
        self._flush_pending_inputs()
        selector = build_quick_selector(el)
        value = dom.get_value(el)

        newest = self._newest_step()
        if newest is not None and newest.type == RecordedStepType.SELECT and newest.selector == selector:
            if newest.value != value:
                newest.value = value
                self._notify_updated(newest, len(self._session.steps) - 1)
            return

        self._append_step(self.build_step(
            RecordedStepType.SELECT, el, selector=selector, value=value, required=dom.is_required(el),
        ))

    # ----- クリック・送信 -----

    def _on_click(self, event: DomEvent) -> None:
        if not self._accepts(event):
            return
        el: Tag = event.target
        # input[type=submit] もフォーム要素として扱い、ここでは記録しない
        if dom.is_form_field(el):
            return

        self._flush_pending_inputs()
        text = dom.text_content(el).strip()

        if dom.tag_name(el) == "button" and dom.input_type(el) == "submit":
            form = dom.closest(el, "form")
            if form is not None:
                self._capture_unrecorded_fields(form)
            self._append_step(self.build_step(RecordedStepType.SUBMIT, el, label=text or None))
            return

        self._append_step(self.build_step(RecordedStepType.CLICK, el, label=text[:80] or None))

    def _on_submit(self, event: DomEvent) -> None:
        if not self._accepts(event):
            return
        form: Tag = event.target
        self._flush_pending_inputs()

        newest = self._newest_step()
        if (
            newest is not None
            and newest.type == RecordedStepType.SUBMIT
            and self._now() - newest.timestamp < self._config.submit_dedupe_ms
        ):
            return

        self._capture_unrecorded_fields(form)
        self._append_step(self.build_step(
            RecordedStepType.SUBMIT,
            form,
            url=dom.get_attribute(form, "action"),
            label="Form submit",
        ))

    def _capture_unrecorded_fields(self, form: Tag) -> None:
        """入力イベントを経ずに値を持つフィールド（初期値・自動入力）を記録する。"""
        recorded = {
            step.selector for step in self._session.steps
            if step.type in _VALUE_STEP_TYPES and step.selector
        }

        for field in dom.query_selector_all(form, "input, select, textarea"):
            if self.is_extension_ui(field) or not dom.is_visible(field):
                continue
            selector = build_quick_selector(field)
            if selector in recorded:
                continue

            step = self._snapshot_field(field, selector)
            if step is not None and self._append_step(step):
                recorded.add(selector)

    def _snapshot_field(self, field: Tag, selector: str) -> Optional[RecordedStep]:
        name = dom.tag_name(field)
        value = dom.get_value(field)
        required = dom.is_required(field)

        if name == "select":
            if not value:
                return None
            return self.build_step(RecordedStepType.SELECT, field, selector=selector, value=value, required=required)

        if name == "input":
            kind = dom.input_type(field)
            if kind in ("checkbox", "radio"):
                if not dom.is_checked(field):
                    return None
                extra = {"value": value} if kind == "radio" else {}
                return self.build_step(RecordedStepType.CHECK, field, selector=selector, required=required, **extra)
            if kind in dom.BUTTON_INPUT_TYPES:
                return None

        if not value:
            return None
        return self.build_step(RecordedStepType.FILL, field, selector=selector, value=value, required=required)

    # ----- キー押下 -----

    def _on_keydown(self, event: DomEvent) -> None:
        if not self.is_recording or event.key not in CAPTURED_KEYS:
            return
        el = event.target if dom.is_element(event.target) else None
        if el is not None and self.is_extension_ui(el):
            return
        self._flush_pending_inputs()
        self._append_step(self.build_step(RecordedStepType.PRESS_KEY, el, key=event.key))

    # ----- ナビゲーション -----

    def _on_before_unload(self, event: DomEvent) -> None:
        if not self.is_recording:
            return
        self._flush_pending_inputs()
        self._append_step(RecordedStep(
            type=RecordedStepType.NAVIGATE,
            timestamp=self._now(),
            url=self._window.url,
            label="Page navigation",
        ))

    def _on_hash_change(self, event: DomEvent) -> None:
        if not self.is_recording:
            return
        self._flush_pending_inputs()
        self._append_step(RecordedStep(
            type=RecordedStepType.WAIT_FOR_URL,
            timestamp=self._now(),
            url=self._window.url,
            value=self._window.location_hash,
            label="URL hash changed",
        ))

    def _on_pop_state(self, event: DomEvent) -> None:
        if not self.is_recording:
            return
        self._flush_pending_inputs()
        self._append_step(RecordedStep(
            type=RecordedStepType.WAIT_FOR_URL,
            timestamp=self._now(),
            url=self._window.url,
            label="URL changed (popstate)",
        ))
