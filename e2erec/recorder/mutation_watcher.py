"""
DOM 変更監視 — 動的に現れるフィールドと消えるローディング表示の検出

document.body 配下の変更をまとめてデバウンスし、
  - 新たに表示されたフォーム要素 → wait-for-element
  - 取り除かれたスピナー要素 → wait-for-hidden
のステップを挿入する。
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from bs4 import Tag

from e2erec.config import RecorderConfig
from e2erec.dom import elements as dom
from e2erec.dom.document import Document
from e2erec.dom.events import MutationObserver, MutationRecord
from e2erec.export.selector import build_quick_selector
from e2erec.export.types import RecordedStep, RecordedStepType
from e2erec.recorder.clock import Clock, Debouncer

logger = logging.getLogger(__name__)

# ローディング表示とみなすセレクタ
SPINNER_SELECTORS: tuple[str, ...] = (
    ".loading",
    ".spinner",
    ".loader",
    "[aria-busy='true']",
    ".ant-spin",
    ".MuiCircularProgress-root",
    ".sk-spinner",
)

# 表示状態に関わる属性
_WATCHED_ATTRIBUTES = ["style", "class", "hidden", "disabled", "aria-hidden"]

_IDENTIFYING_ATTRS = ("id", "data-testid", "data-test-id", "name")

_BATCH_KEY = "mutations"


class WatcherHooks(Protocol):
    """検出結果を受け取る記録セッション側のインターフェース。"""

    @property
    def is_recording(self) -> bool: ...

    def is_extension_ui(self, el: Tag) -> bool: ...

    def build_step(
        self, step_type: RecordedStepType, el: Optional[Tag] = None, **extra: Any,
    ) -> RecordedStep: ...

    def add_synthetic_step(self, step: RecordedStep) -> bool: ...


def _spinner_pattern(el: Tag) -> Optional[str]:
    """要素自身または子孫が一致したスピナーのセレクタを返す。"""
    for selector in SPINNER_SELECTORS:
        if dom.matches(el, selector) or dom.query_selector(el, selector) is not None:
            return selector
    return None


class MutationWatcher:
    """1 セッション分の DOM 変更監視。"""

    def __init__(
        self,
        document: Document,
        clock: Clock,
        config: RecorderConfig,
        hooks: WatcherHooks,
    ) -> None:
        self._document = document
        self._config = config
        self._hooks = hooks
        self._observer = MutationObserver(self._on_mutations)
        self._debouncer = Debouncer(clock, config.mutation_debounce_ms)
        self._records: list[MutationRecord] = []

    def start(self) -> "MutationWatcher":
        self._observer.observe(
            self._document.body,
            document=self._document,
            child_list=True,
            subtree=True,
            attributes=True,
            attribute_filter=_WATCHED_ATTRIBUTES,
        )
        return self

    def stop(self) -> None:
        """保留中のタイマーを止め、監視を終了する。"""
        self._debouncer.cancel_all()
        self._observer.disconnect()
        self._records.clear()

    def _on_mutations(self, records: list[MutationRecord]) -> None:
        if not self._hooks.is_recording:
            return
        self._records.extend(records)
        self._debouncer.schedule(_BATCH_KEY, self._flush)

    def _flush(self) -> None:
        records, self._records = self._records, []
        if not self._hooks.is_recording:
            return

        added: list[Tag] = []
        removed: list[Tag] = []
        for record in records:
            if record.type != "childList":
                continue
            for node in record.added_nodes:
                if dom.is_element(node):
                    added.append(node)
                    added.extend(dom.query_selector_all(node, dom.FORM_FIELD_SELECTOR))
            removed.extend(node for node in record.removed_nodes if dom.is_element(node))

        self._detect_new_fields(added)
        self._detect_removed_spinner(removed)

    def _detect_new_fields(self, added: list[Tag]) -> None:
        root = self._document.soup
        fields: list[Tag] = []
        seen: set[int] = set()
        for el in added:
            if id(el) in seen:
                continue
            seen.add(id(el))
            if dom.root_of(el) is not root:
                continue
            if dom.is_form_field(el) and dom.is_visible(el) and not self._hooks.is_extension_ui(el):
                fields.append(el)

        if not fields:
            return
        logger.debug("新しいフィールドを検出: %d 件", len(fields))
        self._hooks.add_synthetic_step(self._hooks.build_step(
            RecordedStepType.WAIT_FOR_ELEMENT,
            fields[0],
            label=f"Wait for {len(fields)} new field(s)",
            wait_timeout=self._config.wait_element_timeout,
        ))

    def _detect_removed_spinner(self, removed: list[Tag]) -> None:
        for el in removed:
            pattern = _spinner_pattern(el)
            if pattern is None:
                continue
            if any(dom.get_attribute(el, attr) for attr in _IDENTIFYING_ATTRS):
                selector = build_quick_selector(el)
            else:
                selector = pattern
            logger.debug("ローディング表示の消失を検出: %s", selector)
            self._hooks.add_synthetic_step(self._hooks.build_step(
                RecordedStepType.WAIT_FOR_HIDDEN,
                selector=selector,
                label="Wait for loading to finish",
                wait_timeout=self._config.wait_hidden_timeout,
            ))
            return
