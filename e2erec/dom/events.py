"""
イベントモデル — DOM イベント・EventTarget・MutationObserver

ブラウザのイベント配送と MutationObserver を Python 上で再現する。
イベントは同期的に配送される（リスナーは登録順に呼ばれる）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from bs4 import Tag

logger = logging.getLogger(__name__)

EventListener = Callable[["DomEvent"], None]


# ---------------------------------------------------------------------------
# イベント
# ---------------------------------------------------------------------------

@dataclass
class DomEvent:
    """ブラウザイベント相当。

    Attributes:
        type: イベント種別（input, change, click, submit, keydown 等）
        target: イベント発生元（要素または Window/Document）
        key: keydown の場合のキー名
        detail: 任意の付随情報
    """

    type: str
    target: Any = None
    key: Optional[str] = None
    detail: dict[str, Any] = field(default_factory=dict)
    default_prevented: bool = False

    def prevent_default(self) -> None:
        """既定動作（フォーム送信等）を抑止する。"""
        self.default_prevented = True


@dataclass
class _Registration:
    type: str
    listener: EventListener
    capture: bool


class EventTarget:
    """addEventListener / removeEventListener / dispatchEvent を提供する基底クラス。"""

    def __init__(self) -> None:
        self._registrations: list[_Registration] = []

    def add_event_listener(
        self, event_type: str, listener: EventListener, capture: bool = False,
    ) -> None:
        """リスナーを登録する。同一 (type, listener, capture) の重複登録は無視する。"""
        for reg in self._registrations:
            if reg.type == event_type and reg.listener == listener and reg.capture == capture:
                return
        self._registrations.append(_Registration(event_type, listener, capture))

    def remove_event_listener(
        self, event_type: str, listener: EventListener, capture: bool = False,
    ) -> None:
        """リスナーの登録を解除する。未登録の場合は何もしない。"""
        self._registrations = [
            reg for reg in self._registrations
            if not (reg.type == event_type and reg.listener == listener and reg.capture == capture)
        ]

    def listener_count(self, event_type: Optional[str] = None) -> int:
        """登録済みリスナー数を返す。"""
        if event_type is None:
            return len(self._registrations)
        return sum(1 for reg in self._registrations if reg.type == event_type)

    def dispatch_event(self, event: DomEvent) -> bool:
        """イベントを配送する。capture リスナーを先に呼ぶ。

        Returns:
            既定動作が抑止されなかった場合 True
        """
        if event.target is None:
            event.target = self
        ordered = sorted(
            (reg for reg in self._registrations if reg.type == event.type),
            key=lambda reg: not reg.capture,
        )
        for reg in ordered:
            # リスナーの例外は報告だけして残りのリスナーへ配送を続ける
            try:
                reg.listener(event)
            except Exception:
                logger.exception("%s リスナーで例外が発生しました", event.type)
        return not event.default_prevented


# ---------------------------------------------------------------------------
# MutationObserver
# ---------------------------------------------------------------------------

@dataclass
class MutationRecord:
    """DOM 変更の記録。

    Attributes:
        type: childList / attributes
        target: 変更対象ノード
        added_nodes: 追加されたノード
        removed_nodes: 削除されたノード
        attribute_name: attributes の場合の属性名
    """

    type: str
    target: Any
    added_nodes: list[Tag] = field(default_factory=list)
    removed_nodes: list[Tag] = field(default_factory=list)
    attribute_name: Optional[str] = None


MutationCallback = Callable[[list[MutationRecord]], None]


class MutationObserver:
    """DOM 変更を監視するオブザーバー。

    Document に登録され、監視対象（およびその子孫）の変更を
    MutationRecord のリストとしてコールバックへ通知する。
    """

    def __init__(self, callback: MutationCallback) -> None:
        self._callback = callback
        self._document: Any = None
        self._target: Optional[Tag] = None
        self._subtree = False
        self._child_list = True
        self._attributes = False
        self._attribute_filter: Optional[frozenset[str]] = None

    @property
    def observing(self) -> bool:
        """監視中かどうかを返す。"""
        return self._document is not None

    def observe(
        self,
        target: Tag,
        *,
        document: Any,
        child_list: bool = True,
        subtree: bool = False,
        attributes: bool = False,
        attribute_filter: Optional[list[str]] = None,
    ) -> None:
        """監視を開始する。

        Args:
            target: 監視対象の要素
            document: 変更通知元の Document
            child_list: 子ノードの追加・削除を監視するか
            subtree: 子孫ノードの変更も監視するか
            attributes: 属性変更を監視するか
            attribute_filter: 監視対象の属性名
        """
        self._target = target
        self._subtree = subtree
        self._child_list = child_list
        self._attributes = attributes
        self._attribute_filter = frozenset(attribute_filter) if attribute_filter else None
        self._document = document
        document._register_observer(self)

    def disconnect(self) -> None:
        """監視を終了する。"""
        if self._document is not None:
            self._document._unregister_observer(self)
        self._document = None
        self._target = None

    def _interested_in(self, record: MutationRecord) -> bool:
        if self._target is None:
            return False
        if record.type == "childList" and not self._child_list:
            return False
        if record.type == "attributes":
            if not self._attributes:
                return False
            if self._attribute_filter and record.attribute_name not in self._attribute_filter:
                return False
        node = record.target
        if node is self._target:
            return True
        if not self._subtree:
            return False
        while node is not None:
            if node is self._target:
                return True
            node = getattr(node, "parent", None)
        return False

    def _notify(self, record: MutationRecord) -> None:
        if not self._interested_in(record):
            return
        try:
            self._callback([record])
        except Exception:
            logger.exception("MutationObserver のコールバックで例外が発生しました")
