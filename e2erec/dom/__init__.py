"""
dom パッケージ — 記録対象ページのモデル

BeautifulSoup のツリーをブラウザ DOM として扱い、
イベント配送・DOM 変更通知・ネットワーク・ナビゲーションを提供する。

主な構成:
  - elements: bs4.Tag を DOM 要素として扱うヘルパー
  - events: DomEvent / EventTarget / MutationObserver
  - network: fetch / XMLHttpRequest 相当
  - document: Document / Window
"""

from __future__ import annotations

from .document import Document, Window
from .events import DomEvent, EventTarget, MutationObserver, MutationRecord
from .network import NetworkError, Request, Response, XMLHttpRequest

__all__ = [
    "Document",
    "DomEvent",
    "EventTarget",
    "MutationObserver",
    "MutationRecord",
    "NetworkError",
    "Request",
    "Response",
    "Window",
    "XMLHttpRequest",
]
