"""
PageBridge — 実ブラウザのページを ActionRecorder につなぐアダプタ

Playwright（async API）のページに記録用 JavaScript を注入し、
ユーザー操作と DOM 変更をバインディング経由で受け取って
Window / Document のモデルへ再配送する。ActionRecorder は
モデル上のイベントをそのまま記録するため、記録ロジックは共通になる。

主な機能:
  - expose_binding + add_init_script による DOM イベントの転送
  - load 時のページ内容の同期と、ページ遷移の beforeunload 再現
  - page.on("request" / "requestfinished" / "requestfailed") の NetworkMonitor への転送
  - record_in_browser: ブラウザを起動し、閉じられるまで記録する
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from bs4 import BeautifulSoup, Tag

from e2erec.config import RecorderConfig
from e2erec.dom import elements as dom
from e2erec.dom.document import Window
from e2erec.dom.events import DomEvent
from e2erec.export.types import CapturedResponse, RecordingSession
from e2erec.recorder.clock import AsyncioClock
from e2erec.recorder.session import ActionRecorder

logger = logging.getLogger(__name__)

# 注入スクリプトのパス
_INJECTED_JS_PATH = Path(__file__).parent / "injected.js"

BINDING_NAME = "__e2erecEvent"

# ページのイベントのうちモデルへそのまま配送するもの
_FORWARDED_EVENTS = frozenset({"input", "change", "click", "submit", "keydown"})

# NetworkMonitor が追跡するリクエスト種別（ページ遷移や画像は対象外）
_TRACKED_RESOURCE_TYPES = frozenset({"xhr", "fetch"})


def load_injected_script() -> str:
    """ページに注入する JavaScript を返す。"""
    return _INJECTED_JS_PATH.read_text(encoding="utf-8")


class PageBridge:
    """Playwright のページと記録モデルの橋渡し。

    使用例::

        window = Window(url=page.url)
        recorder = ActionRecorder(window)
        bridge = PageBridge(page, window, recorder)
        await bridge.attach()
        await bridge.sync_content()
        recorder.start_recording()
    """

    def __init__(self, page: Any, window: Window, recorder: ActionRecorder) -> None:
        self._page = page
        self._window = window
        self._recorder = recorder
        self._requests: dict[Any, tuple[str, str]] = {}
        self._attached = False

    @property
    def attached(self) -> bool:
        return self._attached

    async def attach(self) -> "PageBridge":
        """バインディング・注入スクリプト・イベントハンドラを設定する。"""
        if self._attached:
            return self
        await self._page.expose_binding(BINDING_NAME, self._on_binding)
        await self._page.add_init_script(script=load_injected_script())
        self._page.on("load", self._on_load)
        self._page.on("request", self._on_request)
        self._page.on("requestfinished", self._on_request_finished)
        self._page.on("requestfailed", self._on_request_failed)
        self._attached = True
        logger.debug("ページに記録用スクリプトを設定しました")
        return self

    async def sync_content(self) -> None:
        """ページの現在の DOM でモデルのツリーを置き換える。"""
        self._window.document.load_html(await self._page.content())

    # ------------------------------------------------------------------
    # ページ遷移
    # ------------------------------------------------------------------

    async def _on_load(self, *_: Any) -> None:
        url = self._page.url
        if url != self._window.url:
            # 遷移前の URL で beforeunload を発火させる
            self._window.navigate(url)
        await self.sync_content()

    # ------------------------------------------------------------------
    # DOM イベント
    # ------------------------------------------------------------------

    async def _on_binding(self, source: Any, payload: dict[str, Any]) -> None:
        """ページ側スクリプトからの通知を処理する。

        Args:
            source: 呼び出し元のフレーム情報（未使用）
            payload: type と対象要素のセレクタ等を持つ辞書
        """
        kind = payload.get("type", "")
        if kind == "hashchange":
            self._window.set_hash(str(payload.get("url", "")).partition("#")[2])
            return
        if kind == "popstate":
            self._window.pop_state(str(payload.get("url", "")))
            return
        if kind == "added":
            self._mirror_added(payload)
            return
        if kind == "removed":
            self._mirror_removed(payload)
            return
        if kind == "attribute":
            self._mirror_attribute(payload)
            return
        if kind not in _FORWARDED_EVENTS:
            logger.debug("未対応のページイベント: %s", kind)
            return

        el = await self._resolve(payload.get("selector"))
        if el is None:
            return
        document = self._window.document
        document.sync_control(el, payload.get("value"), payload.get("checked"))
        document.dispatch_event(DomEvent(type=kind, target=el, key=payload.get("key")))

    async def _resolve(self, selector: Optional[str]) -> Optional[Tag]:
        """セレクタの要素を返す。見つからなければページ内容を同期して再検索する。"""
        if not selector:
            return None
        el = self._query(selector)
        if el is None:
            await self.sync_content()
            el = self._query(selector)
        if el is None:
            logger.debug("ページの要素がモデルに見つかりません: %s", selector)
        return el

    def _query(self, selector: Optional[str]) -> Optional[Tag]:
        return self._window.document.query_selector(selector) if selector else None

    def _mirror_added(self, payload: dict[str, Any]) -> None:
        document = self._window.document
        parent = self._query(payload.get("parent"))
        if parent is None:
            return
        try:
            child = document.create_fragment(payload.get("html") or "")
        except ValueError:
            return
        document.append_child(parent, child)

    def _mirror_removed(self, payload: dict[str, Any]) -> None:
        document = self._window.document
        parent = self._query(payload.get("parent"))
        if parent is None:
            return
        removed = _first_element(payload.get("html") or "")
        if removed is None:
            return
        # 同じタグ名・属性を持つ子要素を削除対象とみなす
        for child in parent.find_all(removed.name, recursive=False):
            if child.attrs == removed.attrs:
                document.remove_element(child)
                return

    def _mirror_attribute(self, payload: dict[str, Any]) -> None:
        document = self._window.document
        el = self._query(payload.get("selector"))
        name = payload.get("name")
        if el is None or not name:
            return
        value = payload.get("value")
        if value is None:
            document.remove_attribute(el, name)
        else:
            document.set_attribute(el, name, str(value))

    # ------------------------------------------------------------------
    # ネットワーク
    # ------------------------------------------------------------------

    def _on_request(self, request: Any) -> None:
        monitor = self._recorder.network_monitor
        if (
            monitor is None
            or not self._recorder.is_recording
            or request.resource_type not in _TRACKED_RESOURCE_TYPES
        ):
            return
        self._requests[request] = (request.url, request.method.upper())
        monitor.request_started()

    async def _on_request_finished(self, request: Any) -> None:
        if request not in self._requests:
            return
        response = await request.response()
        self._settle(request, response.status if response is not None else 0)

    def _on_request_failed(self, request: Any) -> None:
        if request in self._requests:
            self._settle(request, 0)

    def _settle(self, request: Any, status: int) -> None:
        url, method = self._requests.pop(request)
        monitor = self._recorder.network_monitor
        if monitor is not None:
            monitor.request_finished(url, method, status)


def _first_element(html: str) -> Optional[Tag]:
    for child in BeautifulSoup(html, "html.parser").contents:
        if dom.is_element(child):
            return child
    return None


# ---------------------------------------------------------------------------
# ブラウザ起動
# ---------------------------------------------------------------------------

async def record_in_browser(
    url: str,
    config: Optional[RecorderConfig] = None,
    channel: str = "chromium",
    viewport: tuple[int, int] = (1280, 720),
    headless: bool = False,
) -> tuple[RecordingSession, list[CapturedResponse]]:
    """ブラウザを起動してページ操作を記録する。

    ページが閉じられるまで記録を続ける。

    Args:
        url: 記録開始 URL
        config: 記録設定（None でデフォルト値）
        channel: ブラウザチャンネル（chromium / chrome / msedge）
        viewport: ビューポートサイズ (幅, 高さ)
        headless: ヘッドレスで起動するか

    Returns:
        停止済みのセッションと記録中に観測した応答
    """
    from playwright.async_api import async_playwright

    window = Window(url=url)
    recorder = ActionRecorder(window, clock=AsyncioClock(), config=config)

    async with async_playwright() as pw:
        launch_kwargs: dict[str, Any] = {"headless": headless}
        if channel != "chromium":
            launch_kwargs["channel"] = channel
        browser = await pw.chromium.launch(**launch_kwargs)
        try:
            context = await browser.new_context(
                viewport={"width": viewport[0], "height": viewport[1]},
            )
            page = await context.new_page()
            bridge = await PageBridge(page, window, recorder).attach()

            await page.goto(url)
            window.url = page.url
            await bridge.sync_content()
            recorder.start_recording()
            logger.info("記録開始: %s（ページを閉じると記録が終了します）", page.url)

            await page.wait_for_event("close", timeout=0)
        finally:
            recorder.stop_recording()
            await browser.close()

    return recorder.get_recording_session(), recorder.get_captured_responses()
