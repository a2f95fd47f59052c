"""
Document / Window — 記録対象ページのモデル

BeautifulSoup のツリーを DOM とし、イベント配送・DOM 変更通知・
ネットワークプリミティブ・ナビゲーションを備えたページを表現する。

主な機能:
  - Document: 要素検索、DOM 変更（MutationObserver 通知付き）
  - Document: ユーザー操作の再現（入力・クリック・選択・キー押下・送信）
  - Window: URL・履歴イベント、fetch / XMLHttpRequest
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from bs4 import BeautifulSoup, Tag

from . import elements as dom
from .events import DomEvent, EventTarget, MutationObserver, MutationRecord
from .network import FetchTransport, NetworkError, Request, Response, XMLHttpRequest

logger = logging.getLogger(__name__)

_EMPTY_PAGE = "<html><head><title></title></head><body></body></html>"


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

class Document(EventTarget):
    """ページの DOM ツリー。

    Attributes:
        soup: 元になる BeautifulSoup ツリー
        window: 所属する Window
    """

    def __init__(self, html: Optional[str] = None, window: Optional["Window"] = None) -> None:
        super().__init__()
        self.soup = BeautifulSoup(html or _EMPTY_PAGE, "html.parser")
        self.window = window
        self._observers: list[MutationObserver] = []
        if self.soup.body is None:
            body = self.soup.new_tag("body")
            (self.soup.html or self.soup).append(body)

    # ----- ツリー参照 -----

    @property
    def body(self) -> Tag:
        """body 要素を返す。"""
        return self.soup.body

    @property
    def title(self) -> str:
        """title 要素のテキストを返す。"""
        title = self.soup.title
        return title.get_text().strip() if title is not None else ""

    def query_selector(self, selector: str) -> Optional[Tag]:
        """CSS セレクタに一致する最初の要素を返す。"""
        return dom.query_selector(self.soup, selector)

    def query_selector_all(self, selector: str) -> list[Tag]:
        """CSS セレクタに一致する全要素を返す。"""
        return dom.query_selector_all(self.soup, selector)

    def get_element_by_id(self, ident: str) -> Optional[Tag]:
        """id で要素を返す。"""
        return self.soup.find(id=ident) if ident else None

    def require(self, selector: str) -> Tag:
        """CSS セレクタに一致する要素を返す。見つからない場合は LookupError。"""
        el = self.query_selector(selector)
        if el is None:
            raise LookupError(f"要素が見つかりません: {selector}")
        return el

    # ----- DOM 変更 -----

    def create_element(
        self, name: str, attrs: Optional[dict[str, str]] = None, text: Optional[str] = None,
    ) -> Tag:
        """新しい要素を生成する（ツリーには未接続）。"""
        el = self.soup.new_tag(name, attrs=attrs or {})
        if text is not None:
            el.string = text
        return el

    def create_fragment(self, html: str) -> Tag:
        """HTML 断片をパースし、先頭の要素を返す。"""
        fragment = BeautifulSoup(html, "html.parser")
        for child in fragment.contents:
            if dom.is_element(child):
                return child.extract()
        raise ValueError(f"HTML 断片に要素が含まれていません: {html!r}")

    def append_child(self, parent: Tag, child: Tag) -> Tag:
        """子要素を追加し、MutationObserver に通知する。"""
        parent.append(child)
        self._notify(MutationRecord(type="childList", target=parent, added_nodes=[child]))
        return child

    def remove_element(self, el: Tag) -> None:
        """要素をツリーから取り除き、MutationObserver に通知する。"""
        parent = el.parent
        el.extract()
        if parent is not None:
            self._notify(MutationRecord(type="childList", target=parent, removed_nodes=[el]))

    def set_attribute(self, el: Tag, name: str, value: str) -> None:
        """属性を設定し、MutationObserver に通知する。"""
        el[name] = value
        self._notify(MutationRecord(type="attributes", target=el, attribute_name=name))

    def remove_attribute(self, el: Tag, name: str) -> None:
        """属性を取り除き、MutationObserver に通知する。"""
        if el.has_attr(name):
            del el[name]
            self._notify(MutationRecord(type="attributes", target=el, attribute_name=name))

    def load_html(self, html: str) -> None:
        """ツリーの内容を html で置き換える。

        body 要素自体は残して中身だけを入れ替えるため、body を監視中の
        MutationObserver はそのまま有効。置き換えは DOM 変更として通知しない。
        """
        fresh = BeautifulSoup(html, "html.parser")
        if fresh.head is not None:
            if self.soup.head is not None:
                self.soup.head.replace_with(fresh.head)
            elif self.soup.html is not None:
                self.soup.html.insert(0, fresh.head)

        body = self.body
        body.clear()
        if fresh.body is not None:
            body.attrs = dict(fresh.body.attrs)
            for child in list(fresh.body.contents):
                body.append(child)
        logger.debug("ツリーを再読み込みしました（%d 文字）", len(html))

    def sync_control(self, el: Tag, value: Optional[str] = None, checked: Optional[bool] = None) -> None:
        """ブラウザ側で変わったフォーム部品の状態をツリーに写す。

        イベントは発火しない。checkbox / radio は checked だけを、
        それ以外は value だけを反映する。
        """
        kind = dom.input_type(el) if dom.tag_name(el) == "input" else ""
        if kind in ("checkbox", "radio"):
            if checked is None:
                return
            if kind == "radio" and checked:
                self._uncheck_radio_group(el)
            dom.set_checked(el, checked)
        elif value is not None and dom.is_form_field(el):
            dom.set_value(el, value)

    def _register_observer(self, observer: MutationObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def _unregister_observer(self, observer: MutationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observer_count(self) -> int:
        """登録中の MutationObserver 数を返す。"""
        return len(self._observers)

    def _notify(self, record: MutationRecord) -> None:
        for observer in list(self._observers):
            observer._notify(record)

    # ----- ユーザー操作の再現 -----

    def _fire(self, event_type: str, target: Tag, **kwargs: Any) -> bool:
        return self.dispatch_event(DomEvent(type=event_type, target=target, **kwargs))

    def type_text(self, el: Tag, text: str) -> None:
        """1 文字ずつ入力し、そのたびに input イベントを発火する。"""
        current = dom.get_value(el)
        for char in text:
            current += char
            dom.set_value(el, current)
            self._fire("input", el)

    def fill(self, el: Tag, value: str) -> None:
        """値を一括設定し、input / change イベントを発火する。"""
        dom.set_value(el, value)
        self._fire("input", el)
        self._fire("change", el)

    def select_option(self, el: Tag, value: str) -> None:
        """select の選択肢を変更し、input / change イベントを発火する。"""
        dom.set_value(el, value)
        self._fire("input", el)
        self._fire("change", el)

    def click(self, el: Tag) -> None:
        """要素をクリックする。

        checkbox / radio はチェック状態を切り替えて input / change を発火し、
        submit ボタンはフォームの submit イベントを発火する。
        """
        name = dom.tag_name(el)
        kind = dom.input_type(el) if name in ("input", "button") else ""
        toggles = name == "input" and kind in ("checkbox", "radio")
        if toggles:
            if kind == "checkbox":
                dom.set_checked(el, not dom.is_checked(el))
            else:
                self._uncheck_radio_group(el)
                dom.set_checked(el, True)

        if not self._fire("click", el):
            return

        if toggles:
            self._fire("input", el)
            self._fire("change", el)
            return

        submits = (name == "button" and kind == "submit") or (
            name == "input" and kind in ("submit", "image")
        )
        if submits:
            form = dom.closest(el, "form")
            if form is not None:
                self.submit(form)

    def _uncheck_radio_group(self, el: Tag) -> None:
        group = dom.get_attribute(el, "name")
        if not group:
            return
        for radio in self.query_selector_all("input[type='radio']"):
            if dom.get_attribute(radio, "name") == group:
                dom.set_checked(radio, False)

    def press(self, el: Tag, key: str) -> None:
        """キーを押下し、keydown イベントを発火する。"""
        self._fire("keydown", el, key=key)

    def submit(self, form: Tag) -> None:
        """フォームの submit イベントを発火する。"""
        self._fire("submit", form)


def tree_root(document: Any) -> Tag:
    """Document ならその bs4 ツリーを、bs4 のツリー・要素ならそのまま返す。"""
    if isinstance(document, Document):
        return document.soup
    if isinstance(document, Tag):
        return document
    raise TypeError(f"Document または bs4 の Tag が必要です: {type(document).__name__}")


# ---------------------------------------------------------------------------
# Window
# ---------------------------------------------------------------------------

class Window(EventTarget):
    """ブラウザウィンドウ相当。

    fetch と XMLHttpRequest は差し替え可能な属性として保持する。
    XMLHttpRequest は Window ごとのサブクラスのため、
    open / send の差し替えが他の Window に影響しない。

    Attributes:
        url: 現在の URL
        document: 表示中の Document
        fetch_transport: fetch の実処理（None の場合は NetworkError）
    """

    def __init__(
        self,
        url: str = "about:blank",
        html: Optional[str] = None,
        fetch_transport: Optional[FetchTransport] = None,
    ) -> None:
        super().__init__()
        self.url = url
        self.document = Document(html, window=self)
        self.fetch_transport = fetch_transport
        self.XMLHttpRequest: type[XMLHttpRequest] = type(
            "XMLHttpRequest", (XMLHttpRequest,), {},
        )
        self.fetch = self._native_fetch

    async def _native_fetch(
        self, resource: Any, init: Optional[dict[str, Any]] = None,
    ) -> Response:
        request = Request.from_args(resource, init)
        if self.fetch_transport is None:
            raise NetworkError(f"Failed to fetch: {request.url}")
        return await self.fetch_transport(request)

    @property
    def location_hash(self) -> str:
        """URL のハッシュ部分（# を含む）を返す。"""
        _, sep, fragment = self.url.partition("#")
        return f"#{fragment}" if sep else ""

    def navigate(self, url: str) -> None:
        """別ページへ遷移する。遷移前に beforeunload を発火する。"""
        self.dispatch_event(DomEvent(type="beforeunload", target=self))
        self.url = url
        logger.debug("ページ遷移: %s", url)

    def set_hash(self, fragment: str) -> None:
        """URL ハッシュを変更し、hashchange を発火する。"""
        base = self.url.split("#", 1)[0]
        self.url = f"{base}#{fragment.lstrip('#')}"
        self.dispatch_event(DomEvent(type="hashchange", target=self))

    def pop_state(self, url: str) -> None:
        """履歴移動（戻る/進む）を行い、popstate を発火する。"""
        self.url = url
        self.dispatch_event(DomEvent(type="popstate", target=self))
