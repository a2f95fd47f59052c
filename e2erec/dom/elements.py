"""
要素ヘルパー — bs4.Tag を DOM 要素として扱うための関数群

BeautifulSoup の Tag を HTMLElement 相当として扱い、
属性・値・チェック状態・可視性・CSS マッチングを提供する。
CSS マッチングには soupsieve を使用する。
"""

from __future__ import annotations

import re
from typing import Any, Optional

import soupsieve as sv
from bs4 import BeautifulSoup, Tag

# フォーム要素として扱うセレクタ
FORM_FIELD_SELECTOR = "input, select, textarea, [contenteditable='true']"

# 値を持たないボタン系 input
BUTTON_INPUT_TYPES = frozenset({"submit", "button", "reset", "image"})

_HIDDEN_STYLE = re.compile(
    r"display\s*:\s*none|visibility\s*:\s*hidden|opacity\s*:\s*0(?![.\d])",
    re.IGNORECASE,
)


def is_element(node: Any) -> bool:
    """ノードが要素（Tag）かどうかを返す。BeautifulSoup ルートは除外する。"""
    return isinstance(node, Tag) and not isinstance(node, BeautifulSoup)


def tag_name(el: Tag) -> str:
    """小文字のタグ名を返す。"""
    return (el.name or "").lower()


def get_attribute(el: Tag, name: str) -> Optional[str]:
    """属性値を文字列で返す。class 等の複数値属性は空白区切りで連結する。"""
    value = el.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def element_id(el: Tag) -> str:
    """id 属性を返す（無ければ空文字列）。"""
    return get_attribute(el, "id") or ""


def text_content(el: Tag) -> str:
    """要素配下のテキストを連結して返す。"""
    return el.get_text()


def input_type(el: Tag) -> str:
    """input 要素の type を返す（未指定は text）。button は submit が既定値。"""
    name = tag_name(el)
    default = "submit" if name == "button" else "text"
    return (get_attribute(el, "type") or default).lower()


def matches(el: Tag, selector: str) -> bool:
    """要素が CSS セレクタに一致するかを返す。"""
    if not is_element(el):
        return False
    return sv.match(selector, el)


def closest(el: Tag, selector: str) -> Optional[Tag]:
    """自身を含む最も近い祖先で CSS セレクタに一致する要素を返す。"""
    if not is_element(el):
        return None
    return sv.closest(selector, el)


def query_selector(root: Tag, selector: str) -> Optional[Tag]:
    """root 配下で CSS セレクタに一致する最初の要素を返す。"""
    return sv.select_one(selector, root)


def query_selector_all(root: Tag, selector: str) -> list[Tag]:
    """root 配下で CSS セレクタに一致する全要素を返す。"""
    return sv.select(selector, root)


def previous_element_sibling(el: Tag) -> Optional[Tag]:
    """直前の兄弟要素を返す（テキストノードは飛ばす）。"""
    for sibling in el.previous_siblings:
        if is_element(sibling):
            return sibling
    return None


def root_of(el: Tag) -> Tag:
    """要素が属するツリーのルートを返す。"""
    node = el
    while node.parent is not None:
        node = node.parent
    return node


def find_by_id(el: Tag, ident: str) -> Optional[Tag]:
    """要素と同じツリー内から id で要素を探す。"""
    if not ident:
        return None
    return root_of(el).find(id=ident)


def is_form_field(el: Tag) -> bool:
    """フォーム要素（input/select/textarea/contenteditable）かどうかを返す。"""
    return matches(el, FORM_FIELD_SELECTOR)


def is_checked(el: Tag) -> bool:
    """checkbox / radio のチェック状態を返す。"""
    return el.has_attr("checked")


def set_checked(el: Tag, checked: bool) -> None:
    """checkbox / radio のチェック状態を設定する。"""
    if checked:
        el["checked"] = ""
    elif el.has_attr("checked"):
        del el["checked"]


def is_required(el: Tag) -> bool:
    """required 属性の有無を返す。"""
    return el.has_attr("required") or get_attribute(el, "aria-required") == "true"


def _options(select: Tag) -> list[Tag]:
    return select.find_all("option")


def _option_value(option: Tag) -> str:
    value = get_attribute(option, "value")
    return value if value is not None else text_content(option).strip()


def get_value(el: Tag) -> str:
    """フォーム要素の現在値を返す。

    select は選択中 option の値（未選択なら先頭 option）、
    textarea はテキスト内容、それ以外は value 属性を返す。
    """
    name = tag_name(el)
    if name == "select":
        options = _options(el)
        for option in options:
            if option.has_attr("selected"):
                return _option_value(option)
        return _option_value(options[0]) if options else ""
    if name == "textarea" or get_attribute(el, "contenteditable") == "true":
        return text_content(el)
    return get_attribute(el, "value") or ""


def set_value(el: Tag, value: str) -> None:
    """フォーム要素の値を設定する。"""
    name = tag_name(el)
    if name == "select":
        for option in _options(el):
            if _option_value(option) == value:
                option["selected"] = ""
            elif option.has_attr("selected"):
                del option["selected"]
        return
    if name == "textarea" or get_attribute(el, "contenteditable") == "true":
        el.string = value
        return
    el["value"] = value


def is_visible(el: Tag) -> bool:
    """要素が表示状態かどうかを返す。

    自身または祖先に hidden 属性・display:none 等のインラインスタイルがある場合、
    および type="hidden" の input は非表示とみなす。
    """
    if tag_name(el) == "input" and input_type(el) == "hidden":
        return False
    node: Optional[Tag] = el
    while node is not None and is_element(node):
        if node.has_attr("hidden"):
            return False
        style = get_attribute(node, "style")
        if style and _HIDDEN_STYLE.search(style):
            return False
        node = node.parent
    return True
