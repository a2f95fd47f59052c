"""
セレクタ解決 — DOM 要素から再現可能な CSS セレクタを構築する

判定は以下の優先順位で行う:
  1. id → #id
  2. data-testid / data-test-id → 属性セレクタ
  3. name → tag[name="..."]
  4. 構造セレクタ（tag:nth-of-type(n) を id 付き祖先または body まで連結）
"""

from __future__ import annotations

import soupsieve as sv
from bs4 import Tag

from e2erec.dom import elements as dom

_TEST_ID_ATTRS = ("data-testid", "data-test-id")


def css_escape(value: str) -> str:
    """CSS 識別子としてエスケープする（CSS.escape 相当）。"""
    return sv.escape(value)


def _nth_of_type(el: Tag) -> int:
    """同じタグ名の兄弟要素中での 1 始まりの位置を返す。0 は兄弟がいないことを表す。"""
    parent = el.parent
    if not dom.is_element(parent):
        return 0
    siblings = [child for child in parent.find_all(el.name, recursive=False)]
    if len(siblings) <= 1:
        return 0
    for index, sibling in enumerate(siblings, start=1):
        if sibling is el:
            return index
    return 0


def build_structural_selector(el: Tag) -> str:
    """tag:nth-of-type(n) を連結した構造セレクタを返す。

    id を持つ祖先に到達した場合はそこを起点（#id）とし、
    body には到達しても含めない。
    """
    parts: list[str] = []
    current = el
    while dom.is_element(current) and dom.tag_name(current) != "body":
        ident = dom.element_id(current)
        if ident:
            parts.insert(0, f"#{css_escape(ident)}")
            break
        selector = dom.tag_name(current)
        index = _nth_of_type(current)
        if index:
            selector += f":nth-of-type({index})"
        parts.insert(0, selector)
        current = current.parent
    return " > ".join(parts) or dom.tag_name(el) or "*"


def build_quick_selector(el: Tag) -> str:
    """要素を一意に指すセレクタ文字列を返す。例外は送出しない。

    Args:
        el: 対象要素

    Returns:
        CSS セレクタ文字列
    """
    ident = dom.element_id(el)
    if ident:
        return f"#{css_escape(ident)}"

    for attr in _TEST_ID_ATTRS:
        test_id = dom.get_attribute(el, attr)
        if test_id:
            return f'[{attr}="{css_escape(test_id)}"]'

    name = dom.get_attribute(el, "name")
    if name:
        return f'{dom.tag_name(el)}[name="{css_escape(name)}"]'

    return build_structural_selector(el)
