"""
ラベル解決 — 戦略チェーンによるフィールドラベルの特定

各戦略は name と find(element) を持ち、具体的なものから順に試行する。
最初に空白以外のテキストを返した戦略の結果を採用する。

既定の順序:
   1. label[for]         — for/id による明示的な関連付け
   2. parent-label       — label 要素で囲まれている
   3. aria-label         — aria-label 属性
   4. aria-labelledby    — 参照先要素のテキスト
   5. prev-label         — 直前の兄弟が label
   6. title              — title 属性
   7. fieldset-legend    — 最も近い fieldset の legend
   8. form-group-label   — フォームグループ内のラベル
   9. prev-sibling-text  — 前方の短いテキスト要素
  10. placeholder        — placeholder 属性
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from bs4 import Tag

from e2erec.dom import elements as dom
from e2erec.export.selector import css_escape

# フォームグループのコンテナ
FORM_GROUP_SELECTORS = ", ".join((
    ".form-group",
    ".form-item",
    ".form-field",
    ".field-wrapper",
    ".input-wrapper",
    "[class*='form-control']",
    ".ant-form-item",
    ".MuiFormControl-root",
))

# フォームグループ内のラベル要素
GROUP_LABEL_SELECTORS = ", ".join((
    "label",
    ".form-label",
    ".control-label",
    ".ant-form-item-label > label",
    ".MuiInputLabel-root",
    ".MuiFormLabel-root",
))

_LABEL_LIKE_TAGS = frozenset({"span", "div", "p", "strong", "em"})
_MAX_SIBLING_TEXT = 80


@dataclass(frozen=True)
class LabelResult:
    """ラベル解決の結果。

    Attributes:
        text: ラベルテキスト（前後の空白は除去済み）
        strategy: 採用された戦略名
    """

    text: str
    strategy: str


class LabelStrategy(Protocol):
    """ラベル解決戦略のインターフェース。"""

    name: str

    def find(self, element: Tag) -> Optional[LabelResult]: ...


def _text_of(el: Optional[Tag]) -> str:
    return dom.text_content(el).strip() if el is not None else ""


class _StrategyBase:
    name = ""

    def _result(self, text: Optional[str]) -> Optional[LabelResult]:
        text = (text or "").strip()
        return LabelResult(text=text, strategy=self.name) if text else None


# ---------------------------------------------------------------------------
# 戦略実装
# ---------------------------------------------------------------------------

class LabelForStrategy(_StrategyBase):
    name = "label[for]"

    def find(self, element: Tag) -> Optional[LabelResult]:
        ident = dom.element_id(element)
        if not ident:
            return None
        label = dom.query_selector(dom.root_of(element), f'label[for="{css_escape(ident)}"]')
        return self._result(_text_of(label))


class ParentLabelStrategy(_StrategyBase):
    name = "parent-label"

    def find(self, element: Tag) -> Optional[LabelResult]:
        return self._result(_text_of(dom.closest(element, "label")))


class AriaLabelStrategy(_StrategyBase):
    name = "aria-label"

    def find(self, element: Tag) -> Optional[LabelResult]:
        return self._result(dom.get_attribute(element, "aria-label"))


class AriaLabelledByStrategy(_StrategyBase):
    name = "aria-labelledby"

    def find(self, element: Tag) -> Optional[LabelResult]:
        ref_id = dom.get_attribute(element, "aria-labelledby")
        if not ref_id:
            return None
        return self._result(_text_of(dom.find_by_id(element, ref_id)))


class PrevLabelStrategy(_StrategyBase):
    name = "prev-label"

    def find(self, element: Tag) -> Optional[LabelResult]:
        prev = dom.previous_element_sibling(element)
        if prev is None or dom.tag_name(prev) != "label":
            return None
        return self._result(_text_of(prev))


class TitleStrategy(_StrategyBase):
    name = "title"

    def find(self, element: Tag) -> Optional[LabelResult]:
        return self._result(dom.get_attribute(element, "title"))


class FieldsetLegendStrategy(_StrategyBase):
    name = "fieldset-legend"

    def find(self, element: Tag) -> Optional[LabelResult]:
        fieldset = dom.closest(element, "fieldset")
        if fieldset is None:
            return None
        return self._result(_text_of(dom.query_selector(fieldset, "legend")))


class FormGroupLabelStrategy(_StrategyBase):
    """Bootstrap / Ant Design / MUI 等のフォームグループからラベルを探す。"""

    name = "form-group-label"

    def find(self, element: Tag) -> Optional[LabelResult]:
        group = dom.closest(element, FORM_GROUP_SELECTORS)
        if group is None:
            return None
        return self._result(_text_of(dom.query_selector(group, GROUP_LABEL_SELECTORS)))


class PrevSiblingTextStrategy(_StrategyBase):
    """前方の兄弟をさかのぼり、短いテキストを持つ span/div/p/strong/em を探す。"""

    name = "prev-sibling-text"

    def find(self, element: Tag) -> Optional[LabelResult]:
        sibling = dom.previous_element_sibling(element)
        while sibling is not None:
            if dom.tag_name(sibling) in _LABEL_LIKE_TAGS:
                text = _text_of(sibling)
                if 0 < len(text) < _MAX_SIBLING_TEXT:
                    return self._result(text)
            sibling = dom.previous_element_sibling(sibling)
        return None


class PlaceholderStrategy(_StrategyBase):
    name = "placeholder"

    def find(self, element: Tag) -> Optional[LabelResult]:
        return self._result(dom.get_attribute(element, "placeholder"))


DEFAULT_LABEL_STRATEGIES: tuple[LabelStrategy, ...] = (
    LabelForStrategy(),
    ParentLabelStrategy(),
    AriaLabelStrategy(),
    AriaLabelledByStrategy(),
    PrevLabelStrategy(),
    TitleStrategy(),
    FieldsetLegendStrategy(),
    FormGroupLabelStrategy(),
    PrevSiblingTextStrategy(),
    PlaceholderStrategy(),
)


# ---------------------------------------------------------------------------
# パブリック API
# ---------------------------------------------------------------------------

def find_label_with_strategy(
    element: Tag,
    strategies: Sequence[LabelStrategy] = DEFAULT_LABEL_STRATEGIES,
) -> Optional[LabelResult]:
    """戦略を順に試行し、最初に見つかったラベルを返す。

    Args:
        element: 対象要素
        strategies: 試行する戦略（省略時は既定の順序）

    Returns:
        LabelResult。どの戦略でも見つからない場合は None
    """
    for strategy in strategies:
        result = strategy.find(element)
        if result is not None:
            return result
    return None


def find_label(element: Tag) -> Optional[str]:
    """ラベルテキストのみを返す。見つからない場合は None。"""
    result = find_label_with_strategy(element)
    return result.text if result is not None else None
