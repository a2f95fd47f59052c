"""
スマートセレクタ抽出 — 要素に対する代替セレクタ候補を優先度順に返す

UI 変更に強い順に候補を並べる:
  1. data-testid / data-test-id / data-cy / data-test
  2. aria-label / aria-labelledby
  3. role（+ aria-label / name）
  4. name
  5. id（自動生成 id は除外）
  6. placeholder
  7. 構造 CSS（常に末尾に付与）
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from bs4 import Tag

from e2erec.dom import elements as dom
from e2erec.export.selector import build_structural_selector, css_escape
from e2erec.export.types import SelectorStrategy, SmartSelector

logger = logging.getLogger(__name__)

_TEST_ID_ATTRS = ("data-testid", "data-test-id", "data-cy", "data-test")

# フレームワークが自動生成する id（:r0:, react-xxx1, ember12 等）
_AUTO_ID = re.compile(r"^:r\d|^(react|ember|ng-|js-)[\w-]*\d", re.IGNORECASE)


# ---------------------------------------------------------------------------
# 個別の抽出方式
# ---------------------------------------------------------------------------

def _try_data_test_id(el: Tag) -> Optional[SmartSelector]:
    for attr in _TEST_ID_ATTRS:
        value = dom.get_attribute(el, attr)
        if value:
            return SmartSelector(
                strategy=SelectorStrategy.DATA_TESTID,
                value=f'[{attr}="{css_escape(value)}"]',
                description=f'{attr}="{value}"',
            )
    return None


def _try_aria_label(el: Tag) -> Optional[SmartSelector]:
    label = dom.get_attribute(el, "aria-label")
    if label:
        return SmartSelector(
            strategy=SelectorStrategy.ARIA_LABEL,
            value=f'[aria-label="{css_escape(label)}"]',
            description=f'aria-label="{label}"',
        )

    labelled_by = dom.get_attribute(el, "aria-labelledby")
    if labelled_by:
        ref = dom.find_by_id(el, labelled_by)
        text = dom.text_content(ref).strip() if ref is not None else ""
        if text:
            return SmartSelector(
                strategy=SelectorStrategy.ARIA_LABEL,
                value=f'[aria-labelledby="{css_escape(labelled_by)}"]',
                description=f'aria-labelledby → "{text}"',
            )
    return None


def _try_role(el: Tag) -> Optional[SmartSelector]:
    role = dom.get_attribute(el, "role")
    if not role:
        return None

    name = dom.get_attribute(el, "aria-label") or dom.get_attribute(el, "name") or ""
    if name:
        return SmartSelector(
            strategy=SelectorStrategy.ROLE,
            value=f'[role="{css_escape(role)}"][aria-label="{css_escape(name)}"]',
            description=f'role="{role}" name="{name}"',
        )
    return SmartSelector(
        strategy=SelectorStrategy.ROLE,
        value=f'[role="{css_escape(role)}"]',
        description=f'role="{role}"',
    )


def _try_name(el: Tag) -> Optional[SmartSelector]:
    name = dom.get_attribute(el, "name")
    if not name:
        return None
    return SmartSelector(
        strategy=SelectorStrategy.NAME,
        value=f'{dom.tag_name(el)}[name="{css_escape(name)}"]',
        description=f'name="{name}"',
    )


def _try_id(el: Tag) -> Optional[SmartSelector]:
    ident = dom.element_id(el)
    if not ident or _AUTO_ID.search(ident):
        return None
    return SmartSelector(
        strategy=SelectorStrategy.ID,
        value=f"#{css_escape(ident)}",
        description=f'id="{ident}"',
    )


def _try_placeholder(el: Tag) -> Optional[SmartSelector]:
    placeholder = dom.get_attribute(el, "placeholder")
    if not placeholder:
        return None
    return SmartSelector(
        strategy=SelectorStrategy.PLACEHOLDER,
        value=f'{dom.tag_name(el)}[placeholder="{css_escape(placeholder)}"]',
        description=f'placeholder="{placeholder}"',
    )


def _fallback_css(el: Tag) -> SmartSelector:
    ident = dom.element_id(el)
    if ident:
        return SmartSelector(strategy=SelectorStrategy.CSS, value=f"#{css_escape(ident)}")
    return SmartSelector(
        strategy=SelectorStrategy.CSS,
        value=build_structural_selector(el),
        description="CSS fallback",
    )


_STRATEGIES: tuple[Callable[[Tag], Optional[SmartSelector]], ...] = (
    _try_data_test_id,
    _try_aria_label,
    _try_role,
    _try_name,
    _try_id,
    _try_placeholder,
)


# ---------------------------------------------------------------------------
# パブリック API
# ---------------------------------------------------------------------------

def extract_smart_selectors(el: Tag) -> list[SmartSelector]:
    """要素のスマートセレクタを優先度順に返す。

    値が重複する候補は先に見つかったものだけを残す。
    構造 CSS のフォールバックは常に含まれる。

    Args:
        el: 対象要素

    Returns:
        1 件以上の SmartSelector リスト
    """
    selectors: list[SmartSelector] = []
    seen: set[str] = set()

    for strategy in _STRATEGIES:
        result = strategy(el)
        if result is not None and result.value not in seen:
            seen.add(result.value)
            selectors.append(result)

    fallback = _fallback_css(el)
    if fallback.value not in seen:
        selectors.append(fallback)

    return selectors


def pick_best_selector(selectors: Optional[list[SmartSelector]], fallback: str) -> str:
    """最優先の候補の値を返す。候補がなければ fallback を返す。"""
    if not selectors:
        return fallback
    return selectors[0].value
