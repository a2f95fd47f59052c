"""
アクション変換 — 検出済みフィールドと入力値から CapturedAction を組み立てる

記録を経ずにスクリプトを生成する場合の入力を作る。
フィールド一覧と値一覧は別々に収集されるため、セレクタで突き合わせ、
対応するフィールドがない値は黙って捨てる。
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from bs4 import Tag

from e2erec.dom import elements as dom
from e2erec.dom.document import tree_root
from e2erec.export.selector import build_quick_selector
from e2erec.export.smart_selector import extract_smart_selectors
from e2erec.export.types import (
    ActionType,
    CapturedAction,
    FormField,
    GenerationResult,
)

logger = logging.getLogger(__name__)

# 送信ボタンらしいテキストのキーワード
SUBMIT_KEYWORDS: tuple[str, ...] = (
    "submit",
    "enviar",
    "salvar",
    "save",
    "send",
    "cadastrar",
    "register",
    "login",
    "entrar",
    "sign",
    "criar",
    "create",
    "confirm",
    "confirmar",
    "next",
    "próximo",
    "continuar",
    "continue",
)


def _resolve_action_type(field: FormField) -> ActionType:
    el = field.element
    if not dom.is_element(el):
        return ActionType.FILL

    name = dom.tag_name(el)
    if name == "select":
        return ActionType.SELECT
    if name == "input":
        kind = dom.input_type(el)
        if kind == "checkbox":
            return ActionType.CHECK if dom.is_checked(el) else ActionType.UNCHECK
        if kind == "radio":
            return ActionType.RADIO
        if kind == "submit":
            return ActionType.SUBMIT
    if name == "button" and dom.input_type(el) == "submit":
        return ActionType.SUBMIT
    return ActionType.FILL


def _resolve_label(field: FormField) -> Optional[str]:
    return field.label or field.name or field.id or None


def build_captured_actions(
    fields: list[FormField],
    results: list[GenerationResult],
) -> list[CapturedAction]:
    """フィールドと入力値をセレクタで突き合わせ、CapturedAction のリストを返す。

    Args:
        fields: 検出済みフィールド（element 付き）
        results: フィールドごとの入力値

    Returns:
        results の順序に従った CapturedAction のリスト
    """
    by_selector = {field.selector: field for field in fields}
    actions: list[CapturedAction] = []

    for result in results:
        field = by_selector.get(result.field_selector)
        if field is None:
            logger.debug("対応するフィールドがない値を破棄: %s", result.field_selector)
            continue

        smart = extract_smart_selectors(field.element) if dom.is_element(field.element) else []
        actions.append(CapturedAction(
            selector=field.selector,
            smart_selectors=smart,
            value=result.value,
            action_type=_resolve_action_type(field),
            label=_resolve_label(field),
            field_type=field.field_type,
            required=field.required,
        ))

    return actions


def _submit_action(el: Tag, label: str) -> CapturedAction:
    return CapturedAction(
        selector=build_quick_selector(el),
        smart_selectors=extract_smart_selectors(el),
        value="",
        action_type=ActionType.CLICK,
        label=label,
    )


def detect_submit_actions(document: Any) -> list[CapturedAction]:
    """ページ内の送信ボタンを検出し、click アクションとして返す。

    検出対象:
      1. button[type=submit] / input[type=submit]
      2. form 内の type 未指定ボタン、または送信らしいテキストを持つボタン

    Args:
        document: Document または bs4 のツリー

    Returns:
        検出された送信アクション
    """
    root = tree_root(document)
    actions: list[CapturedAction] = []
    seen: set[int] = set()

    for el in dom.query_selector_all(root, 'button[type="submit"], input[type="submit"]'):
        if id(el) in seen:
            continue
        seen.add(id(el))
        if dom.tag_name(el) == "input":
            label = dom.get_attribute(el, "value") or "Submit"
        else:
            label = dom.text_content(el).strip() or "Submit"
        actions.append(_submit_action(el, label))

    for form in dom.query_selector_all(root, "form"):
        for button in dom.query_selector_all(form, "button:not([type]), button[type='submit']"):
            if id(button) in seen:
                continue
            seen.add(id(button))
            label = dom.text_content(button).strip() or "Submit"
            text = label.lower()
            if any(keyword in text for keyword in SUBMIT_KEYWORDS) or not dom.get_attribute(button, "type"):
                actions.append(_submit_action(button, label))

    return actions
