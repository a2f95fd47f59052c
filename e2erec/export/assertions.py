"""
アサーション検出 — ページ構造から生成スクリプト用のアサーション候補を作る

  - 送信アクションあり → URL が変わること
  - 成功メッセージのコンテナ → 表示されること
  - form の action 属性 → リダイレクトすること
  - 必須フィールド → 空送信でエラーが表示されること（異常系）
"""

from __future__ import annotations

from typing import Any

from e2erec.dom import elements as dom
from e2erec.dom.document import tree_root
from e2erec.export.types import ActionType, AssertionType, CapturedAction, E2EAssertion

SUCCESS_SELECTORS: tuple[str, ...] = (
    ".alert-success",
    ".toast-success",
    ".notification-success",
    "[role='alert']",
    ".success-message",
    ".flash-success",
    ".Toastify__toast--success",
    ".ant-message-success",
    ".MuiAlert-standardSuccess",
)

ERROR_SELECTORS: tuple[str, ...] = (
    ".field-error",
    ".error-message",
    ".invalid-feedback",
    ".form-error",
    "[role='alert']",
    ".ant-form-item-explain-error",
    ".MuiFormHelperText-root.Mui-error",
    ".text-danger",
    ".text-red-500",
)

_SUBMIT_TYPES = (ActionType.CLICK, ActionType.SUBMIT)


def detect_assertions(
    document: Any, actions: list[CapturedAction], page_url: str,
) -> list[E2EAssertion]:
    """送信後の成功判定に使うアサーション候補を返す。

    Args:
        document: Document または bs4 のツリー
        actions: 生成対象のアクション
        page_url: 送信前のページ URL

    Returns:
        アサーション候補（url-changed / element-visible / redirect）
    """
    root = tree_root(document)
    assertions: list[E2EAssertion] = []

    if any(action.action_type in _SUBMIT_TYPES for action in actions):
        assertions.append(E2EAssertion(
            type=AssertionType.URL_CHANGED,
            expected=page_url,
            description="URL should change after form submit",
        ))

    for selector in SUCCESS_SELECTORS:
        if dom.query_selector(root, selector) is not None:
            assertions.append(E2EAssertion(
                type=AssertionType.ELEMENT_VISIBLE,
                selector=selector,
                description=f'Success element "{selector}" should be visible',
            ))
            break

    for form in dom.query_selector_all(root, "form[action]"):
        action = dom.get_attribute(form, "action") or ""
        if action and action != "#" and not action.startswith("javascript:"):
            assertions.append(E2EAssertion(
                type=AssertionType.REDIRECT,
                expected=action,
                description=f"Form should redirect to {action}",
            ))
            break

    return assertions


def detect_negative_assertions(
    document: Any, actions: list[CapturedAction],
) -> list[E2EAssertion]:
    """必須フィールドを空で送信した場合のアサーション候補を返す。

    必須のアクションがなければ空リストを返す。
    """
    if not any(action.required for action in actions):
        return []

    root = tree_root(document)
    assertions: list[E2EAssertion] = []

    for selector in ERROR_SELECTORS:
        if dom.query_selector(root, selector) is not None:
            assertions.append(E2EAssertion(
                type=AssertionType.FIELD_ERROR,
                selector=selector,
                description="Validation error should be visible for empty required fields",
            ))
            break

    assertions.append(E2EAssertion(
        type=AssertionType.VISIBLE_TEXT,
        description="Required field validation should prevent submission",
    ))
    return assertions
