"""
ジェネレーター基底 — 記録ステップ / アクションからテストスクリプトへの変換

各フレームワークのジェネレーターは ScriptGenerator を継承し、
文（ステートメント）の書式とファイル全体の骨格だけを実装する。
ステップの選別・待機の挿入・Submit コメント・異常系テストの組み立ては
この基底クラスで共通に行う。

すべてのメソッドは入力だけに依存する純粋な変換で、同じ入力に対して
常に同じ文字列を返す。
"""

from __future__ import annotations

import logging
import math
import re
from typing import Optional, Protocol, Sequence, Union

from e2erec.export.smart_selector import pick_best_selector
from e2erec.export.types import (
    ActionLike,
    ActionType,
    AssertionType,
    CapturedAction,
    E2EAssertion,
    GenerateOptions,
    RecordedStep,
    RecordedStepType,
    StepLike,
    coerce_actions,
    coerce_steps,
)

logger = logging.getLogger(__name__)

OptionsLike = Union[GenerateOptions, dict, None]

NEGATIVE_TEST_NAME = "should show validation errors for empty required fields"

_SUBMIT_ACTIONS = frozenset({ActionType.CLICK, ActionType.SUBMIT})
_SUBMIT_STEPS = frozenset({RecordedStepType.CLICK, RecordedStepType.SUBMIT})

# 記録ステップ → アクション（POM・異常系テスト用）
_STEP_TO_ACTION: dict[RecordedStepType, ActionType] = {
    RecordedStepType.FILL: ActionType.FILL,
    RecordedStepType.SELECT: ActionType.SELECT,
    RecordedStepType.CHECK: ActionType.CHECK,
    RecordedStepType.UNCHECK: ActionType.UNCHECK,
    RecordedStepType.CLEAR: ActionType.CLEAR,
    RecordedStepType.CLICK: ActionType.CLICK,
    RecordedStepType.SUBMIT: ActionType.SUBMIT,
}


# ---------------------------------------------------------------------------
# 共通ヘルパー
# ---------------------------------------------------------------------------

_SIMPLE_ESCAPES = {"\\": "\\\\", "'": "\\'", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _escape_char(char: str) -> str:
    simple = _SIMPLE_ESCAPES.get(char)
    if simple is not None:
        return simple
    code = ord(char)
    # 制御文字と行区切り文字は \xHH / \uHHHH で表す
    if code < 0x20 or 0x7F <= code < 0xA0:
        return f"\\x{code:02x}"
    if char in "\u2028\u2029":
        return f"\\u{code:04x}"
    return char


def escape_string(value: str) -> str:
    """シングルクォート文字列リテラル用にエスケープする。

    バックスラッシュと ' に加え、改行・タブ等の制御文字もエスケープし、
    結果が 1 行に収まるようにする。JavaScript / TypeScript と Python で共通に使える。
    """
    return "".join(_escape_char(char) for char in value)


def escape_php_string(value: str) -> str:
    """PHP のシングルクォート文字列用にバックスラッシュと ' だけをエスケープする。

    PHP のシングルクォート文字列は \\n 等を解釈しないため、改行はそのまま残す。
    """
    return value.replace("\\", "\\\\").replace("'", "\\'")


def comment_text(text: str) -> str:
    """行コメントに埋め込めるよう、改行等の非表示文字を空白に置き換える。"""
    return "".join(char if char.isprintable() else " " for char in text)


def resolve_selector(
    item: Union[CapturedAction, RecordedStep], use_smart_selectors: bool,
) -> str:
    """出力に使うセレクタを返す。

    use_smart_selectors が有効で代替セレクタがあれば最優先のものを、
    なければ selector をそのまま返す。
    """
    selector = item.selector or ""
    if use_smart_selectors and item.smart_selectors:
        return pick_best_selector(item.smart_selectors, selector)
    return selector


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def describe_response(assertion: E2EAssertion) -> tuple[str, str, str]:
    """response-ok アサーションの説明・URL・ステータスを返す。"""
    url = assertion.selector or ""
    status = comment_text(assertion.expected or "200")
    description = comment_text(assertion.description or f"{url} → {status}")
    return description, url, status


def is_submit_action(action: CapturedAction) -> bool:
    return action.action_type in _SUBMIT_ACTIONS


def steps_to_actions(steps: Sequence[RecordedStep]) -> list[CapturedAction]:
    """記録ステップのうちフォーム操作をアクションに変換する。

    セレクタのないステップ、および待機・アサーション等は含めない。
    """
    actions: list[CapturedAction] = []
    for step in steps:
        action_type = _STEP_TO_ACTION.get(step.type)
        if action_type is None or not step.selector:
            continue
        actions.append(CapturedAction(
            selector=step.selector,
            value=step.value or "",
            action_type=action_type,
            label=step.label,
            field_type=step.field_type,
            required=step.required,
            smart_selectors=step.smart_selectors,
        ))
    return actions


def to_camel_case(text: str) -> str:
    """ラベルからプロパティ名を作る（例: "First name" → "firstName"）。"""
    joined = re.sub(r"[^a-zA-Z0-9]+(.)", lambda m: m.group(1).upper(), text)
    joined = re.sub(r"^[A-Z]", lambda m: m.group(0).lower(), joined)
    return re.sub(r"[^a-zA-Z0-9]", "", joined)


# ---------------------------------------------------------------------------
# ジェネレーターのインターフェース
# ---------------------------------------------------------------------------

class E2EGenerator(Protocol):
    """フレームワーク別ジェネレーターのインターフェース。"""

    name: str
    display_name: str

    def generate(self, actions: Sequence[ActionLike], options: OptionsLike = None) -> str: ...

    def generate_from_recording(
        self, steps: Sequence[StepLike], options: OptionsLike = None,
    ) -> str: ...


class ScriptGenerator:
    """テンプレートメソッド方式のジェネレーター基底クラス。

    サブクラスは文の書式（interaction, navigate, wait 等）と
    ファイルの骨格（document）を実装する。
    文は字下げなしの文字列で返し、字下げは indent で付与する。

    Attributes:
        name: フレームワーク名（レジストリのキー）
        display_name: 表示名
        indent: テスト本体の字下げ
        comment_prefix: 行コメントの記号
        trailing_separator: 文と行末コメントの区切り
        escape: 文字列リテラルのエスケープ関数
    """

    name = ""
    display_name = ""
    indent = "  "
    comment_prefix = "//"
    trailing_separator = "  "
    escape = staticmethod(escape_string)

    # ------------------------------------------------------------------
    # 公開 API
    # ------------------------------------------------------------------

    def generate(self, actions: Sequence[ActionLike], options: OptionsLike = None) -> str:
        """アクション列からテストスクリプトを生成する。

        入力系のアクションを先に、クリック・送信系を後に出力する。

        Args:
            actions: CapturedAction または同等の辞書のリスト
            options: 生成オプション（モデル・辞書・None）

        Returns:
            テストスクリプトのソース文字列
        """
        opts = GenerateOptions.coerce(options)
        items = coerce_actions(list(actions))
        use_smart = opts.use_smart_selectors

        body = self._opening(opts)
        for action in items:
            if not is_submit_action(action):
                body.extend(self._action_lines(action, use_smart))

        submits = [action for action in items if is_submit_action(action)]
        if submits:
            # 入力系のアクションがあるときだけ区切りを入れる
            if len(submits) < len(items):
                body.extend(["", self.comment("Submit")])
            for action in submits:
                body.extend(self._action_lines(action, use_smart))

        body.extend(self._assertion_block(opts))
        logger.debug("%s: %d アクションからスクリプトを生成", self.name, len(items))
        return self._finish(body, items, opts, recording=False)

    def generate_from_recording(
        self, steps: Sequence[StepLike], options: OptionsLike = None,
    ) -> str:
        """記録ステップ列からテストスクリプトを生成する。

        ステップ間の間隔が min_wait_threshold 以上あれば待機文を挿入する。
        scroll / hover は対応するオプションが有効な場合のみ出力する。

        Args:
            steps: RecordedStep または同等の辞書のリスト
            options: 生成オプション（モデル・辞書・None）

        Returns:
            テストスクリプトのソース文字列
        """
        opts = GenerateOptions.coerce(options)
        items = coerce_steps(list(steps))
        use_smart = opts.use_smart_selectors

        body = self._opening(opts)
        filled = False
        for index, step in enumerate(items):
            if step.type == RecordedStepType.SCROLL and not opts.include_scroll_steps:
                continue
            if step.type == RecordedStepType.HOVER and not opts.include_hover_steps:
                continue
            # 先頭の navigate は page_url の遷移と重複する
            if index == 0 and step.type == RecordedStepType.NAVIGATE and opts.page_url:
                continue

            if index > 0:
                delta = step.timestamp - items[index - 1].timestamp
                if delta >= opts.min_wait_threshold:
                    body.extend(self._indented(self.pause(delta)))

            if step.type in _SUBMIT_STEPS and filled:
                body.append(self.comment("Submit"))
                filled = False
            elif step.type == RecordedStepType.FILL:
                filled = True

            body.extend(self._step_lines(step, use_smart))

        body.extend(self._assertion_block(opts))
        logger.debug("%s: %d ステップからスクリプトを生成", self.name, len(items))
        return self._finish(body, steps_to_actions(items), opts, recording=True)

    # ------------------------------------------------------------------
    # サブクラスが実装する書式
    # ------------------------------------------------------------------

    def navigate(self, url: str) -> str:
        raise NotImplementedError

    def interaction(self, kind: str, selector: str, value: str) -> str:
        """フォーム操作の文を返す。

        kind は fill / select / check / uncheck / radio / click / submit /
        clear / hover のいずれか。selector・value はエスケープ済み。
        """
        raise NotImplementedError

    def press_key(self, key: str, selector: str) -> str:
        raise NotImplementedError

    def wait(self, step: RecordedStep, selector: str) -> list[str]:
        """wait-for-* ステップの文を返す。"""
        raise NotImplementedError

    def scroll(self, x: int, y: int) -> str:
        raise NotImplementedError

    def assertion(self, assertion: E2EAssertion) -> list[str]:
        raise NotImplementedError

    def pause(self, delta: int) -> list[str]:
        raise NotImplementedError

    def required_check(self, selector: str) -> str:
        raise NotImplementedError

    def document(
        self,
        body: list[str],
        negative: Optional[list[str]],
        actions: list[CapturedAction],
        opts: GenerateOptions,
        recording: bool,
    ) -> list[str]:
        """字下げ済みの本体からファイル全体の行を組み立てる。"""
        raise NotImplementedError

    # ------------------------------------------------------------------
    # 共通処理
    # ------------------------------------------------------------------

    def comment(self, text: str) -> str:
        """字下げ付きのコメント行を返す。"""
        return f"{self.indent}{self.comment_prefix} {comment_text(text)}"

    def _indented(self, lines: list[str]) -> list[str]:
        return [f"{self.indent}{line}" if line else line for line in lines]

    def _with_label(self, lines: list[str], label: Optional[str]) -> list[str]:
        lines = self._indented(lines)
        if label and lines:
            comment = f"{self.comment_prefix} {comment_text(label)}"
            lines[-1] = f"{lines[-1]}{self.trailing_separator}{comment}"
        return lines

    def _opening(self, opts: GenerateOptions) -> list[str]:
        if not opts.page_url:
            return []
        return [f"{self.indent}{self.navigate(self.escape(opts.page_url))}", ""]

    def _action_lines(self, action: CapturedAction, use_smart: bool) -> list[str]:
        selector = self.escape(resolve_selector(action, use_smart))
        statement = self.interaction(action.action_type.value, selector, self.escape(action.value))
        return self._with_label([statement], action.label)

    def _step_lines(self, step: RecordedStep, use_smart: bool) -> list[str]:
        selector = self.escape(resolve_selector(step, use_smart))
        kind = step.type

        if kind == RecordedStepType.NAVIGATE:
            lines = [self.navigate(self.escape(step.url or ""))]
        elif kind == RecordedStepType.PRESS_KEY:
            lines = [self.press_key(self.escape(step.key or ""), selector)]
        elif kind in (
            RecordedStepType.WAIT_FOR_ELEMENT,
            RecordedStepType.WAIT_FOR_HIDDEN,
            RecordedStepType.WAIT_FOR_URL,
            RecordedStepType.WAIT_FOR_NETWORK_IDLE,
        ):
            lines = self.wait(step, selector)
        elif kind == RecordedStepType.SCROLL:
            position = step.scroll_position
            lines = [self.scroll(position.x if position else 0, position.y if position else 0)]
        elif kind == RecordedStepType.ASSERT:
            if step.assertion is None:
                lines = [f"{self.comment_prefix} assert"]
            else:
                # アサーションは自身の説明を持つためラベルを付けない
                return self._indented(self.assertion(step.assertion))
        else:
            lines = [self.interaction(kind.value, selector, self.escape(step.value or ""))]

        return self._with_label(lines, step.label)

    def _assertion_block(self, opts: GenerateOptions) -> list[str]:
        if not (opts.include_assertions and opts.assertions):
            return []
        lines = ["", self.comment("Assertions")]
        for assertion in opts.assertions:
            lines.extend(self._indented(self.assertion(assertion)))
        return lines

    def _negative_body(
        self, actions: list[CapturedAction], opts: GenerateOptions,
    ) -> Optional[list[str]]:
        """必須フィールドを空のまま送信する異常系テストの本体を返す。

        必須のアクションがなければ None を返す。
        """
        required = [action for action in actions if action.required]
        if not required:
            return None
        use_smart = opts.use_smart_selectors

        body = self._opening(opts)
        body.append(self.comment("Leave required fields empty and submit"))
        submit = next((action for action in actions if is_submit_action(action)), None)
        if submit is not None:
            selector = self.escape(resolve_selector(submit, use_smart))
            body.append(f"{self.indent}{self.interaction('click', selector, '')}")
        body.append("")

        for assertion in opts.assertions:
            if assertion.type == AssertionType.FIELD_ERROR:
                body.extend(self._indented(self.assertion(assertion)))
        body.append(self.comment("Required fields should show validation"))
        for action in required:
            selector = self.escape(resolve_selector(action, use_smart))
            body.append(f"{self.indent}{self.required_check(selector)}")
        return body

    def _finish(
        self,
        body: list[str],
        actions: list[CapturedAction],
        opts: GenerateOptions,
        recording: bool,
    ) -> str:
        negative = self._negative_body(actions, opts) if opts.include_negative_test else None
        lines = self.document(body, negative, actions, opts, recording)
        return "\n".join(lines) + "\n"
