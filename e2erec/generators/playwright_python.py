"""
Playwright for Python（pytest-playwright）ジェネレーター

pytest-playwright の page フィクスチャを受け取るテスト関数として出力する。
テスト名はテスト関数名（test_ + スネークケース）に変換する。
"""

from __future__ import annotations

import re
from typing import Optional

from e2erec.export.types import (
    AssertionType,
    CapturedAction,
    E2EAssertion,
    GenerateOptions,
    RecordedStep,
    RecordedStepType,
)

from .base import NEGATIVE_TEST_NAME, ScriptGenerator, comment_text, describe_response, round_half_up

DEFAULT_TOAST_SELECTOR = "[role='alert']"

_PREAMBLE = ["import re", "", "from playwright.sync_api import Page, expect"]


def to_test_function_name(name: str) -> str:
    """テスト名から pytest が収集できる関数名を作る。"""
    slug = re.sub(r"\W+", "_", name.strip().lower(), flags=re.ASCII).strip("_")
    return f"test_{slug or 'recorded_flow'}"


class PlaywrightPythonGenerator(ScriptGenerator):
    """pytest-playwright 形式のテストを生成する。"""

    name = "playwright-python"
    display_name = "Playwright (Python)"
    indent = "    "
    comment_prefix = "#"

    def navigate(self, url: str) -> str:
        return f"page.goto('{url}')"

    def interaction(self, kind: str, selector: str, value: str) -> str:
        locator = f"page.locator('{selector}')"
        if kind == "fill":
            return f"{locator}.fill('{value}')"
        if kind == "select":
            return f"{locator}.select_option('{value}')"
        if kind in ("check", "radio"):
            return f"{locator}.check()"
        if kind == "uncheck":
            return f"{locator}.uncheck()"
        if kind == "clear":
            return f"{locator}.clear()"
        if kind == "hover":
            return f"{locator}.hover()"
        return f"{locator}.click()"

    def press_key(self, key: str, selector: str) -> str:
        return f"page.keyboard.press('{key}')"

    def wait(self, step: RecordedStep, selector: str) -> list[str]:
        if step.type == RecordedStepType.WAIT_FOR_ELEMENT:
            timeout = step.wait_timeout or 5000
            return [f"page.locator('{selector}').wait_for(state='visible', timeout={timeout})"]
        if step.type == RecordedStepType.WAIT_FOR_HIDDEN:
            timeout = step.wait_timeout or 10000
            return [f"page.locator('{selector}').wait_for(state='hidden', timeout={timeout})"]
        if step.type == RecordedStepType.WAIT_FOR_URL:
            return [f"page.wait_for_url('{self.escape(step.url or step.value or '')}')"]
        return ["page.wait_for_load_state('networkidle')"]

    def scroll(self, x: int, y: int) -> str:
        return f"page.evaluate('window.scrollTo({x}, {y})')"

    def pause(self, delta: int) -> list[str]:
        return [
            f"# User paused for ~{round_half_up(delta / 1000)}s",
            f"page.wait_for_timeout({delta})",
        ]

    def required_check(self, selector: str) -> str:
        return f"expect(page.locator('{selector}')).to_have_attribute('required', '')"

    def assertion(self, assertion: E2EAssertion) -> list[str]:
        selector = self.escape(assertion.selector or "")
        expected = self.escape(assertion.expected or "")
        kind = assertion.type

        if kind == AssertionType.URL_CHANGED:
            return [f"expect(page).not_to_have_url('{expected}')"]
        if kind in (AssertionType.URL_CONTAINS, AssertionType.REDIRECT):
            return [f"expect(page).to_have_url(re.compile('{expected}'))"]
        if kind == AssertionType.VISIBLE_TEXT:
            if not assertion.expected:
                return ["# Expect visible validation feedback"]
            return [f"expect(page.get_by_text('{expected}')).to_be_visible()"]
        if kind == AssertionType.ELEMENT_HIDDEN:
            return [f"expect(page.locator('{selector}')).to_be_hidden()"]
        if kind == AssertionType.TOAST_MESSAGE:
            toast = self.escape(assertion.selector or DEFAULT_TOAST_SELECTOR)
            return [f"expect(page.locator('{toast}')).to_be_visible()"]
        if kind == AssertionType.FIELD_VALUE:
            return [f"expect(page.locator('{selector}')).to_have_value('{expected}')"]
        if kind == AssertionType.RESPONSE_OK:
            description, url, status = describe_response(assertion)
            fragment = self.escape(url.rsplit("/", 1)[-1])
            return [
                f"# HTTP response assertion: {description}",
                "# To assert strictly, wrap the submit action:",
                f"#   with page.expect_response(lambda r: '{fragment}' in r.url) as info:",
                "#       ...",
                f"#   assert info.value.status == {status}",
            ]
        return [f"expect(page.locator('{selector}')).to_be_visible()"]

    def _test_function(self, name: str, body: list[str], description: Optional[str] = None) -> list[str]:
        lines = ["", ""]
        if description:
            lines.append(f"# {comment_text(description)}")
        lines.append(f"def {to_test_function_name(name)}(page: Page) -> None:")
        lines.extend(body)
        # コメントだけの本体は構文エラーになる
        if not any(line.strip() and not line.strip().startswith("#") for line in body):
            lines.append(f"{self.indent}pass")
        return lines

    def document(
        self,
        body: list[str],
        negative: Optional[list[str]],
        actions: list[CapturedAction],
        opts: GenerateOptions,
        recording: bool,
    ) -> list[str]:
        lines = list(_PREAMBLE)
        lines.extend(self._test_function(opts.test_name, body, opts.test_description))
        if negative is not None:
            lines.extend(self._test_function(NEGATIVE_TEST_NAME, negative))
        return lines
