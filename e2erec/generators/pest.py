"""
Pest（Laravel Dusk）ジェネレーター

$browser のメソッドチェーンとして 1 行 1 操作で出力する。
Dusk の待機は秒単位のため、タイムアウトは秒に丸める。
"""

from __future__ import annotations

from typing import Optional

from e2erec.export.types import (
    AssertionType,
    CapturedAction,
    E2EAssertion,
    GenerateOptions,
    RecordedStep,
    RecordedStepType,
)

from .base import (
    NEGATIVE_TEST_NAME,
    ScriptGenerator,
    comment_text,
    describe_response,
    escape_php_string,
    round_half_up,
)

DEFAULT_TOAST_SELECTOR = "[role='alert']"

_PREAMBLE = ["<?php", "", "use Laravel\\Dusk\\Browser;", ""]


def _seconds(ms: int) -> int:
    return round_half_up(ms / 1000)


class PestGenerator(ScriptGenerator):
    """Pest + Laravel Dusk 形式のテストを生成する。"""

    name = "pest"
    display_name = "Pest (Laravel Dusk)"
    indent = " " * 12
    trailing_separator = " "
    escape = staticmethod(escape_php_string)

    def navigate(self, url: str) -> str:
        return f"->visit('{url}')"

    def interaction(self, kind: str, selector: str, value: str) -> str:
        if kind == "fill":
            return f"->type('{selector}', '{value}')"
        if kind == "select":
            return f"->select('{selector}', '{value}')"
        if kind == "check":
            return f"->check('{selector}')"
        if kind == "radio":
            return f"->radio('{selector}', '{value}')"
        if kind == "uncheck":
            return f"->uncheck('{selector}')"
        if kind == "clear":
            return f"->clear('{selector}')"
        if kind == "hover":
            return f"->mouseover('{selector}')"
        return f"->click('{selector}')"

    def press_key(self, key: str, selector: str) -> str:
        return f"->keys('{selector or 'body'}', '{{{key.lower()}}}')"

    def wait(self, step: RecordedStep, selector: str) -> list[str]:
        if step.type == RecordedStepType.WAIT_FOR_ELEMENT:
            return [f"->waitFor('{selector}', {_seconds(step.wait_timeout or 5000)})"]
        if step.type == RecordedStepType.WAIT_FOR_HIDDEN:
            return [f"->waitUntilMissing('{selector}', {_seconds(step.wait_timeout or 10000)})"]
        if step.type == RecordedStepType.WAIT_FOR_URL:
            return [f"->waitForLocation('{self.escape(step.url or step.value or '')}')"]
        return ["->pause(1000)"]

    def scroll(self, x: int, y: int) -> str:
        return f"->script('window.scrollTo({x}, {y})')"

    def pause(self, delta: int) -> list[str]:
        return [f"->pause({delta}) // User paused for ~{_seconds(delta)}s"]

    def required_check(self, selector: str) -> str:
        return f"->assertAttribute('{selector}', 'required', '')"

    def assertion(self, assertion: E2EAssertion) -> list[str]:
        selector = self.escape(assertion.selector or "")
        expected = self.escape(assertion.expected or "")
        kind = assertion.type

        if kind == AssertionType.URL_CHANGED:
            return [f"->assertUrlIsNot('{expected}')"]
        if kind in (AssertionType.URL_CONTAINS, AssertionType.REDIRECT):
            return [f"->assertPathContains('{expected}')"]
        if kind == AssertionType.VISIBLE_TEXT:
            if not assertion.expected:
                return ["// Expect visible validation feedback"]
            return [f"->assertSee('{expected}')"]
        if kind == AssertionType.ELEMENT_HIDDEN:
            return [f"->assertMissing('{selector}')"]
        if kind == AssertionType.TOAST_MESSAGE:
            toast = self.escape(assertion.selector or DEFAULT_TOAST_SELECTOR)
            return [f"->assertVisible('{toast}')"]
        if kind == AssertionType.FIELD_VALUE:
            return [f"->assertInputValue('{selector}', '{expected}')"]
        if kind == AssertionType.RESPONSE_OK:
            description, _, status = describe_response(assertion)
            return [
                f"// HTTP response assertion: {description}",
                f"// $browser->assertStatus({status}); // use after visiting the response URL directly",
            ]
        return [f"->assertVisible('{selector}')"]

    def _test_block(self, name: str, chain: list[str]) -> list[str]:
        return [
            f"test('{name}', function () {{",
            "    $this->browse(function (Browser $browser) {",
            "        $browser",
            *chain,
            "        ;",
            "    });",
            "});",
        ]

    def document(
        self,
        body: list[str],
        negative: Optional[list[str]],
        actions: list[CapturedAction],
        opts: GenerateOptions,
        recording: bool,
    ) -> list[str]:
        lines = list(_PREAMBLE)
        if opts.test_description:
            lines.append(f"// {comment_text(opts.test_description)}")
        lines.extend(self._test_block(self.escape(opts.test_name), body))
        if negative is not None:
            lines.append("")
            lines.extend(self._test_block(NEGATIVE_TEST_NAME, negative))
        return lines
