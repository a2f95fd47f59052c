"""
Playwright（TypeScript, @playwright/test）ジェネレーター

includePOM が有効な場合は、テストの後に Page Object クラスを出力する。
"""

from __future__ import annotations

from typing import Optional

from e2erec.export.types import (
    ActionType,
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
    is_submit_action,
    resolve_selector,
    round_half_up,
    to_camel_case,
)

DEFAULT_TOAST_SELECTOR = "[role='alert']"


class PlaywrightGenerator(ScriptGenerator):
    """@playwright/test 形式のテストを生成する。"""

    name = "playwright"
    display_name = "Playwright"

    def navigate(self, url: str) -> str:
        return f"await page.goto('{url}');"

    def interaction(self, kind: str, selector: str, value: str) -> str:
        locator = f"await page.locator('{selector}')"
        if kind == "fill":
            return f"{locator}.fill('{value}');"
        if kind == "select":
            return f"{locator}.selectOption('{value}');"
        if kind in ("check", "radio"):
            return f"{locator}.check();"
        if kind == "uncheck":
            return f"{locator}.uncheck();"
        if kind == "clear":
            return f"{locator}.clear();"
        if kind == "hover":
            return f"{locator}.hover();"
        return f"{locator}.click();"

    def press_key(self, key: str, selector: str) -> str:
        return f"await page.keyboard.press('{key}');"

    def wait(self, step: RecordedStep, selector: str) -> list[str]:
        if step.type == RecordedStepType.WAIT_FOR_ELEMENT:
            timeout = step.wait_timeout or 5000
            return [f"await page.locator('{selector}').waitFor({{ state: 'visible', timeout: {timeout} }});"]
        if step.type == RecordedStepType.WAIT_FOR_HIDDEN:
            timeout = step.wait_timeout or 10000
            return [f"await page.locator('{selector}').waitFor({{ state: 'hidden', timeout: {timeout} }});"]
        if step.type == RecordedStepType.WAIT_FOR_URL:
            return [f"await page.waitForURL('{self.escape(step.url or step.value or '')}');"]
        return ["await page.waitForLoadState('networkidle');"]

    def scroll(self, x: int, y: int) -> str:
        return f"await page.evaluate(() => window.scrollTo({x}, {y}));"

    def pause(self, delta: int) -> list[str]:
        return [
            f"// User paused for ~{round_half_up(delta / 1000)}s",
            f"await page.waitForTimeout({delta});",
        ]

    def required_check(self, selector: str) -> str:
        return f"await expect(page.locator('{selector}')).toHaveAttribute('required', '');"

    def assertion(self, assertion: E2EAssertion) -> list[str]:
        selector = self.escape(assertion.selector or "")
        expected = self.escape(assertion.expected or "")
        kind = assertion.type

        if kind == AssertionType.URL_CHANGED:
            return [f"await expect(page).not.toHaveURL('{expected}');"]
        if kind in (AssertionType.URL_CONTAINS, AssertionType.REDIRECT):
            return [f"await expect(page).toHaveURL(new RegExp('{expected}'));"]
        if kind == AssertionType.VISIBLE_TEXT:
            if not assertion.expected:
                return ["// Expect visible validation feedback"]
            return [f"await expect(page.getByText('{expected}')).toBeVisible();"]
        if kind == AssertionType.ELEMENT_HIDDEN:
            return [f"await expect(page.locator('{selector}')).toBeHidden();"]
        if kind == AssertionType.TOAST_MESSAGE:
            toast = self.escape(assertion.selector or DEFAULT_TOAST_SELECTOR)
            return [f"await expect(page.locator('{toast}')).toBeVisible();"]
        if kind == AssertionType.FIELD_VALUE:
            return [f"await expect(page.locator('{selector}')).toHaveValue('{expected}');"]
        if kind == AssertionType.RESPONSE_OK:
            description, url, status = describe_response(assertion)
            fragment = self.escape(url.rsplit("/", 1)[-1])
            return [
                f"// HTTP response assertion: {description}",
                "// To assert strictly, wrap the submit action:",
                f"//   const response = await page.waitForResponse((r) => r.url().includes('{fragment}'));",
                f"//   expect(response.status()).toBe({status});",
            ]
        # element-visible / field-error
        return [f"await expect(page.locator('{selector}')).toBeVisible();"]

    def document(
        self,
        body: list[str],
        negative: Optional[list[str]],
        actions: list[CapturedAction],
        opts: GenerateOptions,
        recording: bool,
    ) -> list[str]:
        lines = ["import { test, expect } from '@playwright/test';", ""]
        if opts.test_description:
            lines.append(f"// {comment_text(opts.test_description)}")
        lines.append(f"test('{self.escape(opts.test_name)}', async ({{ page }}) => {{")
        lines.extend(body)
        lines.append("});")

        if negative is not None:
            lines.extend(["", f"test('{NEGATIVE_TEST_NAME}', async ({{ page }}) => {{"])
            lines.extend(negative)
            lines.append("});")

        if opts.include_pom:
            lines.extend(["", "// --- Page Object Model ---"])
            lines.extend(self.page_object(actions, opts.use_smart_selectors))
        return lines

    def page_object(self, actions: list[CapturedAction], use_smart: bool) -> list[str]:
        """フィールドごとのアクセサと fillForm / submit を持つ Page Object を返す。"""
        fields = [action for action in actions if not is_submit_action(action)]
        fills = [action for action in fields if action.action_type == ActionType.FILL]
        submit = next((action for action in actions if is_submit_action(action)), None)

        def prop(action: CapturedAction) -> str:
            return to_camel_case(action.label or action.field_type or "field") or "field"

        lines = [
            "import type { Page } from '@playwright/test';",
            "",
            "export class FormPage {",
            "  constructor(private readonly page: Page) {}",
            "",
        ]
        for action in fields:
            selector = self.escape(resolve_selector(action, use_smart))
            lines.append(f"  get {prop(action)}() {{ return this.page.locator('{selector}'); }}")
        if submit is not None:
            selector = self.escape(resolve_selector(submit, use_smart))
            lines.append(f"  get submitButton() {{ return this.page.locator('{selector}'); }}")

        params = ", ".join(f"{prop(action)}Value: string" for action in fills)
        lines.extend(["", f"  async fillForm({params}) {{"])
        lines.extend(f"    await this.{prop(action)}.fill({prop(action)}Value);" for action in fills)
        lines.append("  }")

        if submit is not None:
            lines.extend([
                "",
                "  async submit() {",
                "    await this.submitButton.click();",
                "  }",
            ])
        lines.append("}")
        return lines
