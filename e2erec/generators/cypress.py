"""
Cypress ジェネレーター

describe ブロックの中に it ブロックを出力する。
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

from .base import NEGATIVE_TEST_NAME, ScriptGenerator, comment_text, describe_response, round_half_up

DEFAULT_TOAST_SELECTOR = "[role='alert']"


class CypressGenerator(ScriptGenerator):
    """Cypress 形式のテストを生成する。"""

    name = "cypress"
    display_name = "Cypress"
    indent = "    "

    def navigate(self, url: str) -> str:
        return f"cy.visit('{url}');"

    def interaction(self, kind: str, selector: str, value: str) -> str:
        target = f"cy.get('{selector}')"
        if kind == "fill":
            return f"{target}.clear().type('{value}');"
        if kind == "select":
            return f"{target}.select('{value}');"
        if kind in ("check", "radio"):
            return f"{target}.check();"
        if kind == "uncheck":
            return f"{target}.uncheck();"
        if kind == "clear":
            return f"{target}.clear();"
        if kind == "hover":
            return f"{target}.trigger('mouseover');"
        return f"{target}.click();"

    def press_key(self, key: str, selector: str) -> str:
        return f"cy.get('body').type('{{{key.lower()}}}');"

    def wait(self, step: RecordedStep, selector: str) -> list[str]:
        if step.type == RecordedStepType.WAIT_FOR_ELEMENT:
            timeout = step.wait_timeout or 5000
            return [f"cy.get('{selector}', {{ timeout: {timeout} }}).should('be.visible');"]
        if step.type == RecordedStepType.WAIT_FOR_HIDDEN:
            timeout = step.wait_timeout or 10000
            return [f"cy.get('{selector}', {{ timeout: {timeout} }}).should('not.exist');"]
        if step.type == RecordedStepType.WAIT_FOR_URL:
            return [f"cy.url().should('include', '{self.escape(step.url or step.value or '')}');"]
        return ["cy.intercept('**').as('requests');", "cy.wait('@requests');"]

    def scroll(self, x: int, y: int) -> str:
        return f"cy.scrollTo({x}, {y});"

    def pause(self, delta: int) -> list[str]:
        return [
            f"// User paused for ~{round_half_up(delta / 1000)}s",
            f"cy.wait({delta});",
        ]

    def required_check(self, selector: str) -> str:
        return f"cy.get('{selector}').should('have.attr', 'required');"

    def assertion(self, assertion: E2EAssertion) -> list[str]:
        selector = self.escape(assertion.selector or "")
        expected = self.escape(assertion.expected or "")
        kind = assertion.type

        if kind == AssertionType.URL_CHANGED:
            return [f"cy.url().should('not.eq', '{expected}');"]
        if kind in (AssertionType.URL_CONTAINS, AssertionType.REDIRECT):
            return [f"cy.url().should('include', '{expected}');"]
        if kind == AssertionType.VISIBLE_TEXT:
            if not assertion.expected:
                return ["// Expect visible validation feedback"]
            return [f"cy.contains('{expected}').should('be.visible');"]
        if kind == AssertionType.ELEMENT_HIDDEN:
            return [f"cy.get('{selector}').should('not.be.visible');"]
        if kind == AssertionType.TOAST_MESSAGE:
            toast = self.escape(assertion.selector or DEFAULT_TOAST_SELECTOR)
            return [f"cy.get('{toast}').should('be.visible');"]
        if kind == AssertionType.FIELD_VALUE:
            return [f"cy.get('{selector}').should('have.value', '{expected}');"]
        if kind == AssertionType.RESPONSE_OK:
            description, url, status = describe_response(assertion)
            fragment = self.escape(url.rsplit("/", 1)[-1])
            return [
                f"// HTTP response assertion: {description}",
                "// To assert strictly, add before the submit action:",
                f"//   cy.intercept('*', '*{fragment}*').as('apiRequest');",
                f"//   cy.wait('@apiRequest').its('response.statusCode').should('eq', {status});",
            ]
        return [f"cy.get('{selector}').should('be.visible');"]

    def document(
        self,
        body: list[str],
        negative: Optional[list[str]],
        actions: list[CapturedAction],
        opts: GenerateOptions,
        recording: bool,
    ) -> list[str]:
        title = "should complete recorded flow" if recording else "should fill all fields"
        lines: list[str] = []
        if opts.test_description:
            lines.append(f"// {comment_text(opts.test_description)}")
        lines.extend([
            f"describe('{self.escape(opts.test_name)}', () => {{",
            f"  it('{title}', () => {{",
        ])
        lines.extend(body)
        lines.append("  });")

        if negative is not None:
            lines.extend(["", f"  it('{NEGATIVE_TEST_NAME}', () => {{"])
            lines.extend(negative)
            lines.append("  });")

        lines.append("});")
        return lines
