"""
型定義テスト — camelCase 入出力とオプションの正規化
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from e2erec.export.types import (
    CapturedAction,
    GenerateOptions,
    RecordedStep,
    RecordedStepType,
    RecordingSession,
    coerce_steps,
)


class TestRecordedStep:
    """RecordedStep の入出力テスト。"""

    def test_accepts_camel_and_snake_case(self):
        camel = RecordedStep.model_validate({"type": "fill", "timestamp": 1, "waitTimeout": 5})
        snake = RecordedStep(type=RecordedStepType.FILL, timestamp=1, wait_timeout=5)
        assert camel == snake

    def test_to_dict_uses_camel_case_and_omits_none(self):
        step = RecordedStep(
            type=RecordedStepType.WAIT_FOR_ELEMENT, timestamp=10, selector="#a", wait_timeout=5000,
        )
        assert step.to_dict() == {
            "type": "wait-for-element",
            "timestamp": 10,
            "selector": "#a",
            "waitTimeout": 5000,
        }

    def test_numeric_value_is_coerced_to_string(self):
        """YAML で数値として読まれた値も文字列になること。"""
        assert RecordedStep.model_validate({"type": "fill", "timestamp": 0, "value": 42}).value == "42"

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValidationError):
            RecordedStep.model_validate({"type": "teleport", "timestamp": 0})


class TestSession:
    def test_round_trip(self):
        session = RecordingSession(
            start_url="https://example.com",
            steps=[RecordedStep(type=RecordedStepType.NAVIGATE, timestamp=0, url="https://example.com")],
        )
        assert RecordingSession.model_validate(session.to_dict()) == session


class TestGenerateOptions:
    """GenerateOptions.coerce のテスト。"""

    def test_defaults(self):
        opts = GenerateOptions.coerce(None)
        assert opts.test_name == "fill form"
        assert opts.min_wait_threshold == 1000
        assert opts.use_smart_selectors is True

    def test_from_camel_case_dict(self):
        opts = GenerateOptions.coerce({"pageUrl": "https://x", "includePOM": True, "minWaitThreshold": 10})
        assert (opts.page_url, opts.include_pom, opts.min_wait_threshold) == ("https://x", True, 10)

    def test_from_snake_case_dict(self):
        assert GenerateOptions.coerce({"include_pom": True}).include_pom is True

    def test_model_passes_through(self):
        opts = GenerateOptions(test_name="x")
        assert GenerateOptions.coerce(opts) is opts


def test_coerce_steps_mixes_models_and_dicts():
    step = RecordedStep(type=RecordedStepType.CLICK, timestamp=0)
    result = coerce_steps([step, {"type": "submit", "timestamp": 1}])
    assert result[0] is step
    assert result[1].type == RecordedStepType.SUBMIT


def test_action_requires_selector():
    with pytest.raises(ValidationError):
        CapturedAction.model_validate({"actionType": "fill"})
