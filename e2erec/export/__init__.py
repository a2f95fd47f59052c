# エクスポートモジュール
# 型定義、セレクタ・ラベル解決、アクション変換、アサーション検出を提供

from .action_capture import build_captured_actions, detect_submit_actions
from .assertions import detect_assertions, detect_negative_assertions
from .labels import DEFAULT_LABEL_STRATEGIES, LabelResult, find_label, find_label_with_strategy
from .selector import build_quick_selector
from .smart_selector import extract_smart_selectors, pick_best_selector
from .types import (
    ActionType,
    AssertionType,
    CapturedAction,
    CapturedResponse,
    E2EAssertion,
    FormField,
    GenerateOptions,
    GenerationResult,
    RecordedStep,
    RecordedStepType,
    RecordingSession,
    RecordingStatus,
    ScrollPosition,
    SelectorStrategy,
    SmartSelector,
)

__all__ = [
    "ActionType",
    "AssertionType",
    "CapturedAction",
    "CapturedResponse",
    "DEFAULT_LABEL_STRATEGIES",
    "E2EAssertion",
    "FormField",
    "GenerateOptions",
    "GenerationResult",
    "LabelResult",
    "RecordedStep",
    "RecordedStepType",
    "RecordingSession",
    "RecordingStatus",
    "ScrollPosition",
    "SelectorStrategy",
    "SmartSelector",
    "build_captured_actions",
    "build_quick_selector",
    "detect_assertions",
    "detect_negative_assertions",
    "detect_submit_actions",
    "extract_smart_selectors",
    "find_label",
    "find_label_with_strategy",
    "pick_best_selector",
]
