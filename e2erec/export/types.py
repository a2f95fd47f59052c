"""
エクスポート型定義 — 記録ステップ・アクション・生成オプションのモデル

記録セッション（RecordingSession / RecordedStep）、フォーム入力の確定結果
（CapturedAction）、およびスクリプト生成オプション（GenerateOptions）の
Pydantic v2 モデルを定義する。

シリアライズ時のキーは camelCase（smartSelectors, waitTimeout 等）。
入力は camelCase / snake_case のどちらでも受け付ける。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# 列挙型
# ---------------------------------------------------------------------------

class RecordingStatus(str, Enum):
    """記録セッションの状態。"""

    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


class RecordedStepType(str, Enum):
    """記録ステップの種別。"""

    NAVIGATE = "navigate"
    FILL = "fill"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    CLICK = "click"
    SUBMIT = "submit"
    PRESS_KEY = "press-key"
    HOVER = "hover"
    CLEAR = "clear"
    SCROLL = "scroll"
    ASSERT = "assert"
    WAIT_FOR_ELEMENT = "wait-for-element"
    WAIT_FOR_HIDDEN = "wait-for-hidden"
    WAIT_FOR_URL = "wait-for-url"
    WAIT_FOR_NETWORK_IDLE = "wait-for-network-idle"


class SelectorStrategy(str, Enum):
    """スマートセレクタの抽出方式。"""

    DATA_TESTID = "data-testid"
    ARIA_LABEL = "aria-label"
    ROLE = "role"
    NAME = "name"
    ID = "id"
    PLACEHOLDER = "placeholder"
    CSS = "css"


class AssertionType(str, Enum):
    """生成スクリプトに出力するアサーションの種別。"""

    URL_CHANGED = "url-changed"
    URL_CONTAINS = "url-contains"
    VISIBLE_TEXT = "visible-text"
    ELEMENT_VISIBLE = "element-visible"
    ELEMENT_HIDDEN = "element-hidden"
    TOAST_MESSAGE = "toast-message"
    FIELD_VALUE = "field-value"
    FIELD_ERROR = "field-error"
    REDIRECT = "redirect"
    RESPONSE_OK = "response-ok"


class ActionType(str, Enum):
    """CapturedAction の操作種別。"""

    FILL = "fill"
    SELECT = "select"
    CHECK = "check"
    UNCHECK = "uncheck"
    RADIO = "radio"
    CLICK = "click"
    SUBMIT = "submit"
    CLEAR = "clear"


# ---------------------------------------------------------------------------
# 共通ベース
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    """camelCase エイリアスで入出力するモデルの基底クラス。"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """camelCase キーの辞書に変換する（None のフィールドは省略）。"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# セレクタ・アサーション
# ---------------------------------------------------------------------------

class SmartSelector(_CamelModel):
    """要素を特定する代替セレクタ（優先度順に並べて使う）。"""

    strategy: SelectorStrategy = Field(..., description="抽出方式")
    value: str = Field(..., description="CSS セレクタ文字列")
    description: Optional[str] = Field(default=None, description="人間向けの説明")


class ScrollPosition(_CamelModel):
    """スクロール位置。"""

    x: int = Field(default=0, description="横方向の位置（px）")
    y: int = Field(default=0, description="縦方向の位置（px）")


class E2EAssertion(_CamelModel):
    """生成スクリプトに出力するアサーション。

    response-ok の場合、selector はリクエスト URL、expected はステータスコード。
    """

    type: AssertionType = Field(..., description="アサーション種別")
    selector: Optional[str] = Field(default=None, description="対象要素のセレクタ")
    expected: Optional[str] = Field(default=None, description="期待値")
    description: Optional[str] = Field(default=None, description="説明")


# ---------------------------------------------------------------------------
# 記録ステップ・セッション
# ---------------------------------------------------------------------------

class RecordedStep(_CamelModel):
    """記録された 1 ステップ。

    type に応じて使用するフィールドが決まる
    （fill / select は value、press-key は key、navigate は url 等）。
    """

    type: RecordedStepType = Field(..., description="ステップ種別")
    timestamp: int = Field(..., description="記録時刻（ミリ秒）")
    selector: Optional[str] = Field(default=None, description="対象要素のセレクタ")
    smart_selectors: Optional[list[SmartSelector]] = Field(
        default=None, description="優先度順の代替セレクタ",
    )
    value: Optional[str] = Field(default=None, description="入力値・選択値")
    label: Optional[str] = Field(default=None, description="人間向けラベル")
    url: Optional[str] = Field(default=None, description="遷移先・待機対象の URL")
    key: Optional[str] = Field(default=None, description="押下キー名")
    wait_timeout: Optional[int] = Field(default=None, description="待機タイムアウト（ミリ秒）")
    scroll_position: Optional[ScrollPosition] = Field(default=None, description="スクロール位置")
    assertion: Optional[E2EAssertion] = Field(default=None, description="assert ステップの内容")
    field_type: Optional[str] = Field(default=None, description="フィールド種別")
    required: Optional[bool] = Field(default=None, description="必須入力フィールドか")


class RecordingSession(_CamelModel):
    """1 回分の記録セッション。"""

    status: RecordingStatus = Field(default=RecordingStatus.RECORDING, description="状態")
    start_url: str = Field(default="", description="記録開始時の URL")
    start_time: int = Field(default=0, description="記録開始時刻（ミリ秒）")
    steps: list[RecordedStep] = Field(default_factory=list, description="記録順のステップ")


class CapturedResponse(_CamelModel):
    """記録中に観測した HTTP 応答（通信失敗時は status 0）。"""

    url: str
    method: str
    status: int
    timestamp: int


# ---------------------------------------------------------------------------
# アクション（記録を経ない生成の入力）
# ---------------------------------------------------------------------------

class CapturedAction(_CamelModel):
    """セレクタ・値・操作種別が確定したフォーム操作。"""

    selector: str = Field(..., description="対象要素のセレクタ")
    value: str = Field(default="", description="入力値")
    action_type: ActionType = Field(..., description="操作種別")
    label: Optional[str] = Field(default=None, description="人間向けラベル")
    field_type: Optional[str] = Field(default=None, description="フィールド種別")
    required: Optional[bool] = Field(default=None, description="必須入力フィールドか")
    smart_selectors: Optional[list[SmartSelector]] = Field(
        default=None, description="優先度順の代替セレクタ",
    )


@dataclass
class FormField:
    """検出済みフォームフィールド（外部の検出処理から渡される）。

    Attributes:
        selector: フィールドのセレクタ
        element: DOM 要素（bs4.Tag）
        label: ラベル
        name: name 属性
        id: id 属性
        field_type: フィールド種別
        required: 必須入力か
    """

    selector: str
    element: Any = None
    label: Optional[str] = None
    name: Optional[str] = None
    id: Optional[str] = None
    field_type: Optional[str] = None
    required: bool = False


@dataclass
class GenerationResult:
    """フィールドに対して決定された入力値（外部の値決定処理から渡される）。"""

    field_selector: str
    value: str
    source: Optional[str] = None


# ---------------------------------------------------------------------------
# 生成オプション
# ---------------------------------------------------------------------------

class GenerateOptions(_CamelModel):
    """スクリプト生成オプション（アクション・記録の両モード共通）。"""

    page_url: Optional[str] = Field(default=None, description="最初に開く URL")
    test_name: str = Field(default="fill form", description="テスト名")
    test_description: Optional[str] = Field(default=None, description="テストの説明")
    use_smart_selectors: bool = Field(default=True, description="代替セレクタを優先するか")
    include_assertions: bool = Field(default=False, description="assertions を出力するか")
    assertions: list[E2EAssertion] = Field(default_factory=list, description="出力するアサーション")
    include_negative_test: bool = Field(default=False, description="必須入力の異常系テストを出力するか")
    include_pom: bool = Field(
        default=False, alias="includePOM", description="Page Object クラスを出力するか",
    )
    min_wait_threshold: int = Field(default=1000, description="明示的な待機を挿入する最小間隔（ミリ秒）")
    include_scroll_steps: bool = Field(default=False, description="scroll ステップを出力するか")
    include_hover_steps: bool = Field(default=False, description="hover ステップを出力するか")

    @classmethod
    def coerce(
        cls, options: Union["GenerateOptions", dict[str, Any], None],
    ) -> "GenerateOptions":
        """GenerateOptions / 辞書 / None のいずれからでもモデルを得る。"""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(options)


StepLike = Union[RecordedStep, dict[str, Any]]
ActionLike = Union[CapturedAction, dict[str, Any]]


def coerce_steps(steps: list[StepLike]) -> list[RecordedStep]:
    """辞書またはモデルのリストを RecordedStep のリストに変換する。"""
    return [
        step if isinstance(step, RecordedStep) else RecordedStep.model_validate(step)
        for step in steps
    ]


def coerce_actions(actions: list[ActionLike]) -> list[CapturedAction]:
    """辞書またはモデルのリストを CapturedAction のリストに変換する。"""
    return [
        action if isinstance(action, CapturedAction) else CapturedAction.model_validate(action)
        for action in actions
    ]
