"""
レコーダー設定 — 環境変数からの設定読み込み

記録セッションのデバウンス時間・待機タイムアウト等を制御する。
環境変数 > デフォルト値 の優先順位で適用される。

環境変数一覧:
  E2EREC_INPUT_DEBOUNCE_MS      : テキスト入力のデバウンス時間（デフォルト: 500）
  E2EREC_MUTATION_DEBOUNCE_MS   : DOM 変更のデバウンス時間（デフォルト: 400）
  E2EREC_NETWORK_IDLE_MS        : ネットワークアイドル判定時間（デフォルト: 500）
  E2EREC_ACTION_STALENESS_MS    : 直近ユーザー操作とみなす時間幅（デフォルト: 10000）
  E2EREC_SUBMIT_DEDUPE_MS       : submit 重複抑止時間（デフォルト: 200）
  E2EREC_RESPONSE_ASSERTIONS    : 更新系リクエストの assert ステップ記録（true/false, デフォルト: false）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_INPUT_DEBOUNCE_MS = "E2EREC_INPUT_DEBOUNCE_MS"
_ENV_MUTATION_DEBOUNCE_MS = "E2EREC_MUTATION_DEBOUNCE_MS"
_ENV_NETWORK_IDLE_MS = "E2EREC_NETWORK_IDLE_MS"
_ENV_ACTION_STALENESS_MS = "E2EREC_ACTION_STALENESS_MS"
_ENV_SUBMIT_DEDUPE_MS = "E2EREC_SUBMIT_DEDUPE_MS"
_ENV_RESPONSE_ASSERTIONS = "E2EREC_RESPONSE_ASSERTIONS"

# 記録対象外とする拡張機能 UI のセレクタ
DEFAULT_EXTENSION_UI_SELECTORS: tuple[str, ...] = (
    "#e2erec-field-icon",
    "#e2erec-notification",
    "#e2erec-record-indicator",
    "[id^='e2erec-btn-']",
    "[id^='e2erec-record-']",
    "[data-e2erec-ui]",
    ".e2erec-action-card",
    ".e2erec-record-dialog",
    ".e2erec-record-overlay",
)


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class RecorderConfig:
    """記録セッションの実行時設定。

    Attributes:
        input_debounce_ms: テキスト入力を 1 つの fill にまとめる時間幅
        mutation_debounce_ms: DOM 変更をまとめて処理する時間幅
        network_idle_ms: 新規リクエストが無い状態をアイドルとみなす時間
        action_staleness_ms: この時間より古いユーザー操作はリクエストと無関係とみなす
        submit_dedupe_ms: ボタンクリック直後の submit イベントを重複とみなす時間
        stop_network_window_ms: 停止時に「直近の通信あり」とみなす時間
        wait_element_timeout: wait-for-element ステップのタイムアウト
        wait_hidden_timeout: wait-for-hidden ステップのタイムアウト
        network_idle_timeout: wait-for-network-idle ステップのタイムアウト
        record_response_assertions: 更新系リクエストを response-ok assert として記録するか
        extension_ui_selectors: 記録対象外とする UI 要素のセレクタ
    """

    input_debounce_ms: int = 500
    mutation_debounce_ms: int = 400
    network_idle_ms: int = 500
    action_staleness_ms: int = 10_000
    submit_dedupe_ms: int = 200
    stop_network_window_ms: int = 5_000
    wait_element_timeout: int = 5_000
    wait_hidden_timeout: int = 10_000
    network_idle_timeout: int = 10_000
    record_response_assertions: bool = False
    extension_ui_selectors: tuple[str, ...] = field(
        default_factory=lambda: DEFAULT_EXTENSION_UI_SELECTORS,
    )


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False

    Returns:
        変換結果
    """
    return value.lower() in ("true", "1", "yes")


def _read_int(key: str, default: int) -> int:
    """環境変数から正の整数を読み込む。不正値は警告してデフォルトを返す。"""
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s の値が不正です: %s", key, raw)
        return default
    if value < 0:
        logger.warning("%s に負の値は指定できません: %s", key, raw)
        return default
    return value


def load_config_from_env() -> RecorderConfig:
    """環境変数から RecorderConfig を生成する。

    設定されていない環境変数はデフォルト値を使用する。

    Returns:
        環境変数から読み込んだ設定
    """
    config = RecorderConfig()

    config.input_debounce_ms = _read_int(_ENV_INPUT_DEBOUNCE_MS, config.input_debounce_ms)
    config.mutation_debounce_ms = _read_int(_ENV_MUTATION_DEBOUNCE_MS, config.mutation_debounce_ms)
    config.network_idle_ms = _read_int(_ENV_NETWORK_IDLE_MS, config.network_idle_ms)
    config.action_staleness_ms = _read_int(_ENV_ACTION_STALENESS_MS, config.action_staleness_ms)
    config.submit_dedupe_ms = _read_int(_ENV_SUBMIT_DEDUPE_MS, config.submit_dedupe_ms)

    if _ENV_RESPONSE_ASSERTIONS in os.environ:
        config.record_response_assertions = _parse_bool(os.environ[_ENV_RESPONSE_ASSERTIONS])

    logger.debug("設定を読み込みました: %s", config)
    return config
