"""
記録ファイルの入出力 — RecordingSession / 生成入力の YAML 読み書き

ruamel.yaml を使用して記録セッションを YAML ファイルに書き出し、
CLI の generate コマンドが読む入力ファイル（steps: または actions:）を読み込む。
JSON は YAML のサブセットとして同じローダーで読める。

ファイル上のキーは camelCase（smartSelectors, waitTimeout 等）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from e2erec.export.types import (
    CapturedAction,
    CapturedResponse,
    E2EAssertion,
    RecordedStep,
    RecordingSession,
)

logger = logging.getLogger(__name__)


@dataclass
class GenerationInput:
    """generate コマンドの入力。

    Attributes:
        steps: 記録ステップ（記録モード）
        actions: 確定済みアクション（アクションモード）
        assertions: 出力するアサーション
        start_url: 記録開始時の URL（記録ファイルの場合）
    """

    steps: Optional[list[RecordedStep]] = None
    actions: Optional[list[CapturedAction]] = None
    assertions: list[E2EAssertion] = field(default_factory=list)
    start_url: Optional[str] = None

    @property
    def is_recording(self) -> bool:
        return self.steps is not None


def _new_yaml() -> YAML:
    yaml = YAML()
    yaml.default_flow_style = False
    return yaml


def _to_plain(data: Any) -> Any:
    """ruamel.yaml の CommentedMap/CommentedSeq を通常の dict/list に再帰変換する。"""
    if isinstance(data, dict):
        return {str(key): _to_plain(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_to_plain(item) for item in data]
    return data


def read_mapping(path: Path) -> dict[str, Any]:
    """YAML / JSON ファイルを読み込み、トップレベルのマッピングを返す。

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: 構文エラー、空ファイル、またはトップレベルがマッピングでない場合
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"ファイルが見つかりません: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = _new_yaml().load(f)
    except YAMLError as e:
        line_info = ""
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
        raise ValueError(f"YAML 構文エラー{line_info}: {e}") from e

    if data is None:
        raise ValueError(f"ファイルが空です: {path}")
    data = _to_plain(data)
    if not isinstance(data, dict):
        raise ValueError(f"トップレベルはマッピングである必要があります: {path}")
    return data


# ---------------------------------------------------------------------------
# 書き出し
# ---------------------------------------------------------------------------

def save_recording(
    session: RecordingSession,
    path: Path,
    responses: Optional[Sequence[CapturedResponse]] = None,
) -> Path:
    """記録セッションを YAML ファイルに書き出す。

    Args:
        session: 書き出すセッション
        path: 出力先ファイルパス
        responses: 併せて保存する応答（省略可）

    Returns:
        書き出したファイルのパス
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = session.to_dict()
    if responses:
        data["responses"] = [response.to_dict() for response in responses]

    with open(path, "w", encoding="utf-8") as f:
        _new_yaml().dump(data, f)

    logger.info("記録を保存しました: %s（%d ステップ）", path, len(session.steps))
    return path


# ---------------------------------------------------------------------------
# 読み込み
# ---------------------------------------------------------------------------

def load_recording(path: Path) -> RecordingSession:
    """save_recording() で書き出した YAML を RecordingSession として読み込む。

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: 構文エラーまたはスキーマ検証エラーの場合
    """
    data = read_mapping(path)
    data.pop("responses", None)
    try:
        return RecordingSession.model_validate(data)
    except PydanticValidationError as e:
        raise ValueError(f"スキーマ検証エラー: {e}") from e


def load_generation_input(path: Path) -> GenerationInput:
    """generate コマンドの入力ファイルを読み込む。

    steps: があれば記録モード、なければ actions: のアクションモードとして扱う。

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: 構文エラー、スキーマ検証エラー、または steps / actions がない場合
    """
    data = read_mapping(path)
    if "steps" not in data and "actions" not in data:
        raise ValueError(f"steps または actions が必要です: {path}")

    try:
        assertions = [E2EAssertion.model_validate(item) for item in data.get("assertions") or []]
        if "steps" in data:
            return GenerationInput(
                steps=[RecordedStep.model_validate(item) for item in data["steps"] or []],
                assertions=assertions,
                start_url=data.get("startUrl") or data.get("start_url"),
            )
        return GenerationInput(
            actions=[CapturedAction.model_validate(item) for item in data["actions"] or []],
            assertions=assertions,
        )
    except PydanticValidationError as e:
        raise ValueError(f"スキーマ検証エラー: {e}") from e
