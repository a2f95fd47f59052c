"""
リプレイ — イベントスクリプトを DOM モデル上で再生して記録を作る

HTML ページを Window に読み込み、YAML で書かれたイベント列
（入力・クリック・送信・通信・DOM 変更・待ち時間）を VirtualClock 上で
順に再生しながら ActionRecorder で記録する。

イベントスクリプトの例::

    url: https://example.com/signup
    events:
      - type: "#name"
        text: John
      - wait: 600
      - click: "button[type=submit]"
      - fetch: /api/signup
        method: POST
        status: 201
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from e2erec.config import RecorderConfig
from e2erec.dom.document import Window
from e2erec.dom.network import FetchTransport, NetworkError, Request, Response
from e2erec.export.types import CapturedResponse, RecordingSession
from e2erec.recorder.clock import VirtualClock
from e2erec.recorder.session import ActionRecorder
from e2erec.recording_io import read_mapping

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# イベント定義
# ---------------------------------------------------------------------------

class TypeEvent(BaseModel):
    """1 文字ずつ入力するイベント。"""

    type: str = Field(..., description="入力対象のセレクタ")
    text: str = Field(..., description="入力する文字列")
    interval: int = Field(default=50, description="1 文字ごとの間隔（ミリ秒）")


class FillEvent(BaseModel):
    """値を一括で設定するイベント。"""

    fill: str = Field(..., description="入力対象のセレクタ")
    value: str = Field(..., description="設定する値")


class SelectEvent(BaseModel):
    """select の選択肢を変更するイベント。"""

    select: str = Field(..., description="select 要素のセレクタ")
    value: str = Field(..., description="選択する option の値")


class ClickEvent(BaseModel):
    """要素をクリックするイベント。"""

    click: str = Field(..., description="クリック対象のセレクタ")


class PressEvent(BaseModel):
    """キーを押下するイベント。"""

    press: str = Field(..., description="キー押下対象のセレクタ")
    key: str = Field(..., description="キー名（Enter, Tab 等）")


class SubmitEvent(BaseModel):
    """フォームを送信するイベント。"""

    submit: str = Field(..., description="form 要素のセレクタ")


class WaitEvent(BaseModel):
    """時間を進めるイベント。"""

    wait: int = Field(..., ge=0, description="進める時間（ミリ秒）")


class FetchEvent(BaseModel):
    """ページから fetch を呼ぶイベント。status 0 は通信失敗。"""

    fetch: str = Field(..., description="リクエスト URL")
    method: str = Field(default="GET", description="HTTP メソッド")
    status: int = Field(default=200, description="応答ステータス")


class XhrEvent(BaseModel):
    """ページから XMLHttpRequest を送るイベント。status 0 は通信失敗。"""

    xhr: str = Field(..., description="リクエスト URL")
    method: str = Field(default="GET", description="HTTP メソッド")
    status: int = Field(default=200, description="応答ステータス")
    duration: int = Field(default=0, ge=0, description="送信から応答までの時間（ミリ秒）")


class AppendEvent(BaseModel):
    """要素の末尾に HTML 断片を追加するイベント。"""

    append: str = Field(..., description="追加先のセレクタ")
    html: str = Field(..., description="追加する HTML")


class RemoveEvent(BaseModel):
    """要素を取り除くイベント。"""

    remove: str = Field(..., description="削除対象のセレクタ")


class NavigateEvent(BaseModel):
    """別ページへ遷移するイベント。"""

    navigate: str = Field(..., description="遷移先 URL")


class HashEvent(BaseModel):
    """URL ハッシュを変更するイベント。"""

    hash: str = Field(..., description="新しいハッシュ")


class PopStateEvent(BaseModel):
    """履歴移動（戻る/進む）のイベント。"""

    popState: str = Field(..., description="移動後の URL")


class PauseEvent(BaseModel):
    """記録を一時停止するイベント。"""

    pause: bool = Field(..., description="一時停止のマーカー")


class ResumeEvent(BaseModel):
    """記録を再開するイベント。"""

    resume: bool = Field(..., description="再開のマーカー")


ReplayEvent = Union[
    TypeEvent,
    FillEvent,
    SelectEvent,
    ClickEvent,
    PressEvent,
    SubmitEvent,
    WaitEvent,
    FetchEvent,
    XhrEvent,
    AppendEvent,
    RemoveEvent,
    NavigateEvent,
    HashEvent,
    PopStateEvent,
    PauseEvent,
    ResumeEvent,
]

# 判別キー → イベントモデル
_EVENT_MODELS: dict[str, type[BaseModel]] = {
    "type": TypeEvent,
    "fill": FillEvent,
    "select": SelectEvent,
    "click": ClickEvent,
    "press": PressEvent,
    "submit": SubmitEvent,
    "wait": WaitEvent,
    "fetch": FetchEvent,
    "xhr": XhrEvent,
    "append": AppendEvent,
    "remove": RemoveEvent,
    "navigate": NavigateEvent,
    "hash": HashEvent,
    "popState": PopStateEvent,
    "pause": PauseEvent,
    "resume": ResumeEvent,
}


def parse_event(data: Any) -> BaseModel:
    """辞書を判別キーに対応するイベントモデルに変換する。

    Raises:
        ValueError: 判別キーが見つからない場合
    """
    if isinstance(data, BaseModel):
        return data
    if isinstance(data, dict):
        for key, model in _EVENT_MODELS.items():
            if key in data:
                return model.model_validate(data)
    raise ValueError(f"不明なイベントです: {data!r}")


class ReplayScript(BaseModel):
    """イベントスクリプト全体。"""

    url: str = Field(default="about:blank", description="ページの URL")
    start_time: int = Field(default=0, alias="startTime", description="仮想時計の開始時刻（ミリ秒）")
    events: list[ReplayEvent] = Field(default_factory=list, description="再生するイベント")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("events", mode="before")
    @classmethod
    def _parse_events(cls, value: Any) -> Any:
        return [parse_event(item) for item in value or []]


# ---------------------------------------------------------------------------
# 再生
# ---------------------------------------------------------------------------

@dataclass
class ReplayResult:
    """再生結果。"""

    session: RecordingSession
    responses: list[CapturedResponse] = field(default_factory=list)


def _static_transport(status: int) -> FetchTransport:
    async def transport(request: Request) -> Response:
        if status == 0:
            raise NetworkError(f"Failed to fetch: {request.url}")
        return Response(url=request.url, status=status)

    return transport


class Replayer:
    """イベントスクリプトを Window に対して再生する。"""

    def __init__(
        self,
        html: str,
        script: ReplayScript,
        config: Optional[RecorderConfig] = None,
    ) -> None:
        self.script = script
        self.clock = VirtualClock(start=script.start_time)
        self.window = Window(url=script.url, html=html)
        self.recorder = ActionRecorder(self.window, clock=self.clock, config=config)

    def run(self) -> ReplayResult:
        """記録を開始し、全イベントを再生して停止する。"""
        self.recorder.start_recording()
        for index, event in enumerate(self.script.events):
            logger.debug("イベント %d を再生: %r", index, event)
            self._dispatch(event)
        # 保留中のデバウンス・アイドル待機を確定させる
        self.clock.run_all()

        session = self.recorder.stop_recording()
        return ReplayResult(session=session, responses=self.recorder.get_captured_responses())

    def _dispatch(self, event: BaseModel) -> None:
        document = self.window.document

        if isinstance(event, TypeEvent):
            el = document.require(event.type)
            for char in event.text:
                document.type_text(el, char)
                self.clock.advance(event.interval)
        elif isinstance(event, FillEvent):
            document.fill(document.require(event.fill), event.value)
        elif isinstance(event, SelectEvent):
            document.select_option(document.require(event.select), event.value)
        elif isinstance(event, ClickEvent):
            document.click(document.require(event.click))
        elif isinstance(event, PressEvent):
            document.press(document.require(event.press), event.key)
        elif isinstance(event, SubmitEvent):
            document.submit(document.require(event.submit))
        elif isinstance(event, WaitEvent):
            self.clock.advance(event.wait)
        elif isinstance(event, FetchEvent):
            self._fetch(event)
        elif isinstance(event, XhrEvent):
            self._xhr(event)
        elif isinstance(event, AppendEvent):
            parent = document.require(event.append)
            document.append_child(parent, document.create_fragment(event.html))
        elif isinstance(event, RemoveEvent):
            document.remove_element(document.require(event.remove))
        elif isinstance(event, NavigateEvent):
            self.window.navigate(event.navigate)
        elif isinstance(event, HashEvent):
            self.window.set_hash(event.hash)
        elif isinstance(event, PopStateEvent):
            self.window.pop_state(event.popState)
        elif isinstance(event, PauseEvent):
            self.recorder.pause_recording()
        elif isinstance(event, ResumeEvent):
            self.recorder.resume_recording()

    def _fetch(self, event: FetchEvent) -> None:
        self.window.fetch_transport = _static_transport(event.status)
        try:
            asyncio.run(self.window.fetch(event.fetch, {"method": event.method}))
        except NetworkError as e:
            # ページ側の通信失敗として扱う
            logger.debug("fetch が失敗しました: %s", e)

    def _xhr(self, event: XhrEvent) -> None:
        xhr = self.window.XMLHttpRequest()
        xhr.open(event.method, event.xhr)
        xhr.send()
        if event.duration:
            self.clock.advance(event.duration)
        if event.status == 0:
            xhr.fail()
        else:
            xhr.respond(event.status)


# ---------------------------------------------------------------------------
# ファイル入力
# ---------------------------------------------------------------------------

def load_replay_script(path: Path) -> ReplayScript:
    """イベントスクリプトの YAML を読み込む。

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: 構文エラーまたはスキーマ検証エラーの場合
    """
    data = read_mapping(path)
    try:
        return ReplayScript.model_validate(data)
    except PydanticValidationError as e:
        raise ValueError(f"スキーマ検証エラー: {e}") from e


def replay_file(
    page_path: Path,
    script_path: Path,
    config: Optional[RecorderConfig] = None,
) -> ReplayResult:
    """HTML ファイルとイベントスクリプトから記録を作る。"""
    page_path = Path(page_path)
    if not page_path.exists():
        raise FileNotFoundError(f"ファイルが見つかりません: {page_path}")
    html = page_path.read_text(encoding="utf-8")
    script = load_replay_script(script_path)
    logger.info("リプレイを開始します: %s（%d イベント）", page_path, len(script.events))
    return Replayer(html, script, config).run()
