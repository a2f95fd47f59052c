"""
ネットワークプリミティブ — fetch / XMLHttpRequest 相当

ページが外部へ送る HTTP 呼び出しを表現する。実際の通信は行わず、
fetch はトランスポート関数へ委譲し、XMLHttpRequest は
respond() / fail() の呼び出しで完了を表現する。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

logger = logging.getLogger(__name__)


class NetworkError(Exception):
    """通信失敗を表す例外（ブラウザの TypeError: Failed to fetch 相当）。"""


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------

@dataclass
class Request:
    """fetch に渡されるリクエスト。"""

    url: str
    method: str = "GET"
    body: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_args(
        cls, resource: Union[str, "Request"], init: Optional[dict[str, Any]] = None,
    ) -> "Request":
        """fetch(input, init) の引数から Request を組み立てる。"""
        init = init or {}
        if isinstance(resource, Request):
            method = init.get("method", resource.method)
            return cls(
                url=resource.url,
                method=str(method).upper(),
                body=init.get("body", resource.body),
                headers=dict(init.get("headers", resource.headers)),
            )
        return cls(
            url=str(resource),
            method=str(init.get("method", "GET")).upper(),
            body=init.get("body"),
            headers=dict(init.get("headers", {})),
        )


@dataclass
class Response:
    """fetch の応答。"""

    url: str
    status: int = 200
    body: str = ""

    @property
    def ok(self) -> bool:
        """2xx 応答かどうかを返す。"""
        return 200 <= self.status < 300


FetchTransport = Callable[[Request], Awaitable[Response]]


# ---------------------------------------------------------------------------
# XMLHttpRequest
# ---------------------------------------------------------------------------

class XMLHttpRequest:
    """XMLHttpRequest 相当。

    open() / send() の後、respond() または fail() で完了し、
    load / error / loadend リスナーが呼ばれる。
    Window ごとにサブクラスが生成されるため、open / send の差し替えは
    その Window に閉じる。
    """

    UNSENT = 0
    OPENED = 1
    HEADERS_RECEIVED = 2
    DONE = 4

    def __init__(self) -> None:
        self.method: str = ""
        self.url: str = ""
        self.status: int = 0
        self.ready_state: int = self.UNSENT
        self.request_body: Optional[str] = None
        self.response_text: str = ""
        self._listeners: dict[str, list[Callable[[Any], None]]] = {}

    def open(self, method: str, url: str, *args: Any) -> None:
        """リクエストを初期化する。"""
        self.method = method.upper()
        self.url = str(url)
        self.ready_state = self.OPENED

    def send(self, body: Optional[str] = None) -> None:
        """リクエストを送信する（完了は respond / fail で通知される）。"""
        if self.ready_state != self.OPENED:
            raise RuntimeError("XMLHttpRequest は open() 後に send() してください")
        self.request_body = body
        self.ready_state = self.HEADERS_RECEIVED
        logger.debug("XHR 送信: %s %s", self.method, self.url)

    def add_event_listener(self, event_type: str, listener: Callable[[Any], None]) -> None:
        """XHR イベントのリスナーを登録する。"""
        self._listeners.setdefault(event_type, []).append(listener)

    def respond(self, status: int, response_text: str = "") -> None:
        """サーバー応答を受信したものとして完了させる。"""
        self.status = status
        self.response_text = response_text
        self._finish("load")

    def fail(self) -> None:
        """通信失敗として完了させる（status は 0）。"""
        self.status = 0
        self._finish("error")

    def _finish(self, event_type: str) -> None:
        self.ready_state = self.DONE
        for name in (event_type, "loadend"):
            for listener in list(self._listeners.get(name, [])):
                try:
                    listener(self)
                except Exception:
                    logger.exception("XHR の %s リスナーで例外が発生しました", name)
