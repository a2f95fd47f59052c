"""
リプレイテスト — イベントスクリプトの解析と DOM 上での再生
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from conftest import SIGNUP_HTML, SIGNUP_URL
from e2erec.config import RecorderConfig
from e2erec.export.types import RecordingStatus
from e2erec.replay import (
    ClickEvent,
    FetchEvent,
    ReplayScript,
    Replayer,
    TypeEvent,
    WaitEvent,
    load_replay_script,
    parse_event,
    replay_file,
)

SIGNUP_EVENTS = """\
url: https://example.com/signup
events:
  - type: "#name"
    text: John
  - wait: 600
  - click: "#register"
  - fetch: /api/signup
    method: POST
    status: 201
"""


def _types(result) -> list[str]:
    return [step.type.value for step in result.session.steps]


# ===========================================================================
# 1. イベントの解析
# ===========================================================================

class TestParseEvent:
    """判別キーによるイベントモデルの選択テスト。"""

    @pytest.mark.parametrize(
        ("data", "model"),
        [
            ({"type": "#name", "text": "Jo"}, TypeEvent),
            ({"click": "#go"}, ClickEvent),
            ({"wait": 100}, WaitEvent),
            ({"fetch": "/api"}, FetchEvent),
        ],
    )
    def test_discriminator_key(self, data, model):
        assert isinstance(parse_event(data), model)

    def test_defaults(self):
        event = parse_event({"fetch": "/api"})
        assert (event.method, event.status) == ("GET", 200)
        assert parse_event({"type": "#a", "text": "x"}).interval == 50

    def test_unknown_event(self):
        with pytest.raises(ValueError, match="不明なイベントです"):
            parse_event({"teleport": "#a"})

    def test_negative_wait_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"wait": -1})

    def test_script_defaults(self):
        script = ReplayScript.model_validate({})
        assert script.url == "about:blank"
        assert script.start_time == 0
        assert script.events == []

    def test_script_accepts_start_time_alias(self):
        assert ReplayScript.model_validate({"startTime": 1000}).start_time == 1000


# ===========================================================================
# 2. 再生
# ===========================================================================

class TestReplayer:
    """Replayer による記録作成のテスト。"""

    def _run(self, events: list[dict], config: RecorderConfig | None = None):
        script = ReplayScript.model_validate({"url": SIGNUP_URL, "events": events})
        return Replayer(SIGNUP_HTML, script, config).run()

    def test_signup_flow(self):
        result = self._run([
            {"type": "#name", "text": "John"},
            {"wait": 600},
            {"click": "#register"},
            {"fetch": "/api/signup", "method": "POST", "status": 201},
        ])

        assert result.session.status == RecordingStatus.STOPPED
        assert _types(result)[:4] == ["navigate", "fill", "select", "submit"]
        fill = result.session.steps[1]
        assert (fill.selector, fill.value, fill.label) == ("#name", "John", "Full name")
        assert result.session.steps[3].selector == "#register"
        assert [(r.method, r.status) for r in result.responses] == [("POST", 201)]
        assert result.responses[0].url.endswith("/api/signup")

    def test_typing_is_debounced(self):
        result = self._run([{"type": "#email", "text": "a@b.c", "interval": 30}])
        assert _types(result) == ["navigate", "fill"]
        assert result.session.steps[1].value == "a@b.c"

    def test_failed_fetch_is_status_zero(self):
        result = self._run([{"fetch": "/api/down", "status": 0}])
        assert [r.status for r in result.responses] == [0]

    def test_xhr(self):
        result = self._run([{"xhr": "/api/items", "method": "GET", "status": 200, "duration": 120}])
        assert [(r.method, r.status) for r in result.responses] == [("GET", 200)]

    def test_paused_events_are_not_recorded(self):
        result = self._run([
            {"pause": True},
            {"click": "#help"},
            {"resume": True},
            {"select": "#plan", "value": "pro"},
        ])
        assert _types(result) == ["navigate", "select"]
        assert result.session.steps[1].value == "pro"

    def test_start_time(self):
        script = ReplayScript.model_validate({"url": SIGNUP_URL, "startTime": 5000})
        result = Replayer(SIGNUP_HTML, script).run()
        assert result.session.start_time == 5000
        assert result.session.steps[0].timestamp == 5000

    def test_missing_element(self):
        with pytest.raises(LookupError):
            self._run([{"click": "#nowhere"}])


# ===========================================================================
# 3. ファイルからの再生
# ===========================================================================

class TestReplayFile:
    """load_replay_script / replay_file のテスト。"""

    def test_replay_file(self, tmp_dir: Path):
        page = tmp_dir / "page.html"
        page.write_text(SIGNUP_HTML, encoding="utf-8")
        events = tmp_dir / "events.yaml"
        events.write_text(SIGNUP_EVENTS, encoding="utf-8")

        result = replay_file(page, events)
        assert result.session.start_url == SIGNUP_URL
        assert "fill" in _types(result)

    def test_missing_page(self, tmp_dir: Path):
        events = tmp_dir / "events.yaml"
        events.write_text(SIGNUP_EVENTS, encoding="utf-8")
        with pytest.raises(FileNotFoundError):
            replay_file(tmp_dir / "nope.html", events)

    def test_unknown_event_in_file(self, tmp_dir: Path):
        events = tmp_dir / "events.yaml"
        events.write_text("events:\n  - teleport: '#a'\n", encoding="utf-8")
        with pytest.raises(ValueError, match="スキーマ検証エラー"):
            load_replay_script(events)
