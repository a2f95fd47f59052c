"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

全テストモジュールで共有するフィクスチャとデータ生成器を提供する。
記録系のテストはすべて VirtualClock 上で動かし、実時間には依存しない。
"""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import strategies as st

from e2erec.config import RecorderConfig
from e2erec.dom.document import Window
from e2erec.dom.network import Request, Response
from e2erec.recorder.clock import VirtualClock
from e2erec.recorder.session import ActionRecorder

# ---------------------------------------------------------------------------
# サンプルページ
# ---------------------------------------------------------------------------

SIGNUP_URL = "https://example.com/signup"

SIGNUP_HTML = """\
<html>
<head><title>Sign up</title></head>
<body>
  <form id="signup" action="/api/signup">
    <label for="name">Full name</label>
    <input id="name" type="text" required>
    <label for="email">Email</label>
    <input id="email" type="email" name="email">
    <select id="plan" name="plan">
      <option value="free">Free</option>
      <option value="pro">Pro</option>
    </select>
    <label><input id="terms" type="checkbox" name="terms"> I agree</label>
    <input type="radio" name="size" value="s" id="size-s">
    <input type="radio" name="size" value="m" id="size-m">
    <textarea id="bio"></textarea>
    <input id="send" type="submit" value="Send">
    <button id="register" type="submit">Register</button>
  </form>
  <a id="help" href="#help">Help</a>
  <div id="content"></div>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """一時ディレクトリを提供する pytest フィクスチャ。"""
    return tmp_path


@pytest.fixture
def clock() -> VirtualClock:
    """時刻 0 から始まる VirtualClock。"""
    return VirtualClock()


@pytest.fixture
def window() -> Window:
    """サインアップフォームを表示した Window。

    fetch は常に 200 を返すトランスポートに接続されている。
    """
    async def transport(request: Request) -> Response:
        return Response(url=request.url, status=200)

    return Window(url=SIGNUP_URL, html=SIGNUP_HTML, fetch_transport=transport)


@pytest.fixture
def config() -> RecorderConfig:
    """デフォルト値の RecorderConfig。"""
    return RecorderConfig()


@pytest.fixture
def recorder(window: Window, clock: VirtualClock, config: RecorderConfig) -> ActionRecorder:
    """window と clock に接続された ActionRecorder（未開始）。"""
    return ActionRecorder(window, clock=clock, config=config)


@pytest.fixture
def recording(recorder: ActionRecorder) -> ActionRecorder:
    """記録を開始済みの ActionRecorder。"""
    recorder.start_recording()
    return recorder


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

def make_typed_text_strategy():
    """フィールドに入力するテキスト（1〜20 文字の英数字・記号）を生成する。"""
    return st.text(
        alphabet=st.characters(categories=("Lu", "Ll", "Nd"), include_characters=" @.-'"),
        min_size=1,
        max_size=20,
    )


def make_interval_list_strategy(max_interval: int):
    """デバウンス時間幅未満のキー入力間隔のリストを生成する。"""
    return st.lists(st.integers(min_value=0, max_value=max_interval - 1), min_size=1, max_size=15)


def make_selector_strategy():
    """#id 形式のセレクタ文字列を生成する。"""
    return st.from_regex(r"#[a-z][a-z0-9-]{0,15}", fullmatch=True)


def make_action_dict_strategy():
    """CapturedAction 用の辞書（camelCase キー）を生成する。"""
    return st.fixed_dictionaries(
        {
            "selector": make_selector_strategy(),
            "value": st.text(max_size=30),
            "actionType": st.sampled_from(["fill", "select", "check", "uncheck", "click", "submit"]),
        },
        optional={
            "label": st.text(min_size=1, max_size=20),
            "required": st.booleans(),
        },
    )


def make_step_dict_strategy():
    """RecordedStep 用の辞書（camelCase キー）を生成する。"""
    return st.fixed_dictionaries(
        {
            "type": st.sampled_from([
                "navigate", "fill", "select", "check", "click", "submit",
                "press-key", "wait-for-element", "wait-for-url", "wait-for-network-idle",
                "scroll", "hover", "assert",
            ]),
            "timestamp": st.integers(min_value=0, max_value=100_000),
            "selector": make_selector_strategy(),
            "value": st.text(max_size=20),
        },
        optional={
            "url": st.just("https://example.com/next"),
            "key": st.sampled_from(["Enter", "Tab", "Escape"]),
            "label": st.text(min_size=1, max_size=20),
            "required": st.booleans(),
        },
    )
