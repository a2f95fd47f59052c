"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

e2erec コマンドとして以下のサブコマンドを提供する:
  - generate: 記録 / アクションファイルからテストスクリプトを生成
  - record: ブラウザを起動し、ページ操作を記録
  - replay: HTML ページ上でイベントスクリプトを再生して記録を作成
  - list-frameworks: 対応フレームワーク一覧
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from e2erec.config import load_config_from_env
from e2erec.export.types import GenerateOptions
from e2erec.generators import E2E_GENERATORS, get_e2e_generator
from e2erec.recorder.page_bridge import record_in_browser
from e2erec.recording_io import load_generation_input, save_recording
from e2erec.replay import replay_file

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "e2erec — ページ操作の記録から E2E テストスクリプトを生成するツール\n\n"
        "基本の流れ:\n"
        "  1. e2erec record https://example.com/form -o recording.yaml\n"
        "     （または e2erec replay page.html events.yaml -o recording.yaml）\n"
        "  2. e2erec generate recording.yaml -f playwright\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログを出力する"),
) -> None:
    """ログレベルを設定する。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# generate コマンド
# ---------------------------------------------------------------------------

@app.command()
def generate(
    input_file: Path = typer.Argument(..., help="記録（steps:）またはアクション（actions:）の YAML / JSON"),
    framework: str = typer.Option(
        "playwright", "--framework", "-f", help="出力フレームワーク（list-frameworks で一覧）",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="出力先ファイルパス（省略時は標準出力）",
    ),
    page_url: Optional[str] = typer.Option(None, "--page-url", help="最初に開く URL"),
    test_name: str = typer.Option("fill form", "--test-name", help="テスト名"),
    min_wait: int = typer.Option(1000, "--min-wait", help="待機を挿入する最小間隔（ミリ秒）"),
    include_scroll: bool = typer.Option(False, "--include-scroll", help="scroll ステップを出力する"),
    include_hover: bool = typer.Option(False, "--include-hover", help="hover ステップを出力する"),
    no_smart_selectors: bool = typer.Option(
        False, "--no-smart-selectors", help="代替セレクタを使わず記録時のセレクタを使う",
    ),
    negative: bool = typer.Option(False, "--negative", help="必須入力の異常系テストを出力する"),
    pom: bool = typer.Option(False, "--pom", help="Page Object クラスを出力する（playwright のみ）"),
    assertions: bool = typer.Option(False, "--assertions", help="入力ファイルの assertions を出力する"),
) -> None:
    """記録またはアクションのファイルからテストスクリプトを生成する。"""
    generator = get_e2e_generator(framework)
    if generator is None:
        names = ", ".join(g.name for g in E2E_GENERATORS)
        typer.echo(f"エラー: 未対応のフレームワークです: {framework}（対応: {names}）", err=True)
        raise typer.Exit(code=1)

    try:
        data = load_generation_input(input_file)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    options = GenerateOptions(
        page_url=page_url,
        test_name=test_name,
        use_smart_selectors=not no_smart_selectors,
        include_assertions=assertions,
        assertions=data.assertions,
        include_negative_test=negative,
        include_pom=pom,
        min_wait_threshold=min_wait,
        include_scroll_steps=include_scroll,
        include_hover_steps=include_hover,
    )
    if data.is_recording:
        script = generator.generate_from_recording(data.steps, options)
    else:
        script = generator.generate(data.actions or [], options)

    if output is None:
        typer.echo(script, nl=False)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(script, encoding="utf-8")
    logger.info("スクリプトを書き出しました: %s", output)
    typer.echo(f"スクリプトを生成しました: {output}")


# ---------------------------------------------------------------------------
# record コマンド
# ---------------------------------------------------------------------------

@app.command()
def record(
    url: str = typer.Argument(..., help="記録を開始する URL"),
    output: Path = typer.Option(
        Path("recording.yaml"), "--output", "-o", help="記録の出力先",
    ),
    channel: str = typer.Option(
        "chromium", "--channel", help="ブラウザチャンネル（chromium / chrome / msedge）",
    ),
    headless: bool = typer.Option(False, "--headless", help="ヘッドレスで起動する"),
) -> None:
    """ブラウザを起動してページ操作を記録し、YAML に書き出す。

    ページを閉じると記録が終了します。設定は環境変数（E2EREC_*）から読み込みます。
    """
    session, responses = asyncio.run(
        record_in_browser(url, load_config_from_env(), channel=channel, headless=headless),
    )
    if session is None:
        typer.echo("エラー: 記録を開始できませんでした", err=True)
        raise typer.Exit(code=1)

    save_recording(session, output, responses)
    typer.echo(f"記録を保存しました: {output}（{len(session.steps)} ステップ）")


# ---------------------------------------------------------------------------
# replay コマンド
# ---------------------------------------------------------------------------

@app.command()
def replay(
    page: Path = typer.Argument(..., help="記録対象の HTML ファイル"),
    events: Path = typer.Argument(..., help="イベントスクリプトの YAML"),
    output: Path = typer.Option(
        Path("recording.yaml"), "--output", "-o", help="記録の出力先",
    ),
) -> None:
    """HTML ページ上でイベントスクリプトを再生し、記録を YAML に書き出す。

    設定は環境変数（E2EREC_*）から読み込みます。
    """
    try:
        result = replay_file(page, events, load_config_from_env())
        save_recording(result.session, output, result.responses)
    except (FileNotFoundError, ValueError, LookupError) as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"記録を保存しました: {output}（{len(result.session.steps)} ステップ）")


# ---------------------------------------------------------------------------
# list-frameworks コマンド
# ---------------------------------------------------------------------------

@app.command("list-frameworks")
def list_frameworks() -> None:
    """対応フレームワークの一覧を表示する。"""
    for generator in E2E_GENERATORS:
        typer.echo(f"{generator.name:<20} {generator.display_name}")
