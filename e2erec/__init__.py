"""
e2erec — ページ操作の記録から E2E テストスクリプトを生成するライブラリ

主な構成:
  - dom: BeautifulSoup ベースの DOM モデル（イベント・通信・変更監視）
  - recorder: 記録セッション（ActionRecorder）と通信・DOM 変更の監視
  - export: セレクタ・ラベル・アサーションの抽出と型定義
  - generators: Playwright / Cypress / Pest / Playwright (Python) のスクリプト生成
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
