# 記録モジュール
# 記録セッション、ネットワーク監視、DOM 変更監視、クロック、実ブラウザとの接続を提供

from .clock import AsyncioClock, Clock, Debouncer, VirtualClock, should_flush
from .mutation_watcher import SPINNER_SELECTORS, MutationWatcher
from .network_monitor import NetworkMonitor
from .session import CAPTURED_KEYS, ActionRecorder
from .page_bridge import PageBridge, record_in_browser

__all__ = [
    "ActionRecorder",
    "AsyncioClock",
    "CAPTURED_KEYS",
    "Clock",
    "Debouncer",
    "MutationWatcher",
    "NetworkMonitor",
    "PageBridge",
    "SPINNER_SELECTORS",
    "VirtualClock",
    "record_in_browser",
    "should_flush",
]
