"""
EventTarget テスト — リスナーの登録・解除・配送順
"""

from __future__ import annotations

from e2erec.dom.events import DomEvent, EventTarget


class TestEventTarget:
    """add_event_listener / remove_event_listener / dispatch_event のテスト。"""

    def test_capture_listeners_run_first(self):
        """capture リスナーが bubble リスナーより先に呼ばれること。"""
        target = EventTarget()
        order = []
        target.add_event_listener("click", lambda e: order.append("bubble"))
        target.add_event_listener("click", lambda e: order.append("capture"), True)
        target.dispatch_event(DomEvent(type="click"))
        assert order == ["capture", "bubble"]

    def test_duplicate_registration_ignored(self):
        target = EventTarget()
        calls = []
        target.add_event_listener("input", calls.append)
        target.add_event_listener("input", calls.append)
        target.dispatch_event(DomEvent(type="input"))
        assert len(calls) == 1
        assert target.listener_count("input") == 1

    def test_remove_requires_matching_capture(self):
        """capture フラグが一致しない解除は無視されること。"""
        target = EventTarget()
        calls = []
        target.add_event_listener("input", calls.append, True)
        target.remove_event_listener("input", calls.append, False)
        assert target.listener_count() == 1
        target.remove_event_listener("input", calls.append, True)
        assert target.listener_count() == 0

    def test_target_defaults_to_dispatcher(self):
        target = EventTarget()
        events = []
        target.add_event_listener("x", events.append)
        target.dispatch_event(DomEvent(type="x"))
        assert events[0].target is target

    def test_dispatch_returns_false_when_prevented(self):
        target = EventTarget()
        target.add_event_listener("submit", lambda e: e.prevent_default())
        assert target.dispatch_event(DomEvent(type="submit")) is False
        assert target.dispatch_event(DomEvent(type="other")) is True

    def test_listener_error_does_not_stop_dispatch(self, caplog):
        """リスナーの例外は記録され、後続のリスナーと呼び出し元には伝わらないこと。"""
        target = EventTarget()
        calls = []

        def broken(event):
            raise RuntimeError("boom")

        target.add_event_listener("input", broken)
        target.add_event_listener("input", calls.append)

        assert target.dispatch_event(DomEvent(type="input")) is True
        assert len(calls) == 1
        assert "boom" in caplog.text
