"""Tests for EventBus."""

import logging

from core.event_bus import EventBus
from core.events import InvoiceArchived, InvoicePaid


class TestEventBus:

    def test_delivers_to_subscribers_of_type(self):
        bus = EventBus()
        received = []
        bus.subscribe("InvoicePaid", received.append)

        event = InvoicePaid.create(invoice=None)
        bus.publish(event)

        assert received == [event]

    def test_ignores_other_types(self):
        bus = EventBus()
        received = []
        bus.subscribe("InvoicePaid", received.append)

        bus.publish(InvoiceArchived.create(invoice=None))

        assert received == []

    def test_calls_handlers_in_subscription_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe("InvoicePaid", lambda e: calls.append("first"))
        bus.subscribe("InvoicePaid", lambda e: calls.append("second"))

        bus.publish(InvoicePaid.create(invoice=None))

        assert calls == ["first", "second"]

    def test_handler_error_is_logged_not_raised(self, caplog):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("renderer down")

        bus.subscribe("InvoicePaid", broken)
        bus.subscribe("InvoicePaid", received.append)

        with caplog.at_level(logging.ERROR, logger="core.event_bus"):
            bus.publish(InvoicePaid.create(invoice=None))

        assert len(received) == 1
        assert "broken" in caplog.text
        assert "renderer down" in caplog.text
