"""Tests for EventBus."""

import logging

import pytest

from core.event_bus import EventBus
from core.events import InvoiceCreated, InvoicePaid, PaymentRecorded


# =============================================================================
# FIXTURES - lightweight in-memory stubs, no DB needed
# =============================================================================


@pytest.fixture
def _invoice(make_invoice):
    return make_invoice()


# =============================================================================
# SUBSCRIBE AND PUBLISH
# =============================================================================


class TestSubscribeAndPublish:

    def test_single_handler_receives_the_exact_event_object(self, _invoice):
        bus = EventBus()
        received = []
        bus.subscribe("InvoiceCreated", received.append)

        event = InvoiceCreated.create(invoice=_invoice)
        bus.publish(event)

        assert len(received) == 1
        assert received[0] is event

    def test_subscribe_by_class(self, _invoice):
        bus = EventBus()
        received = []
        bus.subscribe(InvoicePaid, received.append)

        bus.publish(InvoicePaid.create(invoice=_invoice))

        assert len(received) == 1

    def test_handlers_called_in_subscription_order(self, _invoice):
        bus = EventBus()
        calls = []
        bus.subscribe(InvoiceCreated, lambda e: calls.append("first"))
        bus.subscribe(InvoiceCreated, lambda e: calls.append("second"))

        bus.publish(InvoiceCreated.create(invoice=_invoice))

        assert calls == ["first", "second"]

    def test_other_event_types_not_delivered(self, _invoice):
        bus = EventBus()
        received = []
        bus.subscribe(PaymentRecorded, received.append)

        bus.publish(InvoiceCreated.create(invoice=_invoice))

        assert received == []

    def test_publish_without_subscribers_is_a_no_op(self, _invoice):
        EventBus().publish(InvoiceCreated.create(invoice=_invoice))


class TestUnsubscribe:

    def test_unsubscribed_handler_no_longer_called(self, _invoice):
        bus = EventBus()
        received = []
        bus.subscribe(InvoiceCreated, received.append)

        assert bus.unsubscribe(InvoiceCreated, received.append) is True
        bus.publish(InvoiceCreated.create(invoice=_invoice))

        assert received == []

    def test_unsubscribe_unknown_handler_returns_false(self):
        assert EventBus().unsubscribe("InvoiceCreated", print) is False


class TestHandlerFailures:

    def test_failing_handler_does_not_stop_others(self, _invoice, caplog):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(InvoiceCreated, broken)
        bus.subscribe(InvoiceCreated, received.append)

        event = InvoiceCreated.create(invoice=_invoice)
        with caplog.at_level(logging.ERROR, logger="core.event_bus"):
            bus.publish(event)

        assert received == [event]
        assert "broken" in caplog.text
        assert event.event_id in caplog.text
