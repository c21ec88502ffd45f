import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from stockroom.consumers import notification_consumer, outbox_poller
from stockroom.testing.testing_mocks import in_transaction

ALERT = {
    "product_id": "paneer",
    "outlet_id": "central",
    "current_stock": "15",
    "threshold": "15",
    "suggested_reorder": "30",
    "severity": "warning",
}


def processed(already: bool):
    query = MagicMock()
    query.exists = AsyncMock(return_value=already)
    return MagicMock(return_value=query)


class TestNotificationConsumer:
    @pytest.mark.asyncio
    async def test_low_stock_alert_is_sent_once(self):
        with patch("stockroom.consumers.notification_consumer.in_transaction", in_transaction), \
                patch("stockroom.consumers.notification_consumer.ProcessedEvent.filter", processed(False)), \
                patch("stockroom.consumers.notification_consumer.ProcessedEvent.create", new_callable=AsyncMock) as mock_create, \
                patch("stockroom.consumers.notification_consumer.notify") as mock_notify:
            event_id = uuid4()
            await notification_consumer.handle_low_stock_alert(ALERT, event_id)

            mock_notify.assert_called_once()
            channel, _, message = mock_notify.call_args.args
            assert channel == "low_stock"
            assert "WARNING" in message and "30" in message
            assert mock_create.call_args.kwargs["event_id"] == str(event_id)

    @pytest.mark.asyncio
    async def test_duplicate_event_is_skipped(self):
        with patch("stockroom.consumers.notification_consumer.ProcessedEvent.filter", processed(True)), \
                patch("stockroom.consumers.notification_consumer.notify") as mock_notify:
            await notification_consumer.handle_low_stock_alert(ALERT, uuid4())
            mock_notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_daily_summary_goes_to_recipients(self):
        summary = {
            "outlet_id": "central",
            "day": "2024-01-10",
            "total_stock_consumed": "4.2",
            "pending_pos": 1,
            "total_wastage_weight": "1",
            "total_wastage_value": "80",
            "hygiene_status": "approved",
            "sent_to": ["owner@example.com"],
        }
        with patch("stockroom.consumers.notification_consumer.in_transaction", in_transaction), \
                patch("stockroom.consumers.notification_consumer.ProcessedEvent.filter", processed(False)), \
                patch("stockroom.consumers.notification_consumer.ProcessedEvent.create", new_callable=AsyncMock), \
                patch("stockroom.consumers.notification_consumer.notify") as mock_notify:
            await notification_consumer.handle_daily_summary(summary, uuid4())

            channel, recipients, message = mock_notify.call_args.args
            assert channel == "daily_summary"
            assert recipients == ["owner@example.com"]
            assert "hygiene approved" in message


def outbox_event(event_type, payload=None):
    event = MagicMock()
    event.id = uuid4()
    event.event_type = event_type
    event.payload = payload or {}
    event.published = False
    event.attempts = 0
    event.save = AsyncMock()
    return event


def pending(events):
    mock_filter = MagicMock()
    mock_filter.return_value.limit.return_value.order_by = AsyncMock(return_value=events)
    return mock_filter


class TestOutboxPoller:
    @pytest.mark.asyncio
    async def test_dispatch_routes_by_event_type(self):
        with patch("stockroom.consumers.outbox_poller.handle_low_stock_alert", new_callable=AsyncMock) as alert, \
                patch("stockroom.consumers.outbox_poller.handle_daily_summary", new_callable=AsyncMock) as summary, \
                patch("stockroom.consumers.outbox_poller.handle_movement_record", new_callable=AsyncMock) as record:
            await outbox_poller.dispatch_event(outbox_event("inventory.low_stock_alert.v1", ALERT))
            await outbox_poller.dispatch_event(outbox_event("summary.generated.v1"))
            await outbox_poller.dispatch_event(outbox_event("order.created.v1"))
            await outbox_poller.dispatch_event(outbox_event("unknown.v1"))

            alert.assert_awaited_once()
            summary.assert_awaited_once()
            assert record.call_args.args[0] == "order.created.v1"

    @pytest.mark.asyncio
    async def test_published_after_successful_dispatch(self):
        event = outbox_event("inventory.received.v1")
        with patch("stockroom.consumers.outbox_poller.OutboxEvent.filter", pending([event])), \
                patch("stockroom.consumers.outbox_poller.dispatch_event", new_callable=AsyncMock):
            await outbox_poller.poll_outbox_for_new_events()

        assert event.published is True
        event.save.assert_awaited_once_with(update_fields=["published"])

    @pytest.mark.asyncio
    async def test_failed_dispatch_counts_attempt(self):
        event = outbox_event("summary.generated.v1")
        with patch("stockroom.consumers.outbox_poller.OutboxEvent.filter", pending([event])), \
                patch("stockroom.consumers.outbox_poller.dispatch_event", AsyncMock(side_effect=RuntimeError("sink down"))):
            await outbox_poller.poll_outbox_for_new_events()

        assert event.published is False
        assert event.attempts == 1
        event.save.assert_awaited_once_with(update_fields=["attempts"])
