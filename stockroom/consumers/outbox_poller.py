import asyncio
import logging
from stockroom.models.outbox import OutboxEvent
# Import all handler functions
from stockroom.consumers.notification_consumer import (
    handle_daily_summary,
    handle_low_stock_alert,
    handle_movement_record,
)
from stockroom.core.db import init_db
from stockroom.core.config import POLLING_INTERVAL, MAX_ATTEMPTS, BATCH_SIZE

log = logging.getLogger("outbox_poller")

RECORD_EVENTS = {
    "inventory.received.v1",
    "inventory.transferred.v1",
    "inventory.wasted.v1",
    "inventory.audited.v1",
    "inventory.audit_corrected.v1",
    "order.created.v1",
    "order.deleted.v1",
    "purchase_order.received.v1",
}

async def dispatch_event(event: OutboxEvent):
    """
    Routes an OutboxEvent to the handler for its type.
    Stands in for a message broker dispatcher.
    """
    event_type = event.event_type
    event_id = event.id
    payload = event.payload

    log.info(f"Poller DISPATCHING: {event_type} (ID: {event_id.hex[:8]}...)")

    if event_type == "inventory.low_stock_alert.v1":
        await handle_low_stock_alert(payload, event_id)

    elif event_type == "summary.generated.v1":
        await handle_daily_summary(payload, event_id)

    elif event_type in RECORD_EVENTS:
        await handle_movement_record(event_type, payload, event_id)

    else:
        log.warning(f"No handler found for event type: {event_type}")

async def poll_outbox_for_new_events():
    """
    Queries the Outbox table for unpublished events and attempts to dispatch them.
    """
    # Select events that haven't been published and haven't exceeded max attempts
    events = await OutboxEvent.filter(published=False, attempts__lt=MAX_ATTEMPTS).limit(BATCH_SIZE).order_by('created_at')

    if not events:
        return

    for event in events:
        try:
            await dispatch_event(event)

            event.published = True
            await event.save(update_fields=['published'])

        except Exception:
            # Count the failed attempt; the event is retried on the next poll
            event.attempts += 1
            await event.save(update_fields=['attempts'])
            log.exception(f"Dispatch of {event.event_type} failed (attempt {event.attempts}/{MAX_ATTEMPTS})")

async def start_outbox_poller():
    """Main loop for the poller service."""
    await init_db()
    log.info("--- Outbox Poller Service Started ---")

    while True:
        try:
            await poll_outbox_for_new_events()
        except Exception as e:
            log.error(f"Poller encountered a critical DB error: {e}.")

        await asyncio.sleep(POLLING_INTERVAL)

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    try:
        asyncio.run(start_outbox_poller())
    except KeyboardInterrupt:
        log.info("Poller service stopped.")
