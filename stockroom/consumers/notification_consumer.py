import logging
from tortoise.transactions import in_transaction
from stockroom.models.processed_event import ProcessedEvent
from typing import Dict, Any
from uuid import UUID

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("notification_consumer")


def notify(channel: str, recipients, message: str) -> None:
    """Notification sink. Real WhatsApp/e-mail delivery is plugged in here."""
    log.info(f"[{channel}] to {', '.join(recipients) or 'dashboard'}: {message}")


async def _already_processed(event_id_str: str) -> bool:
    if await ProcessedEvent.filter(event_id=event_id_str).exists():
        log.info(f"Idempotency: Event {event_id_str} already processed.")
        return True
    return False


async def handle_low_stock_alert(event_payload: Dict[str, Any], event_id: UUID):
    """
    Consumer logic for 'inventory.low_stock_alert.v1'.
    Sends one push/e-mail alert per event, at most once.
    """
    event_id_str = str(event_id)
    if await _already_processed(event_id_str):
        return

    async with in_transaction() as conn:
        severity = event_payload.get("severity", "warning").upper()
        notify(
            "low_stock",
            [],
            f"{severity}: product {event_payload.get('product_id')} at outlet {event_payload.get('outlet_id')} "
            f"has {event_payload.get('current_stock')} left (threshold {event_payload.get('threshold')}). "
            f"Suggested reorder: {event_payload.get('suggested_reorder')}",
        )
        await ProcessedEvent.create(event_id=event_id_str, using_db=conn)


async def handle_daily_summary(event_payload: Dict[str, Any], event_id: UUID):
    """
    Consumer logic for 'summary.generated.v1'.
    Delivers the outlet's daily summary to its recipients, at most once.
    """
    event_id_str = str(event_id)
    if await _already_processed(event_id_str):
        return

    async with in_transaction() as conn:
        notify(
            "daily_summary",
            event_payload.get("sent_to", []),
            f"Outlet {event_payload.get('outlet_id')} on {event_payload.get('day')}: "
            f"consumed {event_payload.get('total_stock_consumed')}, "
            f"pending POs {event_payload.get('pending_pos')}, "
            f"wastage {event_payload.get('total_wastage_weight')} worth {event_payload.get('total_wastage_value')}, "
            f"hygiene {event_payload.get('hygiene_status')}",
        )
        await ProcessedEvent.create(event_id=event_id_str, using_db=conn)


async def handle_movement_record(event_type: str, event_payload: Dict[str, Any], event_id: UUID):
    """
    Movement records (receipts, transfers, wastage, audits, orders) are handed
    to the sheet-sync/export collaborator. Nothing to deliver in-process.
    """
    log.info(f"Record {event_type} ready for export: {event_payload.get('id')}")
