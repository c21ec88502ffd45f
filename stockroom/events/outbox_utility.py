import logging
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from pydantic import BaseModel
from tortoise.transactions import in_transaction
from stockroom.models.outbox import OutboxEvent

log = logging.getLogger("stockroom.outbox")

# (aggregate_type, aggregate_id, event_type, payload)
EventSpec = Tuple[str, Optional[str], str, Dict[str, Any]]


def record_event(aggregate_type: str, event_type: str, record: BaseModel, aggregate_id: Optional[str] = None) -> EventSpec:
    """Builds an outbox event carrying a JSON-serialisable copy of a record."""
    payload = record.model_dump(mode="json")
    return (aggregate_type, aggregate_id or payload.get("id"), event_type, payload)


async def create_outbox_event(
    aggregate_type: str,
    aggregate_id: Optional[str],
    event_type: str,
    payload: Dict[str, Any],
    conn: Any = None
) -> None:
    """
    Creates a new Outbox event record using the provided database connection (transaction).

    Passing 'conn' writes the event in the caller's transaction.
    """
    await OutboxEvent.create(
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        event_type=event_type,
        payload=payload,
        published=False,
        attempts=0,
        using_db=conn
    )


async def publish_events(events: Iterable[EventSpec]) -> int:
    """Writes every event of one committed operation in a single transaction."""
    events = list(events)
    if not events:
        return 0
    async with in_transaction() as conn:
        for aggregate_type, aggregate_id, event_type, payload in events:
            await create_outbox_event(aggregate_type, aggregate_id, event_type, payload, conn=conn)
    return len(events)


async def publish_or_revert(events: Iterable[EventSpec], revert: Callable[[], None]) -> int:
    """Publishes the events of an in-memory operation, undoing the operation if the write fails.

    The original error is re-raised once ``revert`` has run.
    """
    events = list(events)
    try:
        return await publish_events(events)
    except Exception:
        log.exception(f"Outbox write of {len(events)} events failed, reverting the operation")
        revert()
        raise
