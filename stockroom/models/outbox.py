from tortoise import fields, models
import uuid


class OutboxEvent(models.Model):
    """
    Records emitted by committed stock movements (receipts, transfers, wastage,
    audits, orders) plus low-stock alerts and daily summaries, waiting to be
    delivered to external sinks (notifications, sheet sync, exports).
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    aggregate_type = fields.CharField(max_length=64) # e.g., 'inventory', 'order', 'summary'
    aggregate_id = fields.CharField(max_length=64, null=True) # ID of the record that generated the event
    event_type = fields.CharField(max_length=128) # e.g., 'inventory.wasted.v1'
    payload = fields.JSONField() # The record, JSON-serialised
    published = fields.BooleanField(default=False)
    attempts = fields.IntField(default=0)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "outbox_events"
        indexes = [
            ("published", "attempts"),  # Poller scan
        ]
