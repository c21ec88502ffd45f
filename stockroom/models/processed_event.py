from tortoise import fields, models
import uuid


class ProcessedEvent(models.Model):
    """
    Idempotency table for the notification consumers. Stores the UUID of an
    OutboxEvent once its delivery succeeded so a retried poll skips it.
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    event_id = fields.CharField(max_length=128, unique=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "processed_events"
