# stockroom/models/__init__.py
from .outbox import OutboxEvent
from .processed_event import ProcessedEvent

# Export all models
__all__ = [
    "OutboxEvent",
    "ProcessedEvent",
]
