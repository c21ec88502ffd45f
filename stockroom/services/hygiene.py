from datetime import date
from typing import Dict, List, Optional

from stockroom.core.config import DEFAULT_HYGIENE_STATUS
from stockroom.core.errors import InvalidStateTransition, UnknownRecord
from stockroom.schemas.hygiene import HygieneLog, HygieneStatus
from stockroom.services.catalog import OutletRegistry
from stockroom.services.ledger import Clock, utcnow


class HygieneLogBook:
    """Kitchen photo uploads and their review outcome."""

    def __init__(self, outlets: OutletRegistry, clock: Clock = utcnow):
        self.outlets = outlets
        self.clock = clock
        self._logs: Dict[str, HygieneLog] = {}

    def add(self, outlet_id: str, photo_url: str, comments: Optional[str] = None) -> HygieneLog:
        self.outlets.get(outlet_id)
        entry = HygieneLog(outlet_id=outlet_id, photo_url=photo_url, comments=comments, created_at=self.clock())
        self._logs[entry.id] = entry
        return entry

    def get(self, log_id: str) -> HygieneLog:
        entry = self._logs.get(log_id)
        if entry is None:
            raise UnknownRecord(log_id)
        return entry

    def review(self, log_id: str, status: HygieneStatus) -> HygieneLog:
        entry = self.get(log_id)
        if status == HygieneStatus.PENDING:
            raise InvalidStateTransition("A review must approve or flag the log.", details={"log_id": log_id})
        reviewed = entry.model_copy(update={"status": status, "reviewed_at": self.clock()})
        self._logs[log_id] = reviewed
        return reviewed

    def list(self, outlet_id: Optional[str] = None) -> List[HygieneLog]:
        return [e for e in self._logs.values() if outlet_id is None or e.outlet_id == outlet_id]

    def status_for(self, outlet_id: str, day: date) -> str:
        """Status of the latest log uploaded that day, or the default when none was."""
        todays = [e for e in self.list(outlet_id) if e.created_at.date() == day]
        if not todays:
            return DEFAULT_HYGIENE_STATUS
        return max(todays, key=lambda e: e.created_at).status.value
