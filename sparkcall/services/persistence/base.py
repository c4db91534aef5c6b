"""Call record store interface."""
from abc import ABC, abstractmethod
from typing import List

from sparkcall.services.call_session.models import CallRecord, CallRecordPatch, NewCallRecord


class CallRecordStore(ABC):
    """Abstract base class for call record stores."""

    @abstractmethod
    async def create(self, new_record: NewCallRecord) -> CallRecord:
        """Assign an id and start time, persist, return the full record."""
        pass

    @abstractmethod
    async def get(self, call_id: str) -> CallRecord:
        """Get a record by id. Raises NotFoundError if unknown."""
        pass

    @abstractmethod
    async def update(self, call_id: str, patch: CallRecordPatch) -> CallRecord:
        """Apply a patch. Raises NotFoundError if unknown."""
        pass

    @abstractmethod
    async def list(self, user_id: str) -> List[CallRecord]:
        """Records where the user is caller or receiver, newest first."""
        pass
