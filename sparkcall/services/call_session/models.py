"""Call session models."""
import asyncio
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sparkcall.core.exceptions import ValidationError


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (SQLite hands back naive values)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_duration(start_time: datetime, end_time: datetime) -> int:
    """Whole minutes between start and end, half a minute rounds up."""
    elapsed_ms = (as_utc(end_time) - as_utc(start_time)).total_seconds() * 1000
    return math.floor(elapsed_ms / 60000 + 0.5)


def validate_participants(caller_id: Optional[str], receiver_id: Optional[str]) -> None:
    """Both ids are required and a user cannot call themselves."""
    if not caller_id or not receiver_id:
        raise ValidationError("Missing user IDs for call initiation")
    if caller_id == receiver_id:
        raise ValidationError("Caller and receiver must be different users")


class CallStatus(str, Enum):
    """Call record status."""

    INITIATED = "initiated"
    ONGOING = "ongoing"
    ENDED = "ended"
    MISSED = "missed"

    @property
    def is_terminal(self) -> bool:
        return self in (CallStatus.ENDED, CallStatus.MISSED)

    def can_transition_to(self, target: "CallStatus") -> bool:
        """Status only moves forward. Re-asserting a live status is allowed."""
        if target == self:
            return not self.is_terminal
        return target in _NEXT_STATUSES[self]


_NEXT_STATUSES = {
    CallStatus.INITIATED: {CallStatus.ONGOING, CallStatus.ENDED, CallStatus.MISSED},
    CallStatus.ONGOING: {CallStatus.ENDED, CallStatus.MISSED},
    CallStatus.ENDED: set(),
    CallStatus.MISSED: set(),
}


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CallRecord(CamelModel):
    """Durable metadata for one call attempt."""

    id: str
    caller_id: str
    receiver_id: str
    status: CallStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None


class NewCallRecord(CamelModel):
    """Fields a caller supplies when creating a call record."""

    caller_id: str
    receiver_id: str
    status: CallStatus = CallStatus.INITIATED


class CallRecordPatch(CamelModel):
    """Changes applied to an existing call record."""

    status: CallStatus
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0)


class CallState(str, Enum):
    """Lifecycle state of the call session manager."""

    IDLE = "idle"
    INITIATING = "initiating"
    CONNECTING = "connecting"
    ACTIVE = "active"
    ENDING = "ending"
    ERRORED = "errored"


class CallSession:
    """Resources and flags owned by one call attempt."""

    def __init__(
        self,
        caller_id: str,
        receiver_id: str,
        video_enabled: bool = True,
    ):
        self.caller_id = caller_id
        self.receiver_id = receiver_id
        self.record: Optional[CallRecord] = None
        self.local_media = None
        self.remote_media = None
        self.peer_link = None
        self.muted = False
        self.video_enabled = video_enabled
        self.inbox: asyncio.Queue = asyncio.Queue()  # peer-link events
        self.record_pending = False  # create sent, no record back yet
        self.closed = False
        self.error = None  # error that closed the session, if any
