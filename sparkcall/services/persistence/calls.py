"""Call record persistence."""
import logging
from datetime import datetime
from typing import Callable, List

from sqlalchemy import desc, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sparkcall.core.exceptions import NotFoundError, RecordStoreError, ValidationError
from sparkcall.db.models import Call
from sparkcall.services.call_session.models import (
    CallRecord,
    CallRecordPatch,
    CallStatus,
    NewCallRecord,
    as_utc,
    compute_duration,
    utcnow,
    validate_participants,
)
from sparkcall.services.persistence.base import CallRecordStore

logger = logging.getLogger(__name__)

CALL_ID_PREFIX = "call_"


def to_call_record(call: Call) -> CallRecord:
    """Convert a database row to a CallRecord."""
    return CallRecord(
        id=f"{CALL_ID_PREFIX}{call.id}",
        caller_id=call.caller_id,
        receiver_id=call.receiver_id,
        status=CallStatus(call.status),
        start_time=as_utc(call.start_time),
        end_time=as_utc(call.end_time) if call.end_time else None,
        duration=call.duration,
    )


class SqlCallRecordStore(CallRecordStore):
    """Call record store backed by the application database."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    async def create(self, new_record: NewCallRecord) -> CallRecord:
        """Create a new call record."""
        validate_participants(new_record.caller_id, new_record.receiver_id)
        if new_record.status is CallStatus.ENDED:
            raise ValidationError("A call cannot be created as ended")

        call = Call(
            caller_id=new_record.caller_id,
            receiver_id=new_record.receiver_id,
            status=new_record.status.value,
            start_time=self.clock(),
        )
        self.db.add(call)
        await self._commit(call, "Failed to initiate call")
        record = to_call_record(call)
        logger.info(
            f"[CALL STORE] Created {record.id} - caller: {record.caller_id}, "
            f"receiver: {record.receiver_id}, status: {record.status.value}"
        )
        return record

    async def get(self, call_id: str) -> CallRecord:
        """Get call record by id."""
        return to_call_record(await self._get_row(call_id))

    async def update(self, call_id: str, patch: CallRecordPatch) -> CallRecord:
        """Update call status, enforcing forward-only transitions."""
        call = await self._get_row(call_id)
        current = CallStatus(call.status)
        if not current.can_transition_to(patch.status):
            raise ValidationError(
                f"Cannot change call status from {current.value} to {patch.status.value}"
            )

        if patch.status is CallStatus.ENDED:
            start_time = as_utc(call.start_time)
            end_time = as_utc(patch.end_time) if patch.end_time else self.clock()
            if end_time < start_time:
                raise ValidationError("endTime cannot be earlier than startTime")
            call.end_time = end_time
            if patch.duration is not None:
                call.duration = patch.duration
            else:
                call.duration = compute_duration(start_time, end_time)
        elif patch.end_time is not None:
            raise ValidationError("endTime can only be set when a call ends")

        call.status = patch.status.value
        await self._commit(call, "Failed to update call status")
        record = to_call_record(call)
        logger.info(f"[CALL STORE] Updated {record.id} - {current.value} -> {record.status.value}")
        return record

    async def list(self, user_id: str) -> List[CallRecord]:
        """Get call history for a user, most recent first."""
        try:
            result = await self.db.execute(
                select(Call)
                .where(or_(Call.caller_id == user_id, Call.receiver_id == user_id))
                .order_by(desc(Call.start_time), desc(Call.id))
            )
        except SQLAlchemyError as e:
            raise RecordStoreError("Failed to fetch calls", details=str(e)) from e
        return [to_call_record(call) for call in result.scalars().all()]

    async def _get_row(self, call_id: str) -> Call:
        number = call_id[len(CALL_ID_PREFIX):] if call_id.startswith(CALL_ID_PREFIX) else ""
        if not number.isdigit():
            raise NotFoundError(f"Call not found: {call_id}")
        try:
            call = await self.db.get(Call, int(number))
        except SQLAlchemyError as e:
            raise RecordStoreError("Failed to load call", details=str(e)) from e
        if call is None:
            raise NotFoundError(f"Call not found: {call_id}")
        return call

    async def _commit(self, call: Call, failure_message: str) -> None:
        try:
            await self.db.commit()
            await self.db.refresh(call)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"[CALL STORE] {failure_message}: {type(e).__name__}: {e}")
            raise RecordStoreError(failure_message, details=str(e)) from e
