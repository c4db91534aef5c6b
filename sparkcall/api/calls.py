"""Call record API endpoints."""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import Field

from sparkcall.api.errors import error_response, method_not_allowed
from sparkcall.core.dependencies import get_call_record_store
from sparkcall.services.call_session.models import (
    CallRecordPatch,
    CallStatus,
    CamelModel,
    NewCallRecord,
)
from sparkcall.services.persistence.base import CallRecordStore

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateCallRequest(CamelModel):
    """Create call request model."""
    caller_id: str = Field(min_length=1)
    receiver_id: str = Field(min_length=1)
    status: CallStatus = CallStatus.INITIATED


class UpdateCallRequest(CamelModel):
    """Update call request model."""
    call_id: str = Field(min_length=1)
    status: CallStatus
    end_time: Optional[datetime] = None


def client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/call", status_code=201)
async def create_call(
    body: CreateCallRequest,
    request: Request,
    store: CallRecordStore = Depends(get_call_record_store),
):
    """Create a call record."""
    logger.info(
        f"[CALL API] Create call - caller: {body.caller_id}, receiver: {body.receiver_id}, "
        f"Client: {client_host(request)}"
    )
    call = await store.create(
        NewCallRecord(caller_id=body.caller_id, receiver_id=body.receiver_id, status=body.status)
    )
    return {"success": True, "message": "Call initiated successfully", "call": call.to_json()}


@router.put("/call")
async def update_call(
    body: UpdateCallRequest,
    store: CallRecordStore = Depends(get_call_record_store),
):
    """Update call status."""
    logger.info(f"[CALL API] Update call {body.call_id} - status: {body.status.value}")
    call = await store.update(
        body.call_id, CallRecordPatch(status=body.status, end_time=body.end_time)
    )
    return {"success": True, "message": "Call status updated successfully", "call": call.to_json()}


@router.get("/call")
async def list_calls(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    store: CallRecordStore = Depends(get_call_record_store),
):
    """Get call history for a user, most recent first."""
    if not user_id:
        return error_response(400, "User ID is required")
    calls = await store.list(user_id)
    logger.debug(f"[CALL API] Found {len(calls)} calls for user {user_id}")
    return {"success": True, "calls": [call.to_json() for call in calls]}


@router.get("/call/{call_id}")
async def get_call(call_id: str, store: CallRecordStore = Depends(get_call_record_store)):
    """Get a single call record."""
    call = await store.get(call_id)
    return {"success": True, "call": call.to_json()}


@router.delete("/call")
async def delete_call():
    return method_not_allowed()
