"""Call record store that talks to the /call HTTP routes."""
from typing import List, Optional

import httpx

from sparkcall.services.call_session.models import (
    CallRecord,
    CallRecordPatch,
    NewCallRecord,
    as_utc,
)
from sparkcall.services.http import ApiClient
from sparkcall.services.persistence.base import CallRecordStore


class HttpCallRecordStore(CallRecordStore):
    """Remote call record store.

    The server derives ``duration`` from ``endTime``, so only status and end
    time travel on update.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api = ApiClient(base_url=base_url, token=token, client=client)

    async def create(self, new_record: NewCallRecord) -> CallRecord:
        data = await self.api.request("POST", "/call", json=new_record.to_json())
        return CallRecord.model_validate(data["call"])

    async def get(self, call_id: str) -> CallRecord:
        data = await self.api.request("GET", f"/call/{call_id}")
        return CallRecord.model_validate(data["call"])

    async def update(self, call_id: str, patch: CallRecordPatch) -> CallRecord:
        payload = {"callId": call_id, "status": patch.status.value}
        if patch.end_time is not None:
            payload["endTime"] = as_utc(patch.end_time).isoformat()
        data = await self.api.request("PUT", "/call", json=payload)
        return CallRecord.model_validate(data["call"])

    async def list(self, user_id: str) -> List[CallRecord]:
        data = await self.api.request("GET", "/call", params={"userId": user_id})
        return [CallRecord.model_validate(item) for item in data.get("calls", [])]

    async def aclose(self) -> None:
        await self.api.aclose()
