"""JSON client for the sparkcall HTTP API."""
import logging
from typing import Any, Dict, Optional

import httpx

from sparkcall.core.config import settings
from sparkcall.core.exceptions import NotFoundError, RecordStoreError, ValidationError

logger = logging.getLogger(__name__)


class ApiClient:
    """Thin wrapper over httpx that maps error responses onto service errors.

    The bearer token is passed through as an opaque credential.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = (base_url or settings.call_api_base_url).rstrip("/")
        self.token = token
        self._owns_client = client is None
        self._http = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=4.0),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body."""
        try:
            response = await self._http.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[API CLIENT] {method} {url} failed: {type(e).__name__}: {e}")
            raise RecordStoreError(f"Request to {url} failed: {e}") from e

        if response.is_error:
            message, details = self._error_body(response)
            logger.warning(f"[API CLIENT] {method} {url} -> {response.status_code}: {message}")
            if response.status_code == 404:
                raise NotFoundError(message, details=details)
            if response.status_code == 400:
                raise ValidationError(message, details=details)
            raise RecordStoreError(message, details=details)

        try:
            return response.json()
        except ValueError as e:
            raise RecordStoreError(f"Invalid JSON from {url}") from e

    @staticmethod
    def _error_body(response: httpx.Response):
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}", None
        if not isinstance(body, dict):
            return f"HTTP {response.status_code}", body
        return body.get("error") or f"HTTP {response.status_code}", body.get("details")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
