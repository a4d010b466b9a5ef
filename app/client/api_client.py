"""
Portal API Client

Thin async wrapper over the portal REST API. Every call is a single
request/response; failures surface as BackendError carrying the backend's
message. Records are validated at this boundary.
"""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.schemas.applications import (
    APPLICATION_ADAPTER,
    APPLICATION_LIST_ADAPTER,
    ApplicationStatus,
)
from app.utils.exceptions import BackendError
from app.utils.logger import get_logger

logger = get_logger(__name__)


def ensure_unique_ids(records: List[Any]) -> List[Any]:
    """Reject collections where two records share an id."""
    seen = set()
    for record in records:
        if record.id in seen:
            raise BackendError(f"Duplicate application id in response: {record.id}")
        seen.add(record.id)
    return records


class PortalClient:
    """Async client for the portal API"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "PortalClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"[PortalClient] {method} {path} failed: {e}")
            raise BackendError(f"Failed to connect: {str(e) or type(e).__name__}")

        if response.is_success:
            return response

        detail = response.text
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("detail"):
                detail = body["detail"]
                if isinstance(detail, list):
                    detail = "; ".join(str(d.get("msg", d)) for d in detail)
        except ValueError:
            pass
        logger.warning(f"[PortalClient] {method} {path} -> {response.status_code}: {detail}")
        raise BackendError(str(detail) or f"HTTP {response.status_code}", status_code=response.status_code)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        """Decode a 2xx body. An empty body (e.g. 204) yields an empty dict."""
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"[PortalClient] Non-JSON body from {response.request.method} {response.request.url.path}: {e}")
            raise BackendError("Malformed response from backend", status_code=response.status_code)

    # ---- auth ----

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        """Exchange staff credentials for a token. Returns {token, user}."""
        response = await self._request("POST", "/login", json={"email": email, "password": password})
        body = self._json(response)
        if not isinstance(body, dict):
            raise BackendError("Login failed", status_code=response.status_code)
        if not body.get("success") or not body.get("token"):
            raise BackendError(body.get("error") or "Login failed", status_code=response.status_code)
        return {"token": body["token"], "user": body.get("user") or {}}

    async def me(self) -> Dict[str, Any]:
        response = await self._request("GET", "/me")
        return self._json(response)

    # ---- applications ----

    async def submit_application(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request("POST", "/applications", json=payload)
        return self._json(response)

    async def fetch_applications(self) -> List[Any]:
        response = await self._request("GET", "/applications")
        try:
            records = APPLICATION_LIST_ADAPTER.validate_python(response.json())
        except (ValidationError, ValueError) as e:
            logger.error(f"[PortalClient] Malformed application list: {e}")
            raise BackendError("Malformed application list from backend")
        return ensure_unique_ids(records)

    async def get_application(self, application_id: str) -> Any:
        response = await self._request("GET", f"/applications/{application_id}")
        try:
            return APPLICATION_ADAPTER.validate_python(response.json())
        except (ValidationError, ValueError) as e:
            logger.error(f"[PortalClient] Malformed application {application_id}: {e}")
            raise BackendError("Malformed application from backend")

    async def update_status(self, application_id: str, status: ApplicationStatus) -> Dict[str, Any]:
        response = await self._request(
            "PATCH",
            f"/applications/{application_id}/status",
            json={"status": ApplicationStatus(status).value},
        )
        return self._json(response)

    async def delete_application(self, application_id: str) -> None:
        await self._request("DELETE", f"/applications/{application_id}")

    async def export_csv(self) -> str:
        response = await self._request("GET", "/applications/export")
        return response.text

    async def dashboard_summary(self) -> Dict[str, Any]:
        response = await self._request("GET", "/dashboard/summary")
        return self._json(response)
