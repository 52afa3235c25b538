import logging
from typing import Any, Iterable, Optional

import httpx

from .config import HTTP_TIMEOUT, MUSEO_API_BASE

logger = logging.getLogger(__name__)


class ReturnsAPIError(Exception):
    """Non-2xx response, or a 2xx response whose envelope says success=false."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


def handle_json(response: httpx.Response) -> Any:
    """
    Parse a Museo API envelope ({success, data?, error?, message?}).
    An unreadable body counts as {}.
    """
    try:
        data = response.json()
    except ValueError:
        data = {}

    envelope = data if isinstance(data, dict) else {}
    if not response.is_success or envelope.get("success") is False:
        message = (
            envelope.get("error")
            or envelope.get("message")
            or f"Request failed ({response.status_code})"
        )
        raise ReturnsAPIError(message, status_code=response.status_code, payload=data)

    return data


class ReturnsClient:
    """
    Thin wrapper over the /returns endpoints. One call, one request: no retries,
    no caching. Sessions ride on cookies, as the browser does with
    credentials: include.
    """

    def __init__(
        self,
        base_url: str = MUSEO_API_BASE,
        cookies: Optional[dict] = None,
        timeout: Optional[float] = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            cookies=cookies,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        logger.debug("%s %s", method, url)
        r = await self._client.request(method, url, **kwargs)
        return handle_json(r)

    async def create_return(
        self,
        order_id: str,
        reason: str,
        description: Optional[str] = None,
        evidence_files: Iterable[tuple] = (),
    ):
        """
        evidence_files holds httpx file tuples: (filename, content, content_type).
        Each one goes up under the field name 'evidence'.
        """
        # plain fields go in as filename-less parts so the body is always multipart
        parts = [("orderId", (None, str(order_id))), ("reason", (None, reason))]
        if description:
            parts.append(("description", (None, description)))
        parts.extend(("evidence", f) for f in evidence_files)

        return await self._request("POST", "/returns", files=parts)

    async def get_buyer_returns(self):
        return await self._request("GET", "/returns/buyer")

    async def get_seller_returns(self, status: Optional[str] = None):
        params = {"status": status} if status else None
        return await self._request("GET", "/returns/seller", params=params)

    async def get_admin_returns(self, status: Optional[str] = None, disputed: Optional[bool] = None):
        params = {}
        if status:
            params["status"] = status
        if disputed is True:
            params["disputed"] = "true"
        return await self._request("GET", "/returns/admin/all", params=params or None)

    async def get_return_stats(self):
        return await self._request("GET", "/returns/admin/stats")

    async def get_return_details(self, return_id: str):
        return await self._request("GET", f"/returns/{return_id}")

    async def add_return_message(self, return_id: str, message: str):
        return await self._request("POST", f"/returns/{return_id}/messages", json={"message": message})

    async def dispute_return(self, return_id: str, dispute_reason: str):
        return await self._request(
            "POST", f"/returns/{return_id}/dispute", json={"disputeReason": dispute_reason}
        )

    async def approve_return(self, return_id: str, seller_response: str):
        return await self._request(
            "PUT", f"/returns/{return_id}/approve", json={"sellerResponse": seller_response}
        )

    async def reject_return(self, return_id: str, seller_response: str):
        return await self._request(
            "PUT", f"/returns/{return_id}/reject", json={"sellerResponse": seller_response}
        )

    async def resolve_dispute(self, return_id: str, resolution: str, admin_notes: str):
        return await self._request(
            "PUT",
            f"/returns/{return_id}/resolve",
            json={"resolution": resolution, "adminNotes": admin_notes},
        )

    async def mark_return_shipped(self, return_id: str, tracking_number: Optional[str] = None):
        body = {}
        if tracking_number:
            body["tracking_number"] = tracking_number
        return await self._request("POST", f"/returns/{return_id}/shipped", json=body)

    async def mark_return_received(self, return_id: str, received_condition: Optional[str] = None):
        body = {}
        if received_condition:
            body["received_condition"] = received_condition
        return await self._request("PUT", f"/returns/{return_id}/received", json=body)
