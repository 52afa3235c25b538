import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import ValidationError

from .notifier import Notifier
from .return_details import ReturnDetailsController, Role
from .returns_client import ReturnsAPIError, ReturnsClient
from .schemas import ReturnOut, ReturnStats, ReturnStatus

logger = logging.getLogger(__name__)

ALL = "all"

_FAILURES = (ReturnsAPIError, httpx.HTTPError, ValidationError)


def search_text(ret: ReturnOut) -> str:
    fields = [
        ret.return_id,
        ret.status,
        ret.reason,
        ret.description,
        ret.order.order_number if ret.order else None,
        ret.seller_profile.shop_name if ret.seller_profile else None,
        ret.buyer.username if ret.buyer else None,
    ]
    return " ".join(str(f or "") for f in fields).lower()


def filter_returns(returns: list[ReturnOut], query: str) -> list[ReturnOut]:
    term = query.strip().lower()
    if not term:
        return list(returns)
    return [r for r in returns if term in search_text(r)]


def parse_returns(rows: list) -> list[ReturnOut]:
    """Validate rows one at a time; a row that does not parse is logged and left out."""
    returns = []
    for row in rows:
        try:
            returns.append(ReturnOut.model_validate(row))
        except ValidationError as e:
            rid = row.get("returnId") if isinstance(row, dict) else None
            logger.warning("Skipping unreadable return %s: %s", rid, e)
    return returns


class ReturnsTab(ABC):
    """Role-scoped list of returns. Server order is kept; no paging."""

    role = Role.BUYER

    def __init__(self, client: ReturnsClient, notifier: Optional[Notifier] = None):
        self.client = client
        self.notifier = notifier or Notifier()
        self.returns: list[ReturnOut] = []
        self.loading = False
        self.details: Optional[ReturnDetailsController] = None

    @abstractmethod
    async def _fetch(self) -> dict:
        """Call the list endpoint for this role."""

    def _apply(self, returns: list[ReturnOut]) -> list[ReturnOut]:
        return returns

    async def load(self) -> list[ReturnOut]:
        self.loading = True
        try:
            res = await self._fetch()
        except (ReturnsAPIError, httpx.HTTPError) as e:
            self.notifier.error(f"Failed to load returns: {e}", source=f"{self.role.value}-returns")
            res = None
        finally:
            self.loading = False

        rows = (res or {}).get("data") or []
        self.returns = self._apply(parse_returns(rows))
        logger.debug("%s returns tab: %d rows", self.role.value, len(self.returns))
        return self.returns

    async def open_details(self, return_id: str) -> ReturnDetailsController:
        self.details = ReturnDetailsController(self.client, return_id, role=self.role, notifier=self.notifier)
        await self.details.open()
        return self.details

    async def close_details(self) -> list[ReturnOut]:
        self.details = None
        return await self.load()


class BuyerReturnsTab(ReturnsTab):
    role = Role.BUYER

    async def _fetch(self):
        return await self.client.get_buyer_returns()


class SellerReturnsTab(ReturnsTab):
    role = Role.SELLER

    def __init__(self, client: ReturnsClient, notifier: Optional[Notifier] = None, status: str = ALL):
        super().__init__(client, notifier)
        self.status = status

    async def set_status(self, status: str) -> list[ReturnOut]:
        self.status = status if status == ALL else ReturnStatus(status).value
        return await self.load()

    async def _fetch(self):
        return await self.client.get_seller_returns(None if self.status == ALL else self.status)


class AdminReturnsTab(ReturnsTab):
    role = Role.ADMIN

    def __init__(
        self,
        client: ReturnsClient,
        notifier: Optional[Notifier] = None,
        status: str = ALL,
        only_disputed: bool = True,
        query: str = "",
    ):
        super().__init__(client, notifier)
        self.status = status
        self.only_disputed = only_disputed
        self.query = query

    async def _fetch(self):
        return await self.client.get_admin_returns(
            status=None if self.status == ALL else self.status,
            disputed=self.only_disputed,
        )

    def _apply(self, returns: list[ReturnOut]) -> list[ReturnOut]:
        return filter_returns(returns, self.query)

    async def stats(self) -> Optional[ReturnStats]:
        try:
            res = await self.client.get_return_stats()
            return ReturnStats.model_validate((res or {}).get("data") or {})
        except _FAILURES as e:
            self.notifier.error(f"Failed to load return stats: {e}", source="admin-returns")
            return None
