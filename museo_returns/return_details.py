"""
Return details view.

Headless counterpart of the return details modal: which panels show for a
given (role, status, shippingStatus, resolvedAt), which actions they offer,
and the mutate-then-refetch handlers behind each action.

The server decides every transition. This module only mirrors the state it
returns; after each mutation the details are fetched again instead of being
patched locally.
"""
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from .notifier import Notifier
from .returns_client import ReturnsAPIError, ReturnsClient
from .schemas import (
    Resolution,
    ReturnAddress,
    ReturnMessage,
    ReturnOut,
    ReturnStatus,
    ShippingStatus,
)

logger = logging.getLogger(__name__)

ADMIN_NOTES_REQUIRED = "Admin notes are required to resolve a dispute"
DEFAULT_DISPUTE_REASON = "Buyer disputes the rejection"
LOAD_FAILED = "Failed to load return"


class Role(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class Panel(str, Enum):
    SELLER_RESPONSE = "seller_response"
    DISPUTE_PROMPT = "dispute_prompt"
    DISPUTE_FINAL = "dispute_final"
    SHIP_FORM = "ship_form"
    SHIPPED_NOTICE = "shipped_notice"
    RECEIVE_FORM = "receive_form"
    COMPLETION_SUMMARY = "completion_summary"
    RESOLUTION_FORM = "resolution_form"


class Action(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    DISPUTE = "dispute"
    MARK_SHIPPED = "mark_shipped"
    MARK_RECEIVED = "mark_received"
    RESOLVE_APPROVE = "resolve_approve"
    RESOLVE_REJECT = "resolve_reject"


PANEL_ACTIONS: dict[Panel, tuple[Action, ...]] = {
    Panel.SELLER_RESPONSE: (Action.REJECT, Action.APPROVE),
    Panel.DISPUTE_PROMPT: (Action.DISPUTE,),
    Panel.DISPUTE_FINAL: (),
    Panel.SHIP_FORM: (Action.MARK_SHIPPED,),
    Panel.SHIPPED_NOTICE: (),
    Panel.RECEIVE_FORM: (Action.MARK_RECEIVED,),
    Panel.COMPLETION_SUMMARY: (),
    Panel.RESOLUTION_FORM: (Action.RESOLVE_REJECT, Action.RESOLVE_APPROVE),
}

RESOLVE_ACTIONS = (Action.RESOLVE_APPROVE, Action.RESOLVE_REJECT)

DRAFT_FIELDS = ("message", "seller_response", "admin_notes", "tracking_number", "received_condition")


def panels_for(role: Role, ret: Optional[ReturnOut]) -> list[Panel]:
    """Every panel whose condition holds, in render order. Conditions are independent."""
    if ret is None:
        return []

    role = Role(role)
    panels = []
    if role == Role.SELLER and ret.status == ReturnStatus.PENDING:
        panels.append(Panel.SELLER_RESPONSE)
    if role == Role.BUYER and ret.status == ReturnStatus.REJECTED:
        panels.append(Panel.DISPUTE_FINAL if ret.resolved_at else Panel.DISPUTE_PROMPT)
    if ret.shipping_status == ShippingStatus.PENDING_SHIPMENT and role == Role.BUYER:
        panels.append(Panel.SHIP_FORM)
    if ret.shipping_status == ShippingStatus.IN_TRANSIT:
        if role == Role.BUYER:
            panels.append(Panel.SHIPPED_NOTICE)
        elif role == Role.SELLER:
            panels.append(Panel.RECEIVE_FORM)
    if ret.shipping_status == ShippingStatus.COMPLETED:
        panels.append(Panel.COMPLETION_SUMMARY)
    if role == Role.ADMIN and ret.status == ReturnStatus.DISPUTED:
        panels.append(Panel.RESOLUTION_FORM)
    return panels


class DetailsState(BaseModel):
    return_id: str
    role: Role = Role.BUYER
    data: Optional[ReturnOut] = None
    loading: bool = False
    action_loading: bool = False
    error: str = ""

    # form drafts
    message: str = ""
    seller_response: str = ""
    admin_notes: str = ""
    tracking_number: str = ""
    received_condition: str = ""

    class Config:
        frozen = True


class Event(BaseModel):
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


def reduce(state: DetailsState, event: Event) -> DetailsState:
    t, p = event.type, event.payload

    if t == "load_started":
        return state.model_copy(update={"loading": True, "error": ""})
    if t == "load_succeeded":
        return state.model_copy(update={"loading": False, "data": p["data"]})
    if t == "load_failed":
        return state.model_copy(update={"loading": False, "error": p["error"]})

    if t == "field_changed":
        name = p["name"]
        if name not in DRAFT_FIELDS:
            raise ValueError(f"Unknown field: {name}")
        return state.model_copy(update={name: p["value"]})

    if t == "action_started":
        return state.model_copy(update={"action_loading": True, "error": ""})
    if t == "action_succeeded":
        update = {"action_loading": False, "data": p["data"]}
        update.update({name: "" for name in p.get("clear", ())})
        return state.model_copy(update=update)
    if t == "action_failed":
        return state.model_copy(update={"action_loading": False, "error": p["error"]})

    raise ValueError(f"Unknown event type: {t}")


def available_actions(state: DetailsState) -> list[Action]:
    actions = []
    for panel in panels_for(state.role, state.data):
        actions.extend(PANEL_ACTIONS[panel])
    return actions


def enabled_actions(state: DetailsState) -> list[Action]:
    if state.action_loading:
        return []
    has_notes = bool(state.admin_notes.strip())
    return [a for a in available_actions(state) if a not in RESOLVE_ACTIONS or has_notes]


def can_send_message(state: DetailsState) -> bool:
    return state.data is not None and not state.action_loading and bool(state.message.strip())


# display helpers

def humanize_reason(reason: Optional[str]) -> str:
    return (reason or "").replace("_", " ")


def sender_name(message: ReturnMessage, ret: ReturnOut) -> str:
    if message.is_admin:
        return "Admin"
    if message.sender_id is not None and message.sender_id == ret.buyer_id:
        return (ret.buyer.username if ret.buyer else None) or "Buyer"
    if ret.seller_profile and message.sender_id == ret.seller_profile.user_id:
        return ret.seller_profile.shop_name or "Seller"
    return "User"


def address_lines(address: Optional[ReturnAddress]) -> list[str]:
    if address is None:
        return []

    lines = [address.name or "Seller"]
    if address.phone:
        lines.append(f"Phone: {address.phone}")
    lines.append(address.address1 or address.street or "—")
    if address.address2:
        lines.append(address.address2)
    locality = ", ".join(p for p in (address.barangay, address.city, address.province) if p)
    if locality:
        lines.append(locality)
    postal = " ".join(p for p in (address.region, address.postal_code) if p)
    if postal:
        lines.append(postal)
    return lines


def _error_text(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return LOAD_FAILED
    return str(exc) or exc.__class__.__name__


_FAILURES = (ReturnsAPIError, httpx.HTTPError, ValidationError)


class ReturnDetailsController:
    def __init__(
        self,
        client: ReturnsClient,
        return_id: str,
        role: Role = Role.BUYER,
        notifier: Optional[Notifier] = None,
    ):
        self.client = client
        self.notifier = notifier or Notifier()
        self.state = DetailsState(return_id=return_id, role=Role(role))

    def dispatch(self, type: str, **payload) -> DetailsState:
        self.state = reduce(self.state, Event(type=type, payload=payload))
        return self.state

    @property
    def return_id(self) -> str:
        return self.state.return_id

    @property
    def data(self) -> Optional[ReturnOut]:
        return self.state.data

    @property
    def error(self) -> str:
        return self.state.error

    @property
    def panels(self) -> list[Panel]:
        return panels_for(self.state.role, self.state.data)

    @property
    def actions(self) -> list[Action]:
        return available_actions(self.state)

    @property
    def enabled(self) -> list[Action]:
        return enabled_actions(self.state)

    def set_field(self, name: str, value: str):
        self.dispatch("field_changed", name=name, value=value)

    async def _fetch(self) -> ReturnOut:
        res = await self.client.get_return_details(self.state.return_id)
        return ReturnOut.model_validate(res.get("data") if isinstance(res, dict) else None)

    def _fail(self, event_type: str, exc: Exception):
        message = _error_text(exc)
        self.dispatch(event_type, error=message)
        self.notifier.error(message, source=f"return:{self.state.return_id}")

    async def open(self) -> Optional[ReturnOut]:
        self.dispatch("load_started")
        try:
            data = await self._fetch()
        except _FAILURES as e:
            self._fail("load_failed", e)
            return None
        self.dispatch("load_succeeded", data=data)
        return data

    refresh = open

    async def _run(self, name: str, call: Callable[[], Awaitable[Any]], clear: Iterable[str] = ()) -> bool:
        if self.state.action_loading:
            logger.debug("Ignoring %s on %s: another action is in flight", name, self.state.return_id)
            return False

        self.dispatch("action_started")
        try:
            await call()
            data = await self._fetch()
        except _FAILURES as e:
            self._fail("action_failed", e)
            return False

        self.dispatch("action_succeeded", data=data, clear=tuple(clear))
        logger.info("Return %s: %s done, status=%s", self.state.return_id, name, data.status)
        return True

    async def send_message(self) -> bool:
        text = self.state.message
        if not text.strip():
            return False
        return await self._run(
            "send_message",
            lambda: self.client.add_return_message(self.return_id, text),
            clear=("message",),
        )

    async def dispute(self, reason: str = DEFAULT_DISPUTE_REASON) -> bool:
        return await self._run("dispute", lambda: self.client.dispute_return(self.return_id, reason))

    async def approve(self) -> bool:
        response = self.state.seller_response or "Approved"
        return await self._run("approve", lambda: self.client.approve_return(self.return_id, response))

    async def reject(self) -> bool:
        response = self.state.seller_response or "Rejected"
        return await self._run("reject", lambda: self.client.reject_return(self.return_id, response))

    async def resolve(self, resolution: Resolution) -> bool:
        resolution = Resolution(resolution)
        if self.state.action_loading:
            return False

        notes = self.state.admin_notes
        if not notes.strip():
            self.dispatch("action_failed", error=ADMIN_NOTES_REQUIRED)
            self.notifier.error(ADMIN_NOTES_REQUIRED, source=f"return:{self.return_id}")
            return False

        return await self._run(
            f"resolve:{resolution.value}",
            lambda: self.client.resolve_dispute(self.return_id, resolution.value, notes),
            clear=("admin_notes",),
        )

    async def mark_shipped(self) -> bool:
        tracking = self.state.tracking_number.strip() or None
        return await self._run(
            "mark_shipped",
            lambda: self.client.mark_return_shipped(self.return_id, tracking),
            clear=("tracking_number",),
        )

    async def mark_received(self) -> bool:
        condition = self.state.received_condition.strip() or None
        return await self._run(
            "mark_received",
            lambda: self.client.mark_return_received(self.return_id, condition),
            clear=("received_condition",),
        )

    async def perform(self, action: Action) -> bool:
        """Run the handler behind a button."""
        action = Action(action)
        handlers = {
            Action.APPROVE: self.approve,
            Action.REJECT: self.reject,
            Action.DISPUTE: self.dispute,
            Action.MARK_SHIPPED: self.mark_shipped,
            Action.MARK_RECEIVED: self.mark_received,
            Action.RESOLVE_APPROVE: lambda: self.resolve(Resolution.APPROVE),
            Action.RESOLVE_REJECT: lambda: self.resolve(Resolution.REJECT),
        }
        return await handlers[action]()
