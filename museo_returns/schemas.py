from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_EVIDENCE_FILES = 5


class ReturnStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISPUTED = "disputed"
    REFUNDED = "refunded"


class ShippingStatus(str, Enum):
    PENDING_SHIPMENT = "pendingShipment"
    IN_TRANSIT = "inTransit"
    # set by the server between inTransit and completed while the refund runs
    RECEIVED = "received"
    COMPLETED = "completed"


class ReturnReason(str, Enum):
    DEFECTIVE_DAMAGED = "defective_damaged"
    WRONG_ITEM = "wrong_item"
    NOT_AS_DESCRIBED = "not_as_described"
    CHANGED_MIND = "changed_mind"
    OTHER = "other"


class Resolution(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class CamelModel(BaseModel):
    """Base for payloads exchanged with the Museo API (camelCase on the wire)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "allow"


class ReturnAddress(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    street: Optional[str] = None
    landmark: Optional[str] = None
    barangay: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None


class ReturnMessage(CamelModel):
    message_id: Optional[str] = None
    sender_id: Optional[str] = None
    is_admin: bool = False
    message: str = ""
    created_at: Optional[datetime] = None


class OrderRef(CamelModel):
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    total_amount: Optional[float] = None
    status: Optional[str] = None


class SellerProfileRef(CamelModel):
    seller_profile_id: Optional[str] = None
    shop_name: Optional[str] = None
    user_id: Optional[str] = None


class BuyerRef(CamelModel):
    user_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None


class ReturnOut(CamelModel):
    return_id: str
    # plain strings: values the client does not know yet still load and match no panel
    status: str
    shipping_status: Optional[str] = None
    order_id: Optional[str] = None
    reason: Optional[str] = None
    description: Optional[str] = None
    evidence_images: list[str] = Field(default_factory=list)
    buyer_id: Optional[str] = None
    buyer: Optional[BuyerRef] = None
    seller_profile_id: Optional[str] = None
    seller_profile: Optional[SellerProfileRef] = None
    order: Optional[OrderRef] = None
    messages: list[ReturnMessage] = Field(default_factory=list)
    tracking_number: Optional[str] = None
    received_condition: Optional[str] = None
    seller_response: Optional[str] = None
    admin_notes: Optional[str] = None
    refund_amount: Optional[float] = None
    return_address: Optional[ReturnAddress] = None
    created_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    disputed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    buyer_shipped_at: Optional[datetime] = None
    seller_received_at: Optional[datetime] = None

    @field_validator("evidence_images", "messages", mode="before")
    @classmethod
    def _none_as_empty(cls, v):
        return [] if v is None else v


class ReturnCreate(BaseModel):
    order_id: str = Field(..., min_length=1)
    reason: ReturnReason = ReturnReason.DEFECTIVE_DAMAGED
    description: str = Field(..., min_length=1)
    evidence_count: int = Field(0, ge=0, le=MAX_EVIDENCE_FILES)

    @field_validator("description")
    @classmethod
    def _description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("description is required")
        return v


class ReturnStats(CamelModel):
    total_returns: int = 0
    status_breakdown: dict[str, int] = Field(default_factory=dict)
    reason_breakdown: dict[str, int] = Field(default_factory=dict)
    total_refund_amount: float = 0


class PayoutRunResult(BaseModel):
    processed: int = 0
    errors: list[Any] = Field(default_factory=list)

