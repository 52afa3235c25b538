import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from .returns_client import ReturnsAPIError, ReturnsClient
from .schemas import MAX_EVIDENCE_FILES, OrderRef, ReturnCreate, ReturnOut, ReturnReason

logger = logging.getLogger(__name__)

DELIVERED = "delivered"


class ReturnRequestForm:
    """Buyer-side form for opening a return against a delivered order."""

    def __init__(self, client: ReturnsClient, order: OrderRef):
        self.client = client
        self.order = order
        self.reason = ReturnReason.DEFECTIVE_DAMAGED
        self.description = ""
        self.evidence: list[tuple] = []
        self.submitting = False
        self.error = ""

    @property
    def is_delivered(self) -> bool:
        return self.order.status == DELIVERED

    @property
    def can_submit(self) -> bool:
        return (
            self.is_delivered
            and not self.submitting
            and bool(self.description.strip())
            and len(self.evidence) <= MAX_EVIDENCE_FILES
        )

    def add_evidence(self, filename: str, content: bytes, content_type: str = "image/jpeg"):
        if len(self.evidence) >= MAX_EVIDENCE_FILES:
            raise ValueError(f"At most {MAX_EVIDENCE_FILES} evidence images")
        if not content_type.startswith("image/"):
            raise ValueError("Only image files are allowed")
        self.evidence.append((filename, content, content_type))

    async def submit(self) -> Optional[ReturnOut]:
        if not self.order.order_id:
            return None
        if not self.is_delivered:
            self.error = "Only delivered orders can be returned."
            return None

        self.submitting = True
        self.error = ""
        try:
            payload = ReturnCreate(
                order_id=self.order.order_id,
                reason=self.reason,
                description=self.description,
                evidence_count=len(self.evidence),
            )
            res = await self.client.create_return(
                payload.order_id,
                payload.reason.value,
                payload.description,
                evidence_files=self.evidence,
            )
            created = ReturnOut.model_validate(res.get("data"))
        except ValidationError as e:
            self.error = e.errors()[0].get("msg", "Failed to submit return")
            return None
        except (ReturnsAPIError, httpx.HTTPError) as e:
            self.error = str(e) or "Failed to submit return"
            return None
        finally:
            self.submitting = False

        logger.info("Return %s opened for order %s", created.return_id, self.order.order_id)
        return created
