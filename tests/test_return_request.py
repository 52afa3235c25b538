import httpx
import pytest

from museo_returns.return_request import ReturnRequestForm
from museo_returns.schemas import OrderRef, ReturnReason
from mock_backend import mock_client

DELIVERED = OrderRef(order_id="ord-1", status="delivered")


def created(request):
    return httpx.Response(
        201, json={"success": True, "data": {"returnId": "ret-new", "status": "pending", "orderId": "ord-1"}}
    )


@pytest.mark.asyncio
async def test_submit_creates_pending_return():
    async with mock_client(created) as client:
        form = ReturnRequestForm(client, DELIVERED)
        form.reason = ReturnReason.NOT_AS_DESCRIBED
        form.description = "Colours are off"
        form.add_evidence("front.jpg", b"\xff\xd8")
        assert form.can_submit

        ret = await form.submit()

    assert ret.return_id == "ret-new"
    assert ret.status == "pending"
    assert form.error == ""
    assert form.submitting is False


@pytest.mark.asyncio
async def test_undelivered_order_cannot_be_returned():
    async with mock_client(created) as client:
        form = ReturnRequestForm(client, OrderRef(order_id="ord-2", status="shipped"))
        form.description = "Never mind"

        assert not form.can_submit
        assert await form.submit() is None

    assert form.error == "Only delivered orders can be returned."


@pytest.mark.asyncio
async def test_blank_description_is_rejected_before_sending():
    sent = []

    def handler(request):
        sent.append(request)
        return created(request)

    async with mock_client(handler) as client:
        form = ReturnRequestForm(client, DELIVERED)
        form.description = "   "

        assert not form.can_submit
        assert await form.submit() is None

    assert sent == []
    assert "description is required" in form.error


@pytest.mark.asyncio
async def test_server_error_is_kept_on_the_form():
    def handler(request):
        return httpx.Response(400, json={"success": False, "error": "Return window expired (7 days from delivery)"})

    async with mock_client(handler) as client:
        form = ReturnRequestForm(client, DELIVERED)
        form.description = "Late, sorry"
        assert await form.submit() is None

    assert form.error == "Return window expired (7 days from delivery)"


def test_evidence_limits():
    form = ReturnRequestForm(client=None, order=DELIVERED)
    for i in range(5):
        form.add_evidence(f"{i}.jpg", b"x")

    with pytest.raises(ValueError, match="At most 5"):
        form.add_evidence("6.jpg", b"x")

    form.evidence.clear()
    with pytest.raises(ValueError, match="Only image files"):
        form.add_evidence("notes.pdf", b"%PDF", "application/pdf")
