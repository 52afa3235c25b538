import json

import httpx
import pytest

from museo_returns.returns_client import ReturnsAPIError, ReturnsClient, handle_json
from mock_backend import mock_client, seed


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"error": "X"}, "X"),
        ({"message": "Y"}, "Y"),
        ({"error": "X", "message": "Y"}, "X"),
        ({}, "Request failed (400)"),
    ],
)
def test_handle_json_error_message_precedence(body, expected):
    with pytest.raises(ReturnsAPIError) as exc:
        handle_json(httpx.Response(400, json=body))
    assert str(exc.value) == expected
    assert exc.value.status_code == 400


def test_handle_json_unreadable_body_falls_back_to_status():
    with pytest.raises(ReturnsAPIError, match=r"Request failed \(502\)"):
        handle_json(httpx.Response(502, text="<html>Bad Gateway</html>"))


def test_handle_json_success_false_on_2xx_is_a_failure():
    with pytest.raises(ReturnsAPIError, match="Order not found or unauthorized"):
        handle_json(httpx.Response(200, json={"success": False, "error": "Order not found or unauthorized"}))


def test_handle_json_returns_body():
    body = {"success": True, "data": {"returnId": "r1"}}
    assert handle_json(httpx.Response(200, json=body)) == body


class Recorder:
    def __init__(self, response=None):
        self.requests = []
        self.response = response or {"success": True, "data": []}

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        return httpx.Response(200, json=self.response)


@pytest.mark.asyncio
async def test_admin_returns_query_with_both_filters():
    rec = Recorder()
    async with mock_client(rec) as c:
        await c.get_admin_returns(status="approved", disputed=True)

    url = rec.requests[0].url
    assert url.path == "/api/returns/admin/all"
    assert dict(url.params) == {"status": "approved", "disputed": "true"}


@pytest.mark.asyncio
async def test_admin_returns_bare_url_without_filters():
    rec = Recorder()
    async with mock_client(rec) as c:
        await c.get_admin_returns()
        await c.get_admin_returns(disputed=False)

    for request in rec.requests:
        assert str(request.url) == "http://testserver/api/returns/admin/all"


@pytest.mark.asyncio
async def test_seller_returns_status_param():
    rec = Recorder()
    async with mock_client(rec) as c:
        await c.get_seller_returns("disputed")
        await c.get_seller_returns()

    assert dict(rec.requests[0].url.params) == {"status": "disputed"}
    assert str(rec.requests[1].url) == "http://testserver/api/returns/seller"


@pytest.mark.asyncio
async def test_shipped_and_received_bodies_omit_empty_values():
    rec = Recorder({"success": True})
    async with mock_client(rec) as c:
        await c.mark_return_shipped("r1", "1234")
        await c.mark_return_shipped("r1", None)
        await c.mark_return_received("r1", "Good as new")
        await c.mark_return_received("r1", "")

    bodies = [(r.method, r.url.path, json.loads(r.content)) for r in rec.requests]
    assert bodies == [
        ("POST", "/api/returns/r1/shipped", {"tracking_number": "1234"}),
        ("POST", "/api/returns/r1/shipped", {}),
        ("PUT", "/api/returns/r1/received", {"received_condition": "Good as new"}),
        ("PUT", "/api/returns/r1/received", {}),
    ]


@pytest.mark.asyncio
async def test_mutation_payloads_use_server_field_names():
    rec = Recorder({"success": True})
    async with mock_client(rec) as c:
        await c.approve_return("r1", "ok")
        await c.reject_return("r1", "no")
        await c.dispute_return("r1", "unfair")
        await c.resolve_dispute("r1", "approve", "checked photos")
        await c.add_return_message("r1", "hello")

    calls = [(r.method, r.url.path, json.loads(r.content)) for r in rec.requests]
    assert calls == [
        ("PUT", "/api/returns/r1/approve", {"sellerResponse": "ok"}),
        ("PUT", "/api/returns/r1/reject", {"sellerResponse": "no"}),
        ("POST", "/api/returns/r1/dispute", {"disputeReason": "unfair"}),
        ("PUT", "/api/returns/r1/resolve", {"resolution": "approve", "adminNotes": "checked photos"}),
        ("POST", "/api/returns/r1/messages", {"message": "hello"}),
    ]


@pytest.mark.asyncio
async def test_create_return_sends_multipart_with_evidence():
    rec = Recorder({"success": True, "data": {"returnId": "r9", "status": "pending"}})
    async with mock_client(rec) as c:
        await c.create_return(
            "ord-1",
            "wrong_item",
            "Got a different print",
            evidence_files=[("a.jpg", b"\xff\xd8jpeg", "image/jpeg"), ("b.png", b"\x89PNG", "image/png")],
        )

    request = rec.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/returns"
    assert request.headers["content-type"].startswith("multipart/form-data")
    body = request.content
    assert b'name="orderId"' in body
    assert b'name="reason"' in body and b"wrong_item" in body
    assert b'name="description"' in body
    assert body.count(b'name="evidence"') == 2
    assert b'filename="a.jpg"' in body


@pytest.mark.asyncio
async def test_create_return_without_description_or_files_is_still_multipart():
    rec = Recorder({"success": True})
    async with mock_client(rec) as c:
        await c.create_return("ord-1", "other")

    request = rec.requests[0]
    assert request.headers["content-type"].startswith("multipart/form-data")
    assert b'name="description"' not in request.content
    assert b'name="evidence"' not in request.content


@pytest.mark.asyncio
async def test_session_cookie_is_sent():
    seen = []

    def handler(request):
        seen.append(request.headers.get("cookie"))
        return httpx.Response(200, json={"success": True, "data": []})

    async with ReturnsClient(
        base_url="http://testserver/api",
        cookies={"session": "abc"},
        transport=httpx.MockTransport(handler),
    ) as c:
        await c.get_buyer_returns()

    assert "session=abc" in seen[0]


@pytest.mark.asyncio
async def test_details_round_trip_against_backend(backend, client):
    ret = seed(backend, status="approved", shippingStatus="pendingShipment")

    res = await client.get_return_details(ret["returnId"])
    assert res["success"] is True
    assert res["data"]["shippingStatus"] == "pendingShipment"


@pytest.mark.asyncio
async def test_server_rejection_surfaces_server_error(backend, client):
    ret = seed(backend, status="refunded")

    with pytest.raises(ReturnsAPIError, match="Return is not pending") as exc:
        await client.approve_return(ret["returnId"], "ok")
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_unknown_return_is_404(client):
    with pytest.raises(ReturnsAPIError, match="Return not found") as exc:
        await client.get_return_details("missing")
    assert exc.value.status_code == 404
