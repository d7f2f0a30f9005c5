import base64
import json

import httpx
import pytest

from application.dtos.payments import CustomerDetails, ItemDetail, TransactionDescriptor
from domain.payment.fee_policy import MerchantCredentials
from infrastructure.external.payments.exceptions import (
    CheckoutDismissedError,
    GatewayError,
    GatewayRecoverableError,
    GatewaySignatureError,
    ScriptLoadError,
)
from infrastructure.external.payments.midtrans_client import (
    MidtransClient,
    notification_signature,
    snap_script_url,
)


SANDBOX = MerchantCredentials(client_key="SB-Mid-client-abc", server_key="SB-Mid-server-abc")
PRODUCTION = MerchantCredentials(client_key="Mid-client-abc", server_key="Mid-server-abc", is_production=True)


class Recorder:
    def __init__(self, response: httpx.Response | Exception):
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def _client(recorder: Recorder) -> MidtransClient:
    return MidtransClient(transport=httpx.MockTransport(recorder), retry={"max": 0, "base": 0.01})


def _descriptor() -> TransactionDescriptor:
    return TransactionDescriptor(
        order_id="ord-course-0-student--1700000000000",
        gross_amount=100_000,
        customer_details=CustomerDetails(first_name="Siti", last_name="Nur Aisyah", email="siti@example.com"),
        item_details=[ItemDetail(id="course-1", price=100_000, name="Python " * 20)],
    )


@pytest.mark.asyncio
async def test_create_token_posts_to_sandbox_with_basic_auth():
    recorder = Recorder(httpx.Response(201, json={"token": "snap-123", "redirect_url": "https://r/snap-123"}))
    client = _client(recorder)

    token = await client.create_token(_descriptor(), SANDBOX)
    await client.aclose()

    assert token.token == "snap-123"
    request = recorder.requests[0]
    assert str(request.url) == "https://app.sandbox.midtrans.com/snap/v1/transactions"
    expected = base64.b64encode(b"SB-Mid-server-abc:").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    body = json.loads(request.content)
    assert body["transaction_details"] == {
        "order_id": "ord-course-0-student--1700000000000",
        "gross_amount": 100_000,
    }
    assert body["credit_card"] == {"secure": True}
    assert len(body["item_details"][0]["name"]) == 50


@pytest.mark.asyncio
async def test_create_token_surfaces_gateway_error_messages():
    recorder = Recorder(httpx.Response(400, json={"error_messages": ["transaction_details.order_id sudah digunakan"]}))
    client = _client(recorder)

    with pytest.raises(GatewayError) as exc_info:
        await client.create_token(_descriptor(), SANDBOX)

    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Midtrans API Error: transaction_details.order_id sudah digunakan"
    assert exc_info.value.error_messages == ["transaction_details.order_id sudah digunakan"]


@pytest.mark.asyncio
async def test_create_token_network_failure_is_recoverable():
    client = _client(Recorder(httpx.ConnectError("connection refused")))

    with pytest.raises(GatewayRecoverableError):
        await client.create_token(_descriptor(), SANDBOX)


@pytest.mark.asyncio
async def test_query_status_uses_production_api_host():
    recorder = Recorder(httpx.Response(200, json={
        "status_code": "200",
        "order_id": "ord-1",
        "transaction_status": "settlement",
        "transaction_id": "trx-1",
        "payment_type": "gopay",
        "gross_amount": "100000.00",
    }))
    client = _client(recorder)

    status = await client.query_status("ord-1", PRODUCTION)

    assert str(recorder.requests[0].url) == "https://api.midtrans.com/v2/ord-1/status"
    assert status.transaction_status == "settlement"
    assert status.payment_type == "gopay"
    assert status.gross_amount == "100000.00"


@pytest.mark.asyncio
async def test_query_status_unknown_transaction():
    recorder = Recorder(httpx.Response(200, json={"status_code": "404", "status_message": "Transaction doesn't exist."}))

    status = await _client(recorder).query_status("ord-1", SANDBOX)

    assert status.transaction_status is None
    assert status.status_code == "404"


@pytest.mark.asyncio
async def test_query_status_http_404_is_unknown_too():
    status = await _client(Recorder(httpx.Response(404, json={}))).query_status("ord-1", SANDBOX)
    assert status.transaction_status is None


@pytest.mark.asyncio
async def test_query_status_server_error():
    recorder = Recorder(httpx.Response(500, json={"status_message": "Internal"}))
    with pytest.raises(GatewayError):
        await _client(recorder).query_status("ord-1", SANDBOX)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response, status",
    [
        (httpx.Response(404), "success"),
        (httpx.Response(200, json={"status_code": "404", "status_message": "Transaction doesn't exist."}), "success"),
        (httpx.Response(401), "error"),
        (httpx.Response(200, json={"status_code": "200"}), "warning"),
        (httpx.Response(500, text="oops"), "warning"),
    ],
)
async def test_connection_probe(response, status):
    result = await _client(Recorder(response)).test_connection("SB-Mid-server-abc", False)
    assert result.status == status


@pytest.mark.asyncio
async def test_connection_rejects_key_for_wrong_environment():
    recorder = Recorder(httpx.Response(404))

    result = await _client(recorder).test_connection("SB-Mid-server-abc", True)

    assert result.status == "error"
    assert result.message == "Invalid server key format. Expected to start with Mid-server-"
    assert recorder.requests == []


def test_checkout_script_is_bound_to_one_environment():
    client = _client(Recorder(httpx.Response(200)))

    script = client.checkout_script(SANDBOX)
    assert script.src == snap_script_url(False)
    assert script.as_attributes() == {"src": script.src, "data-client-key": "SB-Mid-client-abc"}
    assert client.checkout_script(SANDBOX) is script

    with pytest.raises(ScriptLoadError):
        client.checkout_script(PRODUCTION)


def test_checkout_script_needs_client_key():
    with pytest.raises(ScriptLoadError):
        _client(Recorder(httpx.Response(200))).checkout_script(MerchantCredentials(server_key="s"))


def test_parse_checkout_result_events():
    client = _client(Recorder(httpx.Response(200)))

    result = client.parse_checkout_result("pending", {"transaction_status": "pending", "status_code": 201})
    assert result.outcome == "pending"
    assert result.status_code == "201"

    with pytest.raises(CheckoutDismissedError):
        client.parse_checkout_result("close", {})
    with pytest.raises(GatewayError) as exc_info:
        client.parse_checkout_result("error", {"status_message": "Card declined", "status_code": "202"})
    assert exc_info.value.message == "Card declined"


def test_notification_signature_round():
    client = _client(Recorder(httpx.Response(200)))
    signature = notification_signature("ord-1", "200", "100000.00", SANDBOX.server_key)
    body = json.dumps({
        "order_id": "ord-1",
        "status_code": "200",
        "gross_amount": "100000.00",
        "transaction_status": "settlement",
        "signature_key": signature,
    }).encode()

    notification = client.parse_notification(body)
    client.verify_notification(notification, SANDBOX)

    with pytest.raises(GatewaySignatureError):
        client.verify_notification(notification, PRODUCTION)
