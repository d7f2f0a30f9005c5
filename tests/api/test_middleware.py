from fastapi.testclient import TestClient

from api.middleware.logging import LoggingMiddleware
from main import app


def test_credentials_are_masked_in_logged_bodies():
    middleware = LoggingMiddleware(app)

    sanitized = middleware._sanitize_data({
        "serverKey": "SB-Mid-server-secret",
        "instructorSettings": {"midtrans_server_key": "SB-Mid-server-x", "midtrans_client_key": "SB-Mid-client-x"},
        "items": [{"account_number": "1234567890", "name": "Python"}],
        "amount": 1000,
    })

    assert sanitized == {
        "serverKey": "***",
        "instructorSettings": {"midtrans_server_key": "***", "midtrans_client_key": "***"},
        "items": [{"account_number": "***", "name": "Python"}],
        "amount": 1000,
    }


def test_request_id_is_echoed():
    client = TestClient(app)

    resp = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert resp.headers["X-Request-ID"] == "req-123"
