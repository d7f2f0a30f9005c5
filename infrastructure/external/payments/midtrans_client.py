"""
Midtrans Snap adapter over plain httpx.

- Token creation: POST {app}/snap/v1/transactions (Basic auth base64(server_key + ":")).
- Status: GET {api}/v2/{order_id}/status, same auth.
- Client script: {app}/snap/snap.js with a data-client-key attribute.
- HTTP notification signature: sha512(order_id + status_code + gross_amount + server_key).

Production and sandbox hosts must never be mixed: a sandbox token only works
with the sandbox script and vice versa.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Optional

import httpx

from application.dtos.payments import (
    CheckoutResult,
    CheckoutScript,
    ConnectionTestResult,
    GatewayTransactionStatus,
    SnapToken,
    TransactionDescriptor,
)
from domain.common.exceptions import DomainValidationException
from domain.payment.fee_policy import MerchantCredentials
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    CheckoutDismissedError,
    GatewayError,
    GatewayRecoverableError,
    GatewaySignatureError,
    ScriptLoadError,
)


SNAP_BASE_URLS = {
    True: "https://app.midtrans.com",
    False: "https://app.sandbox.midtrans.com",
}
API_BASE_URLS = {
    True: "https://api.midtrans.com",
    False: "https://api.sandbox.midtrans.com",
}
SERVER_KEY_PREFIXES = {
    True: "Mid-server-",
    False: "SB-Mid-server-",
}
TRANSACTION_NOT_FOUND_MESSAGE = "Transaction doesn't exist."


def snap_transactions_url(is_production: bool) -> str:
    return f"{SNAP_BASE_URLS[is_production]}/snap/v1/transactions"


def snap_script_url(is_production: bool) -> str:
    return f"{SNAP_BASE_URLS[is_production]}/snap/snap.js"


def status_url(order_id: str, is_production: bool) -> str:
    return f"{API_BASE_URLS[is_production]}/v2/{order_id}/status"


def notification_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


class MidtransClient(BasePaymentClient):
    provider = "midtrans"

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loaded_script: Optional[CheckoutScript] = None

    def _headers(self, server_key: str) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": self._basic_auth(server_key),
        }

    def _error_from_response(self, resp: httpx.Response, *, prefix: str) -> GatewayError:
        body = self._json(resp)
        messages = body.get("error_messages") or []
        if isinstance(messages, str):
            messages = [messages]
        first = messages[0] if messages else (body.get("status_message") or "Unknown error")
        return GatewayError(
            f"{prefix}: {first}",
            provider=self.provider,
            status_code=resp.status_code,
            error_messages=[str(m) for m in messages],
        )

    async def create_token(self, descriptor: TransactionDescriptor, credentials: MerchantCredentials) -> SnapToken:
        if not credentials.server_key:
            raise DomainValidationException("Missing Midtrans server key", field="server_key")
        url = snap_transactions_url(credentials.is_production)
        self._log(
            "gateway_token_request",
            order_id=descriptor.order_id,
            gross_amount=descriptor.gross_amount,
            is_production=credentials.is_production,
        )
        try:
            async with self.client() as c:
                # No retry: a replayed POST with the same order id is rejected by the gateway.
                resp = await c.post(url, json=descriptor.to_payload(), headers=self._headers(credentials.server_key))
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise GatewayRecoverableError(str(exc) or type(exc).__name__, provider=self.provider) from exc

        if not resp.is_success:
            err = self._error_from_response(resp, prefix="Midtrans API Error")
            self._log("gateway_token_failed", order_id=descriptor.order_id, status_code=resp.status_code,
                      error_messages=err.error_messages)
            raise err

        body = self._json(resp)
        token = body.get("token")
        if not token:
            raise GatewayError(
                "Midtrans API Error: response did not include a token",
                provider=self.provider,
                status_code=resp.status_code,
            )
        self._log("gateway_token_created", order_id=descriptor.order_id)
        return SnapToken(token=str(token), redirect_url=body.get("redirect_url"))

    def checkout_script(self, credentials: MerchantCredentials) -> CheckoutScript:
        """Descriptor of the Snap <script> tag; one environment per client."""
        if not credentials.client_key:
            raise ScriptLoadError("Missing Midtrans client key", provider=self.provider)
        loaded = self._loaded_script
        if loaded is not None:
            if loaded.is_production != credentials.is_production:
                raise ScriptLoadError(
                    "Checkout script already loaded for a different environment",
                    provider=self.provider,
                    details={"loaded_production": loaded.is_production},
                )
            return loaded
        self._loaded_script = CheckoutScript(
            src=snap_script_url(credentials.is_production),
            client_key=credentials.client_key,
            is_production=credentials.is_production,
        )
        return self._loaded_script

    def parse_checkout_result(self, event: str, payload: dict[str, Any]) -> CheckoutResult:
        """Interpret a snap.pay callback relayed by the browser."""
        payload = payload or {}
        if event in ("success", "pending"):
            return CheckoutResult(
                outcome=event,
                transaction_status=payload.get("transaction_status"),
                transaction_id=payload.get("transaction_id"),
                payment_type=payload.get("payment_type"),
                order_id=payload.get("order_id"),
                status_code=_as_str(payload.get("status_code")),
                gross_amount=_as_str(payload.get("gross_amount")),
            )
        if event == "error":
            messages = payload.get("error_messages") or []
            message = payload.get("status_message") or (messages[0] if messages else "Payment failed")
            raise GatewayError(
                str(message),
                provider=self.provider,
                status_code=_as_int(payload.get("status_code")),
                error_messages=[str(m) for m in messages],
            )
        if event == "close":
            raise CheckoutDismissedError(payload.get("order_id"))
        raise DomainValidationException(f"Unknown checkout event: {event}", field="event")

    async def query_status(self, order_id: str, credentials: MerchantCredentials) -> GatewayTransactionStatus:
        if not credentials.server_key:
            raise DomainValidationException("Missing Midtrans server key", field="server_key")
        url = status_url(order_id, credentials.is_production)

        async def _do():
            async with self.client() as c:
                return await c.get(url, headers=self._headers(credentials.server_key))

        try:
            resp = await self._retry(_do)
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise GatewayRecoverableError(str(exc) or type(exc).__name__, provider=self.provider) from exc

        body = self._json(resp)
        if resp.status_code != 404 and not resp.is_success:
            raise self._error_from_response(resp, prefix="Midtrans status error")
        if resp.status_code == 404 or str(body.get("status_code")) == "404":
            # unknown to the gateway: checkout never completed
            self._log("gateway_status_unknown", order_id=order_id)
            return GatewayTransactionStatus(order_id=order_id, status_code="404", raw=body)
        status = self._status_from_body(body, fallback_order_id=order_id)
        self._log(
            "gateway_status",
            order_id=order_id,
            transaction_status=status.transaction_status,
            internal_status=self._map_status(status.transaction_status),
        )
        return status

    async def test_connection(self, server_key: str, is_production: bool) -> ConnectionTestResult:
        """Probe the status API with a throwaway order id; 404 means the key authenticated."""
        if not server_key:
            return ConnectionTestResult(status="error", message="Server key is required")
        prefix = SERVER_KEY_PREFIXES[bool(is_production)]
        if not server_key.startswith(prefix):
            return ConnectionTestResult(
                status="error",
                message=f"Invalid server key format. Expected to start with {prefix}",
            )

        probe = f"test-connection-{int(time.time() * 1000)}"
        try:
            async with self.client() as c:
                resp = await c.get(status_url(probe, bool(is_production)), headers=self._headers(server_key))
        except (httpx.TimeoutException, httpx.TransportError) as exc:
            raise GatewayRecoverableError(str(exc) or type(exc).__name__, provider=self.provider) from exc

        self._log("gateway_connection_test", status_code=resp.status_code, is_production=bool(is_production))
        valid = "Connection successful! Your Midtrans credentials are valid."
        if resp.status_code == 404:
            return ConnectionTestResult(status="success", message=valid)
        if resp.status_code == 401:
            return ConnectionTestResult(status="error", message="Authentication failed. Please check your server key.")

        try:
            body = resp.json()
        except ValueError:
            body = None
        if resp.status_code == 200:
            if (
                isinstance(body, dict)
                and str(body.get("status_code")) == "404"
                and body.get("status_message") == TRANSACTION_NOT_FOUND_MESSAGE
            ):
                return ConnectionTestResult(status="success", message=valid)
            if body is None:
                return ConnectionTestResult(
                    status="warning",
                    message="Unexpected response format. Please verify your credentials in the Midtrans dashboard.",
                )
            return ConnectionTestResult(
                status="warning",
                message="Unexpected response content. Please verify your credentials in the Midtrans dashboard.",
                details=body,
            )
        return ConnectionTestResult(
            status="warning",
            message=f"Unexpected response ({resp.status_code}). "
                    "Please verify your credentials in the Midtrans dashboard.",
            details=body,
        )

    def parse_notification(self, body: bytes) -> GatewayTransactionStatus:
        try:
            data = json.loads(body or b"{}")
        except ValueError as exc:
            raise DomainValidationException("Notification body is not valid JSON", field="body") from exc
        if not isinstance(data, dict) or not data.get("order_id"):
            raise DomainValidationException("Notification is missing order_id", field="order_id")
        return self._status_from_body(data, fallback_order_id=str(data["order_id"]))

    def verify_notification(self, notification: GatewayTransactionStatus, credentials: MerchantCredentials) -> None:
        if not notification.signature_key:
            raise GatewaySignatureError("Missing signature_key", provider=self.provider)
        if not credentials.server_key:
            raise GatewaySignatureError("No server key to verify notification", provider=self.provider)
        expected = notification_signature(
            notification.order_id,
            notification.status_code or "",
            notification.gross_amount or "",
            credentials.server_key,
        )
        if not hmac.compare_digest(expected, notification.signature_key):
            raise GatewaySignatureError(
                "Notification signature mismatch",
                provider=self.provider,
                details={"order_id": notification.order_id},
            )

    @staticmethod
    def _status_from_body(body: dict[str, Any], *, fallback_order_id: str) -> GatewayTransactionStatus:
        return GatewayTransactionStatus(
            order_id=str(body.get("order_id") or fallback_order_id),
            transaction_status=body.get("transaction_status"),
            transaction_id=body.get("transaction_id"),
            payment_type=body.get("payment_type"),
            status_code=_as_str(body.get("status_code")),
            gross_amount=_as_str(body.get("gross_amount")),
            fraud_status=body.get("fraud_status"),
            signature_key=body.get("signature_key"),
            raw=body,
        )


def _as_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
