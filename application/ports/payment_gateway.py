"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
Merchant credentials are always passed per call, never read from settings.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from application.dtos.payments import (
    CheckoutResult,
    CheckoutScript,
    ConnectionTestResult,
    GatewayTransactionStatus,
    SnapToken,
    TransactionDescriptor,
)
from domain.payment.fee_policy import MerchantCredentials


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the hosted checkout provider."""

    provider: str

    async def create_token(self, descriptor: TransactionDescriptor, credentials: MerchantCredentials) -> SnapToken: ...

    def checkout_script(self, credentials: MerchantCredentials) -> CheckoutScript: ...

    def parse_checkout_result(self, event: str, payload: dict[str, Any]) -> CheckoutResult: ...

    async def query_status(self, order_id: str, credentials: MerchantCredentials) -> GatewayTransactionStatus: ...

    async def test_connection(self, server_key: str, is_production: bool) -> ConnectionTestResult: ...

    def parse_notification(self, body: bytes) -> GatewayTransactionStatus: ...

    def verify_notification(self, notification: GatewayTransactionStatus, credentials: MerchantCredentials) -> None: ...

    async def aclose(self) -> None: ...
