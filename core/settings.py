"""
Payment-related settings using pydantic-settings v2 with nested env keys.

Environment keys use the ``PAYMENT__`` prefix, e.g. ``PAYMENT__MIDTRANS__SERVER_KEY``
or ``PAYMENT__FEES__FEE_PERCENTAGE``. Values here are only the fallback: rows in
the ``platform_settings`` table take precedence at checkout time.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field

from domain.payment.fee_policy import FeeConfiguration, FeeTier, MerchantCredentials


class PaymentTimeouts(BaseModel):
    connect: float = 3.0
    read: float = 10.0
    write: float = 10.0
    total: float = 15.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    verify_signature: bool = True
    ip_allowlist: list[str] | None = None  # Optional IPs/CIDRs allowed to post notifications


class MidtransSettings(BaseModel):
    """平台商户凭证（分账交易走平台账户）"""
    client_key: Optional[str] = None
    server_key: Optional[str] = None
    is_production: bool = False


class FeeTierSettings(BaseModel):
    min_amount: int
    max_amount: int
    fee_percentage: Decimal
    description: str = ""


class FeeSettings(BaseModel):
    policy: str = "flat"  # flat | tiered
    fee_percentage: Decimal = Decimal("10")
    fixed_fee: Decimal = Decimal("0")
    minimum_split_amount: int = 50_000
    enable_split: bool = True
    tiers: list[FeeTierSettings] = Field(default_factory=list)
    default_tier_percentage: Decimal = Decimal("10")


class PayoutSettings(BaseModel):
    minimum_amount: int = 50_000
    default_method: str = "manual_transfer"


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    midtrans: MidtransSettings = Field(default_factory=MidtransSettings)
    fees: FeeSettings = Field(default_factory=FeeSettings)
    payouts: PayoutSettings = Field(default_factory=PayoutSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    def platform_credentials(self) -> MerchantCredentials:
        return MerchantCredentials(
            client_key=self.midtrans.client_key or "",
            server_key=self.midtrans.server_key or "",
            is_production=self.midtrans.is_production,
        )

    def fee_configuration(self) -> FeeConfiguration:
        """一次性转换为显式传递的 FeeConfiguration 值"""
        return FeeConfiguration(
            fee_percentage=self.fees.fee_percentage,
            fixed_fee=self.fees.fixed_fee,
            minimum_split_amount=self.fees.minimum_split_amount,
            enable_split=self.fees.enable_split,
            platform_credentials=self.platform_credentials(),
            policy=self.fees.policy,
            fee_tiers=tuple(
                FeeTier(
                    min_amount=t.min_amount,
                    max_amount=t.max_amount,
                    fee_percentage=t.fee_percentage,
                    description=t.description,
                )
                for t in self.fees.tiers
            ),
            default_fee_percentage=self.fees.default_tier_percentage,
        )


payment_settings = PaymentSettings()
