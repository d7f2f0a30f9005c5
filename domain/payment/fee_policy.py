"""
Platform fee policy and split eligibility.

Everything here is pure: callers pass the FeeConfiguration and the merchant
credentials explicitly, nothing is read from process-wide settings.
Amounts are integers in the smallest currency unit (IDR has no minor unit).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional, Protocol, Sequence

from domain.common.exceptions import DomainValidationException


FEE_CAP_RATIO = Decimal("0.5")
FLAT_POLICY = "flat"
TIERED_POLICY = "tiered"


@dataclass(frozen=True)
class MerchantCredentials:
    """Client/server key pair identifying one merchant account at the gateway."""

    client_key: str = ""
    server_key: str = ""
    is_production: bool = False

    @property
    def is_complete(self) -> bool:
        return bool(self.client_key) and bool(self.server_key)


@dataclass(frozen=True)
class FeeTier:
    min_amount: int
    max_amount: int
    fee_percentage: Decimal
    description: str = ""

    def matches(self, price: int) -> bool:
        return self.min_amount <= price <= self.max_amount


@dataclass(frozen=True)
class FeeConfiguration:
    """Platform-wide fee policy, read-only at transaction time."""

    fee_percentage: Decimal = Decimal("10")
    fixed_fee: Decimal = Decimal("0")
    minimum_split_amount: int = 0
    enable_split: bool = False
    platform_credentials: MerchantCredentials = field(default_factory=MerchantCredentials)
    policy: str = FLAT_POLICY
    fee_tiers: tuple[FeeTier, ...] = ()
    default_fee_percentage: Optional[Decimal] = None


@dataclass(frozen=True)
class SplitBreakdown:
    total_amount: int
    platform_fee: int
    instructor_share: int
    platform_fee_percentage: Decimal

    @classmethod
    def direct(cls, price: int) -> "SplitBreakdown":
        """Breakdown for a direct (non-split) payment: the instructor gets everything."""
        return cls(
            total_amount=price,
            platform_fee=0,
            instructor_share=price,
            platform_fee_percentage=Decimal("0"),
        )


class FeePolicy(Protocol):
    name: str

    def calculate(self, price: int) -> SplitBreakdown: ...


def _validate_price(price: int) -> None:
    if price < 0:
        raise DomainValidationException(f"Course price must not be negative: {price}", field="price")


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class FlatFeePolicy:
    """Percentage plus fixed fee, capped at half of the price."""

    name = FLAT_POLICY

    def __init__(self, config: FeeConfiguration):
        self.fee_percentage = Decimal(config.fee_percentage)
        self.fixed_fee = Decimal(config.fixed_fee)

    def calculate(self, price: int) -> SplitBreakdown:
        _validate_price(price)
        amount = Decimal(price)
        raw = amount * self.fee_percentage / Decimal(100) + self.fixed_fee
        cap = amount * FEE_CAP_RATIO
        fee = _round_half_up(min(raw, cap))
        # rounding may push the fee over the cap for odd prices
        fee = max(0, min(fee, int(cap.to_integral_value(rounding=ROUND_FLOOR))))
        return SplitBreakdown(
            total_amount=price,
            platform_fee=fee,
            instructor_share=price - fee,
            platform_fee_percentage=self.fee_percentage,
        )


class TieredFeePolicy:
    """Legacy strategy: percentage chosen from a price-band table, no cap."""

    name = TIERED_POLICY

    def __init__(self, tiers: Sequence[FeeTier], default_percentage: Decimal):
        self.tiers = tuple(tiers)
        self.default_percentage = Decimal(default_percentage)

    def percentage_for(self, price: int) -> Decimal:
        for tier in self.tiers:
            if tier.matches(price):
                return Decimal(tier.fee_percentage)
        return self.default_percentage

    def calculate(self, price: int) -> SplitBreakdown:
        _validate_price(price)
        pct = self.percentage_for(price)
        fee = _round_half_up(Decimal(price) * pct / Decimal(100))
        return SplitBreakdown(
            total_amount=price,
            platform_fee=fee,
            instructor_share=price - fee,
            platform_fee_percentage=pct,
        )


def policy_for(config: FeeConfiguration) -> FeePolicy:
    name = (config.policy or FLAT_POLICY).lower()
    if name == FLAT_POLICY:
        return FlatFeePolicy(config)
    if name == TIERED_POLICY:
        default = config.default_fee_percentage
        return TieredFeePolicy(config.fee_tiers, default if default is not None else config.fee_percentage)
    raise DomainValidationException(f"Unknown fee policy: {config.policy}", field="policy")


def should_split(
    price: int,
    instructor_credentials: Optional[MerchantCredentials],
    config: FeeConfiguration,
) -> bool:
    """Whether the transaction is routed through the platform account.

    Only presence of credentials is checked, not their format. Any missing
    piece degrades to a direct payment.
    """
    if not config.enable_split:
        return False
    if price < config.minimum_split_amount:
        return False
    if not config.platform_credentials.is_complete:
        return False
    return instructor_credentials is not None and instructor_credentials.is_complete


def calculate_split_breakdown(price: int, config: FeeConfiguration) -> SplitBreakdown:
    return policy_for(config).calculate(price)


def breakdown_for_checkout(
    price: int,
    instructor_credentials: Optional[MerchantCredentials],
    config: FeeConfiguration,
) -> tuple[bool, SplitBreakdown]:
    """Routing decision plus the breakdown that will be frozen on the payment."""
    if should_split(price, instructor_credentials, config):
        return True, calculate_split_breakdown(price, config)
    _validate_price(price)
    return False, SplitBreakdown.direct(price)
