"""Resolve the fee configuration and merchant credentials used for a transaction.

Rows in ``platform_settings`` (``midtrans_config``, ``revenue_split_config``)
override the environment defaults from ``PaymentSettings``. The result is an
immutable FeeConfiguration that callers pass explicitly.
"""
from __future__ import annotations

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from core.logging_config import get_logger
from domain.common.exceptions import PaymentUnavailableException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment.fee_policy import FeeConfiguration, FeeTier, MerchantCredentials


logger = get_logger(__name__)

MIDTRANS_CONFIG_KEY = "midtrans_config"
REVENUE_SPLIT_CONFIG_KEY = "revenue_split_config"


def _decimal(value: Any, default: Decimal) -> Decimal:
    if value is None:
        return default
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return default


def merge_fee_configuration(
    defaults: FeeConfiguration,
    midtrans_row: Optional[dict],
    split_row: Optional[dict],
) -> FeeConfiguration:
    """Overlay stored platform settings on the environment defaults."""
    config = defaults
    if midtrans_row:
        if midtrans_row.get("is_active", True):
            credentials = MerchantCredentials(
                client_key=str(midtrans_row.get("client_key") or ""),
                server_key=str(midtrans_row.get("server_key") or ""),
                is_production=bool(midtrans_row.get("is_production", False)),
            )
        else:
            credentials = MerchantCredentials()
        config = replace(config, platform_credentials=credentials)
    if split_row:
        tiers = tuple(
            FeeTier(
                min_amount=int(t.get("min_amount", 0)),
                max_amount=int(t.get("max_amount", 0)),
                fee_percentage=_decimal(t.get("fee_percentage"), Decimal("0")),
                description=str(t.get("description") or ""),
            )
            for t in (split_row.get("fee_tiers") or [])
        )
        percentage = split_row.get("platform_fee_percentage", split_row.get("default_platform_fee_percentage"))
        config = replace(
            config,
            fee_percentage=_decimal(percentage, config.fee_percentage),
            fixed_fee=_decimal(split_row.get("platform_fee_fixed"), config.fixed_fee),
            minimum_split_amount=int(split_row.get("minimum_split_amount", config.minimum_split_amount)),
            enable_split=bool(split_row.get("enable_split", config.enable_split)),
            policy=str(split_row.get("policy") or config.policy),
            fee_tiers=tiers or config.fee_tiers,
            default_fee_percentage=_decimal(
                split_row.get("default_platform_fee_percentage"),
                config.default_fee_percentage if config.default_fee_percentage is not None else config.fee_percentage,
            ),
        )
    return config


class PlatformConfigService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork], defaults: FeeConfiguration):
        self._uow_factory = uow_factory
        self._defaults = defaults

    async def fee_configuration(self) -> FeeConfiguration:
        async with self._uow_factory(readonly=True) as uow:
            midtrans_row = await uow.platform_settings_repository.get(MIDTRANS_CONFIG_KEY)
            split_row = await uow.platform_settings_repository.get(REVENUE_SPLIT_CONFIG_KEY)
        if not midtrans_row:
            logger.debug("platform_midtrans_config_fallback")
        return merge_fee_configuration(self._defaults, midtrans_row, split_row)

    async def instructor_credentials(self, instructor_id: Optional[str]) -> Optional[MerchantCredentials]:
        if not instructor_id:
            return None
        async with self._uow_factory(readonly=True) as uow:
            settings_row = await uow.instructor_settings_repository.get_by_instructor(instructor_id)
        return settings_row.credentials if settings_row else None

    async def routing_credentials(self, split_payment_enabled: bool, instructor_id: Optional[str]) -> MerchantCredentials:
        """Credentials the payment was routed through: platform for split, instructor for direct."""
        if split_payment_enabled:
            credentials = (await self.fee_configuration()).platform_credentials
            if credentials.is_complete:
                return credentials
        else:
            credentials = await self.instructor_credentials(instructor_id)
            if credentials is not None:
                return credentials
        raise PaymentUnavailableException(instructor_id, reason="missing_routing_credentials")
