from __future__ import annotations

import gettext
import logging
from contextvars import ContextVar
from pathlib import Path

_current_locale: ContextVar[str] = ContextVar("current_locale", default="en")
_translators: dict[str, gettext.NullTranslations] = {}
_logger = logging.getLogger(__name__)

# 没有编译好的 .mo 文件时使用的英文文案
DEFAULT_MESSAGES: dict[str, str] = {
    "validation.failed": "Validation failed: {reason}",
    "validation.domain": "Invalid request",
    "error.internal": "Something went wrong, please try again",
    "auth.unauthorized": "Authentication required",
    "auth.token.invalid": "Invalid authentication token",
    "auth.permission_denied": "You do not have permission to perform this action",
    "payments.checkout.unavailable": "Payment unavailable: the instructor has not configured payment settings",
    "payments.checkout.dismissed": "Payment was not completed. You can resume it later.",
    "payments.not_found": "Payment not found",
    "payments.already_exists": "A payment for this order already exists",
    "payments.gateway.error": "Payment gateway error: {message}",
    "payments.gateway.unavailable": "Payment gateway is temporarily unavailable, please try again",
    "payments.signature.invalid": "Invalid notification signature",
    "payments.script.error": "Could not load the checkout script",
    "course.not_found": "Course not found",
    "payouts.not_found": "Payout request not found",
    "payouts.invalid_transition": "Cannot move payout from {current} to {target}",
    "profile.not_found": "Profile not found",
    "payments.checkout.started": "Checkout started",
    "payments.checkout.enrolled": "Enrolled in free course",
    "payments.notification.received": "Notification processed",
    "payments.reconciled": "Payment status refreshed",
    "payouts.requested": "Payout request submitted",
    "payouts.request_refused": "Payout request could not be submitted. Check your verified bank account, "
                               "the minimum amount and your available earnings.",
    "payouts.approved": "Payout approved",
    "payouts.completed": "Payout completed",
    "payouts.cancelled": "Payout cancelled",
    "payouts.batch_approved": "{count} payout request(s) approved",
    "payouts.bank_account.saved": "Bank account saved. It must be verified before payouts.",
    "payouts.bank_account.verified": "Bank account verified",
    "users.role.changed": "Role updated",
    "welcome": "Course payment settlement service",
    "health.ok": "Service is healthy",
}


def set_locale(locale: str) -> None:
    """Set current request locale (fallback to 'en')."""
    _current_locale.set(locale or "en")


def get_locale() -> str:
    """Get current request locale (default 'en')."""
    return _current_locale.get()


def _get_translator(locale: str) -> gettext.NullTranslations:
    tr = _translators.get(locale)
    if tr is not None:
        return tr
    localedir = Path(__file__).resolve().parent.parent / "locales"
    tr = gettext.translation(
        domain="messages",
        localedir=str(localedir),
        languages=[locale],
        fallback=True,
    )
    _translators[locale] = tr
    return tr


def t(msgid: str, **params) -> str:
    """Translate msgid using current locale and format with params.

    Falls back to DEFAULT_MESSAGES, then to msgid itself.
    """
    text = _get_translator(get_locale()).gettext(msgid)
    if text == msgid:
        text = DEFAULT_MESSAGES.get(msgid, msgid)
    if not params:
        return text
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError) as exc:
        _logger.warning("i18n_format_failed msgid=%s error=%s", msgid, exc)
        return text
