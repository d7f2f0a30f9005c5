from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.i18n import set_locale


SUPPORTED_LOCALES = {"en": "en", "id": "id", "in": "id"}


def pick_locale(accept_language: str) -> str:
    """Highest-q supported tag from Accept-Language, else 'en'.

    'id-ID,id;q=0.9,en;q=0.8' -> 'id'
    """
    candidates: list[tuple[float, str]] = []
    for part in accept_language.split(","):
        tag, _, params = part.strip().partition(";")
        if not tag:
            continue
        q = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                q = float(params[2:])
            except ValueError:
                q = 0.0
        primary = tag.split("-")[0].lower()
        if primary in SUPPORTED_LOCALES:
            candidates.append((q, SUPPORTED_LOCALES[primary]))
    if not candidates:
        return "en"
    return max(candidates, key=lambda c: c[0])[1]


class LocaleMiddleware(BaseHTTPMiddleware):
    """?lang=xx > X-Lang > Accept-Language > 'en'"""

    async def dispatch(self, request: Request, call_next):
        explicit = request.query_params.get("lang") or request.headers.get("X-Lang")
        if explicit:
            locale = SUPPORTED_LOCALES.get(explicit.split("-")[0].lower(), "en")
        else:
            locale = pick_locale(request.headers.get("Accept-Language", ""))
        set_locale(locale)
        request.state.locale = locale
        return await call_next(request)
