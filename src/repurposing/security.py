from __future__ import annotations

import hashlib
import hmac
from contextvars import ContextVar
from typing import List, Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from src.repurposing.config import settings
from src.repurposing.domain.models.translator_user import TranslatorRole, TranslatorUser
from src.repurposing.services.translators.service import translator_auth_service

# Operator and webhook keys are both sent in this header.
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Caller identity for audit events: "api-key:<hash>", "webhook:<hash>" or
# "translator:<username>". Raw keys are never stored.
_current_subject: ContextVar[Optional[str]] = ContextVar("current_subject", default=None)


def get_current_subject() -> Optional[str]:
    """Return the current subject identifier, if any."""

    return _current_subject.get()


def _subject_for_key(prefix: str, api_key: str) -> str:
    return f"{prefix}:" + hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]


def _parse_api_keys() -> List[str]:
    if not settings.api_keys:
        return []
    return [key.strip() for key in settings.api_keys.split(",") if key.strip()]


async def get_api_key(api_key: Optional[str] = Security(_api_key_header)) -> str:
    """Guard for operator routes (jobs, sources, derivatives, settings).

    Open while ENABLE_API_AUTH is off. Once enabled, X-API-Key must be one of
    the comma-separated API_KEYS.
    """

    if not settings.enable_api_auth:
        _current_subject.set(None)
        return ""

    allowed_keys = _parse_api_keys()
    if not allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API authentication is enabled but no API keys are configured.",
        )

    if not api_key or api_key not in allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
        )

    _current_subject.set(_subject_for_key("api-key", api_key))
    return api_key


async def require_webhook_key(api_key: Optional[str] = Security(_api_key_header)) -> str:
    """FastAPI dependency for inbound webhooks.

    Webhooks are authenticated regardless of ENABLE_API_AUTH. Without a
    configured WEBHOOK_API_KEY every webhook call is rejected.
    """

    expected = settings.webhook_api_key
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Webhook authentication is not configured.",
        )
    if not api_key or not hmac.compare_digest(api_key.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
        )

    _current_subject.set(_subject_for_key("webhook", api_key))
    return api_key


async def get_optional_translator(request: Request) -> Optional[TranslatorUser]:
    """Resolve the logged-in translator from the session cookie, if any."""

    token = request.cookies.get(settings.translator_cookie_name)
    user = translator_auth_service.resolve_token(token)
    _current_subject.set(f"translator:{user.username}" if user is not None else None)
    return user


async def get_current_translator(
    user: Optional[TranslatorUser] = Depends(get_optional_translator),
) -> TranslatorUser:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return user


def ensure_is_reviewer_or_admin(user: TranslatorUser) -> None:
    """Raise HTTP 403 unless the translator may record review decisions."""

    if user.role in {TranslatorRole.REVIEWER, TranslatorRole.ADMIN}:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Reviewer or admin role required",
    )


def ensure_is_admin(user: TranslatorUser) -> None:
    """Raise HTTP 403 unless the translator manages portal accounts."""

    if user.role == TranslatorRole.ADMIN:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Admin access required",
    )
