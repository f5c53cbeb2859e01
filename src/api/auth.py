"""Request authentication: Supabase user tokens and the scheduler shared secret."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header, HTTPException

from src.config import settings
from src.ingestion.storage import get_supabase_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Who is calling: the scheduler, or a signed-in user."""

    user_id: str | None = None
    is_scheduler: bool = False


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return token.strip()


def _is_cron_secret(token: str) -> bool:
    secret = settings.cron_secret
    return bool(secret) and hmac.compare_digest(token.encode(), secret.encode())


def _resolve_user(token: str) -> str | None:
    try:
        response = get_supabase_client().auth.get_user(token)
    except Exception:
        logger.warning("Supabase rejected bearer token", exc_info=True)
        return None
    user = getattr(response, "user", None) if response is not None else None
    return str(user.id) if user is not None else None


def require_scheduler(authorization: Annotated[str | None, Header()] = None) -> Caller:
    """Only the scheduler secret is accepted; rejects everything when it is unset."""
    if not settings.cron_secret:
        logger.error("CRON_SECRET is not configured; rejecting scheduler request")
        raise HTTPException(status_code=401, detail="Unauthorized - cron endpoint not configured")
    if not _is_cron_secret(_bearer_token(authorization)):
        logger.error("Invalid or missing scheduler authorization")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return Caller(is_scheduler=True)


def require_caller(authorization: Annotated[str | None, Header()] = None) -> Caller:
    """Accept the scheduler secret or any token Supabase Auth resolves to a user."""
    token = _bearer_token(authorization)
    if _is_cron_secret(token):
        return Caller(is_scheduler=True)
    user_id = _resolve_user(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return Caller(user_id=user_id)


CallerDep = Annotated[Caller, Depends(require_caller)]
SchedulerDep = Annotated[Caller, Depends(require_scheduler)]
