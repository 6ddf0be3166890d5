"""
FastAPI dependencies: acting user from the bearer token, and service providers.
Tests swap the providers through app.dependency_overrides.
"""

import logging

from fastapi import Header, HTTPException
from pydantic import BaseModel

from utils.auth_utils import decode_token
from .logic.lifecycle import LifecycleService
from .logic.admin_override import AdminOverrideService
from .logic.statistics import StatisticsService

logger = logging.getLogger(__name__)


class Actor(BaseModel):
    id: str
    role: str = "guardian"


def _parse_bearer(authorization: str | None) -> Actor | None:
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        data = decode_token(token)
    except Exception as e:
        logger.error(f"Token decode failed: {e}")
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")
    actor_id = data.get("sub")
    if not actor_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return Actor(id=str(actor_id), role=data.get("role", "guardian"))


def optional_actor(authorization: str | None = Header(default=None)) -> Actor | None:
    return _parse_bearer(authorization)


def require_admin(authorization: str | None = Header(default=None)) -> Actor:
    actor = _parse_bearer(authorization)
    if actor is None:
        raise HTTPException(status_code=401, detail="Missing token")
    if actor.role != "admin":
        raise HTTPException(status_code=403, detail="Admin role required")
    return actor


_lifecycle = None
_admin = None
_statistics = None


def get_lifecycle_service() -> LifecycleService:
    global _lifecycle
    if _lifecycle is None:
        _lifecycle = LifecycleService()
    return _lifecycle


def get_admin_service() -> AdminOverrideService:
    global _admin
    if _admin is None:
        _admin = AdminOverrideService()
    return _admin


def get_statistics_service() -> StatisticsService:
    global _statistics
    if _statistics is None:
        _statistics = StatisticsService()
    return _statistics
