"""Minimal endpoint behind the access gate."""

from __future__ import annotations

from fastapi import APIRouter, Request

from ....domain.errors import Unauthorized
from ....domain.paywall.entities import AccessIdentity
from ....middleware.access_gate import IDENTITY_STATE_ATTR

router = APIRouter(tags=["protected"])


@router.get("/session", response_model=AccessIdentity)
async def get_session(request: Request) -> AccessIdentity:
    """Return the identity the access gate attached to this request."""
    identity = getattr(request.state, IDENTITY_STATE_ATTR, None)
    if identity is None:
        raise Unauthorized("Access token required")
    return identity
