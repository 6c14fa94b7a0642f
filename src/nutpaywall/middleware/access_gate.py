from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..domain.paywall.payment_record_repository import PaymentRecordRepository

logger = logging.getLogger(__name__)

ACCESS_TOKEN_QUERY_PARAM = "accessToken"
IDENTITY_STATE_ATTR = "paywall_identity"


class AccessTokenMiddleware(BaseHTTPMiddleware):
    """Require an active paywall access token for the protected path.

    The token is read from the `accessToken` query parameter or from an
    `Authorization: Bearer <token>` header. Requests outside the protected
    prefix pass through untouched.

    Every request reads the payment record store; nothing is cached, so a
    record that expires or is cleaned up stops granting access immediately.
    On success the caller's `AccessIdentity` is available to handlers as
    `request.state.paywall_identity`.
    """

    def __init__(
        self,
        app,
        protected_path: str,
        repository_factory: Callable[[], PaymentRecordRepository],
        enable_logging: bool = True,
    ) -> None:
        super().__init__(app)
        self._protected_path = protected_path.rstrip("/") or "/"
        self._repository_factory = repository_factory
        self._enable_logging = enable_logging

    async def dispatch(self, request: Request, call_next: Callable):
        if not self._is_protected(request.url.path):
            return await call_next(request)

        access_token = self._extract_token(request)
        if not access_token:
            return self._unauthorized("Access token required")

        try:
            repository = self._repository_factory()
            record = await repository.get_by_access_token(access_token)
        except Exception:
            logger.exception("Payment record store unavailable during access check")
            return self._json_error(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "ServiceUnavailable",
                "Payment record store unavailable",
            )

        if record is None:
            return self._unauthorized("Invalid access token")
        if not record.is_active():
            return self._unauthorized("Access token expired or inactive")

        setattr(request.state, IDENTITY_STATE_ATTR, record.to_identity())

        if self._enable_logging:
            logger.info(
                "User %s (%s) accessing protected endpoint %s",
                record.quote_id,
                record.user_identifier or "unknown",
                request.url.path,
            )

        return await call_next(request)

    def _is_protected(self, path: str) -> bool:
        if self._protected_path == "/":
            return True
        return path == self._protected_path or path.startswith(
            self._protected_path + "/"
        )

    def _extract_token(self, request: Request) -> Optional[str]:
        token = request.query_params.get(ACCESS_TOKEN_QUERY_PARAM)
        if token:
            return token
        auth_header = request.headers.get("Authorization", "")
        scheme, _, credentials = auth_header.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return None

    def _json_error(self, status_code: int, error: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={
                "error": error,
                "message": message,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    def _unauthorized(self, message: str) -> JSONResponse:
        return self._json_error(status.HTTP_401_UNAUTHORIZED, "Unauthorized", message)
