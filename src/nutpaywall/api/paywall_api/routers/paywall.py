"""Paywall API routes: invoices, payment checks, token validation, admin."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from fastapi import APIRouter, Depends, Path, Query, Request
from prometheus_client import Counter, Gauge, Histogram

from ....application.paywall.dtos import (
    CheckPaymentResponseDTO,
    CleanupResponseDTO,
    CreateInvoiceRequestDTO,
    CreateInvoiceResponseDTO,
    StatisticsResponseDTO,
    ValidateTokenResponseDTO,
)
from ....application.paywall.use_cases.maintenance import MaintenanceService
from ....application.paywall.use_cases.paywall import PaywallService
from ....domain.errors import MaintenanceFailed, PaywallError
from ..dependencies import get_maintenance_service, get_paywall_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["paywall"])


REQUEST_DURATION_BUCKETS = (
    [float(x) for x in range(5, 50, 5)]  # 5..45ms (5ms resolution)
    + [float(x) for x in range(50, 1000, 50)]  # 50..950ms (mint round trips)
    + [1000.0, 2500.0, 5000.0, 10000.0, float("inf")]
)

paywall_requests_total = Counter(
    "paywall_requests_total",
    "Total paywall API requests processed",
    ["endpoint", "status"],
)

paywall_request_duration_milliseconds = Histogram(
    "paywall_request_duration_milliseconds",
    "Wall time to process a paywall API request (ms)",
    ["endpoint", "status"],
    buckets=REQUEST_DURATION_BUCKETS,
)

paywall_requests_inprogress = Gauge(
    "paywall_requests_inprogress",
    "Number of paywall API requests currently being processed",
    ["endpoint"],
    multiprocess_mode="livesum",
)

paywall_payment_states_total = Counter(
    "paywall_payment_states_total",
    "check-payment results by reported state",
    ["state"],
)


@contextmanager
def _observe(endpoint: str) -> Iterator[None]:
    start_time = time.perf_counter()
    paywall_requests_inprogress.labels(endpoint=endpoint).inc()
    status = "success"
    try:
        yield
    except PaywallError as e:
        status = "client_error" if e.status_code < 500 else "server_error"
        raise
    except Exception:
        status = "server_error"
        raise
    finally:
        elapsed = (time.perf_counter() - start_time) * 1000
        paywall_requests_total.labels(endpoint=endpoint, status=status).inc()
        paywall_request_duration_milliseconds.labels(
            endpoint=endpoint, status=status
        ).observe(elapsed)
        paywall_requests_inprogress.labels(endpoint=endpoint).dec()


def _client_identifier(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _base_url(request: Request) -> str:
    scheme = request.headers.get("X-Forwarded-Proto", request.url.scheme)
    host = request.headers.get("host") or request.url.netloc
    # Links handed out to remote clients must not downgrade to plain http
    if scheme == "http" and "localhost" not in host and "127.0.0.1" not in host:
        scheme = "https"
    return f"{scheme}://{host}"


@router.post("/create-invoice", response_model=CreateInvoiceResponseDTO)
async def create_invoice(
    invoice_data: CreateInvoiceRequestDTO,
    request: Request,
    paywall_service: PaywallService = Depends(get_paywall_service),
) -> CreateInvoiceResponseDTO:
    """Create a payment invoice for one access grant."""
    with _observe("create_invoice"):
        try:
            return await paywall_service.create_invoice(
                invoice_data, user_identifier=_client_identifier(request)
            )
        except PaywallError:
            raise
        except Exception:
            logger.exception("Failed to create invoice")
            raise


@router.get("/check-payment/{quote_id}", response_model=CheckPaymentResponseDTO)
async def check_payment(
    request: Request,
    quote_id: str = Path(..., description="Quote identifier issued by the provider"),
    paywall_service: PaywallService = Depends(get_paywall_service),
) -> CheckPaymentResponseDTO:
    """Check payment status; returns the access token once paid."""
    with _observe("check_payment"):
        try:
            result = await paywall_service.check_payment(quote_id, _base_url(request))
        except PaywallError:
            raise
        except Exception:
            logger.exception("Failed to check payment for quote %s", quote_id)
            raise
        paywall_payment_states_total.labels(state=result.state).inc()
        return result


@router.get("/validate-token", response_model=ValidateTokenResponseDTO)
async def validate_token(
    token: str = Query(..., description="Access token to validate"),
    paywall_service: PaywallService = Depends(get_paywall_service),
) -> ValidateTokenResponseDTO:
    with _observe("validate_token"):
        return await paywall_service.validate_token(token)


@router.get("/statistics", response_model=StatisticsResponseDTO)
async def get_statistics(
    maintenance_service: MaintenanceService = Depends(get_maintenance_service),
) -> StatisticsResponseDTO:
    """Aggregate payment statistics (admin endpoint)."""
    with _observe("statistics"):
        try:
            return await maintenance_service.get_statistics()
        except Exception as e:
            # Store errors can name hosts or keys; details stay in the log
            logger.exception("Failed to get statistics")
            raise MaintenanceFailed("Failed to get statistics") from e


@router.post("/cleanup", response_model=CleanupResponseDTO)
async def cleanup(
    maintenance_service: MaintenanceService = Depends(get_maintenance_service),
) -> CleanupResponseDTO:
    """Delete records past the retention window (admin endpoint)."""
    with _observe("cleanup"):
        try:
            cleaned = await maintenance_service.cleanup_expired_records()
        except Exception as e:
            logger.exception("Failed to cleanup expired records")
            raise MaintenanceFailed("Failed to clean up expired records") from e
        return CleanupResponseDTO(cleaned=cleaned)
