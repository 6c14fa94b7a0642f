"""Data Transfer Objects for the paywall application layer."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..shared.serializers import ExpiresAtSerializerMixin, TimestampSerializerMixin

CheckPaymentState = Literal["NOT_FOUND", "PENDING", "PAID", "EXPIRED", "FAILED"]


class CreateInvoiceRequestDTO(BaseModel):
    """DTO for requesting a new invoice; omitted fields use paywall defaults."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"amount": 99, "unit": "usd"}}
    )

    amount: Optional[int] = None
    unit: Optional[str] = Field(None, min_length=1, max_length=10)
    description: Optional[str] = Field(None, max_length=500)
    user_identifier: Optional[str] = Field(None, max_length=100)


class CreateInvoiceResponseDTO(ExpiresAtSerializerMixin, BaseModel):
    """DTO returned after an invoice was issued."""

    quote: str
    request: str
    amount: int
    unit: str
    provider: str
    expires_at: Optional[datetime] = None


class CheckPaymentResponseDTO(ExpiresAtSerializerMixin, BaseModel):
    """DTO describing the state of one invoice."""

    state: CheckPaymentState
    paid: bool
    access_token: Optional[str] = None
    access_link: Optional[str] = None
    expires_at: Optional[datetime] = None


class ValidateTokenResponseDTO(ExpiresAtSerializerMixin, BaseModel):
    valid: bool
    expires_at: Optional[datetime] = None
    provider: Optional[str] = None
    amount: Optional[int] = None
    unit: Optional[str] = None
    message: Optional[str] = None


class RevenueByUnitDTO(BaseModel):
    unit: str
    total: int


class StatisticsResponseDTO(BaseModel):
    """Aggregate counters over all payment records."""

    total_payments: int
    paid_payments: int
    active_tokens: int
    expired_tokens: int
    conversion_rate: float
    revenue_by_unit: list[RevenueByUnitDTO]


class CleanupResponseDTO(BaseModel):
    cleaned: int


class ErrorResponseDTO(TimestampSerializerMixin, BaseModel):
    """JSON envelope for every error returned by the paywall."""

    error: str
    message: str
    timestamp: datetime
