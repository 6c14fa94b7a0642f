"""Paywall domain entities: PaymentRecord and AccessIdentity."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

# pending: not paid yet, or paid and claim running
# claimed: claimed_token stored
# retriable: paid, claim hit a transport failure and may run again
# failed: paid, mint rejected the claim
# skipped: paid, provider does not store tokens
ClaimStatus = Literal["pending", "claimed", "retriable", "failed", "skipped"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PaymentRecord(BaseModel):
    """Invoice and access-token state for one access grant."""

    quote_id: str = Field(..., min_length=1, max_length=100)
    access_token: str = Field(..., min_length=1, max_length=200)
    created_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    claimed_token: Optional[str] = None
    claim_status: ClaimStatus = "pending"
    user_identifier: Optional[str] = Field(None, max_length=100)
    amount: int = Field(..., gt=0)
    unit: str = Field(..., min_length=1, max_length=10)
    provider: str = Field(..., min_length=1, max_length=50)

    @model_validator(mode="after")
    def check_invariants(self) -> "PaymentRecord":
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        if self.claimed_token is not None and not self.is_paid:
            raise ValueError("claimed_token requires a paid record")
        return self

    @field_serializer("created_at", "expires_at")
    def serialize_datetime(self, value: datetime) -> str:
        return value.isoformat()

    @field_serializer("paid_at")
    def serialize_paid_at(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """A record grants access while paid and not yet expired."""
        now = now or utc_now()
        return self.is_paid and now < self.expires_at

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return now >= self.expires_at

    @property
    def needs_claim_retry(self) -> bool:
        """Paid but unclaimed; a live lease still decides who runs the claim."""
        return (
            self.is_paid
            and self.claimed_token is None
            and self.claim_status in ("retriable", "pending")
        )

    def mark_paid(self, paid_at: Optional[datetime] = None) -> "PaymentRecord":
        """Return the paid version of this record (claim not yet run)."""
        if self.is_paid:
            raise ValueError("Payment record is already paid")
        return self.model_copy(
            update={
                "is_paid": True,
                "paid_at": paid_at or utc_now(),
                "claim_status": "pending",
            }
        )

    def with_claim_outcome(
        self, claim_status: ClaimStatus, claimed_token: Optional[str] = None
    ) -> "PaymentRecord":
        """Return this paid record carrying the claim result."""
        if not self.is_paid:
            raise ValueError("Cannot record a claim on an unpaid record")
        if self.claimed_token is not None:
            raise ValueError("Claimed token is already stored")
        return self.model_copy(
            update={"claim_status": claim_status, "claimed_token": claimed_token}
        )

    def to_identity(self) -> "AccessIdentity":
        return AccessIdentity(
            quote_id=self.quote_id,
            user_identifier=self.user_identifier,
            provider=self.provider,
            expires_at=self.expires_at,
        )


class AccessIdentity(BaseModel):
    """Read-only identity attached to requests that passed the access gate."""

    model_config = ConfigDict(frozen=True)

    quote_id: str
    user_identifier: Optional[str] = None
    provider: str
    expires_at: datetime

    @field_serializer("expires_at")
    def serialize_expires_at(self, value: datetime) -> str:
        return value.isoformat()
