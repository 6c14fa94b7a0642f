"""Scriptable PaymentProvider for service-level tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from nutpaywall.domain.errors import ClaimFailed
from nutpaywall.domain.shared import (
    ClaimTokenResult,
    CreateInvoiceResult,
    PaymentStatus,
    PaymentStatusResult,
)


class FakePaymentProvider:
    """In-memory provider whose quote states are set by the test."""

    def __init__(self, *, store_tokens: bool = True, claim_delay: float = 0.0) -> None:
        self.store_tokens = store_tokens
        self.claim_delay = claim_delay
        self.statuses: dict[str, PaymentStatus] = {}
        self.check_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self.claim_error: Optional[Exception] = None
        self.fixed_quote_id: Optional[str] = None
        self.created = 0
        self.check_calls = 0
        self.claim_calls = 0

    @property
    def name(self) -> str:
        return "fake"

    def set_status(self, quote_id: str, status: PaymentStatus) -> None:
        self.statuses[quote_id] = status

    def fail_claims(self, *, retriable: bool) -> None:
        self.claim_error = ClaimFailed("mint refused", retriable=retriable)

    async def create_invoice(
        self, amount: int, unit: str, description: Optional[str] = None
    ) -> CreateInvoiceResult:
        if self.create_error is not None:
            raise self.create_error
        self.created += 1
        quote_id = self.fixed_quote_id or f"quote-{self.created}"
        self.statuses.setdefault(quote_id, PaymentStatus.PENDING)
        return CreateInvoiceResult(
            quote_id=quote_id,
            payment_request=f"lnbc{amount}fake{self.created}",
            amount=amount,
            unit=unit,
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        )

    async def check_status(self, quote_id: str) -> PaymentStatusResult:
        self.check_calls += 1
        if self.check_error is not None:
            raise self.check_error
        status = self.statuses.get(quote_id, PaymentStatus.FAILED)
        return PaymentStatusResult(status=status)

    async def claim_token(
        self, quote_id: str, amount: int, unit: str
    ) -> Optional[ClaimTokenResult]:
        if not self.store_tokens:
            return None
        self.claim_calls += 1
        if self.claim_delay:
            await asyncio.sleep(self.claim_delay)
        if self.claim_error is not None:
            raise self.claim_error
        return ClaimTokenResult(
            token=f"cashuAfake-{quote_id}-{self.claim_calls}",
            proof_count=bin(amount).count("1"),
            amount=amount,
        )
