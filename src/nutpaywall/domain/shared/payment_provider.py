"""Protocol interface for payment provider implementations.

This protocol defines the contract that every payment backend (Cashu mint,
Lightning node, card processor) must satisfy. The paywall service depends only
on this interface, so tests can plug in fakes and deployments select a backend
through configuration.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"


class CreateInvoiceResult(BaseModel):
    """Invoice created by a provider."""

    quote_id: str
    payment_request: str
    amount: int
    unit: str
    expires_at: Optional[datetime] = None


class PaymentStatusResult(BaseModel):
    """Provider-reported status of one quote."""

    status: PaymentStatus
    amount: Optional[int] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ClaimTokenResult(BaseModel):
    """Encoded token minted for a paid quote."""

    token: str
    proof_count: int
    amount: int


class PaymentProvider(Protocol):
    """Protocol defining the interface for payment provider implementations.

    Implementations should:
    - raise `ValidationFailed` / `InvoiceCreationFailed` from `create_invoice`
    - raise `PaymentCheckFailed` from `check_status` when the backend is unreachable
    - raise `ClaimFailed` from `claim_token`, flagging whether it can be retried
    """

    @property
    def name(self) -> str:
        """Provider tag stored on payment records (e.g. "cashu")."""
        ...

    async def create_invoice(
        self, amount: int, unit: str, description: Optional[str] = None
    ) -> CreateInvoiceResult:
        """Create a payable request for `amount` `unit`."""
        ...

    async def check_status(self, quote_id: str) -> PaymentStatusResult:
        """Report whether the quote has been paid."""
        ...

    async def claim_token(
        self, quote_id: str, amount: int, unit: str
    ) -> Optional[ClaimTokenResult]:
        """Convert a paid quote into a stored token.

        Returns None when the provider is configured not to store tokens.
        """
        ...
