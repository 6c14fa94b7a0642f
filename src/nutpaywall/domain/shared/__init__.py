"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .payment_provider import (
    ClaimTokenResult,
    CreateInvoiceResult,
    PaymentProvider,
    PaymentStatus,
    PaymentStatusResult,
)

__all__ = [
    "ClaimTokenResult",
    "CreateInvoiceResult",
    "PaymentProvider",
    "PaymentStatus",
    "PaymentStatusResult",
]
