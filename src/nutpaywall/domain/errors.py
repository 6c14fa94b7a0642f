"""Domain-specific exceptions."""

from __future__ import annotations


class PaywallError(Exception):
    """Base class for errors surfaced to paywall callers as a JSON envelope.

    An unknown quote is not an error: the payment check answers it with the
    NOT_FOUND state, and an unknown access token fails validation.
    """

    error: str = "PaywallError"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(PaywallError):
    """Raised for a non-positive amount or a unit the mint does not support."""

    error = "ValidationFailed"
    status_code = 400


class InvoiceCreationFailed(PaywallError):
    """Raised when the payment provider cannot create an invoice."""

    error = "InvoiceCreationFailed"
    status_code = 502


class PaymentCheckFailed(PaywallError):
    """Raised when the payment provider status cannot be read; poll again."""

    error = "PaymentCheckFailed"
    status_code = 503


class ClaimFailed(PaywallError):
    """Raised when a paid invoice could not be converted into e-cash proofs.

    `retriable` distinguishes transport failures (the claim may be run again
    for the same quote) from mint rejections (fatal for that quote).
    """

    error = "ClaimFailed"
    status_code = 502

    def __init__(self, message: str, *, retriable: bool) -> None:
        super().__init__(message)
        self.retriable = retriable


class Unauthorized(PaywallError):
    """Raised when an access token does not grant entry."""

    error = "Unauthorized"
    status_code = 401


class MaintenanceFailed(PaywallError):
    """Raised to the administrative caller when statistics or cleanup fail."""

    error = "MaintenanceFailed"
    status_code = 400
