"""Use cases for the paywall invoice and payment lifecycle."""

from __future__ import annotations

import asyncio
import base64
import logging
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from ....crypto.randomness import RandomSource, SystemRandomSource
from ....domain.errors import (
    ClaimFailed,
    InvoiceCreationFailed,
    PaywallError,
    ValidationFailed,
)
from ....domain.paywall.entities import PaymentRecord, utc_now
from ....domain.paywall.payment_record_repository import PaymentRecordRepository
from ....domain.shared import PaymentProvider, PaymentStatus
from ..dtos import (
    CheckPaymentResponseDTO,
    CreateInvoiceRequestDTO,
    CreateInvoiceResponseDTO,
    ValidateTokenResponseDTO,
)

logger = logging.getLogger(__name__)

ACCESS_TOKEN_BYTES = 32
MAX_TOKEN_ATTEMPTS = 3


def generate_access_token(rng: Optional[RandomSource] = None) -> str:
    """32 random bytes as URL-safe base64 without padding."""
    raw = (rng or SystemRandomSource()).token_bytes(ACCESS_TOKEN_BYTES)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def build_access_link(base_url: str, protected_path: str, access_token: str) -> str:
    return (
        f"{base_url.rstrip('/')}/{protected_path.strip('/')}/sse"
        f"?accessToken={access_token}"
    )


class PaywallService:
    """Service driving PaymentRecord through Pending -> Paid (-> Claimed).

    Only the caller that wins the atomic Paid transition runs the claim;
    everyone else reads the stored outcome.
    """

    def __init__(
        self,
        payment_record_repository: PaymentRecordRepository,
        payment_provider: PaymentProvider,
        *,
        token_validity_days: int = 7,
        default_amount: int = 99,
        default_unit: str = "usd",
        title: str = "MCP Server Access",
        protected_path: str = "/mcp",
        enable_logging: bool = True,
        rng: Optional[RandomSource] = None,
    ):
        self.payment_record_repository = payment_record_repository
        self.payment_provider = payment_provider
        self.token_validity_days = token_validity_days
        self.default_amount = default_amount
        self.default_unit = default_unit
        self.title = title
        self.protected_path = protected_path
        self.enable_logging = enable_logging
        self.rng = rng or SystemRandomSource()

    async def create_invoice(
        self, dto: CreateInvoiceRequestDTO, user_identifier: Optional[str] = None
    ) -> CreateInvoiceResponseDTO:
        """Issue an invoice through the provider and persist a Pending record."""
        amount = dto.amount if dto.amount is not None else self.default_amount
        unit = dto.unit or self.default_unit
        description = dto.description or f"{self.title} ({amount} {unit})"
        if amount <= 0:
            raise ValidationFailed("Amount must be greater than zero")

        try:
            invoice = await self.payment_provider.create_invoice(amount, unit, description)
        except PaywallError:
            raise
        except Exception as e:
            logger.exception("Payment provider failed to create invoice")
            raise InvoiceCreationFailed(f"Failed to create invoice: {e}") from e

        created_at = utc_now()
        for _ in range(MAX_TOKEN_ATTEMPTS):
            record = PaymentRecord(
                quote_id=invoice.quote_id,
                access_token=generate_access_token(self.rng),
                created_at=created_at,
                expires_at=created_at + timedelta(days=self.token_validity_days),
                amount=amount,
                unit=unit,
                provider=self.payment_provider.name,
                user_identifier=dto.user_identifier or user_identifier,
            )
            status = await self.payment_record_repository.create(record)
            if status == 1:
                break
            if status == 0:
                raise InvoiceCreationFailed(
                    f"Provider returned an already used quote id {invoice.quote_id}"
                )
            # status == 3: access token collision, draw a new one
        else:
            raise InvoiceCreationFailed("Could not allocate a unique access token")

        if self.enable_logging:
            logger.info(
                "Created invoice %s for %s %s using %s (user: %s)",
                record.quote_id,
                amount,
                unit,
                record.provider,
                record.user_identifier or "unknown",
            )

        return CreateInvoiceResponseDTO(
            quote=invoice.quote_id,
            request=invoice.payment_request,
            amount=amount,
            unit=unit,
            provider=record.provider,
            expires_at=invoice.expires_at,
        )

    async def check_payment(self, quote_id: str, base_url: str) -> CheckPaymentResponseDTO:
        """Report the state of an invoice, running the claim on the Paid edge."""
        record = await self.payment_record_repository.get_by_quote_id(quote_id)
        if record is None:
            return CheckPaymentResponseDTO(state="NOT_FOUND", paid=False)

        if record.is_paid:
            if record.needs_claim_retry:
                record = await self._retry_claim(record)
            return self._paid_response(record, base_url)

        try:
            status_result = await self.payment_provider.check_status(quote_id)
        except Exception as e:
            # PENDING -> FAILED is re-checkable; the caller polls again
            logger.warning("Payment status check failed for quote %s: %s", quote_id, e)
            return CheckPaymentResponseDTO(state="FAILED", paid=False)

        if status_result.status != PaymentStatus.PAID:
            return CheckPaymentResponseDTO(state=status_result.status.value, paid=False)

        lease_owner = uuid4().hex
        status, stored = await self.payment_record_repository.mark_paid(
            record.mark_paid(), lease_owner
        )
        if status == 2 or stored is None:
            return CheckPaymentResponseDTO(state="NOT_FOUND", paid=False)

        if status == 1:
            if self.enable_logging:
                logger.info(
                    "Payment completed for quote %s (user: %s)",
                    quote_id,
                    stored.user_identifier or "unknown",
                )
            stored = await self._run_claim(stored, lease_owner)

        return self._paid_response(stored, base_url)

    async def validate_access_token(self, access_token: str) -> Optional[PaymentRecord]:
        """Return the record behind an active access token, else None."""
        if not access_token:
            return None
        record = await self.payment_record_repository.get_by_access_token(access_token)
        if record is None or not record.is_active():
            return None
        return record

    async def validate_token(self, access_token: str) -> ValidateTokenResponseDTO:
        record = await self.validate_access_token(access_token)
        if record is None:
            return ValidateTokenResponseDTO(valid=False, message="Invalid or expired token")
        return ValidateTokenResponseDTO(
            valid=True,
            expires_at=record.expires_at,
            provider=record.provider,
            amount=record.amount,
            unit=record.unit,
        )

    def _paid_response(self, record: PaymentRecord, base_url: str) -> CheckPaymentResponseDTO:
        return CheckPaymentResponseDTO(
            state="PAID",
            paid=True,
            access_token=record.access_token,
            access_link=build_access_link(
                base_url, self.protected_path, record.access_token
            ),
            expires_at=record.expires_at,
        )

    async def _retry_claim(self, record: PaymentRecord) -> PaymentRecord:
        lease_owner = uuid4().hex
        status, leased = await self.payment_record_repository.acquire_claim_lease(
            record.quote_id, lease_owner
        )
        if status != 1 or leased is None:
            return leased or record
        logger.info("Retrying claim for paid quote %s", record.quote_id)
        return await self._run_claim(leased, lease_owner)

    async def _run_claim(self, record: PaymentRecord, lease_owner: str) -> PaymentRecord:
        # A started claim must finish even if the polling request goes away
        return await asyncio.shield(self._claim_and_store(record, lease_owner))

    async def _claim_and_store(
        self, record: PaymentRecord, lease_owner: str
    ) -> PaymentRecord:
        try:
            result = await self.payment_provider.claim_token(
                record.quote_id, record.amount, record.unit
            )
            if result is None:
                outcome = record.with_claim_outcome("skipped")
            else:
                outcome = record.with_claim_outcome("claimed", result.token)
        except ClaimFailed as e:
            claim_status = "retriable" if e.retriable else "failed"
            logger.error(
                "Claim for quote %s failed (%s): %s", record.quote_id, claim_status, e.message
            )
            outcome = record.with_claim_outcome(claim_status)
        except Exception:
            logger.exception("Unexpected error while claiming quote %s", record.quote_id)
            outcome = record.with_claim_outcome("failed")

        status, stored = await self.payment_record_repository.finish_claim(
            outcome, lease_owner
        )
        if status != 1:
            logger.warning(
                "Claim outcome for quote %s not stored (status=%s); "
                "another claimer took over or a token is already stored",
                record.quote_id,
                status,
            )
            return stored or record
        return stored or outcome
