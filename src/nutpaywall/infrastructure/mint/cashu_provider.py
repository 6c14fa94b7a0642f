"""Cashu mint implementation of the PaymentProvider protocol."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ...application.paywall.use_cases.claim import DEFAULT_MEMO, ClaimEngine
from ...crypto.randomness import RandomSource
from ...domain.errors import InvoiceCreationFailed, PaymentCheckFailed, ValidationFailed
from ...domain.shared import (
    ClaimTokenResult,
    CreateInvoiceResult,
    PaymentStatus,
    PaymentStatusResult,
)
from .mint_client import (
    AsyncMintClient,
    KeysetInfo,
    MintError,
    MintQuoteRequest,
    MintQuoteResponse,
    MintUnavailable,
)

logger = logging.getLogger(__name__)

_PENDING_STATES = {"UNPAID", "PENDING"}
_PAID_STATES = {"PAID", "ISSUED"}


def map_quote_state(
    quote: MintQuoteResponse, now: Optional[datetime] = None
) -> PaymentStatus:
    """Translate a mint quote state into a PaymentStatus."""
    state = (quote.state or "").upper()
    if not state and quote.paid is not None:
        # Pre-NUT-04 mints only report a boolean
        state = "PAID" if quote.paid else "UNPAID"

    if state in _PAID_STATES:
        return PaymentStatus.PAID
    if state == "EXPIRED":
        return PaymentStatus.EXPIRED
    if state in _PENDING_STATES:
        now = now or datetime.now(timezone.utc)
        if quote.expiry and now.timestamp() >= quote.expiry:
            return PaymentStatus.EXPIRED
        return PaymentStatus.PENDING
    return PaymentStatus.FAILED


class CashuPaymentProvider:
    """Issue bolt11 mint quotes and claim paid quotes as Cashu tokens."""

    def __init__(
        self,
        mint_client: AsyncMintClient,
        *,
        store_tokens: bool = True,
        memo: str = DEFAULT_MEMO,
        rng: Optional[RandomSource] = None,
        claim_engine: Optional[ClaimEngine] = None,
    ) -> None:
        self.mint_client = mint_client
        self.store_tokens = store_tokens
        self.claim_engine = claim_engine or ClaimEngine(
            mint_client, rng=rng, memo=memo
        )

    @property
    def name(self) -> str:
        return "cashu"

    async def _active_keyset(self, unit: str) -> KeysetInfo:
        keysets = await self.mint_client.get_keysets()
        for keyset in keysets.keysets:
            if keyset.active and keyset.unit == unit:
                return keyset
        raise ValidationFailed(f"Unit '{unit}' is not supported by the mint")

    async def create_invoice(
        self, amount: int, unit: str, description: Optional[str] = None
    ) -> CreateInvoiceResult:
        if amount <= 0:
            raise ValidationFailed("Amount must be greater than zero")

        try:
            await self._active_keyset(unit)
            quote = await self.mint_client.create_mint_quote(
                MintQuoteRequest(amount=amount, unit=unit, description=description)
            )
        except (MintError, MintUnavailable) as e:
            logger.error(
                "Failed to create Cashu invoice for amount %s %s: %s", amount, unit, e
            )
            raise InvoiceCreationFailed(f"Failed to create invoice: {e}") from e

        expires_at = (
            datetime.fromtimestamp(quote.expiry, tz=timezone.utc)
            if quote.expiry
            else None
        )
        return CreateInvoiceResult(
            quote_id=quote.quote,
            payment_request=quote.request,
            amount=amount,
            unit=unit,
            expires_at=expires_at,
        )

    async def check_status(self, quote_id: str) -> PaymentStatusResult:
        try:
            quote = await self.mint_client.get_mint_quote(quote_id)
        except MintUnavailable as e:
            logger.error("Failed to check Cashu payment status for quote %s: %s", quote_id, e)
            raise PaymentCheckFailed(f"Mint unavailable: {e}") from e
        except MintError as e:
            logger.error("Mint rejected status check for quote %s: %s", quote_id, e.detail)
            return PaymentStatusResult(
                status=PaymentStatus.FAILED,
                metadata={"cashu_error": e.detail, "cashu_code": e.code},
            )

        return PaymentStatusResult(
            status=map_quote_state(quote),
            amount=quote.amount,
            metadata={
                "cashu_state": quote.state or "unknown",
                "cashu_expiry": quote.expiry or 0,
            },
        )

    async def claim_token(
        self, quote_id: str, amount: int, unit: str
    ) -> Optional[ClaimTokenResult]:
        if not self.store_tokens:
            return None
        return await self.claim_engine.claim(quote_id, amount, unit)

    async def aclose(self) -> None:
        await self.mint_client.aclose()
