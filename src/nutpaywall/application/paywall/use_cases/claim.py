"""Claim engine: turn a paid mint quote into a spendable Cashu token."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ....crypto.amounts import split_amount
from ....crypto.bdhke import (
    Point,
    blind_message,
    point_from_hex,
    point_to_hex,
    random_scalar,
    unblind_signature,
    verify_signature_dleq,
)
from ....crypto.randomness import RandomSource, SystemRandomSource
from ....crypto.token import (
    BlindedMessage,
    DLEQWallet,
    Proof,
    Token,
    TokenEntry,
    encode_token,
)
from ....domain.errors import ClaimFailed
from ....domain.shared import ClaimTokenResult
from ....infrastructure.mint.mint_client import (
    AsyncMintClient,
    Keyset,
    MintError,
    MintRequest,
    MintUnavailable,
)

logger = logging.getLogger(__name__)

DEFAULT_MEMO = "Paywall access token"


@dataclass
class _PendingOutput:
    """Per-output secret material; lives only for one claim."""

    amount: int
    secret: str
    r: int
    blinded: Point


class ClaimEngine:
    """Run the blind-signature protocol against the mint for one quote.

    Transport failures raise `ClaimFailed(retriable=True)`; any mint-side
    rejection or inconsistency raises `ClaimFailed(retriable=False)`.
    """

    def __init__(
        self,
        mint_client: AsyncMintClient,
        *,
        mint_url: Optional[str] = None,
        rng: Optional[RandomSource] = None,
        memo: str = DEFAULT_MEMO,
    ) -> None:
        self.mint_client = mint_client
        self.mint_url = mint_url or mint_client.base_url
        self.rng = rng or SystemRandomSource()
        self.memo = memo

    async def claim(self, quote_id: str, amount: int, unit: str) -> ClaimTokenResult:
        try:
            return await self._claim(quote_id, amount, unit)
        except MintUnavailable as e:
            logger.warning("Claim for quote %s hit a transport failure: %s", quote_id, e)
            raise ClaimFailed(f"Mint unavailable: {e}", retriable=True) from e
        except MintError as e:
            logger.error("Mint rejected claim for quote %s: %s", quote_id, e.detail)
            raise ClaimFailed(f"Mint rejected claim: {e.detail}", retriable=False) from e

    async def active_keyset(self, unit: str) -> Keyset:
        """Fetch the keys of the mint's active keyset for `unit`."""
        keysets = await self.mint_client.get_keysets()
        info = next((k for k in keysets.keysets if k.active and k.unit == unit), None)
        if info is None:
            raise ClaimFailed(f"No active keyset for unit '{unit}'", retriable=False)

        keys = await self.mint_client.get_keys(info.id)
        keyset = next((k for k in keys.keysets if k.id == info.id), None)
        if keyset is None or not keyset.keys:
            raise ClaimFailed(f"Mint returned no keys for keyset {info.id}", retriable=False)
        return keyset

    def _prepare_outputs(self, amount: int, keyset: Keyset) -> list[_PendingOutput]:
        try:
            parts = split_amount(amount, keyset.denominations)
        except ValueError as e:
            raise ClaimFailed(str(e), retriable=False) from e

        outputs: list[_PendingOutput] = []
        for part in parts:
            secret = self.rng.token_bytes(32).hex()
            r = random_scalar(self.rng)
            outputs.append(_PendingOutput(part, secret, r, blind_message(secret, r)))
        return outputs

    async def _claim(self, quote_id: str, amount: int, unit: str) -> ClaimTokenResult:
        keyset = await self.active_keyset(unit)
        outputs = self._prepare_outputs(amount, keyset)

        request = MintRequest(
            quote=quote_id,
            outputs=[
                BlindedMessage(amount=o.amount, id=keyset.id, B_=point_to_hex(o.blinded))
                for o in outputs
            ],
        )
        response = await self.mint_client.mint(request)

        if len(response.signatures) != len(outputs):
            raise ClaimFailed(
                f"Mint returned {len(response.signatures)} signatures "
                f"for {len(outputs)} outputs",
                retriable=False,
            )

        proofs = [
            self._unblind(output, signature, keyset)
            for output, signature in zip(outputs, response.signatures)
        ]

        token = Token(
            token=[TokenEntry(mint=self.mint_url, proofs=proofs)],
            unit=unit,
            memo=self.memo,
        )
        logger.info("Claimed %s %s in %d proofs for quote %s", amount, unit, len(proofs), quote_id)
        return ClaimTokenResult(
            token=encode_token(token), proof_count=len(proofs), amount=token.amount
        )

    def _unblind(self, output: _PendingOutput, signature, keyset: Keyset) -> Proof:
        if signature.amount != output.amount:
            raise ClaimFailed(
                f"Signature amount {signature.amount} does not match output {output.amount}",
                retriable=False,
            )
        key_hex = keyset.key_for(signature.amount)
        if key_hex is None:
            raise ClaimFailed(
                f"Keyset {keyset.id} has no key for amount {signature.amount}",
                retriable=False,
            )

        try:
            mint_pubkey = point_from_hex(key_hex)
            blind_signature = point_from_hex(signature.C_)
        except ValueError as e:
            raise ClaimFailed(f"Malformed mint point: {e}", retriable=False) from e

        dleq: Optional[DLEQWallet] = None
        if signature.dleq is not None:
            try:
                e_bytes = bytes.fromhex(signature.dleq.e)
                s_bytes = bytes.fromhex(signature.dleq.s)
            except ValueError as e:
                raise ClaimFailed(f"Malformed DLEQ proof: {e}", retriable=False) from e
            if not verify_signature_dleq(
                output.blinded, blind_signature, e_bytes, s_bytes, mint_pubkey
            ):
                raise ClaimFailed("Invalid DLEQ proof from mint", retriable=False)
            dleq = DLEQWallet(
                e=signature.dleq.e,
                s=signature.dleq.s,
                r=output.r.to_bytes(32, "big").hex(),
            )

        unblinded = unblind_signature(blind_signature, output.r, mint_pubkey)
        return Proof(
            id=signature.id,
            amount=signature.amount,
            secret=output.secret,
            C=point_to_hex(unblinded),
            dleq=dleq,
        )
