"""Cashu wire models and the serialized token format (NUT-00, V3)."""

from __future__ import annotations

import base64
import json
from typing import Final, Optional

from pydantic import BaseModel, Field

TOKEN_PREFIX: Final[str] = "cashu"
TOKEN_VERSION: Final[str] = "A"


class BlindedMessage(BaseModel):
    """Output sent to the mint for signing."""

    amount: int = Field(..., gt=0)
    id: str
    B_: str


class DLEQ(BaseModel):
    """Mint's discrete-log-equality proof for a blind signature."""

    e: str
    s: str


class DLEQWallet(DLEQ):
    """DLEQ proof carried by a proof, including the blinding factor r."""

    r: str


class BlindSignature(BaseModel):
    """Mint's signature over a blinded message."""

    amount: int
    id: str
    C_: str
    dleq: Optional[DLEQ] = None


class Proof(BaseModel):
    """An unblinded signature with its secret: a spendable unit of value."""

    id: str
    amount: int
    secret: str
    C: str
    dleq: Optional[DLEQWallet] = None


class TokenEntry(BaseModel):
    mint: str
    proofs: list[Proof]


class Token(BaseModel):
    """Self-describing bundle of proofs from one mint."""

    token: list[TokenEntry]
    unit: Optional[str] = None
    memo: Optional[str] = None

    @property
    def proofs(self) -> list[Proof]:
        return [p for entry in self.token for p in entry.proofs]

    @property
    def amount(self) -> int:
        return sum(p.amount for p in self.proofs)


def encode_token(token: Token) -> str:
    """Serialize as `cashuA` + URL-safe base64 of the JSON body."""
    body = json.dumps(token.model_dump(exclude_none=True), separators=(",", ":"))
    encoded = base64.urlsafe_b64encode(body.encode("utf-8")).decode("utf-8")
    return f"{TOKEN_PREFIX}{TOKEN_VERSION}{encoded}"


def decode_token(serialized: str) -> Token:
    """Parse a `cashuA` token string (padding optional)."""
    prefix = f"{TOKEN_PREFIX}{TOKEN_VERSION}"
    if not serialized.startswith(prefix):
        raise ValueError("unsupported token format")
    encoded = serialized[len(prefix) :]
    encoded += "=" * (-len(encoded) % 4)
    body = base64.urlsafe_b64decode(encoded.encode("utf-8"))
    return Token.model_validate(json.loads(body.decode("utf-8")))
