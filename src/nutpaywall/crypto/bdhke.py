"""Blind Diffie-Hellman key exchange over secp256k1 (Cashu NUT-00 / NUT-12).

Notation follows the Cashu specs:

  Y  = hash_to_curve(secret)       deterministic point for a secret
  B_ = Y + r*G                     blinded message sent to the mint
  C_ = k*B_                        blind signature returned by the mint
  C  = C_ - r*K                    unblinded signature, K = k*G

Points are handled as `ecdsa.ellipticcurve.PointJacobi` and exchanged as
33-byte compressed SEC1 hex strings.
Only the wallet side of the exchange lives here.
"""

from __future__ import annotations

import hashlib
from typing import Final

from ecdsa import SECP256k1, ellipticcurve

from .randomness import RandomSource

Point = ellipticcurve.PointJacobi

CURVE: Final = SECP256k1.curve
G: Final[Point] = SECP256k1.generator
N: Final[int] = SECP256k1.order
P: Final[int] = CURVE.p()

DOMAIN_SEPARATOR: Final[bytes] = b"Secp256k1_HashToCurve_Cashu_"


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def _lift_x(x: int, parity: int) -> Point:
    """Return the curve point with x-coordinate `x` and the given y parity."""
    if not 0 < x < P:
        raise ValueError("x-coordinate out of range")
    alpha = (pow(x, 3, P) + 7) % P
    beta = pow(alpha, (P + 1) // 4, P)
    if pow(beta, 2, P) != alpha:
        raise ValueError("x-coordinate is not on the curve")
    y = beta if beta % 2 == parity else P - beta
    return Point(CURVE, x, y, 1, N)


def point_from_bytes(data: bytes) -> Point:
    """Parse a 33-byte compressed SEC1 point."""
    if len(data) != 33 or data[0] not in (2, 3):
        raise ValueError("invalid compressed point")
    return _lift_x(int.from_bytes(data[1:], "big"), data[0] % 2)


def point_from_hex(data_hex: str) -> Point:
    try:
        raw = bytes.fromhex(data_hex)
    except ValueError as e:
        raise ValueError(f"invalid point hex: {e}") from e
    return point_from_bytes(raw)


def point_to_bytes(point: Point, compressed: bool = True) -> bytes:
    if point == ellipticcurve.INFINITY:
        raise ValueError("cannot serialize the point at infinity")
    x, y = point.x(), point.y()
    if compressed:
        return (b"\x02" if y % 2 == 0 else b"\x03") + x.to_bytes(32, "big")
    return b"\x04" + x.to_bytes(32, "big") + y.to_bytes(32, "big")


def point_to_hex(point: Point, compressed: bool = True) -> str:
    return point_to_bytes(point, compressed).hex()


def negate(point: Point) -> Point:
    return (N - 1) * point


def random_scalar(rng: RandomSource) -> int:
    """Uniform scalar in [1, N-1]."""
    while True:
        k = int.from_bytes(rng.token_bytes(32), "big")
        if 0 < k < N:
            return k


def hash_to_curve(message: bytes) -> Point:
    """Map a message to a curve point with unknown discrete log."""
    msg_to_hash = sha256(DOMAIN_SEPARATOR + message)
    for counter in range(2**16):
        candidate = sha256(msg_to_hash + counter.to_bytes(4, "little"))
        try:
            return point_from_bytes(b"\x02" + candidate)
        except ValueError:
            continue
    raise ValueError("No valid point found")


def blind_message(secret: str, r: int) -> Point:
    """B_ = Y + r*G."""
    y = hash_to_curve(secret.encode("utf-8"))
    return y + r * G


def unblind_signature(blind_signature: Point, r: int, mint_pubkey: Point) -> Point:
    """C = C_ - r*K."""
    return blind_signature + negate(r * mint_pubkey)


def hash_e(*points: Point) -> bytes:
    """Challenge hash over uncompressed hex encodings (NUT-12)."""
    joined = "".join(point_to_hex(p, compressed=False) for p in points)
    return sha256(joined.encode("utf-8"))


def verify_signature_dleq(
    blinded: Point, blind_signature: Point, e: bytes, s: bytes, mint_pubkey: Point
) -> bool:
    """Check the mint's proof that C_ and K share the discrete log k.

    R1 = s*G - e*K, R2 = s*B_ - e*C_, valid iff e == hash_e(R1, R2, K, C_).
    """
    e_int = int.from_bytes(e, "big")
    s_int = int.from_bytes(s, "big")
    r1 = s_int * G + negate(e_int * mint_pubkey)
    r2 = s_int * blinded + negate(e_int * blind_signature)
    if r1 == ellipticcurve.INFINITY or r2 == ellipticcurve.INFINITY:
        return False
    return e == hash_e(r1, r2, mint_pubkey, blind_signature)
