# common/util.py
import hashlib
import secrets
from typing import List, Sequence, Tuple

from py_ecc.optimized_bls12_381 import G1, Z1, Z2, add, multiply, curve_order as R
from py_ecc.bls.hash_to_curve import hash_to_G2
from py_ecc.bls.point_compression import (
    compress_G1, decompress_G1, compress_G2, decompress_G2
)

from common.config import HASH_DST


L = 48
SCALAR_LEN = 32


def scalar_to_bytes(x: int) -> bytes:
    return int(x % R).to_bytes(SCALAR_LEN, "big")


def bytes_to_scalar(b: bytes) -> int:
    if len(b) != SCALAR_LEN:
        raise ValueError(f"Expected {SCALAR_LEN} bytes for a scalar, got {len(b)}")
    x = int.from_bytes(b, "big")
    if x >= R:
        raise ValueError("Scalar is not reduced modulo the curve order")
    return x


def random_scalar() -> int:
    """Uniform non-zero scalar."""
    return secrets.randbelow(R - 1) + 1


def g1_to_bytes(P) -> bytes:
    """Serialize a G1 point into its 48-byte compressed form."""
    return int(compress_G1(P)).to_bytes(L, "big")


def bytes_to_g1(b: bytes):
    if len(b) != L:
        raise ValueError(f"Expected {L} bytes for G1 point, got {len(b)}")
    return decompress_G1(int.from_bytes(b, "big"))


def g2_to_bytes(P) -> bytes:
    """Serialize a G2 point into its 96-byte compressed form."""
    z1, z2 = compress_G2(P)
    return int(z1).to_bytes(L, "big") + int(z2).to_bytes(L, "big")


def bytes_to_g2(b: bytes):
    if len(b) != 2 * L:
        raise ValueError(f"Expected {2 * L} bytes for G2 point, got {len(b)}")
    z1 = int.from_bytes(b[:L], "big")
    z2 = int.from_bytes(b[L:], "big")
    return decompress_G2((z1, z2))


def public_key(private_key: int):
    return multiply(G1, private_key % R)


def hash_to_G2_point(msg: bytes, dst: bytes = None):
    return hash_to_G2(msg, dst or HASH_DST, hashlib.sha256)


# ---------- Lagrange interpolation ----------
def lagrange_coeff(indices: Sequence[int], at: int = 0) -> List[int]:
    """Compute Lagrange coefficients for interpolation at x=`at`."""
    if len(set(indices)) != len(indices):
        raise ValueError("Interpolation points must be distinct")
    coeffs = []
    for j, xj in enumerate(indices):
        num, den = 1, 1
        for m, xm in enumerate(indices):
            if m == j:
                continue
            num = (num * ((at - xm) % R)) % R
            den = (den * ((xj - xm) % R)) % R
        coeffs.append((num * pow(den, -1, R)) % R)
    return coeffs


def interpolate_scalar(points: Sequence[Tuple[int, int]]) -> int:
    """Recover f(0) from (x, f(x)) pairs."""
    lambdas = lagrange_coeff([x for x, _ in points])
    return sum(lam * y for lam, (_, y) in zip(lambdas, points)) % R


def interpolate_points(points: Sequence[Tuple[int, tuple]], zero=Z1):
    """Recover f(0)*P from (x, f(x)*P) pairs, i.e. interpolation in the exponent."""
    lambdas = lagrange_coeff([x for x, _ in points])
    agg = zero
    for lam, (_, P) in zip(lambdas, points):
        agg = add(agg, multiply(P, lam))
    return agg


def interpolate_g2(points: Sequence[Tuple[int, tuple]]):
    return interpolate_points(points, zero=Z2)
