# tbls/sign.py
import struct
from dataclasses import dataclass

from py_ecc.optimized_bls12_381 import multiply, curve_order as R

from common.errors import MalformedShare
from common.poly import PriShare
from common.util import hash_to_G2_point, g2_to_bytes, bytes_to_g2


@dataclass(frozen=True, eq=False)
class PartialSignature:
    """sigma_i = x_i * H(m) in G2, tagged with the signer's index."""
    index: int
    point: tuple

    def to_bytes(self) -> bytes:
        return struct.pack(">H", self.index) + g2_to_bytes(self.point)

    @classmethod
    def from_bytes(cls, b: bytes) -> "PartialSignature":
        if len(b) < 2:
            raise ValueError("partial signature too short")
        (index,) = struct.unpack(">H", b[:2])
        return cls(index, bytes_to_g2(b[2:]))


def sign(share: PriShare, msg: bytes) -> PartialSignature:
    """Deterministic BLS signature of `msg` under one secret share."""
    index, value = _check_share(share)
    msg_point = hash_to_G2_point(msg)
    return PartialSignature(index, multiply(msg_point, value))


def _check_share(share):
    try:
        index, value = share
    except (TypeError, ValueError):
        raise MalformedShare(f"not a (index, value) share: {share!r}") from None
    if isinstance(index, bool) or not isinstance(index, int) or not 1 <= index <= 0xFFFF:
        raise MalformedShare(f"share index out of range: {index!r}")
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < R:
        raise MalformedShare(f"share value of node {index} is not a non-zero reduced scalar")
    return index, value
