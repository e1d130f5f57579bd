# common/poly.py
from collections import namedtuple
from typing import List, Sequence

from py_ecc.optimized_bls12_381 import G1, Z1, add, multiply, eq, curve_order as R

from common.util import random_scalar, g1_to_bytes, bytes_to_g1


PriShare = namedtuple("PriShare", ["index", "value"])
PriShare.__doc__ = "Secret polynomial evaluated at `index` (index is the evaluation point)."


def gen_poly(t: int, secret: int = None) -> List[int]:
    coeffs = [random_scalar() for _ in range(t)]
    if secret is not None:
        coeffs[0] = secret % R
    return coeffs


def eval_poly(coeffs: Sequence[int], x: int) -> int:
    res = 0
    for a in reversed(coeffs):
        res = (res * x + a) % R
    return res


def eval_commits(commits: Sequence[tuple], x: int):
    """Evaluate a public polynomial at x (Horner in the exponent)."""
    acc = Z1
    for C in reversed(commits):
        acc = add(multiply(acc, x % R), C)
    return acc


def verify_share(share: int, j: int, commits: Sequence[tuple]) -> bool:
    """
    Verify share s_ij against commitments of a dealer.
    share   : integer s_ij
    j       : index of receiving node
    commits : list of G1 commitments [C0, C1, ..., Ct-1]
    """
    return eq(multiply(G1, share % R), eval_commits(commits, j))


class PriPoly:
    """Secret polynomial of degree t-1 over the BLS12-381 scalar field."""

    def __init__(self, coeffs: Sequence[int]):
        if not coeffs:
            raise ValueError("polynomial needs at least one coefficient")
        self.coeffs = [c % R for c in coeffs]

    @classmethod
    def random(cls, t: int, secret: int = None) -> "PriPoly":
        return cls(gen_poly(t, secret))

    @property
    def threshold(self) -> int:
        return len(self.coeffs)

    @property
    def secret(self) -> int:
        return self.coeffs[0]

    def eval(self, i: int) -> PriShare:
        return PriShare(i, eval_poly(self.coeffs, i))

    def shares(self, n: int) -> List[PriShare]:
        return [self.eval(i) for i in range(1, n + 1)]

    def commit(self) -> "PubPoly":
        return PubPoly([multiply(G1, c) for c in self.coeffs])


class PubPoly:
    """Commitment to a PriPoly: coefficient k is a_k*G1."""

    def __init__(self, commits: Sequence[tuple]):
        if not commits:
            raise ValueError("public polynomial needs at least one commitment")
        self.commits = tuple(commits)

    @classmethod
    def from_bytes_list(cls, blobs: Sequence[bytes]) -> "PubPoly":
        return cls([bytes_to_g1(b) for b in blobs])

    def to_bytes_list(self) -> List[bytes]:
        return [g1_to_bytes(C) for C in self.commits]

    @property
    def threshold(self) -> int:
        return len(self.commits)

    @property
    def commit(self):
        return self.commits[0]

    def eval(self, i: int):
        return eval_commits(self.commits, i)

    def check(self, share: PriShare) -> bool:
        return verify_share(share.value, share.index, self.commits)

    def __add__(self, other: "PubPoly") -> "PubPoly":
        if self.threshold != other.threshold:
            raise ValueError("cannot add public polynomials of different degree")
        return PubPoly([add(a, b) for a, b in zip(self.commits, other.commits)])

    def __eq__(self, other):
        if not isinstance(other, PubPoly) or self.threshold != other.threshold:
            return NotImplemented
        return all(eq(a, b) for a, b in zip(self.commits, other.commits))

    __hash__ = None
