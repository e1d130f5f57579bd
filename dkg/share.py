# dkg/share.py
import logging
from dataclasses import dataclass
from functools import reduce
from typing import Sequence, Tuple

from py_ecc.optimized_bls12_381 import curve_order as R

from common.config import write_node_config, read_node_config
from common.errors import ProtocolViolation
from common.poly import PriShare, PubPoly
from common.util import g1_to_bytes, bytes_to_g1, interpolate_scalar, interpolate_points

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DistKeyShare:
    """A node's long-term output of a certified DKG or reshare."""
    share: PriShare
    commits: Tuple[tuple, ...]

    @property
    def index(self) -> int:
        return self.share.index

    @property
    def threshold(self) -> int:
        return len(self.commits)

    @property
    def public_key(self):
        return self.commits[0]

    def public_key_bytes(self) -> bytes:
        return g1_to_bytes(self.public_key)

    def pub_poly(self) -> PubPoly:
        return PubPoly(self.commits)

    def to_config(self) -> dict:
        return {
            "node_id": self.share.index,
            "share": self.share.value,
            "threshold": self.threshold,
            "commits": [g1_to_bytes(C).hex() for C in self.commits],
            "master_pk": self.public_key_bytes().hex(),
        }

    @classmethod
    def from_config(cls, cfg: dict) -> "DistKeyShare":
        commits = tuple(bytes_to_g1(bytes.fromhex(c)) for c in cfg["commits"])
        dks = cls(PriShare(int(cfg["node_id"]), int(cfg["share"]) % R), commits)
        if "threshold" in cfg and int(cfg["threshold"]) != dks.threshold:
            raise ValueError("threshold does not match the number of commitments")
        if not dks.pub_poly().check(dks.share):
            raise ValueError(f"share of node {dks.index} does not match its commitments")
        return dks

    def save(self, path=None):
        return write_node_config(self.to_config(), path)

    @classmethod
    def load(cls, path=None) -> "DistKeyShare":
        return cls.from_config(read_node_config(path))


def aggregate_key(index: int, contributions: Sequence[Tuple[int, PubPoly]]) -> DistKeyShare:
    """
    Fresh DKG: sum every QUAL dealer's share for this node and add their
    public polynomials coefficient-wise.
    """
    value = sum(s for s, _ in contributions) % R
    pub = reduce(lambda a, b: a + b, (p for _, p in contributions))
    dks = DistKeyShare(PriShare(index, value), pub.commits)
    logger.debug("node %d aggregated %d contributions", index, len(contributions))
    return dks


def resharing_key(index: int, contributions: Sequence[Tuple[int, int, PubPoly]],
                  old_threshold: int, new_threshold: int) -> DistKeyShare:
    """
    Reshare: every contribution is (old dealer index, share of the dealer's
    old share, dealer commitments). Interpolating at 0 over old dealer
    indices yields the new share; the same interpolation applied to each
    commitment coefficient yields the new public polynomial, whose constant
    term is the unchanged group public key.
    """
    chosen = sorted(contributions, key=lambda c: c[0])[:old_threshold]
    value = interpolate_scalar([(j, s) for j, s, _ in chosen])
    commits = tuple(
        interpolate_points([(j, pub.commits[k]) for j, _, pub in chosen])
        for k in range(new_threshold)
    )
    dks = DistKeyShare(PriShare(index, value), commits)
    if not dks.pub_poly().check(dks.share):
        raise ProtocolViolation("reshared share does not match the reshared commitments")
    logger.debug("node %d reshared from dealers %s", index, [j for j, _, _ in chosen])
    return dks
