# dkg/config.py
from dataclasses import dataclass
from typing import List, Optional, Sequence

from common.errors import ConfigError, InvalidThreshold
from common.util import g1_to_bytes
from dkg.share import DistKeyShare

MAX_NODES = 0xFFFF


@dataclass
class Config:
    """
    Parameters of one DKG round.

    A fresh DKG only needs `longterm`, `new_nodes` and `threshold`. A reshare
    also names the dealers (`old_nodes`, `old_threshold`) and either the old
    DistKeyShare of this node (`share`) or, for a node that holds none, the
    old aggregate commitments (`public_coeffs`).

    Index of a node = its position in the roster + 1.
    """
    longterm: int
    new_nodes: Sequence[tuple]
    threshold: int
    old_nodes: Optional[Sequence[tuple]] = None
    old_threshold: Optional[int] = None
    share: Optional[DistKeyShare] = None
    public_coeffs: Optional[Sequence[tuple]] = None

    @property
    def resharing(self) -> bool:
        return self.share is not None or self.public_coeffs is not None


def check_threshold(t, n: int, what: str = "threshold") -> int:
    if isinstance(t, bool) or not isinstance(t, int) or not 1 < t <= n:
        raise InvalidThreshold(f"{what} must satisfy 1 < t <= {n}, got {t!r}")
    return t


def roster_bytes(nodes: Sequence[tuple]) -> List[bytes]:
    if not nodes:
        raise ConfigError("empty roster")
    if len(nodes) > MAX_NODES:
        raise ConfigError(f"roster larger than {MAX_NODES} nodes")
    encoded = [g1_to_bytes(pk) for pk in nodes]
    if len(set(encoded)) != len(encoded):
        raise ConfigError("duplicate public key in roster")
    return encoded


def find_index(encoded: Sequence[bytes], pub: bytes) -> Optional[int]:
    try:
        return encoded.index(pub) + 1
    except ValueError:
        return None
