# tbls/recover.py
import logging
from typing import Iterable, List, Union

from common.errors import InconsistentShares, InsufficientShares
from common.poly import PubPoly
from common.util import interpolate_g2
from tbls.sign import PartialSignature
from tbls.verify import verify_sig

logger = logging.getLogger(__name__)


def _decode(partials) -> List[PartialSignature]:
    out = []
    for p in partials:
        if isinstance(p, (bytes, bytearray)):
            try:
                p = PartialSignature.from_bytes(bytes(p))
            except ValueError as e:
                raise InconsistentShares(f"undecodable partial signature: {e}") from e
        out.append(p)
    return out


# ---------- Threshold aggregation ----------
def recover(pub_poly: PubPoly, msg: bytes,
            partials: Iterable[Union[PartialSignature, bytes]], t: int, n: int):
    """
    Combine the first t partial signatures into the group signature by
    Lagrange interpolation in G2, then check it against the group public
    key. Never returns an unverified signature.
    """
    parts = _decode(partials)
    if len(parts) < t:
        raise InsufficientShares(f"need {t} partial signatures, got {len(parts)}")
    parts = parts[:t]

    idx = [p.index for p in parts]
    if len(set(idx)) != len(idx):
        raise InconsistentShares(f"duplicate signer indices {idx}")
    bad = [i for i in idx if not 1 <= i <= n]
    if bad:
        raise InconsistentShares(f"signer indices {bad} outside 1..{n}")

    agg = interpolate_g2([(p.index, p.point) for p in parts])
    if not verify_sig(pub_poly.commit, msg, agg):
        logger.warning("recovered signature from signers %s does not verify", idx)
        raise InconsistentShares(f"signature recovered from signers {idx} does not verify")
    logger.debug("recovered signature from signers %s", idx)
    return agg
