# tbls/verify.py
from py_ecc.optimized_bls12_381 import G1, pairing, is_inf

from common.poly import PubPoly
from common.util import hash_to_G2_point


def verify_sig(public_key, msg: bytes, sig_point) -> bool:
    """e(sig, G1) == e(H(m), PK)"""
    if is_inf(sig_point) or is_inf(public_key):
        return False
    msg_point = hash_to_G2_point(msg)
    lhs = pairing(sig_point, G1)
    rhs = pairing(msg_point, public_key)
    return lhs == rhs


def verify_partial(pub_poly: PubPoly, msg: bytes, partial) -> bool:
    """Check one partial signature against the public polynomial at its index."""
    return verify_sig(pub_poly.eval(partial.index), msg, partial.point)
