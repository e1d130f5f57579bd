# =============================
# common/crypto_utils.py
# =============================
import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from py_ecc.optimized_bls12_381 import multiply, curve_order as R

from common.errors import DecryptionFailure, InvalidKey
from common.util import (
    g1_to_bytes, bytes_to_g1, public_key, random_scalar,
    scalar_to_bytes, bytes_to_scalar,
)

NONCE_LEN = 12
_HKDF_INFO = b"dkg-deal-encryption"


def gen_keypair() -> Tuple[int, tuple]:
    """Long-term BLS12-381 keypair: (scalar, G1 point)."""
    priv = random_scalar()
    return priv, public_key(priv)


def _derive_key(shared_point, ephemeral_bytes: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=ephemeral_bytes,
        info=_HKDF_INFO,
    ).derive(g1_to_bytes(shared_point))


def encrypt_scalar(value: int, recipient_pub, aad: bytes = b"") -> Tuple[bytes, bytes, bytes]:
    """
    ECIES over G1: returns (ephemeral_key, nonce, ciphertext).
    The ciphertext carries the AES-GCM tag; `aad` binds it to the deal context.
    """
    eph = random_scalar()
    eph_bytes = g1_to_bytes(public_key(eph))
    key = _derive_key(multiply(recipient_pub, eph), eph_bytes)
    nonce = os.urandom(NONCE_LEN)
    ct = AESGCM(key).encrypt(nonce, scalar_to_bytes(value), aad)
    return eph_bytes, nonce, ct


def decrypt_scalar(ephemeral_key: bytes, nonce: bytes, ciphertext: bytes,
                   private_key: int, aad: bytes = b"") -> int:
    if private_key % R == 0:
        raise InvalidKey("zero private key")
    try:
        eph_pub = bytes_to_g1(ephemeral_key)
    except ValueError as e:
        raise DecryptionFailure(f"bad ephemeral key: {e}") from e
    key = _derive_key(multiply(eph_pub, private_key % R), ephemeral_key)
    try:
        plain = AESGCM(key).decrypt(nonce, ciphertext, aad)
    except (InvalidTag, ValueError) as e:
        raise DecryptionFailure("deal authentication failed") from e
    try:
        return bytes_to_scalar(plain)
    except ValueError as e:
        raise DecryptionFailure(str(e)) from e
