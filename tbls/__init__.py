# tbls/__init__.py
from tbls.sign import PartialSignature, sign
from tbls.recover import recover
from tbls.verify import verify_sig, verify_partial

__all__ = ["PartialSignature", "sign", "recover", "verify_sig", "verify_partial"]
