# common/errors.py


class DKGError(Exception):
    """Root of every error raised by the dkg and tbls packages."""


# ---------- construction ----------
class ConfigError(DKGError, ValueError):
    pass


class InvalidThreshold(ConfigError):
    pass


class InvalidKey(ConfigError):
    pass


# ---------- protocol ----------
class ProtocolViolation(DKGError):
    pass


class DecryptionFailure(ProtocolViolation):
    pass


class UnknownDealer(ProtocolViolation, ValueError):
    pass


class UnknownResponder(ProtocolViolation, ValueError):
    pass


class MalformedMessage(ProtocolViolation, ValueError):
    pass


class MisroutedDeal(ProtocolViolation, ValueError):
    pass


class MalformedShare(DKGError, ValueError):
    pass


# ---------- key extraction ----------
class NotCertified(DKGError, RuntimeError):
    pass


class NotReceiver(DKGError, RuntimeError):
    """Raised when a dealer-only node of a reshare asks for a new share."""


# ---------- signature recovery ----------
class RecoveryError(DKGError):
    pass


class InsufficientShares(RecoveryError):
    pass


class InconsistentShares(RecoveryError):
    pass
