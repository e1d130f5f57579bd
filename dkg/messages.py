# dkg/messages.py
"""
Immutable protocol messages exchanged between DKG nodes.

Nodes never share state; they only pass these values around. Every
message carries the dealer index and the session id of the dealing it
refers to, so any transport can deduplicate on `identity`.

Wire layout (big endian):

    Deal           b"D" | dealer u16 | receiver u16 | session 32 | k u16 |
                   k * commitment(48) | ephemeral(48) | nonce(12) | len u16 | ciphertext
    Response       b"R" | dealer u16 | responder u16 | session 32 | status u8 |
                   len u16 | reason (utf-8)
    Justification  b"J" | dealer u16 | responder u16 | session 32 | share(32)
"""
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Tuple

from common.errors import MalformedMessage
from common.util import L, SCALAR_LEN, scalar_to_bytes, bytes_to_scalar
from common.crypto_utils import NONCE_LEN

SESSION_LEN = 32

_HEAD = struct.Struct(">cHH32s")


def deal_aad(session_id: bytes, dealer: int, receiver: int) -> bytes:
    """Associated data binding an encrypted share to its dealing."""
    return session_id + struct.pack(">HH", dealer, receiver)


class Status(IntEnum):
    APPROVAL = 1
    COMPLAINT = 2


@dataclass(frozen=True)
class EncryptedShare:
    ephemeral_key: bytes
    nonce: bytes
    ciphertext: bytes


@dataclass(frozen=True)
class Deal:
    dealer_index: int
    receiver_index: int
    session_id: bytes
    commitments: Tuple[bytes, ...]
    encrypted_share: EncryptedShare

    @property
    def identity(self):
        return (self.dealer_index, self.receiver_index, self.session_id)

    def aad(self) -> bytes:
        return deal_aad(self.session_id, self.dealer_index, self.receiver_index)

    def to_bytes(self) -> bytes:
        enc = self.encrypted_share
        out = [
            _HEAD.pack(b"D", self.dealer_index, self.receiver_index, self.session_id),
            struct.pack(">H", len(self.commitments)),
            *self.commitments,
            enc.ephemeral_key,
            enc.nonce,
            struct.pack(">H", len(enc.ciphertext)),
            enc.ciphertext,
        ]
        return b"".join(out)

    @classmethod
    def from_bytes(cls, b: bytes) -> "Deal":
        r = _Reader(b, b"D")
        dealer, receiver, session = r.head()
        k = r.u16()
        commits = tuple(r.take(L) for _ in range(k))
        eph = r.take(L)
        nonce = r.take(NONCE_LEN)
        ct = r.take(r.u16())
        r.done()
        return cls(dealer, receiver, session, commits, EncryptedShare(eph, nonce, ct))


@dataclass(frozen=True)
class Response:
    dealer_index: int
    responder_index: int
    session_id: bytes
    status: Status
    reason: str = ""

    @property
    def identity(self):
        return (self.responder_index, self.dealer_index, self.session_id)

    @property
    def approved(self) -> bool:
        return self.status == Status.APPROVAL

    def to_bytes(self) -> bytes:
        reason = self.reason.encode()
        return b"".join([
            _HEAD.pack(b"R", self.dealer_index, self.responder_index, self.session_id),
            struct.pack(">BH", int(self.status), len(reason)),
            reason,
        ])

    @classmethod
    def from_bytes(cls, b: bytes) -> "Response":
        r = _Reader(b, b"R")
        dealer, responder, session = r.head()
        raw_status = r.u8()
        try:
            status = Status(raw_status)
        except ValueError:
            raise MalformedMessage(f"unknown response status {raw_status}") from None
        try:
            reason = r.take(r.u16()).decode()
        except UnicodeDecodeError as e:
            raise MalformedMessage("response reason is not utf-8") from e
        r.done()
        return cls(dealer, responder, session, status, reason)


@dataclass(frozen=True)
class Justification:
    """A dealer's answer to a complaint: the disputed share in the clear."""
    dealer_index: int
    responder_index: int
    session_id: bytes
    share: int

    def to_bytes(self) -> bytes:
        return (_HEAD.pack(b"J", self.dealer_index, self.responder_index, self.session_id)
                + scalar_to_bytes(self.share))

    @classmethod
    def from_bytes(cls, b: bytes) -> "Justification":
        r = _Reader(b, b"J")
        dealer, responder, session = r.head()
        try:
            share = bytes_to_scalar(r.take(SCALAR_LEN))
        except ValueError as e:
            raise MalformedMessage(str(e)) from e
        r.done()
        return cls(dealer, responder, session, share)


def decode(b: bytes):
    """Decode any message by its tag byte."""
    kinds = {b"D": Deal, b"R": Response, b"J": Justification}
    if not b or b[:1] not in kinds:
        raise MalformedMessage("unknown message tag")
    return kinds[b[:1]].from_bytes(b)


class _Reader:
    def __init__(self, buf: bytes, tag: bytes):
        self.buf, self.pos = bytes(buf), 0
        if self.take(1) != tag:
            raise MalformedMessage(f"expected {tag!r} message")

    def take(self, n: int) -> bytes:
        if self.pos + n > len(self.buf):
            raise MalformedMessage("truncated message")
        out = self.buf[self.pos:self.pos + n]
        self.pos += n
        return out

    def u8(self) -> int:
        return self.take(1)[0]

    def u16(self) -> int:
        return struct.unpack(">H", self.take(2))[0]

    def head(self):
        a, b = struct.unpack(">HH", self.take(4))
        return a, b, self.take(SESSION_LEN)

    def done(self):
        if self.pos != len(self.buf):
            raise MalformedMessage("trailing bytes after message")
