# dkg/generator.py
"""
Pedersen-style distributed key generation with verifiable secret sharing.

Every node is an independent `DistKeyGenerator`: it deals shares of its own
secret polynomial, checks the deals addressed to it, broadcasts one verdict
per dealer and tallies everybody's verdicts into the QUAL set. Resharing runs
the very same machine; only the dealers' secrets differ (their old shares
instead of fresh random scalars) and the final key is interpolated instead of
summed.

Handlers never block and never wait for other nodes. Callers deliver
messages in any order, as many times as they like, and poll `certified()` or
`phase` under their own timeout policy (`set_timeout()` tells the node that
no more responses are coming).
"""
import dataclasses
import hashlib
import logging
import threading
from enum import Enum
from typing import Dict, List, Optional, Sequence

from py_ecc.optimized_bls12_381 import eq, curve_order as R

from common.crypto_utils import encrypt_scalar, decrypt_scalar
from common.errors import (
    ConfigError, InvalidKey, InvalidThreshold, MisroutedDeal, NotCertified,
    NotReceiver, ProtocolViolation, UnknownDealer, UnknownResponder,
)
from common.poly import PriPoly, PriShare, PubPoly
from common.util import g1_to_bytes, public_key, random_scalar
from dkg.config import Config, check_threshold, roster_bytes, find_index
from dkg.messages import (
    Deal, EncryptedShare, Justification, Response, Status, deal_aad,
)
from dkg.share import DistKeyShare, aggregate_key, resharing_key

logger = logging.getLogger(__name__)


class Phase(Enum):
    INITIALIZED = "initialized"
    DEALING = "dealing"
    RESPONSE_COLLECTION = "response_collection"
    CERTIFIED = "certified"
    FAILED = "failed"


class _Dealing:
    """Everything one node knows about one dealer's round."""

    def __init__(self, index: int):
        self.index = index
        self.session_id = None   # known once the deal is seen (or we are the dealer)
        self.commits = None      # PubPoly, once a well-formed deal is seen
        self.share = None        # our verified share of the dealer's secret
        self.deal = None
        self.response = None     # our own verdict, issued once
        self.responses = {}      # (responder, session_id) -> Response
        self.justified = set()
        self.pending = []        # justifications that arrived before the deal
        self.bad = False

    def _matching(self):
        for resp in self.responses.values():
            if self.session_id is None or resp.session_id == self.session_id:
                yield resp

    def approvals(self) -> set:
        return {r.responder_index for r in self._matching() if r.approved} | self.justified

    def complaints(self) -> set:
        return {r.responder_index for r in self._matching() if not r.approved}

    def responders(self) -> set:
        return {r.responder_index for r in self._matching()}


class DistKeyGenerator:

    def __init__(self, config: Config):
        c = config
        self.resharing = c.resharing
        if c.old_nodes is not None and not self.resharing:
            raise ConfigError("a reshare needs the old share or the old public coefficients")

        self.new_nodes = list(c.new_nodes)
        self.old_nodes = list(c.old_nodes) if c.old_nodes is not None else self.new_nodes
        self._new_bytes = roster_bytes(self.new_nodes)
        old_bytes = roster_bytes(self.old_nodes)

        self.t = check_threshold(c.threshold, len(self.new_nodes))
        if self.resharing:
            old_t = c.old_threshold if c.old_threshold is not None else c.threshold
            self.old_t = check_threshold(old_t, len(self.old_nodes), "old threshold")
        else:
            self.old_t = self.t

        if isinstance(c.longterm, bool) or not isinstance(c.longterm, int) or c.longterm % R == 0:
            raise InvalidKey("long-term private key must be a non-zero scalar")
        self.longterm = c.longterm % R
        self.pub = public_key(self.longterm)
        pub_bytes = g1_to_bytes(self.pub)
        self.index = find_index(self._new_bytes, pub_bytes)
        self.dealer_index = find_index(old_bytes, pub_bytes)
        if self.index is None and self.dealer_index is None:
            raise InvalidKey("own public key is not in the roster")

        self.old_pub = None
        secret = None
        if self.resharing:
            self.old_pub, secret = self._reshare_seed(c)
        elif self.dealer_index is not None:
            # fresh secret, not the long-term key: that key also decrypts deals
            secret = random_scalar()

        self._dealings: Dict[int, _Dealing] = {
            j: _Dealing(j) for j in range(1, len(self.old_nodes) + 1)
        }
        self._poly = None
        self._session_id = None
        if self.dealer_index is not None:
            self._poly = PriPoly.random(self.t, secret)
            commits = self._poly.commit()
            self._commit_bytes = tuple(commits.to_bytes_list())
            self._session_id = self.session_id(self.dealer_index, self._commit_bytes)
            own = self._dealings[self.dealer_index]
            own.session_id, own.commits = self._session_id, commits

        self._deals = None
        self._touched = False
        self._timed_out = False
        self._lock = threading.RLock()
        logger.info(
            "dkg node ready: receiver=%s dealer=%s n=%d t=%d%s",
            self.index, self.dealer_index, len(self.new_nodes), self.t,
            " (reshare from %d nodes, t=%d)" % (len(self.old_nodes), self.old_t)
            if self.resharing else "",
        )

    def _reshare_seed(self, c: Config):
        if c.share is not None:
            if self.dealer_index is None:
                raise ConfigError("holder of an old share must be part of the old roster")
            if c.share.index != self.dealer_index:
                raise InvalidKey(
                    f"old share has index {c.share.index}, roster says {self.dealer_index}"
                )
            old_pub = c.share.pub_poly()
            if c.public_coeffs is not None and PubPoly(c.public_coeffs) != old_pub:
                raise ConfigError("public_coeffs disagree with the old share's commitments")
            secret = c.share.share.value
        else:
            if self.dealer_index is not None:
                raise ConfigError("an old node must bring its old share to a reshare")
            old_pub = PubPoly(c.public_coeffs)
            secret = None
        if old_pub.threshold != self.old_t:
            raise InvalidThreshold(
                f"old threshold {self.old_t} does not match {old_pub.threshold} old commitments"
            )
        return old_pub, secret

    # ---------- properties ----------
    @property
    def can_issue(self) -> bool:
        return self._poly is not None

    @property
    def is_receiver(self) -> bool:
        return self.index is not None

    def session_id(self, dealer_index: int, commits: Sequence[bytes]) -> bytes:
        """Binds a dealing to its dealer, the receivers, the commitments and t."""
        h = hashlib.sha256(b"dkg-session")
        h.update(dealer_index.to_bytes(2, "big"))
        h.update(g1_to_bytes(self.old_nodes[dealer_index - 1]))
        for pk in self._new_bytes:
            h.update(pk)
        for C in commits:
            h.update(C)
        h.update(self.t.to_bytes(4, "big"))
        return h.digest()

    # ---------- dealing ----------
    def deals(self) -> List[Deal]:
        """One encrypted deal per receiver, ordered by receiver index."""
        with self._lock:
            if not self.can_issue:
                logger.debug("node %s deals nothing in this round", self.index)
                return []
            if self._deals is None:
                deals = []
                for i, pk in enumerate(self.new_nodes, 1):
                    share = self._poly.eval(i)
                    aad = deal_aad(self._session_id, self.dealer_index, i)
                    eph, nonce, ct = encrypt_scalar(share.value, pk, aad)
                    deals.append(Deal(self.dealer_index, i, self._session_id,
                                      self._commit_bytes, EncryptedShare(eph, nonce, ct)))
                self._deals = deals
                logger.info("dealer %d issued %d deals", self.dealer_index, len(deals))
            return list(self._deals)

    def process_deal(self, deal: Deal) -> Response:
        with self._lock:
            dealing = self._dealing(deal.dealer_index)
            if not self.is_receiver or deal.receiver_index != self.index:
                raise MisroutedDeal(
                    f"deal for receiver {deal.receiver_index} delivered to node {self.index}"
                )
            if dealing.response is not None:
                if deal != dealing.deal:
                    logger.warning("dealer %d sent a second, different deal; keeping first verdict",
                                   deal.dealer_index)
                return dealing.response

            enc = deal.encrypted_share
            value = decrypt_scalar(enc.ephemeral_key, enc.nonce, enc.ciphertext,
                                   self.longterm, deal.aad())
            self._touched = True
            reason = self._check_deal(dealing, deal, value)

            dealing.deal = deal
            if dealing.session_id is None:
                dealing.session_id = deal.session_id
            status = Status.COMPLAINT if reason else Status.APPROVAL
            resp = Response(deal.dealer_index, self.index, deal.session_id, status, reason)
            dealing.response = resp
            dealing.responses.setdefault((self.index, deal.session_id), resp)
            if reason:
                logger.warning("node %d complains about dealer %d: %s",
                               self.index, deal.dealer_index, reason)
            else:
                dealing.share = value
                logger.debug("node %d approves dealer %d", self.index, deal.dealer_index)
            self._flush_pending(dealing)
            return resp

    def _check_deal(self, dealing: _Dealing, deal: Deal, value: int) -> str:
        """Returns the complaint reason, or "" if the deal is good."""
        if len(deal.commitments) != self.t:
            return f"expected {self.t} commitments, got {len(deal.commitments)}"
        try:
            commits = PubPoly.from_bytes_list(deal.commitments)
        except ValueError:
            return "commitments are not valid G1 points"
        if deal.session_id != self.session_id(deal.dealer_index, deal.commitments):
            return "session id does not match the deal"
        if self.old_pub is not None and not eq(commits.commit, self.old_pub.eval(deal.dealer_index)):
            dealing.bad = True
            return "dealt secret is not the dealer's old share"
        dealing.commits = commits
        if not commits.check(PriShare(self.index, value)):
            return "share does not match the commitments"
        return ""

    # ---------- responses ----------
    def process_response(self, resp: Response) -> Optional[Justification]:
        """
        Folds a verdict into the dealer's tally. Duplicates are ignored.
        When the complaint targets this node's own dealing, the returned
        Justification must be broadcast.
        """
        with self._lock:
            dealing = self._dealing(resp.dealer_index)
            self._check_responder(resp.responder_index)
            self._touched = True
            key = (resp.responder_index, resp.session_id)
            if key in dealing.responses:
                logger.debug("duplicate response from %d about dealer %d ignored",
                             resp.responder_index, resp.dealer_index)
                return None
            dealing.responses[key] = resp
            if not resp.approved:
                logger.info("node %d complained about dealer %d: %s",
                            resp.responder_index, resp.dealer_index, resp.reason)
                if resp.dealer_index == self.dealer_index and self.can_issue:
                    return self.justify(resp)
            return None

    # ---------- complaint resolution ----------
    def justify(self, resp: Response) -> Justification:
        """Reveal the disputed share so everyone can re-check it."""
        with self._lock:
            if not self.can_issue or resp.dealer_index != self.dealer_index:
                raise ProtocolViolation(f"complaint about dealer {resp.dealer_index} "
                                        f"sent to dealer {self.dealer_index}")
            self._check_responder(resp.responder_index)
            share = self._poly.eval(resp.responder_index)
            logger.info("dealer %d reveals the share of node %d",
                        self.dealer_index, resp.responder_index)
            return Justification(self.dealer_index, resp.responder_index,
                                 self._session_id, share.value)

    def process_justification(self, j: Justification) -> None:
        with self._lock:
            dealing = self._dealing(j.dealer_index)
            self._check_responder(j.responder_index)
            self._touched = True
            if dealing.commits is None:
                dealing.pending.append(j)
                return
            self._apply_justification(dealing, j)

    def verify_justification(self, commits: PubPoly, j: Justification) -> bool:
        """Complaint resolution policy: the revealed share must match the commitments."""
        return commits.check(PriShare(j.responder_index, j.share))

    def _apply_justification(self, dealing: _Dealing, j: Justification):
        if j.session_id != dealing.session_id:
            logger.warning("justification from dealer %d is for another session", j.dealer_index)
            return
        if self.verify_justification(dealing.commits, j):
            dealing.justified.add(j.responder_index)
            if j.responder_index == self.index and dealing.share is None:
                dealing.share = j.share
            logger.info("dealer %d justified its deal to node %d",
                        j.dealer_index, j.responder_index)
        else:
            dealing.bad = True
            logger.warning("dealer %d failed to justify its deal to node %d; disqualified",
                           j.dealer_index, j.responder_index)

    def _flush_pending(self, dealing: _Dealing):
        pending, dealing.pending = dealing.pending, []
        if dealing.commits is None:
            return
        for j in pending:
            self._apply_justification(dealing, j)

    # ---------- qualification ----------
    def set_timeout(self) -> None:
        """No further responses will be awaited; silent receivers count as complaints."""
        with self._lock:
            self._timed_out = True
            logger.info("node %s: response collection timed out", self.index)

    @property
    def required_approvals(self) -> int:
        return max(len(self.new_nodes) - self.t, 1)

    def _qualified(self, dealing: _Dealing) -> bool:
        if dealing.bad:
            return False
        approvals = dealing.approvals()
        # a receiver that has not answered yet blocks the dealer; after the
        # timeout its silence stands as a complaint
        everyone = set(range(1, len(self.new_nodes) + 1))
        silent = everyone - dealing.responders()
        unresolved = (dealing.complaints() | silent) - dealing.justified
        return not unresolved and len(approvals) >= self.required_approvals

    def qual(self) -> List[int]:
        with self._lock:
            return [j for j, d in sorted(self._dealings.items()) if self._qualified(d)]

    def qualified_shares(self) -> List[int]:
        """Receivers that approved every QUAL dealer."""
        with self._lock:
            qual = self.qual()
            return [i for i in range(1, len(self.new_nodes) + 1)
                    if all(i in self._dealings[j].approvals() for j in qual)]

    def certified(self) -> bool:
        with self._lock:
            qual = self.qual()
            if len(qual) < self.old_t:
                return False
            if self.is_receiver:
                return all(self._dealings[j].share is not None for j in qual)
            return True

    @property
    def phase(self) -> Phase:
        with self._lock:
            if self.certified():
                return Phase.CERTIFIED
            viable = sum(1 for d in self._dealings.values() if not d.bad)
            if self._timed_out or viable < self.old_t:
                return Phase.FAILED
            if self._touched:
                return Phase.RESPONSE_COLLECTION
            if self._deals is not None:
                return Phase.DEALING
            return Phase.INITIALIZED

    # ---------- key extraction ----------
    def dist_key_share(self) -> DistKeyShare:
        with self._lock:
            if not self.is_receiver:
                raise NotReceiver("this node only deals in this round")
            if not self.certified():
                raise NotCertified(f"node {self.index} is not certified (QUAL={self.qual()})")
            dealings = [self._dealings[j] for j in self.qual()]
            if self.resharing:
                dks = resharing_key(self.index, [(d.index, d.share, d.commits) for d in dealings],
                                    self.old_t, self.t)
            else:
                dks = aggregate_key(self.index, [(d.share, d.commits) for d in dealings])
            logger.info("node %d extracted its key share (QUAL=%s)",
                        self.index, [d.index for d in dealings])
            return dks

    # ---------- helpers ----------
    def _dealing(self, index) -> _Dealing:
        try:
            return self._dealings[index]
        except (KeyError, TypeError):
            raise UnknownDealer(f"no dealer with index {index!r}") from None

    def _check_responder(self, index):
        if isinstance(index, bool) or not isinstance(index, int) \
                or not 1 <= index <= len(self.new_nodes):
            raise UnknownResponder(f"no receiver with index {index!r}")


def new_dist_key_generator(longterm: int, participants: Sequence[tuple],
                           threshold: int) -> DistKeyGenerator:
    """Fresh DKG among `participants`."""
    return DistKeyGenerator(Config(longterm=longterm, new_nodes=participants,
                                   threshold=threshold))


def new_dist_key_handler(config: Config) -> DistKeyGenerator:
    """Reshare an existing DistKeyShare from `old_nodes` to `new_nodes`."""
    if not config.resharing:
        raise ConfigError("resharing needs `share` or `public_coeffs`")
    if config.old_nodes is None:
        config = dataclasses.replace(config, old_nodes=config.new_nodes)
    return DistKeyGenerator(config)
