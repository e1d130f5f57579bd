import dataclasses
from concurrent.futures import ThreadPoolExecutor

import pytest
from py_ecc.optimized_bls12_381 import curve_order as R

from common.crypto_utils import encrypt_scalar
from common.errors import (
    ConfigError, DecryptionFailure, InvalidKey, InvalidThreshold, MisroutedDeal,
    NotCertified, ProtocolViolation, UnknownDealer, UnknownResponder,
)
from dkg import Justification, Phase, Response, Status, new_dist_key_generator
from dkg.messages import EncryptedShare


def _network(gen_keys, n, t):
    privs, pubs = gen_keys(n)
    return privs, pubs, [new_dist_key_generator(p, pubs, t) for p in privs]


def _tamper(deal, receiver_pub, value):
    """Re-encrypt a different scalar under the same deal context."""
    eph, nonce, ct = encrypt_scalar(value, receiver_pub, deal.aad())
    return dataclasses.replace(deal, encrypted_share=EncryptedShare(eph, nonce, ct))


# ---------- construction ----------
@pytest.mark.parametrize("t", [1, 0, 5, -2])
def test_threshold_out_of_range(gen_keys, t):
    privs, pubs = gen_keys(4)
    with pytest.raises(InvalidThreshold):
        new_dist_key_generator(privs[0], pubs, t)


def test_zero_private_key_rejected(gen_keys):
    _, pubs = gen_keys(3)
    with pytest.raises(InvalidKey):
        new_dist_key_generator(0, pubs, 2)
    with pytest.raises(InvalidKey):
        new_dist_key_generator(R, pubs, 2)


def test_key_absent_from_roster(gen_keys):
    privs, pubs = gen_keys(4)
    with pytest.raises(InvalidKey):
        new_dist_key_generator(privs[3], pubs[:3], 2)


def test_duplicate_roster_entry(gen_keys):
    privs, pubs = gen_keys(3)
    with pytest.raises(ConfigError):
        new_dist_key_generator(privs[0], pubs + [pubs[1]], 2)


# ---------- dealing ----------
def test_one_deal_per_participant_in_index_order(gen_keys):
    privs, pubs, gens = _network(gen_keys, 4, 3)
    deals = gens[2].deals()
    assert [d.receiver_index for d in deals] == [1, 2, 3, 4]
    assert {d.dealer_index for d in deals} == {3}
    assert len({d.session_id for d in deals}) == 1
    assert all(len(d.commitments) == 3 for d in deals)
    assert gens[2].deals() == deals
    assert gens[2].phase == Phase.DEALING


def test_process_deal_is_idempotent(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    deal = gens[0].deals()[1]
    first = gens[1].process_deal(deal)
    qual_before = gens[1].qual()
    second = gens[1].process_deal(deal)
    assert first is second
    assert first.approved
    assert gens[1].qual() == qual_before
    assert gens[1].phase == Phase.RESPONSE_COLLECTION


def test_deal_for_someone_else(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    with pytest.raises(MisroutedDeal):
        gens[1].process_deal(gens[0].deals()[2])


def test_undecryptable_deal(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    deal = gens[0].deals()[1]
    broken = dataclasses.replace(deal, session_id=b"\x00" * 32)
    with pytest.raises(DecryptionFailure):
        gens[1].process_deal(broken)
    # the genuine deal is still processed normally afterwards
    assert gens[1].process_deal(deal).approved


def test_unknown_dealer_and_responder(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    deal = gens[0].deals()[1]
    with pytest.raises(UnknownDealer):
        gens[1].process_deal(dataclasses.replace(deal, dealer_index=9))
    with pytest.raises(UnknownDealer):
        gens[1].process_response(Response(0, 1, deal.session_id, Status.APPROVAL))
    with pytest.raises(UnknownResponder):
        gens[1].process_response(Response(1, 4, deal.session_id, Status.APPROVAL))


def test_invalid_share_yields_complaint_not_error(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    deal = _tamper(gens[0].deals()[1], pubs[1], 12345)
    resp = gens[1].process_deal(deal)
    assert resp.status == Status.COMPLAINT
    assert "commitments" in resp.reason
    assert resp.identity == (2, 1, deal.session_id)


# ---------- qualification ----------
def test_honest_run_certifies_everyone(run_dkg):
    net = run_dkg(4, 3)
    for g in net.gens:
        assert g.certified()
        assert g.phase == Phase.CERTIFIED
        assert g.qual() == [1, 2, 3, 4]
        assert g.qualified_shares() == [1, 2, 3, 4]
    keys = {g.dist_key_share().public_key_bytes() for g in net.gens}
    assert len(keys) == 1


def test_not_certified_before_responses(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    assert gens[0].phase == Phase.INITIALIZED
    assert not gens[0].certified()
    with pytest.raises(NotCertified):
        gens[0].dist_key_share()


def test_duplicate_and_reordered_responses_give_same_qual(gen_keys, exchange):
    privs, pubs, gens = _network(gen_keys, 5, 3)
    responses = exchange(gens, shuffle=True, seed=7)
    expected = gens[0].qual()
    assert expected == [1, 2, 3, 4, 5]
    for resp in responses:
        for g in gens:
            assert g.process_response(resp) is None
    assert all(g.qual() == expected for g in gens)


def test_responses_before_deals(gen_keys):
    privs, pubs, gens = _network(gen_keys, 4, 2)
    late = gens[3]
    all_deals = [d for g in gens for d in g.deals()]
    responses = [gens[d.receiver_index - 1].process_deal(d)
                 for d in all_deals if d.receiver_index != 4]
    for resp in responses:
        late.process_response(resp)
    assert not late.certified()
    for d in all_deals:
        if d.receiver_index == 4:
            late.process_deal(d)
    assert late.certified()
    assert late.qual() == [1, 2, 3, 4]


def test_complaint_is_resolved_by_justification(gen_keys):
    privs, pubs, gens = _network(gen_keys, 4, 2)
    dealer, victim = gens[0], gens[1]
    responses = []
    for g in gens:
        for deal in g.deals():
            if deal.dealer_index == 1 and deal.receiver_index == 2:
                deal = _tamper(deal, pubs[1], 99)
            responses.append(gens[deal.receiver_index - 1].process_deal(deal))
    complaint = next(r for r in responses if not r.approved)
    assert (complaint.dealer_index, complaint.responder_index) == (1, 2)

    justifications = []
    for resp in responses:
        for g in gens:
            if g.index != resp.responder_index:
                j = g.process_response(resp)
                if j is not None:
                    justifications.append(j)
    assert len(justifications) == 1
    assert 1 not in victim.qual()

    for g in gens:
        g.process_justification(justifications[0])
    for g in gens:
        assert g.qual() == [1, 2, 3, 4]
        assert g.certified()
    keys = {g.dist_key_share().public_key_bytes() for g in gens}
    assert len(keys) == 1
    assert victim.dist_key_share().pub_poly().check(victim.dist_key_share().share)


def test_false_justification_disqualifies_dealer(gen_keys, exchange):
    privs, pubs, gens = _network(gen_keys, 4, 2)
    exchange(gens)
    sid = gens[0].deals()[0].session_id
    lie = Justification(1, 3, sid, 424242)
    for g in gens:
        g.process_justification(lie)
    for g in gens:
        assert g.qual() == [2, 3, 4]
        assert g.certified()
    assert len({g.dist_key_share().public_key_bytes() for g in gens}) == 1


def test_justify_only_own_dealing(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    sid = gens[0].deals()[0].session_id
    with pytest.raises(ProtocolViolation):
        gens[1].justify(Response(1, 3, sid, Status.COMPLAINT))


def test_timeout_without_convergence_fails(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    g = gens[0]
    for deal in [other.deals()[0] for other in gens]:
        g.process_deal(deal)
    g.set_timeout()
    assert not g.certified()
    assert g.phase == Phase.FAILED
    with pytest.raises(NotCertified):
        g.dist_key_share()


def test_partial_responses_do_not_certify(gen_keys):
    privs, pubs, gens = _network(gen_keys, 7, 3)
    all_deals = [d for g in gens for d in g.deals()]
    responses = [gens[d.receiver_index - 1].process_deal(d) for d in all_deals]
    node, peer = gens[0], gens[1]
    for resp in responses:
        if resp.responder_index in (2, 3, 4) and resp.dealer_index in (1, 2, 3):
            node.process_response(resp)
    assert node.qual() == []
    assert not node.certified()
    assert node.phase == Phase.RESPONSE_COLLECTION
    with pytest.raises(NotCertified):
        node.dist_key_share()

    for resp in responses:
        for g in (node, peer):
            if g.index != resp.responder_index:
                g.process_response(resp)
    assert node.qual() == peer.qual() == list(range(1, 8))
    assert node.dist_key_share().public_key_bytes() == peer.dist_key_share().public_key_bytes()


def test_deals_have_distinct_identities(gen_keys):
    privs, pubs, gens = _network(gen_keys, 3, 2)
    deals = [d for g in gens for d in g.deals()]
    assert len({d.identity for d in deals}) == 9
    assert {d.identity for d in gens[0].deals()} == {
        (1, i, gens[0].deals()[0].session_id) for i in (1, 2, 3)
    }


def test_concurrent_delivery_matches_serial(gen_keys):
    privs, pubs, gens = _network(gen_keys, 5, 3)
    all_deals = [d for g in gens for d in g.deals()]
    node, rest = gens[0], gens[1:]

    responses = [gens[d.receiver_index - 1].process_deal(d)
                 for d in all_deals if d.receiver_index != 1]
    with ThreadPoolExecutor(max_workers=8) as pool:
        own = [d for d in all_deals if d.receiver_index == 1]
        verdicts = list(pool.map(node.process_deal, own * 2))
        justifications = list(pool.map(node.process_response, responses * 2))
    assert all(v.approved for v in verdicts)
    assert justifications == [None] * len(justifications)

    for g in rest:
        for resp in responses + verdicts[:len(own)]:
            if g.index != resp.responder_index:
                g.process_response(resp)

    assert all(g.qual() == node.qual() == [1, 2, 3, 4, 5] for g in rest)
    keys = {g.dist_key_share().public_key_bytes() for g in gens}
    assert len(keys) == 1
