import random
from types import SimpleNamespace

import pytest

from common.config import configure_logging
from common.crypto_utils import gen_keypair
from dkg import Config, new_dist_key_generator, new_dist_key_handler

configure_logging("WARNING")


def _gen_keys(n):
    privs, pubs = [], []
    for _ in range(n):
        priv, pub = gen_keypair()
        privs.append(priv)
        pubs.append(pub)
    return privs, pubs


def _exchange(gens, shuffle=False, seed=0):
    """
    In-memory transport: every deal to its receiver, every response to every
    other node, every justification to everybody. Returns the responses.
    """
    rng = random.Random(seed)
    receivers = {g.index: g for g in gens if g.is_receiver}

    deals = [deal for g in gens for deal in g.deals()]
    if shuffle:
        rng.shuffle(deals)
    responses = [receivers[deal.receiver_index].process_deal(deal) for deal in deals]

    deliveries = [(g, resp) for resp in responses for g in gens
                  if g.index != resp.responder_index]
    if shuffle:
        rng.shuffle(deliveries)
    justifications = []
    for g, resp in deliveries:
        j = g.process_response(resp)
        if j is not None:
            justifications.append(j)

    for j in justifications:
        for g in gens:
            g.process_justification(j)
    return responses


@pytest.fixture
def gen_keys():
    return _gen_keys


@pytest.fixture
def exchange():
    return _exchange


@pytest.fixture
def run_dkg():
    def run(n, t):
        privs, pubs = _gen_keys(n)
        gens = [new_dist_key_generator(priv, pubs, t) for priv in privs]
        _exchange(gens)
        return SimpleNamespace(privs=privs, pubs=pubs, gens=gens, n=n, t=t)
    return run


@pytest.fixture(scope="session")
def dkg_7_3():
    """The n=7, t=3 network, certified and with its key shares extracted."""
    n, t = 7, 3
    privs, pubs = _gen_keys(n)
    gens = [new_dist_key_generator(priv, pubs, t) for priv in privs]
    _exchange(gens)
    shares = [g.dist_key_share() for g in gens]
    return SimpleNamespace(privs=privs, pubs=pubs, gens=gens, shares=shares, n=n, t=t)


@pytest.fixture(scope="session")
def reshared_7_3(dkg_7_3):
    """The same roster after one reshare of the dkg_7_3 key."""
    d = dkg_7_3
    gens = [
        new_dist_key_handler(Config(
            longterm=priv,
            old_nodes=d.pubs,
            new_nodes=d.pubs,
            share=share,
            threshold=d.t,
            old_threshold=d.t,
        ))
        for priv, share in zip(d.privs, d.shares)
    ]
    _exchange(gens)
    shares = [g.dist_key_share() for g in gens]
    return SimpleNamespace(gens=gens, shares=shares, n=d.n, t=d.t)
