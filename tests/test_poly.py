from py_ecc.optimized_bls12_381 import G1, G2, eq, multiply, curve_order as R

from common.poly import PriPoly, PriShare, PubPoly, eval_poly, verify_share
from common.util import (
    interpolate_scalar, interpolate_points, interpolate_g2, lagrange_coeff,
)


def test_eval_poly_horner():
    # 5 + 3x + 2x^2
    assert eval_poly([5, 3, 2], 0) == 5
    assert eval_poly([5, 3, 2], 2) == 5 + 6 + 8
    assert eval_poly([R - 1, 1], 1) == 0


def test_secret_is_constant_term():
    poly = PriPoly.random(3, secret=42)
    assert poly.secret == 42
    assert poly.threshold == 3
    assert eq(poly.commit().commit, multiply(G1, 42))


def test_every_share_matches_public_polynomial():
    poly = PriPoly.random(3)
    pub = poly.commit()
    for share in poly.shares(5):
        assert pub.check(share)
        assert eq(multiply(G1, share.value), pub.eval(share.index))


def test_tampered_share_fails_check():
    poly = PriPoly.random(3)
    pub = poly.commit()
    share = poly.eval(2)
    assert not pub.check(PriShare(2, (share.value + 1) % R))
    assert not pub.check(PriShare(3, share.value))
    assert not verify_share(share.value + 1, 2, pub.commits)


def test_public_polynomial_at_zero_is_commitment():
    pub = PriPoly.random(2).commit()
    assert eq(pub.eval(0), pub.commit)


def test_public_polynomials_add_coefficient_wise():
    a, b = PriPoly.random(3), PriPoly.random(3)
    summed = a.commit() + b.commit()
    share = PriShare(4, (a.eval(4).value + b.eval(4).value) % R)
    assert summed.check(share)
    assert summed == PriPoly([x + y for x, y in zip(a.coeffs, b.coeffs)]).commit()


def test_public_polynomial_serialization():
    pub = PriPoly.random(3).commit()
    assert PubPoly.from_bytes_list(pub.to_bytes_list()) == pub


def test_lagrange_recovers_secret_from_any_t_shares():
    poly = PriPoly.random(3, secret=1234)
    shares = poly.shares(6)
    assert interpolate_scalar(shares[:3]) == 1234
    assert interpolate_scalar([shares[5], shares[1], shares[3]]) == 1234
    # t-1 shares interpolate to something else
    assert interpolate_scalar(shares[:2]) != 1234


def test_lagrange_coefficients_sum_to_one():
    assert sum(lagrange_coeff([1, 4, 7])) % R == 1


def test_exponent_interpolation():
    poly = PriPoly.random(3)
    pub = poly.commit()
    points = [(i, pub.eval(i)) for i in (2, 5, 6)]
    assert eq(interpolate_points(points), pub.commit)

    g2_points = [(s.index, multiply(G2, s.value)) for s in poly.shares(3)]
    assert eq(interpolate_g2(g2_points), multiply(G2, poly.secret))
