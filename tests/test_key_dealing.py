import pytest

from constants import CURVE_ORDER
from errors import InvalidParticipantSet
from key_dealing import (
    additive_share_from_shamir,
    deal_additive_shares,
    deal_random_secret,
    deal_secret,
    lagrange_basis_at_0,
    reconstruct_secret,
)


def test_additive_shares_sum_to_secret(rng):
    shares = deal_additive_shares(rng, 12345, 6)
    assert len(shares) == 6
    assert sum(shares) % CURVE_ORDER == 12345


def test_any_threshold_subset_reconstructs(rng):
    secret, shares, coefficients = deal_random_secret(rng, 3, 5)
    assert coefficients[0] == secret
    for subset in ([1, 2, 3], [2, 4, 5], [1, 3, 5, 4]):
        assert reconstruct_secret({pid: shares[pid - 1] for pid in subset}) == secret


def test_shamir_shares_become_additive_for_a_signer_set(rng):
    secret = rng.random_scalar()
    shares, _ = deal_secret(rng, secret, 3, 6)
    signers = [2, 3, 6]
    converted = [additive_share_from_shamir(shares[pid - 1], pid, signers) for pid in signers]
    assert sum(converted) % CURVE_ORDER == secret


def test_lagrange_basis_sums_to_one():
    ids = [1, 4, 7, 9]
    assert sum(lagrange_basis_at_0(ids, pid) for pid in ids) % CURVE_ORDER == 1


def test_invalid_inputs(rng):
    with pytest.raises(ValueError):
        deal_secret(rng, 1, 4, 3)
    with pytest.raises(InvalidParticipantSet):
        lagrange_basis_at_0([1, 2, 2], 1)
    with pytest.raises(InvalidParticipantSet):
        lagrange_basis_at_0([1, 2], 3)
    with pytest.raises(InvalidParticipantSet):
        lagrange_basis_at_0([0, 2], 2)
