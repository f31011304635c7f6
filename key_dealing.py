"""Dealing the signing key across signers.

签名密钥分发工具 / Additive and Shamir dealing over the BLS12-381 scalar field.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from constants import CURVE_ORDER
from data_models import ParticipantId
from errors import InvalidParticipantSet
from secure_rng import SecureRandom


def deal_additive_shares(rng: SecureRandom, secret: int, total: int) -> List[int]:
    """加法分享 / Split ``secret`` into ``total`` shares that sum to it."""
    if total <= 0:
        raise ValueError("Total must be positive")
    shares = rng.random_scalars(total - 1)
    shares.append((secret - sum(shares)) % CURVE_ORDER)
    return shares


def deal_secret(rng: SecureRandom, secret: int, threshold: int, total: int) -> Tuple[List[int], List[int]]:
    """Shamir 分享 / Return the shares for ids ``1..total`` and the polynomial coefficients."""
    if not 0 < threshold <= total:
        raise ValueError("Threshold must be between 1 and the total number of shares")
    coefficients = [secret % CURVE_ORDER] + rng.random_scalars(threshold - 1)
    shares = []
    for x in range(1, total + 1):
        # Horner 求值
        value = 0
        for coefficient in reversed(coefficients):
            value = (value * x + coefficient) % CURVE_ORDER
        shares.append(value)
    return shares, coefficients


def deal_random_secret(rng: SecureRandom, threshold: int, total: int) -> Tuple[int, List[int], List[int]]:
    secret = rng.random_nonzero_scalar()
    shares, coefficients = deal_secret(rng, secret, threshold, total)
    return secret, shares, coefficients


def lagrange_basis_at_0(participant_ids: Iterable[ParticipantId], participant_id: ParticipantId) -> int:
    """拉格朗日基 λ_i(0) / Coefficient of ``participant_id``'s share when interpolating at zero."""
    participant_ids = list(participant_ids)
    if len(participant_ids) != len(set(participant_ids)):
        raise InvalidParticipantSet("Participant ids must be unique")
    if participant_id not in participant_ids:
        raise InvalidParticipantSet(f"Participant {participant_id} is not in the signer set")
    if any(p % CURVE_ORDER == 0 for p in participant_ids):
        raise InvalidParticipantSet("Participant ids must be non-zero")

    numerator = 1
    denominator = 1
    for other in participant_ids:
        if other == participant_id:
            continue
        numerator = (numerator * other) % CURVE_ORDER
        denominator = (denominator * (other - participant_id)) % CURVE_ORDER
    return numerator * pow(denominator, -1, CURVE_ORDER) % CURVE_ORDER


def additive_share_from_shamir(
    share: int, participant_id: ParticipantId, signer_ids: Iterable[ParticipantId]
) -> int:
    """Weight a Shamir share so the signers' shares add up to the secret."""
    return share * lagrange_basis_at_0(signer_ids, participant_id) % CURVE_ORDER


def reconstruct_secret(shares: Dict[ParticipantId, int]) -> int:
    ids = list(shares)
    return sum(additive_share_from_shamir(value, pid, ids) for pid, value in shares.items()) % CURVE_ORDER
