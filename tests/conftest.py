from typing import Dict, List

import pytest

from bbs_plus import PublicKeyG2, SecretKey, SignatureParamsG1
from key_dealing import deal_additive_shares
from randomness_generation import Phase1
from secure_rng import SecureRandom

PROTOCOL_ID = b"test-threshold-bbs-plus"


@pytest.fixture
def rng() -> SecureRandom:
    return SecureRandom("tests", seed=b"threshold-bbs-plus-test-seed")


@pytest.fixture
def sig_params() -> SignatureParamsG1:
    return SignatureParamsG1.new(b"test-params", 3)


def deal_keys(rng: SecureRandom, sig_params: SignatureParamsG1, participant_ids: List[int]):
    """Additively deal a fresh key; returns (secret key, public key, shares by id)."""
    secret_key = SecretKey.generate_using_rng(rng.derive_child("secret-key"))
    public_key = PublicKeyG2.generate_using_secret_key(secret_key, sig_params)
    shares = deal_additive_shares(rng.derive_child("key-shares"), secret_key.value, len(participant_ids))
    return secret_key, public_key, dict(zip(participant_ids, shares))


def run_phase1(rng: SecureRandom, participant_ids: List[int], batch_size: int) -> Dict[int, Phase1]:
    """Run commit and reveal for every participant and return the unfinished phases."""
    phases: Dict[int, Phase1] = {}
    commitments = {}
    zero_commitments = {}
    for pid in participant_ids:
        others = [p for p in participant_ids if p != pid]
        phase, comm, zero_comm = Phase1.init_for_bbs_plus(
            rng.derive_child(f"phase1-{pid}"), batch_size, pid, others, PROTOCOL_ID
        )
        phases[pid] = phase
        commitments[pid] = comm
        zero_commitments[pid] = zero_comm

    for receiver, phase in phases.items():
        for sender in participant_ids:
            if sender != receiver:
                phase.receive_commitment(sender, commitments[sender], zero_commitments[sender][receiver])

    for receiver, phase in phases.items():
        for sender in participant_ids:
            if sender != receiver:
                phase.receive_shares(
                    sender,
                    phases[sender].get_comm_shares_and_salts(),
                    phases[sender].get_comm_shares_and_salts_for_zero_sharing_protocol_with_other(receiver),
                )
    return phases
