import pytest

from conftest import PROTOCOL_ID, deal_keys, run_phase1
from constants import CURVE_ORDER
from errors import (
    CommitmentMismatch,
    DuplicateParticipant,
    IncompleteRound,
    InvalidParticipantSet,
    ProtocolOrderViolation,
    UnknownParticipant,
)
from randomness_generation import Phase1, Phase1State


def test_phase1_outputs_agree_and_mask_the_key(rng, sig_params):
    ids = [1, 2, 3, 4]
    batch_size = 3
    secret_key, _, key_shares = deal_keys(rng, sig_params, ids)
    phases = run_phase1(rng, ids, batch_size)
    assert all(phase.state is Phase1State.SHARES_EXCHANGED for phase in phases.values())

    outputs = {pid: phase.finish_for_bbs_plus(key_shares[pid]) for pid, phase in phases.items()}
    first = outputs[1]
    for output in outputs.values():
        assert output.e == first.e
        assert output.s == first.s
        assert len(output.r) == batch_size
        assert output.others == tuple(p for p in ids if p != output.id)

    for slot in range(batch_size):
        masked_key_sum = sum(output.masked_signing_key_shares[slot] for output in outputs.values()) % CURVE_ORDER
        assert masked_key_sum == secret_key.value
        masked_r_sum = sum(output.masked_rs[slot] for output in outputs.values()) % CURVE_ORDER
        assert masked_r_sum == sum(output.r[slot] for output in outputs.values()) % CURVE_ORDER

    # 全批次的密钥份额之和为 sk * batch_size
    total = sum(sum(output.masked_signing_key_shares) for output in outputs.values()) % CURVE_ORDER
    assert total == secret_key.value * batch_size % CURVE_ORDER


def test_reveal_before_commitment(rng):
    phase, _, _ = Phase1.init_for_bbs_plus(rng.derive_child("a"), 1, 1, [2], PROTOCOL_ID)
    other, _, _ = Phase1.init_for_bbs_plus(rng.derive_child("b"), 1, 2, [1], PROTOCOL_ID)
    with pytest.raises(ProtocolOrderViolation):
        phase.receive_shares(
            2,
            other.get_comm_shares_and_salts(),
            other.get_comm_shares_and_salts_for_zero_sharing_protocol_with_other(1),
        )


def test_duplicate_and_unknown_commitments(rng):
    phase, _, _ = Phase1.init_for_bbs_plus(rng.derive_child("a"), 1, 1, [2], PROTOCOL_ID)
    _, commitments, zero_commitments = Phase1.init_for_bbs_plus(rng.derive_child("b"), 1, 2, [1], PROTOCOL_ID)
    phase.receive_commitment(2, commitments, zero_commitments[1])
    with pytest.raises(DuplicateParticipant):
        phase.receive_commitment(2, commitments, zero_commitments[1])
    with pytest.raises(UnknownParticipant):
        phase.receive_commitment(3, commitments, zero_commitments[1])


def test_round_one_bundle_must_address_the_receiver(rng):
    phase, _, _ = Phase1.init_for_bbs_plus(rng.derive_child("a"), 1, 1, [2, 3], PROTOCOL_ID)
    _, commitments, zero_commitments = Phase1.init_for_bbs_plus(rng.derive_child("b"), 1, 2, [1, 3], PROTOCOL_ID)
    with pytest.raises(CommitmentMismatch) as excinfo:
        phase.receive_round_one(2, commitments, {3: zero_commitments[3]})
    assert excinfo.value.participant_id == 2
    assert phase.pending_commitments() == {2, 3}

    phase.receive_round_one(2, commitments, zero_commitments)
    assert phase.pending_commitments() == {3}


def test_finish_requires_every_peer(rng):
    phase, _, _ = Phase1.init_for_bbs_plus(rng.derive_child("a"), 2, 1, [2, 3], PROTOCOL_ID)
    _, commitments, zero_commitments = Phase1.init_for_bbs_plus(rng.derive_child("b"), 2, 2, [1, 3], PROTOCOL_ID)
    phase.receive_commitment(2, commitments, zero_commitments[1])
    assert phase.pending_commitments() == {3}
    with pytest.raises(IncompleteRound) as excinfo:
        phase.finish_for_bbs_plus(5)
    assert 3 in excinfo.value.missing


def test_finish_twice_is_rejected(rng):
    phases = run_phase1(rng, [1, 2], 1)
    phases[1].finish_for_bbs_plus(7)
    assert phases[1].state is Phase1State.FINISHED
    with pytest.raises(ProtocolOrderViolation):
        phases[1].finish_for_bbs_plus(7)


def test_invalid_arguments(rng):
    with pytest.raises(ValueError):
        Phase1.init_for_bbs_plus(rng, 0, 1, [2], PROTOCOL_ID)
    with pytest.raises(InvalidParticipantSet):
        Phase1.init_for_bbs_plus(rng, 1, 1, [], PROTOCOL_ID)
    with pytest.raises(InvalidParticipantSet):
        Phase1.init_for_bbs_plus(rng, 1, 1, [1, 2], PROTOCOL_ID)
    with pytest.raises(ValueError):
        Phase1.init_for_bbs_plus(rng, 1, 1, [2], PROTOCOL_ID, hash_name="not-a-hash")
