import pytest

from cointoss import Party, hash_commitment
from constants import CURVE_ORDER
from data_models import Commitments
from errors import (
    CommitmentMismatch,
    DuplicateParticipant,
    IncompleteRound,
    ProtocolOrderViolation,
    UnknownParticipant,
)

PROTOCOL_ID = b"cointoss-test"


def make_parties(rng, ids, count=4):
    parties = {}
    commitments = {}
    for pid in ids:
        others = [p for p in ids if p != pid]
        parties[pid], commitments[pid] = Party.commit(rng.derive_child(f"party-{pid}"), pid, count, PROTOCOL_ID, others)
    return parties, commitments


def exchange_all(parties, commitments):
    for receiver, party in parties.items():
        for sender in parties:
            if sender != receiver:
                party.receive_commitment(sender, commitments[sender])
    for receiver, party in parties.items():
        for sender in parties:
            if sender != receiver:
                party.receive_shares(sender, parties[sender].get_comm_shares_and_salts())


def test_all_parties_agree_on_joint_randomness(rng):
    parties, commitments = make_parties(rng, [1, 2, 3, 4])
    exchange_all(parties, commitments)

    results = [party.compute_joint_randomness() for party in parties.values()]
    assert all(result == results[0] for result in results)
    assert len(results[0]) == 4

    expected = [
        sum(party.own_shares_and_salts[slot][0] for party in parties.values()) % CURVE_ORDER
        for slot in range(4)
    ]
    assert results[0] == expected


def test_commitment_covers_each_slot_separately(rng):
    party, commitments = Party.commit(rng, 1, 3, PROTOCOL_ID)
    assert len(commitments) == 3
    for (share, salt), commitment in zip(party.get_comm_shares_and_salts(), commitments.values):
        assert hash_commitment(PROTOCOL_ID, 1, share, salt) == commitment


@pytest.mark.parametrize("bit", [0, 7, 100, 255])
def test_flipped_share_bit_is_rejected(rng, bit):
    parties, commitments = make_parties(rng, [1, 2])
    parties[2].receive_commitment(1, commitments[1])

    reveal = parties[1].get_comm_shares_and_salts()
    share, salt = reveal[1]
    tampered = (share ^ (1 << bit)) % CURVE_ORDER
    reveal[1] = (tampered, salt)
    with pytest.raises(CommitmentMismatch) as excinfo:
        parties[2].receive_shares(1, reveal)
    assert excinfo.value.participant_id == 1


@pytest.mark.parametrize("bit", [0, 9, 255])
def test_flipped_salt_bit_is_rejected(rng, bit):
    parties, commitments = make_parties(rng, [1, 2])
    parties[2].receive_commitment(1, commitments[1])

    reveal = parties[1].get_comm_shares_and_salts()
    share, salt = reveal[0]
    salt = bytearray(salt)
    salt[bit // 8] ^= 1 << (bit % 8)
    reveal[0] = (share, bytes(salt))
    with pytest.raises(CommitmentMismatch):
        parties[2].receive_shares(1, reveal)


def test_reveal_before_commitment_is_an_order_violation(rng):
    parties, _ = make_parties(rng, [1, 2])
    with pytest.raises(ProtocolOrderViolation):
        parties[2].receive_shares(1, parties[1].get_comm_shares_and_salts())


def test_duplicate_commitment_and_reveal(rng):
    parties, commitments = make_parties(rng, [1, 2])
    parties[2].receive_commitment(1, commitments[1])
    with pytest.raises(DuplicateParticipant):
        parties[2].receive_commitment(1, commitments[1])

    parties[2].receive_shares(1, parties[1].get_comm_shares_and_salts())
    with pytest.raises(DuplicateParticipant):
        parties[2].receive_shares(1, parties[1].get_comm_shares_and_salts())


def test_unknown_sender_is_rejected(rng):
    parties, commitments = make_parties(rng, [1, 2])
    with pytest.raises(UnknownParticipant):
        parties[2].receive_commitment(9, commitments[1])
    with pytest.raises(UnknownParticipant):
        parties[2].receive_commitment(2, commitments[1])


def test_wrong_number_of_commitments(rng):
    parties, commitments = make_parties(rng, [1, 2], count=4)
    with pytest.raises(CommitmentMismatch):
        parties[2].receive_commitment(1, Commitments(commitments[1].values[:3]))


def test_joint_randomness_waits_for_every_peer(rng):
    parties, commitments = make_parties(rng, [1, 2, 3])
    parties[1].receive_commitment(2, commitments[2])
    parties[1].receive_shares(2, parties[2].get_comm_shares_and_salts())

    assert parties[1].pending_commitments() == {3}
    assert parties[1].pending_shares() == {3}
    with pytest.raises(IncompleteRound) as excinfo:
        parties[1].compute_joint_randomness()
    assert excinfo.value.missing == (3,)


def test_open_peer_set_tracks_whoever_committed(rng):
    party, _ = Party.commit(rng.derive_child("a"), 1, 2, PROTOCOL_ID)
    other, other_commitments = Party.commit(rng.derive_child("b"), 2, 2, PROTOCOL_ID)
    party.receive_commitment(2, other_commitments)
    assert not party.has_shares_from_all_who_committed()

    party.receive_shares(2, other.get_comm_shares_and_salts())
    assert party.has_shares_from_all_who_committed()
    assert len(party.finish()) == 2
