import pytest

from conftest import deal_keys
from constants import DEFAULT_PROTOCOL_ID
from crypto_manager import CryptoManager
from errors import ChannelAuthenticationError, CommitmentMismatch, DuplicateParticipant
from multiplication import CorrelationDealer
from network_simulator import NetworkSimulator
from participant import KIND_COMMITMENT, KIND_ZERO_SHARES, DistributedParticipant
from randomness_generation import Phase1
from serialization import encode_round_one

IDS = [1, 2, 3]


@pytest.fixture
def signers(rng, sig_params):
    """Three signers on one network; threads are never started."""
    network = NetworkSimulator()
    _, _, key_shares = deal_keys(rng, sig_params, IDS)
    correlations = CorrelationDealer.deal(rng.derive_child("dealer"), IDS, 1)
    participants = {
        pid: DistributedParticipant(
            pid,
            IDS,
            key_shares[pid],
            sig_params,
            [[1, 2, 3]],
            correlations[pid],
            network,
            rng=rng.derive_child(f"participant-{pid}"),
            timeout=1.0,
            verbose=False,
        )
        for pid in IDS
    }
    return network, participants


def round_one_of(rng, pid):
    others = [p for p in IDS if p != pid]
    _, commitments, zero_commitments = Phase1.init_for_bbs_plus(
        rng.derive_child(f"peer-{pid}"), 1, pid, others, DEFAULT_PROTOCOL_ID
    )
    return commitments, zero_commitments


def broadcast_from(network, participant, kind, payload):
    network.broadcast(
        CryptoManager.sign_broadcast(participant.participant_id, kind, payload, participant.signing_private_key)
    )


def test_round_one_without_our_zero_commitments_names_the_sender(rng, signers):
    network, participants = signers
    commitments, zero_commitments = round_one_of(rng, 2)
    broadcast_from(network, participants[2], KIND_COMMITMENT, encode_round_one(commitments, {3: zero_commitments[3]}))
    broadcast_from(network, participants[3], KIND_COMMITMENT, encode_round_one(*round_one_of(rng, 3)))

    with pytest.raises(CommitmentMismatch) as excinfo:
        participants[1].run_phase1()
    assert excinfo.value.participant_id == 2


def test_repeated_broadcast_is_reported_as_duplicate(rng, signers):
    network, participants = signers
    payload = encode_round_one(*round_one_of(rng, 2))
    broadcast_from(network, participants[2], KIND_COMMITMENT, payload)
    broadcast_from(network, participants[2], KIND_COMMITMENT, payload)
    broadcast_from(network, participants[3], KIND_COMMITMENT, encode_round_one(*round_one_of(rng, 3)))

    with pytest.raises(DuplicateParticipant) as excinfo:
        participants[1].run_phase1()
    assert excinfo.value.participant_id == 2


def test_broadcast_where_a_package_is_expected(signers):
    network, participants = signers
    broadcast = CryptoManager.sign_broadcast(2, KIND_ZERO_SHARES, b"shares", participants[2].signing_private_key)
    network.message_queues[1].put((KIND_ZERO_SHARES, broadcast))

    with pytest.raises(ChannelAuthenticationError) as excinfo:
        participants[1]._receive_packages(KIND_ZERO_SHARES, 1)
    assert excinfo.value.participant_id == 2
