from dataclasses import replace

import pytest

from constants import CURVE_ORDER
from errors import (
    DuplicateParticipant,
    IncompleteRound,
    InvalidMultiplicationPayload,
    InvalidParticipantSet,
    ProtocolOrderViolation,
    UnknownParticipant,
)
from multiplication import CorrelationDealer, MultiplicationParams, Phase2

PARAMS = MultiplicationParams()


def start_phase2(rng, ids, batch_size):
    correlations = CorrelationDealer.deal(rng.derive_child("dealer"), ids, batch_size)
    inputs = {
        pid: (rng.random_scalars(batch_size), rng.random_scalars(batch_size))
        for pid in ids
    }
    phases = {}
    u_payloads = {}
    for pid in ids:
        others = [p for p in ids if p != pid]
        phases[pid], u_payloads[pid] = Phase2.init(
            pid, inputs[pid][0], inputs[pid][1], correlations[pid], others, PARAMS
        )
    return phases, u_payloads, inputs


def run_phase2(rng, ids, batch_size):
    phases, u_payloads, inputs = start_phase2(rng, ids, batch_size)
    for sender, outgoing in u_payloads.items():
        for receiver, payload in outgoing.items():
            tau = phases[receiver].receive_u(sender, payload, PARAMS)
            phases[sender].receive_tau(receiver, tau, PARAMS)
    return {pid: phase.finish() for pid, phase in phases.items()}, inputs


def test_cross_products_are_shared_correctly(rng):
    ids = [1, 2, 3, 4]
    batch_size = 3
    outputs, inputs = run_phase2(rng, ids, batch_size)

    for low in ids:
        for high in ids:
            if low >= high:
                continue
            # 低ID为响应方持有 z_A，高ID为发起方持有 z_B
            z_a = outputs[low].z_A[high]
            z_b = outputs[high].z_B[low]
            for k in range(batch_size):
                mk_low, mr_low = inputs[low][0][k], inputs[low][1][k]
                mk_high, mr_high = inputs[high][0][k], inputs[high][1][k]
                assert (z_a[0][k] + z_b[0][k]) % CURVE_ORDER == mk_low * mr_high % CURVE_ORDER
                assert (z_a[1][k] + z_b[1][k]) % CURVE_ORDER == mr_low * mk_high % CURVE_ORDER


def test_initiator_is_the_higher_id(rng):
    phases, u_payloads, _ = start_phase2(rng, [1, 2, 3], 1)
    assert set(u_payloads[1]) == set()
    assert set(u_payloads[2]) == {1}
    assert set(u_payloads[3]) == {1, 2}
    assert phases[1].pending_u() == {2, 3}
    assert phases[3].pending_tau() == {1, 2}


def test_tampered_u_payload_is_rejected(rng):
    phases, u_payloads, _ = start_phase2(rng, [1, 2], 2)
    payload = u_payloads[2][1]
    tampered = replace(payload, values_0=((payload.values_0[0] + 1) % CURVE_ORDER,) + payload.values_0[1:])
    with pytest.raises(InvalidMultiplicationPayload) as excinfo:
        phases[1].receive_u(2, tampered, PARAMS)
    assert excinfo.value.participant_id == 2

    short = replace(payload, values_1=payload.values_1[:1])
    with pytest.raises(InvalidMultiplicationPayload):
        phases[1].receive_u(2, short, PARAMS)


def test_payload_bound_to_params(rng):
    phases, u_payloads, _ = start_phase2(rng, [1, 2], 1)
    with pytest.raises(InvalidMultiplicationPayload):
        phases[1].receive_u(2, u_payloads[2][1], MultiplicationParams(label=b"another-run"))


def test_wrong_roles_and_duplicates(rng):
    phases, u_payloads, _ = start_phase2(rng, [1, 2], 1)
    tau = phases[1].receive_u(2, u_payloads[2][1], PARAMS)
    with pytest.raises(DuplicateParticipant):
        phases[1].receive_u(2, u_payloads[2][1], PARAMS)
    # 发起方不应接收 U
    with pytest.raises(ProtocolOrderViolation):
        phases[2].receive_u(1, u_payloads[2][1], PARAMS)
    with pytest.raises(ProtocolOrderViolation):
        phases[1].receive_tau(2, tau, PARAMS)
    with pytest.raises(UnknownParticipant):
        phases[1].receive_u(5, u_payloads[2][1], PARAMS)


def test_finish_requires_every_peer(rng):
    phases, u_payloads, _ = start_phase2(rng, [1, 2, 3], 1)
    phases[1].receive_u(2, u_payloads[2][1], PARAMS)
    with pytest.raises(IncompleteRound) as excinfo:
        phases[1].finish()
    assert excinfo.value.missing == (3,)


def test_dealer_needs_two_participants(rng):
    with pytest.raises(InvalidParticipantSet):
        CorrelationDealer.deal(rng, [1], 2)
