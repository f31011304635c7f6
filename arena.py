"""In-process signing session holding every signer's round state.

所有签名者的状态按 ID 存放在同一个字典中，轮次消息通过 ID 查找进行路由，
并在传递前经过规范编码 / Every signer's state lives in one dict keyed by id;
round messages are routed by id lookup and pass through the wire codec.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from bbs_plus import Signature, SignatureParamsG1
from constants import DEFAULT_HASH, DEFAULT_PROTOCOL_ID, SALT_SIZE
from data_models import ParticipantId, Phase1Output, Phase2Output
from errors import InvalidParticipantSet, ProtocolOrderViolation
from multiplication import CorrelationDealer, MultiplicationParams, Phase2
from randomness_generation import Phase1
from secure_rng import SecureRandom
from serialization import (
    decode_round_one,
    decode_shares_and_salts,
    decode_tau_payload,
    decode_u_payload,
    encode_round_one,
    encode_shares_and_salts,
    encode_tau_payload,
    encode_u_payload,
)
from threshold_signature import BBSPlusSignatureShare


class SigningSession:
    """单进程签名会话 / Runs every round of one signature batch for a fixed signer set."""

    def __init__(
        self,
        rng: SecureRandom,
        signing_key_shares: Dict[ParticipantId, int],
        sig_params: SignatureParamsG1,
        batch_size: int,
        protocol_id: bytes = DEFAULT_PROTOCOL_ID,
        hash_name: str = DEFAULT_HASH,
        salt_size: int = SALT_SIZE,
        multiplication_params: Optional[MultiplicationParams] = None,
    ) -> None:
        if len(signing_key_shares) < 2:
            raise InvalidParticipantSet("A signing session needs at least two signers")
        self.rng = rng
        self.signing_key_shares = dict(signing_key_shares)
        self.sig_params = sig_params
        self.batch_size = batch_size
        self.protocol_id = protocol_id
        self.hash_name = hash_name
        self.salt_size = salt_size
        self.multiplication_params = multiplication_params or MultiplicationParams(hash_name=hash_name)

        self.phase1_outputs: Dict[ParticipantId, Phase1Output] = {}
        self.phase2_outputs: Dict[ParticipantId, Phase2Output] = {}

    @property
    def participant_ids(self) -> List[ParticipantId]:
        return sorted(self.signing_key_shares)

    def _others(self, participant_id: ParticipantId) -> List[ParticipantId]:
        return [p for p in self.participant_ids if p != participant_id]

    def run_phase1(self) -> Dict[ParticipantId, Phase1Output]:
        """随机数生成 / Commit, reveal and finish Phase 1 for every signer."""
        phases: Dict[ParticipantId, Phase1] = {}
        round_one: Dict[ParticipantId, bytes] = {}
        for participant_id in self.participant_ids:
            phase, commitments, zero_share_commitments = Phase1.init_for_bbs_plus(
                self.rng.derive_child(f"phase1-{participant_id}"),
                self.batch_size,
                participant_id,
                self._others(participant_id),
                self.protocol_id,
                hash_name=self.hash_name,
                salt_size=self.salt_size,
            )
            phases[participant_id] = phase
            round_one[participant_id] = encode_round_one(commitments, zero_share_commitments)

        for receiver_id, phase in phases.items():
            for sender_id in self._others(receiver_id):
                commitments, zero_share_commitments = decode_round_one(round_one[sender_id])
                phase.receive_round_one(sender_id, commitments, zero_share_commitments)

        for receiver_id, phase in phases.items():
            for sender_id in self._others(receiver_id):
                sender = phases[sender_id]
                shares = decode_shares_and_salts(encode_shares_and_salts(sender.get_comm_shares_and_salts()))
                zero_shares = decode_shares_and_salts(
                    encode_shares_and_salts(
                        sender.get_comm_shares_and_salts_for_zero_sharing_protocol_with_other(receiver_id)
                    )
                )
                phase.receive_shares(sender_id, shares, zero_shares)

        self.phase1_outputs = {
            participant_id: phase.finish_for_bbs_plus(self.signing_key_shares[participant_id])
            for participant_id, phase in phases.items()
        }
        return self.phase1_outputs

    def run_phase2(self) -> Dict[ParticipantId, Phase2Output]:
        """乘法阶段 / Exchange ``U`` and ``tau`` payloads between every pair of signers."""
        if not self.phase1_outputs:
            raise ProtocolOrderViolation(min(self.participant_ids), "multiplication", "phase 1 has not finished")
        correlations = CorrelationDealer.deal(
            self.rng.derive_child("correlations"), self.participant_ids, self.batch_size
        )
        phases: Dict[ParticipantId, Phase2] = {}
        u_messages: Dict[ParticipantId, Dict[ParticipantId, bytes]] = {}
        for participant_id, output in self.phase1_outputs.items():
            phase, payloads = Phase2.init(
                participant_id,
                output.masked_signing_key_shares,
                output.masked_rs,
                correlations[participant_id],
                self._others(participant_id),
                self.multiplication_params,
            )
            phases[participant_id] = phase
            u_messages[participant_id] = {
                receiver_id: encode_u_payload(payload) for receiver_id, payload in payloads.items()
            }

        tau_messages: Dict[ParticipantId, Dict[ParticipantId, bytes]] = {p: {} for p in self.participant_ids}
        for sender_id, outgoing in u_messages.items():
            for receiver_id, data in outgoing.items():
                tau = phases[receiver_id].receive_u(sender_id, decode_u_payload(data), self.multiplication_params)
                tau_messages[receiver_id][sender_id] = encode_tau_payload(tau)

        for sender_id, outgoing in tau_messages.items():
            for receiver_id, data in outgoing.items():
                phases[receiver_id].receive_tau(sender_id, decode_tau_payload(data), self.multiplication_params)

        self.phase2_outputs = {participant_id: phase.finish() for participant_id, phase in phases.items()}
        return self.phase2_outputs

    def signature_shares(self, index_in_output: int, messages: Sequence[int]) -> List[BBSPlusSignatureShare]:
        if not self.phase2_outputs:
            raise ProtocolOrderViolation(min(self.participant_ids), "signature share", "phase 2 has not finished")
        return [
            BBSPlusSignatureShare.new(
                messages,
                index_in_output,
                self.phase1_outputs[participant_id],
                self.phase2_outputs[participant_id],
                self.sig_params,
            )
            for participant_id in self.participant_ids
        ]

    def sign_batch(self, message_batch: Iterable[Sequence[int]]) -> List[Signature]:
        """运行全部轮次并为每组消息输出签名 / Run every round and return one signature per message vector."""
        message_batch = list(message_batch)
        if len(message_batch) != self.batch_size:
            raise ValueError(f"Expected {self.batch_size} message vectors, got {len(message_batch)}")
        self.run_phase1()
        self.run_phase2()
        signatures = []
        for index, messages in enumerate(message_batch):
            shares = self.signature_shares(index, messages)
            signatures.append(BBSPlusSignatureShare.aggregate(shares, expected_participants=self.participant_ids))
        return signatures
