"""Distributed participant thread driving one threshold BBS+ signing batch."""

from __future__ import annotations

import threading
import time
from typing import Dict, List, Sequence

from bbs_plus import SignatureParamsG1
from constants import CLIENT_ID, DEFAULT_HASH, DEFAULT_PROTOCOL_ID
from crypto_manager import CryptoManager
from data_models import EncryptedPayloadPackage, Phase1Output, Phase2Output, SignedBroadcast
from errors import ChannelAuthenticationError, DuplicateParticipant, IncompleteRound
from multiplication import MultiplicationParams, PairwiseCorrelation, Phase2
from network_simulator import NetworkSimulator
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
    encode_u32,
    encode_u_payload,
)
from threshold_signature import BBSPlusSignatureShare

# 模拟网络中的消息类型
KIND_COMMITMENT = "phase1-commitment"
KIND_COIN_SHARES = "phase1-coin-shares"
KIND_ZERO_SHARES = "phase1-zero-shares"
KIND_U = "multiplication-u"
KIND_TAU = "multiplication-tau"
KIND_SIGNATURE_SHARE = "signature-share"


class DistributedParticipant(threading.Thread):
    """分布式签名者 / Signer thread running Phase 1, Phase 2 and share construction over the simulated network."""

    def __init__(
        self,
        participant_id: int,
        signer_ids: Sequence[int],
        signing_key_share: int,
        sig_params: SignatureParamsG1,
        message_batch: Sequence[Sequence[int]],
        correlations: Dict[int, PairwiseCorrelation],
        network: NetworkSimulator,
        protocol_id: bytes = DEFAULT_PROTOCOL_ID,
        hash_name: str = DEFAULT_HASH,
        multiplication_params: MultiplicationParams | None = None,
        rng: SecureRandom | None = None,
        timeout: float = 60.0,
        verbose: bool = True,
    ) -> None:
        super().__init__()
        self.participant_id = participant_id
        self.signer_ids = sorted(signer_ids)
        self.others = [p for p in self.signer_ids if p != participant_id]
        self.signing_key_share = signing_key_share
        self.sig_params = sig_params
        self.message_batch = [list(messages) for messages in message_batch]
        self.batch_size = len(self.message_batch)
        self.correlations = correlations
        self.network = network
        self.protocol_id = protocol_id
        self.hash_name = hash_name
        self.multiplication_params = multiplication_params or MultiplicationParams(hash_name=hash_name)
        self.rng = rng or SecureRandom(f"participant-{participant_id}")
        self.timeout = timeout
        self.verbose = verbose

        self.phase1_output: Phase1Output | None = None
        self.phase2_output: Phase2Output | None = None
        self.signature_shares: List[BBSPlusSignatureShare] = []
        self.error: Exception | None = None

        # 性能统计
        self.phase1_time: float = 0
        self.phase2_time: float = 0
        self.share_time: float = 0
        self.network_ops: Dict[str, int] = {}

        self.done_event = threading.Event()

        self.signing_private_key, self.signing_public_key = CryptoManager.generate_signature_keypair()
        self.kem_private_key, self.kem_public_key = CryptoManager.generate_kem_keypair()

        self.network.register_participant(
            self.participant_id,
            self.signing_public_key,
            self.kem_public_key,
        )

    def log(self, message: str) -> None:
        if self.verbose:
            print(f"[Participant {self.participant_id}] {message}")

    def run(self) -> None:  # pragma: no cover - threaded entry point
        """参与者主流程 / Main thread routine for a signer."""
        try:
            self.run_phase1()
            self.run_phase2()
            self.send_signature_shares()
        except Exception as exc:
            # 由编排层在线程结束后重新抛出
            self.error = exc
            print(f"[Participant {self.participant_id}] Error: {exc}")
        finally:
            self.done_event.set()

    def _count(self, op_name: str, amount: int = 1) -> None:
        self.network_ops[op_name] = self.network_ops.get(op_name, 0) + amount

    def _broadcast(self, kind: str, payload: bytes) -> None:
        broadcast = CryptoManager.sign_broadcast(self.participant_id, kind, payload, self.signing_private_key)
        self.network.broadcast(broadcast, exclude=(CLIENT_ID,))
        self._count('Ed25519签名 (广播消息)')

    def _send(self, receiver_id: int, kind: str, payload: bytes) -> None:
        package = CryptoManager.seal(
            self.participant_id,
            receiver_id,
            kind,
            payload,
            self.network.get_kem_public_key(receiver_id),
            self.signing_private_key,
        )
        self.network.send_encrypted(package)
        self._count('X25519封装 + AES-GCM加密 (点对点消息)')
        self._count('Ed25519签名 (消息包+密钥绑定)', 2)

    def _receive_broadcasts(self, kind: str, expected: int) -> Dict[int, bytes]:
        received: Dict[int, bytes] = {}
        for message in self.network.receive(self.participant_id, kind, expected, self.timeout):
            if not isinstance(message, SignedBroadcast):
                raise ChannelAuthenticationError(message.sender_id, f"expected a signed broadcast for {kind}")
            if message.sender_id in received:
                raise DuplicateParticipant(message.sender_id, kind)
            sender_key = self.network.get_signing_public_key(message.sender_id)
            received[message.sender_id] = CryptoManager.verify_broadcast(message, sender_key)
            self._count('Ed25519验签 (广播消息)')
        return received

    def _receive_packages(self, kind: str, expected: int) -> Dict[int, bytes]:
        received: Dict[int, bytes] = {}
        for package in self.network.receive(self.participant_id, kind, expected, self.timeout):
            if not isinstance(package, EncryptedPayloadPackage):
                raise ChannelAuthenticationError(package.sender_id, f"expected an encrypted package for {kind}")
            if package.sender_id in received:
                raise DuplicateParticipant(package.sender_id, kind)
            sender_key = self.network.get_signing_public_key(package.sender_id)
            received[package.sender_id] = CryptoManager.open_package(package, self.kem_private_key, sender_key)
            self._count('X25519解封装 + AES-GCM解密 (点对点消息)')
            self._count('Ed25519验签 (消息包+密钥绑定)', 2)
        return received

    def run_phase1(self) -> None:
        """随机数生成阶段 / Commit, reveal and finish Phase 1."""
        start_time = time.time()
        phase, commitments, zero_share_commitments = Phase1.init_for_bbs_plus(
            self.rng.derive_child("phase1"),
            self.batch_size,
            self.participant_id,
            self.others,
            self.protocol_id,
            hash_name=self.hash_name,
        )
        self._broadcast(KIND_COMMITMENT, encode_round_one(commitments, zero_share_commitments))
        self.log(f"Broadcast commitments for {2 * self.batch_size} coin-toss slots")

        for sender_id, payload in self._receive_broadcasts(KIND_COMMITMENT, len(self.others)).items():
            sender_commitments, sender_zero_commitments = decode_round_one(payload)
            phase.receive_round_one(sender_id, sender_commitments, sender_zero_commitments)
        if phase.pending_commitments():
            raise IncompleteRound(Phase1.ROUND_COMMITMENT, phase.pending_commitments())
        self.log(f"Received commitments from {len(self.others)} signers")

        self._broadcast(KIND_COIN_SHARES, encode_shares_and_salts(phase.get_comm_shares_and_salts()))
        for other in self.others:
            zero_shares = phase.get_comm_shares_and_salts_for_zero_sharing_protocol_with_other(other)
            self._send(other, KIND_ZERO_SHARES, encode_shares_and_salts(zero_shares))

        coin_shares = self._receive_broadcasts(KIND_COIN_SHARES, len(self.others))
        zero_shares_received = self._receive_packages(KIND_ZERO_SHARES, len(self.others))
        for sender_id in sorted(set(coin_shares) & set(zero_shares_received)):
            phase.receive_shares(
                sender_id,
                decode_shares_and_salts(coin_shares[sender_id]),
                decode_shares_and_salts(zero_shares_received[sender_id]),
            )
        if phase.pending_shares():
            raise IncompleteRound(Phase1.ROUND_SHARES, phase.pending_shares())

        self.phase1_output = phase.finish_for_bbs_plus(self.signing_key_share)
        self.phase1_time = time.time() - start_time
        self.log(f"Phase 1 finished ({self.phase1_time*1000:.2f} ms)")

    def run_phase2(self) -> None:
        """乘法阶段 / Exchange ``U`` and ``tau`` payloads with every peer."""
        if self.phase1_output is None:
            raise ValueError("Phase 1 must finish before Phase 2")
        start_time = time.time()
        phase, payloads = Phase2.init(
            self.participant_id,
            self.phase1_output.masked_signing_key_shares,
            self.phase1_output.masked_rs,
            self.correlations,
            self.others,
            self.multiplication_params,
        )
        for receiver_id, payload in payloads.items():
            self._send(receiver_id, KIND_U, encode_u_payload(payload))
        self.log(f"Sent U payloads to {len(payloads)} signers")

        # 先回应所有 U，再等待 tau，避免相互等待
        for sender_id, data in self._receive_packages(KIND_U, len(phase.pending_u())).items():
            tau = phase.receive_u(sender_id, decode_u_payload(data), self.multiplication_params)
            self._send(sender_id, KIND_TAU, encode_tau_payload(tau))
        if phase.pending_u():
            raise IncompleteRound(Phase2.ROUND_U, phase.pending_u())

        for sender_id, data in self._receive_packages(KIND_TAU, len(phase.pending_tau())).items():
            phase.receive_tau(sender_id, decode_tau_payload(data), self.multiplication_params)

        self.phase2_output = phase.finish()
        self.phase2_time = time.time() - start_time
        self.log(f"Phase 2 finished ({self.phase2_time*1000:.2f} ms)")

    def send_signature_shares(self) -> None:
        """生成并发送签名份额给客户端 / Build one share per signature and send it to the client."""
        if self.phase1_output is None or self.phase2_output is None:
            raise ValueError("Both phases must finish before creating signature shares")
        start_time = time.time()
        for index, messages in enumerate(self.message_batch):
            share = BBSPlusSignatureShare.new(messages, index, self.phase1_output, self.phase2_output, self.sig_params)
            self.signature_shares.append(share)
            self._send(CLIENT_ID, KIND_SIGNATURE_SHARE, encode_u32(index) + share.to_bytes())
        self.share_time = time.time() - start_time
        self.log(f"Sent {self.batch_size} signature shares to the client ({self.share_time*1000:.2f} ms)")
