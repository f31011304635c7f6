"""Phase 2 of threshold BBS+ signing: pairwise multiplication.

The signing core only relies on :class:`MultiplicationProtocol`, which turns
each signer's masked key shares and masked ``r`` values into additive shares
of the cross products with every peer:

    z_A[i][j].0 + z_B[j][i].0 = masked_signing_key_shares[i] * masked_rs[j]
    z_A[i][j].1 + z_B[j][i].1 = masked_rs[i] * masked_signing_key_shares[j]

For every unordered pair the higher id initiates (sends ``U``, ends up with
``z_B``) and the lower id responds (returns ``tau``, ends up with ``z_A``).

:class:`Phase2` implements the contract with multiplication correlations
issued by :class:`CorrelationDealer`, which plays the role of the base OT
setup for in-process runs and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from constants import CURVE_ORDER, DEFAULT_HASH
from data_models import ParticipantId, Phase2Output, TauPayload, UPayload
from errors import (
    DuplicateParticipant,
    IncompleteRound,
    InvalidMultiplicationPayload,
    InvalidParticipantSet,
    ProtocolOrderViolation,
    UnknownParticipant,
)
from secure_rng import SecureRandom
from serialization import (
    encode_participant_id,
    encode_scalars,
    hash_bytes,
    validate_hash_name,
)


@dataclass(frozen=True)
class MultiplicationParams:
    """乘法协议的不可变配置 / Immutable configuration passed to every Phase 2 call."""

    label: bytes = b"threshold-bbs-plus-multiplication"
    hash_name: str = DEFAULT_HASH

    def __post_init__(self) -> None:
        validate_hash_name(self.hash_name)


@dataclass(frozen=True)
class PairwiseCorrelation:
    """与某一对方的乘法相关随机数 / One side of the correlation shared with a peer.

    For product ``t`` in ``(0, 1)`` and slot ``k`` the two sides satisfy
    ``responder.c_t[k] + initiator.c_t[k] = responder.mask_t[k] * initiator.mask_t[k]``.
    """

    peer_id: ParticipantId
    is_initiator: bool
    mask_0: Tuple[int, ...]
    mask_1: Tuple[int, ...]
    c_0: Tuple[int, ...]
    c_1: Tuple[int, ...]


class CorrelationDealer:
    """Issues pairwise multiplication correlations before Phase 2 starts."""

    @staticmethod
    def deal(
        rng: SecureRandom,
        participants: Iterable[ParticipantId],
        batch_size: int,
    ) -> Dict[ParticipantId, Dict[ParticipantId, PairwiseCorrelation]]:
        participants = sorted(set(participants))
        if len(participants) < 2:
            raise InvalidParticipantSet("Multiplication needs at least two participants")
        result: Dict[ParticipantId, Dict[ParticipantId, PairwiseCorrelation]] = {
            participant_id: {} for participant_id in participants
        }
        for index, low in enumerate(participants):
            for high in participants[index + 1:]:
                responder_masks = (rng.random_scalars(batch_size), rng.random_scalars(batch_size))
                initiator_masks = (rng.random_scalars(batch_size), rng.random_scalars(batch_size))
                responder_c = (rng.random_scalars(batch_size), rng.random_scalars(batch_size))
                initiator_c = tuple(
                    tuple(
                        (a * b - c) % CURVE_ORDER
                        for a, b, c in zip(responder_masks[t], initiator_masks[t], responder_c[t])
                    )
                    for t in (0, 1)
                )
                result[low][high] = PairwiseCorrelation(
                    high, False,
                    tuple(responder_masks[0]), tuple(responder_masks[1]),
                    tuple(responder_c[0]), tuple(responder_c[1]),
                )
                result[high][low] = PairwiseCorrelation(
                    low, True,
                    tuple(initiator_masks[0]), tuple(initiator_masks[1]),
                    initiator_c[0], initiator_c[1],
                )
        return result


class MultiplicationProtocol(ABC):
    """Contract the signing core expects from Phase 2."""

    @abstractmethod
    def receive_u(self, sender_id: ParticipantId, payload: UPayload, params: MultiplicationParams) -> TauPayload:
        ...

    @abstractmethod
    def receive_tau(self, sender_id: ParticipantId, payload: TauPayload, params: MultiplicationParams) -> None:
        ...

    @abstractmethod
    def finish(self) -> Phase2Output:
        ...


def payload_digest(
    params: MultiplicationParams,
    round_name: bytes,
    sender_id: ParticipantId,
    receiver_id: ParticipantId,
    values_0: Sequence[int],
    values_1: Sequence[int],
) -> bytes:
    return hash_bytes(
        params.hash_name,
        params.label,
        round_name,
        encode_participant_id(sender_id),
        encode_participant_id(receiver_id),
        encode_scalars(values_0),
        encode_scalars(values_1),
    )


class Phase2(MultiplicationProtocol):
    """乘法阶段 / Per-signer Phase 2 state across every peer."""

    ROUND_U = "multiplication U"
    ROUND_TAU = "multiplication tau"

    def __init__(
        self,
        id: ParticipantId,
        batch_size: int,
        masked_signing_key_shares: Sequence[int],
        masked_rs: Sequence[int],
        correlations: Dict[ParticipantId, PairwiseCorrelation],
    ) -> None:
        self.id = id
        self.batch_size = batch_size
        self.masked_signing_key_shares = list(masked_signing_key_shares)
        self.masked_rs = list(masked_rs)
        self.correlations = correlations
        self.z_A: Dict[ParticipantId, Tuple[Tuple[int, ...], Tuple[int, ...]]] = {}
        self.z_B: Dict[ParticipantId, Tuple[Tuple[int, ...], Tuple[int, ...]]] = {}
        self.sent_u: Dict[ParticipantId, Tuple[List[int], List[int]]] = {}

    @classmethod
    def init(
        cls,
        id: ParticipantId,
        masked_signing_key_shares: Sequence[int],
        masked_rs: Sequence[int],
        correlations: Dict[ParticipantId, PairwiseCorrelation],
        others: Iterable[ParticipantId],
        params: MultiplicationParams,
    ) -> Tuple["Phase2", Dict[ParticipantId, UPayload]]:
        """Start Phase 2 and return the ``U`` payload for every peer this signer initiates with."""
        others = set(others)
        if not others or id in others:
            raise InvalidParticipantSet("Peer set must be non-empty and exclude the signer itself")
        batch_size = len(masked_signing_key_shares)
        if batch_size == 0 or len(masked_rs) != batch_size:
            raise ValueError("Masked key shares and masked r values must have the same non-zero length")
        if set(correlations) != others:
            raise InvalidParticipantSet("Correlations must cover exactly the peer set")
        for correlation in correlations.values():
            if len(correlation.mask_0) != batch_size or len(correlation.mask_1) != batch_size:
                raise ValueError(f"Correlation with participant {correlation.peer_id} has the wrong batch size")

        phase = cls(id, batch_size, masked_signing_key_shares, masked_rs, correlations)
        payloads: Dict[ParticipantId, UPayload] = {}
        for other in sorted(others):
            correlation = correlations[other]
            if not correlation.is_initiator:
                continue
            # 发起方输入: 乘积0用 masked_r，乘积1用 masked_sk
            values_0 = [(y - b) % CURVE_ORDER for y, b in zip(phase.masked_rs, correlation.mask_0)]
            values_1 = [(y - b) % CURVE_ORDER for y, b in zip(phase.masked_signing_key_shares, correlation.mask_1)]
            phase.sent_u[other] = (values_0, values_1)
            payloads[other] = UPayload(
                tuple(values_0),
                tuple(values_1),
                payload_digest(params, b"U", id, other, values_0, values_1),
            )
        return phase, payloads

    def _check_payload(
        self,
        sender_id: ParticipantId,
        round_name: str,
        tag: bytes,
        payload,
        params: MultiplicationParams,
    ) -> None:
        if len(payload.values_0) != self.batch_size or len(payload.values_1) != self.batch_size:
            raise InvalidMultiplicationPayload(sender_id, round_name, "wrong number of values")
        if any(not 0 <= v < CURVE_ORDER for v in (*payload.values_0, *payload.values_1)):
            raise InvalidMultiplicationPayload(sender_id, round_name, "values are not reduced")
        expected = payload_digest(params, tag, sender_id, self.id, payload.values_0, payload.values_1)
        if payload.digest != expected:
            raise InvalidMultiplicationPayload(sender_id, round_name, "digest mismatch")

    def receive_u(self, sender_id: ParticipantId, payload: UPayload, params: MultiplicationParams) -> TauPayload:
        """响应方处理 U / Responder side: derive ``z_A`` and answer with ``tau``."""
        correlation = self.correlations.get(sender_id)
        if correlation is None:
            raise UnknownParticipant(sender_id, self.ROUND_U)
        if correlation.is_initiator:
            raise ProtocolOrderViolation(sender_id, self.ROUND_U, "this signer initiates with that peer")
        if sender_id in self.z_A:
            raise DuplicateParticipant(sender_id, self.ROUND_U)
        self._check_payload(sender_id, self.ROUND_U, b"U", payload, params)

        # 响应方输入: 乘积0用 masked_sk，乘积1用 masked_r
        inputs = (self.masked_signing_key_shares, self.masked_rs)
        masks = (correlation.mask_0, correlation.mask_1)
        cs = (correlation.c_0, correlation.c_1)
        received = (payload.values_0, payload.values_1)
        differences: List[List[int]] = []
        shares: List[Tuple[int, ...]] = []
        for t in (0, 1):
            d = [(x - a) % CURVE_ORDER for x, a in zip(inputs[t], masks[t])]
            z = tuple(
                (c + a * e_ + d_ * e_) % CURVE_ORDER
                for c, a, d_, e_ in zip(cs[t], masks[t], d, received[t])
            )
            differences.append(d)
            shares.append(z)
        self.z_A[sender_id] = (shares[0], shares[1])
        return TauPayload(
            tuple(differences[0]),
            tuple(differences[1]),
            payload_digest(params, b"tau", self.id, sender_id, differences[0], differences[1]),
        )

    def receive_tau(self, sender_id: ParticipantId, payload: TauPayload, params: MultiplicationParams) -> None:
        """发起方处理 tau / Initiator side: derive ``z_B``."""
        correlation = self.correlations.get(sender_id)
        if correlation is None:
            raise UnknownParticipant(sender_id, self.ROUND_TAU)
        if sender_id not in self.sent_u:
            raise ProtocolOrderViolation(sender_id, self.ROUND_TAU, "no U payload was sent to that peer")
        if sender_id in self.z_B:
            raise DuplicateParticipant(sender_id, self.ROUND_TAU)
        self._check_payload(sender_id, self.ROUND_TAU, b"tau", payload, params)

        masks = (correlation.mask_0, correlation.mask_1)
        cs = (correlation.c_0, correlation.c_1)
        received = (payload.values_0, payload.values_1)
        self.z_B[sender_id] = tuple(
            tuple((c + d_ * b) % CURVE_ORDER for c, d_, b in zip(cs[t], received[t], masks[t]))
            for t in (0, 1)
        )

    def pending_u(self) -> Set[ParticipantId]:
        return {p for p, c in self.correlations.items() if not c.is_initiator and p not in self.z_A}

    def pending_tau(self) -> Set[ParticipantId]:
        return {p for p, c in self.correlations.items() if c.is_initiator and p not in self.z_B}

    def finish(self) -> Phase2Output:
        missing = self.pending_u() | self.pending_tau()
        if missing:
            raise IncompleteRound("multiplication", missing)
        return Phase2Output(id=self.id, batch_size=self.batch_size, z_A=dict(self.z_A), z_B=dict(self.z_B))
