"""Phase 1 of threshold BBS+ signing: randomness generation.

Each signer samples its private ``r`` values, runs one coin toss for the
jointly agreed ``e`` and ``s`` of every signature in the batch and one
zero-sharing run whose offsets mask its key share and its ``r`` values.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Set, Tuple

from constants import CURVE_ORDER, DEFAULT_HASH, SALT_SIZE
from cointoss import Party as CoinTossParty
from data_models import (
    Commitments,
    ParticipantId,
    Phase1Output,
    SharesAndSalts,
    ZeroShareCommitments,
)
from errors import (
    CommitmentMismatch,
    DuplicateParticipant,
    IncompleteRound,
    InvalidParticipantSet,
    ProtocolOrderViolation,
    UnknownParticipant,
)
from secure_rng import SecureRandom
from serialization import validate_hash_name
from signing_utils import compute_masked_arguments_to_multiply
from zero_sharing import Party as ZeroSharingParty


class Phase1State(Enum):
    INIT = "init"
    COMMITMENTS_SENT = "commitments-sent"
    SHARES_EXCHANGED = "shares-exchanged"
    FINISHED = "finished"


class Phase1:
    """随机数生成阶段 / Per-signer state machine for one signature batch."""

    ROUND_COMMITMENT = "phase 1 commitment"
    ROUND_SHARES = "phase 1 shares"

    def __init__(
        self,
        id: ParticipantId,
        batch_size: int,
        r: List[int],
        commitment_protocol: CoinTossParty,
        zero_sharing_protocol: ZeroSharingParty,
    ) -> None:
        self.id = id
        self.batch_size = batch_size
        self.r = r
        self.commitment_protocol = commitment_protocol
        self.zero_sharing_protocol = zero_sharing_protocol
        self.state = Phase1State.INIT

    @classmethod
    def init_for_bbs_plus(
        cls,
        rng: SecureRandom,
        batch_size: int,
        id: ParticipantId,
        others: Iterable[ParticipantId],
        protocol_id: bytes,
        hash_name: str = DEFAULT_HASH,
        salt_size: int = SALT_SIZE,
    ) -> Tuple["Phase1", Commitments, ZeroShareCommitments]:
        """Start Phase 1 and return the commitments to broadcast.

        Parameters:
        rng (SecureRandom): Source of this signer's randomness.
        batch_size (int): Number of signatures produced in this run.
        id (ParticipantId): This signer's id.
        others (Iterable[ParticipantId]): Ids of every other signer.
        protocol_id (bytes): Label binding commitments to this run.
        hash_name (str): Digest used for commitments, fixed for the run.

        Returns:
        Tuple of the Phase 1 state, the coin-toss commitments (same for every
        peer) and the zero-sharing commitments keyed by the peer they are for.

        Raises:
        InvalidParticipantSet: If ``others`` is empty or contains ``id``.
        ValueError: If ``batch_size`` is not positive.
        """
        if batch_size <= 0:
            raise ValueError("Batch size must be positive")
        others = set(others)
        if not others:
            raise InvalidParticipantSet("At least one other signer is required")
        if id in others:
            raise InvalidParticipantSet(f"Participant {id} cannot be among its own peers")
        validate_hash_name(hash_name)

        r = rng.random_scalars(batch_size)
        # e 与 s 各需 batch_size 个联合随机数
        commitment_protocol, commitments = CoinTossParty.commit(
            rng, id, 2 * batch_size, protocol_id, others=others, hash_name=hash_name, salt_size=salt_size
        )
        # 每个签名各有一份 alpha 和 beta 的零共享
        zero_sharing_protocol, zero_share_commitments = ZeroSharingParty.init(
            rng, id, 2 * batch_size, others, protocol_id, hash_name=hash_name, salt_size=salt_size
        )
        phase = cls(id, batch_size, r, commitment_protocol, zero_sharing_protocol)
        phase.state = Phase1State.COMMITMENTS_SENT
        return phase, commitments, zero_share_commitments

    @property
    def others(self) -> Set[ParticipantId]:
        return set(self.zero_sharing_protocol.others)

    def _check_not_finished(self, sender_id: ParticipantId, round_name: str) -> None:
        if self.state is Phase1State.FINISHED:
            raise ProtocolOrderViolation(sender_id, round_name, "phase 1 already finished")

    def receive_commitment(
        self,
        sender_id: ParticipantId,
        commitments: Commitments,
        zero_share_commitments: Commitments,
    ) -> None:
        """Record a peer's coin-toss commitments and its zero-sharing commitments for us."""
        self._check_not_finished(sender_id, self.ROUND_COMMITMENT)
        if sender_id not in self.others:
            raise UnknownParticipant(sender_id, self.ROUND_COMMITMENT)
        if sender_id in self.commitment_protocol.other_commitments or self.zero_sharing_protocol.has_commitment_from(
            sender_id
        ):
            raise DuplicateParticipant(sender_id, self.ROUND_COMMITMENT)
        self.commitment_protocol.receive_commitment(sender_id, commitments)
        self.zero_sharing_protocol.receive_commitment(sender_id, zero_share_commitments)

    def receive_round_one(
        self,
        sender_id: ParticipantId,
        commitments: Commitments,
        zero_share_commitments: ZeroShareCommitments,
    ) -> None:
        """Record a peer's round-one broadcast, picking out the zero-sharing commitments addressed to us."""
        for_us = zero_share_commitments.get(self.id)
        if for_us is None:
            raise CommitmentMismatch(sender_id, self.ROUND_COMMITMENT, "no zero-sharing commitments for this signer")
        self.receive_commitment(sender_id, commitments, for_us)

    def receive_shares(
        self,
        sender_id: ParticipantId,
        shares: SharesAndSalts,
        zero_shares: SharesAndSalts,
    ) -> None:
        """Check a peer's reveals against its commitments."""
        self._check_not_finished(sender_id, self.ROUND_SHARES)
        if sender_id not in self.others:
            raise UnknownParticipant(sender_id, self.ROUND_SHARES)
        if sender_id not in self.commitment_protocol.other_commitments or not self.zero_sharing_protocol.has_commitment_from(
            sender_id
        ):
            raise ProtocolOrderViolation(sender_id, self.ROUND_SHARES, "no commitment was received")
        self.commitment_protocol.receive_shares(sender_id, shares)
        self.zero_sharing_protocol.receive_shares(sender_id, zero_shares)
        if not self.pending_shares():
            self.state = Phase1State.SHARES_EXCHANGED

    def get_comm_shares_and_salts(self) -> SharesAndSalts:
        """抛币揭示值，广播给所有人 / Coin-toss reveal, identical for every peer."""
        return self.commitment_protocol.get_comm_shares_and_salts()

    def get_comm_shares_and_salts_for_zero_sharing_protocol_with_other(
        self, other: ParticipantId
    ) -> SharesAndSalts:
        """零共享揭示值，仅发给指定参与者 / Zero-sharing reveal for one specific peer."""
        return self.zero_sharing_protocol.get_shares_and_salts_for(other)

    def pending_commitments(self) -> Set[ParticipantId]:
        return self.commitment_protocol.pending_commitments() | self.zero_sharing_protocol.pending_commitments()

    def pending_shares(self) -> Set[ParticipantId]:
        return self.commitment_protocol.pending_shares() | self.zero_sharing_protocol.pending_shares()

    def compute_joint_randomness_and_masked_arguments_to_multiply(
        self, signing_key_share: int
    ) -> Tuple[List[ParticipantId], List[int], List[int], List[int]]:
        missing = self.pending_commitments() | self.pending_shares()
        if missing:
            raise IncompleteRound(self.ROUND_SHARES, missing)
        others = sorted(self.commitment_protocol.other_shares)
        randomness = self.commitment_protocol.compute_joint_randomness()
        zero_shares = self.zero_sharing_protocol.compute_zero_shares()
        masked_signing_key_shares, masked_rs = compute_masked_arguments_to_multiply(
            signing_key_share % CURVE_ORDER, self.r, zero_shares
        )
        return others, randomness, masked_signing_key_shares, masked_rs

    def finish_for_bbs_plus(self, signing_key_share: int) -> Phase1Output:
        """结束 Phase 1 / Derive ``e``, ``s`` and the masked arguments for Phase 2.

        Raises:
        IncompleteRound: If any peer's commitment or reveal is missing.
        ProtocolOrderViolation: If Phase 1 was already finished.
        """
        self._check_not_finished(self.id, "phase 1 finish")
        others, randomness, masked_signing_key_shares, masked_rs = (
            self.compute_joint_randomness_and_masked_arguments_to_multiply(signing_key_share)
        )
        if len(randomness) != 2 * self.batch_size:
            raise ValueError("Joint randomness does not cover the batch")
        self.state = Phase1State.FINISHED
        return Phase1Output(
            id=self.id,
            batch_size=self.batch_size,
            r=tuple(self.r),
            e=tuple(randomness[: self.batch_size]),
            s=tuple(randomness[self.batch_size:]),
            masked_signing_key_shares=tuple(masked_signing_key_shares),
            masked_rs=tuple(masked_rs),
            others=tuple(others),
        )
