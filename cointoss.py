"""Commit-then-reveal coin tossing.

Every party commits to ``count`` random scalars, each with its own salt. Once
all commitments are in, the scalars are revealed and checked against them.
The joint randomness for slot ``k`` is the sum of every party's scalar for
slot ``k``, which is uniform as long as one party is honest.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Set, Tuple

from constants import CURVE_ORDER, DEFAULT_HASH, SALT_SIZE
from data_models import Commitments, ParticipantId, SharesAndSalts
from errors import (
    CommitmentMismatch,
    DuplicateParticipant,
    IncompleteRound,
    InvalidParticipantSet,
    ProtocolOrderViolation,
    UnknownParticipant,
)
from secure_rng import SecureRandom
from serialization import (
    encode_participant_id,
    hash_bytes,
    scalar_to_bytes,
    validate_hash_name,
)


def hash_commitment(
    protocol_id: bytes,
    participant_id: ParticipantId,
    share: int,
    salt: bytes,
    hash_name: str = DEFAULT_HASH,
) -> bytes:
    """承诺 = H(协议ID, 参与者ID, 份额, 盐值) / Binding commitment to a single share."""
    return hash_bytes(
        hash_name,
        protocol_id,
        encode_participant_id(participant_id),
        scalar_to_bytes(share),
        salt,
    )


class Party:
    """One participant's view of a coin-tossing run."""

    ROUND_COMMITMENT = "coin-toss commitment"
    ROUND_SHARES = "coin-toss shares"

    def __init__(
        self,
        id: ParticipantId,
        protocol_id: bytes,
        own_shares_and_salts: SharesAndSalts,
        others: Optional[Iterable[ParticipantId]] = None,
        hash_name: str = DEFAULT_HASH,
    ) -> None:
        self.id = id
        self.protocol_id = protocol_id
        self.own_shares_and_salts = list(own_shares_and_salts)
        self.hash_name = validate_hash_name(hash_name)
        # None 表示不限定参与者集合，只要求揭示者先提交承诺
        self.others: Optional[Set[ParticipantId]] = None
        if others is not None:
            self.others = set(others)
            if self.id in self.others:
                raise InvalidParticipantSet(f"Participant {self.id} cannot be among its own peers")
        self.other_commitments: Dict[ParticipantId, Commitments] = {}
        self.other_shares: Dict[ParticipantId, List[int]] = {}

    @classmethod
    def commit(
        cls,
        rng: SecureRandom,
        id: ParticipantId,
        count: int,
        protocol_id: bytes,
        others: Optional[Iterable[ParticipantId]] = None,
        hash_name: str = DEFAULT_HASH,
        salt_size: int = SALT_SIZE,
    ) -> Tuple["Party", Commitments]:
        """生成随机份额并承诺 / Sample ``count`` shares and commit to each of them."""
        if count <= 0:
            raise ValueError("Count must be positive")
        shares_and_salts = [(rng.random_scalar(), rng.random_bytes(salt_size)) for _ in range(count)]
        party = cls(id, protocol_id, shares_and_salts, others, hash_name)
        commitments = Commitments(
            tuple(
                hash_commitment(protocol_id, id, share, salt, party.hash_name)
                for share, salt in shares_and_salts
            )
        )
        return party, commitments

    @property
    def count(self) -> int:
        return len(self.own_shares_and_salts)

    def _check_sender(self, sender_id: ParticipantId, round_name: str) -> None:
        if sender_id == self.id:
            raise UnknownParticipant(sender_id, round_name)
        if self.others is not None and sender_id not in self.others:
            raise UnknownParticipant(sender_id, round_name)

    def receive_commitment(self, sender_id: ParticipantId, commitments: Commitments) -> None:
        self._check_sender(sender_id, self.ROUND_COMMITMENT)
        if sender_id in self.other_commitments:
            raise DuplicateParticipant(sender_id, self.ROUND_COMMITMENT)
        if len(commitments) != self.count:
            raise CommitmentMismatch(
                sender_id,
                self.ROUND_COMMITMENT,
                f"expected {self.count} commitments, got {len(commitments)}",
            )
        self.other_commitments[sender_id] = commitments

    def receive_shares(self, sender_id: ParticipantId, shares_and_salts: SharesAndSalts) -> None:
        """验证揭示的份额 / Check revealed shares against the stored commitments."""
        self._check_sender(sender_id, self.ROUND_SHARES)
        if sender_id not in self.other_commitments:
            raise ProtocolOrderViolation(sender_id, self.ROUND_SHARES, "no commitment was received")
        if sender_id in self.other_shares:
            raise DuplicateParticipant(sender_id, self.ROUND_SHARES)
        commitments = self.other_commitments[sender_id]
        if len(shares_and_salts) != len(commitments):
            raise CommitmentMismatch(
                sender_id,
                self.ROUND_SHARES,
                f"expected {len(commitments)} shares, got {len(shares_and_salts)}",
            )
        for slot, ((share, salt), expected) in enumerate(zip(shares_and_salts, commitments.values)):
            if not 0 <= share < CURVE_ORDER:
                raise CommitmentMismatch(sender_id, self.ROUND_SHARES, f"share {slot} is not reduced")
            if hash_commitment(self.protocol_id, sender_id, share, salt, self.hash_name) != expected:
                raise CommitmentMismatch(sender_id, self.ROUND_SHARES, f"slot {slot}")
        self.other_shares[sender_id] = [share for share, _ in shares_and_salts]

    def get_comm_shares_and_salts(self) -> SharesAndSalts:
        return list(self.own_shares_and_salts)

    def expected_participants(self) -> Set[ParticipantId]:
        if self.others is not None:
            return set(self.others)
        return set(self.other_commitments)

    def pending_commitments(self) -> Set[ParticipantId]:
        """尚未提交承诺的参与者 / Peers whose commitment is still outstanding."""
        return self.expected_participants() - set(self.other_commitments)

    def pending_shares(self) -> Set[ParticipantId]:
        return self.expected_participants() - set(self.other_shares)

    def has_shares_from_all_who_committed(self) -> bool:
        return set(self.other_commitments) <= set(self.other_shares)

    def compute_joint_randomness(self) -> List[int]:
        """计算联合随机数 / Sum every participant's share, slot by slot."""
        missing = self.pending_commitments() | self.pending_shares()
        if missing:
            raise IncompleteRound(self.ROUND_SHARES, missing)
        if not self.other_shares:
            raise IncompleteRound(self.ROUND_SHARES)
        joint = [share for share, _ in self.own_shares_and_salts]
        for participant_id in sorted(self.other_shares):
            for slot, share in enumerate(self.other_shares[participant_id]):
                joint[slot] = (joint[slot] + share) % CURVE_ORDER
        return joint

    def finish(self) -> List[int]:
        return self.compute_joint_randomness()
