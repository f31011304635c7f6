"""Additive sharing of zero across the signer set.

Every pair of participants runs its own coin toss. The pair's joint value for
slot ``k`` is expanded through the run's digest and added by the lower id and
subtracted by the higher id, so the offsets of all participants cancel.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Set, Tuple

import numpy as np

from constants import CURVE_ORDER, DEFAULT_HASH, SALT_SIZE
from cointoss import Party as CoinTossParty
from data_models import Commitments, ParticipantId, SharesAndSalts, ZeroShareCommitments
from errors import IncompleteRound, InvalidParticipantSet, UnknownParticipant
from secure_rng import SecureRandom
from serialization import encode_participant_id, encode_u32, hash_to_scalar, scalar_to_bytes


class Party:
    """零共享参与方 / One participant's state across all pairwise exchanges."""

    ROUND_NAME = "zero-sharing"

    def __init__(
        self,
        id: ParticipantId,
        protocol_id: bytes,
        count: int,
        cointoss_protocols: Dict[ParticipantId, CoinTossParty],
        hash_name: str = DEFAULT_HASH,
    ) -> None:
        self.id = id
        self.protocol_id = protocol_id
        self.count = count
        self.cointoss_protocols = cointoss_protocols
        self.hash_name = hash_name

    @classmethod
    def init(
        cls,
        rng: SecureRandom,
        id: ParticipantId,
        count: int,
        others: Iterable[ParticipantId],
        protocol_id: bytes,
        hash_name: str = DEFAULT_HASH,
        salt_size: int = SALT_SIZE,
    ) -> Tuple["Party", ZeroShareCommitments]:
        """为每个对方参与者启动一次抛币 / Start one pairwise coin toss per peer."""
        others = sorted(set(others))
        if not others:
            raise InvalidParticipantSet("Zero-sharing needs at least one other participant")
        if id in others:
            raise InvalidParticipantSet(f"Participant {id} cannot be among its own peers")
        protocols: Dict[ParticipantId, CoinTossParty] = {}
        commitments: ZeroShareCommitments = {}
        for other in others:
            protocol, commitment = CoinTossParty.commit(
                rng, id, count, protocol_id, others=[other], hash_name=hash_name, salt_size=salt_size
            )
            protocols[other] = protocol
            commitments[other] = commitment
        return cls(id, protocol_id, count, protocols, hash_name), commitments

    @property
    def others(self) -> List[ParticipantId]:
        return sorted(self.cointoss_protocols)

    def _protocol_with(self, other: ParticipantId, round_name: str) -> CoinTossParty:
        try:
            return self.cointoss_protocols[other]
        except KeyError:
            raise UnknownParticipant(other, round_name) from None

    def receive_commitment(self, sender_id: ParticipantId, commitments: Commitments) -> None:
        self._protocol_with(sender_id, CoinTossParty.ROUND_COMMITMENT).receive_commitment(sender_id, commitments)

    def receive_shares(self, sender_id: ParticipantId, shares_and_salts: SharesAndSalts) -> None:
        self._protocol_with(sender_id, CoinTossParty.ROUND_SHARES).receive_shares(sender_id, shares_and_salts)

    def get_shares_and_salts_for(self, other: ParticipantId) -> SharesAndSalts:
        """仅发送给指定对方的揭示值 / Reveal destined for one specific peer."""
        return self._protocol_with(other, self.ROUND_NAME).get_comm_shares_and_salts()

    def has_commitment_from(self, other: ParticipantId) -> bool:
        protocol = self.cointoss_protocols.get(other)
        return protocol is not None and other in protocol.other_commitments

    def pending_commitments(self) -> Set[ParticipantId]:
        return {other for other, protocol in self.cointoss_protocols.items() if protocol.pending_commitments()}

    def pending_shares(self) -> Set[ParticipantId]:
        return {other for other, protocol in self.cointoss_protocols.items() if protocol.pending_shares()}

    def _expand_pair_value(self, other: ParticipantId, slot: int, joint: int) -> int:
        low, high = sorted((self.id, other))
        return hash_to_scalar(
            self.hash_name,
            self.protocol_id,
            encode_participant_id(low),
            encode_participant_id(high),
            encode_u32(slot),
            scalar_to_bytes(joint),
        )

    def compute_zero_shares(self) -> List[int]:
        """计算本方零共享 / Sum the signed pairwise values, one offset per slot."""
        missing = self.pending_commitments() | self.pending_shares()
        if missing:
            raise IncompleteRound(self.ROUND_NAME, missing)
        total = np.zeros(self.count, dtype=object)
        for other in self.others:
            joint = self.cointoss_protocols[other].compute_joint_randomness()
            values = np.array(
                [self._expand_pair_value(other, slot, value) for slot, value in enumerate(joint)],
                dtype=object,
            )
            # 低ID一方加，高ID一方减，保证全体之和为零
            if self.id < other:
                total = (total + values) % CURVE_ORDER
            else:
                total = (total - values) % CURVE_ORDER
        return [int(value) for value in total]

    def finish(self) -> List[int]:
        return self.compute_zero_shares()
