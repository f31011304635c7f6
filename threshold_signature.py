"""Signature share construction and aggregation for threshold BBS+.

Every signer turns its Phase 1 and Phase 2 outputs into one
:class:`BBSPlusSignatureShare` per signature of the batch. Summed over all
signers the shares give ``R = b * r`` and ``u = r * (e + sk)``, so the
aggregated ``A = R / u`` is a regular BBS+ signature without the key or
``r`` ever being assembled in one place.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Set

from py_ecc.optimized_bls12_381 import Z1, add, eq, multiply

from bbs_plus import Signature, SignatureParamsG1
from constants import CURVE_ORDER
from data_models import ParticipantId, Phase1Output, Phase2Output
from errors import (
    BatchIndexOutOfRange,
    DegenerateAggregate,
    DuplicateParticipant,
    IncompleteRound,
    InconsistentNonce,
    MessageCountIncompatibleWithSigParams,
    NoMessageToSign,
    UnknownParticipant,
)
from serialization import ByteReader, encode_participant_id, g1_to_bytes, scalar_to_bytes
from signing_utils import compute_R_and_u


@dataclass
class BBSPlusSignatureShare:
    """签名份额 / One signer's contribution to a single signature of the batch."""

    id: ParticipantId
    e: int
    s: int
    u: int
    R: tuple

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BBSPlusSignatureShare):
            return NotImplemented
        return (
            self.id == other.id
            and self.e == other.e
            and self.s == other.s
            and self.u == other.u
            and eq(self.R, other.R)
        )

    @classmethod
    def new(
        cls,
        messages: Sequence[int],
        index_in_output: int,
        phase1: Phase1Output,
        phase2: Phase2Output,
        sig_params: SignatureParamsG1,
    ) -> "BBSPlusSignatureShare":
        """为批次中第 index_in_output 个签名生成份额 / Create the share for one signature.

        Parameters:
        messages (Sequence[int]): All messages of this signature, as scalars.
        index_in_output (int): Position of the signature in the Phase 1 and Phase 2 outputs.
        phase1 (Phase1Output): This signer's Phase 1 output.
        phase2 (Phase2Output): This signer's Phase 2 output.
        sig_params (SignatureParamsG1): Public signature parameters.

        Raises:
        NoMessageToSign: If ``messages`` is empty.
        MessageCountIncompatibleWithSigParams: If the count differs from the parameters.
        BatchIndexOutOfRange: If ``index_in_output`` is outside the batch.
        """
        if not messages:
            raise NoMessageToSign()
        if len(messages) != sig_params.supported_message_count():
            raise MessageCountIncompatibleWithSigParams(len(messages), sig_params.supported_message_count())
        msg_map = {index: message for index, message in enumerate(messages)}
        return cls.new_with_committed_messages(Z1, msg_map, index_in_output, phase1, phase2, sig_params)

    @classmethod
    def new_with_committed_messages(
        cls,
        commitment,
        uncommitted_messages: Dict[int, int],
        index_in_output: int,
        phase1: Phase1Output,
        phase2: Phase2Output,
        sig_params: SignatureParamsG1,
    ) -> "BBSPlusSignatureShare":
        """Create a share when some messages are only known through ``commitment``.

        ``commitment`` is ``sum(h_i * m_i)`` over the hidden messages and
        ``uncommitted_messages`` maps 0-based indices to the visible ones.
        """
        if not 0 <= index_in_output < phase1.batch_size:
            raise BatchIndexOutOfRange(index_in_output, phase1.batch_size)
        if phase2.batch_size != phase1.batch_size:
            raise ValueError("Phase 1 and Phase 2 outputs belong to different batches")
        if phase2.id != phase1.id:
            raise ValueError("Phase 1 and Phase 2 outputs belong to different signers")
        b = sig_params.b(uncommitted_messages, phase1.s[index_in_output])
        commitment_plus_b = add(b, commitment)
        R, u = compute_R_and_u(
            commitment_plus_b,
            phase1.r[index_in_output],
            phase1.e[index_in_output],
            phase1.masked_rs[index_in_output],
            phase1.masked_signing_key_shares[index_in_output],
            index_in_output,
            phase2,
        )
        return cls(
            id=phase1.id,
            e=phase1.e[index_in_output],
            s=phase1.s[index_in_output],
            u=u,
            R=R,
        )

    @staticmethod
    def aggregate(
        sig_shares: Iterable["BBSPlusSignatureShare"],
        expected_participants: Optional[Iterable[ParticipantId]] = None,
    ) -> Signature:
        """聚合所有份额 / Combine every signer's share into the final signature.

        Raises:
        IncompleteRound: If there are no shares or an expected signer is missing.
        UnknownParticipant: If a share comes from outside ``expected_participants``.
        DuplicateParticipant: If a signer contributed twice.
        InconsistentNonce: If a share's ``e`` or ``s`` differs from the first share's.
        DegenerateAggregate: If the summed ``u`` is zero.
        """
        sig_shares = list(sig_shares)
        if not sig_shares:
            raise IncompleteRound("signature aggregation")
        expected: Optional[Set[ParticipantId]] = None
        if expected_participants is not None:
            expected = set(expected_participants)

        seen: Set[ParticipantId] = set()
        expected_e = sig_shares[0].e
        expected_s = sig_shares[0].s
        sum_R = Z1
        sum_u = 0
        for share in sig_shares:
            if expected is not None and share.id not in expected:
                raise UnknownParticipant(share.id, "signature aggregation")
            if share.id in seen:
                raise DuplicateParticipant(share.id, "signature aggregation")
            seen.add(share.id)
            if share.e != expected_e:
                raise InconsistentNonce(share.id, "e")
            if share.s != expected_s:
                raise InconsistentNonce(share.id, "s")
            sum_u = (sum_u + share.u) % CURVE_ORDER
            sum_R = add(sum_R, share.R)

        if expected is not None and expected - seen:
            raise IncompleteRound("signature aggregation", expected - seen)
        if sum_u == 0:
            raise DegenerateAggregate()
        A = multiply(sum_R, pow(sum_u, -1, CURVE_ORDER))
        return Signature(A=A, e=expected_e, s=expected_s)

    def to_bytes(self) -> bytes:
        return (
            encode_participant_id(self.id)
            + scalar_to_bytes(self.e)
            + scalar_to_bytes(self.s)
            + scalar_to_bytes(self.u)
            + g1_to_bytes(self.R)
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "BBSPlusSignatureShare":
        reader = ByteReader(data)
        share = cls(
            id=reader.read_participant_id(),
            e=reader.read_scalar(),
            s=reader.read_scalar(),
            u=reader.read_scalar(),
            R=reader.read_g1(),
        )
        reader.finish()
        return share
