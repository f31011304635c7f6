"""Dataclasses shared across the threshold BBS+ implementation.

轮次之间传递的消息与各阶段的输出 / Round payloads and phase outputs exchanged between signers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

ParticipantId = int

# 揭示阶段的 (随机份额, 盐值) 列表
SharesAndSalts = List[Tuple[int, bytes]]


@dataclass(frozen=True)
class Commitments:
    """承诺列表 / One hash commitment per slot, in slot order."""

    values: Tuple[bytes, ...]

    def __len__(self) -> int:
        return len(self.values)


# 零共享协议中按对方参与者区分的承诺
ZeroShareCommitments = Dict[ParticipantId, Commitments]


@dataclass(frozen=True)
class Phase1Output:
    """Phase 1 输出 / Randomness generation result, one entry per signature in the batch."""

    id: ParticipantId
    batch_size: int
    r: Tuple[int, ...]
    e: Tuple[int, ...]
    s: Tuple[int, ...]
    masked_signing_key_shares: Tuple[int, ...]  # 签名密钥份额 + alpha 零共享
    masked_rs: Tuple[int, ...]  # r + beta 零共享
    others: Tuple[ParticipantId, ...]


# 每个对方参与者对应两组交叉乘积份额: (sk_i * r_j 份额, r_i * sk_j 份额)
CrossProductShares = Tuple[Tuple[int, ...], Tuple[int, ...]]


@dataclass(frozen=True)
class Phase2Output:
    """Phase 2 输出 / Additive shares of the cross products, keyed by peer."""

    id: ParticipantId
    batch_size: int
    z_A: Dict[ParticipantId, CrossProductShares]
    z_B: Dict[ParticipantId, CrossProductShares]


@dataclass(frozen=True)
class UPayload:
    """乘法第一轮消息 / First multiplication message, initiator to responder."""

    values_0: Tuple[int, ...]
    values_1: Tuple[int, ...]
    digest: bytes


@dataclass(frozen=True)
class TauPayload:
    """乘法第二轮消息 / Second multiplication message, responder to initiator."""

    values_0: Tuple[int, ...]
    values_1: Tuple[int, ...]
    digest: bytes


@dataclass
class SignedBroadcast:
    """签名广播消息 / Broadcast envelope signed with the sender's Ed25519 key."""

    sender_id: int
    kind: str
    payload: bytes
    signature: bytes


@dataclass
class EncryptedPayloadPackage:
    """加密的点对点消息 / Encrypted package exchanged between two participants."""

    sender_id: int
    receiver_id: int
    kind: str
    encrypted_data: bytes
    nonce: bytes
    kem_public: bytes
    key_signature: bytes
    signature: bytes


@dataclass
class PerformanceStats:
    """性能统计数据类 / Collects timing and operation counts for each protocol phase."""

    phase_name: str
    duration: float
    operations: Dict[str, int] = field(default_factory=dict)


@dataclass
class SigningRunResult:
    """分布式签名运行结果 / Outcome of one simulated signing run, as seen by the client."""

    signer_ids: List[int]
    message_batch: List[List[int]]
    signatures: list
    verified: List[bool]
    public_key: object
    sig_params: object
    performance_stats: List[PerformanceStats] = field(default_factory=list)
