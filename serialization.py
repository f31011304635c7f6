"""Canonical encoding of everything exchanged between signers.

All integers are fixed-width big-endian, sequences and byte strings carry a
4-byte length prefix and G1 points use the 48-byte compressed encoding. The
commitment hashes are computed over these bytes, so two implementations that
follow the layout produce identical commitments.
"""

from __future__ import annotations

import hashlib
from typing import Iterable, List, Sequence, Tuple

from py_ecc.bls.g2_primitives import G1_to_pubkey, pubkey_to_G1

from constants import CURVE_ORDER, G1_SIZE, LENGTH_PREFIX_SIZE, SCALAR_SIZE
from data_models import (
    Commitments,
    SharesAndSalts,
    TauPayload,
    UPayload,
    ZeroShareCommitments,
)
from errors import SerializationError

PARTICIPANT_ID_SIZE = 2


def validate_hash_name(hash_name: str) -> str:
    """确认摘要算法可用且输出定长 / Check the digest exists and has a fixed output size."""
    try:
        digest = hashlib.new(hash_name)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Unsupported hash algorithm {hash_name!r}") from exc
    if digest.digest_size == 0:
        raise ValueError(f"Hash algorithm {hash_name!r} has variable output length")
    return hash_name


def hash_bytes(hash_name: str, *parts: bytes) -> bytes:
    digest = hashlib.new(hash_name)
    for part in parts:
        digest.update(encode_bytes(part))
    return digest.digest()


def hash_to_scalar(hash_name: str, *parts: bytes) -> int:
    """哈希到标量域 / Hash length-prefixed parts into a scalar modulo the curve order."""
    output = hash_bytes(hash_name, b"\x00", *parts)
    # 短摘要扩展到至少 64 字节以避免取模偏差
    counter = 1
    while len(output) < 64:
        output += hash_bytes(hash_name, bytes([counter]), *parts)
        counter += 1
    return int.from_bytes(output, "big") % CURVE_ORDER


# —— 基本类型编码 ——


def encode_u32(value: int) -> bytes:
    if not 0 <= value < 2 ** (8 * LENGTH_PREFIX_SIZE):
        raise SerializationError(f"Length {value} does not fit the prefix")
    return value.to_bytes(LENGTH_PREFIX_SIZE, "big")


def encode_participant_id(participant_id: int) -> bytes:
    if not 0 <= participant_id < 2 ** (8 * PARTICIPANT_ID_SIZE):
        raise SerializationError(f"Participant id {participant_id} is out of range")
    return participant_id.to_bytes(PARTICIPANT_ID_SIZE, "big")


def encode_bytes(data: bytes) -> bytes:
    return encode_u32(len(data)) + data


def scalar_to_bytes(value: int) -> bytes:
    if not 0 <= value < CURVE_ORDER:
        raise SerializationError("Scalar is not reduced modulo the curve order")
    return value.to_bytes(SCALAR_SIZE, "big")


def scalar_from_bytes(data: bytes) -> int:
    if len(data) != SCALAR_SIZE:
        raise SerializationError(f"Scalar must be {SCALAR_SIZE} bytes, got {len(data)}")
    value = int.from_bytes(data, "big")
    if value >= CURVE_ORDER:
        raise SerializationError("Scalar is not reduced modulo the curve order")
    return value


def g1_to_bytes(point) -> bytes:
    return bytes(G1_to_pubkey(point))


def g1_from_bytes(data: bytes):
    if len(data) != G1_SIZE:
        raise SerializationError(f"G1 point must be {G1_SIZE} bytes, got {len(data)}")
    try:
        return pubkey_to_G1(data)
    except (ValueError, AssertionError) as exc:
        raise SerializationError("Invalid compressed G1 point") from exc


def encode_scalars(values: Iterable[int]) -> bytes:
    values = list(values)
    return encode_u32(len(values)) + b"".join(scalar_to_bytes(v) for v in values)


class ByteReader:
    """顺序读取规范编码 / Sequential reader over canonically encoded bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.offset = 0

    def take(self, length: int) -> bytes:
        end = self.offset + length
        if end > len(self.data):
            raise SerializationError("Unexpected end of data")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def read_u32(self) -> int:
        return int.from_bytes(self.take(LENGTH_PREFIX_SIZE), "big")

    def read_participant_id(self) -> int:
        return int.from_bytes(self.take(PARTICIPANT_ID_SIZE), "big")

    def read_bytes(self) -> bytes:
        return self.take(self.read_u32())

    def read_scalar(self) -> int:
        return scalar_from_bytes(self.take(SCALAR_SIZE))

    def read_scalars(self) -> List[int]:
        return [self.read_scalar() for _ in range(self.read_u32())]

    def read_g1(self):
        return g1_from_bytes(self.take(G1_SIZE))

    def finish(self) -> None:
        if self.offset != len(self.data):
            raise SerializationError(f"{len(self.data) - self.offset} trailing bytes")


# —— 协议消息编码 ——


def encode_commitments(commitments: Commitments) -> bytes:
    return encode_u32(len(commitments)) + b"".join(encode_bytes(c) for c in commitments.values)


def _read_commitments(reader: ByteReader) -> Commitments:
    return Commitments(tuple(reader.read_bytes() for _ in range(reader.read_u32())))


def decode_commitments(data: bytes) -> Commitments:
    reader = ByteReader(data)
    commitments = _read_commitments(reader)
    reader.finish()
    return commitments


def encode_zero_share_commitments(commitments: ZeroShareCommitments) -> bytes:
    parts = [encode_u32(len(commitments))]
    for participant_id in sorted(commitments):
        parts.append(encode_participant_id(participant_id))
        parts.append(encode_commitments(commitments[participant_id]))
    return b"".join(parts)


def decode_zero_share_commitments(data: bytes) -> ZeroShareCommitments:
    reader = ByteReader(data)
    result: ZeroShareCommitments = {}
    for _ in range(reader.read_u32()):
        participant_id = reader.read_participant_id()
        if participant_id in result:
            raise SerializationError(f"Participant {participant_id} appears twice")
        result[participant_id] = _read_commitments(reader)
    reader.finish()
    return result


def encode_shares_and_salts(shares_and_salts: SharesAndSalts) -> bytes:
    parts = [encode_u32(len(shares_and_salts))]
    for share, salt in shares_and_salts:
        parts.append(scalar_to_bytes(share))
        parts.append(encode_bytes(salt))
    return b"".join(parts)


def decode_shares_and_salts(data: bytes) -> SharesAndSalts:
    reader = ByteReader(data)
    result = [(reader.read_scalar(), reader.read_bytes()) for _ in range(reader.read_u32())]
    reader.finish()
    return result


def encode_round_one(commitments: Commitments, zero_share_commitments: ZeroShareCommitments) -> bytes:
    """第一轮广播 / Coin-toss commitments plus the per-peer zero-sharing commitments."""
    return encode_bytes(encode_commitments(commitments)) + encode_bytes(
        encode_zero_share_commitments(zero_share_commitments)
    )


def decode_round_one(data: bytes) -> Tuple[Commitments, ZeroShareCommitments]:
    reader = ByteReader(data)
    commitments = decode_commitments(reader.read_bytes())
    zero_share_commitments = decode_zero_share_commitments(reader.read_bytes())
    reader.finish()
    return commitments, zero_share_commitments


def _encode_multiplication_payload(values_0: Sequence[int], values_1: Sequence[int], digest: bytes) -> bytes:
    return encode_scalars(values_0) + encode_scalars(values_1) + encode_bytes(digest)


def _decode_multiplication_payload(data: bytes) -> Tuple[Tuple[int, ...], Tuple[int, ...], bytes]:
    reader = ByteReader(data)
    values_0 = tuple(reader.read_scalars())
    values_1 = tuple(reader.read_scalars())
    digest = reader.read_bytes()
    reader.finish()
    return values_0, values_1, digest


def encode_u_payload(payload: UPayload) -> bytes:
    return _encode_multiplication_payload(payload.values_0, payload.values_1, payload.digest)


def decode_u_payload(data: bytes) -> UPayload:
    return UPayload(*_decode_multiplication_payload(data))


def encode_tau_payload(payload: TauPayload) -> bytes:
    return _encode_multiplication_payload(payload.values_0, payload.values_1, payload.digest)


def decode_tau_payload(data: bytes) -> TauPayload:
    return TauPayload(*_decode_multiplication_payload(data))

