"""BBS+ signature parameters, keys and verification over BLS12-381.

A signature on messages ``m_1..m_L`` is ``(A, e, s)`` with
``A = b * 1/(e + sk)`` and ``b = g1 + h_0 * s + sum(h_i * m_i)``. It verifies
when ``e(A, w + g2 * e) == e(b, g2)`` for the public key ``w = g2 * sk``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

from py_ecc.optimized_bls12_381 import (
    FQ12,
    G1,
    G2,
    Z1,
    add,
    eq,
    final_exponentiate,
    is_inf,
    multiply,
    neg,
    pairing,
)

from constants import CURVE_ORDER
from errors import InvalidMessageIndex
from secure_rng import SecureRandom
from serialization import ByteReader, g1_to_bytes, hash_to_scalar, scalar_to_bytes


@dataclass(frozen=True)
class SignatureParamsG1:
    """签名公共参数 / Public generators sized to the supported message count."""

    g1: tuple
    g2: tuple
    h_0: tuple
    h: Tuple[tuple, ...]

    @classmethod
    def generate_using_rng(cls, rng: SecureRandom, message_count: int) -> "SignatureParamsG1":
        if message_count <= 0:
            raise ValueError("Message count must be positive")
        g1 = multiply(G1, rng.random_nonzero_scalar())
        g2 = multiply(G2, rng.random_nonzero_scalar())
        h_0 = multiply(G1, rng.random_nonzero_scalar())
        h = tuple(multiply(G1, rng.random_nonzero_scalar()) for _ in range(message_count))
        return cls(g1, g2, h_0, h)

    @classmethod
    def new(cls, label: bytes, message_count: int, hash_name: str = "sha256") -> "SignatureParamsG1":
        """由标签确定性地派生参数 / Derive parameters deterministically from a label."""
        if message_count <= 0:
            raise ValueError("Message count must be positive")

        def generator(base, name: bytes):
            scalar = hash_to_scalar(hash_name, label, name) or 1
            return multiply(base, scalar)

        return cls(
            generator(G1, b"g1"),
            generator(G2, b"g2"),
            generator(G1, b"h_0"),
            tuple(generator(G1, b"h_" + str(i + 1).encode()) for i in range(message_count)),
        )

    def supported_message_count(self) -> int:
        return len(self.h)

    def commit_to_messages(self, messages: Dict[int, int]):
        """Pedersen 承诺 sum(h_i * m_i) / Commitment to messages given by 0-based index."""
        commitment = Z1
        for index, message in messages.items():
            if not 0 <= index < len(self.h):
                raise InvalidMessageIndex(index, len(self.h))
            commitment = add(commitment, multiply(self.h[index], message % CURVE_ORDER))
        return commitment

    def b(self, messages: Dict[int, int], s: int):
        """b = g1 + h_0 * s + sum(h_i * m_i)."""
        return add(add(self.g1, multiply(self.h_0, s % CURVE_ORDER)), self.commit_to_messages(messages))


@dataclass(frozen=True)
class SecretKey:
    value: int

    @classmethod
    def generate_using_rng(cls, rng: SecureRandom) -> "SecretKey":
        return cls(rng.random_nonzero_scalar())


@dataclass(frozen=True)
class PublicKeyG2:
    w: tuple

    @classmethod
    def generate_using_secret_key(cls, secret_key: SecretKey, params: SignatureParamsG1) -> "PublicKeyG2":
        return cls(multiply(params.g2, secret_key.value % CURVE_ORDER))


@dataclass(frozen=True)
class Signature:
    """BBS+ 签名 (A, e, s) / Final signature, verifiable without any protocol state."""

    A: tuple
    e: int
    s: int

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Signature):
            return NotImplemented
        return eq(self.A, other.A) and self.e == other.e and self.s == other.s

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def verify(self, messages: Sequence[int], public_key: PublicKeyG2, params: SignatureParamsG1) -> bool:
        """验证签名 / Check ``e(A, w + g2 * e) == e(b, g2)`` with a single final exponentiation."""
        if not messages or len(messages) != params.supported_message_count():
            return False
        if is_inf(self.A):
            return False
        b = params.b(dict(enumerate(messages)), self.s)
        w_plus_g2_e = add(public_key.w, multiply(params.g2, self.e % CURVE_ORDER))
        product = pairing(w_plus_g2_e, self.A, final_exponentiate=False) * pairing(
            neg(params.g2), b, final_exponentiate=False
        )
        return final_exponentiate(product) == FQ12.one()

    def to_bytes(self) -> bytes:
        return g1_to_bytes(self.A) + scalar_to_bytes(self.e) + scalar_to_bytes(self.s)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Signature":
        reader = ByteReader(data)
        A = reader.read_g1()
        e = reader.read_scalar()
        s = reader.read_scalar()
        reader.finish()
        return cls(A, e, s)
