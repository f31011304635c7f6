import pytest
from py_ecc.optimized_bls12_381 import G1, Z1, eq, multiply

from constants import CURVE_ORDER, G1_SIZE, SCALAR_SIZE
from data_models import Commitments
from errors import SerializationError
from serialization import (
    ByteReader,
    decode_round_one,
    decode_shares_and_salts,
    encode_round_one,
    encode_shares_and_salts,
    g1_from_bytes,
    g1_to_bytes,
    hash_bytes,
    hash_to_scalar,
    scalar_from_bytes,
    scalar_to_bytes,
    validate_hash_name,
)


def test_scalars_are_fixed_width_and_reduced():
    assert len(scalar_to_bytes(5)) == SCALAR_SIZE
    with pytest.raises(SerializationError):
        scalar_to_bytes(CURVE_ORDER)
    with pytest.raises(SerializationError):
        scalar_from_bytes(CURVE_ORDER.to_bytes(SCALAR_SIZE, "big"))
    with pytest.raises(SerializationError):
        scalar_from_bytes(b"\x01" * 31)


def test_g1_points_use_compressed_encoding():
    point = multiply(G1, 987654321)
    data = g1_to_bytes(point)
    assert len(data) == G1_SIZE
    assert eq(g1_from_bytes(data), point)
    assert eq(g1_from_bytes(g1_to_bytes(Z1)), Z1)
    with pytest.raises(SerializationError):
        g1_from_bytes(data[:-1])


def test_length_prefix_separates_parts():
    assert hash_bytes("sha256", b"ab", b"c") != hash_bytes("sha256", b"a", b"bc")


@pytest.mark.parametrize("hash_name", ["blake2b", "sha256", "sha3_256"])
def test_hash_to_scalar_is_deterministic(hash_name):
    value = hash_to_scalar(hash_name, b"label", b"data")
    assert value == hash_to_scalar(hash_name, b"label", b"data")
    assert 0 <= value < CURVE_ORDER
    assert value != hash_to_scalar(hash_name, b"label", b"other")


def test_variable_length_digests_are_refused():
    with pytest.raises(ValueError):
        validate_hash_name("shake_256")
    with pytest.raises(ValueError):
        validate_hash_name("no-such-digest")


def test_round_one_message_decodes_to_the_same_commitments():
    commitments = Commitments((b"\x01" * 64, b"\x02" * 64))
    zero_commitments = {2: Commitments((b"\x03" * 64,)), 7: Commitments((b"\x04" * 64,))}
    decoded, decoded_zero = decode_round_one(encode_round_one(commitments, zero_commitments))
    assert decoded == commitments
    assert decoded_zero == zero_commitments


def test_trailing_bytes_are_rejected():
    data = encode_shares_and_salts([(3, b"salt")])
    assert decode_shares_and_salts(data) == [(3, b"salt")]
    with pytest.raises(SerializationError):
        decode_shares_and_salts(data + b"\x00")
    with pytest.raises(SerializationError):
        ByteReader(b"\x00\x00").read_u32()
