import pytest
from py_ecc.optimized_bls12_381 import multiply

from bbs_plus import PublicKeyG2, SecretKey, Signature, SignatureParamsG1
from constants import CURVE_ORDER
from errors import InvalidMessageIndex


def sign_directly(secret_key, params, messages, e, s):
    b = params.b(dict(enumerate(messages)), s)
    return Signature(multiply(b, pow(e + secret_key.value, -1, CURVE_ORDER)), e, s)


def test_single_signer_signature_verifies(rng):
    params = SignatureParamsG1.generate_using_rng(rng, 4)
    secret_key = SecretKey.generate_using_rng(rng)
    public_key = PublicKeyG2.generate_using_secret_key(secret_key, params)
    messages = rng.random_scalars(4)

    signature = sign_directly(secret_key, params, messages, rng.random_scalar(), rng.random_scalar())
    assert signature.verify(messages, public_key, params)

    other_key = PublicKeyG2.generate_using_secret_key(SecretKey.generate_using_rng(rng), params)
    assert not signature.verify(messages, other_key, params)


def test_params_from_label_are_deterministic():
    first = SignatureParamsG1.new(b"label", 2)
    second = SignatureParamsG1.new(b"label", 2)
    assert first == second
    assert first.supported_message_count() == 2
    assert SignatureParamsG1.new(b"other", 2) != first


def test_commitment_rejects_unknown_index(sig_params):
    with pytest.raises(InvalidMessageIndex):
        sig_params.commit_to_messages({3: 1})
