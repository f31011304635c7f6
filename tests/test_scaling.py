import pytest

from arena import SigningSession
from bbs_plus import SignatureParamsG1
from conftest import deal_keys
from secure_rng import SecureRandom


@pytest.mark.slow
@pytest.mark.parametrize(
    "num_signers, batch_size",
    [(10, 10), (20, 10), (5, 10), (5, 20), (5, 30)],
)
def test_signing_is_independent_of_group_and_batch_size(num_signers, batch_size):
    rng = SecureRandom("scaling", seed=f"{num_signers}-{batch_size}".encode())
    sig_params = SignatureParamsG1.new(b"scaling-params", 3)
    ids = list(range(1, num_signers + 1))
    _, public_key, key_shares = deal_keys(rng, sig_params, ids)
    session = SigningSession(rng.derive_child("session"), key_shares, sig_params, batch_size)

    message_rng = rng.derive_child("messages")
    message_batch = [message_rng.random_scalars(3) for _ in range(batch_size)]
    signatures = session.sign_batch(message_batch)

    assert len(signatures) == batch_size
    for signature, messages in zip(signatures, message_batch):
        assert signature.verify(messages, public_key, sig_params)
