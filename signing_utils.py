"""Arithmetic shared by Phase 1 and signature share construction."""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from py_ecc.optimized_bls12_381 import multiply

from constants import CURVE_ORDER
from data_models import Phase2Output


def compute_masked_arguments_to_multiply(
    signing_key_share: int,
    r: Sequence[int],
    zero_shares: Sequence[int],
) -> Tuple[List[int], List[int]]:
    """Mask the key share with alpha and ``r`` with beta.

    ``zero_shares`` holds ``2 * batch_size`` offsets; the first half is alpha,
    the second half beta.
    """
    batch_size = len(r)
    if len(zero_shares) != 2 * batch_size:
        raise ValueError(f"Expected {2 * batch_size} zero shares, got {len(zero_shares)}")
    alphas = np.array(zero_shares[:batch_size], dtype=object)
    betas = np.array(zero_shares[batch_size:], dtype=object)
    masked_signing_key_shares = (alphas + signing_key_share) % CURVE_ORDER
    masked_rs = (np.array(r, dtype=object) + betas) % CURVE_ORDER
    return [int(v) for v in masked_signing_key_shares], [int(v) for v in masked_rs]


def compute_R_and_u(
    base,
    r: int,
    e: int,
    masked_r: int,
    masked_signing_key_share: int,
    index_in_output: int,
    phase2: Phase2Output,
):
    """计算 R 与 u 份额 / This signer's contribution to ``R`` and ``u``.

    Summed over all signers, ``R = base * r`` and
    ``u = r * (e + sk)``, so ``A = R / u = base / (e + sk)``.
    """
    R = multiply(base, r % CURVE_ORDER)
    u = masked_r * (e + masked_signing_key_share) % CURVE_ORDER
    for shares_0, shares_1 in phase2.z_A.values():
        u = (u + shares_0[index_in_output] + shares_1[index_in_output]) % CURVE_ORDER
    for shares_0, shares_1 in phase2.z_B.values():
        u = (u + shares_0[index_in_output] + shares_1[index_in_output]) % CURVE_ORDER
    return R, u
