"""High-level orchestration for running the distributed threshold BBS+ demo."""

from __future__ import annotations

import time
from typing import Dict, List

import numpy as np

from bbs_plus import PublicKeyG2, SecretKey, SignatureParamsG1
from constants import CLIENT_ID, CURVE_ORDER, DEFAULT_HASH, DEFAULT_PROTOCOL_ID
from crypto_manager import CryptoManager
from data_models import EncryptedPayloadPackage, PerformanceStats, SigningRunResult
from errors import ChannelAuthenticationError, IncompleteRound
from key_dealing import additive_share_from_shamir, deal_secret
from multiplication import CorrelationDealer, MultiplicationParams
from network_simulator import NetworkSimulator
from participant import KIND_SIGNATURE_SHARE, DistributedParticipant
from secure_rng import SecureRandom
from serialization import ByteReader
from threshold_signature import BBSPlusSignatureShare


def print_performance_report(performance_stats: List[PerformanceStats]) -> None:
    """打印优雅的性能报告 / Pretty-print collected performance statistics."""
    print("\n" + "=" * 80)
    print("***  PROTOCOL PERFORMANCE ANALYSIS REPORT  ***".center(80))
    print("=" * 80 + "\n")

    total_time = sum(stat.duration for stat in performance_stats)

    for idx, stat in enumerate(performance_stats, 1):
        percentage = (stat.duration / total_time * 100) if total_time > 0 else 0

        print(f"┌─ Phase {idx}: {stat.phase_name}")
        print(f"│  ⏱  Duration:    {stat.duration*1000:.4f} ms  ({percentage:.1f}% of total)")

        if stat.operations:
            print("│  📊 操作次数:")
            for op_name, count in stat.operations.items():
                print(f"│     • {op_name}: {count:,}")
        print(f"└{'─'*78}\n")

    print("=" * 80)
    print(f"🕐 TOTAL EXECUTION TIME: {total_time*1000:.4f} ms ({total_time:.6f} seconds)")
    print("=" * 80 + "\n")


def _aggregate_performance(
    participants: List[DistributedParticipant],
    aggregation_time: float,
    verification_time: float,
    message_count: int,
) -> List[PerformanceStats]:
    """汇总所有参与者的性能统计信息 / Aggregate per-signer timings, taking the slowest signer per phase."""
    if not participants:
        return []

    n = len(participants)
    batch_size = participants[0].batch_size
    stats: List[PerformanceStats] = []

    stats.append(PerformanceStats(
        "随机数生成 (Phase 1)",
        float(np.max([p.phase1_time for p in participants])),
        {
            "抛币承诺 (每个签名者 2B 个槽位)": n * 2 * batch_size,
            "零共享承诺 (每对签名者 2B 个槽位)": n * (n - 1) * 2 * batch_size,
            "承诺验证 (哈希计算)": n * (n - 1) * 2 * batch_size * 2,
        },
    ))
    stats.append(PerformanceStats(
        "乘法 (Phase 2)",
        float(np.max([p.phase2_time for p in participants])),
        {
            "U 消息 (每对一次)": n * (n - 1) // 2,
            "tau 消息 (每对一次)": n * (n - 1) // 2,
            "交叉乘积份额 (z_A + z_B)": n * (n - 1) * 2 * batch_size,
        },
    ))
    stats.append(PerformanceStats(
        "签名份额构造",
        float(np.max([p.share_time for p in participants])),
        {
            "G1 标量乘法 (b 与 R 的计算)": n * batch_size * (message_count + 2),
            "签名份额": n * batch_size,
        },
    ))

    combined_network_ops: Dict[str, int] = {}
    for participant in participants:
        for op_name, count in participant.network_ops.items():
            combined_network_ops[op_name] = combined_network_ops.get(op_name, 0) + count
    total_times = [p.phase1_time + p.phase2_time + p.share_time for p in participants]
    stats.append(PerformanceStats("网络通信 (平均签名者总耗时)", float(np.mean(total_times)), combined_network_ops))

    stats.append(PerformanceStats(
        "签名聚合",
        aggregation_time,
        {
            "G1 点加法 (R 求和)": n * batch_size,
            "模逆元计算 (u 求和后取逆)": batch_size,
        },
    ))
    stats.append(PerformanceStats(
        "签名验证",
        verification_time,
        {"配对计算 (每个签名两次 Miller 循环, 一次最终幂)": 2 * batch_size},
    ))
    return stats


def _collect_signature_shares(
    network: NetworkSimulator,
    client_kem_private,
    expected_count: int,
    timeout: float,
) -> Dict[int, List[BBSPlusSignatureShare]]:
    """客户端接收签名份额 / Receive, authenticate and decode every signature share sent to the client."""
    by_index: Dict[int, List[BBSPlusSignatureShare]] = {}
    for package in network.receive(CLIENT_ID, KIND_SIGNATURE_SHARE, expected_count, timeout):
        if not isinstance(package, EncryptedPayloadPackage):
            raise ChannelAuthenticationError(package.sender_id, "expected an encrypted signature share package")
        data = CryptoManager.open_package(
            package,
            client_kem_private,
            network.get_signing_public_key(package.sender_id),
        )
        reader = ByteReader(data)
        index = reader.read_u32()
        share = BBSPlusSignatureShare.from_bytes(reader.take(len(data) - reader.offset))
        by_index.setdefault(index, []).append(share)
    return by_index


def run_distributed_signing(
    num_participants: int = 5,
    threshold: int | None = None,
    batch_size: int = 3,
    message_count: int = 3,
    seed: bytes | None = None,
    protocol_id: bytes = DEFAULT_PROTOCOL_ID,
    hash_name: str = DEFAULT_HASH,
    timeout: float = 60.0,
    verbose: bool = True,
) -> SigningRunResult:
    """运行分布式门限 BBS+ 签名演示 / Deal keys, run every signer thread, aggregate and verify at the client.

    The signing key is Shamir-dealt ``threshold``-of-``num_participants``; the
    first ``threshold`` holders sign, each converting its share with its
    Lagrange coefficient for that signer set.
    """
    threshold = num_participants if threshold is None else threshold
    if not 2 <= threshold <= num_participants:
        raise ValueError("Threshold must be at least 2 and at most the number of participants")

    rng = SecureRandom("protocol", seed)

    if verbose:
        print("\n" + "=" * 80)
        print("***  DISTRIBUTED THRESHOLD BBS+ SIGNING TEST  ***".center(80))
        print("=" * 80 + "\n")
        print("*** Protocol Parameters ***")
        print(f"  • Key holders (N):            {num_participants}")
        print(f"  • Signers (T):                {threshold}")
        print(f"  • Batch size (B):             {batch_size}")
        print(f"  • Messages per signature (L): {message_count}")
        print(f"  • Curve:                      BLS12-381")
        print(f"  • Scalar field bit length:    {CURVE_ORDER.bit_length()} bits")
        print(f"  • Commitment digest:          {hash_name}")
        print(f"  • Channels:                   X25519 KEM + AES-256-GCM, Ed25519 signatures")
        print("-" * 80 + "\n")

    # —— 密钥与公共参数 ——
    sig_params = SignatureParamsG1.new(protocol_id + b"/params", message_count)
    secret_key = SecretKey.generate_using_rng(rng.derive_child("secret-key"))
    public_key = PublicKeyG2.generate_using_secret_key(secret_key, sig_params)
    shamir_shares, _ = deal_secret(rng.derive_child("key-dealing"), secret_key.value, threshold, num_participants)
    signer_ids = list(range(1, threshold + 1))
    key_shares = {
        participant_id: additive_share_from_shamir(shamir_shares[participant_id - 1], participant_id, signer_ids)
        for participant_id in signer_ids
    }

    message_rng = rng.derive_child("messages")
    message_batch = [message_rng.random_scalars(message_count) for _ in range(batch_size)]
    correlations = CorrelationDealer.deal(rng.derive_child("correlations"), signer_ids, batch_size)
    multiplication_params = MultiplicationParams(label=protocol_id + b"/multiplication", hash_name=hash_name)

    # —— 模拟网络、客户端与参与者线程注册 ——
    network = NetworkSimulator()
    _, client_signing_public = CryptoManager.generate_signature_keypair()
    client_kem_private, client_kem_public = CryptoManager.generate_kem_keypair()
    network.register_participant(CLIENT_ID, client_signing_public, client_kem_public)

    participants: List[DistributedParticipant] = []
    for participant_id in signer_ids:
        participants.append(DistributedParticipant(
            participant_id=participant_id,
            signer_ids=signer_ids,
            signing_key_share=key_shares[participant_id],
            sig_params=sig_params,
            message_batch=message_batch,
            correlations=correlations[participant_id],
            network=network,
            protocol_id=protocol_id,
            hash_name=hash_name,
            multiplication_params=multiplication_params,
            rng=rng.derive_child(f"participant-{participant_id}"),
            timeout=timeout,
            verbose=verbose,
        ))

    if verbose:
        print("*** Starting Distributed Protocol ***\n")

    start_time = time.time()
    for participant in participants:
        participant.start()
    for participant in participants:
        participant.join()
    total_time = time.time() - start_time

    for participant in participants:
        if participant.error is not None:
            raise participant.error

    # —— 客户端聚合与验证 ——
    aggregation_start = time.time()
    shares_by_index = _collect_signature_shares(network, client_kem_private, len(signer_ids) * batch_size, timeout)
    missing = [index for index in range(batch_size) if index not in shares_by_index]
    if missing:
        raise IncompleteRound("signature delivery", missing)
    signatures = [
        BBSPlusSignatureShare.aggregate(shares_by_index[index], expected_participants=signer_ids)
        for index in range(batch_size)
    ]
    aggregation_time = time.time() - aggregation_start

    verification_start = time.time()
    verified = [
        signature.verify(messages, public_key, sig_params)
        for signature, messages in zip(signatures, message_batch)
    ]
    verification_time = time.time() - verification_start

    stats = _aggregate_performance(participants, aggregation_time, verification_time, message_count)

    if verbose:
        print("\n")
        for index, ok in enumerate(verified):
            status = "✓ VALID" if ok else "✗ INVALID"
            print(f"  Signature {index}: {status} - A: {signatures[index].to_bytes()[:8].hex()}...")
        print(f"\n  ⏱  Total execution time: {total_time*1000:.2f} ms")
        print(f"  📊 Messages sent per kind:")
        for kind, count in sorted(network.sent_counts.items()):
            print(f"     - {kind}: {count}")
        print_performance_report(stats)

    return SigningRunResult(
        signer_ids=signer_ids,
        message_batch=message_batch,
        signatures=signatures,
        verified=verified,
        public_key=public_key,
        sig_params=sig_params,
        performance_stats=stats,
    )


if __name__ == "__main__":
    run_distributed_signing()
