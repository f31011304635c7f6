"""Thread-safe in-memory network simulator for participant communication."""

import threading
import time
from queue import Empty, Queue
from typing import Dict, List, Union

from data_models import EncryptedPayloadPackage, SignedBroadcast

Envelope = Union[SignedBroadcast, EncryptedPayloadPackage]


class NetworkSimulator:
    """网络模拟器，用于参与者之间的通信 / Simulates broadcast and point-to-point channels between signers."""

    def __init__(self) -> None:
        self.message_queues: Dict[int, Queue] = {}
        self.lock = threading.Lock()
        self.signing_public_keys: Dict[int, bytes] = {}
        self.kem_public_keys: Dict[int, bytes] = {}
        self.sent_counts: Dict[str, int] = {}

    def register_participant(
        self,
        participant_id: int,
        signing_public_key: bytes | None = None,
        kem_public_key: bytes | None = None,
    ) -> None:
        """注册参与者并记录其公钥 / Register participant mailbox and optionally publish public keys."""
        with self.lock:
            if participant_id not in self.message_queues:
                self.message_queues[participant_id] = Queue()
            if signing_public_key is not None and kem_public_key is not None:
                self.signing_public_keys[participant_id] = signing_public_key
                self.kem_public_keys[participant_id] = kem_public_key

    def get_signing_public_key(self, participant_id: int) -> bytes:
        with self.lock:
            return self.signing_public_keys[participant_id]

    def get_kem_public_key(self, participant_id: int) -> bytes:
        with self.lock:
            return self.kem_public_keys[participant_id]

    def _count(self, kind: str, amount: int = 1) -> None:
        self.sent_counts[kind] = self.sent_counts.get(kind, 0) + amount

    def broadcast(self, message: SignedBroadcast, exclude: tuple = ()) -> None:
        """广播签名消息给除发送者外的所有参与者 / Deliver a signed broadcast to every other mailbox."""
        with self.lock:
            receivers = [
                participant_id
                for participant_id in self.message_queues
                if participant_id != message.sender_id and participant_id not in exclude
            ]
            for participant_id in receivers:
                self.message_queues[participant_id].put((message.kind, message))
            self._count(message.kind, len(receivers))

    def send_encrypted(self, package: EncryptedPayloadPackage) -> None:
        """发送加密消息 / Send an encrypted package to its receiver."""
        with self.lock:
            if package.receiver_id in self.message_queues:
                self.message_queues[package.receiver_id].put((package.kind, package))
                self._count(package.kind)

    def receive(self, participant_id: int, kind: str, expected_count: int, timeout: float = 60.0) -> List[Envelope]:
        """接收指定类型的消息 / Receive messages of one kind until expected count or timeout."""
        messages: List[Envelope] = []
        messages_to_requeue = []
        end_time = time.time() + timeout

        while len(messages) < expected_count and time.time() < end_time:
            try:
                msg_type, data = self.message_queues[participant_id].get(timeout=0.1)
            except Empty:
                continue
            if msg_type == kind:
                messages.append(data)
            else:
                # 其他轮次的消息，稍后放回队列
                messages_to_requeue.append((msg_type, data))

        for msg in messages_to_requeue:
            self.message_queues[participant_id].put(msg)
        return messages
