"""Channel cryptography for the simulated signing network."""

import base64
import json
import os
from typing import Tuple

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, x25519
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from data_models import EncryptedPayloadPackage, SignedBroadcast
from errors import ChannelAuthenticationError


class CryptoManager:
    """加密管理器，处理密钥派生、KEM封装以及签名校验."""

    KEM_INFO = b"threshold-bbs-plus-kem"

    @staticmethod
    def encrypt_data(data: bytes, key: bytes, associated_data: bytes | None = None) -> Tuple[bytes, bytes]:
        """使用AES-GCM加密数据 / Encrypt an encoded payload with AES-GCM."""
        aesgcm = AESGCM(key)
        nonce = os.urandom(12)
        ciphertext = aesgcm.encrypt(nonce, data, associated_data)
        return ciphertext, nonce

    @staticmethod
    def decrypt_data(ciphertext: bytes, nonce: bytes, key: bytes, associated_data: bytes | None = None) -> bytes:
        """使用AES-GCM解密数据 / Decrypt ciphertext produced by AES-GCM."""
        aesgcm = AESGCM(key)
        return aesgcm.decrypt(nonce, ciphertext, associated_data)

    # —— KEM 与签名相关工具 ——

    @staticmethod
    def generate_signature_keypair() -> Tuple[ed25519.Ed25519PrivateKey, bytes]:
        """生成Ed25519签名密钥对 / Generate an Ed25519 signing key pair."""
        private_key = ed25519.Ed25519PrivateKey.generate()
        public_key = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return private_key, public_key

    @staticmethod
    def generate_kem_keypair() -> Tuple[x25519.X25519PrivateKey, bytes]:
        """生成X25519密钥对用于KEM封装 / Generate an X25519 key pair for KEM encapsulation."""
        private_key = x25519.X25519PrivateKey.generate()
        public_key = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return private_key, public_key

    @staticmethod
    def encapsulate_key(receiver_public_bytes: bytes, context: bytes) -> Tuple[bytes, bytes]:
        """使用接收者公钥封装对称密钥，返回(对称密钥, 发送方临时公钥)."""
        receiver_public = x25519.X25519PublicKey.from_public_bytes(receiver_public_bytes)
        ephemeral_private = x25519.X25519PrivateKey.generate()
        shared_secret = ephemeral_private.exchange(receiver_public)
        symmetric_key = CryptoManager._derive_symmetric_key(shared_secret, context)
        ephemeral_public_bytes = ephemeral_private.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return symmetric_key, ephemeral_public_bytes

    @staticmethod
    def decapsulate_key(ephemeral_public_bytes: bytes, receiver_private: x25519.X25519PrivateKey, context: bytes) -> bytes:
        """解封装对称密钥 / Decapsulate the symmetric key using receiver's private key."""
        ephemeral_public = x25519.X25519PublicKey.from_public_bytes(ephemeral_public_bytes)
        shared_secret = receiver_private.exchange(ephemeral_public)
        return CryptoManager._derive_symmetric_key(shared_secret, context)

    @staticmethod
    def sign_message(message: bytes, signing_private: ed25519.Ed25519PrivateKey) -> bytes:
        """对消息进行签名 / Sign a message with Ed25519."""
        return signing_private.sign(message)

    @staticmethod
    def verify_signature(signature: bytes, message: bytes, signing_public_bytes: bytes) -> bool:
        """验证Ed25519签名，返回是否有效."""
        try:
            public_key = ed25519.Ed25519PublicKey.from_public_bytes(signing_public_bytes)
            public_key.verify(signature, message)
            return True
        except InvalidSignature:
            return False

    @staticmethod
    def channel_context(sender_id: int, receiver_id: int, kind: str) -> bytes:
        return f"tbbs-{kind}-{sender_id}-{receiver_id}".encode()

    @staticmethod
    def serialize_package(package: EncryptedPayloadPackage) -> bytes:
        """序列化加密消息包用于签名 / Serialize package deterministically for signing."""
        payload = {
            'sender_id': package.sender_id,
            'receiver_id': package.receiver_id,
            'kind': package.kind,
            'nonce': base64.b64encode(package.nonce).decode(),
            'encrypted_data': base64.b64encode(package.encrypted_data).decode(),
            'kem_public': base64.b64encode(package.kem_public).decode(),
            'key_signature': base64.b64encode(package.key_signature).decode(),
        }
        return json.dumps(payload, sort_keys=True).encode()

    @staticmethod
    def serialize_broadcast(broadcast: SignedBroadcast) -> bytes:
        """序列化广播消息用于签名 / Serialize a broadcast envelope for signing."""
        payload = {
            'sender_id': broadcast.sender_id,
            'kind': broadcast.kind,
            'payload': base64.b64encode(broadcast.payload).decode(),
        }
        return json.dumps(payload, sort_keys=True).encode()

    @staticmethod
    def serialize_key_binding(sender_id: int, receiver_id: int, kind: str, symmetric_key: bytes) -> bytes:
        """序列化发送者对对称密钥的绑定信息 / Serialize key binding for signing and verification."""
        payload = {
            'kind': kind,
            'receiver_id': receiver_id,
            'sender_id': sender_id,
            'symmetric_key': base64.b64encode(symmetric_key).decode(),
        }
        return json.dumps(payload, sort_keys=True).encode()

    @staticmethod
    def sign_broadcast(
        sender_id: int, kind: str, payload: bytes, signing_private: ed25519.Ed25519PrivateKey
    ) -> SignedBroadcast:
        broadcast = SignedBroadcast(sender_id=sender_id, kind=kind, payload=payload, signature=b"")
        broadcast.signature = CryptoManager.sign_message(CryptoManager.serialize_broadcast(broadcast), signing_private)
        return broadcast

    @staticmethod
    def verify_broadcast(broadcast: SignedBroadcast, signing_public_bytes: bytes) -> bytes:
        """验证广播签名并返回载荷 / Check the envelope signature and return its payload."""
        if not CryptoManager.verify_signature(
            broadcast.signature, CryptoManager.serialize_broadcast(broadcast), signing_public_bytes
        ):
            raise ChannelAuthenticationError(broadcast.sender_id, f"invalid signature on {broadcast.kind} broadcast")
        return broadcast.payload

    @staticmethod
    def seal(
        sender_id: int,
        receiver_id: int,
        kind: str,
        data: bytes,
        receiver_kem_public: bytes,
        signing_private: ed25519.Ed25519PrivateKey,
    ) -> EncryptedPayloadPackage:
        """封装、加密并签名点对点消息 / KEM, encrypt and sign one point-to-point payload."""
        context = CryptoManager.channel_context(sender_id, receiver_id, kind)
        symmetric_key, kem_public = CryptoManager.encapsulate_key(receiver_kem_public, context)
        encrypted_data, nonce = CryptoManager.encrypt_data(data, symmetric_key, context)

        key_binding = CryptoManager.serialize_key_binding(sender_id, receiver_id, kind, symmetric_key)
        package = EncryptedPayloadPackage(
            sender_id=sender_id,
            receiver_id=receiver_id,
            kind=kind,
            encrypted_data=encrypted_data,
            nonce=nonce,
            kem_public=kem_public,
            key_signature=CryptoManager.sign_message(key_binding, signing_private),
            signature=b"",
        )
        package.signature = CryptoManager.sign_message(CryptoManager.serialize_package(package), signing_private)
        return package

    @staticmethod
    def open_package(
        package: EncryptedPayloadPackage,
        receiver_private: x25519.X25519PrivateKey,
        sender_signing_public: bytes,
    ) -> bytes:
        """验证并解密点对点消息 / Verify both signatures, then decrypt the payload.

        Raises:
        ChannelAuthenticationError: If a signature does not verify or decryption fails.
        """
        if not CryptoManager.verify_signature(
            package.signature, CryptoManager.serialize_package(package), sender_signing_public
        ):
            raise ChannelAuthenticationError(package.sender_id, f"invalid signature on {package.kind} package")

        context = CryptoManager.channel_context(package.sender_id, package.receiver_id, package.kind)
        symmetric_key = CryptoManager.decapsulate_key(package.kem_public, receiver_private, context)
        key_binding = CryptoManager.serialize_key_binding(
            package.sender_id, package.receiver_id, package.kind, symmetric_key
        )
        if not CryptoManager.verify_signature(package.key_signature, key_binding, sender_signing_public):
            raise ChannelAuthenticationError(package.sender_id, f"invalid key signature on {package.kind} package")
        try:
            return CryptoManager.decrypt_data(package.encrypted_data, package.nonce, symmetric_key, context)
        except InvalidTag:
            raise ChannelAuthenticationError(package.sender_id, f"cannot decrypt {package.kind} package") from None

    @staticmethod
    def _derive_symmetric_key(shared_secret: bytes, context: bytes) -> bytes:
        """通过HKDF从共享秘密导出对称密钥."""
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=None,
            info=context or CryptoManager.KEM_INFO,
            backend=default_backend(),
        )
        return hkdf.derive(shared_secret)
