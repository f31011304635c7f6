"""Shared constants for the threshold BBS+ signing protocol.

所有参与者共享的曲线与编码参数 / Curve and encoding parameters shared by every signer.
"""

from py_ecc.optimized_bls12_381 import curve_order

CURVE_ORDER: int = curve_order  # BLS12-381 标量域的阶 r，所有份额与随机数都在该域上

SCALAR_SIZE: int = 32  # 标量的规范编码宽度（大端）
G1_SIZE: int = 48  # G1 压缩点编码宽度
LENGTH_PREFIX_SIZE: int = 4  # 序列与字节串的长度前缀

SALT_SIZE: int = 32  # 每个承诺使用的随机盐值长度
DEFAULT_HASH: str = "blake2b"  # 承诺与挑战派生使用的摘要算法 (BLAKE2b-512)
DEFAULT_PROTOCOL_ID: bytes = b"threshold-bbs-plus"

CLIENT_ID: int = 0  # 模拟网络中接收签名份额的客户端邮箱
