"""OpenPGP 分离式签名与密钥环（基于 PGPy）

拆分说明：
- keys.py: 指纹解析、密钥环按主密钥指纹查找、私钥口令、密钥生成
- signature.py: 签名生成与按规则顺序的校验
"""

from qpm.core.pgp.keys import (
    Entity,
    GeneratedKey,
    Keyring,
    SecretKey,
    fingerprint_hex,
    generate_key,
    parse_fingerprint,
)
from qpm.core.pgp.signature import read_signature, sign, verify

__all__ = [
    "Entity",
    "GeneratedKey",
    "Keyring",
    "SecretKey",
    "fingerprint_hex",
    "generate_key",
    "parse_fingerprint",
    "read_signature",
    "sign",
    "verify",
]
