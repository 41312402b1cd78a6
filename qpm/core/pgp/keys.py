"""OpenPGP 密钥与密钥环

密钥解析、私钥保护和密钥生成交给 PGPy，这里只负责:
  - 清单中指纹文本的解析
  - 密钥环文件（二进制或 armor，可含多个密钥）按主密钥指纹查找
  - 私钥口令的校验与保存（PGPy 只在 unlock 上下文内解密私钥材料）
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from pgpy import PGPKey, PGPUID
from pgpy.constants import (
    CompressionAlgorithm,
    EllipticCurveOID,
    HashAlgorithm,
    KeyFlags,
    PubKeyAlgorithm,
    SymmetricKeyAlgorithm,
)
from pgpy.errors import PGPError

from qpm.core.exceptions import ConfigError, KeyDecryptError

logger = logging.getLogger(__name__)

FINGERPRINT_SIZE = 20

# PGPy 对畸形输入抛出的异常类型不统一
PARSE_ERRORS = (PGPError, ValueError, TypeError, IndexError, KeyError, AttributeError, NotImplementedError)

_USER_ID_RE = re.compile(r"^\s*(?P<name>.*?)\s*<(?P<email>[^<>]+)>\s*$")


def parse_fingerprint(text: str) -> bytes:
    """解析清单中记录的密钥指纹

    Raises:
        ConfigError: 不是 hex 或解码后不是 20 字节（配置错误，而非"找不到密钥"）
    """
    compact = "".join(text.split())
    if compact.lower().startswith("0x"):
        compact = compact[2:]
    try:
        decoded = bytes.fromhex(compact)
    except ValueError as e:
        raise ConfigError(f"密钥指纹不是合法的 hex: {text!r}") from e
    if len(decoded) != FINGERPRINT_SIZE:
        raise ConfigError(
            f"密钥指纹必须是 {FINGERPRINT_SIZE} 字节，实际 {len(decoded)} 字节: {text!r}"
        )
    return decoded


def fingerprint_hex(key: PGPKey) -> str:
    """主密钥指纹的大写 hex，不含空格"""
    return "".join(str(key.fingerprint).split()).upper()


def fingerprint_bytes(key: PGPKey) -> bytes:
    return bytes.fromhex(fingerprint_hex(key))


# =========================================================================
# 私钥
# =========================================================================

@dataclass
class SecretKey:
    """私钥及已校验过的口令"""

    key: PGPKey
    passphrase: str | None = None

    @property
    def fingerprint_hex(self) -> str:
        return fingerprint_hex(self.key)

    @property
    def encrypted(self) -> bool:
        return self.key.is_protected and self.passphrase is None

    def unlock(self, passphrase: str) -> None:
        """校验口令并记住，口令错误抛 KeyDecryptError"""
        if not self.key.is_protected:
            return
        try:
            with self.key.unlock(passphrase):
                pass
        except PGPError as e:
            raise KeyDecryptError(f"口令错误或私钥数据损坏: {e}") from e
        self.passphrase = passphrase

    @contextmanager
    def unlocked(self) -> Iterator[PGPKey]:
        """在上下文内得到可签名的 PGPKey"""
        if not self.key.is_protected:
            yield self.key
            return
        if self.passphrase is None:
            raise KeyDecryptError("私钥已加密，需先提供口令解密")
        with self.key.unlock(self.passphrase) as key:
            yield key


# =========================================================================
# 密钥环
# =========================================================================

@dataclass
class Entity:
    """一个主密钥；私钥环中的条目同时带有私钥"""

    primary: PGPKey
    secret: SecretKey | None = None
    user_ids: list[str] = field(default_factory=list)

    @property
    def fingerprint(self) -> bytes:
        return fingerprint_bytes(self.primary)


def _user_id_text(uid: PGPUID) -> str:
    return f"{uid.name} <{uid.email}>" if uid.email else str(uid.name)


def _entity(key: PGPKey) -> Entity:
    user_ids = [_user_id_text(uid) for uid in key.userids]
    if key.is_public:
        return Entity(primary=key, user_ids=user_ids)
    return Entity(primary=key.pubkey, secret=SecretKey(key), user_ids=user_ids)


class Keyring:
    """OpenPGP 密钥环（二进制或 armor 格式）"""

    def __init__(self, entities: list[Entity] | None = None) -> None:
        self.entities = entities or []

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.entities)

    def __len__(self) -> int:
        return len(self.entities)

    @classmethod
    def load(cls, path: str | Path) -> Keyring:
        """读取密钥环文件

        Raises:
            OSError: 文件不可读
            ConfigError: 文件不是合法的 OpenPGP 数据
        """
        data = Path(path).read_bytes()
        try:
            return cls.from_bytes(data)
        except PARSE_ERRORS as e:
            raise ConfigError(f"密钥环格式错误 {path}: {e}") from e

    @classmethod
    def from_bytes(cls, data: bytes) -> Keyring:
        """解析密钥环数据，畸形数据抛 PARSE_ERRORS 中的异常，由 load 统一转为 ConfigError"""
        if not data.strip():
            return cls()
        first, others = PGPKey.from_blob(data)
        keys: dict[str, PGPKey] = {}
        for key in [first, *others.values()]:
            if key.is_primary:
                keys.setdefault(fingerprint_hex(key), key)
        if not keys:
            raise ValueError("没有可用的主密钥")
        return cls([_entity(key) for key in keys.values()])

    def find(self, fingerprint: bytes) -> Entity | None:
        for entity in self.entities:
            if entity.fingerprint == fingerprint:
                return entity
        return None


# =========================================================================
# 密钥生成
# =========================================================================

@dataclass
class GeneratedKey:
    key: PGPKey

    @property
    def fingerprint(self) -> str:
        return fingerprint_hex(self.key)

    @property
    def secret_armored(self) -> str:
        return str(self.key)

    @property
    def public_armored(self) -> str:
        return str(self.key.pubkey)

    @property
    def secret_binary(self) -> bytes:
        return bytes(self.key)

    @property
    def public_binary(self) -> bytes:
        return bytes(self.key.pubkey)


def generate_key(user_id: str, passphrase: str | None = None) -> GeneratedKey:
    """生成 Ed25519 签名主密钥；提供口令时用 AES-256 保护私钥"""
    key = PGPKey.new(PubKeyAlgorithm.EdDSA, EllipticCurveOID.Ed25519)
    m = _USER_ID_RE.match(user_id)
    uid = PGPUID.new(m.group("name"), email=m.group("email")) if m else PGPUID.new(user_id.strip())
    key.add_uid(
        uid,
        usage={KeyFlags.Sign, KeyFlags.Certify},
        hash=HashAlgorithm.SHA256,
        hashes=[HashAlgorithm.SHA256, HashAlgorithm.SHA512],
        ciphers=[SymmetricKeyAlgorithm.AES256],
        compression=[CompressionAlgorithm.Uncompressed],
    )
    if passphrase is not None:
        key.protect(passphrase, SymmetricKeyAlgorithm.AES256, HashAlgorithm.SHA256)

    generated = GeneratedKey(key)
    logger.info("已生成密钥: %s <%s>", generated.fingerprint, user_id)
    return generated
