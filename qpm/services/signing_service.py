"""签名 / 校验服务

签名: 清单 -> 发布者文件列表 -> 内容摘要 -> 私钥签名 -> 写 qpm.asc -> 用公钥环回验
校验: 遍历目录树 -> 内容摘要 -> 清单中的指纹找公钥 -> 校验 qpm.asc

密钥环位于环境变量（默认 GNUPGHOME）指定的目录，变量缺失属于配置错误。
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pgpy import PGPKey

from qpm.core import hasher
from qpm.core.config import Config, get_config
from qpm.core.exceptions import ConfigError, KeyDecryptError, KeyNotFound, PackageNotFound
from qpm.core.models import PackageManifest
from qpm.core.pgp import Keyring, SecretKey, fingerprint_hex, parse_fingerprint, sign, verify
from qpm.services.vcs import Publisher, create_publisher
from qpm.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

# 返回 None 表示放弃输入
PassphraseProvider = Callable[[str], "str | None"]
PublisherFactory = Callable[..., Publisher]


@dataclass
class SignResult:
    digest: str
    fingerprint: str
    signature_path: Path


@dataclass
class VerifyResult:
    digest: str
    fingerprint: str
    package: str


class SigningService:
    """包签名与校验"""

    def __init__(
        self,
        *,
        config: Config | None = None,
        publisher_factory: PublisherFactory = create_publisher,
    ) -> None:
        self.config = config or get_config()
        self._publisher_factory = publisher_factory

    # ---- 密钥 ----

    def _ring_path(self, file_name: str) -> Path:
        return Path(self.config.keyring_dir()) / file_name

    def _load_ring(self, file_name: str) -> Keyring:
        path = self._ring_path(file_name)
        if not path.is_file():
            raise KeyNotFound(f"密钥环不存在: {path}")
        return Keyring.load(path)

    def load_public_key(self, fingerprint: str) -> PGPKey:
        """按清单中的指纹从公钥环查找主密钥

        Raises:
            ConfigError: 指纹格式错误或密钥环目录未配置
            KeyNotFound: 公钥环中没有该指纹
        """
        fp = parse_fingerprint(fingerprint)
        entity = self._load_ring(self.config.pubring_file).find(fp)
        if entity is None:
            raise KeyNotFound(f"公钥环中找不到密钥: {fp.hex().upper()}")
        return entity.primary

    def load_signing_key(
        self,
        fingerprint: str,
        passphrase_provider: PassphraseProvider | None = None,
        attempts: int | None = None,
    ) -> SecretKey:
        """从私钥环加载签名私钥，加密的私钥通过 passphrase_provider 解密

        口令错误时重新询问，最多 attempts 次。

        Raises:
            KeyNotFound: 私钥环中没有该指纹
            KeyDecryptError: 私钥加密且没有口令，或口令多次错误
        """
        fp = parse_fingerprint(fingerprint)
        entity = self._load_ring(self.config.secring_file).find(fp)
        if entity is None or entity.secret is None:
            raise KeyNotFound(f"私钥环中找不到密钥: {fp.hex().upper()}")
        key = entity.secret
        if not key.encrypted:
            return key
        if passphrase_provider is None:
            raise KeyDecryptError(f"私钥 {key.fingerprint_hex} 已加密，需要口令")

        tries = attempts if attempts is not None else self.config.passphrase_attempts
        last_error: KeyDecryptError | None = None
        for attempt in range(1, max(1, tries) + 1):
            passphrase = passphrase_provider(key.fingerprint_hex)
            if passphrase is None:
                raise KeyDecryptError("未提供口令")
            try:
                key.unlock(passphrase)
                return key
            except KeyDecryptError as e:
                logger.warning("口令错误 (%d/%d)", attempt, tries)
                last_error = e
        raise KeyDecryptError(f"口令错误次数过多: {last_error}")

    # ---- 签名 ----

    def sign(
        self,
        cwd: str | Path = ".",
        passphrase_provider: PassphraseProvider | None = None,
    ) -> SignResult:
        """对当前检出目录签名，写出签名文件"""
        root = Path(cwd)
        manifest = PackageManifest.load(root, self.config.package_file)
        if not manifest.version.fingerprint:
            raise ConfigError("清单中没有 version.fingerprint，无法签名")

        publisher = self._publisher_factory(manifest.repository, root, config=self.config)
        files = [root / p for p in publisher.repository_file_list()]
        digest = hasher.digest(files, signature_file=self.config.signature_file)

        key = self.load_signing_key(manifest.version.fingerprint, passphrase_provider)
        armored = sign(digest, key)
        target = root / self.config.signature_file
        atomic_write(target, armored)

        # 回验，确保公钥环里的公钥与私钥匹配
        verify(digest, armored, self.load_public_key(manifest.version.fingerprint))
        logger.info("已写入签名: %s", target)
        return SignResult(digest=digest, fingerprint=key.fingerprint_hex, signature_path=target)

    # ---- 校验 ----

    def resolve_package_dir(self, target: str | Path, cwd: str | Path = ".") -> Path:
        """target 可以是目录，也可以是已安装的包名（vendor/<命名空间>）"""
        path = Path(target)
        if path.is_dir():
            return path
        name = str(target).strip().lower()
        candidate = Path(cwd) / self.config.vendor_dir / PackageManifest(name=name).namespace_path()
        if candidate.is_dir():
            return candidate
        raise PackageNotFound(f"找不到包目录: {target}")

    def verify(self, target: str | Path = ".", cwd: str | Path = ".") -> VerifyResult:
        """校验目录（或已安装包）的签名，失败抛 SignatureError 子类"""
        root = self.resolve_package_dir(target, cwd)
        manifest = PackageManifest.load(root, self.config.package_file)
        if not manifest.version.fingerprint:
            raise ConfigError(f"{manifest.name} 的清单中没有 version.fingerprint，无法校验")

        sig_path = root / self.config.signature_file
        if not sig_path.is_file():
            raise PackageNotFound(f"签名文件不存在: {sig_path}")

        digest = hasher.hash_tree(root, signature_file=self.config.signature_file)
        public_key = self.load_public_key(manifest.version.fingerprint)
        verify(digest, sig_path.read_bytes(), public_key)
        return VerifyResult(digest=digest, fingerprint=fingerprint_hex(public_key), package=manifest.name)
