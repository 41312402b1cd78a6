"""集中配置管理

替代各模块散落的常量（清单文件名、签名文件名、vendor 目录等），提供统一的配置入口。
支持从 YAML 文件加载 + 环境变量覆盖 + 编程式覆盖。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from qpm.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "qpm.yml"


@dataclass
class Config:
    """客户端全局配置"""

    # 文件与目录
    package_file: str = "qpm.json"
    signature_file: str = "qpm.asc"
    vendor_dir: str = "vendor"

    # 密钥环（目录由环境变量指定）
    keyring_env: str = "GNUPGHOME"
    pubring_file: str = "pubring.gpg"
    secring_file: str = "secring.gpg"
    passphrase_attempts: int = 3

    # 远端
    registry_url: str = "https://pkg.qpm.io"
    github_api_url: str = "https://api.github.com/repos"

    # 超时（秒）
    command_timeout: int = 600
    http_timeout: int = 60

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        cfg.apply_env()
        return cfg

    def apply_env(self) -> None:
        """环境变量覆盖: SERVER 指定注册中心地址"""
        server = os.getenv("SERVER", "")
        if server:
            self.registry_url = server

    def keyring_dir(self) -> str:
        """返回密钥环目录，环境变量缺失视为配置错误"""
        from qpm.core.exceptions import ConfigError

        path = os.getenv(self.keyring_env, "")
        if not path:
            raise ConfigError(f"环境变量 {self.keyring_env} 未设置，无法定位密钥环")
        return path

    def to_dict(self) -> dict:
        from dataclasses import asdict
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
