"""文件读写工具

- atomic_write: 清单 (qpm.json) 和签名文件 (qpm.asc) 的原子落盘
- load_yaml:    客户端配置 (qpm.yml) 读取，格式问题统一报 ConfigError
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from qpm.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# 配置文件只有几十行，超过 1MB 基本是指错了文件
MAX_CONFIG_SIZE = 1024 * 1024


def atomic_write(path: Path, content: str | bytes) -> None:
    """先写同目录临时文件再 os.replace，读者只会看到旧文件或完整的新文件"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        mode = "wb" if isinstance(content, bytes) else "w"
        encoding = None if isinstance(content, bytes) else "utf-8"
        with os.fdopen(fd, mode, encoding=encoding) as f:
            f.write(content)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    logger.debug("已写入 %s (%d 字节)", path, len(content))


def load_yaml(path: str | Path) -> dict[str, Any]:
    """读取 YAML 配置，文件不存在或为空时返回空字典

    Raises:
        ConfigError: 文件过大、YAML 语法错误或顶层不是映射
    """
    p = Path(path)
    if not p.is_file():
        logger.debug("配置文件不存在，使用默认配置: %s", p)
        return {}

    size = p.stat().st_size
    if size > MAX_CONFIG_SIZE:
        raise ConfigError(f"配置文件过大: {p} ({size} 字节)")

    try:
        with open(p, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"配置文件格式错误 {p}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"配置文件顶层必须是映射: {p} (实际类型: {type(data).__name__})")
    return data
