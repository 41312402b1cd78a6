"""包内容摘要

两级 SHA-256（hash-of-hashes）:
  1. 路径按 POSIX 形式字典序排序（规范化步骤，调用方不能依赖遍历顺序）
  2. 跳过目录和签名文件本身
  3. 逐文件流式计算 SHA-256，把每个文件的摘要（而非原始内容）写入主摘要

结果只取决于文件集合和各文件字节内容，与修改时间、权限、枚举顺序、路径分隔符无关。
"""

from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Iterable
from pathlib import Path, PurePath

logger = logging.getLogger(__name__)

SIGNATURE_FILE = "qpm.asc"
VCS_DIRS = frozenset((".git", ".hg", ".svn", ".bzr"))

_CHUNK_SIZE = 64 * 1024


def hash_file(path: str | Path) -> bytes:
    """返回单个文件的 SHA-256 原始摘要"""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            sha256.update(chunk)
    return sha256.digest()


def _sort_key(path: str | PurePath) -> str:
    return PurePath(path).as_posix()


def digest(files: Iterable[str | Path], *, signature_file: str = SIGNATURE_FILE) -> str:
    """计算文件集合的内容摘要（hex）

    Raises:
        OSError: 路径不存在或不可读
    """
    master = hashlib.sha256()
    count = 0
    for p in sorted(files, key=_sort_key):
        path = Path(p)
        if path.name == signature_file or path.is_dir():
            continue
        master.update(hash_file(path))
        count += 1
    result = master.hexdigest()
    logger.info("内容摘要: %d 个文件 -> %s", count, result)
    return result


def list_tree(directory: str | Path) -> list[Path]:
    """遍历目录树，排除 VCS 元数据目录"""
    files: list[Path] = []
    for root, dirs, names in os.walk(directory):
        dirs[:] = [d for d in dirs if d not in VCS_DIRS]
        files.extend(Path(root) / n for n in names)
    return files


def hash_tree(directory: str | Path, *, signature_file: str = SIGNATURE_FILE) -> str:
    """对目录树计算内容摘要（校验路径使用）"""
    root = Path(directory)
    if not root.is_dir():
        raise NotADirectoryError(f"不是目录: {root}")
    return digest(list_tree(root), signature_file=signature_file)
