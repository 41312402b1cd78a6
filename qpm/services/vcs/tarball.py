"""Tarball 提供者 - 通过 GitHub API 下载指定 revision 的归档

本地没有 git 时的回退方案，也是 GITHUB 类型仓库的默认安装方式。
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
from pathlib import Path, PurePosixPath

from qpm.core.exceptions import ExtractError, UnsupportedRepository
from qpm.core.models import DEFAULT_PACKAGE_FILE, PackageManifest, RepositoryDescriptor, VersionPin
from qpm.services.vcs.base import relocate, require_revision, staging_dir
from qpm.utils.net import download

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com/repos"

_GITHUB_PREFIXES = ("git@github.com:", "https://github.com/")


def github_slug(url: str) -> str:
    """把 GitHub 仓库地址规范化为 owner/repo"""
    for prefix in _GITHUB_PREFIXES:
        if url.startswith(prefix):
            slug = url[len(prefix):].strip("/").removesuffix(".git")
            if slug.count("/") == 1 and all(slug.split("/")):
                return slug
    raise UnsupportedRepository(f"不是 GitHub 仓库地址: {url}")


def _member_target(root: Path, name: str) -> Path | None:
    rel = PurePosixPath(name)
    if rel.is_absolute() or ".." in rel.parts:
        raise ExtractError(f"归档条目路径越界: {name}")
    if not rel.parts:
        return None
    return root.joinpath(*rel.parts)


def extract_archive(archive: Path, dest: Path) -> Path:
    """解压 tar(.gz) 归档，只处理普通文件和目录，返回唯一的顶层目录

    其它条目类型（符号链接、设备文件、扩展头等）直接忽略。

    Raises:
        ExtractError: 归档损坏、路径越界、顶层目录不唯一
    """
    dest.mkdir(parents=True, exist_ok=True)
    tops: set[str] = set()
    try:
        with tarfile.open(archive, "r:*") as tf:
            for member in tf:
                if not (member.isfile() or member.isdir()):
                    logger.debug("  忽略归档条目: %s (type=%r)", member.name, member.type)
                    continue
                target = _member_target(dest, member.name)
                if target is None:
                    continue
                tops.add(target.relative_to(dest).parts[0])
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                src = tf.extractfile(member)
                if src is None:
                    continue
                with src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out)
                os.chmod(target, (member.mode & 0o777) or 0o644)
    except (tarfile.TarError, EOFError) as e:
        raise ExtractError(f"解压失败 {archive.name}: {e}") from e

    if len(tops) != 1:
        raise ExtractError(f"归档应只包含一个顶层目录，实际: {sorted(tops) or '空'}")
    top = dest / tops.pop()
    if not top.is_dir():
        raise ExtractError(f"归档顶层条目不是目录: {top.name}")
    return top


class TarballProvider:
    """GitHub tarball 安装器（只实现 Installer 能力）"""

    def __init__(
        self,
        *,
        api_url: str = GITHUB_API_URL,
        timeout: int = 60,
        package_file: str = DEFAULT_PACKAGE_FILE,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.package_file = package_file

    def archive_url(self, repository: RepositoryDescriptor, revision: str) -> str:
        return f"{self.api_url}/{github_slug(repository.url)}/tarball/{revision}"

    def install(
        self, repository: RepositoryDescriptor, pin: VersionPin, vendor_dir: str | Path,
    ) -> PackageManifest:
        revision = require_revision(pin)
        url = self.archive_url(repository, revision)
        with staging_dir(vendor_dir) as staging:
            archive = download(url, staging / "archive.tar.gz", timeout=self.timeout)
            top = extract_archive(archive, staging / "extract")
            archive.unlink()
            return relocate(top, vendor_dir, pin, self.package_file)
