"""提供者选择

安装:
  GIT       -> 本地 git 可用则用 GitProvider，否则回退到 tarball（按 GitHub 仓库处理）
  GITHUB    -> 总是 tarball
  MERCURIAL -> 必须有本地 hg，没有 tarball 回退
发布: 没有回退，工具不可用直接抛 VCSToolMissing
"""

from __future__ import annotations

import logging
from pathlib import Path

from qpm.core.config import Config, get_config
from qpm.core.exceptions import UnsupportedRepository, VCSToolMissing
from qpm.core.models import RepoKind, RepositoryDescriptor
from qpm.services.vcs.base import Installer, Publisher
from qpm.services.vcs.git import GitProvider
from qpm.services.vcs.mercurial import MercurialProvider
from qpm.services.vcs.tarball import TarballProvider
from qpm.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


def _tarball(config: Config) -> TarballProvider:
    return TarballProvider(
        api_url=config.github_api_url,
        timeout=config.http_timeout,
        package_file=config.package_file,
    )


def create_installer(
    repository: RepositoryDescriptor,
    *,
    config: Config | None = None,
    executor: CommandExecutor | None = None,
) -> Installer:
    """按仓库类型选择安装器

    Raises:
        UnsupportedRepository: AUTO 或未知类型
        VCSToolMissing: MERCURIAL 但本地 hg 不可用
    """
    cfg = config or get_config()
    opts = {"executor": executor, "timeout": cfg.command_timeout, "package_file": cfg.package_file}

    if repository.kind is RepoKind.GIT:
        git = GitProvider(**opts)
        try:
            git.test()
            return git
        except VCSToolMissing as e:
            logger.warning("git 不可用，回退到 tarball 下载: %s", e)
            return _tarball(cfg)
    if repository.kind is RepoKind.GITHUB:
        return _tarball(cfg)
    if repository.kind is RepoKind.MERCURIAL:
        hg = MercurialProvider(**opts)
        hg.test()
        return hg
    raise UnsupportedRepository(f"不支持的仓库类型: {repository.kind.value}")


def create_publisher(
    repository: RepositoryDescriptor,
    cwd: str | Path = ".",
    *,
    config: Config | None = None,
    executor: CommandExecutor | None = None,
) -> Publisher:
    """按仓库类型选择发布者，AUTO 通过探测 cwd 解析

    Raises:
        VCSToolMissing: 对应的本地工具不可用
    """
    cfg = config or get_config()
    kind = repository.resolved(cwd).kind
    opts = {
        "cwd": cwd, "executor": executor,
        "timeout": cfg.command_timeout, "package_file": cfg.package_file,
    }

    publisher: GitProvider | MercurialProvider
    if kind in (RepoKind.GIT, RepoKind.GITHUB):
        publisher = GitProvider(**opts)
    elif kind is RepoKind.MERCURIAL:
        publisher = MercurialProvider(**opts)
    else:
        raise UnsupportedRepository(f"不支持的仓库类型: {kind.value}")
    publisher.test()
    return publisher
