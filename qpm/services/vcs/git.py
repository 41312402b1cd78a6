"""Git 提供者 - 安装与发布都依赖本地 git 命令"""

from __future__ import annotations

import logging
from pathlib import Path

from qpm.core.exceptions import ConfigError, ExecutionError, NotPublished
from qpm.core.models import PackageManifest, RepositoryDescriptor, VersionPin
from qpm.services.vcs.base import CommandProvider, relocate, require_revision, staging_dir

logger = logging.getLogger(__name__)


class GitProvider(CommandProvider):
    """Git 仓库: clone + checkout 安装，ls-remote + merge-base 校验发布"""

    tool = "git"

    # ---- Installer ----

    def install(
        self, repository: RepositoryDescriptor, pin: VersionPin, vendor_dir: str | Path,
    ) -> PackageManifest:
        revision = require_revision(pin)
        with staging_dir(vendor_dir) as staging:
            checkout = staging / "checkout"
            self._run(["clone", repository.url, str(checkout)], cwd=staging)
            self._run(["checkout", revision], cwd=checkout)
            return relocate(checkout, vendor_dir, pin, self.package_file)

    # ---- Publisher ----

    def repository_url(self) -> str:
        try:
            return self._run(["config", "remote.origin.url"])
        except ExecutionError as e:
            raise ConfigError("无法获取 remote.origin.url，请先配置远端仓库") from e

    def repository_file_list(self) -> list[str]:
        out = self._execute_checked(["ls-files", "-z"])
        return [p for p in out.split("\0") if p]

    def last_commit_revision(self) -> str:
        return self._run(["rev-parse", "HEAD"])

    def last_commit_author_name(self) -> str:
        return self._run(["log", "-1", "--format=%an"])

    def last_commit_email(self) -> str:
        return self._run(["log", "-1", "--format=%ae"])

    def create_tag(self, name: str) -> None:
        self._run(["tag", name])
        logger.info("已创建 tag: %s", name)

    def remote_heads(self) -> dict[str, str]:
        """git ls-remote 的结果: {ref: sha}"""
        heads: dict[str, str] = {}
        for line in self._run(["ls-remote"]).splitlines():
            parts = line.split()
            if len(parts) >= 2:
                heads[parts[1]] = parts[0]
        return heads

    def validate_commit(self, revision: str) -> None:
        """revision 是任一远端 head 的祖先即视为已发布，不区分分支"""
        for ref, sha in self.remote_heads().items():
            r = self._execute(["merge-base", "--is-ancestor", revision, sha])
            if r.success:
                logger.info("提交 %s 已包含在远端 %s 中", revision[:8], ref)
                return
        raise NotPublished(f"提交 {revision[:8]} 尚未推送到任何远端分支")

    def _execute_checked(self, args: list[str]) -> str:
        # 保留 stdout 原样（-z 输出不能 strip 掉分隔符之外的内容）
        r = self._execute(args)
        if not r.success:
            raise ExecutionError(
                f"git {args[0]} 失败 (rc={r.returncode}): {r.stderr.strip()[:500]}",
                returncode=r.returncode, stderr=r.stderr,
            )
        return r.stdout
