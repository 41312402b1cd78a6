"""Mercurial 提供者

发布校验没有 ls-remote + merge-base 的等价物，用 `hg identify <远端> -r <rev>`
直接询问远端是否存在该 changeset 作为近似。
"""

from __future__ import annotations

import logging
from pathlib import Path

from qpm.core.exceptions import ConfigError, ExecutionError, NotPublished
from qpm.core.models import PackageManifest, RepositoryDescriptor, VersionPin
from qpm.services.vcs.base import CommandProvider, relocate, require_revision, staging_dir

logger = logging.getLogger(__name__)


class MercurialProvider(CommandProvider):
    tool = "hg"

    def install(
        self, repository: RepositoryDescriptor, pin: VersionPin, vendor_dir: str | Path,
    ) -> PackageManifest:
        revision = require_revision(pin)
        with staging_dir(vendor_dir) as staging:
            checkout = staging / "checkout"
            self._run(["clone", "-r", revision, repository.url, str(checkout)], cwd=staging)
            return relocate(checkout, vendor_dir, pin, self.package_file)

    def repository_url(self) -> str:
        try:
            return self._run(["paths", "default"])
        except ExecutionError as e:
            raise ConfigError("无法获取 hg 默认远端地址 (paths.default)") from e

    def repository_file_list(self) -> list[str]:
        return [line for line in self._run(["locate"]).splitlines() if line]

    def _log(self, template: str) -> str:
        return self._run(["log", "--template", template, "--limit", "1"])

    def last_commit_revision(self) -> str:
        return self._log("{node}")

    def last_commit_author_name(self) -> str:
        return self._log("{author|person}")

    def last_commit_email(self) -> str:
        return self._log("{author|email}")

    def create_tag(self, name: str) -> None:
        self._run(["tag", name])
        logger.info("已创建 tag: %s", name)

    def validate_commit(self, revision: str) -> None:
        url = self.repository_url()
        r = self._execute(["identify", url, "-r", revision])
        if not r.success:
            raise NotPublished(f"changeset {revision[:12]} 在远端 {url} 上不存在")
