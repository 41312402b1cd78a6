"""发布服务

所有"最近一次提交"相关的查询统一走 Publisher，不在各命令里各自调用 VCS 工具。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from qpm.core.config import Config, get_config
from qpm.core.exceptions import ConfigError
from qpm.core.models import PackageManifest, RepoKind, RepositoryDescriptor
from qpm.services.registry import RegistryClient
from qpm.services.signing_service import PublisherFactory
from qpm.services.vcs import Publisher, create_publisher

logger = logging.getLogger(__name__)


@dataclass
class CheckoutInfo:
    """本地检出目录的作者与远端信息（供 init 填充清单）"""

    author_name: str
    author_email: str
    repository_url: str
    revision: str


class PublishService:
    """发布准备、提交到注册中心、打 tag"""

    def __init__(
        self,
        *,
        cwd: str | Path = ".",
        config: Config | None = None,
        registry: RegistryClient | None = None,
        publisher_factory: PublisherFactory = create_publisher,
    ) -> None:
        self.cwd = Path(cwd)
        self.config = config or get_config()
        self.registry = registry
        self._publisher_factory = publisher_factory

    def _manifest(self) -> PackageManifest:
        return PackageManifest.load(self.cwd, self.config.package_file)

    def _publisher(self, repository: RepositoryDescriptor) -> Publisher:
        return self._publisher_factory(repository, self.cwd, config=self.config)

    def prepare(self) -> PackageManifest:
        """写入当前 revision，校验提交已推送，清单校验通过后保存

        Raises:
            NotPublished: 当前提交不在任何远端分支上
            ValidationError: 清单字段不合规
        """
        manifest = self._manifest()
        publisher = self._publisher(manifest.repository)
        revision = publisher.last_commit_revision()
        publisher.validate_commit(revision)

        manifest.version.revision = revision
        manifest.validate()
        manifest.save()
        logger.info("发布准备完成: %s (revision=%s)", manifest.dependency_signature(), revision[:8])
        return manifest

    def publish(self, token: str) -> PackageManifest:
        """prepare 之后把清单提交到注册中心"""
        if self.registry is None:
            raise ConfigError("未配置注册中心客户端，无法发布")
        manifest = self.prepare()
        self.registry.publish(manifest, token)
        return manifest

    def tag(self) -> str:
        """用版本 label 创建 tag"""
        manifest = self._manifest()
        self._publisher(manifest.repository).create_tag(manifest.version.label)
        return manifest.version.label

    def describe_checkout(self, repository: RepositoryDescriptor | None = None) -> CheckoutInfo:
        """读取最近一次提交的作者与远端地址，未指定仓库类型时自动探测"""
        publisher = self._publisher(repository or RepositoryDescriptor(kind=RepoKind.AUTO))
        return CheckoutInfo(
            author_name=publisher.last_commit_author_name(),
            author_email=publisher.last_commit_email(),
            repository_url=publisher.repository_url(),
            revision=publisher.last_commit_revision(),
        )
