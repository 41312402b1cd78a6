"""安装编排服务

流程: 注册中心解析依赖 -> 逐个选择提供者并安装 -> 最后统一合并进根清单并保存

安装严格串行（按注册中心返回顺序）；清单合并放在所有安装完成后的单一阶段，
不会出现并发写清单导致的丢失更新。
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from qpm.core.config import Config, get_config
from qpm.core.dependencies import REPLACED, merge_dependency, remove_dependency
from qpm.core.exceptions import InstallAborted, PackageNotFound
from qpm.core.models import DependencyEntry, PackageManifest
from qpm.services.registry import ADVISORY_ERROR, ADVISORY_INFO, Advisory, RegistryClient
from qpm.services.vcs import Installer, create_installer

logger = logging.getLogger(__name__)

InstallerFactory = Callable[..., Installer]


@dataclass
class InstallReport:
    installed: list[PackageManifest] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    manifest_path: Path | None = None


class InstallService:
    """依赖安装 / 卸载"""

    def __init__(
        self,
        registry: RegistryClient,
        *,
        root: str | Path = ".",
        config: Config | None = None,
        installer_factory: InstallerFactory = create_installer,
        confirm: Callable[[Advisory], bool] | None = None,
    ) -> None:
        self.registry = registry
        self.root = Path(root)
        self.config = config or get_config()
        self._installer_factory = installer_factory
        self._confirm = confirm

    @property
    def vendor_dir(self) -> Path:
        return self.root / self.config.vendor_dir

    def _load_root(self, required: bool) -> PackageManifest:
        try:
            return PackageManifest.load(self.root, self.config.package_file)
        except PackageNotFound:
            if required:
                raise
            manifest = PackageManifest()
            manifest.path = self.root / self.config.package_file
            return manifest

    def _handle_advisories(
        self, messages: list[Advisory], confirm: Callable[[Advisory], bool] | None,
    ) -> None:
        for msg in messages:
            text = f"{msg.title}: {msg.body}" if msg.title else msg.body
            if msg.type == ADVISORY_ERROR:
                logger.error(text)
                raise InstallAborted(text or "注册中心拒绝了本次安装")
            if msg.type == ADVISORY_INFO:
                logger.info(text)
            else:
                logger.warning(text)
            if msg.prompt:
                if confirm is None or not confirm(msg):
                    raise InstallAborted(f"已取消安装: {msg.title or msg.body}")

    def install(
        self,
        names: list[str] | None = None,
        *,
        confirm: Callable[[Advisory], bool] | None = None,
    ) -> InstallReport:
        """安装指定包；names 为空时安装根清单中声明的全部依赖

        Raises:
            PackageNotFound: 未指定包名且当前目录没有清单
            InstallAborted: 注册中心返回错误提示或用户拒绝确认
        """
        manifest = self._load_root(required=not names)
        wanted = list(names) if names else list(manifest.dependencies)
        report = InstallReport(manifest_path=manifest.path)

        response = self.registry.get_dependencies(wanted, manifest.license)
        self._handle_advisories(response.messages, confirm or self._confirm)
        if not response.dependencies:
            logger.warning("注册中心没有找到包: %s", ", ".join(wanted) or "-")
            return report

        for dep in response.dependencies:
            logger.info("安装 %s", dep.signature)
            installer = self._installer_factory(dep.repository, config=self.config)
            report.installed.append(installer.install(dep.repository, dep.version, self.vendor_dir))

        entries = manifest.dependency_entries()
        for pkg in report.installed:
            result = merge_dependency(entries, DependencyEntry.parse(pkg.dependency_signature()))
            entries = result.entries
            if result.action == REPLACED:
                report.warnings.append(result.warning)
        manifest.set_dependency_entries(entries)
        report.manifest_path = manifest.save()
        return report

    def uninstall(self, name: str) -> Path:
        """删除已安装包的 vendor 目录，并从根清单（若存在）中移除依赖

        Raises:
            PackageNotFound: vendor 中没有该包
        """
        key = name.strip().lower()
        target = self.vendor_dir / PackageManifest(name=key).namespace_path()
        if not (target / self.config.package_file).is_file():
            raise PackageNotFound(f"包未安装: {key}")

        manifest = self._load_root(required=False)
        if manifest.path is not None and manifest.path.is_file():
            manifest.set_dependency_entries(remove_dependency(manifest.dependency_entries(), key))
            manifest.save()

        # 最后再删目录，删除后包信息就没有了
        shutil.rmtree(target)
        self._prune_empty_parents(target.parent)
        logger.info("已卸载: %s", key)
        return target

    def _prune_empty_parents(self, path: Path) -> None:
        vendor = self.vendor_dir.resolve()
        current = path.resolve()
        while current != vendor and vendor in current.parents and not any(current.iterdir()):
            current.rmdir()
            current = current.parent
