"""来源提供者公共部分

职责：
- 定义 Installer / Publisher 两组能力协议
- 子进程调用（超时、工具缺失映射为 VCSToolMissing）
- 安装时的暂存目录与"清空后整体替换"式落盘
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from qpm.core.exceptions import VCSToolMissing, ValidationError
from qpm.core.models import DEFAULT_PACKAGE_FILE, PackageManifest, RepositoryDescriptor, VersionPin
from qpm.utils.shell import CommandExecutor, CommandResult, get_executor, redact_command, run_cmd

logger = logging.getLogger(__name__)


# =========================================================================
# 能力协议
# =========================================================================

class Installer(Protocol):
    """把锁定版本拉取到 vendor 目录"""

    def install(
        self, repository: RepositoryDescriptor, pin: VersionPin, vendor_dir: str | Path,
    ) -> PackageManifest:
        ...


class Publisher(Protocol):
    """查询本地检出目录，供发布/签名流程使用"""

    def test(self) -> None: ...

    def repository_url(self) -> str: ...

    def repository_file_list(self) -> list[str]: ...

    def last_commit_revision(self) -> str: ...

    def last_commit_author_name(self) -> str: ...

    def last_commit_email(self) -> str: ...

    def create_tag(self, name: str) -> None: ...

    def validate_commit(self, revision: str) -> None: ...


# =========================================================================
# 基于命令行工具的提供者
# =========================================================================

class CommandProvider:
    """git / hg 提供者的共同基类

    不持有可变状态，cwd 只用于 Publisher 查询本地检出目录。
    """

    tool = ""

    def __init__(
        self,
        *,
        cwd: str | Path = ".",
        executor: CommandExecutor | None = None,
        timeout: int | None = None,
        package_file: str = DEFAULT_PACKAGE_FILE,
    ) -> None:
        self.cwd = Path(cwd)
        self.executor = executor or get_executor()
        self.timeout = timeout
        self.package_file = package_file

    def _execute(self, args: list[str], *, cwd: str | Path | None = None) -> CommandResult:
        """执行命令，不检查返回码"""
        cmd = [self.tool, *args]
        logger.debug("  %s (cwd=%s)", " ".join(redact_command(cmd)), cwd or self.cwd)
        try:
            return self.executor.execute(cmd, cwd=str(cwd or self.cwd), timeout=self.timeout)
        except FileNotFoundError as e:
            raise VCSToolMissing(f"未找到 {self.tool} 命令，请先安装") from e

    def _run(self, args: list[str], *, cwd: str | Path | None = None) -> str:
        """执行命令，非零退出抛 ExecutionError，返回去掉首尾空白的 stdout"""
        try:
            r = run_cmd(
                [self.tool, *args], cwd=str(cwd or self.cwd),
                timeout=self.timeout, label=f"{self.tool} {args[0]}",
                executor=self.executor,
            )
        except FileNotFoundError as e:
            raise VCSToolMissing(f"未找到 {self.tool} 命令，请先安装") from e
        return r.stdout.strip()

    def test(self) -> None:
        """探测工具是否可运行"""
        r = self._execute(["version"])
        if not r.success:
            raise VCSToolMissing(f"{self.tool} 无法运行 (rc={r.returncode}): {r.stderr.strip()[:200]}")


# =========================================================================
# 暂存与落盘
# =========================================================================

def require_revision(pin: VersionPin) -> str:
    if not pin.revision:
        raise ValidationError(f"版本 {pin.label or '-'} 缺少 revision，无法安装")
    return pin.revision


@contextmanager
def staging_dir(vendor_dir: str | Path) -> Iterator[Path]:
    """在 vendor 目录内创建暂存目录，退出时（无论成功与否）删除"""
    root = Path(vendor_dir)
    root.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=".staging-", dir=str(root)))
    try:
        yield path
    finally:
        if path.exists():
            shutil.rmtree(path)


def relocate(
    source: Path, vendor_dir: str | Path, pin: VersionPin,
    package_file: str = DEFAULT_PACKAGE_FILE,
) -> PackageManifest:
    """读取暂存目录中的清单，再把暂存目录整体移动到 vendor/<命名空间>

    目标目录已存在时先整体删除（安装是替换，不是合并）。
    磁盘上的文件保持与发布时逐字节一致，否则签名校验必然失败；
    锁定的 revision 只记录在返回的清单对象上。
    """
    manifest = PackageManifest.load(source, package_file)
    dest = Path(vendor_dir) / manifest.namespace_path()

    if dest.exists():
        logger.info("  清理已有安装: %s", dest)
        shutil.rmtree(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    source.rename(dest)
    manifest.path = dest / package_file
    if pin.revision:
        manifest.version.revision = pin.revision
    logger.info("  已安装 %s -> %s", manifest.dependency_signature(), dest)
    return manifest
