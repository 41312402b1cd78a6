"""来源提供者 - Git / Mercurial / Tarball

拆分说明：
- base.py: 能力协议、子进程调用、暂存与落盘
- git.py / mercurial.py: 依赖本地工具的提供者（Installer + Publisher）
- tarball.py: GitHub 归档下载（仅 Installer）
- selector.py: 按仓库类型选择提供者，包含回退策略
"""

from qpm.services.vcs.base import Installer, Publisher
from qpm.services.vcs.git import GitProvider
from qpm.services.vcs.mercurial import MercurialProvider
from qpm.services.vcs.selector import create_installer, create_publisher
from qpm.services.vcs.tarball import TarballProvider, github_slug

__all__ = [
    "Installer",
    "Publisher",
    "GitProvider",
    "MercurialProvider",
    "TarballProvider",
    "create_installer",
    "create_publisher",
    "github_slug",
]
