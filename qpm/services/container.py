"""服务容器 - 统一依赖注入，CLI 通过 get_container() 获取服务，而非直接 import 构造

依赖关系图（→ 表示依赖）:
  install → registry
  publish → registry
  signing 为独立实例

Config 注入:
  容器接受可选 Config 参数，将配置显式传递给各服务。
  若不提供，则使用全局 get_config() 作为后备。

用法:
    container = ServiceContainer(cwd=".")
    container.install.install(["com.example.foo"])   # 懒加载
    container.signing.verify("com.example.foo")
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from qpm.core.config import Config
    from qpm.services.install_service import InstallService
    from qpm.services.publish_service import PublishService
    from qpm.services.registry import RegistryClient
    from qpm.services.signing_service import SigningService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器 - 每个实例持有一组共享的服务"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        cwd: str | Path = ".",
        registry: RegistryClient | None = None,
    ) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from qpm.core.config import get_config
            config = get_config()
        self._config = config
        self.cwd = Path(cwd)
        if registry is not None:
            self._instances["registry"] = registry

    @property
    def config(self) -> Config:
        return self._config

    @property
    def registry(self) -> RegistryClient:
        if "registry" not in self._instances:
            from qpm.services.registry import HttpRegistryClient
            self._instances["registry"] = HttpRegistryClient(
                self._config.registry_url, timeout=self._config.http_timeout,
            )
        return self._instances["registry"]  # type: ignore[return-value]

    @property
    def install(self) -> InstallService:
        if "install" not in self._instances:
            from qpm.services.install_service import InstallService
            self._instances["install"] = InstallService(
                self.registry, root=self.cwd, config=self._config,
            )
        return self._instances["install"]  # type: ignore[return-value]

    @property
    def signing(self) -> SigningService:
        if "signing" not in self._instances:
            from qpm.services.signing_service import SigningService
            self._instances["signing"] = SigningService(config=self._config)
        return self._instances["signing"]  # type: ignore[return-value]

    @property
    def publish(self) -> PublishService:
        if "publish" not in self._instances:
            from qpm.services.publish_service import PublishService
            self._instances["publish"] = PublishService(
                cwd=self.cwd, config=self._config, registry=self.registry,
            )
        return self._instances["publish"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def set_container(container: ServiceContainer) -> None:
    """替换全局容器（CLI 入口按配置文件初始化，测试注入 fake）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = container


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
