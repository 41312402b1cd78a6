"""注册中心客户端

版本解析在服务端完成，客户端只消费请求/响应契约:
  - get_dependencies: 包名列表（+ 声明的许可证）-> 扁平依赖列表 + 提示消息
  - get_license:      许可证正文
  - publish:          已签名清单 + 会话 token

HttpRegistryClient 是基于 JSON over HTTP 的默认实现，测试中可替换为任意满足协议的对象。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

from qpm.core.models import PackageManifest, RepositoryDescriptor, VersionPin
from qpm.utils.net import request_json

logger = logging.getLogger(__name__)

ADVISORY_INFO = "INFO"
ADVISORY_WARNING = "WARNING"
ADVISORY_ERROR = "ERROR"


@dataclass
class Dependency:
    name: str
    version: VersionPin = field(default_factory=VersionPin)
    repository: RepositoryDescriptor = field(default_factory=RepositoryDescriptor)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dependency:
        return cls(
            name=str(data.get("name", "")).lower(),
            version=VersionPin.from_dict(data.get("version")),
            repository=RepositoryDescriptor.from_dict(data.get("repository")),
        )

    @property
    def signature(self) -> str:
        return f"{self.name}@{self.version.label}"


@dataclass
class Advisory:
    """服务端提示消息；prompt=True 表示继续前需要用户确认"""

    type: str = ADVISORY_INFO
    title: str = ""
    body: str = ""
    prompt: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Advisory:
        return cls(
            type=str(data.get("type", ADVISORY_INFO)).upper(),
            title=str(data.get("title", "")),
            body=str(data.get("body", "")),
            prompt=bool(data.get("prompt", False)),
        )


@dataclass
class DependencyResponse:
    dependencies: list[Dependency] = field(default_factory=list)
    messages: list[Advisory] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DependencyResponse:
        return cls(
            dependencies=[Dependency.from_dict(d) for d in data.get("dependencies") or []],
            messages=[Advisory.from_dict(m) for m in data.get("messages") or []],
        )


class RegistryClient(Protocol):
    def get_dependencies(self, names: list[str], license: str = "") -> DependencyResponse: ...

    def get_license(self, license_id: str) -> str: ...

    def publish(self, manifest: PackageManifest, token: str) -> None: ...


class HttpRegistryClient:
    """JSON over HTTP 注册中心客户端"""

    def __init__(self, base_url: str, *, timeout: int = 60) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def get_dependencies(self, names: list[str], license: str = "") -> DependencyResponse:
        payload = {"package_names": list(names), "license": license}
        data = request_json(f"{self.base_url}/dependencies", payload=payload, timeout=self.timeout)
        resp = DependencyResponse.from_dict(data)
        logger.info("注册中心返回 %d 个依赖", len(resp.dependencies))
        return resp

    def get_license(self, license_id: str) -> str:
        data = request_json(f"{self.base_url}/licenses/{quote(license_id)}", timeout=self.timeout)
        return str(data.get("body", ""))

    def publish(self, manifest: PackageManifest, token: str) -> None:
        request_json(
            f"{self.base_url}/packages",
            payload={"package": manifest.to_dict()},
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
        )
        logger.info("已发布: %s", manifest.dependency_signature())
