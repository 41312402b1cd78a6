"""核心数据模型定义

集中定义仓库描述、版本锁定、依赖条目和包清单，供各层复用。
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from qpm.core.exceptions import ConfigError, PackageNotFound, UnsupportedRepository, ValidationError
from qpm.utils.yaml_io import atomic_write

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_FILE = "qpm.json"

_NAME_RE = re.compile(r"^[A-Za-z0-9_\-]+(\.[A-Za-z0-9_\-]+)*$")
_LABEL_RE = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+")
_AUTHOR_RE = re.compile(r"^[\w\s'.\-]+$")
_EMAIL_RE = re.compile(r".+@.+\..+")

_MANIFEST_KEYS = frozenset((
    "name", "description", "version", "author", "dependencies", "repository", "license", "webpage",
))


# =========================================================================
# 仓库描述
# =========================================================================

class RepoKind(Enum):
    """仓库类型"""

    AUTO = "AUTO"
    GITHUB = "GITHUB"
    GIT = "GIT"
    MERCURIAL = "MERCURIAL"

    @classmethod
    def parse(cls, value: Any) -> RepoKind:
        """按名称（大小写不敏感）或旧版整数编码解析"""
        if isinstance(value, RepoKind):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            legacy = {0: cls.AUTO, 1: cls.GITHUB, 2: cls.GIT, 3: cls.MERCURIAL}
            if value in legacy:
                return legacy[value]
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise UnsupportedRepository(f"不支持的仓库类型: {value!r}")


@dataclass(frozen=True)
class RepositoryDescriptor:
    """仓库描述 - 从清单读取后不可变"""

    kind: RepoKind = RepoKind.GITHUB
    url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RepositoryDescriptor:
        data = data or {}
        return cls(kind=RepoKind.parse(data.get("type", "GITHUB")), url=data.get("url", ""))

    def to_dict(self) -> dict[str, str]:
        return {"type": self.kind.value, "url": self.url}

    def resolved(self, cwd: str | Path = ".") -> RepositoryDescriptor:
        """AUTO 类型通过探测工作目录解析一次"""
        if self.kind is not RepoKind.AUTO:
            return self
        return RepositoryDescriptor(kind=detect_repo_kind(cwd), url=self.url)


def detect_repo_kind(path: str | Path = ".") -> RepoKind:
    """通过 .git / .hg 标记探测本地工作目录的仓库类型"""
    root = Path(path)
    if (root / ".git").exists():
        return RepoKind.GIT
    if (root / ".hg").exists():
        return RepoKind.MERCURIAL
    raise ConfigError(f"无法自动识别仓库类型: {root.resolve()} 下没有 .git 或 .hg")


# =========================================================================
# 版本 / 依赖
# =========================================================================

@dataclass
class VersionPin:
    """版本锁定 - label 供人阅读，revision 保证安装可复现"""

    label: str = ""
    revision: str = ""
    fingerprint: str = ""      # 签名密钥指纹（hex，20 字节），仅签名/校验需要

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> VersionPin:
        data = data or {}
        return cls(
            label=str(data.get("label", "")),
            revision=str(data.get("revision", "")),
            fingerprint=str(data.get("fingerprint", "")),
        )

    def to_dict(self) -> dict[str, str]:
        result = {"label": self.label, "revision": self.revision}
        if self.fingerprint:
            result["fingerprint"] = self.fingerprint
        return result


@dataclass
class DependencyEntry:
    """依赖条目，序列化为 name@label，唯一性只按 name 判定"""

    name: str
    version: VersionPin = field(default_factory=VersionPin)

    def __post_init__(self) -> None:
        self.name = self.name.strip().lower()

    @classmethod
    def parse(cls, text: str) -> DependencyEntry:
        name, _, label = text.strip().partition("@")
        if not name:
            raise ValidationError(f"无效的依赖声明: {text!r}")
        return cls(name=name, version=VersionPin(label=label.lower()))

    @property
    def signature(self) -> str:
        if self.version.label:
            return f"{self.name}@{self.version.label}"
        return self.name


@dataclass
class Author:
    name: str = ""
    email: str = ""


# =========================================================================
# 包清单
# =========================================================================

@dataclass
class PackageManifest:
    """包清单 (qpm.json)"""

    name: str = ""
    description: str = ""
    version: VersionPin = field(default_factory=VersionPin)
    author: Author = field(default_factory=Author)
    dependencies: list[str] = field(default_factory=list)
    repository: RepositoryDescriptor = field(default_factory=RepositoryDescriptor)
    license: str = "MIT"
    webpage: str = ""
    # 其它顶层字段（如 pri_filename）原样保留，写回时不丢失
    extra: dict[str, Any] = field(default_factory=dict)

    # 清单文件位置（不序列化）
    path: Path | None = field(default=None, compare=False, repr=False)

    @classmethod
    def load(cls, directory: str | Path = ".", file_name: str = DEFAULT_PACKAGE_FILE) -> PackageManifest:
        """从目录加载清单文件

        Raises:
            PackageNotFound: 清单文件不存在
            ValidationError: JSON 格式错误
        """
        path = Path(directory) / file_name
        if not path.is_file():
            raise PackageNotFound(f"未找到 {file_name}: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise ValidationError(f"{path} 不是合法 JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError(f"{path} 内容必须是 JSON 对象")
        manifest = cls.from_dict(data)
        manifest.path = path
        return manifest

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PackageManifest:
        author = data.get("author") or {}
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
            version=VersionPin.from_dict(data.get("version")),
            author=Author(name=author.get("name", ""), email=author.get("email", "")),
            dependencies=[str(d) for d in data.get("dependencies") or []],
            repository=RepositoryDescriptor.from_dict(data.get("repository")),
            license=str(data.get("license", "MIT")),
            webpage=str(data.get("webpage", "")),
            extra={k: v for k, v in data.items() if k not in _MANIFEST_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "version": self.version.to_dict(),
            "author": {"name": self.author.name, "email": self.author.email},
            "dependencies": list(self.dependencies),
            "repository": self.repository.to_dict(),
            "license": self.license,
        }
        if self.webpage:
            result["webpage"] = self.webpage
        for key, value in self.extra.items():
            result.setdefault(key, value)
        return result

    def save(self, path: str | Path | None = None) -> Path:
        """原子写回清单文件"""
        target = Path(path) if path is not None else self.path
        if target is None:
            target = Path(DEFAULT_PACKAGE_FILE)
        atomic_write(target, json.dumps(self.to_dict(), indent=2, ensure_ascii=False) + "\n")
        self.path = target
        logger.info("清单已保存: %s", target)
        return target

    @property
    def root_dir(self) -> Path:
        return self.path.parent if self.path is not None else Path(".")

    def namespace_path(self) -> Path:
        """包命名空间对应的相对路径: com.example.foo -> com/example/foo"""
        if not _NAME_RE.match(self.name):
            raise ValidationError(f"包名不能映射为目录: {self.name!r}")
        return Path(*self.name.split("."))

    def dependency_signature(self) -> str:
        return f"{self.name}@{self.version.label}"

    def dependency_entries(self) -> list[DependencyEntry]:
        from qpm.core.dependencies import parse_dependency_list
        return parse_dependency_list(self.dependencies)

    def set_dependency_entries(self, entries: list[DependencyEntry]) -> None:
        self.dependencies = [e.signature for e in entries]

    def validate(self) -> None:
        """校验发布所需字段

        Raises:
            ValidationError: details 中列出全部不合规字段
        """
        errors: list[str] = []
        if not self.name:
            errors.append("name 为必填字段")
        elif not _NAME_RE.match(self.name):
            errors.append("name 格式不正确")
        if not self.version.label:
            errors.append("version.label 为必填字段")
        elif not _LABEL_RE.match(self.version.label):
            errors.append("version.label 格式不正确")
        if not self.version.revision:
            errors.append("version.revision 为必填字段")
        if not _AUTHOR_RE.match(self.author.name):
            errors.append("author.name 格式不正确")
        if not _EMAIL_RE.match(self.author.email):
            errors.append("author.email 格式不正确")
        if errors:
            raise ValidationError(f"清单校验失败: {'; '.join(errors)}", details=errors)
