"""InstallService 单元测试（注册中心与安装器均为替身）"""

from __future__ import annotations

import json

import pytest

from qpm.core.config import Config
from qpm.core.exceptions import InstallAborted, PackageNotFound
from qpm.core.models import PackageManifest, RepoKind, RepositoryDescriptor, VersionPin
from qpm.services.install_service import InstallService
from qpm.services.registry import (
    ADVISORY_ERROR,
    ADVISORY_INFO,
    ADVISORY_WARNING,
    Advisory,
    Dependency,
    DependencyResponse,
)


class FakeRegistry:
    def __init__(self, response: DependencyResponse) -> None:
        self.response = response
        self.requests: list[tuple[list[str], str]] = []

    def get_dependencies(self, names, license=""):
        self.requests.append((list(names), license))
        return self.response

    def get_license(self, license_id):
        return ""

    def publish(self, manifest, token):
        raise AssertionError("不应调用")


class FakeInstaller:
    """把清单直接写进 vendor/<命名空间>，记录安装顺序"""

    def __init__(self, log: list[str]) -> None:
        self.log = log

    def install(self, repository, pin, vendor_dir):
        name = repository.url.rsplit("/", 1)[-1]
        manifest = PackageManifest(name=name, version=VersionPin(pin.label, pin.revision), repository=repository)
        dest = vendor_dir / manifest.namespace_path()
        dest.mkdir(parents=True, exist_ok=True)
        manifest.save(dest / "qpm.json")
        self.log.append(name)
        return manifest


def dep(name: str, label: str = "1.0.0") -> Dependency:
    return Dependency(
        name=name,
        version=VersionPin(label, "rev-" + name),
        repository=RepositoryDescriptor(kind=RepoKind.GIT, url=f"https://example.com/{name}"),
    )


def make_service(tmp_path, response: DependencyResponse, log: list[str] | None = None, **kwargs) -> InstallService:
    log = log if log is not None else []
    factory_calls: list[RepositoryDescriptor] = []

    def factory(repository, *, config):
        factory_calls.append(repository)
        return FakeInstaller(log)

    svc = InstallService(FakeRegistry(response), root=tmp_path, config=Config(), installer_factory=factory, **kwargs)
    svc.factory_calls = factory_calls  # type: ignore[attr-defined]
    return svc


def write_root(tmp_path, dependencies: list[str], license: str = "MIT") -> None:
    (tmp_path / "qpm.json").write_text(json.dumps({
        "name": "com.example.app",
        "version": {"label": "0.1.0"},
        "dependencies": dependencies,
        "license": license,
    }), encoding="utf-8")


def root_deps(tmp_path) -> list[str]:
    return json.loads((tmp_path / "qpm.json").read_text())["dependencies"]


class TestInstall:
    def test_install_named_without_root_manifest(self, tmp_path) -> None:
        response = DependencyResponse(dependencies=[dep("com.example.foo"), dep("com.example.bar")])
        log: list[str] = []
        report = make_service(tmp_path, response, log).install(["com.example.foo"])

        assert log == ["com.example.foo", "com.example.bar"]
        assert [p.name for p in report.installed] == ["com.example.foo", "com.example.bar"]
        assert report.manifest_path == tmp_path / "qpm.json"
        assert root_deps(tmp_path) == ["com.example.foo@1.0.0", "com.example.bar@1.0.0"]
        assert (tmp_path / "vendor" / "com" / "example" / "bar" / "qpm.json").is_file()

    def test_install_all_declared(self, tmp_path) -> None:
        write_root(tmp_path, ["com.example.foo@1.0.0"], license="GPL")
        svc = make_service(tmp_path, DependencyResponse(dependencies=[dep("com.example.foo")]))
        report = svc.install()
        assert svc.registry.requests == [(["com.example.foo@1.0.0"], "GPL")]
        assert report.warnings == []
        assert root_deps(tmp_path) == ["com.example.foo@1.0.0"]

    def test_install_all_requires_manifest(self, tmp_path) -> None:
        with pytest.raises(PackageNotFound):
            make_service(tmp_path, DependencyResponse()).install()

    def test_version_change_replaces_with_warning(self, tmp_path) -> None:
        write_root(tmp_path, ["com.example.foo@0.9.0", "com.example.other@2.0.0"])
        report = make_service(tmp_path, DependencyResponse(dependencies=[dep("com.example.foo", "1.0.0")])).install(
            ["com.example.foo"],
        )
        assert len(report.warnings) == 1
        assert "0.9.0" in report.warnings[0]
        assert root_deps(tmp_path) == ["com.example.foo@1.0.0", "com.example.other@2.0.0"]

    def test_repeat_install_is_idempotent(self, tmp_path) -> None:
        response = DependencyResponse(dependencies=[dep("com.example.foo")])
        make_service(tmp_path, response).install(["com.example.foo"])
        first = (tmp_path / "qpm.json").read_text()
        make_service(tmp_path, response).install(["com.example.foo"])
        assert (tmp_path / "qpm.json").read_text() == first

    def test_nothing_found(self, tmp_path) -> None:
        report = make_service(tmp_path, DependencyResponse()).install(["com.example.none"])
        assert report.installed == []
        assert not (tmp_path / "qpm.json").exists()

    def test_installer_failure_leaves_manifest_untouched(self, tmp_path) -> None:
        write_root(tmp_path, ["com.example.keep@1.0.0"])
        before = (tmp_path / "qpm.json").read_text()

        def factory(repository, *, config):
            raise PackageNotFound("boom")

        svc = InstallService(
            FakeRegistry(DependencyResponse(dependencies=[dep("com.example.foo")])),
            root=tmp_path, config=Config(), installer_factory=factory,
        )
        with pytest.raises(PackageNotFound):
            svc.install(["com.example.foo"])
        assert (tmp_path / "qpm.json").read_text() == before


class TestAdvisories:
    def test_info_and_warning_logged(self, tmp_path, caplog) -> None:
        response = DependencyResponse(
            dependencies=[dep("com.example.foo")],
            messages=[
                Advisory(type=ADVISORY_INFO, title="提示", body="新版本可用"),
                Advisory(type=ADVISORY_WARNING, body="许可证不兼容"),
            ],
        )
        with caplog.at_level("INFO"):
            make_service(tmp_path, response).install(["com.example.foo"])
        assert "新版本可用" in caplog.text
        assert "许可证不兼容" in caplog.text

    def test_error_aborts_before_install(self, tmp_path) -> None:
        log: list[str] = []
        response = DependencyResponse(
            dependencies=[dep("com.example.foo")],
            messages=[Advisory(type=ADVISORY_ERROR, title="拒绝", body="包已下架")],
        )
        with pytest.raises(InstallAborted, match="包已下架"):
            make_service(tmp_path, response, log).install(["com.example.foo"])
        assert log == []

    def test_prompt_without_confirm_aborts(self, tmp_path) -> None:
        response = DependencyResponse(
            dependencies=[dep("com.example.foo")],
            messages=[Advisory(type=ADVISORY_WARNING, title="许可证", body="GPL", prompt=True)],
        )
        with pytest.raises(InstallAborted):
            make_service(tmp_path, response).install(["com.example.foo"])

    def test_prompt_confirmed(self, tmp_path) -> None:
        seen: list[Advisory] = []

        def confirm(msg: Advisory) -> bool:
            seen.append(msg)
            return True

        response = DependencyResponse(
            dependencies=[dep("com.example.foo")],
            messages=[Advisory(type=ADVISORY_WARNING, title="许可证", body="GPL", prompt=True)],
        )
        report = make_service(tmp_path, response).install(["com.example.foo"], confirm=confirm)
        assert len(seen) == 1
        assert len(report.installed) == 1

    def test_prompt_declined(self, tmp_path) -> None:
        response = DependencyResponse(
            dependencies=[dep("com.example.foo")],
            messages=[Advisory(type=ADVISORY_WARNING, body="GPL", prompt=True)],
        )
        svc = make_service(tmp_path, response, confirm=lambda msg: False)
        with pytest.raises(InstallAborted):
            svc.install(["com.example.foo"])


class TestUninstall:
    def test_uninstall_removes_dir_and_entry(self, tmp_path) -> None:
        response = DependencyResponse(dependencies=[dep("com.example.foo"), dep("com.other.bar")])
        svc = make_service(tmp_path, response)
        svc.install(["com.example.foo", "com.other.bar"])

        removed = svc.uninstall("Com.Example.Foo")
        assert removed == tmp_path / "vendor" / "com" / "example" / "foo"
        assert not (tmp_path / "vendor" / "com" / "example").exists()
        assert (tmp_path / "vendor" / "com" / "other" / "bar").is_dir()
        assert root_deps(tmp_path) == ["com.other.bar@1.0.0"]

    def test_uninstall_not_installed(self, tmp_path) -> None:
        with pytest.raises(PackageNotFound):
            make_service(tmp_path, DependencyResponse()).uninstall("com.example.none")

    def test_uninstall_without_root_manifest(self, tmp_path) -> None:
        pkg = tmp_path / "vendor" / "com" / "example" / "foo"
        pkg.mkdir(parents=True)
        (pkg / "qpm.json").write_text("{}")
        make_service(tmp_path, DependencyResponse()).uninstall("com.example.foo")
        assert not (tmp_path / "vendor" / "com").exists()
        assert (tmp_path / "vendor").is_dir()
        assert not (tmp_path / "qpm.json").exists()
