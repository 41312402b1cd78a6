"""Git / Mercurial 提供者单元测试（fake CommandExecutor，不依赖真实 VCS 工具）"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from qpm.core.exceptions import (
    CommandTimeout,
    ConfigError,
    ExecutionError,
    NotPublished,
    ValidationError,
    VCSToolMissing,
)
from qpm.core.models import RepoKind, RepositoryDescriptor, VersionPin
from qpm.services.vcs import GitProvider, MercurialProvider
from qpm.utils.shell import CommandResult

Handler = Callable[[list[str], str], CommandResult]


class ScriptedExecutor:
    """按命令前缀匹配预设结果，记录所有调用"""

    def __init__(self, rules: list[tuple[list[str], Handler | CommandResult]] | None = None) -> None:
        self.rules = rules or []
        self.calls: list[tuple[list[str], str]] = []

    def on(self, prefix: list[str], result: Handler | CommandResult) -> ScriptedExecutor:
        self.rules.append((prefix, result))
        return self

    def execute(self, cmd, *, cwd=".", env=None, timeout=None) -> CommandResult:
        cmd = list(cmd)
        self.calls.append((cmd, cwd))
        for prefix, result in self.rules:
            if cmd[:len(prefix)] == prefix:
                return result(cmd, cwd) if callable(result) else result
        return CommandResult(1, "", f"unexpected command: {cmd}")


class MissingToolExecutor:
    def execute(self, cmd, *, cwd=".", env=None, timeout=None) -> CommandResult:
        raise FileNotFoundError(cmd[0])


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(0, stdout, "")


def fail(stderr: str = "error") -> CommandResult:
    return CommandResult(1, "", stderr)


def write_package(dest: Path, name: str = "com.example.foo", label: str = "1.0.0", revision: str = "") -> None:
    dest.mkdir(parents=True, exist_ok=True)
    (dest / "qpm.json").write_text(json.dumps({
        "name": name,
        "version": {"label": label, "revision": revision},
        "author": {"name": "Jane", "email": "jane@example.com"},
        "repository": {"type": "GIT", "url": "https://github.com/example/foo.git"},
    }), encoding="utf-8")
    (dest / "Foo.qml").write_text("Item {}", encoding="utf-8")


def fake_clone(cmd: list[str], cwd: str) -> CommandResult:
    write_package(Path(cmd[-1]))
    return ok()


GIT_REPO = RepositoryDescriptor(kind=RepoKind.GIT, url="https://github.com/example/foo.git")
HG_REPO = RepositoryDescriptor(kind=RepoKind.MERCURIAL, url="https://hg.example.com/foo")


class TestGitInstall:
    def test_install_into_namespace_path(self, tmp_path) -> None:
        ex = ScriptedExecutor().on(["git", "clone"], fake_clone).on(["git", "checkout"], ok())
        vendor = tmp_path / "vendor"
        pkg = GitProvider(executor=ex).install(GIT_REPO, VersionPin("1.0.0", "abc123"), vendor)

        dest = vendor / "com" / "example" / "foo"
        assert pkg.path == dest / "qpm.json"
        assert pkg.version.revision == "abc123"
        # 清单按检出内容原样保留，revision 不回写磁盘
        write_package(tmp_path / "fetched")
        assert (dest / "qpm.json").read_bytes() == (tmp_path / "fetched" / "qpm.json").read_bytes()
        # 暂存目录已清理
        assert [p.name for p in vendor.iterdir()] == ["com"]

    def test_checkout_runs_in_clone(self, tmp_path) -> None:
        ex = ScriptedExecutor().on(["git", "clone"], fake_clone).on(["git", "checkout"], ok())
        GitProvider(executor=ex).install(GIT_REPO, VersionPin("1.0.0", "abc123"), tmp_path / "vendor")
        checkout_cmd, cwd = ex.calls[1]
        assert checkout_cmd == ["git", "checkout", "abc123"]
        assert Path(cwd).name == "checkout"

    def test_existing_destination_replaced(self, tmp_path) -> None:
        vendor = tmp_path / "vendor"
        stale = vendor / "com" / "example" / "foo"
        stale.mkdir(parents=True)
        (stale / "old.txt").write_text("stale")
        ex = ScriptedExecutor().on(["git", "clone"], fake_clone).on(["git", "checkout"], ok())
        GitProvider(executor=ex).install(GIT_REPO, VersionPin("1.0.0", "abc123"), vendor)
        assert not (stale / "old.txt").exists()
        assert (stale / "Foo.qml").exists()

    def test_checkout_failure_cleans_staging(self, tmp_path) -> None:
        ex = ScriptedExecutor().on(["git", "clone"], fake_clone).on(["git", "checkout"], fail("bad rev"))
        vendor = tmp_path / "vendor"
        with pytest.raises(ExecutionError, match="bad rev"):
            GitProvider(executor=ex).install(GIT_REPO, VersionPin("1.0.0", "abc123"), vendor)
        assert list(vendor.iterdir()) == []

    def test_missing_revision(self, tmp_path) -> None:
        with pytest.raises(ValidationError):
            GitProvider(executor=ScriptedExecutor()).install(GIT_REPO, VersionPin("1.0.0"), tmp_path)

    def test_missing_git(self, tmp_path) -> None:
        with pytest.raises(VCSToolMissing):
            GitProvider(executor=MissingToolExecutor()).install(GIT_REPO, VersionPin("1", "abc"), tmp_path)

    def test_timeout_propagates(self, tmp_path) -> None:
        def hang(cmd, cwd):
            raise CommandTimeout("命令超时 (1s)")

        ex = ScriptedExecutor().on(["git", "clone"], hang)
        with pytest.raises(CommandTimeout):
            GitProvider(executor=ex, timeout=1).install(GIT_REPO, VersionPin("1", "abc"), tmp_path / "v")


class TestGitPublisher:
    LS_REMOTE = (
        "1111111111111111111111111111111111111111\tHEAD\n"
        "1111111111111111111111111111111111111111\trefs/heads/master\n"
        "2222222222222222222222222222222222222222\trefs/heads/release\n"
    )

    def test_remote_heads(self) -> None:
        ex = ScriptedExecutor().on(["git", "ls-remote"], ok(self.LS_REMOTE))
        heads = GitProvider(executor=ex).remote_heads()
        assert heads["refs/heads/release"] == "2" * 40
        assert len(heads) == 3

    def test_validate_commit_ancestor_of_any_head(self) -> None:
        def ancestor(cmd, cwd):
            return ok() if cmd[-1] == "2" * 40 else fail()

        ex = (ScriptedExecutor()
              .on(["git", "ls-remote"], ok(self.LS_REMOTE))
              .on(["git", "merge-base", "--is-ancestor"], ancestor))
        GitProvider(executor=ex).validate_commit("deadbeef01")

    def test_validate_commit_not_published(self) -> None:
        ex = (ScriptedExecutor()
              .on(["git", "ls-remote"], ok(self.LS_REMOTE))
              .on(["git", "merge-base"], fail()))
        with pytest.raises(NotPublished, match="deadbeef"):
            GitProvider(executor=ex).validate_commit("deadbeef01")
        merge_calls = [c for c, _ in ex.calls if c[1] == "merge-base"]
        assert {c[-1] for c in merge_calls} == {"1" * 40, "2" * 40}

    def test_validate_commit_no_remotes(self) -> None:
        ex = ScriptedExecutor().on(["git", "ls-remote"], ok(""))
        with pytest.raises(NotPublished):
            GitProvider(executor=ex).validate_commit("deadbeef01")

    def test_file_list_nul_separated(self) -> None:
        ex = ScriptedExecutor().on(["git", "ls-files", "-z"], ok("qpm.json\0src/a b.qml\0"))
        assert GitProvider(executor=ex).repository_file_list() == ["qpm.json", "src/a b.qml"]

    def test_last_commit_info(self) -> None:
        ex = (ScriptedExecutor()
              .on(["git", "rev-parse", "HEAD"], ok("abc123\n"))
              .on(["git", "log", "-1", "--format=%an"], ok("Jane Doe\n"))
              .on(["git", "log", "-1", "--format=%ae"], ok("jane@example.com\n")))
        git = GitProvider(executor=ex)
        assert git.last_commit_revision() == "abc123"
        assert git.last_commit_author_name() == "Jane Doe"
        assert git.last_commit_email() == "jane@example.com"

    def test_repository_url_missing(self) -> None:
        ex = ScriptedExecutor().on(["git", "config"], fail())
        with pytest.raises(ConfigError):
            GitProvider(executor=ex).repository_url()

    def test_create_tag(self) -> None:
        ex = ScriptedExecutor().on(["git", "tag"], ok())
        GitProvider(executor=ex, cwd="/work").create_tag("1.0.0")
        assert ex.calls == [(["git", "tag", "1.0.0"], "/work")]

    def test_version_check(self) -> None:
        GitProvider(executor=ScriptedExecutor().on(["git", "version"], ok("git version 2.43"))).test()
        with pytest.raises(VCSToolMissing):
            GitProvider(executor=ScriptedExecutor().on(["git", "version"], fail())).test()
        with pytest.raises(VCSToolMissing):
            GitProvider(executor=MissingToolExecutor()).test()


class TestMercurial:
    def test_install(self, tmp_path) -> None:
        ex = ScriptedExecutor().on(["hg", "clone", "-r", "cafe01"], fake_clone)
        vendor = tmp_path / "vendor"
        pkg = MercurialProvider(executor=ex).install(HG_REPO, VersionPin("1.0.0", "cafe01"), vendor)
        assert pkg.root_dir == vendor / "com" / "example" / "foo"
        assert ex.calls[0][0][-2] == HG_REPO.url

    def test_validate_commit_uses_identify(self) -> None:
        ex = (ScriptedExecutor()
              .on(["hg", "paths", "default"], ok("https://hg.example.com/foo\n"))
              .on(["hg", "identify", "https://hg.example.com/foo", "-r", "cafe01"], ok("cafe01\n")))
        MercurialProvider(executor=ex).validate_commit("cafe01")

    def test_validate_commit_unknown_changeset(self) -> None:
        ex = (ScriptedExecutor()
              .on(["hg", "paths", "default"], ok("https://hg.example.com/foo\n"))
              .on(["hg", "identify"], fail("abort: unknown revision")))
        with pytest.raises(NotPublished):
            MercurialProvider(executor=ex).validate_commit("cafe01")

    def test_log_templates(self) -> None:
        ex = (ScriptedExecutor()
              .on(["hg", "log", "--template", "{node}"], ok("cafe01"))
              .on(["hg", "log", "--template", "{author|person}"], ok("Jane"))
              .on(["hg", "log", "--template", "{author|email}"], ok("jane@example.com")))
        hg = MercurialProvider(executor=ex)
        assert (hg.last_commit_revision(), hg.last_commit_author_name(), hg.last_commit_email()) == (
            "cafe01", "Jane", "jane@example.com",
        )

    def test_file_list(self) -> None:
        ex = ScriptedExecutor().on(["hg", "locate"], ok("qpm.json\nsrc/Foo.qml\n"))
        assert MercurialProvider(executor=ex).repository_file_list() == ["qpm.json", "src/Foo.qml"]
