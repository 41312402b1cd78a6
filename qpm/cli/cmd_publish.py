"""CLI - 发布、打 tag、清单检查"""

from __future__ import annotations

import click

from qpm.cli import _svc
from qpm.core.models import PackageManifest


def register(group: click.Group) -> None:
    group.add_command(publish)
    group.add_command(tag)
    group.add_command(check)
    group.add_command(info)


@click.command()
@click.option("--token", envvar="QPM_TOKEN", default=None, help="注册中心会话 token（也可用 QPM_TOKEN）")
def publish(token: str | None) -> None:
    """校验当前提交已推送后，把清单发布到注册中心"""
    if not token:
        token = click.prompt("token", hide_input=True)
    manifest = _svc().publish.publish(token)
    click.echo(f"已发布: {manifest.dependency_signature()} (revision={manifest.version.revision})")


@click.command()
def tag() -> None:
    """用清单中的版本 label 创建 VCS tag"""
    label = _svc().publish.tag()
    click.echo(f"已创建 tag: {label}")


@click.command()
def check() -> None:
    """检查当前目录的清单字段"""
    svc = _svc()
    manifest = PackageManifest.load(svc.cwd, svc.config.package_file)
    manifest.validate()
    manifest.namespace_path()
    click.echo("OK!")


@click.command()
def info() -> None:
    """显示当前检出目录最近一次提交的作者与远端地址"""
    checkout = _svc().publish.describe_checkout()
    click.echo(f"  author:     {checkout.author_name} <{checkout.author_email}>")
    click.echo(f"  repository: {checkout.repository_url}")
    click.echo(f"  revision:   {checkout.revision}")
