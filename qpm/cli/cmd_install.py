"""CLI - 依赖安装 / 卸载"""

from __future__ import annotations

import click

from qpm.cli import _svc
from qpm.services.registry import Advisory


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(uninstall)


def _confirm(advisory: Advisory) -> bool:
    return click.confirm(f"{advisory.title or advisory.type}: {advisory.body}\n是否继续?", default=False)


@click.command()
@click.argument("names", nargs=-1)
def install(names: tuple[str, ...]) -> None:
    """安装包（不指定包名则安装清单中的全部依赖）"""
    report = _svc().install.install(list(names), confirm=_confirm)
    if not report.installed:
        click.echo("没有找到可安装的包。")
        return
    for pkg in report.installed:
        click.echo(f"已安装: {pkg.dependency_signature()} -> {pkg.root_dir}")
    for warning in report.warnings:
        click.echo(f"WARNING: {warning}", err=True)


@click.command()
@click.argument("name")
def uninstall(name: str) -> None:
    """卸载已安装的包并从清单中移除"""
    target = _svc().install.uninstall(name)
    click.echo(f"已卸载: {name} ({target})")
