"""CLI - 签名、校验、密钥生成、内容摘要"""

from __future__ import annotations

from pathlib import Path

import click

from qpm.cli import _passphrase_prompt, _svc


def register(group: click.Group) -> None:
    group.add_command(sign_cmd)
    group.add_command(verify_cmd)
    group.add_command(keygen)
    group.add_command(hash_cmd)


@click.command(name="sign")
def sign_cmd() -> None:
    """用清单中指纹对应的私钥为当前包签名"""
    svc = _svc()
    result = svc.signing.sign(svc.cwd, passphrase_provider=_passphrase_prompt)
    click.echo(f"内容摘要 SHA-256: {result.digest}")
    click.echo(f"签名已写入: {result.signature_path}")


@click.command(name="verify")
@click.argument("target", default=".")
def verify_cmd(target: str) -> None:
    """校验目录或已安装包的签名"""
    svc = _svc()
    result = svc.signing.verify(target, svc.cwd)
    click.echo(f"签名有效: {result.package or target} (key={result.fingerprint})")


@click.command()
@click.argument("user_id")
@click.option("--passphrase/--no-passphrase", default=True, help="是否用口令保护私钥")
@click.option("--output-dir", default=None, help="密钥环目录（默认取 GNUPGHOME）")
def keygen(user_id: str, passphrase: bool, output_dir: str | None) -> None:
    """生成 Ed25519 签名密钥并追加到本地密钥环"""
    from qpm.core.pgp import generate_key

    svc = _svc()
    secret = None
    if passphrase:
        secret = click.prompt("私钥口令", hide_input=True, confirmation_prompt=True)
    key = generate_key(user_id, passphrase=secret)

    ring_dir = Path(output_dir or svc.config.keyring_dir())
    ring_dir.mkdir(parents=True, exist_ok=True)
    for file_name, data in (
        (svc.config.secring_file, key.secret_binary),
        (svc.config.pubring_file, key.public_binary),
    ):
        with open(ring_dir / file_name, "ab") as f:
            f.write(data)
    click.echo(f"密钥已生成: {key.fingerprint}")
    click.echo("在 qpm.json 的 version.fingerprint 中填写该指纹以启用签名")


@click.command(name="hash")
@click.argument("directory", default=".")
def hash_cmd(directory: str) -> None:
    """计算目录树的内容摘要（排除 VCS 目录和签名文件）"""
    from qpm.core.hasher import hash_tree

    click.echo(hash_tree(directory, signature_file=_svc().config.signature_file))
