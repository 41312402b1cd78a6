"""qpm 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
业务异常统一在 group 层转换为 "ERROR: ..." 输出和非零退出码。
"""

import os
from typing import Any

import click

from qpm import __version__
from qpm.core.config import DEFAULT_CONFIG_FILE, init_config
from qpm.core.exceptions import QpmError
from qpm.services.container import ServiceContainer, get_container, set_container
from qpm.utils.logger import setup_logging

EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


def _passphrase_prompt(fingerprint: str) -> str:
    """交互式读取私钥口令（不回显）"""
    return click.prompt(
        f"私钥口令 ({fingerprint[-16:]})", hide_input=True,
        default="", show_default=False,
    )


class QpmGroup(click.Group):
    """把 QpmError / OSError 转换为 ERROR 提示，用户中断以 130 退出且不写任何状态"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except (QpmError, OSError) as e:
            click.echo(f"ERROR: {e}", err=True)
            raise click.exceptions.Exit(EXIT_ERROR) from e
        except (KeyboardInterrupt, click.exceptions.Abort) as e:
            click.echo("已中断", err=True)
            raise click.exceptions.Exit(EXIT_INTERRUPTED) from e


@click.group(cls=QpmGroup)
@click.version_option(version=__version__)
def main() -> None:
    """qpm - 包获取与完整性校验客户端"""
    setup_logging(
        level=os.getenv("QPM_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("QPM_LOG_JSON", "") == "1",
    )
    config = init_config(os.getenv("QPM_CONFIG", DEFAULT_CONFIG_FILE))
    set_container(ServiceContainer(config, cwd=os.getcwd()))


# 注册各领域子命令
from qpm.cli.cmd_install import register as _reg_install  # noqa: E402
from qpm.cli.cmd_sign import register as _reg_sign  # noqa: E402
from qpm.cli.cmd_publish import register as _reg_publish  # noqa: E402

_reg_install(main)
_reg_sign(main)
_reg_publish(main)
