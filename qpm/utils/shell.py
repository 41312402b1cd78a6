"""Shell 命令执行工具 - 统一子进程调用

通过 CommandExecutor 协议抽象子进程执行，方便测试替换。
所有调用都带墙钟超时，网络 clone 卡死时不会拖住整个命令。
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlsplit

from qpm.core.exceptions import CommandTimeout, ExecutionError

logger = logging.getLogger(__name__)

# 紧随其后的参数是口令
_SECRET_FLAGS = frozenset(("--password", "--token"))


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 - 抽象子进程调用

    测试时可注入 fake 实现，无需 patch subprocess。
    可执行文件不存在时实现应抛 FileNotFoundError。
    """

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# VCS 子进程一律非交互、输出不本地化，避免卡在凭据提示或解析到翻译后的文本
NON_INTERACTIVE_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_ASKPASS": "",
    "HGPLAIN": "1",
    "LC_ALL": "C",
}


class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def __init__(self, base_env: dict[str, str] | None = None) -> None:
        self.base_env = dict(NON_INTERACTIVE_ENV if base_env is None else base_env)

    def _environ(self, env: dict[str, str] | None) -> dict[str, str]:
        merged = dict(os.environ)
        merged.update(self.base_env)
        if env:
            merged.update(env)
        return merged

    def execute(
        self,
        cmd: str | list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        timeout: int | None = None,
    ) -> CommandResult:
        args = shlex.split(cmd) if isinstance(cmd, str) else list(cmd)
        try:
            proc = subprocess.run(
                args, capture_output=True, cwd=cwd,
                env=self._environ(env), check=False, timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandTimeout(f"命令超时 ({timeout}s): {' '.join(redact_command(args))}") from e
        # 提交作者名等可能不是合法 UTF-8，按替换字符解码而不是整体失败
        return CommandResult(
            returncode=proc.returncode,
            stdout=proc.stdout.decode("utf-8", errors="replace"),
            stderr=proc.stderr.decode("utf-8", errors="replace"),
        )


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor


# =========================================================================
# 便捷函数
# =========================================================================

def run_cmd(
    args: list[str], *, cwd: str = ".",
    timeout: int | None = None,
    label: str = "cmd",
    executor: CommandExecutor | None = None,
) -> CommandResult:
    """执行命令，非零退出抛 ExecutionError

    Args:
        args: 参数列表
        cwd: 工作目录
        timeout: 超时秒数，超时抛 CommandTimeout
        label: 日志标签
        executor: 执行器，默认使用全局执行器
    """
    ex = executor or get_executor()
    logger.info("  %s: %s (cwd=%s)", label, " ".join(redact_command(args)), cwd)
    r = ex.execute(args, cwd=cwd, timeout=timeout)
    if not r.success:
        raise ExecutionError(
            f"{label}失败 (rc={r.returncode}): {r.stderr.strip()[:500]}",
            returncode=r.returncode, stderr=r.stderr,
        )
    return r


def redact_command(command: list[str]) -> list[str]:
    """日志输出前隐藏命令行中的口令和 URL 中的凭据"""
    redacted: list[str] = []
    skip_next = False
    for item in command:
        lower = item.lower()
        if skip_next:
            redacted.append("***")
            skip_next = False
            continue
        if lower in _SECRET_FLAGS:
            redacted.append(item)
            skip_next = True
            continue
        flag, sep, _ = item.partition("=")
        if sep and flag.lower() in _SECRET_FLAGS:
            redacted.append(f"{flag}=***")
            continue
        if "://" in item:
            parsed = urlsplit(item)
            if parsed.password:
                safe_netloc = parsed.netloc.replace(parsed.password, "***")
                redacted.append(item.replace(parsed.netloc, safe_netloc))
                continue
        redacted.append(item)
    return redacted
