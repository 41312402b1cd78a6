"""qpm 日志配置

命令结果写 stdout，日志一律写 stderr。两种格式:
  - 文本: 终端交互使用，DEBUG 级别时附带 logger 名称
  - JSON: 每条一行，供 CI 收集（QPM_LOG_JSON=1）
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO

_TEXT_FORMAT = "%(levelname)s: %(message)s"
_DEBUG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# 日志调用 extra= 中允许透传到 JSON 输出的字段
_EXTRA_FIELDS = ("package", "revision", "command")


class JSONFormatter(logging.Formatter):
    """单行 JSON 格式器

    固定字段: time / level / logger / message；
    有异常时追加 exception，extra 中的 package / revision / command 原样带出。
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def parse_level(level: str | int) -> int:
    """日志级别名（大小写不敏感）或数值，无法识别时回退到 WARNING"""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.WARNING


def setup_logging(
    level: str | int = "WARNING",
    json_output: bool = False,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """替换根日志器的 handler，返回新装的 handler"""
    numeric = parse_level(level)
    reset_logging()

    handler = logging.StreamHandler(stream or sys.stderr)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_DEBUG_FORMAT if numeric <= logging.DEBUG else _TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(numeric)
    root.addHandler(handler)
    return handler


def reset_logging() -> None:
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
