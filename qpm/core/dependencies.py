"""依赖列表合并

注册中心已在服务端完成版本解析，本地只做"后写覆盖"式合并:
  - 名称不存在: 追加
  - 名称存在且版本相同: 不变
  - 名称存在但版本不同: 原位替换并告警（非致命）
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from qpm.core.models import DependencyEntry

logger = logging.getLogger(__name__)

ADDED = "added"
UNCHANGED = "unchanged"
REPLACED = "replaced"


@dataclass
class MergeResult:
    entries: list[DependencyEntry] = field(default_factory=list)
    action: str = UNCHANGED
    warning: str = ""


def parse_dependency_list(items: list[str]) -> list[DependencyEntry]:
    """解析 name@version 列表；同名多次出现时保留首次位置、取最后的版本"""
    result: list[DependencyEntry] = []
    index: dict[str, int] = {}
    for item in items:
        if not item.strip():
            continue
        entry = DependencyEntry.parse(item)
        if entry.name in index:
            result[index[entry.name]] = entry
        else:
            index[entry.name] = len(result)
            result.append(entry)
    return result


def merge_dependency(existing: list[DependencyEntry], incoming: DependencyEntry) -> MergeResult:
    """把 incoming 合并进依赖列表，返回新列表（不修改入参）

    幂等: 对同一 incoming 连续合并两次与合并一次结果相同。
    """
    entries = list(existing)
    for i, entry in enumerate(entries):
        if entry.name != incoming.name:
            continue
        if entry.version.label == incoming.version.label:
            logger.info("已是依赖，无需变更: %s", incoming.signature)
            return MergeResult(entries=entries, action=UNCHANGED)
        warning = (
            f"依赖版本冲突: {incoming.name} {entry.version.label or '-'} -> "
            f"{incoming.version.label or '-'}，以新版本为准"
        )
        logger.warning(warning)
        entries[i] = incoming
        return MergeResult(entries=entries, action=REPLACED, warning=warning)

    entries.append(incoming)
    return MergeResult(entries=entries, action=ADDED)


def remove_dependency(existing: list[DependencyEntry], name: str) -> list[DependencyEntry]:
    key = name.strip().lower()
    return [e for e in existing if e.name != key]
