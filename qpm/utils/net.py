"""网络工具 - URL 安全校验、文件下载、JSON 请求

HTTP 状态码 >= 400 时按结构化错误体解析 {"message": ...}，
以 NetworkError 携带上游消息抛出，而非泛化失败。
"""

from __future__ import annotations

import json
import logging
import http.client
import shutil
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from qpm import __version__
from qpm.core.exceptions import NetworkError, ValidationError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))

USER_AGENT = f"qpm/{__version__}"


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


def error_message(err: urllib.error.HTTPError) -> str:
    """从 HTTP 错误响应体中提取上游消息，缺省回退到状态描述"""
    try:
        body = err.read()
    except OSError:
        body = b""
    try:
        data = json.loads(body.decode("utf-8")) if body else {}
    except (UnicodeDecodeError, ValueError):
        data = {}
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"{err.code} {err.reason}"


def download(
    url: str, dest: Path, *,
    timeout: int = 60,
    headers: dict[str, str] | None = None,
) -> Path:
    """流式下载 URL 到本地文件，失败时删除不完整的目标文件"""
    validate_url_scheme(url, context="download")
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, **(headers or {})})
    dest.parent.mkdir(parents=True, exist_ok=True)
    logger.info("  下载: %s -> %s", url, dest)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp, open(dest, "wb") as f:  # nosec B310
            shutil.copyfileobj(resp, f)
    except urllib.error.HTTPError as e:
        dest.unlink(missing_ok=True)
        raise NetworkError(f"获取 {url} 失败: {error_message(e)}", status=e.code) from e
    except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
        dest.unlink(missing_ok=True)
        reason = getattr(e, "reason", e)
        raise NetworkError(f"获取 {url} 失败: {reason}") from e
    except http.client.HTTPException as e:
        # 响应体被截断 (IncompleteRead) 或服务端协议错误
        dest.unlink(missing_ok=True)
        raise NetworkError(f"获取 {url} 失败: {type(e).__name__}: {e}") from e
    return dest


def request_json(
    url: str, *,
    payload: dict[str, Any] | None = None,
    timeout: int = 60,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """发送 JSON 请求（有 payload 时为 POST），返回解析后的字典"""
    validate_url_scheme(url, context="registry")
    data = None
    all_headers = {"User-Agent": USER_AGENT, "Accept": "application/json", **(headers or {})}
    if payload is not None:
        data = json.dumps(payload).encode("utf-8")
        all_headers["Content-Type"] = "application/json"
    req = urllib.request.Request(url, data=data, headers=all_headers)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:  # nosec B310
            body = resp.read()
    except urllib.error.HTTPError as e:
        raise NetworkError(f"请求 {url} 失败: {error_message(e)}", status=e.code) from e
    except (urllib.error.URLError, TimeoutError, ConnectionError) as e:
        reason = getattr(e, "reason", e)
        raise NetworkError(f"请求 {url} 失败: {reason}") from e
    except http.client.HTTPException as e:
        raise NetworkError(f"请求 {url} 失败: {type(e).__name__}: {e}") from e

    if not body:
        return {}
    try:
        result = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise NetworkError(f"响应不是合法 JSON: {url}") from e
    if not isinstance(result, dict):
        raise NetworkError(f"响应不是 JSON 对象: {url}")
    return result
