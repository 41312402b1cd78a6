"""统一异常体系

所有业务异常继承 QpmError，替代散落的 ValueError / RuntimeError。
CLI 层据此输出 "ERROR:" 前缀的友好提示并以非零状态码退出。

分类:
  - 配置类: ConfigError / ValidationError         -> 致命，不重试
  - 来源类: VCSToolMissing / NetworkError / ...    -> 致命，回退策略只在选择器中体现
  - 签名类: SignatureError 及其子类                 -> 致命，绝不降级为警告
"""

from __future__ import annotations


class QpmError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(QpmError):
    """配置缺失或内容无效（环境变量、指纹格式、清单必填字段）"""

    code = "CONFIG_ERROR"


class ValidationError(QpmError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class PackageNotFound(QpmError):
    """包或清单文件不存在"""

    code = "NOT_FOUND"


class UnsupportedRepository(QpmError):
    """不支持的仓库类型或地址"""

    code = "UNSUPPORTED_REPOSITORY"


class VCSToolMissing(QpmError):
    """本地 VCS 工具（git / hg）不可用"""

    code = "VCS_TOOL_MISSING"


class ExecutionError(QpmError):
    """子进程执行失败"""

    code = "EXECUTION_ERROR"

    def __init__(self, message: str, returncode: int = 1, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class CommandTimeout(ExecutionError):
    """子进程超时"""

    code = "TIMEOUT"


class NetworkError(QpmError):
    """HTTP 下载或注册中心请求失败"""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class ExtractError(QpmError):
    """归档解压失败"""

    code = "EXTRACT_ERROR"


class NotPublished(QpmError):
    """提交尚未推送到任何远端分支"""

    code = "NOT_PUBLISHED"


class InstallAborted(QpmError):
    """注册中心返回错误提示，或用户拒绝继续"""

    code = "ABORTED"


# =========================================================================
# 密钥与签名
# =========================================================================

class KeyNotFound(QpmError):
    """密钥环中找不到指定指纹的密钥"""

    code = "KEY_NOT_FOUND"


class KeyDecryptError(QpmError):
    """私钥已加密且无法解密"""

    code = "KEY_DECRYPT_ERROR"


class SignatureError(QpmError):
    """签名校验失败基类"""

    code = "SIGNATURE_ERROR"


class MalformedSignature(SignatureError):
    code = "MALFORMED_SIGNATURE"


class UnsupportedHashAlgorithm(SignatureError):
    code = "UNSUPPORTED_HASH"


class UnsupportedSignatureType(SignatureError):
    code = "UNSUPPORTED_SIGNATURE_TYPE"


class UnsupportedKeyAlgorithm(SignatureError):
    code = "UNSUPPORTED_KEY_ALGORITHM"


class SignatureMismatch(SignatureError):
    code = "SIGNATURE_MISMATCH"
