"""qpm - 包获取与完整性校验客户端"""

__version__ = "0.11.0"
