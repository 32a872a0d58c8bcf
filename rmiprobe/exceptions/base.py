"""
RMIProbe 基础异常类

定义核心异常基类 RMIProbeError 和配置相关异常。
"""

from __future__ import annotations

from typing import Any, Dict, Optional

# 端点信息单独展示，不在 Details 中重复
_ENDPOINT_KEYS = ("host", "port")


class RMIProbeError(Exception):
    """
    RMIProbe 基础异常类

    所有自定义异常的父类。异常可以携带出错的 RMI 端点（host/port）
    以及服务端返回的故障，便于在多目标枚举的报告中定位。
    注意: 远程服务端返回的 Java 异常不是 Python 异常，而是以
    RemoteFault 值的形式返回，见 rmiprobe.protocol.faults。

    属性:
        message: 错误消息
        code: 错误代码，默认为异常类名
        details: 额外的错误详情字典
        cause: 原始异常（支持异常链）
        host / port: 出错的端点，未知时为 None
        fault: 相关的 RemoteFault，没有时为 None

    示例:
        >>> raise RMIProbeError("handshake failed", host="192.168.1.1", port=1099)
    """

    fault: Any = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ):
        """
        初始化异常实例

        参数:
            message: 错误消息描述
            code: 错误代码，用于程序化处理。如果未指定，使用类名
            details: 附加的错误详情，如文件路径、流偏移等
            cause: 导致此异常的原始异常，用于异常链追踪
            host: 出错的目标主机
            port: 出错的目标端口
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.host = host
        self.port = port
        if host:
            self.details["host"] = host
        if port is not None:
            self.details["port"] = port

        if cause is not None:
            self.__cause__ = cause

    @property
    def target(self) -> Optional[str]:
        """host:port 形式的目标"""
        if self.host is None:
            return None
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        head = f"[{self.code}]"
        if self.target:
            head += f" {self.target}"
        parts = [f"{head} {self.message}"]
        extra = {key: value for key, value in self.details.items() if key not in _ENDPOINT_KEYS}
        if extra:
            parts.append(f"Details: {extra}")
        if self.cause:
            parts.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")
        return " | ".join(parts)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, target={self.target!r}, details={self.details!r})"

    def to_dict(self) -> Dict[str, Any]:
        """
        将异常转换为字典格式，写入 TargetReport

        RemoteFault 按其自身的 to_dict 展开，保留服务端的异常链。
        """
        result: Dict[str, Any] = {
            "error": self.code,
            "message": self.message,
            "target": self.target,
            "details": self.details,
        }
        if self.fault is not None:
            to_dict = getattr(self.fault, "to_dict", None)
            result["fault"] = to_dict() if callable(to_dict) else str(self.fault)
        if self.cause:
            result["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}
        return result


class ConfigError(RMIProbeError):
    """
    配置错误

    当配置值无效、词表路径不存在或不是目录、文件不可读时抛出。
    只中止受影响的加载操作。

    示例:
        >>> raise ConfigError("wordlist folder is not a directory", details={"path": "/tmp/x.txt"})
    """

    pass


class SignatureError(RMIProbeError):
    """
    方法签名解析错误

    当签名格式错误或引用了无法解析的类型时抛出。
    词表加载时该异常会被记录并跳过对应行，不会中止加载。

    属性:
        signature: 出错的原始签名
    """

    def __init__(self, message: str, signature: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.signature = signature
        if signature is not None:
            self.details["signature"] = signature


__all__ = [
    "RMIProbeError",
    "ConfigError",
    "SignatureError",
]
