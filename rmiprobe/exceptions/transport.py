"""
RMIProbe 传输与协议异常

JRMP 连接、握手以及序列化流解析相关的错误类型定义。
"""

from __future__ import annotations

from typing import Any, Optional

from .base import RMIProbeError

# ============================================================================
# 传输错误
# ============================================================================


class TransportError(RMIProbeError):
    """
    传输错误基类

    连接被拒绝、被重置或超时。传输错误会中止当前目标剩余的所有探测，
    并且只报告一次，不会自动重试。

    由传输层抛出时携带 host/port，见 RMIProbeError.target。
    """

    pass


class ConnectionFailed(TransportError):
    """
    连接失败

    TCP 连接被拒绝、主机不可达或 TLS 握手失败时抛出。

    示例:
        >>> raise ConnectionFailed("Connection refused", host="10.0.0.5", port=1099)
    """

    pass


class ConnectionClosed(TransportError):
    """
    连接被关闭

    在一次交互过程中对端关闭或重置了连接。
    """

    pass


class TransportTimeout(TransportError):
    """连接或读取超时"""

    pass


# ============================================================================
# 协议错误
# ============================================================================


class ProtocolError(RMIProbeError):
    """
    协议错误

    对端返回了不符合 JRMP 规范的数据，或远程引用的内部字段无法读取
    （说明远程对象实现不兼容，调用方应将其视为不可用）。
    """

    pass


class SerializationError(ProtocolError):
    """
    序列化流错误

    Java 序列化流格式错误，或待写出的对象无法编码。

    属性:
        offset: 出错位置（读取时）
    """

    def __init__(self, message: str, offset: Optional[int] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.offset = offset
        if offset is not None:
            self.details["offset"] = offset


__all__ = [
    "TransportError",
    "ConnectionFailed",
    "ConnectionClosed",
    "TransportTimeout",
    "ProtocolError",
    "SerializationError",
]
