"""
RMIProbe 探测异常

探测器执行过程中由本地代码引发的错误。
"""

from __future__ import annotations

from typing import Any, Optional

from .base import RMIProbeError


class ProbeError(RMIProbeError):
    """
    探测错误基类

    属性:
        probe_name: 探测名称
    """

    def __init__(self, message: str, probe_name: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.probe_name = probe_name
        if probe_name:
            self.details["probe"] = probe_name


class PayloadError(ProbeError):
    """
    Payload错误

    当外部提供的 payload 对象无法生成或其序列化数据无效时抛出。

    示例:
        >>> raise PayloadError("payload stream lacks the ACED0005 header")
    """

    pass


class RemoteCallError(ProbeError):
    """
    远程调用失败

    需要返回值的操作（list、lookup）收到服务端异常时抛出。

    属性:
        fault: 服务端返回的 RemoteFault
    """

    def __init__(self, message: str, fault: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.fault = fault
        if fault is not None:
            self.details["fault"] = str(fault)


class InternalError(ProbeError):
    """
    内部错误

    程序错误（例如请求未知调用名的调用序号或方法哈希），
    立即终止当前操作，而不是返回部分结果。

    示例:
        >>> raise InternalError("Unable to find callID for method 'foo'", probe_name="get_call_by_name")
    """

    pass


__all__ = [
    "ProbeError",
    "PayloadError",
    "RemoteCallError",
    "InternalError",
]
