"""
RMIProbe 异常辅助函数

提供将标准库异常包装为自定义异常的工具。
"""

from __future__ import annotations

import socket
import ssl
from typing import Optional, Type

from .base import RMIProbeError
from .transport import ConnectionClosed, ConnectionFailed, TransportError, TransportTimeout


def wrap_exception(
    exc: BaseException,
    wrapper_class: Type[RMIProbeError] = RMIProbeError,
    message: Optional[str] = None,
    **kwargs,
) -> RMIProbeError:
    """
    将标准异常包装为自定义异常

    如果传入的异常已经是 RMIProbeError 类型，直接返回。

    参数:
        exc: 原始异常
        wrapper_class: 包装使用的异常类
        message: 自定义错误消息，为None时使用原始异常的消息
        **kwargs: 传递给包装类构造函数的额外参数（如 host/port）

    返回:
        RMIProbeError 类型的异常

    示例:
        >>> try:
        ...     sock.connect((host, port))
        ... except OSError as e:
        ...     raise wrap_exception(e, ConnectionFailed, host=host, port=port)
    """
    if isinstance(exc, RMIProbeError):
        return exc

    error_message = message or str(exc) or type(exc).__name__
    details = kwargs.pop("details", None) or {}
    details.setdefault("original_type", type(exc).__name__)
    return wrapper_class(error_message, cause=exc, details=details, **kwargs)


def classify_socket_error(exc: BaseException) -> Type[TransportError]:
    """
    根据套接字异常类型选择对应的传输错误类

    参数:
        exc: socket / ssl 抛出的原始异常

    返回:
        TransportError 子类
    """
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return TransportTimeout
    if isinstance(exc, (ConnectionResetError, BrokenPipeError, ConnectionAbortedError)):
        return ConnectionClosed
    if isinstance(exc, (ConnectionRefusedError, ssl.SSLError, socket.gaierror)):
        return ConnectionFailed
    return TransportError


__all__ = [
    "wrap_exception",
    "classify_socket_error",
]
