"""
RMIProbe 统一异常体系

异常层次结构:
RMIProbeError (基类)
├── ConfigError (配置错误)
├── SignatureError (方法签名解析错误)
├── TransportError (传输错误)
│   ├── ConnectionFailed
│   ├── ConnectionClosed
│   └── TransportTimeout
├── ProtocolError (协议错误)
│   └── SerializationError
└── ProbeError (探测错误)
    ├── PayloadError
    ├── RemoteCallError
    └── InternalError

远程服务端抛出的 Java 异常不在此层次结构中，它们以
rmiprobe.protocol.faults.RemoteFault 的形式作为调用结果返回。

使用示例:
    from rmiprobe.exceptions import ConfigError, TransportError, wrap_exception

    try:
        sock.connect((host, port))
    except OSError as e:
        raise wrap_exception(e, ConnectionFailed, host=host, port=port)
"""

from .base import ConfigError, RMIProbeError, SignatureError
from .probe import InternalError, PayloadError, ProbeError, RemoteCallError
from .transport import (
    ConnectionClosed,
    ConnectionFailed,
    ProtocolError,
    SerializationError,
    TransportError,
    TransportTimeout,
)
from .utils import classify_socket_error, wrap_exception

__all__ = [
    # 基类
    "RMIProbeError",
    "ConfigError",
    "SignatureError",
    # 传输错误
    "TransportError",
    "ConnectionFailed",
    "ConnectionClosed",
    "TransportTimeout",
    # 协议错误
    "ProtocolError",
    "SerializationError",
    # 探测错误
    "ProbeError",
    "PayloadError",
    "RemoteCallError",
    "InternalError",
    # 辅助函数
    "wrap_exception",
    "classify_socket_error",
]
