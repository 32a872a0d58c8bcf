"""
JRMP 传输层

负责 TCP/TLS 连接、JRMP 流协议握手、Ping 存活检测以及
Call/ReturnData 操作的收发。上层只需提供调用字节并读取返回流。
"""

from __future__ import annotations

import logging
import socket
import ssl
import struct
from typing import BinaryIO, Optional, Protocol

from rmiprobe.exceptions import (
    ConnectionClosed,
    ProtocolError,
    TransportError,
    classify_socket_error,
    wrap_exception,
)
from utils.encoding import java_utf_decode, java_utf_encode

from .constants import (
    JRMI_MAGIC,
    JRMI_VERSION,
    OP_CALL,
    OP_PING,
    OP_PING_ACK,
    OP_RETURN_DATA,
    PROTOCOL_ACK,
    PROTOCOL_NACK,
    STREAM_PROTOCOL,
)

logger = logging.getLogger(__name__)


def socket_error(exc: OSError, host: str, port: int) -> TransportError:
    """把套接字异常转换为对应的 TransportError"""
    return wrap_exception(exc, classify_socket_error(exc), host=host, port=port)  # type: ignore[return-value]


class CallTransport(Protocol):
    """Dispatcher 依赖的传输接口"""

    def send_call(self, payload: bytes) -> BinaryIO:
        """发送 Call 操作（不含 0x50 操作码），返回定位在 ReturnData 之后的输入流"""
        ...

    def invalidate(self) -> None:
        """丢弃当前连接（返回流未被完整读取时调用）"""
        ...


class SocketReader:
    """
    套接字输入流

    read(n) 总是返回 n 个字节；连接关闭抛出 ConnectionClosed，
    套接字错误转换为对应的 TransportError。
    """

    def __init__(self, sock: socket.socket, host: str, port: int):
        self._sock = sock
        self._host = host
        self._port = port

    def read(self, size: int) -> bytes:
        chunks = []
        remaining = size
        while remaining > 0:
            try:
                chunk = self._sock.recv(remaining)
            except OSError as e:
                raise socket_error(e, self._host, self._port) from e
            if not chunk:
                raise ConnectionClosed(
                    f"Connection closed by {self._host}:{self._port}", host=self._host, port=self._port
                )
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)


class JRMPTransport:
    """
    JRMP 流协议连接

    同一目标的多次调用复用一个连接；复用前先发送 Ping 检测连接是否
    仍然可用（服务端在某些异常后会关闭连接），不可用时重新建立连接。

    示例:
        >>> with JRMPTransport("10.0.0.5", 1099) as transport:
        ...     stream = transport.send_call(call_bytes)
    """

    def __init__(
        self,
        host: str,
        port: int,
        use_ssl: bool = False,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.use_ssl = use_ssl
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._sock: Optional[socket.socket] = None
        self._reader: Optional[SocketReader] = None
        self._used = False
        self.server_endpoint: Optional[tuple] = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def __enter__(self) -> "JRMPTransport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ==================== 连接 ====================

    def connect(self) -> None:
        """
        建立连接并完成 JRMP 握手

        Raises:
            ConnectionFailed / TransportTimeout: 连接失败
            ProtocolError: 对端不是 JRMP 服务
        """
        self.close()
        logger.debug(f"Connecting to {self.host}:{self.port} (ssl={self.use_ssl})")
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        except OSError as e:
            raise socket_error(e, self.host, self.port) from e

        try:
            if self.use_ssl:
                sock = self._wrap_ssl(sock)
            sock.settimeout(self.read_timeout)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            sock.close()
            raise socket_error(e, self.host, self.port) from e

        self._sock = sock
        self._reader = SocketReader(sock, self.host, self.port)
        self._used = False
        try:
            self._handshake()
        except (TransportError, ProtocolError):
            self.close()
            raise

    def _wrap_ssl(self, sock: socket.socket) -> socket.socket:
        # RMI 服务普遍使用自签名证书，只做加密不做校验
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context.wrap_socket(sock, server_hostname=self.host)

    def _handshake(self) -> None:
        self._send(struct.pack(">IHB", JRMI_MAGIC, JRMI_VERSION, STREAM_PROTOCOL))

        ack = self._read(1)[0]
        if ack == PROTOCOL_NACK:
            raise ProtocolError("endpoint does not support the JRMP stream protocol", host=self.host, port=self.port)
        if ack != PROTOCOL_ACK:
            raise ProtocolError(f"unexpected handshake byte 0x{ack:02x}", host=self.host, port=self.port)

        length = struct.unpack(">H", self._read(2))[0]
        try:
            suggested_host = java_utf_decode(self._read(length))
        except ValueError as e:
            raise ProtocolError(f"invalid endpoint in handshake: {e}", host=self.host, port=self.port) from e
        suggested_port = struct.unpack(">i", self._read(4))[0]
        self.server_endpoint = (suggested_host, suggested_port)
        logger.debug(f"ProtocolAck from {self.host}:{self.port}, client endpoint {suggested_host}:{suggested_port}")

        self._send(java_utf_encode(suggested_host) + struct.pack(">i", 0))

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError as e:
                logger.debug(f"Error while closing connection to {self.host}:{self.port}: {e}")
        self._sock = None
        self._reader = None
        self._used = False

    def invalidate(self) -> None:
        self.close()

    # ==================== 收发 ====================

    def _send(self, data: bytes) -> None:
        if self._sock is None:
            raise ConnectionClosed("not connected", host=self.host, port=self.port)
        try:
            self._sock.sendall(data)
        except OSError as e:
            raise socket_error(e, self.host, self.port) from e

    def _read(self, size: int) -> bytes:
        if self._reader is None:
            raise ConnectionClosed("not connected", host=self.host, port=self.port)
        return self._reader.read(size)

    def ping(self) -> bool:
        """发送 Ping，连接可用时返回 True；不可用时关闭连接并返回 False"""
        if self._sock is None:
            return False
        try:
            self._send(bytes([OP_PING]))
            alive = self._read(1)[0] == OP_PING_ACK
        except TransportError as e:
            logger.debug(f"Ping to {self.host}:{self.port} failed: {e.message}")
            alive = False
        if not alive:
            self.close()
        return alive

    def send_call(self, payload: bytes) -> BinaryIO:
        """
        发送一次 Call 操作

        Args:
            payload: 调用的序列化流（以 ACED0005 开头）

        Returns:
            定位在返回流开头的输入流

        Raises:
            TransportError: 连接失败、关闭或超时
            ProtocolError: 对端返回了非 ReturnData 操作
        """
        if self._sock is None or (self._used and not self.ping()):
            self.connect()

        self._used = True
        self._send(bytes([OP_CALL]) + payload)

        op = self._read(1)[0]
        # 跳过残留的 PingAck
        while op == OP_PING_ACK:
            op = self._read(1)[0]
        if op != OP_RETURN_DATA:
            self.close()
            raise ProtocolError(f"unexpected transport op 0x{op:02x}", host=self.host, port=self.port)
        return self._reader  # type: ignore[return-value]


__all__ = ["CallTransport", "SocketReader", "JRMPTransport"]
