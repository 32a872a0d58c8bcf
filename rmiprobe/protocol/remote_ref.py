"""
远程引用

解析远程桩对象中的 UnicastRef / UnicastRef2 引用（端点、ObjID、
客户端套接字工厂），以及构造指向任意端点的 RMIServerImpl_Stub。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from rmiprobe.exceptions import ProtocolError, SerializationError
from rmiprobe.serialization import BlockData, JavaObject, new_class_desc, new_object
from rmiprobe.serialization.constants import SC_SERIALIZABLE, SC_WRITE_METHOD
from rmiprobe.serialization.writer import ObjectOutputStream

from .objid import ObjID

REMOTE_OBJECT_CLASS = "java.rmi.server.RemoteObject"
REMOTE_STUB_CLASS = "java.rmi.server.RemoteStub"
RMI_SERVER_STUB_CLASS = "javax.management.remote.rmi.RMIServerImpl_Stub"
SSL_SOCKET_FACTORY_CLASS = "javax.rmi.ssl.SslRMIClientSocketFactory"

REMOTE_OBJECT_SUID = -3215090123894869218
REMOTE_STUB_SUID = -1585587260594494182
RMI_SERVER_STUB_SUID = 2

# TCPEndpoint 的写出格式
FORMAT_HOST_PORT = 0
FORMAT_HOST_PORT_FACTORY = 1


@dataclass(frozen=True)
class Endpoint:
    """远程对象监听的端点"""

    host: str
    port: int
    csf_class: Optional[str] = None

    @property
    def tls(self) -> str:
        """是否使用 TLS: yes / no / unknown（自定义套接字工厂）"""
        if self.csf_class is None:
            return "no"
        if self.csf_class == SSL_SOCKET_FACTORY_CLASS:
            return "yes"
        return "unknown"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class UnicastRefInfo:
    """UnicastRef 中的信息"""

    ref_type: str
    endpoint: Endpoint
    obj_id: ObjID
    is_result_stream: bool = False


def find_remote_object_data(stub: JavaObject) -> Optional[Any]:
    """
    找到保存 RemoteObject 引用注解的类数据

    普通桩对象自身继承 RemoteObject；动态代理桩对象的引用保存在
    其 InvocationHandler（RemoteObjectInvocationHandler）中。
    """
    data = stub.data_for(REMOTE_OBJECT_CLASS)
    if data is not None:
        return data
    if stub.desc.is_proxy:
        handler = stub.get("h")
        if isinstance(handler, JavaObject):
            return handler.data_for(REMOTE_OBJECT_CLASS)
    return None


def parse_unicast_ref(stub: JavaObject) -> UnicastRefInfo:
    """
    从桩对象中解析 UnicastRef / UnicastRef2

    Raises:
        ProtocolError: 对象不包含可识别的远程引用
    """
    data = find_remote_object_data(stub)
    if data is None:
        raise ProtocolError(f"{stub.class_name} does not carry a RemoteObject reference")

    cursor = data.cursor()
    try:
        ref_type = cursor.read_utf()
        if ref_type == "UnicastRef":
            host = cursor.read_utf()
            port = cursor.read_int()
            csf_class = None
        elif ref_type == "UnicastRef2":
            fmt = cursor.read_byte()
            host = cursor.read_utf()
            port = cursor.read_int()
            csf_class = None
            if fmt == FORMAT_HOST_PORT_FACTORY:
                csf = cursor.read_object()
                if isinstance(csf, JavaObject):
                    csf_class = csf.class_name
            elif fmt != FORMAT_HOST_PORT:
                raise ProtocolError(f"unknown endpoint format {fmt}")
        else:
            raise ProtocolError(f"unsupported reference type {ref_type or '<serialized object>'!r}")

        obj_id = ObjID.read_from(cursor)
        is_result_stream = cursor.read_boolean()
    except SerializationError as e:
        raise ProtocolError(f"Malformed remote reference in {stub.class_name}: {e.message}", cause=e) from e

    return UnicastRefInfo(ref_type, Endpoint(host, port, csf_class), obj_id, is_result_stream)


def build_rmi_server_stub(host: str, port: int, obj_id: Optional[ObjID] = None) -> JavaObject:
    """
    构造指向指定端点的 javax.management.remote.rmi.RMIServerImpl_Stub

    绑定到注册中心后，客户端查找该名称会连接到 host:port。
    """
    obj_id = obj_id or ObjID(0)

    ref = ObjectOutputStream()
    ref.write_utf("UnicastRef")
    ref.write_utf(host)
    ref.write_int(port)
    obj_id.write_to(ref)
    ref.write_boolean(False)
    block = ref.pending_block()

    remote_object = new_class_desc(REMOTE_OBJECT_CLASS, REMOTE_OBJECT_SUID, flags=SC_SERIALIZABLE | SC_WRITE_METHOD)
    remote_stub = new_class_desc(REMOTE_STUB_CLASS, REMOTE_STUB_SUID, super_desc=remote_object)
    stub = new_class_desc(RMI_SERVER_STUB_CLASS, RMI_SERVER_STUB_SUID, super_desc=remote_stub)
    return new_object(stub, annotations={REMOTE_OBJECT_CLASS: [BlockData(block)]})


__all__ = [
    "Endpoint",
    "UnicastRefInfo",
    "find_remote_object_data",
    "parse_unicast_ref",
    "build_rmi_server_stub",
]
