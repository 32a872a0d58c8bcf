"""
远程对象包装与重复对象归并测试
"""

import io

import pytest

from rmiprobe.exceptions import ProtocolError
from rmiprobe.objects import UNKNOWN_CLASS_MARKER, KnownClasses, RemoteObjectWrapper
from rmiprobe.protocol import Endpoint, ObjID, build_rmi_server_stub, parse_unicast_ref
from rmiprobe.protocol.objid import UID
from rmiprobe.protocol.remote_ref import REMOTE_OBJECT_CLASS, REMOTE_OBJECT_SUID, SSL_SOCKET_FACTORY_CLASS
from rmiprobe.serialization import (
    BlockData,
    JavaClassDesc,
    MarshalOutputStream,
    ObjectOutputStream,
    ObjectStreamReader,
    new_class_desc,
    new_object,
    plain_object,
)
from rmiprobe.serialization.constants import SC_SERIALIZABLE, SC_WRITE_METHOD

pytestmark = [pytest.mark.unit]


def transfer(obj):
    """经过一次 RMI 编组与反序列化"""
    out = MarshalOutputStream()
    out.write_stream_header()
    out.write_object(obj)
    reader = ObjectStreamReader(io.BytesIO(out.to_bytes()))
    reader.read_stream_header()
    return reader.read_object()


def unicast_ref2(host: str, port: int, csf=None, obj_num: int = 42) -> list:
    block = ObjectOutputStream()
    block.write_utf("UnicastRef2")
    block.write_byte(1 if csf is not None else 0)
    block.write_utf(host)
    block.write_int(port)
    items = [BlockData(block.pending_block())]
    if csf is not None:
        items.append(csf)
    tail = ObjectOutputStream()
    ObjID(obj_num, UID(1, 2, 3)).write_to(tail)
    tail.write_boolean(False)
    items.append(BlockData(tail.pending_block()))
    return items


def proxy_stub(interface: str, annotations: list):
    """动态代理桩：Proxy.h 为 RemoteObjectInvocationHandler"""
    remote_object = new_class_desc(REMOTE_OBJECT_CLASS, REMOTE_OBJECT_SUID, flags=SC_SERIALIZABLE | SC_WRITE_METHOD)
    handler_desc = new_class_desc("java.rmi.server.RemoteObjectInvocationHandler", 2, super_desc=remote_object)
    handler = new_object(handler_desc, annotations={REMOTE_OBJECT_CLASS: annotations})

    proxy_base = new_class_desc(
        "java.lang.reflect.Proxy", -2222568056686623797, fields=[("L", "h", "Ljava/lang/reflect/InvocationHandler;")]
    )
    desc = JavaClassDesc(name=None, flags=SC_SERIALIZABLE, super_desc=proxy_base, interfaces=[interface, "java.rmi.Remote"])
    return new_object(desc, {"java.lang.reflect.Proxy": {"h": handler}})


class TestRemoteRefs:
    """测试远程引用解析"""

    def test_unicast_ref(self):
        ref = parse_unicast_ref(transfer(build_rmi_server_stub("10.0.0.1", 4444, ObjID(9, UID(5, 6, 7)))))
        assert ref.ref_type == "UnicastRef"
        assert ref.endpoint == Endpoint("10.0.0.1", 4444)
        assert ref.obj_id == ObjID(9, UID(5, 6, 7))
        assert ref.endpoint.tls == "no"

    def test_unicast_ref2_with_ssl_factory(self):
        stub = proxy_stub("com.example.Service", unicast_ref2("10.0.0.2", 5555, plain_object(SSL_SOCKET_FACTORY_CLASS)))
        ref = parse_unicast_ref(transfer(stub))
        assert ref.ref_type == "UnicastRef2"
        assert ref.endpoint.csf_class == SSL_SOCKET_FACTORY_CLASS
        assert ref.endpoint.tls == "yes"
        assert ref.obj_id.obj_num == 42

    def test_custom_factory(self):
        stub = proxy_stub("com.example.Service", unicast_ref2("10.0.0.2", 5555, plain_object("com.example.Factory")))
        assert parse_unicast_ref(transfer(stub)).endpoint.tls == "unknown"

    def test_missing_reference(self):
        with pytest.raises(ProtocolError):
            parse_unicast_ref(plain_object("com.example.NotAStub"))

    def test_truncated_reference(self):
        remote_object = new_class_desc(REMOTE_OBJECT_CLASS, REMOTE_OBJECT_SUID, flags=SC_SERIALIZABLE | SC_WRITE_METHOD)
        block = ObjectOutputStream()
        block.write_utf("UnicastRef")
        broken = new_object(remote_object, annotations={REMOTE_OBJECT_CLASS: [BlockData(block.pending_block())]})
        with pytest.raises(ProtocolError):
            parse_unicast_ref(broken)


class TestRemoteObjectWrapper:
    """测试远程对象包装"""

    def test_from_stub(self):
        wrapper = RemoteObjectWrapper.from_stub(transfer(build_rmi_server_stub("10.0.0.1", 4444)), "jmxrmi")
        assert wrapper.bound_name == "jmxrmi"
        assert wrapper.class_name == "javax.management.remote.rmi.RMIServerImpl_Stub"
        assert wrapper.is_known
        assert wrapper.description == "JMX Server"
        assert wrapper.target == "10.0.0.1:4444"
        assert wrapper.ref_type == "UnicastRef"
        assert not wrapper.is_partial

    def test_proxy_uses_first_interface(self):
        stub = proxy_stub("com.example.Service", unicast_ref2("10.0.0.2", 5555))
        wrapper = RemoteObjectWrapper.from_stub(transfer(stub), "svc")
        assert wrapper.class_name == "com.example.Service"
        assert not wrapper.is_known
        assert wrapper.description == UNKNOWN_CLASS_MARKER
        assert wrapper.tls == "no"

    def test_partial_wrapper(self):
        wrapper = RemoteObjectWrapper(bound_name="broken")
        assert wrapper.is_partial
        assert wrapper.target is None
        assert wrapper.tls == "unknown"
        assert wrapper.to_dict()["endpoint"] is None

    def test_from_bound_names(self):
        wrappers = RemoteObjectWrapper.from_bound_names(["a", "b"])
        assert [w.bound_name for w in wrappers] == ["a", "b"]
        assert RemoteObjectWrapper.get_by_name("b", wrappers) is wrappers[1]
        assert RemoteObjectWrapper.get_by_name("c", wrappers + [None]) is None

    def test_to_dict(self):
        wrapper = RemoteObjectWrapper.from_stub(transfer(build_rmi_server_stub("10.0.0.1", 4444, ObjID(3))), "jmxrmi")
        data = wrapper.to_dict()
        assert data["endpoint"] == "10.0.0.1:4444"
        assert data["obj_id"] == "[0:0:0, 3]"
        assert data["known"] is True
        assert data["duplicates"] == []

    def test_known_classes(self):
        assert KnownClasses.is_known("sun.rmi.registry.RegistryImpl_Stub")
        assert KnownClasses.describe("java.rmi.activation.ActivationSystem") == "RMI Activation System"
        assert not KnownClasses.is_known(None)
        assert KnownClasses.describe("com.example.Service") is None


def wrapper(name: str, class_name: str, host: str = "10.0.0.1", port: int = 1099) -> RemoteObjectWrapper:
    return RemoteObjectWrapper(name, class_name, Endpoint(host, port), ObjID(1), "UnicastRef")


class TestDuplicates:
    """测试重复对象归并"""

    def test_grouping_by_class_name(self):
        wrappers = [
            wrapper("a", "com.example.A"),
            wrapper("b", "com.example.B"),
            wrapper("a2", "com.example.A", port=2000),
            wrapper("a3", "com.example.A", host="10.0.0.9"),
        ]
        unique = RemoteObjectWrapper.handle_duplicates(wrappers)
        assert [w.bound_name for w in unique] == ["a", "b"]
        assert unique[0].get_duplicate_bound_names() == ["a2", "a3"]
        assert RemoteObjectWrapper.list_has_duplicates(unique)
        assert not unique[1].has_duplicates()

    def test_conservation(self):
        """归并前后对象总数不变"""
        wrappers = [wrapper(str(i), f"com.example.C{i % 3}") for i in range(10)]
        unique = RemoteObjectWrapper.handle_duplicates(wrappers)
        assert len(unique) + sum(len(w.duplicates) for w in unique) == 10

    def test_idempotent(self):
        wrappers = [wrapper("a", "X"), wrapper("b", "X"), wrapper("c", "Y")]
        once = RemoteObjectWrapper.handle_duplicates(wrappers)
        twice = RemoteObjectWrapper.handle_duplicates(once)
        assert [w.bound_name for w in twice] == [w.bound_name for w in once]
        assert twice[0].get_duplicate_bound_names() == ["b"]

    def test_partial_wrappers_not_grouped(self):
        wrappers = [RemoteObjectWrapper(bound_name="x"), RemoteObjectWrapper(bound_name="y")]
        assert len(RemoteObjectWrapper.handle_duplicates(wrappers)) == 2

    def test_no_duplicates(self):
        unique = RemoteObjectWrapper.handle_duplicates([wrapper("a", "X"), wrapper("b", "Y")])
        assert not RemoteObjectWrapper.list_has_duplicates(unique)
