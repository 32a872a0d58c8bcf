"""
Pytest 配置文件

为测试设置 Python 路径，并提供不访问网络的传输替身与
Java 异常响应构造工具
"""

import io
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

# 添加项目根目录到 Python 路径
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from rmiprobe.config import ProbeConfig
from rmiprobe.protocol.constants import RETURN_EXCEPTIONAL, RETURN_NORMAL
from rmiprobe.protocol.dispatcher import RMIDispatcher
from rmiprobe.serialization import JavaObject, ObjectOutputStream, new_class_desc, new_object
from rmiprobe.serialization.constants import SC_SERIALIZABLE, SC_WRITE_METHOD

THROWABLE = "java.lang.Throwable"
REMOTE_EXCEPTION = "java.rmi.RemoteException"

# 常见 Java 异常的类层次（从具体到一般）
EXCEPTION_HIERARCHIES = {
    "java.lang.Throwable": [],
    "java.lang.Exception": ["java.lang.Throwable"],
    "java.io.IOException": ["java.lang.Exception"],
    "java.lang.RuntimeException": ["java.lang.Exception"],
    "java.rmi.RemoteException": ["java.io.IOException"],
    "java.rmi.ServerException": ["java.rmi.RemoteException"],
    "java.rmi.UnmarshalException": ["java.rmi.RemoteException"],
    "java.rmi.AccessException": ["java.rmi.RemoteException"],
    "java.rmi.NoSuchObjectException": ["java.rmi.RemoteException"],
    "java.rmi.NotBoundException": ["java.lang.Exception"],
    "java.rmi.AlreadyBoundException": ["java.lang.Exception"],
    "java.lang.ReflectiveOperationException": ["java.lang.Exception"],
    "java.lang.ClassNotFoundException": ["java.lang.ReflectiveOperationException"],
    "java.lang.ClassCastException": ["java.lang.RuntimeException"],
    "java.lang.IllegalArgumentException": ["java.lang.RuntimeException"],
    "java.lang.UnsupportedOperationException": ["java.lang.RuntimeException"],
    "java.lang.SecurityException": ["java.lang.RuntimeException"],
    "java.security.AccessControlException": ["java.lang.SecurityException"],
    "java.io.ObjectStreamException": ["java.io.IOException"],
    "java.io.InvalidClassException": ["java.io.ObjectStreamException"],
    "java.net.MalformedURLException": ["java.io.IOException"],
    "java.lang.Error": ["java.lang.Throwable"],
    "java.lang.LinkageError": ["java.lang.Error"],
    "java.lang.ClassFormatError": ["java.lang.LinkageError"],
}


def _exception_desc(class_name: str):
    parents = EXCEPTION_HIERARCHIES.get(class_name, ["java.lang.Exception"])
    super_desc = _exception_desc(parents[0]) if parents else None
    if class_name == THROWABLE:
        return new_class_desc(
            THROWABLE,
            -3042686055658047285,
            flags=SC_SERIALIZABLE | SC_WRITE_METHOD,
            fields=[("L", "detailMessage", "Ljava/lang/String;"), ("L", "cause", "Ljava/lang/Throwable;")],
        )
    if class_name == REMOTE_EXCEPTION:
        return new_class_desc(
            REMOTE_EXCEPTION,
            -5148567311918794206,
            fields=[("L", "detail", "Ljava/lang/Throwable;")],
            super_desc=super_desc,
        )
    return new_class_desc(class_name, 1, super_desc=super_desc)


def java_exception(class_name: str, message: Optional[str] = None, cause: Optional[JavaObject] = None) -> JavaObject:
    """
    构造 Java 异常对象

    RemoteException 家族把嵌套异常保存在 detail 字段中；其他异常保存在
    Throwable.cause 中，没有原因时 cause 指向自身（与 JDK 一致）。
    """
    desc = _exception_desc(class_name)
    is_remote = desc.is_subclass_of(REMOTE_EXCEPTION)
    values = {THROWABLE: {"detailMessage": message, "cause": None}}
    if is_remote:
        values[REMOTE_EXCEPTION] = {"detail": cause}
    obj = new_object(desc, values)
    if not is_remote:
        obj.data_for(THROWABLE).values["cause"] = cause if cause is not None else obj
    return obj


def return_stream(value: Any = None, exception: Optional[JavaObject] = None, primitive: Optional[str] = None) -> bytes:
    """构造 ReturnData 之后的返回流（流头 + 返回类型 + UID + 返回值或异常）"""
    out = ObjectOutputStream()
    out.write_stream_header()
    out.write_byte(RETURN_EXCEPTIONAL if exception is not None else RETURN_NORMAL)
    out.write_bytes(bytes(14))
    if exception is not None:
        out.write_object(exception)
    elif primitive is not None:
        out.write_primitive(primitive, value)
    elif value is not None:
        out.write_object(value)
    return out.to_bytes()


def server_exception(root: JavaObject, wrapper: str = "java.rmi.ServerException") -> JavaObject:
    """服务端把调用中发生的异常包装为 ServerException"""
    return java_exception(wrapper, "RemoteException occurred in server thread", root)


def unmarshal_failure(root: JavaObject) -> JavaObject:
    """参数反序列化失败：ServerException -> UnmarshalException -> root"""
    return server_exception(java_exception("java.rmi.UnmarshalException", "error unmarshalling arguments", root))


class FakeTransport:
    """
    传输替身

    按顺序返回预置的响应，并记录发送的调用字节。
    响应可以是 bytes，也可以是 Exception（发送时抛出）。
    """

    def __init__(self, responses: Sequence[Any] = ()):
        self.responses: List[Any] = list(responses)
        self.sent: List[bytes] = []
        self.invalidated = 0
        self.closed = False

    def queue(self, *responses: Any) -> "FakeTransport":
        self.responses.extend(responses)
        return self

    def send_call(self, payload: bytes):
        self.sent.append(payload)
        if not self.responses:
            raise AssertionError("unexpected call: no response queued")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return io.BytesIO(response)

    def invalidate(self) -> None:
        self.invalidated += 1

    def close(self) -> None:
        self.closed = True


# ==================== Fixtures ====================

@pytest.fixture
def fake_transport() -> FakeTransport:
    """空的传输替身"""
    return FakeTransport()


@pytest.fixture
def dispatcher(fake_transport) -> RMIDispatcher:
    return RMIDispatcher(fake_transport)


@pytest.fixture
def probe_config() -> ProbeConfig:
    return ProbeConfig()


@pytest.fixture
def exception_response() -> Callable[..., bytes]:
    """异常响应工厂：exception_response("java.lang.ClassCastException", "msg")"""
    def _create(class_name: str, message: Optional[str] = None, wrap: bool = True) -> bytes:
        root = java_exception(class_name, message)
        return return_stream(exception=unmarshal_failure(root) if wrap else root)
    return _create


@pytest.fixture
def reset_rmiprobe_logger():
    """测试结束后恢复 rmiprobe 日志器（移除处理器并恢复向上传播）"""
    root = logging.getLogger("rmiprobe")
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
    root.propagate = True


@pytest.fixture
def temp_dir(tmp_path):
    """临时目录"""
    dir_path = tmp_path / "test_dir"
    dir_path.mkdir()
    return dir_path


# ==================== 标记注册 ====================

def pytest_configure(config):
    """注册自定义标记"""
    config.addinivalue_line("markers", "unit: 单元测试")
    config.addinivalue_line("markers", "integration: 集成测试")
    config.addinivalue_line("markers", "network: 需要网络的测试")


# ==================== Pytest Hooks ====================

def pytest_runtest_setup(item):
    """测试运行前检查"""
    if item.get_closest_marker("network"):
        if os.environ.get("SKIP_NETWORK_TESTS", "").lower() == "true":
            pytest.skip("Network tests are disabled")
