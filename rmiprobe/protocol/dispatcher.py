"""
远程调用分发

把 (对象标识, 调用地址, 参数) 编码为 JRMP 调用，发送后解析返回流。
服务端抛出的 Java 异常以 RemoteFault 形式放在 CallOutcome 中返回；
只有本地传输或协议错误才会抛出 Python 异常。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, FrozenSet, Optional, Set, Union

from rmiprobe.exceptions import ProtocolError, SerializationError, TransportError
from rmiprobe.serialization import NO_OVERRIDE, MarshalOutputStream, ObjectStreamReader

from .arguments import PRIMITIVE_CODES, MethodArguments
from .constants import HASH_CALL_INDEX, RETURN_EXCEPTIONAL, RETURN_NORMAL
from .faults import RemoteFault
from .objid import ObjID
from .transport import CallTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegacyCall:
    """旧式调用约定：调用序号 + 接口哈希（由服务端骨架分发）"""

    call_index: int
    interface_hash: int

    @property
    def op(self) -> int:
        return self.call_index

    @property
    def hash(self) -> int:
        return self.interface_hash


@dataclass(frozen=True)
class HashCall:
    """按方法哈希调用：调用序号固定为 -1"""

    method_hash: int

    @property
    def op(self) -> int:
        return HASH_CALL_INDEX

    @property
    def hash(self) -> int:
        return self.method_hash


CallAddress = Union[LegacyCall, HashCall]


@dataclass
class CallOutcome:
    """
    一次调用的结果

    属性:
        value: 正常返回时的返回值
        fault: 服务端异常（正常返回时为 None）
        codebases: 返回流中类描述携带的 codebase 注解
    """

    value: Any = None
    fault: Optional[RemoteFault] = None
    codebases: FrozenSet[str] = frozenset()

    @property
    def ok(self) -> bool:
        return self.fault is None

    @property
    def root_fault(self) -> Optional[RemoteFault]:
        return self.fault.root() if self.fault else None


class RMIDispatcher:
    """
    远程调用分发器

    示例:
        >>> dispatcher = RMIDispatcher(JRMPTransport("10.0.0.5", 1099))
        >>> outcome = dispatcher.call(REGISTRY_ID, LegacyCall(1, REGISTRY_INTERFACE_HASH),
        ...                           return_type="java.lang.String[]")
    """

    def __init__(self, transport: CallTransport):
        self.transport = transport
        # 所有返回流中出现过的 codebase
        self.codebases: Set[str] = set()

    def build_call(
        self,
        obj_id: ObjID,
        address: CallAddress,
        arguments: Optional[MethodArguments] = None,
        annotation: Any = None,
    ) -> bytes:
        """编码调用流（不含 Call 操作码）"""
        out = MarshalOutputStream(location=NO_OVERRIDE if annotation is None else annotation)
        out.write_stream_header()
        obj_id.write_to(out)
        out.write_int(address.op)
        out.write_long(address.hash)
        if arguments is not None:
            arguments.write_to(out)
        return out.to_bytes()

    def call(
        self,
        obj_id: ObjID,
        address: CallAddress,
        arguments: Optional[MethodArguments] = None,
        annotation: Any = None,
        return_type: Optional[str] = None,
    ) -> CallOutcome:
        """
        执行一次远程调用

        Args:
            obj_id: 目标对象标识
            address: 调用地址（LegacyCall 或 HashCall）
            arguments: 调用参数
            annotation: 覆盖所有类描述的 codebase 注解（字符串或对象），None 表示不覆盖
            return_type: 返回值的 Java 类型，None 或 void 时不读取返回值

        Returns:
            CallOutcome

        Raises:
            TransportError: 连接失败、关闭或超时
            ProtocolError: 返回流格式错误
            PayloadError: 参数中的 payload 无效
        """
        payload = self.build_call(obj_id, address, arguments, annotation)
        logger.debug(f"Dispatching call to {obj_id} (op={address.op}, hash={address.hash}, {len(payload)} bytes)")

        stream = self.transport.send_call(payload)
        try:
            outcome = self._read_return(stream, return_type)
        except SerializationError:
            self.transport.invalidate()
            raise
        except TransportError:
            self.transport.invalidate()
            raise

        if outcome.codebases:
            logger.debug(f"Server codebase annotations: {sorted(outcome.codebases)}")
            self.codebases.update(outcome.codebases)
        return outcome

    def _read_return(self, stream: Any, return_type: Optional[str]) -> CallOutcome:
        reader = ObjectStreamReader(stream)
        reader.read_stream_header()
        kind = reader.read_byte()
        reader.read_bytes(14)  # 服务端 UID

        if kind == RETURN_NORMAL:
            value = None
            if return_type is not None and return_type != "void":
                code = PRIMITIVE_CODES.get(return_type)
                value = reader.read_primitive(code) if code is not None else reader.read_object()
            return CallOutcome(value=value, codebases=frozenset(reader.codebases))

        if kind == RETURN_EXCEPTIONAL:
            exc = reader.read_object()
            fault = RemoteFault.from_java(exc)
            logger.debug(f"Server returned {fault.class_name} (root: {fault.root()})")
            return CallOutcome(fault=fault, codebases=frozenset(reader.codebases))

        self.transport.invalidate()
        raise ProtocolError(f"unknown return type 0x{kind & 0xFF:02x}")


__all__ = ["LegacyCall", "HashCall", "CallAddress", "CallOutcome", "RMIDispatcher"]
