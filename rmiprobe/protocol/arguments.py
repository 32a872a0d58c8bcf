"""
远程调用参数

MethodArguments 是 (值, Java 类型) 的有序列表。原始类型参数写入数据块，
其他参数作为对象写出；PayloadObject 由外部提供完整序列化流，
写出时拼接到调用流中。
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Iterator, List, Tuple

from rmiprobe.exceptions import PayloadError, SerializationError
from rmiprobe.serialization import boolean, integer, long_value
from rmiprobe.serialization.writer import ObjectOutputStream

PRIMITIVE_CODES = {
    "boolean": "Z",
    "byte": "B",
    "char": "C",
    "short": "S",
    "int": "I",
    "long": "J",
    "float": "F",
    "double": "D",
}

# Python 值自动装箱为对应的 Java 包装类型
_BOXERS = {
    "java.lang.Integer": integer,
    "java.lang.Long": long_value,
    "java.lang.Boolean": boolean,
}


class PayloadObject(abc.ABC):
    """
    外部提供的序列化对象

    serialize() 返回完整的序列化流（以 ACED0005 开头），流中每个类描述
    都必须带有 RMI codebase 注解（由 RMI 编组流生成）。
    """

    @property
    @abc.abstractmethod
    def class_name(self) -> str:
        """对象的类名，用于日志与报告"""

    @abc.abstractmethod
    def serialize(self) -> bytes:
        """返回完整的序列化流"""


@dataclass
class RawPayload(PayloadObject):
    """由现成字节构成的 payload"""

    data: bytes
    name: str = "unknown"

    @property
    def class_name(self) -> str:
        return self.name

    def serialize(self) -> bytes:
        return self.data


class MethodArguments:
    """
    调用参数列表

    示例:
        >>> args = MethodArguments()
        >>> args.add("rmg", "java.lang.String")
        >>> args.add(0, "long")
    """

    def __init__(self) -> None:
        self._items: List[Tuple[Any, str]] = []

    def add(self, value: Any, java_type: str = "java.lang.Object") -> "MethodArguments":
        self._items.append((value, java_type))
        return self

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Tuple[Any, str]]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"MethodArguments({[t for _, t in self._items]})"

    def write_to(self, out: ObjectOutputStream) -> None:
        """
        写出全部参数

        Raises:
            PayloadError: payload 对象无法生成或流无效
            SerializationError: 参数无法编码
        """
        for value, java_type in self._items:
            code = PRIMITIVE_CODES.get(java_type)
            if code is not None:
                out.write_primitive(code, value)
            elif isinstance(value, PayloadObject):
                self._write_payload(out, value)
            elif java_type in _BOXERS and isinstance(value, (bool, int)):
                out.write_object(_BOXERS[java_type](value))
            else:
                out.write_object(value)

    @staticmethod
    def _write_payload(out: ObjectOutputStream, payload: PayloadObject) -> None:
        try:
            stream = payload.serialize()
        except PayloadError:
            raise
        except Exception as e:
            raise PayloadError(f"Failed to serialize payload {payload.class_name}: {e}", cause=e) from e
        try:
            out.write_spliced(stream)
        except SerializationError as e:
            raise PayloadError(f"Invalid payload stream for {payload.class_name}: {e.message}", cause=e) from e


__all__ = ["PRIMITIVE_CODES", "PayloadObject", "RawPayload", "MethodArguments"]
