"""
Java 序列化对象模型

ObjectStreamReader 解析出的、以及 MarshalOutputStream 写出的值都使用以下类型:

- None / str 分别对应 Java null 与 java.lang.String
- JavaClassDesc: 类描述（含代理类描述）
- JavaObject: 普通对象，按继承层次保存每个类的字段值与注解内容
- JavaArray / JavaEnum / JavaClass: 数组、枚举常量、Class 对象
- BlockData: 流中的原始数据块
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

from rmiprobe.exceptions import SerializationError
from utils.encoding import java_utf_decode

from .constants import (
    OBJECT_TYPE_CODES,
    SC_BLOCK_DATA,
    SC_ENUM,
    SC_EXTERNALIZABLE,
    SC_SERIALIZABLE,
    SC_WRITE_METHOD,
)


@dataclass
class JavaField:
    """类描述中的一个字段"""

    type_code: str
    name: str
    # 对象字段的 JVM 类型签名，例如 Ljava/lang/String;
    class_name: Optional[str] = None

    @property
    def is_primitive(self) -> bool:
        return self.type_code not in OBJECT_TYPE_CODES


@dataclass(eq=False)
class JavaClassDesc:
    """
    类描述

    代理类描述没有类名和字段，interfaces 保存其实现的接口列表。
    annotations 保存 annotateClass / annotateProxyClass 写入的内容，
    RMI 流中通常为一个 codebase 字符串或 None。
    """

    name: Optional[str]
    serial_version_uid: int = 0
    flags: int = SC_SERIALIZABLE
    fields: List[JavaField] = field(default_factory=list)
    annotations: List[Any] = field(default_factory=list)
    super_desc: Optional["JavaClassDesc"] = None
    interfaces: Optional[List[str]] = None

    @property
    def is_proxy(self) -> bool:
        return self.interfaces is not None

    @property
    def is_enum(self) -> bool:
        return bool(self.flags & SC_ENUM)

    @property
    def is_externalizable(self) -> bool:
        return bool(self.flags & SC_EXTERNALIZABLE)

    @property
    def is_serializable(self) -> bool:
        return bool(self.flags & SC_SERIALIZABLE)

    @property
    def has_write_method(self) -> bool:
        return bool(self.flags & SC_WRITE_METHOD)

    @property
    def has_block_data(self) -> bool:
        return bool(self.flags & SC_BLOCK_DATA)

    @property
    def display_name(self) -> str:
        if self.is_proxy:
            return f"$Proxy[{', '.join(self.interfaces or [])}]"
        return self.name or ""

    def hierarchy(self) -> List["JavaClassDesc"]:
        """返回从最顶层父类到自身的类描述列表（即类数据在流中的顺序）"""
        chain = []
        desc: Optional[JavaClassDesc] = self
        while desc is not None:
            chain.append(desc)
            desc = desc.super_desc
        chain.reverse()
        return chain

    def class_names(self) -> List[str]:
        """自身及所有父类的类名，从最具体的类开始"""
        return [d.name for d in reversed(self.hierarchy()) if d.name]

    def is_subclass_of(self, class_name: str) -> bool:
        return class_name in self.class_names()

    def __repr__(self) -> str:
        return f"JavaClassDesc({self.display_name!r}, suid={self.serial_version_uid})"


@dataclass
class BlockData:
    """原始数据块（TC_BLOCKDATA / TC_BLOCKDATALONG 的内容）"""

    data: bytes


@dataclass(eq=False)
class ClassData:
    """
    对象中属于某一个类的数据

    values 按字段名保存字段值，annotations 保存 writeObject /
    writeExternal 写入的附加内容（BlockData 与对象交错）。
    """

    desc: JavaClassDesc
    values: Dict[str, Any] = field(default_factory=dict)
    annotations: List[Any] = field(default_factory=list)

    def cursor(self) -> "AnnotationCursor":
        return AnnotationCursor(self.annotations)


@dataclass(eq=False)
class JavaObject:
    """普通 Java 对象"""

    desc: JavaClassDesc
    class_data: List[ClassData] = field(default_factory=list)

    @property
    def class_name(self) -> str:
        return self.desc.display_name

    def data_for(self, class_name: str) -> Optional[ClassData]:
        """返回指定类在该对象中的类数据"""
        for data in self.class_data:
            if data.desc.name == class_name:
                return data
        return None

    def get(self, field_name: str, default: Any = None) -> Any:
        """按字段名取值，从最具体的类开始查找"""
        for data in reversed(self.class_data):
            if field_name in data.values:
                return data.values[field_name]
        return default

    def is_instance(self, class_name: str) -> bool:
        return self.desc.is_subclass_of(class_name)

    def __repr__(self) -> str:
        return f"JavaObject({self.class_name!r})"


@dataclass(eq=False)
class JavaArray:
    desc: JavaClassDesc
    items: List[Any] = field(default_factory=list)

    @property
    def component_code(self) -> str:
        name = self.desc.name or "["
        return name[1] if len(name) > 1 else "L"

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(eq=False)
class JavaEnum:
    desc: JavaClassDesc
    constant: str


@dataclass(eq=False)
class JavaClass:
    desc: JavaClassDesc


class AnnotationCursor:
    """
    顺序读取类注解内容

    注解内容由数据块和对象交错组成，原始数据可以跨越多个数据块读取，
    行为与在 readObject 中调用 ObjectInputStream 的 readXxx 方法一致。
    """

    def __init__(self, items: Sequence[Any]):
        self._items = list(items)
        self._index = 0
        self._buffer = b""

    def _fill(self, size: int) -> None:
        while len(self._buffer) < size:
            if self._index >= len(self._items) or not isinstance(self._items[self._index], BlockData):
                raise SerializationError(f"annotation ended before {size} bytes of block data")
            self._buffer += self._items[self._index].data
            self._index += 1

    def read_bytes(self, size: int) -> bytes:
        self._fill(size)
        data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data

    def read_byte(self) -> int:
        return struct.unpack(">b", self.read_bytes(1))[0]

    def read_boolean(self) -> bool:
        return self.read_bytes(1) != b"\x00"

    def read_short(self) -> int:
        return struct.unpack(">h", self.read_bytes(2))[0]

    def read_int(self) -> int:
        return struct.unpack(">i", self.read_bytes(4))[0]

    def read_long(self) -> int:
        return struct.unpack(">q", self.read_bytes(8))[0]

    def read_utf(self) -> str:
        length = struct.unpack(">H", self.read_bytes(2))[0]
        try:
            return java_utf_decode(self.read_bytes(length))
        except ValueError as e:
            raise SerializationError(f"invalid modified UTF-8 in annotation: {e}") from e

    def read_object(self) -> Any:
        if self._buffer:
            raise SerializationError("unread block data before object in annotation")
        if self._index >= len(self._items):
            raise SerializationError("annotation ended before expected object")
        item = self._items[self._index]
        if isinstance(item, BlockData):
            raise SerializationError("expected object in annotation, found block data")
        self._index += 1
        return item


__all__ = [
    "JavaField",
    "JavaClassDesc",
    "BlockData",
    "ClassData",
    "JavaObject",
    "JavaArray",
    "JavaEnum",
    "JavaClass",
    "AnnotationCursor",
]
