"""
远程异常

服务端抛出的 Java 异常以 RemoteFault 值的形式返回给调用方，
而不是作为 Python 异常抛出。探测逻辑只依赖 FaultKind 与消息文本，
不依赖 Java 类层次。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from rmiprobe.serialization.model import JavaObject


class FaultKind(Enum):
    """远程异常分类"""

    ACCESS_DENIED = "access_denied"
    NOT_BOUND = "not_bound"
    ALREADY_BOUND = "already_bound"
    CLASS_NOT_FOUND = "class_not_found"
    CLASS_CAST = "class_cast"
    INVALID_CLASS = "invalid_class"
    MALFORMED_URL = "malformed_url"
    ILLEGAL_ARGUMENT = "illegal_argument"
    NO_SUCH_OBJECT = "no_such_object"
    UNSUPPORTED_OPERATION = "unsupported_operation"
    ACCESS_CONTROL = "access_control"
    CLASS_FORMAT = "class_format"
    UNMARSHAL = "unmarshal"
    REMOTE = "remote"
    OTHER = "other"

    @property
    def is_remote(self) -> bool:
        """是否属于 java.rmi.RemoteException 家族"""
        return self in REMOTE_KINDS


REMOTE_KINDS = (
    FaultKind.ACCESS_DENIED,
    FaultKind.NO_SUCH_OBJECT,
    FaultKind.UNMARSHAL,
    FaultKind.REMOTE,
)

# 按类名匹配，从最具体的类开始查找第一个命中项
_KIND_BY_CLASS: Dict[str, FaultKind] = {
    "java.rmi.AccessException": FaultKind.ACCESS_DENIED,
    "java.rmi.NotBoundException": FaultKind.NOT_BOUND,
    "java.rmi.AlreadyBoundException": FaultKind.ALREADY_BOUND,
    "java.lang.ClassNotFoundException": FaultKind.CLASS_NOT_FOUND,
    "java.lang.ClassCastException": FaultKind.CLASS_CAST,
    "java.io.InvalidClassException": FaultKind.INVALID_CLASS,
    "java.net.MalformedURLException": FaultKind.MALFORMED_URL,
    "java.lang.IllegalArgumentException": FaultKind.ILLEGAL_ARGUMENT,
    "java.rmi.NoSuchObjectException": FaultKind.NO_SUCH_OBJECT,
    "java.lang.UnsupportedOperationException": FaultKind.UNSUPPORTED_OPERATION,
    "java.security.AccessControlException": FaultKind.ACCESS_CONTROL,
    "java.lang.ClassFormatError": FaultKind.CLASS_FORMAT,
    "java.rmi.UnmarshalException": FaultKind.UNMARSHAL,
    "java.rmi.RemoteException": FaultKind.REMOTE,
}

# 保存嵌套异常的字段，按优先级排列
_CAUSE_FIELDS = ("detail", "cause", "target", "undeclaredThrowable", "ex")


def kind_for_classes(class_names: List[str]) -> FaultKind:
    """根据类层次（从具体到一般）确定异常分类"""
    for name in class_names:
        kind = _KIND_BY_CLASS.get(name)
        if kind is not None:
            return kind
    return FaultKind.OTHER


@dataclass
class RemoteFault:
    """
    服务端返回的异常

    属性:
        kind: 异常分类
        class_name: Java 异常类名
        message: detailMessage
        hierarchy: 类层次，从最具体的类开始
        cause: 嵌套异常（RemoteException.detail 或 Throwable.cause）
    """

    kind: FaultKind
    class_name: str
    message: Optional[str] = None
    hierarchy: List[str] = field(default_factory=list)
    cause: Optional["RemoteFault"] = None

    @classmethod
    def from_java(cls, obj: Any, _seen: Optional[set] = None) -> "RemoteFault":
        """
        由反序列化得到的 Throwable 对象构造

        未知对象（非 JavaObject）按 OTHER 处理，保留类型名。
        """
        if not isinstance(obj, JavaObject):
            return cls(FaultKind.OTHER, type(obj).__name__, str(obj) if obj is not None else None)

        seen = _seen if _seen is not None else set()
        seen.add(id(obj))

        hierarchy = obj.desc.class_names()
        message = obj.get("detailMessage")
        fault = cls(
            kind=kind_for_classes(hierarchy),
            class_name=obj.class_name,
            message=message if isinstance(message, str) else None,
            hierarchy=hierarchy,
        )

        nested = cls._nested(obj)
        # Throwable.cause 未初始化时指向自身
        if nested is not None and id(nested) not in seen:
            fault.cause = cls.from_java(nested, seen)
        return fault

    @staticmethod
    def _nested(obj: JavaObject) -> Optional[JavaObject]:
        for name in _CAUSE_FIELDS:
            value = obj.get(name)
            if isinstance(value, JavaObject) and value is not obj:
                return value
        return None

    def chain(self) -> List["RemoteFault"]:
        """异常链，从最外层开始"""
        faults = []
        current: Optional[RemoteFault] = self
        while current is not None:
            faults.append(current)
            current = current.cause
        return faults

    def root(self) -> "RemoteFault":
        """最内层（最具体）的异常"""
        return self.chain()[-1]

    def is_instance(self, class_name: str) -> bool:
        return class_name in self.hierarchy or class_name == self.class_name

    def message_contains(self, text: str) -> bool:
        return bool(self.message) and text in self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "class_name": self.class_name,
            "message": self.message,
            "cause": self.cause.to_dict() if self.cause else None,
        }

    def __str__(self) -> str:
        if self.message:
            return f"{self.class_name}: {self.message}"
        return self.class_name


__all__ = ["FaultKind", "REMOTE_KINDS", "RemoteFault", "kind_for_classes"]
