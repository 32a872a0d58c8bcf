"""
远程对象包装

RemoteObjectWrapper 保存从注册中心查找得到的远程对象的端点、ObjID、
引用类型和类名等信息，并提供按类名归并重复对象的功能。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from rmiprobe.protocol.objid import ObjID
from rmiprobe.protocol.remote_ref import Endpoint, parse_unicast_ref
from rmiprobe.serialization.model import JavaObject

from .known import KnownClasses

logger = logging.getLogger(__name__)

UNKNOWN_CLASS_MARKER = "(unknown class)"


class RemoteObjectWrapper:
    """
    远程对象包装

    只有 bound_name 的包装为“部分包装”（查找失败或尚未查找），
    仅用于展示，不能用于调用。

    属性:
        bound_name: 注册中心中的绑定名
        class_name: 桩类名（代理桩取第一个接口名）
        is_known: 类是否在已知类表中
        endpoint: 远程对象监听的端点
        obj_id: 远程对象标识
        ref_type: UnicastRef / UnicastRef2
        duplicates: 同类的其他绑定
    """

    def __init__(
        self,
        bound_name: Optional[str] = None,
        class_name: Optional[str] = None,
        endpoint: Optional[Endpoint] = None,
        obj_id: Optional[ObjID] = None,
        ref_type: Optional[str] = None,
    ):
        self.bound_name = bound_name
        self.class_name = class_name
        self.endpoint = endpoint
        self.obj_id = obj_id
        self.ref_type = ref_type
        self.is_known = KnownClasses.is_known(class_name)
        self.duplicates: List["RemoteObjectWrapper"] = []

    @classmethod
    def from_stub(cls, stub: JavaObject, bound_name: Optional[str] = None) -> "RemoteObjectWrapper":
        """
        由反序列化得到的桩对象创建包装

        Raises:
            ProtocolError: 桩对象中没有可读取的远程引用
        """
        ref = parse_unicast_ref(stub)
        if stub.desc.is_proxy:
            interfaces = stub.desc.interfaces or []
            class_name = interfaces[0] if interfaces else stub.class_name
        else:
            class_name = stub.class_name

        wrapper = cls(
            bound_name=bound_name,
            class_name=class_name,
            endpoint=ref.endpoint,
            obj_id=ref.obj_id,
            ref_type=ref.ref_type,
        )
        logger.debug(f"Wrapped {bound_name or '<unnamed>'}: {class_name} at {ref.endpoint}")
        return wrapper

    @classmethod
    def from_bound_names(cls, names: Iterable[str]) -> List["RemoteObjectWrapper"]:
        return [cls(bound_name=name) for name in names]

    # ==================== 属性 ====================

    @property
    def is_partial(self) -> bool:
        return self.endpoint is None

    @property
    def host(self) -> Optional[str]:
        return self.endpoint.host if self.endpoint else None

    @property
    def port(self) -> Optional[int]:
        return self.endpoint.port if self.endpoint else None

    @property
    def target(self) -> Optional[str]:
        if self.endpoint is None:
            return None
        return f"{self.endpoint.host}:{self.endpoint.port}"

    @property
    def csf_class(self) -> Optional[str]:
        return self.endpoint.csf_class if self.endpoint else None

    @property
    def tls(self) -> str:
        return self.endpoint.tls if self.endpoint else "unknown"

    @property
    def description(self) -> str:
        return KnownClasses.describe(self.class_name) or UNKNOWN_CLASS_MARKER

    # ==================== 重复对象 ====================

    def has_duplicates(self) -> bool:
        return len(self.duplicates) > 0

    def add_duplicate(self, other: "RemoteObjectWrapper") -> None:
        self.duplicates.append(other)

    def get_duplicate_bound_names(self) -> List[Optional[str]]:
        return [d.bound_name for d in self.duplicates]

    @staticmethod
    def get_by_name(name: str, wrappers: Iterable[Optional["RemoteObjectWrapper"]]) -> Optional["RemoteObjectWrapper"]:
        for wrapper in wrappers:
            if wrapper is not None and wrapper.bound_name == name:
                return wrapper
        return None

    @staticmethod
    def list_has_duplicates(wrappers: Iterable["RemoteObjectWrapper"]) -> bool:
        return any(w.has_duplicates() for w in wrappers)

    @staticmethod
    def handle_duplicates(wrappers: Iterable["RemoteObjectWrapper"]) -> List["RemoteObjectWrapper"]:
        """
        按类名归并重复对象

        第一次出现的包装作为代表，之后同类名的包装加入其重复列表，
        不再出现在返回列表中。只比较类名，不比较端点；部分包装不参与归并。
        """
        unique: List[RemoteObjectWrapper] = []
        by_class: Dict[str, RemoteObjectWrapper] = {}
        for current in wrappers:
            if current.class_name is None:
                unique.append(current)
                continue
            representative = by_class.get(current.class_name)
            if representative is not None and representative is not current:
                representative.add_duplicate(current)
                continue
            by_class[current.class_name] = current
            unique.append(current)
        return unique

    # ==================== 输出 ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bound_name": self.bound_name,
            "class_name": self.class_name,
            "known": self.is_known,
            "description": self.description if self.class_name else None,
            "endpoint": self.target,
            "tls": self.tls,
            "obj_id": str(self.obj_id) if self.obj_id else None,
            "ref_type": self.ref_type,
            "csf_class": self.csf_class,
            "duplicates": self.get_duplicate_bound_names(),
        }

    def __repr__(self) -> str:
        return f"RemoteObjectWrapper(bound_name={self.bound_name!r}, class_name={self.class_name!r}, target={self.target!r})"


__all__ = ["UNKNOWN_CLASS_MARKER", "RemoteObjectWrapper"]
