"""
远程对象标识

ObjID 由对象编号和 UID（地址空间标识）组成，知名对象
（注册中心、激活器、DGC）的 UID 全为零。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import ACTIVATOR_OBJ_NUM, DGC_OBJ_NUM, REGISTRY_OBJ_NUM


def _java_hex(value: int) -> str:
    # 与 Integer.toString(v, 16) / Long.toString(v, 16) 一致，负数带符号
    return f"-{-value:x}" if value < 0 else f"{value:x}"


@dataclass(frozen=True)
class UID:
    """java.rmi.server.UID"""

    unique: int = 0
    time: int = 0
    count: int = 0

    def write_to(self, out: Any) -> None:
        out.write_int(self.unique)
        out.write_long(self.time)
        out.write_short(self.count)

    @classmethod
    def read_from(cls, source: Any) -> "UID":
        return cls(source.read_int(), source.read_long(), source.read_short())

    def __str__(self) -> str:
        return f"{_java_hex(self.unique)}:{_java_hex(self.time)}:{_java_hex(self.count)}"


@dataclass(frozen=True)
class ObjID:
    """java.rmi.server.ObjID"""

    obj_num: int
    space: UID = field(default_factory=UID)

    def write_to(self, out: Any) -> None:
        out.write_long(self.obj_num)
        self.space.write_to(out)

    @classmethod
    def read_from(cls, source: Any) -> "ObjID":
        obj_num = source.read_long()
        return cls(obj_num, UID.read_from(source))

    @property
    def is_well_known(self) -> bool:
        return self.space == UID() and self.obj_num in (REGISTRY_OBJ_NUM, ACTIVATOR_OBJ_NUM, DGC_OBJ_NUM)

    def __str__(self) -> str:
        return f"[{self.space}, {self.obj_num}]"


REGISTRY_ID = ObjID(REGISTRY_OBJ_NUM)
ACTIVATOR_ID = ObjID(ACTIVATOR_OBJ_NUM)
DGC_ID = ObjID(DGC_OBJ_NUM)

__all__ = ["UID", "ObjID", "REGISTRY_ID", "ACTIVATOR_ID", "DGC_ID"]
