"""
常用 Java 对象的构造函数

探测所需的少量 JDK 对象（包装类型、HashMap、字符串数组）以及
任意类名的占位对象。serialVersionUID 与 JDK 中的定义一致。
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .constants import SC_SERIALIZABLE, SC_WRITE_METHOD
from .model import BlockData, ClassData, JavaArray, JavaClassDesc, JavaField, JavaObject

# 服务端一定不存在的类名，用于触发类加载错误
BOGUS_CLASS_NAME = "DefinitelyNonExistingClass"

NUMBER_SUID = -8742448824652078965
INTEGER_SUID = 1360826667806852920
LONG_SUID = 4290774380558885855
BOOLEAN_SUID = -3665804199014368530
HASH_MAP_SUID = 362498820763181265
STRING_ARRAY_SUID = -5921575005990323385

FieldSpec = Tuple[str, str, Optional[str]]


def new_class_desc(
    name: str,
    suid: int,
    flags: int = SC_SERIALIZABLE,
    fields: Iterable[FieldSpec] = (),
    super_desc: Optional[JavaClassDesc] = None,
) -> JavaClassDesc:
    """
    创建类描述

    字段按 ObjectStreamClass 的规则排序：原始类型在前，对象类型在后，
    各自按字段名排序。

    Args:
        name: 类名
        suid: serialVersionUID
        flags: SC_* 标志
        fields: (类型码, 字段名, 对象字段的类型签名) 列表
        super_desc: 父类描述
    """
    java_fields = [JavaField(code, field_name, class_name) for code, field_name, class_name in fields]
    java_fields.sort(key=lambda f: (not f.is_primitive, f.name))
    return JavaClassDesc(
        name=name,
        serial_version_uid=suid,
        flags=flags,
        fields=java_fields,
        super_desc=super_desc,
    )


def new_object(
    desc: JavaClassDesc,
    values: Optional[Dict[str, Dict[str, Any]]] = None,
    annotations: Optional[Dict[str, List[Any]]] = None,
) -> JavaObject:
    """
    按类描述创建对象

    Args:
        desc: 对象的类描述
        values: 类名 -> {字段名: 值}
        annotations: 类名 -> writeObject 写入的内容
    """
    values = values or {}
    annotations = annotations or {}
    obj = JavaObject(desc)
    for class_desc in desc.hierarchy():
        obj.class_data.append(
            ClassData(
                class_desc,
                values=dict(values.get(class_desc.name or "", {})),
                annotations=list(annotations.get(class_desc.name or "", [])),
            )
        )
    return obj


# JDK 类描述只构造一次，同一流中重复出现时写出 TC_REFERENCE
NUMBER_DESC = new_class_desc("java.lang.Number", NUMBER_SUID)
INTEGER_DESC = new_class_desc("java.lang.Integer", INTEGER_SUID, fields=[("I", "value", None)], super_desc=NUMBER_DESC)
LONG_DESC = new_class_desc("java.lang.Long", LONG_SUID, fields=[("J", "value", None)], super_desc=NUMBER_DESC)
BOOLEAN_DESC = new_class_desc("java.lang.Boolean", BOOLEAN_SUID, fields=[("Z", "value", None)])
HASH_MAP_DESC = new_class_desc(
    "java.util.HashMap",
    HASH_MAP_SUID,
    flags=SC_SERIALIZABLE | SC_WRITE_METHOD,
    fields=[("F", "loadFactor", None), ("I", "threshold", None)],
)
STRING_ARRAY_DESC = new_class_desc("[Ljava.lang.String;", STRING_ARRAY_SUID)


def integer(value: int) -> JavaObject:
    """java.lang.Integer"""
    return new_object(INTEGER_DESC, {"java.lang.Integer": {"value": value}})


def long_value(value: int) -> JavaObject:
    """java.lang.Long"""
    return new_object(LONG_DESC, {"java.lang.Long": {"value": value}})


def boolean(value: bool) -> JavaObject:
    """java.lang.Boolean"""
    return new_object(BOOLEAN_DESC, {"java.lang.Boolean": {"value": value}})


def hash_map() -> JavaObject:
    """空的 java.util.HashMap（默认容量 16，负载因子 0.75）"""
    buckets_and_size = BlockData(b"\x00\x00\x00\x10" + b"\x00\x00\x00\x00")
    return new_object(
        HASH_MAP_DESC,
        {"java.util.HashMap": {"loadFactor": 0.75, "threshold": 12}},
        {"java.util.HashMap": [buckets_and_size]},
    )


def string_array(items: Sequence[Optional[str]]) -> JavaArray:
    """java.lang.String[]"""
    return JavaArray(STRING_ARRAY_DESC, list(items))


def plain_object(class_name: str = BOGUS_CLASS_NAME, suid: int = 2) -> JavaObject:
    """
    没有字段的可序列化对象

    服务端按类名解析时触发类加载，常用于类加载行为探测。
    """
    return new_object(new_class_desc(class_name, suid))


__all__ = [
    "BOGUS_CLASS_NAME",
    "new_class_desc",
    "new_object",
    "integer",
    "long_value",
    "boolean",
    "hash_map",
    "string_array",
    "plain_object",
]
