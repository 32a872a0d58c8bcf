"""
Java 对象序列化

- model: 对象模型
- reader: ObjectStreamReader，解析序列化流
- writer: ObjectOutputStream / MarshalOutputStream，写出序列化流
- factories: 常用 JDK 对象的构造函数
"""

from .factories import (
    BOGUS_CLASS_NAME,
    boolean,
    hash_map,
    integer,
    long_value,
    new_class_desc,
    new_object,
    plain_object,
    string_array,
)
from .model import (
    AnnotationCursor,
    BlockData,
    ClassData,
    JavaArray,
    JavaClass,
    JavaClassDesc,
    JavaEnum,
    JavaField,
    JavaObject,
)
from .reader import ObjectStreamReader
from .writer import NO_OVERRIDE, MarshalOutputStream, ObjectOutputStream

__all__ = [
    "ObjectStreamReader",
    "ObjectOutputStream",
    "MarshalOutputStream",
    "NO_OVERRIDE",
    "AnnotationCursor",
    "BlockData",
    "ClassData",
    "JavaArray",
    "JavaClass",
    "JavaClassDesc",
    "JavaEnum",
    "JavaField",
    "JavaObject",
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
