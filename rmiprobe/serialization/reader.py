"""
Java 对象序列化流读取器

按照 Java Object Serialization Stream Protocol 解析流内容，
得到 rmiprobe.serialization.model 中定义的对象模型。
读取器只解析结构，不会实例化或执行任何远程类的代码。
"""

from __future__ import annotations

import logging
import struct
from typing import Any, BinaryIO, List, Optional, Set

from rmiprobe.exceptions import SerializationError
from utils.encoding import java_utf_decode

from .constants import (
    BASE_WIRE_HANDLE,
    PRIMITIVE_FORMATS,
    STREAM_HEADER,
    TC_ARRAY,
    TC_BLOCKDATA,
    TC_BLOCKDATALONG,
    TC_CLASS,
    TC_CLASSDESC,
    TC_ENDBLOCKDATA,
    TC_ENUM,
    TC_EXCEPTION,
    TC_LONGSTRING,
    TC_NULL,
    TC_OBJECT,
    TC_PROXYCLASSDESC,
    TC_REFERENCE,
    TC_RESET,
    TC_STRING,
)
from .model import (
    BlockData,
    ClassData,
    JavaArray,
    JavaClass,
    JavaClassDesc,
    JavaEnum,
    JavaField,
    JavaObject,
)

logger = logging.getLogger(__name__)

# 对象嵌套深度上限，防止恶意构造的流耗尽调用栈
MAX_DEPTH = 256


class ObjectStreamReader:
    """
    序列化流读取器

    顶层的原始数据（例如 RMI 调用头中的 ObjID、返回类型）位于数据块中，
    使用 read_int / read_long 等方法读取；对象使用 read_object 读取。

    示例:
        >>> reader = ObjectStreamReader(io.BytesIO(data))
        >>> reader.read_stream_header()
        >>> kind = reader.read_byte()
        >>> value = reader.read_object()
    """

    def __init__(self, stream: BinaryIO):
        self._stream = stream
        self._handles: List[Any] = []
        self._block = b""
        self._offset = 0
        self._depth = 0
        # 类描述中出现的字符串注解（服务端的 codebase）
        self.codebases: Set[str] = set()

    @property
    def offset(self) -> int:
        return self._offset

    # ==================== 底层读取 ====================

    def _read_raw(self, size: int) -> bytes:
        data = self._stream.read(size) if size else b""
        if data is None or len(data) < size:
            raise SerializationError("unexpected end of stream", offset=self._offset)
        self._offset += size
        return data

    def _read_tc(self) -> int:
        return self._read_raw(1)[0]

    def _unpack(self, fmt: str, data: bytes) -> Any:
        return struct.unpack(fmt, data)[0]

    def _read_raw_utf(self) -> str:
        length = self._unpack(">H", self._read_raw(2))
        return self._decode_utf(self._read_raw(length))

    def _read_raw_long_utf(self) -> str:
        length = self._unpack(">q", self._read_raw(8))
        if length < 0 or length > 0x7FFFFFFF:
            raise SerializationError(f"invalid long string length {length}", offset=self._offset)
        return self._decode_utf(self._read_raw(length))

    def _decode_utf(self, data: bytes) -> str:
        try:
            return java_utf_decode(data)
        except ValueError as e:
            raise SerializationError(f"invalid modified UTF-8: {e}", offset=self._offset) from e

    # ==================== 数据块模式读取 ====================

    def read_stream_header(self) -> None:
        """读取并校验 ACED0005 流头"""
        header = self._read_raw(4)
        if header != STREAM_HEADER:
            raise SerializationError(f"invalid stream header {header.hex()}", offset=0)

    def _fill_block(self, size: int) -> None:
        while len(self._block) < size:
            tc = self._read_tc()
            if tc == TC_BLOCKDATA:
                length = self._read_raw(1)[0]
            elif tc == TC_BLOCKDATALONG:
                length = self._unpack(">i", self._read_raw(4))
                if length < 0:
                    raise SerializationError(f"negative block length {length}", offset=self._offset)
            elif tc == TC_RESET:
                self._reset()
                continue
            else:
                raise SerializationError(
                    f"expected block data, found type code 0x{tc:02x}", offset=self._offset - 1
                )
            self._block += self._read_raw(length)

    def read_bytes(self, size: int) -> bytes:
        self._fill_block(size)
        data, self._block = self._block[:size], self._block[size:]
        return data

    def read_byte(self) -> int:
        return self._unpack(">b", self.read_bytes(1))

    def read_boolean(self) -> bool:
        return self.read_bytes(1) != b"\x00"

    def read_short(self) -> int:
        return self._unpack(">h", self.read_bytes(2))

    def read_int(self) -> int:
        return self._unpack(">i", self.read_bytes(4))

    def read_long(self) -> int:
        return self._unpack(">q", self.read_bytes(8))

    def read_float(self) -> float:
        return self._unpack(">f", self.read_bytes(4))

    def read_double(self) -> float:
        return self._unpack(">d", self.read_bytes(8))

    def read_char(self) -> str:
        return chr(self._unpack(">H", self.read_bytes(2)))

    def read_utf(self) -> str:
        length = self._unpack(">H", self.read_bytes(2))
        return self._decode_utf(self.read_bytes(length))

    def read_primitive(self, type_code: str) -> Any:
        """按字段类型码读取数据块中的一个原始值"""
        fmt = PRIMITIVE_FORMATS.get(type_code)
        if fmt is None:
            raise SerializationError(f"unknown primitive type code {type_code!r}")
        value = self._unpack(fmt, self.read_bytes(struct.calcsize(fmt)))
        return chr(value) if type_code == "C" else value

    # ==================== 对象读取 ====================

    def read_object(self) -> Any:
        """
        读取一个对象（包括 null 与字符串）

        Raises:
            SerializationError: 流格式错误，或此处出现了原始数据块
        """
        if self._block:
            raise SerializationError("unread block data before object", offset=self._offset)
        while True:
            tc = self._read_tc()
            if tc != TC_RESET:
                break
            self._reset()
        if tc in (TC_BLOCKDATA, TC_BLOCKDATALONG):
            raise SerializationError("expected object, found block data", offset=self._offset - 1)
        if tc == TC_ENDBLOCKDATA:
            raise SerializationError("expected object, found end of block data", offset=self._offset - 1)
        return self._read_content(tc)

    def _reset(self) -> None:
        logger.debug(f"Stream reset at offset {self._offset}, dropping {len(self._handles)} handles")
        self._handles = []

    def _new_handle(self, value: Any) -> int:
        self._handles.append(value)
        return len(self._handles) - 1

    def _set_handle(self, handle: int, value: Any) -> None:
        self._handles[handle] = value

    def _read_content(self, tc: int) -> Any:
        self._depth += 1
        if self._depth > MAX_DEPTH:
            raise SerializationError("maximum nesting depth exceeded", offset=self._offset)
        try:
            return self._dispatch(tc)
        finally:
            self._depth -= 1

    def _dispatch(self, tc: int) -> Any:
        if tc == TC_NULL:
            return None
        if tc == TC_REFERENCE:
            return self._read_reference()
        if tc == TC_STRING:
            value = self._read_raw_utf()
            self._new_handle(value)
            return value
        if tc == TC_LONGSTRING:
            value = self._read_raw_long_utf()
            self._new_handle(value)
            return value
        if tc in (TC_CLASSDESC, TC_PROXYCLASSDESC):
            return self._read_class_desc_body(tc)
        if tc == TC_OBJECT:
            return self._read_ordinary_object()
        if tc == TC_ARRAY:
            return self._read_array()
        if tc == TC_ENUM:
            return self._read_enum()
        if tc == TC_CLASS:
            desc = self._read_class_desc()
            value = JavaClass(desc)
            self._new_handle(value)
            return value
        if tc == TC_EXCEPTION:
            self._reset()
            exc = self.read_object()
            self._reset()
            name = getattr(exc, "class_name", type(exc).__name__)
            raise SerializationError(f"stream contains a serialization failure: {name}", offset=self._offset)
        raise SerializationError(f"invalid type code 0x{tc:02x}", offset=self._offset - 1)

    def _read_reference(self) -> Any:
        handle = self._unpack(">i", self._read_raw(4)) - BASE_WIRE_HANDLE
        if handle < 0 or handle >= len(self._handles):
            raise SerializationError(f"invalid handle 0x{handle + BASE_WIRE_HANDLE:x}", offset=self._offset)
        return self._handles[handle]

    # ==================== 类描述 ====================

    def _read_class_desc(self) -> Optional[JavaClassDesc]:
        tc = self._read_tc()
        if tc == TC_NULL:
            return None
        if tc == TC_REFERENCE:
            desc = self._read_reference()
            if not isinstance(desc, JavaClassDesc):
                raise SerializationError("reference does not point to a class descriptor", offset=self._offset)
            return desc
        if tc in (TC_CLASSDESC, TC_PROXYCLASSDESC):
            return self._read_class_desc_body(tc)
        raise SerializationError(f"expected class descriptor, found 0x{tc:02x}", offset=self._offset - 1)

    def _read_class_desc_body(self, tc: int) -> JavaClassDesc:
        desc = JavaClassDesc(name=None)
        self._new_handle(desc)

        if tc == TC_PROXYCLASSDESC:
            count = self._unpack(">i", self._read_raw(4))
            if count < 0 or count > 65535:
                raise SerializationError(f"invalid proxy interface count {count}", offset=self._offset)
            desc.interfaces = [self._read_raw_utf() for _ in range(count)]
            desc.flags = 0x02
        else:
            desc.name = self._read_raw_utf()
            desc.serial_version_uid = self._unpack(">q", self._read_raw(8))
            desc.flags = self._read_raw(1)[0]
            count = self._unpack(">h", self._read_raw(2))
            if count < 0:
                raise SerializationError(f"negative field count {count}", offset=self._offset)
            for _ in range(count):
                desc.fields.append(self._read_field_desc())

        desc.annotations = self._read_annotation_contents()
        self.codebases.update(item for item in desc.annotations if isinstance(item, str))
        desc.super_desc = self._read_class_desc()
        return desc

    def _read_field_desc(self) -> JavaField:
        type_code = chr(self._read_raw(1)[0])
        name = self._read_raw_utf()
        class_name = None
        if type_code in ("L", "["):
            class_name = self.read_object()
            if not isinstance(class_name, str):
                raise SerializationError(f"field {name!r} has no type signature", offset=self._offset)
        elif type_code not in PRIMITIVE_FORMATS:
            raise SerializationError(f"invalid field type code {type_code!r}", offset=self._offset)
        return JavaField(type_code, name, class_name)

    def _read_annotation_contents(self) -> List[Any]:
        """读取直到 TC_ENDBLOCKDATA 的内容（数据块与对象交错）"""
        contents: List[Any] = []
        while True:
            tc = self._read_tc()
            if tc == TC_ENDBLOCKDATA:
                return contents
            if tc == TC_BLOCKDATA:
                contents.append(BlockData(self._read_raw(self._read_raw(1)[0])))
            elif tc == TC_BLOCKDATALONG:
                length = self._unpack(">i", self._read_raw(4))
                if length < 0:
                    raise SerializationError(f"negative block length {length}", offset=self._offset)
                contents.append(BlockData(self._read_raw(length)))
            elif tc == TC_RESET:
                self._reset()
            else:
                contents.append(self._read_content(tc))

    # ==================== 对象 ====================

    def _read_ordinary_object(self) -> JavaObject:
        desc = self._read_class_desc()
        if desc is None:
            raise SerializationError("object without class descriptor", offset=self._offset)
        obj = JavaObject(desc)
        self._new_handle(obj)

        if desc.is_externalizable:
            data = ClassData(desc)
            if not desc.has_block_data:
                raise SerializationError(
                    f"externalizable class {desc.name} uses stream protocol version 1", offset=self._offset
                )
            data.annotations = self._read_annotation_contents()
            obj.class_data.append(data)
            return obj

        for class_desc in desc.hierarchy():
            data = ClassData(class_desc)
            if class_desc.is_serializable:
                for java_field in class_desc.fields:
                    data.values[java_field.name] = self._read_field_value(java_field)
                if class_desc.has_write_method:
                    data.annotations = self._read_annotation_contents()
            obj.class_data.append(data)
        return obj

    def _read_field_value(self, java_field: JavaField) -> Any:
        if java_field.is_primitive:
            fmt = PRIMITIVE_FORMATS[java_field.type_code]
            value = self._unpack(fmt, self._read_raw(struct.calcsize(fmt)))
            return chr(value) if java_field.type_code == "C" else value
        return self.read_object()

    def _read_array(self) -> JavaArray:
        desc = self._read_class_desc()
        if desc is None or not desc.name or not desc.name.startswith("["):
            raise SerializationError("array without array class descriptor", offset=self._offset)
        array = JavaArray(desc)
        self._new_handle(array)
        length = self._unpack(">i", self._read_raw(4))
        if length < 0:
            raise SerializationError(f"negative array length {length}", offset=self._offset)

        code = array.component_code
        if code in PRIMITIVE_FORMATS:
            fmt = PRIMITIVE_FORMATS[code]
            size = struct.calcsize(fmt)
            raw = self._read_raw(size * length)
            items = [v for (v,) in struct.iter_unpack(fmt, raw)] if length else []
            array.items = [chr(v) for v in items] if code == "C" else items
        else:
            array.items = [self.read_object() for _ in range(length)]
        return array

    def _read_enum(self) -> JavaEnum:
        desc = self._read_class_desc()
        if desc is None:
            raise SerializationError("enum without class descriptor", offset=self._offset)
        handle = self._new_handle(None)
        constant = self.read_object()
        if not isinstance(constant, str):
            raise SerializationError("enum constant name is not a string", offset=self._offset)
        value = JavaEnum(desc, constant)
        self._set_handle(handle, value)
        return value


__all__ = ["ObjectStreamReader", "MAX_DEPTH"]
