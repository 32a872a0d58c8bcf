"""
Java 对象序列化流写出器

ObjectOutputStream 写出标准序列化流；MarshalOutputStream 在此基础上
为每个类描述写入 RMI codebase 注解（与 sun.rmi.server.MarshalOutputStream
一致），RMI 服务端的 MarshalInputStream 要求每个类描述都带有该注解。
"""

from __future__ import annotations

import logging
import struct
from typing import Any, Dict, List, Optional

from rmiprobe.exceptions import SerializationError
from utils.encoding import java_utf_bytes

from .constants import (
    BASE_WIRE_HANDLE,
    MAX_BLOCK_SIZE,
    PRIMITIVE_FORMATS,
    STREAM_HEADER,
    TC_ARRAY,
    TC_BLOCKDATA,
    TC_BLOCKDATALONG,
    TC_CLASS,
    TC_CLASSDESC,
    TC_ENDBLOCKDATA,
    TC_ENUM,
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
    JavaObject,
)

logger = logging.getLogger(__name__)

# 不覆盖类注解（使用默认 codebase 注解）
NO_OVERRIDE = object()


class ObjectOutputStream:
    """
    序列化流写出器

    原始值（write_int 等）先进入数据块缓冲，写对象前自动刷新为
    TC_BLOCKDATA；对象、类描述与字符串按标识分配句柄并复用。

    示例:
        >>> out = ObjectOutputStream()
        >>> out.write_stream_header()
        >>> out.write_int(2)
        >>> out.write_object("rmg")
        >>> data = out.to_bytes()
    """

    def __init__(self):
        self._buf = bytearray()
        self._block = bytearray()
        self._handles: Dict[int, int] = {}
        self._strings: Dict[str, int] = {}
        self._keep: List[Any] = []
        self._next_handle = 0
        self._needs_reset = False

    def to_bytes(self) -> bytes:
        self.flush()
        return bytes(self._buf)

    def write_stream_header(self) -> None:
        self._buf += STREAM_HEADER

    # ==================== 数据块 ====================

    def flush(self) -> None:
        """将缓冲的原始数据写为一个或多个数据块"""
        if self._block:
            self._write_block(bytes(self._block))
            self._block.clear()

    def pending_block(self) -> bytes:
        """返回尚未写出的原始数据（不含数据块帧）"""
        return bytes(self._block)

    def _write_block(self, data: bytes) -> None:
        for start in range(0, len(data), MAX_BLOCK_SIZE):
            chunk = data[start : start + MAX_BLOCK_SIZE]
            if len(chunk) <= 0xFF:
                self._buf += struct.pack(">BB", TC_BLOCKDATA, len(chunk))
            else:
                self._buf += struct.pack(">Bi", TC_BLOCKDATALONG, len(chunk))
            self._buf += chunk

    def write_bytes(self, data: bytes) -> None:
        self._block += data

    def write_byte(self, value: int) -> None:
        self._block += struct.pack(">B", value & 0xFF)

    def write_boolean(self, value: bool) -> None:
        self._block += b"\x01" if value else b"\x00"

    def write_short(self, value: int) -> None:
        self._block += struct.pack(">h", value)

    def write_char(self, value: Any) -> None:
        self._block += struct.pack(">H", ord(value) if isinstance(value, str) else value)

    def write_int(self, value: int) -> None:
        self._block += struct.pack(">i", value)

    def write_long(self, value: int) -> None:
        self._block += struct.pack(">q", value)

    def write_float(self, value: float) -> None:
        self._block += struct.pack(">f", value)

    def write_double(self, value: float) -> None:
        self._block += struct.pack(">d", value)

    def write_utf(self, value: str) -> None:
        body = java_utf_bytes(value)
        if len(body) > 0xFFFF:
            raise SerializationError(f"string too long for writeUTF: {len(body)} bytes")
        self._block += struct.pack(">H", len(body)) + body

    def write_primitive(self, type_code: str, value: Any) -> None:
        """按字段类型码把原始值写入数据块"""
        self._block += self._pack_primitive(type_code, value)

    def _pack_primitive(self, type_code: str, value: Any) -> bytes:
        fmt = PRIMITIVE_FORMATS.get(type_code)
        if fmt is None:
            raise SerializationError(f"unknown primitive type code {type_code!r}")
        if type_code == "C" and isinstance(value, str):
            value = ord(value)
        try:
            return struct.pack(fmt, value)
        except struct.error as e:
            raise SerializationError(f"cannot encode {value!r} as {type_code}: {e}") from e

    # ==================== 句柄 ====================

    def _clear_handles(self) -> None:
        self._handles.clear()
        self._strings.clear()
        self._keep.clear()
        self._next_handle = 0

    def _assign(self, value: Any) -> None:
        if isinstance(value, str):
            self._strings[value] = self._next_handle
        else:
            self._handles[id(value)] = self._next_handle
            self._keep.append(value)
        self._next_handle += 1

    def _lookup(self, value: Any) -> Optional[int]:
        if isinstance(value, str):
            return self._strings.get(value)
        return self._handles.get(id(value))

    def _write_reference(self, handle: int) -> None:
        self._buf += struct.pack(">Bi", TC_REFERENCE, handle + BASE_WIRE_HANDLE)

    def reset(self) -> None:
        """写出 TC_RESET 并清空句柄表"""
        self.flush()
        self._buf.append(TC_RESET)
        self._clear_handles()
        self._needs_reset = False

    # ==================== 对象 ====================

    def write_object(self, obj: Any) -> None:
        """
        写出一个对象

        支持 None、str 以及 rmiprobe.serialization.model 中的对象类型。

        Raises:
            SerializationError: 对象类型不受支持
        """
        self.flush()
        if self._needs_reset:
            self.reset()
        self._write_object(obj)

    def _write_object(self, obj: Any) -> None:
        if obj is None:
            self._buf.append(TC_NULL)
            return

        handle = self._lookup(obj)
        if handle is not None:
            self._write_reference(handle)
            return

        if isinstance(obj, str):
            self._write_string(obj)
        elif isinstance(obj, JavaObject):
            self._write_ordinary_object(obj)
        elif isinstance(obj, JavaArray):
            self._write_array(obj)
        elif isinstance(obj, JavaEnum):
            self._buf.append(TC_ENUM)
            self._write_class_desc(obj.desc)
            self._assign(obj)
            self._write_object(obj.constant)
        elif isinstance(obj, JavaClass):
            self._buf.append(TC_CLASS)
            self._write_class_desc(obj.desc)
            self._assign(obj)
        elif isinstance(obj, JavaClassDesc):
            self._write_class_desc(obj)
        else:
            raise SerializationError(f"cannot serialize value of type {type(obj).__name__}")

    def _write_string(self, value: str) -> None:
        body = java_utf_bytes(value)
        if len(body) <= 0xFFFF:
            self._buf += struct.pack(">BH", TC_STRING, len(body))
        else:
            self._buf += struct.pack(">Bq", TC_LONGSTRING, len(body))
        self._buf += body
        self._assign(value)

    def _write_raw_utf(self, value: str) -> None:
        body = java_utf_bytes(value)
        if len(body) > 0xFFFF:
            raise SerializationError(f"name too long: {len(body)} bytes")
        self._buf += struct.pack(">H", len(body)) + body

    def _write_class_desc(self, desc: Optional[JavaClassDesc]) -> None:
        if desc is None:
            self._buf.append(TC_NULL)
            return

        handle = self._lookup(desc)
        if handle is not None:
            self._write_reference(handle)
            return

        if desc.is_proxy:
            self._buf.append(TC_PROXYCLASSDESC)
            self._assign(desc)
            interfaces = desc.interfaces or []
            self._buf += struct.pack(">i", len(interfaces))
            for name in interfaces:
                self._write_raw_utf(name)
            self.annotate_proxy_class(desc)
        else:
            if not desc.name:
                raise SerializationError("class descriptor without a name")
            self._buf.append(TC_CLASSDESC)
            self._assign(desc)
            self._write_raw_utf(desc.name)
            self._buf += struct.pack(">qBh", desc.serial_version_uid, desc.flags, len(desc.fields))
            for java_field in desc.fields:
                self._buf.append(ord(java_field.type_code))
                self._write_raw_utf(java_field.name)
                if not java_field.is_primitive:
                    self._write_object(java_field.class_name)
            self.annotate_class(desc)

        self._buf.append(TC_ENDBLOCKDATA)
        self._write_class_desc(desc.super_desc)

    def annotate_class(self, desc: JavaClassDesc) -> None:
        """写出类注解；普通流原样写出类描述中保存的注解"""
        self._write_contents(desc.annotations)

    def annotate_proxy_class(self, desc: JavaClassDesc) -> None:
        self.annotate_class(desc)

    def _write_contents(self, items: List[Any]) -> None:
        for item in items:
            if isinstance(item, BlockData):
                self._write_block(item.data)
            else:
                self._write_object(item)

    def _write_ordinary_object(self, obj: JavaObject) -> None:
        self._buf.append(TC_OBJECT)
        self._write_class_desc(obj.desc)
        self._assign(obj)

        if obj.desc.is_externalizable:
            data = obj.data_for(obj.desc.name) if obj.desc.name else None
            if not obj.desc.has_block_data:
                raise SerializationError(f"externalizable class {obj.desc.name} must use block data mode")
            self._write_contents(data.annotations if data else [])
            self._buf.append(TC_ENDBLOCKDATA)
            return

        for class_desc in obj.desc.hierarchy():
            if not class_desc.is_serializable:
                continue
            data = self._class_data(obj, class_desc)
            for java_field in class_desc.fields:
                if java_field.name not in data.values:
                    raise SerializationError(
                        f"missing value for field {class_desc.name}.{java_field.name}"
                    )
                value = data.values[java_field.name]
                if java_field.is_primitive:
                    self._buf += self._pack_primitive(java_field.type_code, value)
                else:
                    self._write_object(value)
            if class_desc.has_write_method:
                self._write_contents(data.annotations)
                self._buf.append(TC_ENDBLOCKDATA)

    @staticmethod
    def _class_data(obj: JavaObject, class_desc: JavaClassDesc) -> ClassData:
        for data in obj.class_data:
            if data.desc is class_desc:
                return data
        for data in obj.class_data:
            if data.desc.name is not None and data.desc.name == class_desc.name:
                return data
        return ClassData(class_desc)

    def _write_array(self, array: JavaArray) -> None:
        self._buf.append(TC_ARRAY)
        self._write_class_desc(array.desc)
        self._assign(array)
        self._buf += struct.pack(">i", len(array.items))
        code = array.component_code
        if code in PRIMITIVE_FORMATS:
            for item in array.items:
                self._buf += self._pack_primitive(code, item)
        else:
            for item in array.items:
                self._write_object(item)

    # ==================== 外部流拼接 ====================

    def write_spliced(self, stream: bytes) -> None:
        """
        把一个完整的外部序列化流拼接为下一个顶层对象

        外部流去掉 ACED0005 头后原样写出。拼接前后各需要一次 TC_RESET，
        使服务端句柄表与本地句柄编号保持一致；拼接之后的 TC_RESET
        延迟到下一次写对象时才写出。

        Raises:
            SerializationError: 外部流缺少流头或为空
        """
        if not stream.startswith(STREAM_HEADER) or len(stream) <= len(STREAM_HEADER):
            raise SerializationError("spliced stream lacks the ACED0005 header or content")
        self.flush()
        if self._next_handle or self._needs_reset:
            self.reset()
        logger.debug(f"Splicing {len(stream) - len(STREAM_HEADER)} bytes of external stream content")
        self._buf += stream[len(STREAM_HEADER) :]
        self._needs_reset = True


class MarshalOutputStream(ObjectOutputStream):
    """
    RMI 编组输出流

    每个类描述（包括代理类描述）都带有一个 codebase 注解对象。
    默认写出类描述中已有的注解，没有时写出 null。

    指定 location 时进入“恶意注解”模式：所有类描述都使用该注解，
    location 可以是字符串（伪造的 codebase URL）或任意对象。
    写出注解对象本身时，其内部的类描述仍使用默认注解。

    示例:
        >>> out = MarshalOutputStream(location="InvalidURL")
    """

    def __init__(self, location: Any = NO_OVERRIDE):
        super().__init__()
        self._location = location
        self._annotating = False

    @property
    def overrides_location(self) -> bool:
        return self._location is not NO_OVERRIDE

    def annotate_class(self, desc: JavaClassDesc) -> None:
        if self.overrides_location and not self._annotating:
            self._annotating = True
            try:
                self._write_object(self._location)
            finally:
                self._annotating = False
        elif desc.annotations:
            self._write_contents(desc.annotations)
        else:
            self._buf.append(TC_NULL)


__all__ = ["NO_OVERRIDE", "ObjectOutputStream", "MarshalOutputStream"]
