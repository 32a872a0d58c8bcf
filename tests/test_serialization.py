"""
Java 序列化流测试 - 读写器、RMI 注解与外部流拼接
"""

import io

import pytest

from rmiprobe.exceptions import PayloadError, SerializationError
from rmiprobe.probes.payloads import RawPayload, annotate_stream
from rmiprobe.serialization import (
    BOGUS_CLASS_NAME,
    BlockData,
    JavaArray,
    JavaEnum,
    JavaObject,
    MarshalOutputStream,
    ObjectOutputStream,
    ObjectStreamReader,
    hash_map,
    integer,
    long_value,
    new_class_desc,
    plain_object,
    string_array,
)
from rmiprobe.serialization.constants import (
    SC_ENUM,
    SC_SERIALIZABLE,
    STREAM_HEADER,
    TC_BLOCKDATA,
    TC_BLOCKDATALONG,
    TC_EXCEPTION,
    TC_NULL,
    TC_REFERENCE,
    TC_RESET,
    TC_STRING,
)
from utils.encoding import hex_decode, hex_encode, hexdump, java_utf_bytes, java_utf_decode, java_utf_encode

pytestmark = [pytest.mark.unit]


def read_back(data: bytes) -> ObjectStreamReader:
    reader = ObjectStreamReader(io.BytesIO(data))
    reader.read_stream_header()
    return reader


def write_objects(*objects, out=None) -> bytes:
    out = out or ObjectOutputStream()
    out.write_stream_header()
    for obj in objects:
        out.write_object(obj)
    return out.to_bytes()


class TestModifiedUTF8:
    """测试修改版 UTF-8"""

    def test_ascii(self):
        assert java_utf_encode("rmg") == b"\x00\x03rmg"

    def test_null_character(self):
        """U+0000 编码为 C0 80"""
        assert java_utf_bytes("\x00") == b"\xc0\x80"
        assert java_utf_decode(b"\xc0\x80") == "\x00"

    def test_supplementary_character(self):
        """BMP 以外的字符编码为两个三字节代理"""
        encoded = java_utf_bytes("\U0001F600")
        assert len(encoded) == 6
        assert java_utf_decode(encoded) == "\U0001F600"

    def test_two_byte_characters(self):
        assert java_utf_decode(java_utf_bytes("ünïcode 中文")) == "ünïcode 中文"

    def test_too_long(self):
        with pytest.raises(ValueError):
            java_utf_encode("a" * 70000)

    def test_malformed(self):
        with pytest.raises(ValueError):
            java_utf_decode(b"\xe0\x80")

    def test_hex_helpers(self):
        assert hex_encode(b"\xac\xed") == "aced"
        assert hex_decode("ACED0005") == STREAM_HEADER
        assert "ac ed 00 05" in hexdump(STREAM_HEADER)


class TestBlockData:
    """测试数据块模式的原始数据"""

    def test_primitives_round_trip(self):
        out = ObjectOutputStream()
        out.write_stream_header()
        out.write_int(-2)
        out.write_long(2**40)
        out.write_boolean(True)
        out.write_short(-7)
        out.write_utf("rmg")
        data = out.to_bytes()

        assert data[4] == TC_BLOCKDATA
        reader = read_back(data)
        assert reader.read_int() == -2
        assert reader.read_long() == 2**40
        assert reader.read_boolean() is True
        assert reader.read_short() == -7
        assert reader.read_utf() == "rmg"

    def test_long_block(self):
        """超过 255 字节使用 TC_BLOCKDATALONG，超过 1024 字节拆分"""
        out = ObjectOutputStream()
        out.write_stream_header()
        out.write_bytes(b"A" * 1500)
        data = out.to_bytes()

        assert data[4] == TC_BLOCKDATALONG
        assert data[4 + 5 + 1024] == TC_BLOCKDATALONG
        assert read_back(data).read_bytes(1500) == b"A" * 1500

    def test_block_flushed_before_object(self):
        out = ObjectOutputStream()
        out.write_stream_header()
        out.write_int(1)
        out.write_object(None)
        assert out.to_bytes() == STREAM_HEADER + bytes([TC_BLOCKDATA, 4, 0, 0, 0, 1, TC_NULL])

    def test_truncated_stream(self):
        data = STREAM_HEADER + bytes([TC_BLOCKDATA, 4, 0, 0])
        with pytest.raises(SerializationError, match="unexpected end of stream"):
            read_back(data).read_int()


class TestObjects:
    """测试对象读写"""

    def test_invalid_header(self):
        with pytest.raises(SerializationError):
            ObjectStreamReader(io.BytesIO(b"\xca\xfe\xba\xbe")).read_stream_header()

    def test_strings_and_references(self):
        """重复字符串写为引用"""
        data = write_objects("rmg", "rmg", None)
        assert data[4] == TC_STRING
        assert data[4 + 6] == TC_REFERENCE

        reader = read_back(data)
        assert reader.read_object() == "rmg"
        assert reader.read_object() == "rmg"
        assert reader.read_object() is None

    def test_integer(self):
        obj = read_back(write_objects(integer(1337))).read_object()
        assert isinstance(obj, JavaObject)
        assert obj.class_name == "java.lang.Integer"
        assert obj.get("value") == 1337
        assert obj.is_instance("java.lang.Number")

    def test_hash_map(self):
        obj = read_back(write_objects(hash_map())).read_object()
        assert obj.class_name == "java.util.HashMap"
        assert obj.get("threshold") == 12
        assert obj.get("loadFactor") == pytest.approx(0.75)
        data = obj.data_for("java.util.HashMap")
        assert data.annotations == [BlockData(b"\x00\x00\x00\x10\x00\x00\x00\x00")]

    def test_string_array(self):
        array = read_back(write_objects(string_array(["a", None, "b"]))).read_object()
        assert isinstance(array, JavaArray)
        assert array.items == ["a", None, "b"]

    def test_enum(self):
        enum_base = new_class_desc("java.lang.Enum", 0, flags=SC_ENUM | SC_SERIALIZABLE)
        desc = new_class_desc("com.example.Color", 0, flags=SC_ENUM | SC_SERIALIZABLE, super_desc=enum_base)
        value = read_back(write_objects(JavaEnum(desc, "RED"))).read_object()
        assert isinstance(value, JavaEnum)
        assert value.constant == "RED"
        assert value.desc.name == "com.example.Color"
        assert value.desc.is_enum

    def test_shared_descriptor(self):
        """同一类描述只写一次"""
        reader = read_back(write_objects(integer(1), integer(2)))
        first, second = reader.read_object(), reader.read_object()
        assert first.desc is second.desc
        assert (first.get("value"), second.get("value")) == (1, 2)

    def test_jdk_descriptor_written_once(self):
        """包装类型共享类描述，第二个对象以引用写出"""
        data = write_objects(integer(1), integer(2), long_value(3))
        assert data.count(b"java.lang.Integer") == 1
        assert data.count(b"java.lang.Number") == 1
        assert integer(1).desc is integer(2).desc

    def test_exception_marker(self):
        data = STREAM_HEADER + bytes([TC_EXCEPTION]) + write_objects("boom")[4:]
        with pytest.raises(SerializationError, match="serialization failure"):
            read_back(data).read_object()

    def test_unsupported_value(self):
        out = ObjectOutputStream()
        with pytest.raises(SerializationError):
            out.write_object(object())


class TestMarshalOutputStream:
    """测试 RMI 类注解"""

    def test_default_annotation_is_null(self):
        obj = read_back(write_objects(integer(0), out=MarshalOutputStream())).read_object()
        assert obj.desc.annotations == [None]
        assert obj.desc.super_desc.annotations == [None]

    def test_string_location_override(self):
        """覆盖模式下每个类描述都使用同一注解"""
        obj = read_back(write_objects(integer(0), out=MarshalOutputStream(location="InvalidURL"))).read_object()
        assert obj.desc.annotations == ["InvalidURL"]
        assert obj.desc.super_desc.annotations == ["InvalidURL"]

    def test_object_location_override(self):
        """注解对象自身的类描述使用默认注解"""
        out = MarshalOutputStream(location=plain_object(BOGUS_CLASS_NAME))
        obj = read_back(write_objects(integer(0), out=out)).read_object()
        (annotation,) = obj.desc.annotations
        assert annotation.class_name == BOGUS_CLASS_NAME
        assert annotation.desc.annotations == [None]

    def test_plain_stream_keeps_existing_annotations(self):
        obj = read_back(write_objects(integer(0), out=MarshalOutputStream(location="http://x/"))).read_object()
        again = read_back(write_objects(obj)).read_object()
        assert again.desc.annotations == ["http://x/"]


class TestSplicing:
    """测试外部流拼接"""

    def test_splice_between_objects(self):
        external = write_objects("gadget")

        out = ObjectOutputStream()
        out.write_stream_header()
        out.write_object("before")
        out.write_spliced(external)
        out.write_object("after")
        data = out.to_bytes()

        assert data.count(bytes([TC_RESET])) == 2
        reader = read_back(data)
        assert [reader.read_object() for _ in range(3)] == ["before", "gadget", "after"]

    def test_splice_first_object_without_reset(self):
        out = ObjectOutputStream()
        out.write_stream_header()
        out.write_spliced(write_objects("gadget"))
        assert out.to_bytes()[4] == TC_STRING

    @pytest.mark.parametrize("stream", [b"", STREAM_HEADER, b"\x00\x01\x02\x03\x04"])
    def test_invalid_spliced_stream(self, stream):
        out = ObjectOutputStream()
        with pytest.raises(SerializationError):
            out.write_spliced(stream)


class TestAnnotateStream:
    """测试普通序列化流转换为 RMI 编组流"""

    def test_annotation_added(self):
        plain = write_objects(plain_object("com.example.Gadget"))

        payload = annotate_stream(plain, "gadget")

        assert isinstance(payload, RawPayload)
        assert payload.class_name == "gadget"
        # 唯一的类描述多出一个 null 注解
        assert len(payload.serialize()) == len(plain) + 1
        assert read_back(payload.serialize()).read_object().class_name == "com.example.Gadget"

    def test_invalid_stream(self):
        with pytest.raises(PayloadError):
            annotate_stream(b"\xac\xed\x00\x05\x01", "broken")
