"""
Java 对象序列化流常量

参考 java.io.ObjectStreamConstants。
"""

STREAM_MAGIC = 0xACED
STREAM_VERSION = 5
STREAM_HEADER = b"\xac\xed\x00\x05"

# 类型码
TC_NULL = 0x70
TC_REFERENCE = 0x71
TC_CLASSDESC = 0x72
TC_OBJECT = 0x73
TC_STRING = 0x74
TC_ARRAY = 0x75
TC_CLASS = 0x76
TC_BLOCKDATA = 0x77
TC_ENDBLOCKDATA = 0x78
TC_RESET = 0x79
TC_BLOCKDATALONG = 0x7A
TC_EXCEPTION = 0x7B
TC_LONGSTRING = 0x7C
TC_PROXYCLASSDESC = 0x7D
TC_ENUM = 0x7E

BASE_WIRE_HANDLE = 0x7E0000

# 类描述标志
SC_WRITE_METHOD = 0x01
SC_SERIALIZABLE = 0x02
SC_EXTERNALIZABLE = 0x04
SC_BLOCK_DATA = 0x08
SC_ENUM = 0x10

# 单个数据块的最大长度（与 JDK 的 MAX_BLOCK_SIZE 一致）
MAX_BLOCK_SIZE = 1024

# 字段类型码 -> struct 格式
PRIMITIVE_FORMATS = {
    "B": ">b",
    "C": ">H",
    "D": ">d",
    "F": ">f",
    "I": ">i",
    "J": ">q",
    "S": ">h",
    "Z": ">?",
}

OBJECT_TYPE_CODES = ("L", "[")
