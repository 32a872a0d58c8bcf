#!/usr/bin/env python3
"""
编码工具模块 - RMIProbe

提供 Java 线上格式用到的编码/解码功能，包括：
- Java 修改版 UTF-8（DataOutput.writeUTF 使用的编码）
- 十六进制编码/解码与调试用的 hexdump

使用示例:
    from utils.encoding import java_utf_encode, java_utf_decode, hex_encode

    encoded = java_utf_encode("lookup(Ljava/lang/String;)Ljava/rmi/Remote;")
    decoded = java_utf_decode(encoded[2:])
"""

import binascii
import struct
from typing import Union


def _ensure_bytes(data: Union[str, bytes], encoding: str = "utf-8") -> bytes:
    """确保数据为bytes类型"""
    if isinstance(data, str):
        return data.encode(encoding)
    return data


# ==================== Java 修改版 UTF-8 ====================


def java_utf_bytes(text: str) -> bytes:
    """
    将字符串编码为 Java 修改版 UTF-8（不含长度前缀）

    与标准 UTF-8 的区别：U+0000 编码为两个字节 C0 80，
    BMP 以外的字符按 UTF-16 代理对分别编码为三个字节。

    Args:
        text: 要编码的字符串

    Returns:
        编码后的字节
    """
    units = text.encode("utf-16-be", "surrogatepass")
    out = bytearray()
    for (unit,) in struct.iter_unpack(">H", units):
        if 0x0001 <= unit <= 0x007F:
            out.append(unit)
        elif unit <= 0x07FF:
            out.append(0xC0 | (unit >> 6))
            out.append(0x80 | (unit & 0x3F))
        else:
            out.append(0xE0 | (unit >> 12))
            out.append(0x80 | ((unit >> 6) & 0x3F))
            out.append(0x80 | (unit & 0x3F))
    return bytes(out)


def java_utf_encode(text: str) -> bytes:
    """
    按 DataOutput.writeUTF 编码：两字节长度前缀 + 修改版 UTF-8

    Raises:
        ValueError: 编码后长度超过 65535 字节
    """
    body = java_utf_bytes(text)
    if len(body) > 0xFFFF:
        raise ValueError(f"encoded string too long: {len(body)} bytes")
    return struct.pack(">H", len(body)) + body


def java_utf_decode(data: bytes) -> str:
    """
    解码修改版 UTF-8 字节（不含长度前缀）

    Raises:
        ValueError: 字节序列不合法
    """
    units = []
    i = 0
    length = len(data)
    while i < length:
        b = data[i]
        if b < 0x80:
            units.append(b)
            i += 1
        elif b & 0xE0 == 0xC0:
            if i + 1 >= length:
                raise ValueError(f"truncated two-byte sequence at offset {i}")
            units.append(((b & 0x1F) << 6) | (data[i + 1] & 0x3F))
            i += 2
        elif b & 0xF0 == 0xE0:
            if i + 2 >= length:
                raise ValueError(f"truncated three-byte sequence at offset {i}")
            units.append(((b & 0x0F) << 12) | ((data[i + 1] & 0x3F) << 6) | (data[i + 2] & 0x3F))
            i += 3
        else:
            raise ValueError(f"malformed input around byte {i}")
    raw = struct.pack(f">{len(units)}H", *units)
    return raw.decode("utf-16-be", "surrogatepass")


# ==================== 十六进制编码 ====================


def hex_encode(data: Union[str, bytes], encoding: str = "utf-8") -> str:
    """
    十六进制编码

    Args:
        data: 要编码的数据
        encoding: 字符串编码方式

    Returns:
        十六进制字符串（小写）
    """
    data_bytes = _ensure_bytes(data, encoding)
    return binascii.hexlify(data_bytes).decode("ascii")


def hex_decode(data: str) -> bytes:
    """
    十六进制解码，忽略空白和可选的 0x 前缀
    """
    data = "".join(data.split())
    if data.lower().startswith("0x"):
        data = data[2:]
    return binascii.unhexlify(data)


def hexdump(data: bytes, width: int = 16) -> str:
    """
    生成调试日志用的 hexdump 文本

    Args:
        data: 原始字节
        width: 每行字节数

    Returns:
        多行文本，每行为 偏移量  十六进制  可打印字符
    """
    lines = []
    for offset in range(0, len(data), width):
        chunk = data[offset : offset + width]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        text_part = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"{offset:08x}  {hex_part:<{width * 3}} {text_part}")
    return "\n".join(lines)


__all__ = [
    "java_utf_bytes",
    "java_utf_encode",
    "java_utf_decode",
    "hex_encode",
    "hex_decode",
    "hexdump",
]
