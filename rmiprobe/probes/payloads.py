"""
Payload 接口

探测本身不构造反序列化 gadget。gadget 由外部的 GadgetProvider 提供，
以 PayloadObject（完整的、带 RMI 注解的序列化流）的形式交给调用分发器。
"""

from __future__ import annotations

import abc
import io
import logging

from rmiprobe.exceptions import PayloadError, SerializationError
from rmiprobe.protocol.arguments import PayloadObject, RawPayload
from rmiprobe.serialization import MarshalOutputStream, ObjectStreamReader

logger = logging.getLogger(__name__)


class GadgetProvider(abc.ABC):
    """gadget 提供者"""

    @abc.abstractmethod
    def prepare_an_trinh_gadget(self, host: str, port: int) -> PayloadObject:
        """
        生成 An Trinh JEP290 绕过 gadget

        gadget 在服务端反序列化时会向 host:port 发起 JRMP 连接。
        """


def annotate_stream(data: bytes, name: str = "unknown") -> RawPayload:
    """
    把普通序列化流转换为 RMI 编组流

    普通 ObjectOutputStream 生成的流没有 codebase 注解，RMI 服务端无法读取。
    这里解析流中的第一个对象，并用 MarshalOutputStream 重新写出。

    Raises:
        PayloadError: 流无法解析
    """
    reader = ObjectStreamReader(io.BytesIO(data))
    try:
        reader.read_stream_header()
        obj = reader.read_object()
    except SerializationError as e:
        raise PayloadError(f"Unable to parse payload stream for {name}: {e.message}", cause=e) from e

    out = MarshalOutputStream()
    out.write_stream_header()
    try:
        out.write_object(obj)
    except SerializationError as e:
        raise PayloadError(f"Unable to re-encode payload {name}: {e.message}", cause=e) from e

    logger.debug(f"Re-annotated payload {name} ({len(data)} -> {len(out.to_bytes())} bytes)")
    return RawPayload(out.to_bytes(), name)


__all__ = ["GadgetProvider", "PayloadObject", "RawPayload", "annotate_stream"]
