#!/usr/bin/env python3
"""
RMIProbe 工具函数层

- logger: 日志系统
- encoding: Java 修改版 UTF-8 与十六进制工具
- net_utils: 目标解析

使用示例:
    from utils import configure_logging, java_utf_encode, parse_target
"""

from utils.encoding import (
    hex_decode,
    hex_encode,
    hexdump,
    java_utf_bytes,
    java_utf_decode,
    java_utf_encode,
)
from utils.logger import (
    ColoredFormatter,
    SecureFileHandler,
    configure_logging,
    get_logger,
    set_log_level,
)
from utils.net_utils import parse_target

__all__ = [
    "ColoredFormatter",
    "SecureFileHandler",
    "configure_logging",
    "get_logger",
    "set_log_level",
    "java_utf_bytes",
    "java_utf_encode",
    "java_utf_decode",
    "hex_encode",
    "hex_decode",
    "hexdump",
    "parse_target",
]
