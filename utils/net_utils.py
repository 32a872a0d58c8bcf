#!/usr/bin/env python3
"""
网络工具模块 - RMIProbe

目标字符串解析。
"""

import re
from typing import Tuple

DEFAULT_REGISTRY_PORT = 1099

_IPV6_TARGET = re.compile(r"^\[([^\]]+)\](?::(\d+))?$")


def parse_target(target: str, default_port: int = DEFAULT_REGISTRY_PORT) -> Tuple[str, int]:
    """
    解析目标字符串

    支持格式：
    - 主机: 192.168.1.1 / registry.example.com
    - 带端口: 192.168.1.1:1099
    - IPv6: [::1]:1099 / [::1]
    - URL: rmi://192.168.1.1:1099/name（路径部分被忽略）

    Args:
        target: 目标字符串
        default_port: 未指定端口时使用的端口

    Returns:
        (host, port) 元组

    Raises:
        ValueError: 目标为空或端口无效
    """
    target = target.strip()
    if "://" in target:
        target = target.split("://", 1)[1].split("/", 1)[0]

    if not target:
        raise ValueError("empty target")

    host = target
    port = default_port

    match = _IPV6_TARGET.match(target)
    if match:
        host = match.group(1)
        if match.group(2):
            port = int(match.group(2))
    elif target.count(":") == 1:
        host, port_str = target.rsplit(":", 1)
        if not port_str.isdigit():
            raise ValueError(f"invalid port in target {target!r}")
        port = int(port_str)

    if not host:
        raise ValueError(f"missing host in target {target!r}")
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in target {target!r}")
    return host, port


__all__ = ["DEFAULT_REGISTRY_PORT", "parse_target"]
