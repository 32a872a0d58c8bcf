"""
已知的 RMI 远程类

JDK 自带的远程对象（注册中心、激活系统、JMX、DGC）的桩类与接口名。
不在表中的类视为未知（自定义）类。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class KnownClass:
    name: str
    description: str
    interface: bool = False


class KnownClasses:
    """
    已知类表

    示例:
        >>> KnownClasses.describe("javax.management.remote.rmi.RMIServerImpl_Stub")
        'JMX Server'
    """

    _ENTRIES: Dict[str, KnownClass] = {
        entry.name: entry
        for entry in [
            KnownClass("sun.rmi.registry.RegistryImpl_Stub", "RMI Registry"),
            KnownClass("java.rmi.registry.Registry", "RMI Registry", interface=True),
            KnownClass("sun.rmi.server.Activation$ActivationSystemImpl_Stub", "RMI Activation System"),
            KnownClass("java.rmi.activation.ActivationSystem", "RMI Activation System", interface=True),
            KnownClass("sun.rmi.server.Activation$ActivatorImpl_Stub", "RMI Activator"),
            KnownClass("java.rmi.activation.Activator", "RMI Activator", interface=True),
            KnownClass("java.rmi.activation.ActivationMonitor", "RMI Activation Monitor", interface=True),
            KnownClass("java.rmi.activation.ActivationInstantiator", "RMI Activation Instantiator", interface=True),
            KnownClass("javax.management.remote.rmi.RMIServerImpl_Stub", "JMX Server"),
            KnownClass("javax.management.remote.rmi.RMIServer", "JMX Server", interface=True),
            KnownClass("javax.management.remote.rmi.RMIConnectionImpl_Stub", "JMX Connection"),
            KnownClass("javax.management.remote.rmi.RMIConnection", "JMX Connection", interface=True),
            KnownClass("sun.rmi.transport.DGCImpl_Stub", "RMI DGC"),
            KnownClass("java.rmi.dgc.DGC", "RMI DGC", interface=True),
        ]
    }

    @classmethod
    def is_known(cls, class_name: Optional[str]) -> bool:
        return class_name is not None and class_name in cls._ENTRIES

    @classmethod
    def get(cls, class_name: Optional[str]) -> Optional[KnownClass]:
        if class_name is None:
            return None
        return cls._ENTRIES.get(class_name)

    @classmethod
    def describe(cls, class_name: Optional[str]) -> Optional[str]:
        entry = cls.get(class_name)
        return entry.description if entry else None


__all__ = ["KnownClass", "KnownClasses"]
