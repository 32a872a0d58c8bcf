"""
DGC 客户端

分布式垃圾回收器（ObjID 2）存在于每个 RMI 端点上。
clean 调用的第一个参数是 ObjID[]，服务端会先把它反序列化，
因此可以用来探测反序列化过滤与 RMI 类加载器状态。
"""

from __future__ import annotations

import logging
from typing import Any

from rmiprobe.protocol.arguments import MethodArguments
from rmiprobe.protocol.constants import DGC_INTERFACE_HASH
from rmiprobe.protocol.dispatcher import LegacyCall
from rmiprobe.protocol.faults import FaultKind
from rmiprobe.protocol.objid import DGC_ID
from rmiprobe.serialization import BOGUS_CLASS_NAME, hash_map, plain_object

from .base import BaseClient, Rule, classify
from .result import ProbeResult, Verdict

logger = logging.getLogger(__name__)

CLEAN = LegacyCall(0, DGC_INTERFACE_HASH)


class DGCClient(BaseClient):
    """DGC 探测客户端"""

    OBJ_ID = DGC_ID

    @staticmethod
    def pack_clean_args(payload: Any) -> MethodArguments:
        """clean(ObjID[] ids, long seqNum, VMID vmid, boolean strong)"""
        return (
            MethodArguments()
            .add(payload, "java.lang.Object")
            .add(0, "long")
            .add(None, "java.rmi.dgc.VMID")
            .add(False, "boolean")
        )

    def enum_security_manager(self) -> ProbeResult:
        """
        判断服务端是否安装了 SecurityManager

        发送一个不存在的类；RMI 类加载器在没有 SecurityManager 时
        会在 ClassNotFoundException 中说明类加载器已禁用。
        """
        probe = "security_manager"
        rules = [
            Rule(
                (FaultKind.CLASS_NOT_FOUND,),
                Verdict.CURRENT_DEFAULT,
                "no security manager is installed (RMI class loader disabled)",
                contains="no security manager",
                details={"security_manager": False},
            ),
            Rule(
                (FaultKind.CLASS_NOT_FOUND,),
                Verdict.CURRENT_DEFAULT,
                "security manager is installed (access to class loader denied)",
                contains="access to class loader denied",
                details={"security_manager": True},
            ),
            Rule(
                (FaultKind.CLASS_NOT_FOUND,),
                Verdict.NON_DEFAULT,
                "security manager is installed and the class loader was consulted",
                contains=BOGUS_CLASS_NAME,
                details={"security_manager": True},
            ),
            Rule(
                (FaultKind.INVALID_CLASS, FaultKind.UNSUPPORTED_OPERATION),
                Verdict.UNDECIDED,
                "DGC rejected the class before it was resolved (deserialization filter)",
            ),
        ]
        outcome = self._invoke(CLEAN, self.pack_clean_args(plain_object(BOGUS_CLASS_NAME)))
        return classify(probe, outcome, rules, call="clean")

    def enum_jep290(self) -> ProbeResult:
        """判断 DGC 是否安装了 JEP290 反序列化过滤（以 HashMap 作为 ObjID[] 参数）"""
        probe = "dgc_jep290"
        rules = [
            Rule((FaultKind.INVALID_CLASS,), Verdict.NON_VULNERABLE, "java.util.HashMap was rejected (JEP290 filter installed)"),
            Rule((FaultKind.CLASS_CAST,), Verdict.VULNERABLE, "java.util.HashMap was deserialized (no JEP290 filter)"),
        ]
        outcome = self._invoke(CLEAN, self.pack_clean_args(hash_map()))
        return classify(probe, outcome, rules, call="clean")


__all__ = ["CLEAN", "DGCClient"]
