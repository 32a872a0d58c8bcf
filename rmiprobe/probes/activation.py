"""
激活系统客户端

Activator（ObjID 1）只在启动了 rmid 或旧版激活系统的端点上存在。
activate 方法的 ActivationID 参数按对象反序列化，用 Integer 替代即可
区分：对象不存在、参数被反序列化、参数被过滤三种情况。
Activator 存在时再发送一次带无效 codebase 注解的调用，判断是否启用了客户端 codebase。
"""

from __future__ import annotations

import logging
from typing import Any

from rmiprobe.protocol.arguments import MethodArguments
from rmiprobe.protocol.dispatcher import CallOutcome, HashCall
from rmiprobe.protocol.faults import FaultKind
from rmiprobe.protocol.objid import ACTIVATOR_ID

from .base import BaseClient, Rule, classify
from .result import ProbeResult, Verdict

logger = logging.getLogger(__name__)

# activate(Ljava/rmi/activation/ActivationID;Z)Ljava/rmi/MarshalledObject;
ACTIVATE = HashCall(-8767355154875805558)

# 类在本地解析成功后才会出现的异常
_RESOLVED_LOCALLY = (FaultKind.ILLEGAL_ARGUMENT, FaultKind.CLASS_CAST, FaultKind.INVALID_CLASS)


class ActivationClient(BaseClient):
    """Activator 探测客户端"""

    OBJ_ID = ACTIVATOR_ID

    def _activate(self, annotation: Any = None) -> CallOutcome:
        arguments = MethodArguments().add(0, "java.lang.Integer").add(False, "boolean")
        return self._invoke(ACTIVATE, arguments, annotation=annotation)

    def enum_activator(self) -> ProbeResult:
        """
        判断 Activator 是否存在、是否反序列化参数以及是否使用客户端 codebase

        结论描述反序列化状态；codebase 状态放在 details 中
        （codebase_enabled / codebase_verdict）。
        """
        probe = "activator"
        rules = [
            Rule((FaultKind.NO_SUCH_OBJECT,), Verdict.CURRENT_DEFAULT, "activator is not present on the endpoint", details={"present": False}),
            Rule(
                (FaultKind.ILLEGAL_ARGUMENT,),
                Verdict.VULNERABLE,
                "activator is present and deserialized java.lang.Integer",
                details={"present": True},
            ),
            Rule(
                (FaultKind.INVALID_CLASS,),
                Verdict.NON_VULNERABLE,
                "activator is present and filters its arguments",
                details={"present": True},
            ),
        ]
        result = classify(probe, self._activate(), rules, call="activate")
        if result.details.get("present"):
            codebase = self.enum_codebase()
            result.details["codebase_verdict"] = codebase.verdict.value
            result.details["codebase_enabled"] = codebase.details.get("codebase_enabled")
        return result

    def enum_codebase(self) -> ProbeResult:
        """把 Integer 的类注解替换为无效 URL：服务端解析该 URL 说明启用了客户端 codebase"""
        probe = "activator_codebase"
        rules = [
            Rule(
                (FaultKind.MALFORMED_URL,),
                Verdict.NON_DEFAULT,
                "activator attempted to parse the client codebase (useCodebaseOnly=false)",
                details={"codebase_enabled": True},
            ),
            Rule(
                _RESOLVED_LOCALLY,
                Verdict.CURRENT_DEFAULT,
                "activator ignored the client codebase (useCodebaseOnly=true)",
                details={"codebase_enabled": False},
            ),
        ]
        outcome = self._activate(annotation=self.config.codebase_location)
        return classify(probe, outcome, rules, call="activate")


__all__ = ["ACTIVATE", "ActivationClient"]
