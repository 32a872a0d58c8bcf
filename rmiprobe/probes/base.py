"""
探测器基类

每个探测都是一张有序的判定表：对根异常按 (FaultKind, 消息子串) 依次匹配，
第一条命中的规则决定结论；表中没有的结果一律为 UNKNOWN 并附带原始异常。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple

from rmiprobe.config import ProbeConfig
from rmiprobe.protocol.dispatcher import CallAddress, CallOutcome, RMIDispatcher
from rmiprobe.protocol.faults import FaultKind, RemoteFault
from rmiprobe.protocol.objid import ObjID

from .result import ProbeResult, Verdict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rule:
    """
    判定规则

    属性:
        kinds: 匹配的异常分类
        verdict: 命中时的结论
        explanation: 结论说明
        contains: 异常消息必须包含的子串
        details: 附加结论（例如 {"marshal": True}）
    """

    kinds: Tuple[FaultKind, ...]
    verdict: Verdict
    explanation: str
    contains: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def matches(self, fault: RemoteFault) -> bool:
        if fault.kind not in self.kinds:
            return False
        if self.contains is not None and not fault.message_contains(self.contains):
            return False
        return True


@dataclass(frozen=True)
class Success:
    """调用正常返回时的结论"""

    verdict: Verdict
    explanation: str
    details: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


UNEXPECTED_SUCCESS = Success(Verdict.UNKNOWN, "call returned without an exception")


def classify(
    probe: str,
    outcome: CallOutcome,
    rules: Sequence[Rule],
    on_success: Success = UNEXPECTED_SUCCESS,
    call: Optional[str] = None,
) -> ProbeResult:
    """
    按判定表把调用结果转换为 ProbeResult

    Args:
        probe: 探测名称
        outcome: 调用结果
        rules: 判定规则（顺序即优先级）
        on_success: 正常返回时的结论
        call: 使用的调用名
    """
    if outcome.ok:
        result = ProbeResult(probe, on_success.verdict, on_success.explanation, details=dict(on_success.details), call=call)
    else:
        root = outcome.root_fault
        for rule in rules:
            if rule.matches(root):
                result = ProbeResult(probe, rule.verdict, rule.explanation, fault=root, details=dict(rule.details), call=call)
                break
        else:
            result = ProbeResult(probe, Verdict.UNKNOWN, f"unexpected {root}", fault=root, call=call)

    if result.verdict == Verdict.UNKNOWN:
        logger.warning(f"{probe}: {result.explanation}")
    else:
        logger.info(f"{probe}: {result.verdict.label} ({result.explanation})")
    return result


class BaseClient:
    """
    探测客户端基类

    子类设置 OBJ_ID，并通过 _invoke 发送调用、classify 判定结论。
    """

    OBJ_ID: ObjID

    def __init__(self, dispatcher: RMIDispatcher, config: Optional[ProbeConfig] = None):
        self.dispatcher = dispatcher
        self.config = config or ProbeConfig()

    def _invoke(
        self,
        address: CallAddress,
        arguments: Any = None,
        annotation: Any = None,
        return_type: Optional[str] = None,
    ) -> CallOutcome:
        return self.dispatcher.call(self.OBJ_ID, address, arguments, annotation=annotation, return_type=return_type)

    @staticmethod
    def _skipped(probe: str, explanation: str, call: Optional[str] = None) -> ProbeResult:
        logger.info(f"{probe}: skipped ({explanation})")
        return ProbeResult(probe, Verdict.SKIPPED, explanation, call=call)


__all__ = ["Rule", "Success", "UNEXPECTED_SUCCESS", "classify", "BaseClient"]
