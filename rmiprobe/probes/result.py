"""
探测结果数据类

定义探测结论（Verdict）与单次探测结果的数据结构
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from rmiprobe.protocol.faults import RemoteFault


class Verdict(Enum):
    """探测结论枚举"""

    VULNERABLE = "vulnerable"  # 存在漏洞
    NON_VULNERABLE = "non_vulnerable"  # 不存在漏洞
    CURRENT_DEFAULT = "current_default"  # 当前默认配置
    NON_DEFAULT = "non_default"  # 非默认配置
    UNDECIDED = "undecided"  # 无法判定
    OUTDATED = "outdated"  # 版本过旧
    UNKNOWN = "unknown"  # 未知结果或错误
    SKIPPED = "skipped"  # 无法远程判定，未发送调用

    @property
    def label(self) -> str:
        """获取显示名称"""
        labels = {
            "vulnerable": "Vulnerable",
            "non_vulnerable": "Non Vulnerable",
            "current_default": "Current Default",
            "non_default": "Non Default",
            "undecided": "Undecided",
            "outdated": "Outdated",
            "unknown": "Unknown",
            "skipped": "Skipped",
        }
        return labels[self.value]

    @property
    def category(self) -> str:
        """结论类别：漏洞状态或配置状态"""
        if self in (Verdict.VULNERABLE, Verdict.NON_VULNERABLE):
            return "Vulnerability Status"
        if self in (Verdict.CURRENT_DEFAULT, Verdict.NON_DEFAULT, Verdict.OUTDATED):
            return "Configuration Status"
        return "Status"


@dataclass
class ProbeResult:
    """探测结果数据类

    每次探测调用生成一个结果，不做持久化
    """

    probe: str  # 探测名称
    verdict: Verdict  # 探测结论
    explanation: str  # 结论说明

    fault: Optional[RemoteFault] = None  # 服务端异常（诊断用）
    details: Dict[str, Any] = field(default_factory=dict)  # 附加结论，例如 marshal
    call: Optional[str] = None  # 使用的调用名

    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def skipped(self) -> bool:
        return self.verdict == Verdict.SKIPPED

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            "probe": self.probe,
            "verdict": self.verdict.value,
            "category": self.verdict.category,
            "explanation": self.explanation,
            "fault": self.fault.to_dict() if self.fault else None,
            "details": dict(self.details),
            "call": self.call,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return f"[{self.probe}] {self.verdict.category}: {self.verdict.label} - {self.explanation}"


__all__ = ["Verdict", "ProbeResult"]
