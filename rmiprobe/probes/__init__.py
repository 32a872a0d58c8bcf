"""
探测器

- RegistryClient: 注册中心探测与操作
- DGCClient: DGC 探测
- ActivationClient: Activator 探测
"""

from .activation import ActivationClient
from .base import BaseClient, Rule, Success, classify
from .dgc import DGCClient
from .payloads import GadgetProvider, PayloadObject, RawPayload, annotate_stream
from .registry import RegistryClient
from .result import ProbeResult, Verdict

__all__ = [
    "ActivationClient",
    "BaseClient",
    "DGCClient",
    "GadgetProvider",
    "PayloadObject",
    "ProbeResult",
    "RawPayload",
    "RegistryClient",
    "Rule",
    "Success",
    "Verdict",
    "annotate_stream",
    "classify",
]
