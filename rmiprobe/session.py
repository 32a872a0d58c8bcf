"""
枚举会话

EnumSession 对单个目标按固定顺序执行全部探测：先列出并解析绑定名，
再执行字符串编组探测，它的 marshal 结论会传给后续探测。
enumerate_targets 用线程池并发处理多个目标，各会话之间没有共享状态。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from rmiprobe.config import ProbeConfig
from rmiprobe.exceptions import PayloadError, ProtocolError, RemoteCallError, TransportError
from rmiprobe.objects import RemoteObjectWrapper
from rmiprobe.probes import (
    ActivationClient,
    DGCClient,
    GadgetProvider,
    ProbeResult,
    RegistryClient,
    Verdict,
)
from rmiprobe.protocol import JRMPTransport, RMIDispatcher
from utils.net_utils import parse_target

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, int, ProbeConfig], Any]


def default_transport_factory(host: str, port: int, config: ProbeConfig) -> JRMPTransport:
    return JRMPTransport(
        host,
        port,
        use_ssl=config.ssl,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    )


@dataclass
class TargetReport:
    """单个目标的枚举结果"""

    host: str
    port: int
    results: List[ProbeResult] = field(default_factory=list)
    bound_names: List[str] = field(default_factory=list)
    objects: List[RemoteObjectWrapper] = field(default_factory=list)
    codebases: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def target(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def aborted(self) -> bool:
        return self.error is not None

    def get(self, probe: str) -> Optional[ProbeResult]:
        for result in self.results:
            if result.probe == probe:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "bound_names": list(self.bound_names),
            "objects": [obj.to_dict() for obj in self.objects],
            "codebases": list(self.codebases),
            "results": [result.to_dict() for result in self.results],
            "error": self.error,
        }


class EnumSession:
    """
    单目标枚举会话

    会话独占一个传输连接，所有退出路径都会关闭它。传输错误会终止
    剩余探测，并在报告中只记录一次。

    示例:
        >>> report = EnumSession("10.0.0.5", 1099, ProbeConfig(localhost_bypass=True)).run()
        >>> print(report.get("string_marshalling"))
    """

    def __init__(
        self,
        host: str,
        port: int,
        config: Optional[ProbeConfig] = None,
        gadget_provider: Optional[GadgetProvider] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.host = host
        self.port = port
        self.config = config or ProbeConfig()
        self.gadget_provider = gadget_provider
        self.transport_factory = transport_factory or default_transport_factory

    def run(self) -> TargetReport:
        report = TargetReport(self.host, self.port)
        logger.info(f"Enumerating {report.target}")

        transport = self.transport_factory(self.host, self.port, self.config)
        dispatcher = RMIDispatcher(transport)
        try:
            self._run_probes(dispatcher, report)
        except (TransportError, ProtocolError) as e:
            report.error = f"{type(e).__name__}: {e.message}"
            logger.error(f"Enumeration of {report.target} aborted: {e.message}")
        finally:
            report.codebases = sorted(dispatcher.codebases)
            transport.close()

        return report

    def _run_probes(self, dispatcher: RMIDispatcher, report: TargetReport) -> None:
        registry = RegistryClient(dispatcher, self.config, self.gadget_provider)

        self._enum_objects(registry, report)

        marshalling = registry.enum_string_marshalling()
        report.results.append(marshalling)
        marshal = marshalling.details.get("marshal")

        report.results.append(registry.enum_codebase(marshal=marshal))
        report.results.append(registry.enum_localhost_bypass())

        dgc = DGCClient(dispatcher, self.config)
        report.results.append(dgc.enum_security_manager())
        report.results.append(dgc.enum_jep290())

        if self.gadget_provider is not None:
            report.results.append(self._payload_probe("jep290_bypass", registry.enum_jep290_bypass, marshal=marshal))
        else:
            logger.debug("No gadget provider configured, skipping JEP290 bypass probe")

        report.results.append(ActivationClient(dispatcher, self.config).enum_activator())

    @staticmethod
    def _payload_probe(probe: str, method: Callable[..., ProbeResult], **kwargs: Any) -> ProbeResult:
        """payload 无法生成时只影响该探测，结论为 UNKNOWN"""
        try:
            return method(**kwargs)
        except PayloadError as e:
            logger.warning(f"{probe}: payload failure: {e.message}")
            return ProbeResult(
                probe,
                Verdict.UNKNOWN,
                f"payload could not be prepared: {e.message}",
                details={"error": e.to_dict()},
            )

    def _enum_objects(self, registry: RegistryClient, report: TargetReport) -> None:
        try:
            report.bound_names = registry.list_bound_names()
        except RemoteCallError as e:
            logger.warning(f"Unable to list bound names: {e.message}")
            return

        wrappers = []
        for name in report.bound_names:
            try:
                wrappers.append(registry.lookup(name))
            except (RemoteCallError, ProtocolError) as e:
                logger.warning(f"Lookup of {name!r} failed: {e.message}")
                wrappers.append(RemoteObjectWrapper(bound_name=name))
        report.objects = RemoteObjectWrapper.handle_duplicates(wrappers)


def enumerate_targets(
    targets: Iterable[str],
    config: Optional[ProbeConfig] = None,
    gadget_provider: Optional[GadgetProvider] = None,
    transport_factory: Optional[TransportFactory] = None,
) -> List[TargetReport]:
    """
    并发枚举多个目标

    Args:
        targets: 目标列表（host、host:port 或 rmi://host:port）
        config: 探测配置
        gadget_provider: gadget 提供者
        transport_factory: 传输构造函数

    Returns:
        按输入顺序排列的 TargetReport 列表

    Raises:
        ValueError: 目标格式无效
    """
    config = config or ProbeConfig()
    config.validate()
    parsed = [parse_target(target) for target in targets]

    reports: List[Optional[TargetReport]] = [None] * len(parsed)
    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        futures = {
            executor.submit(EnumSession(host, port, config, gadget_provider, transport_factory).run): index
            for index, (host, port) in enumerate(parsed)
        }
        for future in as_completed(futures):
            reports[futures[future]] = future.result()

    return [report for report in reports if report is not None]


__all__ = ["TargetReport", "EnumSession", "enumerate_targets", "default_transport_factory"]
