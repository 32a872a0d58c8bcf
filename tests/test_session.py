"""
枚举会话测试
"""

import threading

import pytest

from conftest import FakeTransport, java_exception, return_stream, server_exception, unmarshal_failure
from rmiprobe.config import ProbeConfig
from rmiprobe.exceptions import ConfigError, ConnectionFailed
from rmiprobe.probes import GadgetProvider, Verdict
from rmiprobe.protocol import build_rmi_server_stub
from rmiprobe.serialization import string_array
from rmiprobe.session import EnumSession, TargetReport, enumerate_targets

pytestmark = [pytest.mark.unit]


def rejected(class_name: str, message: str = None) -> bytes:
    return return_stream(exception=unmarshal_failure(java_exception(class_name, message)))


def patched_server_responses():
    """一个打过补丁、使用默认配置的 JDK 注册中心"""
    return [
        return_stream(string_array(["jmxrmi", "missing"])),
        return_stream(build_rmi_server_stub("10.0.0.5", 40001)),
        return_stream(exception=java_exception("java.rmi.NotBoundException", "missing")),
        rejected("java.lang.ClassCastException", "Cannot cast an object to java.lang.String"),
        return_stream(exception=server_exception(java_exception("java.rmi.AccessException", "origin /10.0.0.1 is non-local host"))),
        rejected("java.lang.ClassNotFoundException", "DefinitelyNonExistingClass (no security manager: RMI class loader disabled)"),
        rejected("java.io.InvalidClassException", "filter status: REJECTED"),
        return_stream(exception=java_exception("java.rmi.NoSuchObjectException", "no such object in table")),
    ]


class TestEnumSession:
    """测试单目标会话"""

    def test_full_run(self):
        transport = FakeTransport(patched_server_responses())
        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run()

        assert report.error is None
        assert report.bound_names == ["jmxrmi", "missing"]
        assert [o.bound_name for o in report.objects] == ["jmxrmi", "missing"]
        assert report.objects[1].is_partial

        verdicts = {r.probe: r.verdict for r in report.results}
        assert verdicts == {
            "string_marshalling": Verdict.CURRENT_DEFAULT,
            "codebase": Verdict.SKIPPED,
            "localhost_bypass": Verdict.NON_VULNERABLE,
            "security_manager": Verdict.CURRENT_DEFAULT,
            "dgc_jep290": Verdict.NON_VULNERABLE,
            "activator": Verdict.CURRENT_DEFAULT,
        }
        assert transport.responses == []
        assert transport.closed

    def test_marshal_flag_threaded(self):
        """readObject() 时 codebase 探测会发送调用"""
        responses = patched_server_responses()
        responses[3] = rejected("java.lang.ClassNotFoundException", "DefinitelyNonExistingClass")
        responses.insert(4, rejected("java.net.MalformedURLException", "no protocol: InvalidURL"))
        transport = FakeTransport(responses)

        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run()
        assert report.get("string_marshalling").verdict == Verdict.OUTDATED
        assert report.get("codebase").verdict == Verdict.NON_DEFAULT
        assert transport.responses == []

    def test_duplicates_grouped(self):
        responses = patched_server_responses()
        responses[0] = return_stream(string_array(["a", "b"]))
        responses[2] = return_stream(build_rmi_server_stub("10.0.0.5", 40002))
        transport = FakeTransport(responses)

        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run()
        assert len(report.objects) == 1
        assert report.objects[0].get_duplicate_bound_names() == ["b"]

    def test_transport_error_aborts(self):
        transport = FakeTransport([ConnectionFailed("Connection refused", host="10.0.0.5", port=1099)])
        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run()

        assert report.aborted
        assert "ConnectionFailed" in report.error
        assert report.results == []
        assert len(transport.sent) == 1
        assert transport.closed

    def test_transport_error_mid_run(self):
        responses = patched_server_responses()[:5]
        responses.append(ConnectionFailed("reset", host="10.0.0.5", port=1099))
        transport = FakeTransport(responses)

        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run()
        assert report.aborted
        assert [r.probe for r in report.results] == ["string_marshalling", "codebase", "localhost_bypass"]

    def test_list_denied_continues(self):
        responses = patched_server_responses()
        responses[0:3] = [return_stream(exception=server_exception(java_exception("java.rmi.AccessException", "denied")))]
        transport = FakeTransport(responses)

        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run()
        assert report.bound_names == []
        assert len(report.results) == 6

    def test_to_dict(self):
        transport = FakeTransport(patched_server_responses())
        data = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run().to_dict()
        assert data["target"] == "10.0.0.5:1099"
        assert data["error"] is None
        assert data["objects"][0]["class_name"] == "javax.management.remote.rmi.RMIServerImpl_Stub"
        assert data["results"][0]["verdict"] == "current_default"


class TestEnumerateTargets:
    """测试多目标并发枚举"""

    def test_reports_in_input_order(self):
        lock = threading.Lock()
        created = []

        def factory(host, port, config):
            with lock:
                created.append((host, port))
            if host == "10.0.0.6":
                return FakeTransport([ConnectionFailed("refused", host=host, port=port)])
            return FakeTransport(patched_server_responses())

        reports = enumerate_targets(
            ["10.0.0.5", "rmi://10.0.0.6:1098", "10.0.0.7:2000"],
            ProbeConfig(max_workers=3),
            transport_factory=factory,
        )

        assert [r.target for r in reports] == ["10.0.0.5:1099", "10.0.0.6:1098", "10.0.0.7:2000"]
        assert [r.aborted for r in reports] == [False, True, False]
        assert sorted(created) == [("10.0.0.5", 1099), ("10.0.0.6", 1098), ("10.0.0.7", 2000)]

    def test_invalid_config(self):
        with pytest.raises(ConfigError):
            enumerate_targets(["10.0.0.5"], ProbeConfig(max_workers=0))

    def test_invalid_target(self):
        with pytest.raises(ValueError):
            enumerate_targets(["10.0.0.5:notaport"], transport_factory=lambda h, p, c: FakeTransport())

    def test_empty(self):
        assert enumerate_targets([]) == []


class TestTargetReport:
    """测试目标报告"""

    def test_get(self):
        report = TargetReport("h", 1)
        assert report.get("codebase") is None
        assert not report.aborted


class FailingGadgetProvider(GadgetProvider):
    def prepare_an_trinh_gadget(self, host, port):
        raise RuntimeError("ysoserial jar missing")


def bind_method_responses():
    """registry_method=bind 时 codebase 探测会额外发送一次调用"""
    responses = patched_server_responses()
    responses.insert(4, return_stream(exception=server_exception(java_exception("java.rmi.AccessException", "origin is non-local host"))))
    return responses


class TestPayloadFailures:
    """测试 gadget 生成失败时的处理"""

    def test_failure_recorded_as_unknown(self):
        transport = FakeTransport(bind_method_responses())
        report = EnumSession(
            "10.0.0.5",
            1099,
            ProbeConfig(registry_method="bind"),
            gadget_provider=FailingGadgetProvider(),
            transport_factory=lambda h, p, c: transport,
        ).run()

        assert not report.aborted
        result = report.get("jep290_bypass")
        assert result.verdict == Verdict.UNKNOWN
        assert "ysoserial jar missing" in result.explanation
        assert result.details["error"]["error"] == "PayloadError"
        assert report.get("activator").verdict == Verdict.CURRENT_DEFAULT
        assert transport.responses == []

    def test_other_targets_unaffected(self):
        reports = enumerate_targets(
            ["10.0.0.5", "10.0.0.6"],
            ProbeConfig(registry_method="bind"),
            gadget_provider=FailingGadgetProvider(),
            transport_factory=lambda h, p, c: FakeTransport(bind_method_responses()),
        )

        assert [r.target for r in reports] == ["10.0.0.5:1099", "10.0.0.6:1099"]
        assert all(len(r.results) == 7 for r in reports)


class TestCodebaseCollection:
    """测试收集服务端 codebase"""

    def test_stub_annotation_reported(self):
        stub = build_rmi_server_stub("10.0.0.5", 40001)
        stub.desc.annotations = ["http://10.0.0.5:8000/classes/ file:///opt/app/lib/"]
        responses = patched_server_responses()
        responses[1] = return_stream(stub)
        transport = FakeTransport(responses)

        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run()

        assert report.codebases == ["http://10.0.0.5:8000/classes/ file:///opt/app/lib/"]
        assert report.to_dict()["codebases"] == report.codebases
        assert report.objects[0].target == "10.0.0.5:40001"

    def test_no_codebase(self):
        transport = FakeTransport(patched_server_responses())
        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: transport).run()
        assert report.codebases == []

    def test_kept_when_aborted(self):
        stub = build_rmi_server_stub("10.0.0.5", 40001)
        stub.desc.annotations = ["http://10.0.0.5:8000/"]
        responses = [
            return_stream(string_array(["jmxrmi"])),
            return_stream(stub),
            ConnectionFailed("reset", host="10.0.0.5", port=1099),
        ]
        report = EnumSession("10.0.0.5", 1099, transport_factory=lambda h, p, c: FakeTransport(responses)).run()

        assert report.aborted
        assert report.codebases == ["http://10.0.0.5:8000/"]
