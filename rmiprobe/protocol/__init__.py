"""
JRMP 协议层

- transport: 连接、握手与 Call/ReturnData 收发
- dispatcher: 调用编码与返回解析
- faults: 服务端异常的分类
- remote_ref: 远程引用解析与构造
"""

from .arguments import PRIMITIVE_CODES, MethodArguments, PayloadObject, RawPayload
from .constants import (
    ACTIVATOR_OBJ_NUM,
    DGC_INTERFACE_HASH,
    DGC_OBJ_NUM,
    REGISTRY_INTERFACE_HASH,
    REGISTRY_OBJ_NUM,
)
from .dispatcher import CallAddress, CallOutcome, HashCall, LegacyCall, RMIDispatcher
from .faults import REMOTE_KINDS, FaultKind, RemoteFault
from .objid import ACTIVATOR_ID, DGC_ID, REGISTRY_ID, UID, ObjID
from .remote_ref import Endpoint, UnicastRefInfo, build_rmi_server_stub, parse_unicast_ref
from .transport import CallTransport, JRMPTransport

__all__ = [
    "MethodArguments",
    "PayloadObject",
    "RawPayload",
    "PRIMITIVE_CODES",
    "REGISTRY_INTERFACE_HASH",
    "DGC_INTERFACE_HASH",
    "REGISTRY_OBJ_NUM",
    "ACTIVATOR_OBJ_NUM",
    "DGC_OBJ_NUM",
    "CallAddress",
    "CallOutcome",
    "HashCall",
    "LegacyCall",
    "RMIDispatcher",
    "FaultKind",
    "REMOTE_KINDS",
    "RemoteFault",
    "UID",
    "ObjID",
    "REGISTRY_ID",
    "ACTIVATOR_ID",
    "DGC_ID",
    "Endpoint",
    "UnicastRefInfo",
    "build_rmi_server_stub",
    "parse_unicast_ref",
    "CallTransport",
    "JRMPTransport",
]
