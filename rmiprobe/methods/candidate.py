"""
方法候选

把人类可读的 Java 方法签名转换为 RMI 方法哈希。哈希与 JDK 的
sun.rmi.server.Util.computeMethodHash 一致：对 writeUTF(方法名 + 描述符)
做 SHA-1，取摘要前 8 个字节按小端顺序组成有符号 64 位整数。
"""

from __future__ import annotations

import hashlib
import re
from typing import Dict, Optional, Tuple

from rmiprobe.exceptions import SignatureError
from utils.encoding import java_utf_encode

PRIMITIVE_DESCRIPTORS: Dict[str, str] = {
    "boolean": "Z",
    "byte": "B",
    "char": "C",
    "short": "S",
    "int": "I",
    "long": "J",
    "float": "F",
    "double": "D",
    "void": "V",
}

# 签名中允许使用的简写类型名
TYPE_WHITELIST: Dict[str, str] = {
    "Boolean": "java.lang.Boolean",
    "Byte": "java.lang.Byte",
    "Character": "java.lang.Character",
    "CharSequence": "java.lang.CharSequence",
    "Class": "java.lang.Class",
    "Double": "java.lang.Double",
    "Exception": "java.lang.Exception",
    "Float": "java.lang.Float",
    "Integer": "java.lang.Integer",
    "Long": "java.lang.Long",
    "Number": "java.lang.Number",
    "Object": "java.lang.Object",
    "Short": "java.lang.Short",
    "String": "java.lang.String",
    "StringBuffer": "java.lang.StringBuffer",
    "StringBuilder": "java.lang.StringBuilder",
    "Throwable": "java.lang.Throwable",
    "Void": "java.lang.Void",
    "BigDecimal": "java.math.BigDecimal",
    "BigInteger": "java.math.BigInteger",
    "File": "java.io.File",
    "Serializable": "java.io.Serializable",
    "ArrayList": "java.util.ArrayList",
    "Collection": "java.util.Collection",
    "Date": "java.util.Date",
    "HashMap": "java.util.HashMap",
    "HashSet": "java.util.HashSet",
    "Hashtable": "java.util.Hashtable",
    "LinkedHashMap": "java.util.LinkedHashMap",
    "LinkedList": "java.util.LinkedList",
    "List": "java.util.List",
    "Map": "java.util.Map",
    "Properties": "java.util.Properties",
    "Set": "java.util.Set",
    "TreeMap": "java.util.TreeMap",
    "TreeSet": "java.util.TreeSet",
    "UUID": "java.util.UUID",
    "Vector": "java.util.Vector",
    "Remote": "java.rmi.Remote",
}

_SIGNATURE = re.compile(
    r"^\s*(?P<ret>[\w$.]+(?:\s*\[\s*\])*)\s+(?P<name>[A-Za-z_$][\w$]*)\s*\((?P<args>[^()]*)\)\s*(?:throws\s+[\w$.,\s]+)?;?\s*$"
)
_QUALIFIED = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)+$")
_MODIFIERS = ("final ",)
_GENERIC = re.compile(r"\s*<[^<>]*>")


def strip_generics(text: str) -> str:
    """反复去掉泛型参数（List<Map<String, Object>> -> List）"""
    previous = None
    while previous != text:
        previous = text
        text = _GENERIC.sub("", text)
    return text


def _split_array(type_name: str) -> Tuple[str, int]:
    """拆分数组维度：'String[][]' -> ('String', 2)，'int...' -> ('int', 1)"""
    type_name = re.sub(r"\s+", "", type_name)
    dims = 0
    if type_name.endswith("..."):
        type_name = type_name[:-3]
        dims += 1
    while type_name.endswith("[]"):
        type_name = type_name[:-2]
        dims += 1
    return type_name, dims


def resolve_type(type_name: str) -> str:
    """
    解析签名中的类型名，返回规范类型名（全限定名 + [] 后缀）

    Raises:
        SignatureError: 类型无法解析
    """
    base, dims = _split_array(type_name)
    if base in PRIMITIVE_DESCRIPTORS:
        if base == "void" and dims:
            raise SignatureError(f"invalid type {type_name!r}", signature=type_name)
        resolved = base
    elif base in TYPE_WHITELIST:
        resolved = TYPE_WHITELIST[base]
    elif _QUALIFIED.match(base):
        resolved = base
    else:
        raise SignatureError(f"Unable to resolve type {base!r}; use the fully qualified class name", signature=type_name)
    return resolved + "[]" * dims


def type_descriptor(type_name: str) -> str:
    """规范类型名 -> JVM 类型描述符"""
    base, dims = _split_array(type_name)
    if base in PRIMITIVE_DESCRIPTORS:
        desc = PRIMITIVE_DESCRIPTORS[base]
    else:
        desc = "L" + base.replace(".", "/") + ";"
    return "[" * dims + desc


def compute_method_hash(method_name: str, descriptor: str) -> int:
    """
    计算 RMI 方法哈希

    示例:
        >>> compute_method_hash("lookup", "(Ljava/lang/String;)Ljava/rmi/Remote;")
        -7538657168040752697
    """
    digest = hashlib.sha1(java_utf_encode(method_name + descriptor)).digest()
    return int.from_bytes(digest[:8], "little", signed=True)


class MethodCandidate:
    """
    方法候选

    标识为 (方法名, 参数类型列表, 返回类型)，两个签名相同的候选相等，
    放入集合时按签名去重。创建后不可修改。

    示例:
        >>> candidate = MethodCandidate("String login(String user, String password)")
        >>> candidate.signature
        'java.lang.String login(java.lang.String, java.lang.String)'
    """

    __slots__ = ("_name", "_argument_types", "_return_type", "_hash")

    def __init__(self, signature: str, method_hash: Optional[int] = None):
        name, argument_types, return_type = self.parse_signature(signature)
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_argument_types", argument_types)
        object.__setattr__(self, "_return_type", return_type)
        if method_hash is None:
            method_hash = compute_method_hash(name, self.descriptor)
        object.__setattr__(self, "_hash", method_hash)

    def __setattr__(self, key, value):
        raise AttributeError("MethodCandidate is immutable")

    @staticmethod
    def parse_signature(signature: str) -> Tuple[str, Tuple[str, ...], str]:
        """
        解析签名字符串

        Returns:
            (方法名, 参数类型元组, 返回类型)

        Raises:
            SignatureError: 签名格式错误或类型无法解析
        """
        match = _SIGNATURE.match(strip_generics(signature))
        if not match:
            raise SignatureError(f"Malformed method signature {signature!r}", signature=signature)

        return_type = resolve_type(match.group("ret"))
        argument_types = []
        args = match.group("args").strip()
        if args:
            for raw_arg in args.split(","):
                arg = raw_arg.strip()
                for modifier in _MODIFIERS:
                    if arg.startswith(modifier):
                        arg = arg[len(modifier) :].strip()
                if not arg:
                    raise SignatureError(f"Empty parameter in signature {signature!r}", signature=signature)
                # 参数名可省略；数组括号可能写在参数名之后（String args[]）
                arg = re.sub(r"\s*\[\s*\]", "[]", arg)
                arg = re.sub(r"\s*\.\.\.", "...", arg)
                parts = arg.split()
                type_name = parts[0]
                if len(parts) > 2:
                    raise SignatureError(f"Invalid parameter {arg!r} in {signature!r}", signature=signature)
                if len(parts) == 2:
                    suffix = re.findall(r"\[\]", parts[1])
                    type_name += "".join(suffix)
                argument_types.append(resolve_type(type_name))

        return match.group("name"), tuple(argument_types), return_type

    @classmethod
    def from_advanced(cls, method_hash: str, name: str, signature: str, return_type: str) -> "MethodCandidate":
        """
        由高级格式的四个字段创建候选，不重新计算哈希

        Raises:
            SignatureError: 字段与签名不一致或哈希无效
        """
        try:
            parsed_hash = int(method_hash.strip())
        except ValueError as e:
            raise SignatureError(f"Invalid method hash {method_hash!r}", signature=signature) from e
        if not -(2**63) <= parsed_hash < 2**63:
            raise SignatureError(f"Method hash out of range: {parsed_hash}", signature=signature)

        candidate = cls(signature, method_hash=parsed_hash)
        if candidate.name != name.strip():
            raise SignatureError(f"Method name {name!r} does not match signature {signature!r}", signature=signature)
        if candidate.return_type != resolve_type(return_type.strip()):
            raise SignatureError(f"Return type {return_type!r} does not match signature {signature!r}", signature=signature)
        return candidate

    # ==================== 访问器 ====================

    @property
    def name(self) -> str:
        return self._name

    @property
    def argument_types(self) -> Tuple[str, ...]:
        return self._argument_types

    @property
    def return_type(self) -> str:
        return self._return_type

    @property
    def hash(self) -> int:
        return self._hash

    @property
    def argument_count(self) -> int:
        return len(self._argument_types)

    @property
    def descriptor(self) -> str:
        params = "".join(type_descriptor(t) for t in self._argument_types)
        return f"({params}){type_descriptor(self._return_type)}"

    @property
    def signature(self) -> str:
        return f"{self._return_type} {self._name}({', '.join(self._argument_types)})"

    @property
    def is_void(self) -> bool:
        return self._return_type == "void"

    @property
    def primitive_return(self) -> bool:
        """返回类型为原始类型（含 void）"""
        return self._return_type in PRIMITIVE_DESCRIPTORS

    @property
    def arguments_are_primitive(self) -> bool:
        return all(t in PRIMITIVE_DESCRIPTORS for t in self._argument_types)

    def to_advanced(self) -> str:
        """高级格式：hash; name; signature; returnType"""
        return f"{self._hash}; {self._name}; {self.signature}; {self._return_type}"

    # ==================== 比较 ====================

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MethodCandidate):
            return NotImplemented
        return self.signature == other.signature

    def __hash__(self) -> int:
        return hash(self.signature)

    def __lt__(self, other: "MethodCandidate") -> bool:
        return self.signature < other.signature

    def __repr__(self) -> str:
        return f"MethodCandidate({self.signature!r}, hash={self._hash})"

    def __str__(self) -> str:
        return self.signature


__all__ = [
    "PRIMITIVE_DESCRIPTORS",
    "TYPE_WHITELIST",
    "MethodCandidate",
    "compute_method_hash",
    "strip_generics",
    "resolve_type",
    "type_descriptor",
]
