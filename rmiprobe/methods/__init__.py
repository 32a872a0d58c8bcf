"""
方法候选与字典
"""

from .candidate import MethodCandidate, compute_method_hash, resolve_type, strip_generics, type_descriptor
from .wordlist import (
    ParseReport,
    WordlistHandler,
    load_builtin,
    load_from_file,
    load_from_folder,
    parse_methods,
    parse_report,
    update_wordlist,
)

__all__ = [
    "MethodCandidate",
    "compute_method_hash",
    "resolve_type",
    "strip_generics",
    "type_descriptor",
    "ParseReport",
    "WordlistHandler",
    "load_builtin",
    "load_from_file",
    "load_from_folder",
    "parse_methods",
    "parse_report",
    "update_wordlist",
]
