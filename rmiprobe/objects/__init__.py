"""
远程对象
"""

from .known import KnownClass, KnownClasses
from .wrapper import UNKNOWN_CLASS_MARKER, RemoteObjectWrapper

__all__ = ["KnownClass", "KnownClasses", "RemoteObjectWrapper", "UNKNOWN_CLASS_MARKER"]
