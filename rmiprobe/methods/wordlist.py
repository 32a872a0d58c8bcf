"""
方法字典

从字典文件、字典目录或内置字典（rmg.txt、rmiscout.txt）读取方法候选。

字典格式：
- 简单格式：每行一个方法签名
- 高级格式：hash; name; signature; returnType（跳过哈希计算）
- 以 # 开头的行和空行被忽略；格式错误的行记录警告后跳过
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from rmiprobe.exceptions import ConfigError, SignatureError

from .candidate import MethodCandidate, strip_generics

logger = logging.getLogger(__name__)

DEFAULT_WORDLISTS = ("rmg.txt", "rmiscout.txt")
WORDLIST_SUFFIXES = (".txt", ".TXT")

_SPACES = re.compile(r" +")
_COMMAS = re.compile(r" *, *")


@dataclass
class ParseReport:
    """字典解析结果"""

    methods: Set[MethodCandidate] = field(default_factory=set)
    skipped: int = 0
    skipped_lines: List[str] = field(default_factory=list)

    def skip(self, line: str, reason: str) -> None:
        self.skipped += 1
        self.skipped_lines.append(line)
        logger.warning(f"Skipping method signature {line!r}: {reason}")


def normalize_line(line: str) -> str:
    """压缩空白、规范逗号并去掉泛型参数"""
    line = _SPACES.sub(" ", line.strip())
    line = _COMMAS.sub(", ", line)
    return strip_generics(line)


def parse_report(lines: Iterable[str]) -> ParseReport:
    """
    解析字典行并返回详细结果

    Args:
        lines: 字典文件的各行

    Returns:
        ParseReport，包含解析成功的候选集合和被跳过的行
    """
    report = ParseReport()
    for raw in lines:
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue

        line = normalize_line(stripped)
        fields = [part.strip() for part in line.split(";")]
        # 允许简单格式的签名以分号结尾
        if len(fields) == 2 and not fields[1]:
            fields = fields[:1]

        try:
            if len(fields) == 1:
                report.methods.add(MethodCandidate(fields[0]))
            elif len(fields) == 4:
                report.methods.add(MethodCandidate.from_advanced(*fields))
            else:
                report.skip(line, f"unknown method format ({len(fields)} fields)")
        except SignatureError as e:
            report.skip(line, e.message)

    logger.info(f"{len(report.methods)} methods were successfully parsed ({report.skipped} skipped)")
    return report


def parse_methods(lines: Iterable[str]) -> Set[MethodCandidate]:
    """解析字典行，返回候选集合"""
    return parse_report(lines).methods


def update_wordlist(path: Union[str, Path], methods: Iterable[MethodCandidate]) -> None:
    """
    以高级格式重写字典文件（按签名排序）

    Raises:
        ConfigError: 文件无法写入
    """
    lines = [method.to_advanced() for method in sorted(methods)]
    try:
        Path(path).write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Unable to update wordlist {path}: {e}", cause=e) from e
    logger.info(f"Updated wordlist {path} ({len(lines)} methods)")


def load_from_file(path: Union[str, Path], update: bool = False) -> Set[MethodCandidate]:
    """
    读取单个字典文件

    Args:
        path: 字典文件路径
        update: 是否以高级格式重写文件

    Raises:
        ConfigError: 文件不存在或无法读取
    """
    file_path = Path(path)
    logger.info(f"Reading method candidates from file {file_path}")
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Unable to read wordlist {file_path}: {e}", cause=e) from e

    methods = parse_methods(content.splitlines())
    if update:
        update_wordlist(file_path, methods)
    return methods


def load_from_folder(folder: Union[str, Path], update: bool = False) -> Set[MethodCandidate]:
    """
    读取目录下所有 .txt / .TXT 字典（不递归）

    Raises:
        ConfigError: 路径不是目录
    """
    folder_path = Path(folder)
    if not folder_path.is_dir():
        raise ConfigError(f"wordlist folder {folder_path} is not a directory")

    files = sorted(p for p in folder_path.iterdir() if p.is_file() and p.name.endswith(WORDLIST_SUFFIXES))
    logger.info(f"{len(files)} wordlist files found in {folder_path}")

    methods: Set[MethodCandidate] = set()
    for file_path in files:
        methods |= load_from_file(file_path, update)
    return methods


def load_builtin() -> Set[MethodCandidate]:
    """读取随包发布的内置字典"""
    methods: Set[MethodCandidate] = set()
    package = resources.files("rmiprobe.methods") / "wordlists"
    for name in DEFAULT_WORDLISTS:
        logger.info(f"Reading method candidates from internal wordlist {name}")
        content = (package / name).read_text(encoding="utf-8")
        methods |= parse_methods(content.splitlines())
    return methods


class WordlistHandler:
    """
    字典加载器

    优先级：字典文件 > 字典目录 > 内置字典。

    示例:
        >>> handler = WordlistHandler(wordlist_folder="/opt/wordlists")
        >>> methods = handler.get_wordlist_methods()
    """

    def __init__(
        self,
        wordlist_file: Optional[str] = None,
        wordlist_folder: Optional[str] = None,
        update_wordlists: bool = False,
    ):
        self.wordlist_file = wordlist_file
        self.wordlist_folder = wordlist_folder
        self.update_wordlists = update_wordlists

    def get_wordlist_methods(self) -> Set[MethodCandidate]:
        if self.wordlist_file:
            return load_from_file(self.wordlist_file, self.update_wordlists)
        if self.wordlist_folder:
            return load_from_folder(self.wordlist_folder, self.update_wordlists)
        return load_builtin()

    @classmethod
    def from_config(cls, config) -> "WordlistHandler":
        return cls(config.wordlist_file, config.wordlist_folder, config.update_wordlists)


__all__ = [
    "DEFAULT_WORDLISTS",
    "ParseReport",
    "WordlistHandler",
    "load_builtin",
    "load_from_file",
    "load_from_folder",
    "normalize_line",
    "parse_methods",
    "parse_report",
    "update_wordlist",
]
