"""
探测配置

提供连接超时、调用约定、codebase 注解、字典来源等设置
支持从环境变量、字典和 YAML 配置文件加载
"""

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from rmiprobe.exceptions import ConfigError
from utils.logger import configure_logging

logger = logging.getLogger(__name__)

REGISTRY_METHODS = ("lookup", "bind", "rebind", "unbind")

_TRUE_VALUES = ("true", "1", "yes", "on")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


@dataclass
class ProbeConfig:
    """探测统一配置"""

    # 超时配置 (秒)
    connect_timeout: float = 5.0  # 连接超时
    read_timeout: float = 10.0  # 读取超时
    ssl: bool = False  # 使用 TLS 连接

    # 注册中心调用
    registry_method: str = "lookup"  # 用于探测的注册中心方法
    localhost_bypass: bool = False  # 按方法哈希调用（绕过本地限制）

    # codebase / 绕过探测
    codebase_location: str = "InvalidURL"  # useCodebaseOnly 探测使用的注解
    codebase_class_uid: int = 2  # codebase 调用中合成类的 serialVersionUID
    bypass_probe_host: str = "127.0.0.1"  # JEP290 绕过探测中 gadget 指向的主机
    bypass_probe_port: int = 1234567  # 故意无效的端口，服务端不会真正建立连接

    # 字典
    wordlist_file: Optional[str] = None
    wordlist_folder: Optional[str] = None
    update_wordlists: bool = False

    # 并发
    max_workers: int = 8

    # 日志
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def validate(self) -> None:
        """
        校验配置

        Raises:
            ConfigError: 配置值无效
        """
        if self.registry_method not in REGISTRY_METHODS:
            raise ConfigError(
                f"Unknown registry method {self.registry_method!r}",
                details={"allowed": list(REGISTRY_METHODS)},
            )
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ConfigError("Timeouts must be positive")
        if self.max_workers < 1:
            raise ConfigError("max_workers must be at least 1")
        if not self.bypass_probe_host:
            raise ConfigError("bypass_probe_host must not be empty")
        if not -(2**63) <= self.codebase_class_uid < 2**63:
            raise ConfigError("codebase_class_uid must fit into a Java long")
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigError(f"Unknown log level {self.log_level!r}")
        # 字典文件和目录可以同时设置，文件优先

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return asdict(self)

    def apply_logging(self, **kwargs: Any) -> logging.Logger:
        """按 log_level / log_file 配置 rmiprobe 日志器"""
        return configure_logging(self.log_level, log_file=self.log_file, **kwargs)

    @classmethod
    def from_env(cls) -> "ProbeConfig":
        """
        从环境变量加载配置

        支持的环境变量:
        - RMIPROBE_CONNECT_TIMEOUT / RMIPROBE_READ_TIMEOUT: 超时
        - RMIPROBE_SSL: 使用 TLS (true/false)
        - RMIPROBE_REGISTRY_METHOD: lookup / bind / rebind / unbind
        - RMIPROBE_LOCALHOST_BYPASS: 按方法哈希调用 (true/false)
        - RMIPROBE_CODEBASE_LOCATION: codebase 注解
        - RMIPROBE_WORDLIST_FILE / RMIPROBE_WORDLIST_FOLDER: 字典来源
        - RMIPROBE_UPDATE_WORDLISTS: 以高级格式重写字典 (true/false)
        - RMIPROBE_MAX_WORKERS: 并发目标数
        - RMIPROBE_LOG_LEVEL / RMIPROBE_LOG_FILE: 日志
        """
        config = cls()

        try:
            if connect_timeout := os.environ.get("RMIPROBE_CONNECT_TIMEOUT"):
                config.connect_timeout = float(connect_timeout)
            if read_timeout := os.environ.get("RMIPROBE_READ_TIMEOUT"):
                config.read_timeout = float(read_timeout)
            if max_workers := os.environ.get("RMIPROBE_MAX_WORKERS"):
                config.max_workers = int(max_workers)
        except ValueError as e:
            raise ConfigError(f"Invalid numeric value in environment: {e}", cause=e) from e

        if use_ssl := os.environ.get("RMIPROBE_SSL"):
            config.ssl = _parse_bool(use_ssl)
        if registry_method := os.environ.get("RMIPROBE_REGISTRY_METHOD"):
            config.registry_method = registry_method.strip()
        if localhost_bypass := os.environ.get("RMIPROBE_LOCALHOST_BYPASS"):
            config.localhost_bypass = _parse_bool(localhost_bypass)
        if codebase_location := os.environ.get("RMIPROBE_CODEBASE_LOCATION"):
            config.codebase_location = codebase_location
        if wordlist_file := os.environ.get("RMIPROBE_WORDLIST_FILE"):
            config.wordlist_file = wordlist_file
        if wordlist_folder := os.environ.get("RMIPROBE_WORDLIST_FOLDER"):
            config.wordlist_folder = wordlist_folder
        if update_wordlists := os.environ.get("RMIPROBE_UPDATE_WORDLISTS"):
            config.update_wordlists = _parse_bool(update_wordlists)
        if log_level := os.environ.get("RMIPROBE_LOG_LEVEL"):
            config.log_level = log_level
        if log_file := os.environ.get("RMIPROBE_LOG_FILE"):
            config.log_file = log_file

        logger.debug(
            f"Loaded probe configuration from environment: method={config.registry_method}, "
            f"ssl={config.ssl}, localhost_bypass={config.localhost_bypass}"
        )
        config.validate()
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProbeConfig":
        """
        从字典加载配置

        Raises:
            ConfigError: 存在未知键或值类型错误
        """
        config = cls()
        known = set(asdict(config))
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        try:
            if "connect_timeout" in data:
                config.connect_timeout = float(data["connect_timeout"])
            if "read_timeout" in data:
                config.read_timeout = float(data["read_timeout"])
            if "ssl" in data:
                config.ssl = _parse_bool(data["ssl"])
            if "registry_method" in data:
                config.registry_method = str(data["registry_method"])
            if "localhost_bypass" in data:
                config.localhost_bypass = _parse_bool(data["localhost_bypass"])
            if "codebase_location" in data:
                config.codebase_location = str(data["codebase_location"])
            if "codebase_class_uid" in data:
                config.codebase_class_uid = int(data["codebase_class_uid"])
            if "bypass_probe_host" in data:
                config.bypass_probe_host = str(data["bypass_probe_host"])
            if "bypass_probe_port" in data:
                config.bypass_probe_port = int(data["bypass_probe_port"])
            if "wordlist_file" in data:
                config.wordlist_file = data["wordlist_file"]
            if "wordlist_folder" in data:
                config.wordlist_folder = data["wordlist_folder"]
            if "update_wordlists" in data:
                config.update_wordlists = _parse_bool(data["update_wordlists"])
            if "max_workers" in data:
                config.max_workers = int(data["max_workers"])
            if "log_level" in data:
                config.log_level = str(data["log_level"])
            if "log_file" in data:
                config.log_file = data["log_file"]
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}", cause=e) from e

        config.validate()
        return config

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ProbeConfig":
        """
        从 YAML 配置文件加载

        配置可以位于顶层，也可以位于 rmiprobe 键下。

        Raises:
            ConfigError: 文件不存在、格式错误或值无效
        """
        file_path = Path(path)
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Unable to read configuration file {file_path}: {e}", cause=e) from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {file_path}: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {file_path} must contain a mapping")
        if isinstance(data.get("rmiprobe"), dict):
            data = data["rmiprobe"]

        logger.debug(f"Loaded probe configuration from {file_path}")
        return cls.from_dict(data)


__all__ = ["REGISTRY_METHODS", "ProbeConfig"]
