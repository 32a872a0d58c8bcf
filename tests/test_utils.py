"""
工具函数测试
"""

import pytest

from utils.net_utils import DEFAULT_REGISTRY_PORT, parse_target

pytestmark = [pytest.mark.unit]


class TestParseTarget:
    """测试目标解析"""

    @pytest.mark.parametrize(
        "target,expected",
        [
            ("192.168.1.1", ("192.168.1.1", DEFAULT_REGISTRY_PORT)),
            ("192.168.1.1:9010", ("192.168.1.1", 9010)),
            ("registry.example.com:1090", ("registry.example.com", 1090)),
            ("  10.0.0.5:1099  ", ("10.0.0.5", 1099)),
            ("[::1]:1099", ("::1", 1099)),
            ("[fe80::1]", ("fe80::1", DEFAULT_REGISTRY_PORT)),
            ("rmi://10.0.0.5:1098/jmxrmi", ("10.0.0.5", 1098)),
        ],
    )
    def test_valid_targets(self, target, expected):
        assert parse_target(target) == expected

    def test_custom_default_port(self):
        assert parse_target("10.0.0.5", default_port=9010) == ("10.0.0.5", 9010)

    @pytest.mark.parametrize("target", ["", "   ", ":1099", "10.0.0.5:abc", "10.0.0.5:0", "10.0.0.5:70000"])
    def test_invalid_targets(self, target):
        with pytest.raises(ValueError):
            parse_target(target)
