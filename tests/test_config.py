"""Tests for channel configuration parsing and small helpers"""

import pytest

from drawing_system.config import ChannelConfig, load_channel_configs
from drawing_system.exceptions import ConfigurationError
from utils.error_helpers import safe_int


def test_channels_with_default_main_member():
    configs = load_channel_configs(
        '{"1001": {"room": "room-1"}, "1002": {"room": 42, "main_member": "765-owner"}}',
        default_main_member="765-default",
    )

    assert configs == {
        "1001": ChannelConfig("1001", "room-1", "765-default"),
        "1002": ChannelConfig("1002", "42", "765-owner"),
    }


def test_empty_configuration():
    assert load_channel_configs("", default_main_member="") == {}
    assert load_channel_configs("{}", default_main_member="") == {}


@pytest.mark.parametrize("raw", [
    "{not json",
    '["1001"]',
    '{"1001": {}}',
    '{"1001": "room-1"}',
])
def test_malformed_configuration(raw):
    with pytest.raises(ConfigurationError):
        load_channel_configs(raw, default_main_member="")


@pytest.mark.parametrize("value, expected", [("3", 3), (7, 7), ("x", None), (None, None)])
def test_safe_int(value, expected):
    assert safe_int(value) == expected


def test_safe_int_passes_default_through():
    assert safe_int("abc", default="abc") == "abc"
