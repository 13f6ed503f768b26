import importlib

import piped_proxy.vars as vars_module
from piped_proxy.config import ProxyConfig, load_config


def test_flags_parsed_from_environment(monkeypatch):
    monkeypatch.setenv("PREFIX_PATH", "/proxy")
    monkeypatch.setenv("DISABLE_IPV6", "1")
    monkeypatch.setenv("DISABLE_WEBP", "1")
    monkeypatch.setenv("LEGACY_ERROR_STATUS", "1")
    monkeypatch.setenv("UPSTREAM_READ_TIMEOUT", "7.5")

    importlib.reload(vars_module)
    try:
        config = load_config()
    finally:
        monkeypatch.undo()
        importlib.reload(vars_module)

    assert config.prefix_path == "/proxy"
    assert config.ipv4_only is True
    assert config.disable_webp is True
    assert config.legacy_error_status is True
    assert config.read_timeout == 7.5


def test_flags_only_enabled_by_one(monkeypatch):
    monkeypatch.setenv("DISABLE_WEBP", "true")
    monkeypatch.delenv("DISABLE_IPV6", raising=False)

    importlib.reload(vars_module)
    try:
        config = load_config()
    finally:
        monkeypatch.undo()
        importlib.reload(vars_module)

    assert config.disable_webp is False
    assert config.ipv4_only is False


def test_defaults():
    config = ProxyConfig()

    assert config.prefix_path == ""
    assert config.connect_timeout == 30.0
    assert config.read_timeout == 20.0
