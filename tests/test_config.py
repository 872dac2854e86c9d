import pytest

from pasvftp.config import ClientConfig
from pasvftp.entrypoint import build_parser, load_config

ENV_VARS = ("PASVFTP_HOST", "PASVFTP_PORT", "PASVFTP_USER", "PASVFTP_TIMEOUT",
            "PASVFTP_LOG_LEVEL", "PASVFTP_UI_HOST", "PASVFTP_UI_PORT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = ClientConfig.from_env()
    assert config.host is None
    assert config.port == 21
    assert config.timeout is None
    assert config.log_level == "WARNING"
    assert (config.ui_host, config.ui_port) == ("0.0.0.0", 8501)


def test_from_env(monkeypatch):
    monkeypatch.setenv("PASVFTP_HOST", "ftp.example.com")
    monkeypatch.setenv("PASVFTP_PORT", "2121")
    monkeypatch.setenv("PASVFTP_USER", "anonymous")
    monkeypatch.setenv("PASVFTP_TIMEOUT", "7.5")
    monkeypatch.setenv("PASVFTP_LOG_LEVEL", "debug")

    config = ClientConfig.from_env()

    assert config.host == "ftp.example.com"
    assert config.port == 2121
    assert config.user == "anonymous"
    assert config.timeout == 7.5
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize("port, timeout", [("twenty-one", "soon"), ("", "0")])
def test_invalid_env_values_fall_back(monkeypatch, port, timeout):
    monkeypatch.setenv("PASVFTP_PORT", port)
    monkeypatch.setenv("PASVFTP_TIMEOUT", timeout)
    config = ClientConfig.from_env()
    assert config.port == 21
    assert config.timeout is None


def test_command_line_overrides_env(monkeypatch):
    monkeypatch.setenv("PASVFTP_HOST", "env.example.com")
    monkeypatch.setenv("PASVFTP_PORT", "2121")

    args = build_parser().parse_args(["cli.example.com", "-p", "21", "-u", "joe", "-t", "0", "-vv"])
    config = load_config(args)

    assert config.host == "cli.example.com"
    assert config.port == 21
    assert config.user == "joe"
    assert config.timeout is None
    assert config.log_level == "DEBUG"
    assert args.ui is False
