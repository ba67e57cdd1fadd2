import socket

import pytest

from aurora_mcp.config import Settings
from aurora_mcp.main import build_parser, main, settings_from_args


def test_serve_flags_override_environment(monkeypatch) -> None:
    monkeypatch.setenv("AURORA_SERVER_PORT", "4000")
    monkeypatch.setenv("AURORA_REQUEST_TIMEOUT", "12")
    args = build_parser().parse_args(
        ["serve", "--transport", "sse", "--host", "0.0.0.0", "--port", "8080", "--cors", "--idle-timeout", "90"]
    )

    settings = settings_from_args(args)

    assert settings.transport == "sse"
    assert settings.server_host == "0.0.0.0"
    assert settings.server_port == 8080
    assert settings.cors is True
    assert settings.idle_timeout == 90
    assert settings.request_timeout == 12


def test_defaults() -> None:
    settings = settings_from_args(build_parser().parse_args(["serve"]))

    assert settings.transport == "stdio"
    assert settings.request_timeout == 30
    assert settings.idle_timeout == 300
    assert settings.log_level == "info"


def test_log_level_maps_for_uvicorn() -> None:
    assert Settings(_env_file=None, log_level="warn").uvicorn_log_level == "warning"


def test_unknown_transport_is_rejected() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["serve", "--transport", "carrier-pigeon"])


def test_invalid_configuration_exits_non_zero() -> None:
    assert main(["serve", "--request-timeout", "0"]) == 2


def test_bind_failure_exits_non_zero() -> None:
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen()
    port = blocker.getsockname()[1]
    try:
        assert main(["serve", "--transport", "http", "--host", "127.0.0.1", "--port", str(port)]) == 1
    finally:
        blocker.close()
