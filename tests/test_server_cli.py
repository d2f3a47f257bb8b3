"""Tests for command-line parsing and startup exit codes."""

from pathlib import Path

import pytest

from address_resolver import AddressResolver, AddressUnavailableError
from listening_socket import ListeningSocket
from server import HTTPServer, _parse_args, main
from file_storage import MemoryFileStorage


class FailingResolver(AddressResolver):
    def discover_ipv4(self) -> str:
        raise AddressUnavailableError("no interfaces")


@pytest.mark.parametrize("argv", [[], ["abc"], ["0"], ["70000"], ["-1"]])
def test_missing_or_invalid_port_exits_non_zero(argv: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(argv)

    assert excinfo.value.code != 0


@pytest.mark.parametrize(
    "option",
    [
        ["--workers", "0"],
        ["--queue-size", "0"],
        ["--queue-size", "many"],
        ["--timeout", "0"],
        ["--timeout", "nan"],
        ["--log-level", "bogus"],
    ],
)
def test_invalid_tuning_options_exit_through_argparse(option: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["8080", "--storage", "memory", *option])

    assert excinfo.value.code == 2


def test_log_level_is_case_insensitive() -> None:
    assert _parse_args(["8080", "--log-level", "debug"]).log_level == "DEBUG"


def test_parse_args_defaults() -> None:
    args = _parse_args(["8080"])

    assert args.port == 8080
    assert args.host is None
    assert args.storage == "sqlite"
    assert args.engine == "threadpool"


def test_storage_init_failure_exits_with_one(tmp_path: Path) -> None:
    exit_code = main(["8080", "--host", "127.0.0.1", "--db-file", str(tmp_path)])

    assert exit_code == 1


def test_address_discovery_failure_exits_with_one() -> None:
    exit_code = main(["8080", "--storage", "memory"], address_resolver=FailingResolver())

    assert exit_code == 1


def test_bind_failure_exits_with_one() -> None:
    with ListeningSocket.open("127.0.0.1", 0) as blocker:
        _host, port = blocker.bound_address or ("", 0)

        exit_code = main([str(port), "--host", "127.0.0.1", "--storage", "memory"])

    assert exit_code == 1


def test_invalid_bind_address_exits_with_one() -> None:
    exit_code = main(["8080", "--host", "not-an-ip", "--storage", "memory"])

    assert exit_code == 1


def test_unknown_engine_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported engine"):
        HTTPServer(MemoryFileStorage(), engine="forking")
