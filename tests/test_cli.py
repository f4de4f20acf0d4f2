from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from hookpilot import cli
from hookpilot.config import GatewayConfig
from hookpilot.errors import PermissionDeniedError


def test_build_parser_supports_commands() -> None:
    parser = cli.build_parser()

    parsed_prepare = parser.parse_args(["prepare"])
    parsed_gateway = parser.parse_args(["gateway", "--verbose"])

    assert parsed_prepare.command == "prepare"
    assert parsed_prepare.verbose == "low"
    assert parsed_gateway.command == "gateway"
    assert parsed_gateway.verbose == "high"


def test_build_parser_rejects_unknown_verbosity() -> None:
    parser = cli.build_parser()

    assert parser.parse_args(["gateway", "-v", "off"]).verbose == "off"
    with pytest.raises(SystemExit):
        parser.parse_args(["prepare", "-v", "noisy"])


def test_build_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_main_dispatches_prepare(monkeypatch: pytest.MonkeyPatch) -> None:
    called: dict[str, object] = {}
    monkeypatch.setattr(
        cli, "configure_logging", lambda verbose: called.setdefault("verbose", verbose)
    )
    monkeypatch.setattr(cli, "_cmd_prepare", lambda: 0)

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["prepare", "-v", "high"])

    assert exc_info.value.code == 0
    assert called["verbose"] == "high"


def test_main_unknown_command_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    class FakeParser:
        def parse_args(self, argv: object) -> SimpleNamespace:
            _ = argv
            return SimpleNamespace(command="unknown", verbose="low")

    monkeypatch.setattr(cli, "build_parser", lambda: FakeParser())
    monkeypatch.setattr(cli, "configure_logging", lambda verbose: None)

    with pytest.raises(RuntimeError, match="Unknown command"):
        cli.main([])


def test_cmd_prepare_success(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    called: dict[str, object] = {}
    monkeypatch.setenv("GITHUB_OUTPUT", str(tmp_path / "out.txt"))
    monkeypatch.setattr(cli, "load_run_config", lambda: "config")

    def fake_run_prepare(config: object, *, outputs: object) -> None:
        called["args"] = (config, outputs)

    monkeypatch.setattr(cli, "run_prepare", fake_run_prepare)

    assert cli._cmd_prepare() == 0
    config, outputs = called["args"]  # type: ignore[misc]
    assert config == "config"
    assert outputs.output_path == tmp_path / "out.txt"  # type: ignore[attr-defined]


def test_cmd_prepare_failure_reports_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    output_path = tmp_path / "out.txt"
    monkeypatch.setenv("GITHUB_OUTPUT", str(output_path))
    monkeypatch.setattr(cli, "load_run_config", lambda: "config")

    def denied(config: object, *, outputs: object) -> None:
        _ = config, outputs
        raise PermissionDeniedError(
            "Actor mallory does not have write permissions\nto the repository"
        )

    monkeypatch.setattr(cli, "run_prepare", denied)

    assert cli._cmd_prepare() == 1
    out = capsys.readouterr().out
    assert out.startswith("::error::Prepare step failed with error: Actor mallory")
    assert "%0A" in out
    assert output_path.read_text(encoding="utf-8") == (
        "prepare_error=Actor mallory does not have write permissions to the repository\n"
    )


def test_cmd_prepare_unexpected_failure(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)

    def crash() -> object:
        raise KeyError("boom")

    monkeypatch.setattr(cli, "load_run_config", crash)

    assert cli._cmd_prepare() == 1
    assert "::error::Prepare step failed with error: KeyError: 'boom'" in capsys.readouterr().out


def test_cmd_prepare_missing_configuration(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    for key in ("GITHUB_OUTPUT", "GITHUB_EVENT_NAME", "GITHUB_EVENT_PATH", "GITHUB_REPOSITORY"):
        monkeypatch.delenv(key, raising=False)

    assert cli._cmd_prepare() == 1
    assert "GITHUB_EVENT_NAME environment variable is required" in capsys.readouterr().out


def test_cmd_gateway_missing_configuration(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    for key in ("REPO_OWNER", "REPO_NAME", "BRANCH_NAME"):
        monkeypatch.delenv(key, raising=False)

    assert cli._cmd_gateway() == 1
    assert "Gateway startup failed: REPO_OWNER" in capsys.readouterr().err


def test_cmd_gateway_runs_server(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    called: dict[str, object] = {}
    monkeypatch.setenv("REPO_OWNER", "octo")
    monkeypatch.setenv("REPO_NAME", "widgets")
    monkeypatch.setenv("BRANCH_NAME", "main")
    monkeypatch.setenv("REPO_DIR", str(tmp_path))

    async def fake_run_server(config: GatewayConfig) -> None:
        called["config"] = config

    monkeypatch.setattr(cli, "run_server", fake_run_server)

    assert cli._cmd_gateway() == 0
    config = called["config"]
    assert isinstance(config, GatewayConfig)
    assert config.repository.full_name == "octo/widgets"
    assert config.repo_dir == tmp_path
