"""End-to-end tests for the LoadSurge CLI."""

from __future__ import annotations

import json
import logging
import socket
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from typer.testing import CliRunner

from loadsurge import __version__
from loadsurge.cli.app import app

if TYPE_CHECKING:
    from collections.abc import Iterator

runner = CliRunner()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fast_engine(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Shorten engine periods so CLI runs finish quickly.

    The CLI installs its log handler on the captured stderr of one
    invocation; it is removed again so later tests do not log into a
    closed stream.
    """
    monkeypatch.setenv("LOADSURGE_TICK_INTERVAL", "0.2")
    monkeypatch.setenv("LOADSURGE_REPORT_INTERVAL", "0.2")
    monkeypatch.setenv("LOADSURGE_GRACE_PERIOD", "1.0")
    yield
    logger = logging.getLogger("loadsurge")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True


@pytest.fixture
def services_file(tmp_path: Path) -> Path:
    path = tmp_path / "services.json"
    path.write_text(
        json.dumps(
            {
                "services": [
                    {
                        "name": "gateway",
                        "technology": "Go",
                        "max_rps": 45000,
                        "avg_latency_ms": 25,
                        "p95_latency_ms": 100,
                    },
                    {
                        "name": "legacy",
                        "technology": "Java",
                        "max_rps": 12000,
                        "avg_latency_ms": 60,
                        "p95_latency_ms": 150,
                        "error_rate": 0.5,
                    },
                ]
            }
        )
    )
    return path


def _run_args(url: str, *extra: str) -> list[str]:
    return [
        "run",
        url,
        "--min-rps",
        "5",
        "--max-rps",
        "15",
        "--duration",
        "1",
        "--concurrency",
        "5",
        *extra,
    ]


# ---------------------------------------------------------------------------
# Tests: version and help
# ---------------------------------------------------------------------------


def test_version_flag():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_version_short_flag():
    """-V also prints version."""
    result = runner.invoke(app, ["-V"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_output():
    """--help shows usage information."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "loadsurge" in result.output.lower()


def test_log_json_installs_json_handler():
    result = runner.invoke(app, ["--log-json", "presets"])
    assert result.exit_code == 0

    (handler,) = logging.getLogger("loadsurge").handlers
    record = logging.LogRecord("loadsurge.cli", logging.WARNING, __file__, 1, "hi %s", ("x",), None)
    entry = json.loads(handler.format(record))
    assert entry["level"] == "WARNING"
    assert entry["message"] == "hi x"


def test_run_help():
    """loadsurge run --help shows ramp options."""
    result = runner.invoke(app, ["run", "--help"])
    assert result.exit_code == 0
    assert "--max-rps" in result.output
    assert "--duration" in result.output
    assert "--scale-mode" in result.output


# ---------------------------------------------------------------------------
# Tests: loadsurge presets / compare
# ---------------------------------------------------------------------------


def test_presets_lists_table():
    result = runner.invoke(app, ["presets"])
    assert result.exit_code == 0
    assert "Built-in Presets" in result.output


def test_compare_json(services_file: Path):
    result = runner.invoke(app, ["compare", str(services_file), "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["summary"]["best_performer"] == "gateway"
    assert data["summary"]["category"] == "migrate"
    assert len(data["services"]) == 2


def test_compare_table(services_file: Path):
    result = runner.invoke(app, ["compare", str(services_file)])
    assert result.exit_code == 0, result.output


def test_compare_empty_list(tmp_path: Path):
    path = tmp_path / "empty.json"
    path.write_text("[]")
    result = runner.invoke(app, ["compare", str(path)])
    assert result.exit_code == 1


def test_compare_invalid_entry(tmp_path: Path):
    path = tmp_path / "bad.json"
    path.write_text('[{"name": "x"}]')
    result = runner.invoke(app, ["compare", str(path)])
    assert result.exit_code == 1


# ---------------------------------------------------------------------------
# Tests: loadsurge run
# ---------------------------------------------------------------------------


@pytest.mark.timeout(60)
def test_run_then_report(sync_echo_server: str, tmp_path: Path):
    """A completed run is saved and can be reported on afterwards."""
    results = tmp_path / "results"
    result = runner.invoke(
        app,
        _run_args(f"{sync_echo_server}/echo/cli", "--output", str(results), "--name", "cli"),
    )
    assert result.exit_code == 0, result.output
    assert (results / "run-1.json").exists()

    report = runner.invoke(app, ["report", str(results), "--json"])
    assert report.exit_code == 0, report.output
    data = json.loads(report.stdout)
    assert [s["name"] for s in data["simulations"]] == ["Simulation-1"]
    assert data["simulations"][0]["total_requests"] > 0
    assert data["simulations"][0]["success_rate"] == pytest.approx(100.0)


@pytest.mark.timeout(60)
def test_second_run_keeps_first_record(sync_echo_server: str, tmp_path: Path):
    results = tmp_path / "results"
    for name in ("first", "second"):
        result = runner.invoke(
            app,
            _run_args(f"{sync_echo_server}/echo", "--output", str(results), "--name", name),
        )
        assert result.exit_code == 0, result.output

    assert sorted(p.name for p in results.glob("run-*.json")) == ["run-1.json", "run-2.json"]
    assert json.loads((results / "run-1.json").read_text())["config"]["name"] == "first"
    assert json.loads((results / "run-2.json").read_text())["config"]["name"] == "second"


@pytest.mark.timeout(60)
def test_failed_save_is_reported(sync_echo_server: str, tmp_path: Path):
    not_a_directory = tmp_path / "occupied"
    not_a_directory.write_text("")
    result = runner.invoke(
        app, _run_args(f"{sync_echo_server}/echo", "--output", str(not_a_directory))
    )
    assert result.exit_code == 0, result.output
    assert "was not saved" in result.output
    assert "Run record saved" not in result.output


@pytest.mark.timeout(60)
def test_busy_ws_port_exits_non_zero(sync_echo_server: str):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        listener.listen()
        port = listener.getsockname()[1]
        result = runner.invoke(
            app, _run_args(f"{sync_echo_server}/echo", "--ws-port", str(port))
        )
    assert result.exit_code == 1
    assert "cannot listen" in result.output


@pytest.mark.timeout(60)
def test_run_step_mode(sync_echo_server: str):
    result = runner.invoke(
        app, _run_args(f"{sync_echo_server}/echo", "--scale-mode", "step", "--preflight")
    )
    assert result.exit_code == 0, result.output


@pytest.mark.timeout(60)
def test_fail_on_error_rate(sync_echo_server: str):
    """A run against an erroring endpoint trips the threshold."""
    result = runner.invoke(
        app,
        _run_args(f"{sync_echo_server}/error?status=500", "--fail-on-error-rate", "0.05"),
    )
    assert result.exit_code == 1


@pytest.mark.timeout(60)
def test_constant_pattern_is_recorded(sync_echo_server: str, tmp_path: Path):
    result = runner.invoke(
        app,
        _run_args(f"{sync_echo_server}/echo", "--pattern", "constant", "--output", str(tmp_path)),
    )
    assert result.exit_code == 0, result.output
    assert "Constant: 15 RPS" in result.output
    record = json.loads((tmp_path / "run-1.json").read_text())
    assert record["config"]["pattern"] == "constant"


@pytest.mark.timeout(60)
def test_unexpected_status_trips_error_rate(sync_echo_server: str):
    result = runner.invoke(
        app,
        _run_args(
            f"{sync_echo_server}/echo",
            "--expect-status",
            "201",
            "--fail-on-error-rate",
            "0.05",
        ),
    )
    assert result.exit_code == 1
    assert "exceeds threshold" in result.output


@pytest.mark.timeout(60)
def test_variables_and_body_check(sync_echo_server: str):
    result = runner.invoke(
        app,
        _run_args(
            f"{sync_echo_server}/echo/{{{{tenant}}}}",
            "--var",
            "tenant=acme",
            "--expect-body",
            '"path": "/echo/acme"',
            "--fail-on-error-rate",
            "0",
        ),
    )
    assert result.exit_code == 0, result.output


def test_run_bad_variable():
    result = runner.invoke(app, ["run", "http://localhost/", "--var", "no-equals"])
    assert result.exit_code != 0


@pytest.mark.timeout(60)
def test_preflight_failure_exits_non_zero(unused_url: str):
    result = runner.invoke(app, _run_args(unused_url, "--preflight"))
    assert result.exit_code == 1


def test_run_invalid_url():
    result = runner.invoke(app, _run_args("not-a-url"))
    assert result.exit_code == 1


def test_run_max_below_min():
    result = runner.invoke(
        app, ["run", "http://localhost/", "--min-rps", "10", "--max-rps", "1"]
    )
    assert result.exit_code == 1


def test_run_unknown_preset():
    result = runner.invoke(app, ["run", "http://localhost/", "--preset", "warp"])
    assert result.exit_code == 1


def test_run_bad_header():
    result = runner.invoke(app, ["run", "http://localhost/", "--header", "no-colon"])
    assert result.exit_code != 0


# ---------------------------------------------------------------------------
# Tests: loadsurge report
# ---------------------------------------------------------------------------


def test_report_empty_directory(tmp_path: Path):
    result = runner.invoke(app, ["report", str(tmp_path), "--json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["simulations"] == []
    assert data["recommendations"] == ["Performance metrics are within acceptable ranges."]


def test_report_corrupt_record(tmp_path: Path):
    (tmp_path / "run-1.json").write_text('{"config": {}}')
    result = runner.invoke(app, ["report", str(tmp_path)])
    assert result.exit_code == 1
