"""CLI tests (Typer runner, no network)."""

import sys

import pytest
from loguru import logger
from typer.testing import CliRunner

from conftest import VALID_IDS, StubFetcher
from cli import main as cli_main
from core.services.audit_pipeline import run_audit

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("NR_AUDIT_API_BASE_URL", "NR_AUDIT_API_KEY", "NR_AUDIT_CACHE_DIR"):
        monkeypatch.delenv(name, raising=False)
    yield
    # The CLI rebinds loguru to the runner's stderr.
    logger.remove()
    logger.add(sys.stderr)


def test_validate_accepts_valid_identifiers():
    result = runner.invoke(cli_main.app, ["validate", VALID_IDS[0], VALID_IDS[1]])

    assert result.exit_code == 0
    assert "valid" in result.output


def test_validate_flags_bad_identifiers():
    result = runner.invoke(cli_main.app, ["validate", VALID_IDS[0], "00000000000"])

    assert result.exit_code == 1
    assert "invalid" in result.output


def test_run_with_missing_input_exits_fatal(tmp_path):
    result = runner.invoke(cli_main.app, ["run", str(tmp_path / "missing.txt"), "--no-banner"])

    assert result.exit_code == 2


def test_run_without_credentials_exits_fatal(tmp_path, monkeypatch):
    monkeypatch.setenv("NR_AUDIT_API_BASE_URL", "https://nr.example.test/records")
    monkeypatch.setenv("NR_AUDIT_API_KEY", "")
    (tmp_path / "C1.txt").write_text(f"{VALID_IDS[0]}\n", encoding="utf-8")

    result = runner.invoke(cli_main.app, ["run", str(tmp_path / "C1.txt"), "-o", str(tmp_path / "out"), "--no-banner"])

    assert result.exit_code == 2


def test_run_writes_output_for_each_customer(tmp_path, monkeypatch):
    async def fake_run_audit(**kwargs):
        return await run_audit(fetcher=StubFetcher(), **kwargs)

    monkeypatch.setattr(cli_main, "run_audit", fake_run_audit)
    inputs = tmp_path / "inputs"
    inputs.mkdir()
    (inputs / "C1.txt").write_text(f"{VALID_IDS[0]}\n00000000000\n", encoding="utf-8")
    (inputs / "C2.txt").write_text(f"{VALID_IDS[2]}\n", encoding="utf-8")
    out = tmp_path / "out"

    result = runner.invoke(cli_main.app, ["run", str(inputs), "-o", str(out), "-c", "2", "--no-banner"])

    assert result.exit_code == 0, result.output
    assert (out / "summary.csv").exists()
    assert sorted(p.name for p in (out / "customers").iterdir()) == ["C1.csv", "C1.zip", "C2.csv", "C2.zip"]
