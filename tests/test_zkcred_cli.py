"""CLI tests for the zkcred command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from zkcred import cli
from zkcred.circuits.descriptors import AGE18_CIRCUIT, LICENSE_CIRCUIT
from zkcred.circuits.tests.fakes import FakeBackend, proof_for, write_circuit

JEAN_ARGS = [
    "--name",
    "Jean",
    "--surname",
    "Durand",
    "--dob",
    "1990-05-15",
    "--license",
    "A",
    "--nonce",
    "x7Tr9sP0",
]


@pytest.fixture
def circuits(tmp_path: Path) -> Path:
    root = tmp_path / "circuits"
    write_circuit(root, LICENSE_CIRCUIT)
    write_circuit(root, AGE18_CIRCUIT)
    return root


def _invoke(circuits: Path, tmp_path: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(
        cli.main,
        ["--circuits-dir", str(circuits), *args],
        obj={"backend": FakeBackend()},
        env={"ZKCRED_WORK_DIR": str(tmp_path / "work"), "ZKCRED_CONFIG": ""},
    )


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli.main, ["--help"])

    assert result.exit_code == 0
    for command in ("status", "check", "prove", "verify", "batch-verify"):
        assert command in result.output


def test_status_complete(circuits: Path, tmp_path: Path) -> None:
    result = _invoke(circuits, tmp_path, "status")

    assert result.exit_code == 0
    assert "license: 4/4 files" in result.output
    assert "age18: 4/4 files" in result.output


def test_status_incomplete(tmp_path: Path) -> None:
    result = _invoke(tmp_path / "empty", tmp_path, "status", "--circuit", "license")

    assert result.exit_code == 1
    assert "license: 0/4 files" in result.output
    assert "missing:" in result.output


def test_check_runs_witness(circuits: Path, tmp_path: Path) -> None:
    result = _invoke(circuits, tmp_path, "check", "license")

    assert result.exit_code == 0
    assert "witness computed" in result.output


def test_prove_to_stdout(circuits: Path, tmp_path: Path) -> None:
    result = _invoke(circuits, tmp_path, "prove", "license", *JEAN_ARGS)

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["publicSignals"] == ["1"]
    assert data["hasLicenseA"] is True
    assert "Jean" not in result.output


def test_prove_validation_error(circuits: Path, tmp_path: Path) -> None:
    result = _invoke(
        circuits,
        tmp_path,
        "prove",
        "license",
        "--name",
        "Jean",
        "--surname",
        "Durand",
        "--dob",
        "1990-02-30",
        "--license",
        "Z",
    )

    assert result.exit_code == 1
    assert "validating_input" in result.output


def test_prove_then_verify(circuits: Path, tmp_path: Path) -> None:
    proof_path = tmp_path / "proof.json"
    prove = _invoke(
        circuits, tmp_path, "prove", "license", *JEAN_ARGS, "--output", str(proof_path)
    )
    assert prove.exit_code == 0
    assert "hasLicenseA: True" in prove.output

    verify = _invoke(circuits, tmp_path, "verify", str(proof_path), "--json")

    assert verify.exit_code == 0
    data = json.loads(verify.output)
    assert data["valid"] is True
    assert data["hasLicenseA"] is True


def test_verify_bare_proof_needs_signals(circuits: Path, tmp_path: Path) -> None:
    bare = tmp_path / "bare.json"
    bare.write_text(json.dumps(proof_for("1")))

    missing = _invoke(circuits, tmp_path, "verify", str(bare))
    supplied = _invoke(circuits, tmp_path, "verify", str(bare), "--public-signals", '["1"]')

    assert missing.exit_code == 1
    assert "public signals" in missing.output
    assert supplied.exit_code == 0
    assert "Proof valid" in supplied.output


def test_verify_tampered_proof(circuits: Path, tmp_path: Path) -> None:
    tampered = tmp_path / "tampered.json"
    tampered.write_text(json.dumps({"proof": proof_for("0"), "publicSignals": ["1"]}))

    result = _invoke(circuits, tmp_path, "verify", str(tampered))

    assert result.exit_code == 1
    assert "Proof invalid" in result.output


def test_batch_verify_json(circuits: Path, tmp_path: Path) -> None:
    good = tmp_path / "good.json"
    good.write_text(json.dumps({"proof": proof_for("1"), "publicSignals": ["1"]}))
    bad = tmp_path / "bad.json"
    bad.write_text("{")

    result = _invoke(circuits, tmp_path, "batch-verify", str(good), str(bad), "--json")

    assert result.exit_code == 1
    report = json.loads(result.output)
    assert report["total"] == 2
    assert report["valid"] == 1
    assert report["items"][1]["error_kind"] == "ProofFormatError"


def test_batch_verify_writes_report_file(circuits: Path, tmp_path: Path) -> None:
    good = tmp_path / "good.json"
    good.write_text(json.dumps({"proof": proof_for("1"), "publicSignals": ["1"]}))
    target = tmp_path / "reports" / "batch.json"

    result = _invoke(circuits, tmp_path, "batch-verify", str(good), "--output", str(target))

    assert result.exit_code == 0
    assert "Report saved to" in result.output
    report = json.loads(target.read_text())
    assert report["total"] == 1
    assert report["items"][0]["hasLicenseA"] is True
