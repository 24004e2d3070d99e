"""Tests for the proof generation state machine."""

from __future__ import annotations

import dataclasses
from datetime import date
from pathlib import Path

import pytest

from zkcred.circuits.descriptors import LICENSE_CIRCUIT, CircuitId
from zkcred.circuits.encoding import CredentialAttributes
from zkcred.circuits.errors import (
    ConfigurationError,
    MissingArtifactError,
    ProvingBackendError,
    ValidationError,
    WitnessProcessError,
)
from zkcred.circuits.orchestrator import ProofAttempt, ProofOrchestrator, ProofState
from zkcred.circuits.registry import CircuitRegistry
from zkcred.circuits.tests.fakes import FAILING_SCRIPT, FakeBackend, write_circuit
from zkcred.circuits.witness import WitnessProcessBridge

HAPPY_PATH = [
    ProofState.IDLE,
    ProofState.VALIDATING_INPUT,
    ProofState.RESOLVING_FILES,
    ProofState.ENCODING,
    ProofState.AWAITING_WITNESS,
    ProofState.PROVING,
    ProofState.COMPLETED,
]


def test_license_a_proof(orchestrator: ProofOrchestrator, jean, work_dir: Path) -> None:
    attempt = orchestrator.run(CircuitId.LICENSE, jean)

    assert attempt.succeeded
    assert attempt.history == HAPPY_PATH
    assert attempt.error is None
    generated = attempt.proof
    assert generated.public_signals == ("1",)
    assert generated.claim is True
    assert generated.claim_name == "hasLicenseA"
    assert len(generated.commitment) == 64
    assert list(work_dir.iterdir()) == []


def test_proof_output_excludes_attributes(orchestrator: ProofOrchestrator, jean) -> None:
    data = orchestrator.generate("license", jean).to_dict()

    assert set(data) == {
        "proof",
        "publicSignals",
        "circuit",
        "timestamp",
        "hasLicenseA",
        "commitment",
        "metadata",
    }
    text = repr(data)
    assert "Jean" not in text
    assert "x7Tr9sP0" not in text


def test_commitment_is_deterministic_across_runs(orchestrator: ProofOrchestrator, jean) -> None:
    first = orchestrator.generate("license", jean)
    second = orchestrator.generate("license", jean)

    assert first.commitment == second.commitment


def test_license_b_yields_false_claim(orchestrator: ProofOrchestrator, jean) -> None:
    generated = orchestrator.generate("license", dataclasses.replace(jean, license="B"))

    assert generated.public_signals == ("0",)
    assert generated.claim is False


def test_age_derived_from_dob(orchestrator: ProofOrchestrator, jean) -> None:
    adult = orchestrator.generate("age18", dataclasses.replace(jean, dob="2007-06-01"))
    minor = orchestrator.generate("age18", dataclasses.replace(jean, dob="2007-06-02"))

    assert adult.claim is True
    assert minor.claim is False
    assert adult.claim_name == "isAdult"


def test_explicit_age_wins(orchestrator: ProofOrchestrator, jean) -> None:
    generated = orchestrator.generate("age18", dataclasses.replace(jean, age=17))

    assert generated.claim is False


def test_validation_fails_before_any_io(tmp_path: Path, backend: FakeBackend) -> None:
    registry = CircuitRegistry(root=tmp_path / "nothing-here")
    bridge = WitnessProcessBridge(work_dir=tmp_path / "work")
    orchestrator = ProofOrchestrator(registry, bridge, backend)
    attrs = CredentialAttributes(name="", surname="Durand", dob="1990-02-30", license="Z")

    attempt = orchestrator.run("license", attrs)

    assert attempt.state is ProofState.FAILED
    assert attempt.failed_stage is ProofState.VALIDATING_INPUT
    assert isinstance(attempt.error, ValidationError)
    assert len(attempt.error.problems) == 3
    assert not (tmp_path / "work").exists()
    assert backend.prove_calls == []


def test_trailing_newline_in_dob_is_a_validation_error(tmp_path: Path, backend: FakeBackend, jean) -> None:
    orchestrator = ProofOrchestrator(
        CircuitRegistry(root=tmp_path / "nothing-here"),
        WitnessProcessBridge(work_dir=tmp_path / "work"),
        backend,
    )

    attempt = orchestrator.run("license", dataclasses.replace(jean, dob="2000-01-01\n"))

    assert attempt.failed_stage is ProofState.VALIDATING_INPUT
    assert isinstance(attempt.error, ValidationError)
    assert ProofState.RESOLVING_FILES not in attempt.history


def test_missing_files_fail_in_resolution(tmp_path: Path, backend: FakeBackend, jean) -> None:
    write_circuit(tmp_path, LICENSE_CIRCUIT, skip=("circuit.zkey",))
    orchestrator = ProofOrchestrator(
        CircuitRegistry(root=tmp_path), WitnessProcessBridge(work_dir=tmp_path / "work"), backend
    )

    attempt = orchestrator.run("license", jean)

    assert attempt.failed_stage is ProofState.RESOLVING_FILES
    assert isinstance(attempt.error, MissingArtifactError)
    assert attempt.error.missing == ("proving_key",)


def test_witness_failure_is_forwarded_unchanged(tmp_path: Path, backend: FakeBackend, jean) -> None:
    write_circuit(tmp_path, LICENSE_CIRCUIT, script=FAILING_SCRIPT)
    work = tmp_path / "work"
    orchestrator = ProofOrchestrator(
        CircuitRegistry(root=tmp_path), WitnessProcessBridge(work_dir=work), backend
    )

    attempt = orchestrator.run("license", jean)

    assert attempt.failed_stage is ProofState.AWAITING_WITNESS
    assert type(attempt.error) is WitnessProcessError
    assert attempt.error.returncode == 3
    assert attempt.history[-1] is ProofState.FAILED
    assert list(work.iterdir()) == []
    with pytest.raises(WitnessProcessError):
        orchestrator.generate("license", jean)


def test_malformed_backend_output(registry, bridge, jean) -> None:
    class BrokenBackend(FakeBackend):
        def prove(self, proving_key, witness):
            return {"pi_a": ["1"]}, ["1"]

    orchestrator = ProofOrchestrator(registry, bridge, BrokenBackend())
    attempt = orchestrator.run("license", jean)

    assert attempt.failed_stage is ProofState.PROVING
    assert isinstance(attempt.error, ProvingBackendError)


def test_unknown_circuit(orchestrator: ProofOrchestrator, jean) -> None:
    attempt = orchestrator.run("passport", jean)

    assert attempt.failed_stage is ProofState.VALIDATING_INPUT
    assert isinstance(attempt.error, ConfigurationError)


def test_no_retry_on_failure(tmp_path: Path, jean) -> None:
    write_circuit(tmp_path, LICENSE_CIRCUIT)
    calls = []

    class FlakyBackend(FakeBackend):
        def prove(self, proving_key, witness):
            calls.append(proving_key)
            raise ProvingBackendError("transient")

    orchestrator = ProofOrchestrator(
        CircuitRegistry(root=tmp_path),
        WitnessProcessBridge(work_dir=tmp_path / "work"),
        FlakyBackend(),
    )

    with pytest.raises(ProvingBackendError, match="transient"):
        orchestrator.generate("license", jean)
    assert len(calls) == 1


def test_illegal_transition_rejected() -> None:
    attempt = ProofAttempt(circuit_id="license")

    with pytest.raises(RuntimeError):
        attempt.advance(ProofState.PROVING)


def test_generate_rejects_attempt_without_proof(registry, bridge, backend, jean) -> None:
    class StalledOrchestrator(ProofOrchestrator):
        def run(self, circuit, attributes):
            return ProofAttempt(circuit_id=str(circuit))

    with pytest.raises(RuntimeError, match="without a proof"):
        StalledOrchestrator(registry, bridge, backend).generate("license", jean)


def test_dry_run_computes_sample_witness(orchestrator: ProofOrchestrator, work_dir: Path) -> None:
    handle = orchestrator.dry_run("age18")

    assert handle.witness.startswith(b"wtns")
    assert b'"age": 25' in handle.witness
    assert list(work_dir.iterdir()) == []


def test_configured_descriptor_is_used(registry, bridge, backend, jean) -> None:
    wide = LICENSE_CIRCUIT.with_overrides(commitment_encoding="field", name_width=64)
    orchestrator = ProofOrchestrator(
        registry,
        bridge,
        backend,
        descriptors={CircuitId.LICENSE: wide},
        today=lambda: date(2025, 6, 1),
    )

    generated = orchestrator.generate("license", jean)

    assert generated.metadata["commitment_encoding"] == "field"
