"""
End-to-end credential proof flow: prove, store, reload and verify.

Runs the real witness bridge against a Python witness program and the
deterministic fake Groth16 backend.
"""

from __future__ import annotations

import dataclasses
from datetime import date
from pathlib import Path

import pytest

from zkcred.circuits.batch import BatchItem, BatchVerificationReporter
from zkcred.circuits.descriptors import AGE18_CIRCUIT, LICENSE_CIRCUIT
from zkcred.circuits.encoding import CredentialAttributes
from zkcred.circuits.orchestrator import ProofOrchestrator
from zkcred.circuits.proof_io import dump_proof, load_payload
from zkcred.circuits.registry import CircuitRegistry
from zkcred.circuits.tests.fakes import FakeBackend, write_circuit
from zkcred.circuits.verifier import Verifier
from zkcred.circuits.witness import WitnessProcessBridge

JEAN = CredentialAttributes(
    name="Jean",
    surname="Durand",
    dob="2000-01-01",
    license="A",
    nonce="x7Tr9sP0",
)


@pytest.fixture
def setup(tmp_path: Path):
    root = tmp_path / "circuits"
    write_circuit(root, LICENSE_CIRCUIT)
    write_circuit(root, AGE18_CIRCUIT)
    registry = CircuitRegistry(root=root)
    backend = FakeBackend()
    orchestrator = ProofOrchestrator(
        registry,
        WitnessProcessBridge(work_dir=tmp_path / "work"),
        backend,
        today=lambda: date(2025, 6, 1),
    )
    return registry, orchestrator, Verifier(backend)


def test_jean_durand_license_a(setup, tmp_path: Path) -> None:
    registry, orchestrator, verifier = setup

    generated = orchestrator.generate("license", JEAN)
    path = dump_proof(generated, tmp_path / "proof.json")
    vk = registry.resolve(LICENSE_CIRCUIT).verification_key
    result = verifier.verify_payload(load_payload(path), vk, LICENSE_CIRCUIT)

    assert generated.public_signals == ("1",)
    assert result.valid is True
    assert result.claim_name == "hasLicenseA"
    assert result.claim is True
    assert result.metadata["proof_format"] == "complete_file"
    assert list((tmp_path / "work").iterdir()) == []


def test_license_b_does_not_prove_license_a(setup) -> None:
    registry, orchestrator, verifier = setup

    generated = orchestrator.generate("license", dataclasses.replace(JEAN, license="B"))
    vk = registry.resolve(LICENSE_CIRCUIT).verification_key
    result = verifier.verify_payload(generated.to_dict(), vk, LICENSE_CIRCUIT)

    assert generated.public_signals == ("0",)
    assert result.valid is True
    assert result.to_dict()["hasLicenseA"] is False


def test_same_attributes_and_nonce_give_same_commitment(setup) -> None:
    _, orchestrator, _ = setup

    first = orchestrator.generate("license", JEAN)
    second = orchestrator.generate("license", JEAN)
    other = orchestrator.generate("license", dataclasses.replace(JEAN, nonce="x7Tr9sP1"))

    assert first.commitment == second.commitment
    assert first.commitment != other.commitment


def test_bare_proof_with_manual_signals(setup, tmp_path: Path) -> None:
    registry, orchestrator, verifier = setup

    generated = orchestrator.generate("age18", JEAN)
    bare = generated.proof.to_dict()
    vk = registry.resolve(AGE18_CIRCUIT).verification_key
    result = verifier.verify_payload(bare, vk, AGE18_CIRCUIT, supplied_public_signals=["1"])

    assert result.valid is True
    assert result.claim is True
    assert result.metadata["proof_format"] == "proof_only"


def test_batch_over_generated_proofs(setup, tmp_path: Path) -> None:
    registry, orchestrator, verifier = setup
    paths = []
    for index, category in enumerate("ABC"):
        generated = orchestrator.generate(
            "license", dataclasses.replace(JEAN, license=category)
        )
        paths.append(dump_proof(generated, tmp_path / f"proof_{index}.json"))
    broken = tmp_path / "broken.json"
    broken.write_text("[]")
    paths.append(broken)

    reporter = BatchVerificationReporter(
        verifier,
        registry.resolve(LICENSE_CIRCUIT).verification_key,
        LICENSE_CIRCUIT,
        max_concurrency=2,
    )
    report = reporter.verify_all([BatchItem(path=path, label=path.name) for path in paths])

    assert report.total == 4
    assert report.valid == 3
    assert report.invalid == 1
    assert [item.label for item in report.items] == [path.name for path in paths]
    assert [item.result.claim for item in report.items[:3]] == [True, False, False]
    assert report.items[3].error_kind == "ProofFormatError"
