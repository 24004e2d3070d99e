from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from zkcred.circuits.descriptors import AGE18_CIRCUIT, LICENSE_CIRCUIT
from zkcred.circuits.encoding import CredentialAttributes
from zkcred.circuits.orchestrator import ProofOrchestrator
from zkcred.circuits.registry import CircuitRegistry
from zkcred.circuits.tests.fakes import FakeBackend, write_circuit
from zkcred.circuits.witness import WitnessProcessBridge


@pytest.fixture
def circuits_root(tmp_path: Path) -> Path:
    root = tmp_path / "circuits"
    write_circuit(root, LICENSE_CIRCUIT)
    write_circuit(root, AGE18_CIRCUIT)
    return root


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture
def registry(circuits_root: Path) -> CircuitRegistry:
    return CircuitRegistry(root=circuits_root)


@pytest.fixture
def bridge(work_dir: Path) -> WitnessProcessBridge:
    return WitnessProcessBridge(work_dir=work_dir, timeout=20)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def orchestrator(registry, bridge, backend) -> ProofOrchestrator:
    return ProofOrchestrator(registry, bridge, backend, today=lambda: date(2025, 6, 1))


@pytest.fixture
def jean() -> CredentialAttributes:
    return CredentialAttributes(
        name="Jean",
        surname="Durand",
        dob="1990-05-15",
        license="A",
        nonce="x7Tr9sP0",
    )
