"""Tests for proof payload reconciliation."""

from __future__ import annotations

import copy

import pytest

from zkcred.circuits.errors import MissingPublicSignalsError, ProofFormatError
from zkcred.circuits.reconciler import (
    FORMAT_COMPLETE,
    FORMAT_PROOF_ONLY,
    FORMAT_UNKNOWN,
    detect_format,
    normalize,
    normalize_public_signals,
)
from zkcred.circuits.tests.fakes import proof_for


def _complete(signal: str = "1") -> dict:
    return {"proof": proof_for(signal), "publicSignals": [signal], "hasLicenseA": True}


def test_detect_format() -> None:
    assert detect_format(_complete()) == FORMAT_COMPLETE
    assert detect_format(proof_for("1")) == FORMAT_PROOF_ONLY
    assert detect_format({"foo": 1}) == FORMAT_UNKNOWN
    assert detect_format([1, 2]) == FORMAT_UNKNOWN


def test_normalize_complete_payload() -> None:
    normalized = normalize(_complete())

    assert normalized.proof_format == FORMAT_COMPLETE
    assert normalized.public_signals == ("1",)
    assert normalized.proof.pi_b[2] == ("1", "0")
    assert normalized.extra == {"hasLicenseA": True}


def test_complete_payload_ignores_supplied_signals() -> None:
    normalized = normalize(_complete("0"), supplied_public_signals=["1"])

    assert normalized.public_signals == ("0",)


def test_bare_proof_requires_signals() -> None:
    with pytest.raises(MissingPublicSignalsError):
        normalize(proof_for("1"))


def test_bare_proof_with_supplied_signals() -> None:
    normalized = normalize(proof_for("1"), supplied_public_signals=[1])

    assert normalized.proof_format == FORMAT_PROOF_ONLY
    assert normalized.public_signals == ("1",)


@pytest.mark.parametrize("payload", [None, "proof", [1, 2, 3], {}, {"proof": {}}])
def test_unrecognized_payloads(payload) -> None:
    with pytest.raises(ProofFormatError):
        normalize(payload)


@pytest.mark.parametrize(
    "field, value",
    [
        ("pi_a", ["1", "2"]),
        ("pi_c", ["1", "2", "3", "4"]),
        ("pi_b", [["1", "2"], ["3", "4"]]),
        ("pi_b", [["1", "2"], ["3"], ["1", "0"]]),
        ("pi_a", ["1", "x", "1"]),
        ("pi_c", None),
    ],
)
def test_structural_checks(field: str, value) -> None:
    payload = _complete()
    proof = copy.deepcopy(payload["proof"])
    proof[field] = value
    payload["proof"] = proof

    with pytest.raises(ProofFormatError) as exc_info:
        normalize(payload)
    assert exc_info.value.field == field


def test_missing_proof_component() -> None:
    proof = proof_for("1")
    del proof["pi_b"]

    with pytest.raises(ProofFormatError, match="pi_b"):
        normalize(proof, supplied_public_signals=["1"])


def test_public_signals_normalized_to_strings() -> None:
    assert normalize_public_signals([1, "0", 42]) == ("1", "0", "42")


@pytest.mark.parametrize(
    "signals", [[], "1", [-1], ["1.5"], [True], ["abc"], ["1\n"], ["١"], None]
)
def test_public_signals_rejected(signals) -> None:
    with pytest.raises(ProofFormatError):
        normalize_public_signals(signals)
