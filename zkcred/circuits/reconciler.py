"""
Proof payload reconciliation.

Proof payloads reach the verifier in two shapes:

* a complete container ``{"proof": {...}, "publicSignals": [...]}``,
* a bare proof ``{"pi_a": ..., "pi_b": ..., "pi_c": ...}`` whose public
  signals must be supplied separately.

``normalize`` turns either into a validated ``NormalizedProof``. A bare
proof without supplied signals raises ``MissingPublicSignalsError`` rather
than guessing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .errors import MissingPublicSignalsError, ProofFormatError

FORMAT_COMPLETE = "complete_file"
FORMAT_PROOF_ONLY = "proof_only"
FORMAT_UNKNOWN = "unknown"

_UINT_RE = re.compile(r"[0-9]+")
_PROOF_FIELDS = ("pi_a", "pi_b", "pi_c")


@dataclass(frozen=True)
class Groth16Proof:
    pi_a: tuple[str, ...]
    pi_b: tuple[tuple[str, ...], ...]
    pi_c: tuple[str, ...]
    protocol: str = "groth16"
    curve: str = "bn128"

    def to_dict(self) -> dict[str, Any]:
        return {
            "pi_a": list(self.pi_a),
            "pi_b": [list(pair) for pair in self.pi_b],
            "pi_c": list(self.pi_c),
            "protocol": self.protocol,
            "curve": self.curve,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Groth16Proof":
        validate_proof_shape(data)
        return cls(
            pi_a=tuple(str(item) for item in data["pi_a"]),
            pi_b=tuple(tuple(str(item) for item in pair) for pair in data["pi_b"]),
            pi_c=tuple(str(item) for item in data["pi_c"]),
            protocol=str(data.get("protocol", "groth16")),
            curve=str(data.get("curve", "bn128")),
        )


@dataclass(frozen=True)
class NormalizedProof:
    proof: Groth16Proof
    public_signals: tuple[str, ...]
    proof_format: str
    extra: Mapping[str, Any] = field(default_factory=dict)


def detect_format(payload: Any) -> str:
    if not isinstance(payload, Mapping):
        return FORMAT_UNKNOWN
    if "proof" in payload and "publicSignals" in payload:
        return FORMAT_COMPLETE
    if "pi_a" in payload:
        return FORMAT_PROOF_ONLY
    return FORMAT_UNKNOWN


def normalize(
    payload: Any,
    supplied_public_signals: Sequence[Any] | None = None,
) -> NormalizedProof:
    """Validate a proof payload and pair it with its public signals.

    Args:
        payload: Decoded proof file or manual entry
        supplied_public_signals: Signals to use when the payload is a bare proof

    Returns:
        NormalizedProof with string public signals

    Raises:
        ProofFormatError: Payload is neither recognized shape, or fails
            structural validation
        MissingPublicSignalsError: Bare proof and no signals supplied
    """
    if not isinstance(payload, Mapping):
        raise ProofFormatError(
            "proof payload must be an object",
            expected="object",
            actual=type(payload).__name__,
        )

    proof_format = detect_format(payload)
    if proof_format == FORMAT_COMPLETE:
        raw_proof = payload["proof"]
        raw_signals = payload["publicSignals"]
        extra = {
            key: value
            for key, value in payload.items()
            if key not in {"proof", "publicSignals"}
        }
    elif proof_format == FORMAT_PROOF_ONLY:
        raw_proof = payload
        if supplied_public_signals is None:
            raise MissingPublicSignalsError()
        raw_signals = supplied_public_signals
        extra = {}
    else:
        raise ProofFormatError(
            "unrecognized proof payload",
            expected="{proof, publicSignals} or {pi_a, pi_b, pi_c}",
            actual=", ".join(sorted(str(key) for key in payload)) or "empty object",
        )

    if not isinstance(raw_proof, Mapping):
        raise ProofFormatError(
            "proof must be an object",
            field="proof",
            expected="object",
            actual=type(raw_proof).__name__,
        )
    proof = Groth16Proof.from_dict(raw_proof)
    signals = normalize_public_signals(raw_signals)
    return NormalizedProof(
        proof=proof,
        public_signals=signals,
        proof_format=proof_format,
        extra=extra,
    )


def validate_proof_shape(proof: Mapping[str, Any]) -> None:
    for name in _PROOF_FIELDS:
        if name not in proof or proof[name] is None:
            raise ProofFormatError(f"proof is missing {name}", field=name)

    _check_point(proof["pi_a"], "pi_a")
    _check_point(proof["pi_c"], "pi_c")

    pi_b = proof["pi_b"]
    if not isinstance(pi_b, list) or len(pi_b) != 3:
        raise ProofFormatError(
            "invalid pi_b",
            field="pi_b",
            expected="list of 3 pairs",
            actual=_describe(pi_b),
        )
    for index, pair in enumerate(pi_b):
        if not isinstance(pair, list) or len(pair) != 2:
            raise ProofFormatError(
                f"invalid pi_b[{index}]",
                field="pi_b",
                expected="list of 2 elements",
                actual=_describe(pair),
            )
        for item in pair:
            _check_element(item, f"pi_b[{index}]")


def normalize_public_signals(signals: Any) -> tuple[str, ...]:
    if signals is None:
        raise ProofFormatError("public signals are missing", field="publicSignals")
    if not isinstance(signals, (list, tuple)):
        raise ProofFormatError(
            "public signals must be a list",
            field="publicSignals",
            expected="list",
            actual=type(signals).__name__,
        )
    if not signals:
        raise ProofFormatError(
            "public signals must not be empty",
            field="publicSignals",
            expected="non-empty list",
            actual="empty list",
        )
    normalized = []
    for index, signal in enumerate(signals):
        if isinstance(signal, bool):
            raise ProofFormatError(
                f"public signal {index} is not numeric",
                field="publicSignals",
                expected="non-negative integer",
                actual="bool",
            )
        if isinstance(signal, int):
            if signal < 0:
                raise ProofFormatError(
                    f"public signal {index} is negative",
                    field="publicSignals",
                    expected="non-negative integer",
                    actual=str(signal),
                )
            normalized.append(str(signal))
        elif isinstance(signal, str) and _UINT_RE.fullmatch(signal):
            normalized.append(signal)
        else:
            raise ProofFormatError(
                f"public signal {index} is not a non-negative integer",
                field="publicSignals",
                expected="non-negative integer string or number",
                actual=repr(signal),
            )
    return tuple(normalized)


def _check_point(value: Any, name: str) -> None:
    if not isinstance(value, list) or len(value) != 3:
        raise ProofFormatError(
            f"invalid {name}",
            field=name,
            expected="list of 3 elements",
            actual=_describe(value),
        )
    for item in value:
        _check_element(item, name)


def _check_element(value: Any, name: str) -> None:
    if isinstance(value, bool):
        ok = False
    elif isinstance(value, int):
        ok = value >= 0
    else:
        ok = isinstance(value, str) and bool(_UINT_RE.fullmatch(value))
    if not ok:
        raise ProofFormatError(
            f"invalid element in {name}",
            field=name.split("[")[0],
            expected="numeric string",
            actual=repr(value),
        )


def _describe(value: Any) -> str:
    if isinstance(value, list):
        return f"list of {len(value)}"
    return type(value).__name__
