"""
Reading and writing proof files.

Proofs travel as JSON (the snarkjs layout) or as a compact CBOR envelope::

    {"v": 1, "proof": {...}, "publicSignals": [...], ...}

The envelope's version field is checked on load.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import cbor2

from .constants import MAX_PROOF_FILE_BYTES, PROOF_ENVELOPE_VERSION
from .errors import ProofFormatError
from .orchestrator import GeneratedProof
from .reconciler import normalize_public_signals

CBOR_SUFFIXES = frozenset({".cbor"})


def load_payload(path: Path | str, max_bytes: int = MAX_PROOF_FILE_BYTES) -> Any:
    """Read a proof file and return the decoded payload.

    Raises:
        ProofFormatError: File is too large, unreadable, or not valid JSON/CBOR
    """
    proof_path = Path(path)
    try:
        size = proof_path.stat().st_size
    except OSError as exc:
        raise ProofFormatError(f"cannot read proof file {proof_path}: {exc}") from exc
    if size > max_bytes:
        raise ProofFormatError(
            "proof file too large",
            field="file",
            expected=f"at most {max_bytes} bytes",
            actual=f"{size} bytes",
        )

    try:
        data = proof_path.read_bytes()
    except OSError as exc:
        raise ProofFormatError(f"cannot read proof file {proof_path}: {exc}") from exc
    if proof_path.suffix.lower() in CBOR_SUFFIXES:
        return decode_envelope(data)
    try:
        return json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError, RecursionError) as exc:
        raise ProofFormatError(f"proof file is not valid JSON: {exc}") from exc


def encode_envelope(payload: Mapping[str, Any]) -> bytes:
    return cbor2.dumps({"v": PROOF_ENVELOPE_VERSION, **payload})


def decode_envelope(data: bytes) -> dict[str, Any]:
    try:
        obj = cbor2.loads(data)
    except Exception as exc:
        raise ProofFormatError(f"proof envelope is not valid CBOR: {exc}") from exc
    if not isinstance(obj, dict):
        raise ProofFormatError(
            "proof envelope must be a map", expected="map", actual=type(obj).__name__
        )
    version = obj.pop("v", None)
    if version != PROOF_ENVELOPE_VERSION:
        raise ProofFormatError(
            "unsupported proof envelope version",
            field="v",
            expected=str(PROOF_ENVELOPE_VERSION),
            actual=repr(version),
        )
    return obj


def dump_proof(generated: GeneratedProof, path: Path | str) -> Path:
    """Write a generated proof; the format follows the file suffix."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = generated.to_dict()
    if out_path.suffix.lower() in CBOR_SUFFIXES:
        out_path.write_bytes(encode_envelope(payload))
    else:
        out_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return out_path


def dump_report(report: Mapping[str, Any], path: Path | str) -> Path:
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    return out_path


def load_public_signals(text: str) -> tuple[str, ...]:
    """Parse public signals given as a JSON list or as comma-separated values."""
    stripped = text.strip()
    if stripped.startswith("["):
        try:
            raw = json.loads(stripped)
        except ValueError as exc:
            raise ProofFormatError(
                f"public signals are not valid JSON: {exc}", field="publicSignals"
            ) from exc
    else:
        raw = [part.strip() for part in stripped.split(",") if part.strip()]
    return normalize_public_signals(raw)
