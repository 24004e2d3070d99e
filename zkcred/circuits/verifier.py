"""Proof verification against a circuit's verification key."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from .backend import Groth16Backend
from .descriptors import CircuitDescriptor
from .errors import (
    CredentialProofError,
    VerificationBackendError,
    VerificationKeyError,
)
from .reconciler import FORMAT_COMPLETE, Groth16Proof, NormalizedProof, normalize

logger = logging.getLogger(__name__)

VK_REQUIRED_FIELDS = ("vk_alpha_1", "vk_beta_2", "vk_gamma_2", "vk_delta_2")


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    public_signals: tuple[str, ...]
    claim_name: str
    claim: bool
    signals: Mapping[str, bool] = field(default_factory=dict)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "publicSignals": list(self.public_signals),
            self.claim_name: self.claim,
            "signals": dict(self.signals),
            "metadata": dict(self.metadata),
        }


def load_verification_key(path: Path | str) -> dict[str, Any]:
    vk_path = Path(path)
    if not vk_path.is_file():
        raise VerificationKeyError(f"verification key not found: {vk_path}")
    try:
        data = json.loads(vk_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise VerificationKeyError(f"cannot read verification key {vk_path}: {exc}") from exc
    check_verification_key(data)
    return data


def check_verification_key(data: Any) -> None:
    if not isinstance(data, Mapping):
        raise VerificationKeyError("verification key must be a JSON object")
    missing = [name for name in VK_REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise VerificationKeyError(
            f"verification key lacks fields: {', '.join(missing)}"
        )


class Verifier:
    """Check Groth16 proofs and interpret their public signals.

    The pairing check is delegated to the backend. This class only validates
    shapes and reads the circuit's signal schema; it never recomputes or
    touches the holder's commitment.
    """

    def __init__(self, backend: Groth16Backend) -> None:
        self._backend = backend

    def verify(
        self,
        proof: Groth16Proof,
        public_signals: Sequence[str],
        verification_key: Path | str | Mapping[str, Any],
        descriptor: CircuitDescriptor,
        *,
        proof_format: str = FORMAT_COMPLETE,
    ) -> VerificationResult:
        if isinstance(verification_key, (str, Path)):
            vk_label = str(verification_key)
            vk_data = load_verification_key(verification_key)
        else:
            vk_label = "<in-memory>"
            check_verification_key(verification_key)
            vk_data = dict(verification_key)

        signals = tuple(str(item) for item in public_signals)
        interpreted = descriptor.interpret(signals)

        started = time.perf_counter()
        try:
            valid = bool(self._backend.verify(vk_data, signals, proof.to_dict()))
        except CredentialProofError:
            raise
        except Exception as exc:
            raise VerificationBackendError(f"verification backend failed: {exc}") from exc
        duration_ms = (time.perf_counter() - started) * 1000.0

        logger.info(
            "verified %s proof: valid=%s in %.1fms", descriptor.id.value, valid, duration_ms
        )
        return VerificationResult(
            valid=valid,
            public_signals=signals,
            claim_name=descriptor.claim_name,
            claim=valid and interpreted[descriptor.claim_name],
            signals=interpreted,
            metadata={
                "circuit": descriptor.id.value,
                "verification_key": vk_label,
                "proof_format": proof_format,
                "verified_at": datetime.now(timezone.utc).isoformat(),
                "duration_ms": duration_ms,
            },
        )

    def verify_payload(
        self,
        payload: Any,
        verification_key: Path | str | Mapping[str, Any],
        descriptor: CircuitDescriptor,
        supplied_public_signals: Sequence[Any] | None = None,
    ) -> VerificationResult:
        normalized = normalize(payload, supplied_public_signals)
        return self.verify_normalized(normalized, verification_key, descriptor)

    def verify_normalized(
        self,
        normalized: NormalizedProof,
        verification_key: Path | str | Mapping[str, Any],
        descriptor: CircuitDescriptor,
    ) -> VerificationResult:
        return self.verify(
            normalized.proof,
            normalized.public_signals,
            verification_key,
            descriptor,
            proof_format=normalized.proof_format,
        )

