"""
Proof generation orchestration.

One proof attempt walks a fixed sequence of states::

    IDLE -> VALIDATING_INPUT -> RESOLVING_FILES -> ENCODING
         -> AWAITING_WITNESS -> PROVING -> COMPLETED

Any stage may move the attempt to FAILED. The attempt then carries the
exception raised by that stage, unchanged, and the stage it failed in.
Nothing is retried.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping

from .backend import Groth16Backend
from .descriptors import BUILTIN_DESCRIPTORS, CircuitDescriptor, CircuitId
from .encoding import (
    CredentialAttributes,
    check_encoded_commitment,
    compute_age,
    encode,
    validate_attributes,
)
from .errors import ConfigurationError, ProofFormatError, ProvingBackendError, ValidationError
from .reconciler import Groth16Proof, normalize_public_signals
from .registry import CircuitRegistry
from .witness import WitnessHandle, WitnessProcessBridge

logger = logging.getLogger(__name__)


class ProofState(str, Enum):
    IDLE = "idle"
    VALIDATING_INPUT = "validating_input"
    RESOLVING_FILES = "resolving_files"
    ENCODING = "encoding"
    AWAITING_WITNESS = "awaiting_witness"
    PROVING = "proving"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: Mapping[ProofState, ProofState] = {
    ProofState.IDLE: ProofState.VALIDATING_INPUT,
    ProofState.VALIDATING_INPUT: ProofState.RESOLVING_FILES,
    ProofState.RESOLVING_FILES: ProofState.ENCODING,
    ProofState.ENCODING: ProofState.AWAITING_WITNESS,
    ProofState.AWAITING_WITNESS: ProofState.PROVING,
    ProofState.PROVING: ProofState.COMPLETED,
}


@dataclass(frozen=True)
class GeneratedProof:
    proof: Groth16Proof
    public_signals: tuple[str, ...]
    circuit_id: str
    generated_at: str
    claim_name: str
    claim: bool
    commitment: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "proof": self.proof.to_dict(),
            "publicSignals": list(self.public_signals),
            "circuit": self.circuit_id,
            "timestamp": self.generated_at,
            self.claim_name: self.claim,
            "commitment": self.commitment,
            "metadata": dict(self.metadata),
        }


@dataclass
class ProofAttempt:
    circuit_id: str
    state: ProofState = ProofState.IDLE
    history: list[ProofState] = field(default_factory=lambda: [ProofState.IDLE])
    proof: GeneratedProof | None = None
    error: Exception | None = None
    failed_stage: ProofState | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is ProofState.COMPLETED

    def advance(self, state: ProofState) -> None:
        expected = _TRANSITIONS.get(self.state)
        if state is not expected:
            raise RuntimeError(f"illegal transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def complete(self, proof: GeneratedProof) -> None:
        self.advance(ProofState.COMPLETED)
        self.proof = proof

    def fail(self, error: Exception) -> None:
        self.failed_stage = self.state
        self.error = error
        self.state = ProofState.FAILED
        self.history.append(ProofState.FAILED)


class ProofOrchestrator:
    """Drive validation, file resolution, encoding, witness and proving.

    Each call resolves the circuit bundle afresh, so no file state leaks
    between proofs.
    """

    def __init__(
        self,
        registry: CircuitRegistry,
        bridge: WitnessProcessBridge,
        backend: Groth16Backend,
        *,
        descriptors: Mapping[CircuitId, CircuitDescriptor] | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._registry = registry
        self._bridge = bridge
        self._backend = backend
        self._descriptors = dict(descriptors or BUILTIN_DESCRIPTORS)
        self._today = today or date.today

    def descriptor(self, circuit: CircuitId | CircuitDescriptor | str) -> CircuitDescriptor:
        if isinstance(circuit, CircuitDescriptor):
            return circuit
        try:
            return self._descriptors[CircuitId(circuit)]
        except (KeyError, ValueError) as exc:
            raise ConfigurationError(f"unknown circuit: {circuit!r}") from exc

    def generate(
        self,
        circuit: CircuitId | CircuitDescriptor | str,
        attributes: CredentialAttributes,
    ) -> GeneratedProof:
        attempt = self.run(circuit, attributes)
        if attempt.error is not None:
            raise attempt.error
        if attempt.proof is None:
            raise RuntimeError(
                f"proof attempt ended in state {attempt.state.value} without a proof"
            )
        return attempt.proof

    def run(
        self,
        circuit: CircuitId | CircuitDescriptor | str,
        attributes: CredentialAttributes,
    ) -> ProofAttempt:
        attempt = ProofAttempt(circuit_id=str(getattr(circuit, "value", circuit)))
        try:
            attempt.advance(ProofState.VALIDATING_INPUT)
            descriptor = self.descriptor(circuit)
            attempt.circuit_id = descriptor.id.value
            attributes = self._with_derived_age(attributes, descriptor)
            validate_attributes(attributes, descriptor)

            attempt.advance(ProofState.RESOLVING_FILES)
            bundle = self._registry.require_complete(descriptor)

            attempt.advance(ProofState.ENCODING)
            encoded = encode(attributes, descriptor)
            check_encoded_commitment(encoded, descriptor)

            attempt.advance(ProofState.AWAITING_WITNESS)
            request = self._bridge.prepare(bundle.wasm, bundle.witness_executable, encoded)
            handle = self._bridge.compute_witness(request)

            attempt.advance(ProofState.PROVING)
            proof_data, public_signals = self._backend.prove(bundle.proving_key, handle.witness)
            generated = self._wrap(descriptor, proof_data, public_signals, encoded, bundle, handle)
            attempt.complete(generated)
        except Exception as exc:
            attempt.fail(exc)
            logger.warning(
                "proof generation for %s failed in %s: %s",
                attempt.circuit_id,
                attempt.failed_stage.value,
                type(exc).__name__,
            )
            return attempt

        logger.info(
            "proof generated for %s: %s=%s",
            descriptor.id.value,
            generated.claim_name,
            generated.claim,
        )
        return attempt

    def dry_run(self, circuit: CircuitId | CircuitDescriptor | str) -> WitnessHandle:
        """Run only the witness program on a fixed sample input."""
        descriptor = self.descriptor(circuit)
        sample = self._with_derived_age(
            CredentialAttributes(
                name="Test",
                surname="User",
                dob="2000-01-01",
                license="A",
                expiration="2030-01-01",
            ),
            descriptor,
        )
        bundle = self._registry.require_complete(descriptor)
        encoded = encode(sample, descriptor)
        request = self._bridge.prepare(bundle.wasm, bundle.witness_executable, encoded)
        return self._bridge.compute_witness(request)

    def _with_derived_age(
        self, attributes: CredentialAttributes, descriptor: CircuitDescriptor
    ) -> CredentialAttributes:
        if descriptor.field_for("age") is None or attributes.age is not None:
            return attributes
        try:
            age = compute_age(attributes.dob, self._today())
        except ValidationError:
            return attributes
        return dataclasses.replace(attributes, age=age)

    def _wrap(
        self,
        descriptor: CircuitDescriptor,
        proof_data: Mapping[str, Any],
        public_signals: Any,
        encoded,
        bundle,
        handle: WitnessHandle,
    ) -> GeneratedProof:
        try:
            proof = Groth16Proof.from_dict(proof_data)
            signals = normalize_public_signals(public_signals)
            claim = descriptor.claim(signals)
        except ProofFormatError as exc:
            raise ProvingBackendError(f"proving backend returned a malformed proof: {exc}") from exc
        return GeneratedProof(
            proof=proof,
            public_signals=signals,
            circuit_id=descriptor.id.value,
            generated_at=datetime.now(timezone.utc).isoformat(),
            claim_name=descriptor.claim_name,
            claim=claim,
            commitment=encoded.commitment.hex,
            metadata={
                "circuit_files": bundle.as_dict(),
                "commitment_encoding": descriptor.commitment_encoding.value,
                "witness_bytes": handle.size,
                "witness_seconds": round(handle.duration, 3),
                "method": "external_witness_program",
            },
        )
