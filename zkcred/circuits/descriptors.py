"""
Static circuit descriptors.

A descriptor names a circuit's artifact files, the layout of the JSON input
its witness program expects, the commitment encoding it consumes and the
meaning of each public output signal. Descriptors are immutable; per-circuit
tweaks from configuration produce a new descriptor via ``with_overrides``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Sequence

from .constants import DATE_WIDTH, DEFAULT_NAME_WIDTH, LICENSE_WIDTH, NONCE_LENGTH
from .errors import ConfigurationError, ProofFormatError


class CircuitId(str, Enum):
    LICENSE = "license"
    AGE18 = "age18"


class ArtifactSlot(str, Enum):
    WASM = "wasm"
    PROVING_KEY = "proving_key"
    VERIFICATION_KEY = "verification_key"
    WITNESS_EXECUTABLE = "witness_executable"


ARTIFACT_SLOTS: tuple[ArtifactSlot, ...] = tuple(ArtifactSlot)


class CommitmentEncoding(str, Enum):
    """How the 32-byte commitment digest is handed to a circuit.

    The circuit variants in use disagree (full bit array, two 128-bit halves,
    single field element, or no commitment input at all), so the choice is a
    per-circuit setting rather than a global rule.
    """

    BITS = "bits"
    SPLIT_128 = "split128"
    FIELD = "field"
    NONE = "none"


ATTRIBUTE_SOURCES = frozenset(
    {"name", "surname", "dob", "license", "expiration", "nonce", "age"}
)


@dataclass(frozen=True)
class InputField:
    key: str
    source: str
    width: int | None = None


@dataclass(frozen=True)
class SignalSpec:
    index: int
    name: str
    description: str


@dataclass(frozen=True)
class CircuitDescriptor:
    id: CircuitId
    name: str
    description: str
    base_dir: str
    candidates: tuple[tuple[ArtifactSlot, tuple[str, ...]], ...]
    input_layout: tuple[InputField, ...]
    public_signal_schema: tuple[SignalSpec, ...]
    commitment_encoding: CommitmentEncoding = CommitmentEncoding.NONE
    name_width: int = DEFAULT_NAME_WIDTH

    def candidates_for(self, slot: ArtifactSlot) -> tuple[str, ...]:
        for candidate_slot, names in self.candidates:
            if candidate_slot == slot:
                return names
        return ()

    def field_for(self, source: str) -> InputField | None:
        for item in self.input_layout:
            if item.source == source:
                return item
        return None

    @property
    def claim_name(self) -> str:
        return self.public_signal_schema[0].name

    def interpret(self, public_signals: Sequence[str]) -> dict[str, bool]:
        """Map each schema entry to a boolean read from the signal list."""
        if len(public_signals) < len(self.public_signal_schema):
            raise ProofFormatError(
                "too few public signals for circuit schema",
                field="publicSignals",
                expected=f">= {len(self.public_signal_schema)} signals",
                actual=f"{len(public_signals)} signals",
            )
        return {
            entry.name: str(public_signals[entry.index]) == "1"
            for entry in self.public_signal_schema
        }

    def claim(self, public_signals: Sequence[str]) -> bool:
        return self.interpret(public_signals)[self.claim_name]

    def with_overrides(
        self,
        *,
        commitment_encoding: CommitmentEncoding | str | None = None,
        name_width: int | None = None,
        base_dir: str | None = None,
    ) -> "CircuitDescriptor":
        changes: dict = {}
        if commitment_encoding is not None:
            try:
                changes["commitment_encoding"] = CommitmentEncoding(commitment_encoding)
            except ValueError as exc:
                raise ConfigurationError(
                    f"unknown commitment encoding: {commitment_encoding!r}"
                ) from exc
        if name_width is not None:
            if isinstance(name_width, bool) or not isinstance(name_width, int):
                raise ConfigurationError(f"name_width must be an integer, got {name_width!r}")
            if name_width < 1:
                raise ConfigurationError("name_width must be >= 1")
            changes["name_width"] = name_width
            changes["input_layout"] = tuple(
                dataclasses.replace(item, width=name_width)
                if item.source in {"name", "surname"}
                else item
                for item in self.input_layout
            )
        if base_dir is not None:
            changes["base_dir"] = base_dir
        return dataclasses.replace(self, **changes)


_WITNESS_CANDIDATES = (
    "generate_witness.cjs",
    "generate_witness.js",
    "witness.js",
    "generate_witness.py",
)


def _identity_layout(name_width: int) -> tuple[InputField, ...]:
    return (
        InputField("name", "name", name_width),
        InputField("surname", "surname", name_width),
        InputField("dob", "dob", DATE_WIDTH),
    )


LICENSE_CIRCUIT = CircuitDescriptor(
    id=CircuitId.LICENSE,
    name="Proof of License",
    description="Prove possession of a category A, B or C driving license",
    base_dir="proof_license",
    candidates=(
        (ArtifactSlot.WASM, ("circuit.wasm", "LicenseA.wasm", "LicenseB.wasm", "LicenseC.wasm")),
        (ArtifactSlot.PROVING_KEY, ("circuit.zkey", "LicenseA.zkey", "LicenseB.zkey", "LicenseC.zkey")),
        (ArtifactSlot.VERIFICATION_KEY, ("verification_key.json", "vkey.json")),
        (ArtifactSlot.WITNESS_EXECUTABLE, _WITNESS_CANDIDATES),
    ),
    input_layout=_identity_layout(DEFAULT_NAME_WIDTH)
    + (InputField("license", "license", LICENSE_WIDTH),),
    public_signal_schema=(
        SignalSpec(0, "hasLicenseA", "holder possesses a category A license"),
    ),
)

AGE18_CIRCUIT = CircuitDescriptor(
    id=CircuitId.AGE18,
    name="Proof of Age (18+)",
    description="Prove the holder is at least 18 years old",
    base_dir="Is18",
    candidates=(
        (ArtifactSlot.WASM, ("circuit.wasm", "age18.wasm", "Is18.wasm")),
        (ArtifactSlot.PROVING_KEY, ("circuit.zkey", "age18.zkey", "Is18.zkey")),
        (ArtifactSlot.VERIFICATION_KEY, ("verification_key.json", "vkey.json")),
        (ArtifactSlot.WITNESS_EXECUTABLE, _WITNESS_CANDIDATES),
    ),
    input_layout=_identity_layout(DEFAULT_NAME_WIDTH) + (InputField("age", "age", None),),
    public_signal_schema=(
        SignalSpec(0, "isAdult", "holder is at least 18 years old"),
    ),
)

BUILTIN_DESCRIPTORS: Mapping[CircuitId, CircuitDescriptor] = {
    CircuitId.LICENSE: LICENSE_CIRCUIT,
    CircuitId.AGE18: AGE18_CIRCUIT,
}

# Layout of the committed license circuit: 64-wide public names, private date,
# category, expiration and nonce, plus the commitment bits.
COMMITTED_LICENSE_LAYOUT: tuple[InputField, ...] = (
    InputField("pubName", "name", 64),
    InputField("pubSurname", "surname", 64),
    InputField("privDate", "dob", DATE_WIDTH),
    InputField("privLicense", "license", LICENSE_WIDTH),
    InputField("privExpDate", "expiration", DATE_WIDTH),
    InputField("nonce", "nonce", NONCE_LENGTH),
)


def get_descriptor(circuit: CircuitId | str) -> CircuitDescriptor:
    try:
        circuit_id = CircuitId(circuit)
    except ValueError as exc:
        valid = ", ".join(item.value for item in CircuitId)
        raise ConfigurationError(
            f"unknown circuit: {circuit!r}. Valid options: {valid}"
        ) from exc
    return BUILTIN_DESCRIPTORS[circuit_id]


def committed_license_descriptor(
    encoding: CommitmentEncoding = CommitmentEncoding.BITS,
) -> CircuitDescriptor:
    """License descriptor for the circuit variant that checks a commitment."""
    return dataclasses.replace(
        LICENSE_CIRCUIT,
        input_layout=COMMITTED_LICENSE_LAYOUT,
        commitment_encoding=encoding,
        name_width=64,
    )
