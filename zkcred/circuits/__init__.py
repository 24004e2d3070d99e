"""Circuit resolution, witness generation, proving and verification."""

from .backend import Groth16Backend, SnarkjsBackend
from .batch import BatchItem, BatchReport, BatchVerificationReporter, ItemResult
from .config import Settings, build_orchestrator, build_verifier, load_settings
from .descriptors import (
    AGE18_CIRCUIT,
    LICENSE_CIRCUIT,
    ArtifactSlot,
    CircuitDescriptor,
    CircuitId,
    CommitmentEncoding,
    committed_license_descriptor,
    get_descriptor,
)
from .encoding import Commitment, CredentialAttributes, compute_commitment, encode
from .errors import (
    ConfigurationError,
    CredentialProofError,
    EncodingError,
    MissingArtifactError,
    MissingPublicSignalsError,
    ProofFormatError,
    ProvingBackendError,
    ValidationError,
    VerificationBackendError,
    VerificationKeyError,
    WitnessError,
)
from .orchestrator import GeneratedProof, ProofAttempt, ProofOrchestrator, ProofState
from .reconciler import Groth16Proof, NormalizedProof, normalize
from .registry import CircuitRegistry, FileBundle
from .verifier import VerificationResult, Verifier, load_verification_key
from .witness import WitnessHandle, WitnessProcessBridge

__all__ = [
    "Groth16Backend",
    "SnarkjsBackend",
    "BatchItem",
    "BatchReport",
    "BatchVerificationReporter",
    "ItemResult",
    "Settings",
    "build_orchestrator",
    "build_verifier",
    "load_settings",
    "AGE18_CIRCUIT",
    "LICENSE_CIRCUIT",
    "ArtifactSlot",
    "CircuitDescriptor",
    "CircuitId",
    "CommitmentEncoding",
    "committed_license_descriptor",
    "get_descriptor",
    "Commitment",
    "CredentialAttributes",
    "compute_commitment",
    "encode",
    "ConfigurationError",
    "CredentialProofError",
    "EncodingError",
    "MissingArtifactError",
    "MissingPublicSignalsError",
    "ProofFormatError",
    "ProvingBackendError",
    "ValidationError",
    "VerificationBackendError",
    "VerificationKeyError",
    "WitnessError",
    "GeneratedProof",
    "ProofAttempt",
    "ProofOrchestrator",
    "ProofState",
    "Groth16Proof",
    "NormalizedProof",
    "normalize",
    "CircuitRegistry",
    "FileBundle",
    "VerificationResult",
    "Verifier",
    "load_verification_key",
    "WitnessHandle",
    "WitnessProcessBridge",
]
