"""
Error types for credential proof orchestration.

Every stage raises one of these and forwards lower-layer errors unchanged.
The attributes carry enough context (missing slots, timeouts, expected vs.
actual shapes) for a caller to diagnose a failure without reading internals.
"""

from __future__ import annotations

from typing import Iterable, Sequence


class CredentialProofError(Exception):
    """Base exception for credential proof errors."""


class ConfigurationError(CredentialProofError):
    """Configuration file or environment value is invalid."""


class ValidationError(CredentialProofError):
    """Holder attributes failed validation before any I/O."""

    def __init__(self, problems: Sequence[str] | str) -> None:
        if isinstance(problems, str):
            problems = [problems]
        self.problems = tuple(problems)
        super().__init__("invalid attributes: " + "; ".join(self.problems))


class MissingArtifactError(CredentialProofError):
    """A circuit bundle is missing one or more required artifact files."""

    def __init__(self, circuit_id: str, missing: Iterable[str]) -> None:
        self.circuit_id = circuit_id
        self.missing = tuple(missing)
        super().__init__(
            f"circuit {circuit_id!r} is missing artifacts: {', '.join(self.missing)}"
        )


class EncodingError(CredentialProofError):
    """Attribute could not be encoded for the circuit."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        width: int | None = None,
        length: int | None = None,
    ) -> None:
        self.field = field
        self.width = width
        self.length = length
        super().__init__(message)


class WitnessError(CredentialProofError):
    """Base error for the external witness program."""

    def __init__(self, message: str, *, output: str = "") -> None:
        self.output = output
        super().__init__(message)


class WitnessExecutableNotFoundError(WitnessError):
    """Witness program or its interpreter could not be found."""

    def __init__(self, executable: str, *, output: str = "") -> None:
        self.executable = executable
        super().__init__(f"witness executable not found: {executable}", output=output)


class WitnessTimeoutError(WitnessError):
    """Witness program exceeded its wall-clock budget and was killed."""

    def __init__(self, timeout: float, *, output: str = "") -> None:
        self.timeout = timeout
        super().__init__(
            f"witness computation exceeded {timeout:g}s and was terminated",
            output=output,
        )


class WitnessOutputError(WitnessError):
    """Witness program finished but the witness file is absent or empty."""

    def __init__(self, path: str, reason: str, *, output: str = "") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"witness output {reason}: {path}", output=output)


class WitnessProcessError(WitnessError):
    """Witness program failed with a non-zero exit or a signal."""

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        output: str = "",
    ) -> None:
        self.returncode = returncode
        super().__init__(message, output=output)


class WitnessResourceExhaustedError(WitnessProcessError):
    """Process could not be started because the OS ran out of file handles."""


class ProvingBackendError(CredentialProofError):
    """The Groth16 proving backend failed."""


class ProofFormatError(CredentialProofError):
    """Proof payload does not have the expected structure."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        self.field = field
        self.expected = expected
        self.actual = actual
        detail = message
        if expected is not None:
            detail = f"{message} (expected {expected}, got {actual})"
        super().__init__(detail)


class MissingPublicSignalsError(CredentialProofError):
    """Bare proof supplied without public signals."""

    def __init__(self) -> None:
        super().__init__(
            "payload holds only pi_a/pi_b/pi_c; public signals must be supplied"
        )


class VerificationKeyError(CredentialProofError):
    """Verification key file is unreadable or lacks required fields."""


class VerificationBackendError(CredentialProofError):
    """The Groth16 verification backend failed to produce an answer."""
