"""Groth16 proving/verification backends."""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from .constants import BACKEND_TIMEOUT_SECONDS
from .errors import ProvingBackendError, VerificationBackendError

logger = logging.getLogger(__name__)


class Groth16Backend(Protocol):
    def prove(
        self, proving_key: Path, witness: bytes
    ) -> tuple[dict[str, Any], list[str]]:
        ...

    def verify(
        self,
        verification_key: Mapping[str, Any],
        public_signals: Sequence[str],
        proof: Mapping[str, Any],
    ) -> bool:
        ...


class SnarkjsBackend:
    """Drive the ``snarkjs`` command line for ``groth16 prove`` and ``verify``.

    Every call works in its own temporary directory, so concurrent calls never
    share files.
    """

    def __init__(
        self,
        command: Sequence[str] | str = ("snarkjs",),
        timeout: float = BACKEND_TIMEOUT_SECONDS,
    ) -> None:
        if isinstance(command, str):
            command = shlex.split(command)
        if not command:
            raise ValueError("snarkjs command must not be empty")
        self._command = tuple(command)
        self._timeout = timeout

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    def prove(
        self, proving_key: Path, witness: bytes
    ) -> tuple[dict[str, Any], list[str]]:
        with tempfile.TemporaryDirectory(prefix="zkcred-prove-") as tmp_dir:
            tmp = Path(tmp_dir)
            witness_path = tmp / "witness.wtns"
            proof_path = tmp / "proof.json"
            public_path = tmp / "public.json"
            witness_path.write_bytes(witness)

            result = self._invoke(
                [
                    "groth16",
                    "prove",
                    str(proving_key),
                    str(witness_path),
                    str(proof_path),
                    str(public_path),
                ],
                ProvingBackendError,
            )
            if result.returncode != 0:
                detail = (result.stderr or result.stdout).strip() or "unknown prover error"
                raise ProvingBackendError(f"snarkjs prove failed: {detail}")
            try:
                proof = json.loads(proof_path.read_text(encoding="utf-8"))
                public_signals = json.loads(public_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise ProvingBackendError(f"snarkjs prove produced no readable output: {exc}") from exc

        if not isinstance(proof, dict) or not isinstance(public_signals, list):
            raise ProvingBackendError("snarkjs prove produced malformed output")
        return proof, [str(signal) for signal in public_signals]

    def verify(
        self,
        verification_key: Mapping[str, Any],
        public_signals: Sequence[str],
        proof: Mapping[str, Any],
    ) -> bool:
        with tempfile.TemporaryDirectory(prefix="zkcred-verify-") as tmp_dir:
            tmp = Path(tmp_dir)
            vk_path = tmp / "verification_key.json"
            public_path = tmp / "public.json"
            proof_path = tmp / "proof.json"
            vk_path.write_text(json.dumps(dict(verification_key)), encoding="utf-8")
            public_path.write_text(json.dumps(list(public_signals)), encoding="utf-8")
            proof_path.write_text(json.dumps(dict(proof)), encoding="utf-8")

            result = self._invoke(
                ["groth16", "verify", str(vk_path), str(public_path), str(proof_path)],
                VerificationBackendError,
            )

        text = f"{result.stdout}\n{result.stderr}"
        if result.returncode == 0 and "OK" in text:
            return True
        if "Invalid proof" in text:
            return False
        detail = text.strip() or f"exit status {result.returncode}"
        raise VerificationBackendError(f"snarkjs verify failed: {detail}")

    def _invoke(
        self, args: list[str], error_cls: type[Exception]
    ) -> subprocess.CompletedProcess:
        command = [*self._command, *args]
        logger.debug("running %s", " ".join(command[: len(self._command) + 2]))
        try:
            return subprocess.run(
                command,
                capture_output=True,
                text=True,
                check=False,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise error_cls(f"snarkjs not found: {self._command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise error_cls(f"snarkjs timed out after {self._timeout:g}s") from exc
        except OSError as exc:
            raise error_cls(f"could not run snarkjs: {exc}") from exc
