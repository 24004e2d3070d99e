"""Bridge to the external witness-generation program."""

from __future__ import annotations

import errno
import json
import logging
import subprocess
import sys
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, Mapping

from .constants import (
    MAX_WITNESS_OUTPUT_BYTES,
    NODE_SUFFIXES,
    PYTHON_SUFFIXES,
    WITNESS_TIMEOUT_SECONDS,
)
from .encoding import EncodedInput
from .errors import (
    WitnessExecutableNotFoundError,
    WitnessOutputError,
    WitnessProcessError,
    WitnessResourceExhaustedError,
    WitnessTimeoutError,
)

logger = logging.getLogger(__name__)

_READ_CHUNK_BYTES = 64 * 1024
_DRAIN_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class WitnessRequest:
    wasm_path: Path
    input_path: Path
    output_path: Path
    executable_path: Path


@dataclass(frozen=True)
class WitnessHandle:
    witness: bytes
    output: str
    output_truncated: bool
    duration: float

    @property
    def size(self) -> int:
        return len(self.witness)


class WitnessProcessBridge:
    """Run ``<exe> <wasm> <input.json> <output.wtns>`` under a strict contract.

    The request's input and output files belong to the invocation and are
    removed before ``compute_witness`` returns or raises. Captured output is
    kept for diagnostics only.
    """

    def __init__(
        self,
        work_dir: Path | str | None = None,
        timeout: float = WITNESS_TIMEOUT_SECONDS,
        max_output_bytes: int = MAX_WITNESS_OUTPUT_BYTES,
        node: str = "node",
    ) -> None:
        if work_dir is None:
            work_dir = Path(tempfile.gettempdir()) / "zkcred-witness"
        self._work_dir = Path(work_dir)
        self._timeout = timeout
        self._max_output_bytes = max_output_bytes
        self._node = node

    @property
    def work_dir(self) -> Path:
        return self._work_dir

    @property
    def timeout(self) -> float:
        return self._timeout

    def prepare(
        self,
        wasm_path: Path | str,
        executable_path: Path | str,
        encoded_input: EncodedInput | Mapping[str, Any],
    ) -> WitnessRequest:
        self._work_dir.mkdir(parents=True, exist_ok=True)
        token = f"{time.time_ns()}_{uuid.uuid4().hex[:12]}"
        request = WitnessRequest(
            wasm_path=Path(wasm_path),
            input_path=self._work_dir / f"input_{token}.json",
            output_path=self._work_dir / f"witness_{token}.wtns",
            executable_path=Path(executable_path),
        )
        if isinstance(encoded_input, EncodedInput):
            payload = encoded_input.to_json()
        else:
            payload = json.dumps(dict(encoded_input), indent=2)
        try:
            request.input_path.write_text(payload, encoding="utf-8")
        except BaseException:
            _remove(request.input_path)
            raise
        return request

    def command_for(self, request: WitnessRequest) -> list[str]:
        executable = request.executable_path
        args = [str(request.wasm_path), str(request.input_path), str(request.output_path)]
        suffix = executable.suffix.lower()
        if suffix in NODE_SUFFIXES:
            return [self._node, str(executable), *args]
        if suffix in PYTHON_SUFFIXES:
            return [sys.executable, str(executable), *args]
        return [str(executable), *args]

    def compute_witness(self, request: WitnessRequest) -> WitnessHandle:
        try:
            return self._run(request)
        finally:
            _remove(request.input_path)
            _remove(request.output_path)

    def _run(self, request: WitnessRequest) -> WitnessHandle:
        executable = request.executable_path
        if not executable.is_file():
            raise WitnessExecutableNotFoundError(str(executable))

        command = self.command_for(request)
        logger.debug("running witness program: %s", command[:2])
        started = time.monotonic()
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                cwd=str(executable.parent),
            )
        except FileNotFoundError as exc:
            raise WitnessExecutableNotFoundError(command[0]) from exc
        except OSError as exc:
            if exc.errno in (errno.EMFILE, errno.ENFILE):
                raise WitnessResourceExhaustedError(
                    "too many open files while starting the witness program"
                ) from exc
            raise WitnessProcessError(f"could not start witness program: {exc}") from exc

        capture = _BoundedCapture(process.stdout, self._max_output_bytes)
        capture.start()
        try:
            returncode = process.wait(timeout=self._timeout)
        except subprocess.TimeoutExpired:
            _kill(process)
            capture.join(_DRAIN_GRACE_SECONDS)
            logger.warning(
                "witness program timed out after %ss: %s",
                self._timeout,
                executable.name,
            )
            raise WitnessTimeoutError(self._timeout, output=capture.text) from None
        except BaseException:
            _kill(process)
            raise
        capture.join(_DRAIN_GRACE_SECONDS)
        output, truncated = capture.text, capture.truncated

        duration = time.monotonic() - started
        if output:
            logger.debug("witness program output: %s", output.strip()[:2000])

        if returncode < 0:
            raise WitnessProcessError(
                f"witness program terminated by signal {-returncode}",
                returncode=returncode,
                output=output,
            )
        if returncode != 0:
            raise WitnessProcessError(
                f"witness program exited with status {returncode}",
                returncode=returncode,
                output=output,
            )

        output_path = request.output_path
        if not output_path.is_file():
            raise WitnessOutputError(str(output_path), "absent", output=output)
        witness = output_path.read_bytes()
        if not witness:
            raise WitnessOutputError(str(output_path), "empty", output=output)

        logger.info(
            "witness computed: %d bytes in %.2fs", len(witness), duration
        )
        return WitnessHandle(
            witness=witness,
            output=output,
            output_truncated=truncated,
            duration=duration,
        )


def _remove(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("could not remove temporary file %s: %s", path.name, exc)


def _kill(process: subprocess.Popen) -> None:
    process.kill()
    process.wait()


class _BoundedCapture(threading.Thread):
    """Drain a pipe to EOF, keeping at most ``limit`` bytes."""

    def __init__(self, stream: IO[bytes], limit: int) -> None:
        super().__init__(name="witness-output", daemon=True)
        self._stream = stream
        self._limit = limit
        self._data = bytearray()
        self.truncated = False

    def run(self) -> None:
        with self._stream:
            for chunk in iter(lambda: self._stream.read1(_READ_CHUNK_BYTES), b""):
                room = self._limit - len(self._data)
                if len(chunk) > room:
                    self.truncated = True
                    chunk = chunk[: max(room, 0)]
                self._data += chunk

    @property
    def text(self) -> str:
        return bytes(self._data).decode("utf-8", errors="replace")
