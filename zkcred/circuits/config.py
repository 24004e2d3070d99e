"""
Runtime settings.

Each value resolves in precedence order: explicit argument, YAML config
file, environment variable, built-in default. The YAML file may also
override per-circuit descriptor fields::

    circuits_dir: circuits
    search_dirs: [build, assets]
    snarkjs: npx snarkjs
    circuits:
      license:
        commitment_encoding: bits
        name_width: 64
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final, Mapping

import yaml

from .backend import Groth16Backend, SnarkjsBackend
from .constants import BACKEND_TIMEOUT_SECONDS, WITNESS_TIMEOUT_SECONDS
from .descriptors import BUILTIN_DESCRIPTORS, CircuitDescriptor, CircuitId
from .errors import ConfigurationError
from .orchestrator import ProofOrchestrator
from .registry import CircuitRegistry
from .verifier import Verifier
from .witness import WitnessProcessBridge

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR: Final[str] = "ZKCRED_CONFIG"

_ENV_KEYS: Final[Mapping[str, str]] = {
    "circuits_dir": "ZKCRED_CIRCUITS_DIR",
    "search_dirs": "ZKCRED_SEARCH_DIRS",
    "snarkjs": "ZKCRED_SNARKJS",
    "node": "ZKCRED_NODE",
    "work_dir": "ZKCRED_WORK_DIR",
}
_OVERRIDE_KEYS: Final[frozenset[str]] = frozenset(
    {"commitment_encoding", "name_width", "base_dir"}
)
_DEFAULTS: Final[Mapping[str, Any]] = {
    "circuits_dir": "circuits",
    "search_dirs": ("build", "assets"),
    "snarkjs": "snarkjs",
    "node": "node",
    "work_dir": None,
    "witness_timeout": WITNESS_TIMEOUT_SECONDS,
    "backend_timeout": BACKEND_TIMEOUT_SECONDS,
}


@dataclass(frozen=True)
class Settings:
    circuits_dir: Path
    search_dirs: tuple[Path, ...]
    snarkjs: str
    node: str
    work_dir: Path | None
    witness_timeout: float
    backend_timeout: float
    circuit_overrides: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def descriptors(self) -> dict[CircuitId, CircuitDescriptor]:
        resolved = dict(BUILTIN_DESCRIPTORS)
        for name, changes in self.circuit_overrides.items():
            try:
                circuit_id = CircuitId(name)
            except ValueError as exc:
                raise ConfigurationError(f"unknown circuit in config: {name!r}") from exc
            unknown = set(changes) - _OVERRIDE_KEYS
            if unknown:
                raise ConfigurationError(
                    f"unknown keys for circuit {name!r}: {', '.join(sorted(unknown))}"
                )
            resolved[circuit_id] = resolved[circuit_id].with_overrides(**changes)
        return resolved

    def descriptor(self, circuit: CircuitId | str) -> CircuitDescriptor:
        try:
            circuit_id = CircuitId(circuit)
        except ValueError as exc:
            valid = ", ".join(item.value for item in CircuitId)
            raise ConfigurationError(
                f"unknown circuit: {circuit!r}. Valid options: {valid}"
            ) from exc
        return self.descriptors()[circuit_id]


def read_config_file(path: Path | str) -> dict[str, Any]:
    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid YAML in {config_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {config_path} must hold a mapping")
    return data


def load_settings(
    config_path: Path | str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    **explicit: Any,
) -> Settings:
    """
    Resolve settings from explicit values, a YAML file and the environment.

    Args:
        config_path: YAML file; falls back to ``$ZKCRED_CONFIG`` when unset
        environ: Environment mapping, ``os.environ`` by default
        **explicit: Setting values that win over every other source; ``None``
            values are ignored

    Raises:
        ConfigurationError: Unreadable file, unknown key or bad value
    """
    env = os.environ if environ is None else environ
    unknown = set(explicit) - set(_DEFAULTS)
    if unknown:
        raise ConfigurationError(f"unknown settings: {', '.join(sorted(unknown))}")

    if config_path is None:
        config_path = env.get(CONFIG_ENV_VAR) or None
    file_values = read_config_file(config_path) if config_path else {}
    circuit_overrides = file_values.pop("circuits", None) or {}
    if not isinstance(circuit_overrides, dict):
        raise ConfigurationError("'circuits' must map circuit ids to overrides")
    unknown = set(file_values) - set(_DEFAULTS)
    if unknown:
        raise ConfigurationError(
            f"unknown keys in config file: {', '.join(sorted(unknown))}"
        )

    values: dict[str, Any] = {}
    for key, default in _DEFAULTS.items():
        if explicit.get(key) is not None:
            values[key] = explicit[key]
        elif file_values.get(key) is not None:
            values[key] = file_values[key]
        elif key in _ENV_KEYS and env.get(_ENV_KEYS[key]):
            values[key] = env[_ENV_KEYS[key]]
        else:
            values[key] = default

    settings = Settings(
        circuits_dir=Path(values["circuits_dir"]),
        search_dirs=_as_paths(values["search_dirs"]),
        snarkjs=str(values["snarkjs"]),
        node=str(values["node"]),
        work_dir=Path(values["work_dir"]) if values["work_dir"] else None,
        witness_timeout=_as_timeout(values["witness_timeout"], "witness_timeout"),
        backend_timeout=_as_timeout(values["backend_timeout"], "backend_timeout"),
        circuit_overrides=_as_overrides(circuit_overrides),
    )
    settings.descriptors()
    logger.debug("settings loaded (config file: %s)", config_path or "none")
    return settings


def build_registry(settings: Settings) -> CircuitRegistry:
    return CircuitRegistry(root=settings.circuits_dir, search_dirs=settings.search_dirs)


def build_bridge(settings: Settings) -> WitnessProcessBridge:
    return WitnessProcessBridge(
        work_dir=settings.work_dir,
        timeout=settings.witness_timeout,
        node=settings.node,
    )


def build_backend(settings: Settings) -> SnarkjsBackend:
    return SnarkjsBackend(settings.snarkjs, timeout=settings.backend_timeout)


def build_orchestrator(
    settings: Settings, backend: Groth16Backend | None = None
) -> ProofOrchestrator:
    return ProofOrchestrator(
        build_registry(settings),
        build_bridge(settings),
        backend or build_backend(settings),
        descriptors=settings.descriptors(),
    )


def build_verifier(settings: Settings, backend: Groth16Backend | None = None) -> Verifier:
    return Verifier(backend or build_backend(settings))


def _as_overrides(raw: Mapping[Any, Any]) -> dict[str, dict[str, Any]]:
    overrides = {}
    for name, changes in raw.items():
        if changes is None:
            changes = {}
        if not isinstance(changes, dict):
            raise ConfigurationError(f"overrides for circuit {name!r} must be a mapping")
        overrides[str(name)] = dict(changes)
    return overrides


def _as_paths(value: Any) -> tuple[Path, ...]:
    if isinstance(value, str):
        parts = [part for part in value.split(os.pathsep) if part]
    elif isinstance(value, (list, tuple)):
        parts = list(value)
    else:
        raise ConfigurationError(f"search_dirs must be a list or path string, got {value!r}")
    return tuple(Path(part) for part in parts)


def _as_timeout(value: Any, name: str) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    if timeout <= 0:
        raise ConfigurationError(f"{name} must be positive")
    return timeout
