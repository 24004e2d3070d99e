"""Artifact resolver for circuit bundles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping

from .descriptors import ARTIFACT_SLOTS, ArtifactSlot, CircuitDescriptor, CircuitId
from .errors import MissingArtifactError

logger = logging.getLogger(__name__)


class _Missing:
    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


@dataclass(frozen=True)
class FileBundle:
    circuit_id: CircuitId
    slots: tuple[tuple[ArtifactSlot, Path | _Missing], ...]

    def get(self, slot: ArtifactSlot) -> Path | _Missing:
        for candidate_slot, value in self.slots:
            if candidate_slot == slot:
                return value
        return MISSING

    def path(self, slot: ArtifactSlot) -> Path:
        value = self.get(slot)
        if value is MISSING:
            raise MissingArtifactError(self.circuit_id.value, [slot.value])
        return value

    @property
    def missing(self) -> tuple[str, ...]:
        return tuple(slot.value for slot, value in self.slots if value is MISSING)

    @property
    def complete(self) -> bool:
        return not self.missing

    @property
    def wasm(self) -> Path:
        return self.path(ArtifactSlot.WASM)

    @property
    def proving_key(self) -> Path:
        return self.path(ArtifactSlot.PROVING_KEY)

    @property
    def verification_key(self) -> Path:
        return self.path(ArtifactSlot.VERIFICATION_KEY)

    @property
    def witness_executable(self) -> Path:
        return self.path(ArtifactSlot.WITNESS_EXECUTABLE)

    def as_dict(self) -> dict[str, str | None]:
        return {
            slot.value: (None if value is MISSING else str(value))
            for slot, value in self.slots
        }


@dataclass(frozen=True)
class BundleStatus:
    circuit_id: CircuitId
    found: int
    required: int
    missing: tuple[str, ...]
    resolved: Mapping[str, str]

    @property
    def complete(self) -> bool:
        return self.found == self.required


class CircuitRegistry:
    """Resolve circuit descriptors to artifact files on disk.

    Search order per slot: explicit override, then the circuit's base
    directory under ``root``, then each auxiliary directory. Relative
    auxiliary directories are taken under ``root``. Inside a directory the
    primary filename is probed before the alternates.
    """

    def __init__(
        self,
        root: Path | str = "circuits",
        search_dirs: Iterable[Path | str] = (),
    ) -> None:
        self._root = Path(root)
        self._search_dirs = tuple(Path(item) for item in search_dirs)
        self._overrides: dict[tuple[CircuitId, ArtifactSlot], Path] = {}
        self._cache: dict[CircuitId, FileBundle] = {}

    @property
    def root(self) -> Path:
        return self._root

    def search_path(self, descriptor: CircuitDescriptor) -> tuple[Path, ...]:
        extra = tuple(
            item if item.is_absolute() else self._root / item for item in self._search_dirs
        )
        return (self._root / descriptor.base_dir,) + extra

    def resolve(self, descriptor: CircuitDescriptor) -> FileBundle:
        directories = self.search_path(descriptor)
        slots = tuple(
            (slot, self._resolve_slot(descriptor, slot, directories))
            for slot in ARTIFACT_SLOTS
        )
        bundle = FileBundle(circuit_id=descriptor.id, slots=slots)
        if bundle.complete:
            logger.debug("circuit %s resolved: %s", descriptor.id.value, bundle.as_dict())
        else:
            logger.debug(
                "circuit %s incomplete, missing %s", descriptor.id.value, bundle.missing
            )
        return bundle

    def bundle(self, descriptor: CircuitDescriptor) -> FileBundle:
        cached = self._cache.get(descriptor.id)
        if cached is None:
            cached = self.resolve(descriptor)
            self._cache[descriptor.id] = cached
        return cached

    def refresh(self) -> None:
        self._cache.clear()

    def status(self, descriptor: CircuitDescriptor) -> BundleStatus:
        bundle = self.resolve(descriptor)
        resolved = {
            slot: path for slot, path in bundle.as_dict().items() if path is not None
        }
        return BundleStatus(
            circuit_id=descriptor.id,
            found=len(resolved),
            required=len(ARTIFACT_SLOTS),
            missing=bundle.missing,
            resolved=resolved,
        )

    def override(
        self, circuit_id: CircuitId | str, slot: ArtifactSlot | str, path: Path | str
    ) -> None:
        circuit_id = CircuitId(circuit_id)
        slot = ArtifactSlot(slot)
        target = Path(path)
        if not target.is_file():
            raise MissingArtifactError(circuit_id.value, [slot.value])
        self._overrides[(circuit_id, slot)] = target.resolve()
        self._cache.pop(circuit_id, None)

    def clear_overrides(self) -> None:
        self._overrides.clear()
        self._cache.clear()

    def require_complete(self, descriptor: CircuitDescriptor) -> FileBundle:
        bundle = self.resolve(descriptor)
        if not bundle.complete:
            raise MissingArtifactError(descriptor.id.value, bundle.missing)
        return bundle

    def _resolve_slot(
        self,
        descriptor: CircuitDescriptor,
        slot: ArtifactSlot,
        directories: Iterable[Path],
    ) -> Path | _Missing:
        override = self._overrides.get((descriptor.id, slot))
        if override is not None and override.is_file():
            return override
        names = descriptor.candidates_for(slot)
        for directory in directories:
            if not directory.is_dir():
                continue
            for name in names:
                path = directory / name
                if path.is_file():
                    return path.resolve()
        return MISSING
