"""Batch verification with bounded concurrency and aggregate timing."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Sequence

import trio

from .constants import DEFAULT_BATCH_CONCURRENCY
from .descriptors import CircuitDescriptor
from .errors import CredentialProofError
from .proof_io import load_payload
from .verifier import VerificationResult, Verifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItem:
    """One proof to verify: a decoded payload, or a file read by the worker."""

    payload: Any = None
    public_signals: Sequence[Any] | None = None
    label: str | None = None
    path: Path | None = None

    def load(self) -> Any:
        if self.path is not None and self.payload is None:
            return load_payload(self.path)
        return self.payload


@dataclass(frozen=True)
class ItemResult:
    index: int
    valid: bool
    duration_ms: float
    label: str | None = None
    result: VerificationResult | None = None
    error_kind: str | None = None
    error: str | None = None

    @property
    def errored(self) -> bool:
        return self.error_kind is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "index": self.index,
            "valid": self.valid,
            "duration_ms": round(self.duration_ms, 3),
        }
        if self.label is not None:
            data["label"] = self.label
        if self.result is not None:
            data[self.result.claim_name] = self.result.claim
        if self.error_kind is not None:
            data["error_kind"] = self.error_kind
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class BatchReport:
    total: int
    valid: int
    invalid: int
    errored: int
    total_time_ms: float
    mean_time_ms: float
    items: tuple[ItemResult, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "valid": self.valid,
            "invalid": self.invalid,
            "errored": self.errored,
            "total_time_ms": round(self.total_time_ms, 3),
            "mean_time_ms": round(self.mean_time_ms, 3),
            "items": [item.to_dict() for item in self.items],
        }


def summarize(items: Sequence[ItemResult]) -> BatchReport:
    """Aggregate per-item results; timing is the sum of item durations."""
    total = len(items)
    valid = sum(1 for item in items if item.valid)
    errored = sum(1 for item in items if item.errored)
    total_time = sum(item.duration_ms for item in items)
    return BatchReport(
        total=total,
        valid=valid,
        invalid=total - valid,
        errored=errored,
        total_time_ms=total_time,
        mean_time_ms=total_time / total if total else 0.0,
        items=tuple(items),
    )


class BatchVerificationReporter:
    """Verify many proofs against one key and report per-item outcomes.

    Items run in worker threads, at most ``max_concurrency`` at a time. A
    failing item is recorded and never stops the batch.
    """

    def __init__(
        self,
        verifier: Verifier,
        verification_key: Path | str | Mapping[str, Any],
        descriptor: CircuitDescriptor,
        max_concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._verifier = verifier
        self._verification_key = verification_key
        self._descriptor = descriptor
        self._max_concurrency = max_concurrency

    def verify_all(self, items: Sequence[BatchItem | Any]) -> BatchReport:
        return trio.run(self.verify_all_async, items)

    async def verify_all_async(self, items: Sequence[BatchItem | Any]) -> BatchReport:
        batch = [item if isinstance(item, BatchItem) else BatchItem(item) for item in items]
        results: list[ItemResult | None] = [None] * len(batch)
        limiter = trio.CapacityLimiter(self._max_concurrency)

        async def _verify_one(index: int, item: BatchItem) -> None:
            results[index] = await trio.to_thread.run_sync(
                self._verify_item, index, item, limiter=limiter
            )

        async with trio.open_nursery() as nursery:
            for index, item in enumerate(batch):
                nursery.start_soon(_verify_one, index, item)

        report = summarize([result for result in results if result is not None])
        logger.info(
            "batch verified: %d total, %d valid, %d invalid (%d errored)",
            report.total,
            report.valid,
            report.invalid,
            report.errored,
        )
        return report

    def _verify_item(self, index: int, item: BatchItem) -> ItemResult:
        started = time.perf_counter()
        try:
            result = self._verifier.verify_payload(
                item.load(),
                self._verification_key,
                self._descriptor,
                item.public_signals,
            )
        except CredentialProofError as exc:
            logger.debug("batch item %d failed: %s", index, exc)
            return self._errored(index, item, started, exc)
        except Exception as exc:
            logger.warning("batch item %d raised unexpectedly: %r", index, exc)
            return self._errored(index, item, started, exc)
        return ItemResult(
            index=index,
            valid=result.valid,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            label=item.label,
            result=result,
        )

    @staticmethod
    def _errored(index: int, item: BatchItem, started: float, exc: Exception) -> ItemResult:
        return ItemResult(
            index=index,
            valid=False,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            label=item.label,
            error_kind=type(exc).__name__,
            error=str(exc),
        )
