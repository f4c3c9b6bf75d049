"""Reduction of customer batches into the audit result. No I/O."""

from __future__ import annotations

from typing import Iterable

from core.domain.models import (
    AuditResult,
    CustomerBatch,
    CustomerCounts,
    Failed,
    Invalid,
    Valid,
)


def count_outcomes(batch: CustomerBatch) -> CustomerCounts:
    valid = invalid = failed = 0
    for item in batch.outcomes:
        if isinstance(item.outcome, Valid):
            valid += 1
        elif isinstance(item.outcome, Invalid):
            invalid += 1
        elif isinstance(item.outcome, Failed):
            failed += 1
    return CustomerCounts(
        customer_id=batch.customer_id,
        valid=valid,
        invalid=invalid,
        failed=failed,
    )


def aggregate(batches: Iterable[CustomerBatch]) -> AuditResult:
    """Concatenate batches in the order received and attach per-customer counts."""

    ordered = tuple(batches)
    return AuditResult(
        batches=ordered,
        counts=tuple(count_outcomes(batch) for batch in ordered),
    )
