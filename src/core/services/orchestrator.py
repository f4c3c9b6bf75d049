"""Fetch orchestration for one customer's identifier list.

Validation happens first and invalid inputs never reach the fetcher. Valid
identifiers are put in a queue drained by a fixed number of worker tasks;
each worker keeps its own result list and the lists are merged only after
every worker has finished, so no accumulator is shared between workers.
Outcomes are correlated back to input positions on collection, which makes
the batch order independent of completion order.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from core.domain.identifier import Identifier, InvalidFormat, validate
from core.domain.models import (
    Customer,
    CustomerBatch,
    Failed,
    Invalid,
    PositionedOutcome,
    Valid,
)
from core.interfaces.fetcher import RecordFetcher


class FetchOrchestrator:
    """Runs customers one at a time against a fetcher with bounded concurrency.

    One orchestrator lives for exactly one audit run. Identifiers fetched for
    an earlier customer of the same run are reused instead of fetched again.
    """

    def __init__(self, fetcher: RecordFetcher, *, max_concurrency: int = 4) -> None:
        self._fetcher = fetcher
        self._max_concurrency = max(1, max_concurrency)
        self._completed: dict[str, Valid | Failed] = {}

    @property
    def fetched_count(self) -> int:
        return len(self._completed)

    async def run(self, customer: Customer) -> CustomerBatch:
        validated: list[tuple[int, Identifier | InvalidFormat]] = [
            (raw.position, validate(raw.value)) for raw in customer.raw_identifiers()
        ]

        pending: list[Identifier] = []
        queued: set[str] = set()
        for _, item in validated:
            if not isinstance(item, Identifier):
                continue
            if item.value in self._completed or item.value in queued:
                continue
            queued.add(item.value)
            pending.append(item)

        invalid_count = sum(1 for _, item in validated if isinstance(item, InvalidFormat))
        logger.info(
            "customer {}: {} identifiers, {} invalid, {} to fetch",
            customer.customer_id,
            len(validated),
            invalid_count,
            len(pending),
        )

        fetched = await self._fetch_all(pending)
        self._completed.update(fetched)

        outcomes: list[PositionedOutcome] = []
        for position, item in validated:
            if isinstance(item, InvalidFormat):
                outcome: Valid | Invalid | Failed = Invalid(raw=item.raw, reason=item.reason)
            else:
                outcome = self._completed[item.value]
            outcomes.append(PositionedOutcome(position=position, outcome=outcome))

        return CustomerBatch(customer_id=customer.customer_id, outcomes=tuple(outcomes))

    async def _fetch_all(self, identifiers: list[Identifier]) -> dict[str, Valid | Failed]:
        if not identifiers:
            return {}

        queue: asyncio.Queue[Identifier] = asyncio.Queue()
        for identifier in identifiers:
            queue.put_nowait(identifier)

        async def worker() -> list[tuple[str, Valid | Failed]]:
            results: list[tuple[str, Valid | Failed]] = []
            while True:
                try:
                    identifier = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return results
                outcome = await self._fetcher.fetch(identifier)
                results.append((identifier.value, outcome))

        workers = [
            asyncio.create_task(worker(), name=f"nr-fetch-worker-{index}")
            for index in range(min(self._max_concurrency, len(identifiers)))
        ]
        try:
            per_worker = await asyncio.gather(*workers)
        except BaseException:
            # Fatal error or outer cancellation: stop queued work, discard partial results.
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        return {value: outcome for results in per_worker for value, outcome in results}
