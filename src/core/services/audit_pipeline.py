"""Audit run orchestration.

This module wires the validator, the API client, the orchestrator, the
aggregator and the writers into a single run. The CLI delegates all of the
run logic to these helpers, which keeps side-effects such as printing and
progress out of the core and lets tests drive a run with a stub fetcher.

Each customer's CSV and archive are written as soon as its batch completes,
so an aborted run still leaves durable output for the customers before it.
A previous `summary.csv` is removed when the run starts, and an abort also
removes earlier files of the customers it did not get to write.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Sequence

import httpx
from loguru import logger

from adapters.audit_writer import (
    discard_customer_outputs,
    discard_summary,
    prepare_output_root,
    sanitize_for_filename,
    write_customer_batch,
    write_summary,
)
from adapters.http_client import build_async_client
from adapters.nr_api import ApiCredentials, NRApiClient, RetryPolicy
from adapters.payload_cache import CachedFetcher, PayloadCache
from core.config import AppSettings
from core.domain.models import (
    AuditResult,
    Customer,
    CustomerBatch,
    CustomerWriteResult,
    WriteReport,
)
from core.exceptions import AuditAborted, AuthenticationError, ConfigurationError, InputError
from core.interfaces.fetcher import RecordFetcher
from core.services.aggregator import aggregate
from core.services.orchestrator import FetchOrchestrator
from core.services.rate_limiter import RateLimiter


@dataclass
class PipelineHooks:
    """Optional callbacks for UI layers (progress)."""

    customer_started: Callable[[Customer], None] | None = None
    customer_finished: Callable[[CustomerBatch, CustomerWriteResult], None] | None = None


@dataclass
class AuditRun:
    """Output of a completed run."""

    result: AuditResult
    report: WriteReport


def build_fetcher(
    settings: AppSettings,
    *,
    client: httpx.AsyncClient,
    limiter: RateLimiter,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RecordFetcher:
    """Compose the API client with the optional payload cache."""

    if not settings.api_base_url:
        raise ConfigurationError("API base URL is not configured (NR_AUDIT_API_BASE_URL)")

    fetcher: RecordFetcher = NRApiClient(
        client=client,
        base_url=settings.api_base_url,
        credentials=ApiCredentials.from_settings(settings),
        limiter=limiter,
        policy=RetryPolicy.from_settings(settings),
        timeout=settings.http_timeout_seconds,
        sleep=sleep,
    )
    if settings.cache_dir is not None:
        cache = PayloadCache(settings.cache_dir, settings.maximum_age_days)
        fetcher = CachedFetcher(fetcher, cache)
    return fetcher


def _check_customers(customers: Sequence[Customer]) -> None:
    seen: dict[str, str] = {}
    for customer in customers:
        slug = sanitize_for_filename(customer.customer_id)
        if slug in seen:
            raise InputError(
                f"customers {seen[slug]!r} and {customer.customer_id!r} map to the same output name",
                details={"slug": slug},
            )
        seen[slug] = customer.customer_id


async def run_audit(
    *,
    settings: AppSettings,
    customers: Sequence[Customer],
    fetcher: RecordFetcher | None = None,
    output_root: Path | None = None,
    hooks: PipelineHooks | None = None,
) -> AuditRun:
    """Run a full audit.

    When `fetcher` is None a run-scoped HTTP client and rate limiter are built
    from `settings` and closed when the run ends.

    Raises `AuditAborted` on a fatal condition (authentication failure).
    """

    _check_customers(customers)
    root = prepare_output_root(output_root or settings.output_dir)
    discard_summary(root)

    if fetcher is not None:
        return await _run(settings=settings, customers=customers, fetcher=fetcher, root=root, hooks=hooks)

    limiter = RateLimiter.from_settings(settings)
    async with build_async_client(settings) as client:
        api_fetcher = build_fetcher(settings, client=client, limiter=limiter)
        return await _run(settings=settings, customers=customers, fetcher=api_fetcher, root=root, hooks=hooks)


async def _run(
    *,
    settings: AppSettings,
    customers: Sequence[Customer],
    fetcher: RecordFetcher,
    root: Path,
    hooks: PipelineHooks | None,
) -> AuditRun:
    hooks = hooks or PipelineHooks()
    orchestrator = FetchOrchestrator(fetcher, max_concurrency=settings.max_concurrency)

    batches: list[CustomerBatch] = []
    written: list[CustomerWriteResult] = []

    for index, customer in enumerate(customers):
        if hooks.customer_started:
            hooks.customer_started(customer)
        try:
            batch = await orchestrator.run(customer)
        except AuthenticationError as exc:
            logger.error("run aborted at customer {}: {}", customer.customer_id, exc.message)
            discard_customer_outputs(root, (c.customer_id for c in customers[index:]))
            raise AuditAborted(
                f"run aborted while processing customer {customer.customer_id!r}: {exc.message}",
                customer_id=customer.customer_id,
                written=list(written),
                cause=exc,
            ) from exc

        write_result = write_customer_batch(batch, root)
        batches.append(batch)
        written.append(write_result)
        if hooks.customer_finished:
            hooks.customer_finished(batch, write_result)

    result = aggregate(batches)
    summary_path, summary_error = write_summary(result, root)
    logger.info(
        "audit finished: {} valid, {} invalid, {} failed across {} customers",
        result.total_valid,
        result.total_invalid,
        result.total_failed,
        len(result.batches),
    )
    return AuditRun(
        result=result,
        report=WriteReport(
            output_root=root,
            customers=tuple(written),
            summary_path=summary_path,
            summary_error=summary_error,
        ),
    )
