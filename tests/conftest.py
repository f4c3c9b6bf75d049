"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable

import pytest

from core.config import AppSettings
from core.domain.identifier import Identifier
from core.domain.models import Failed, Valid
from core.exceptions import AuthenticationError

FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)

# Valid NR identifiers (weights 1,3,7 + seed 5, mod 11).
VALID_IDS = [
    "12345678901",
    "98765432109",
    "00000000005",
    "00000000016",
    "00000000027",
    "00000000038",
    "00000000049",
    "00000000060",
    "00000000101",
    "11111111116",
]


class FakeClock:
    """Deterministic monotonic clock; `sleep` advances time instead of waiting."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
        await asyncio.sleep(0)


class StubFetcher:
    """Fetcher with scripted behaviour per identifier.

    behaviour values: "ok", "fail", "auth"; delays (seconds) shape completion order.
    """

    def __init__(
        self,
        behaviour: dict[str, str] | None = None,
        *,
        delays: dict[str, float] | None = None,
        now: Callable[[], datetime] = lambda: FIXED_NOW,
    ) -> None:
        self.behaviour = behaviour or {}
        self.delays = delays or {}
        self.calls: list[str] = []
        self.completed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._now = now

    async def fetch(self, identifier: Identifier) -> Valid | Failed:
        self.calls.append(identifier.value)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(identifier.value, 0))
            mode = self.behaviour.get(identifier.value, "ok")
            if mode == "auth":
                raise AuthenticationError(401)
            if mode == "fail":
                return Failed(identifier=identifier, reason="timeout after 3 attempts", attempts=3)
            return Valid(
                identifier=identifier,
                payload=f'{{"nr": "{identifier.value}"}}'.encode(),
                media_type="application/json",
                retrieved_at=self._now(),
            )
        finally:
            self.in_flight -= 1
            self.completed.append(identifier.value)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> AppSettings:
    return AppSettings(
        _env_file=None,
        api_base_url="https://nr.example.test/records",
        api_key="test-key",
        max_concurrency=3,
        max_attempts=3,
        rate_limit_max_retries=3,
        backoff_base_seconds=1.0,
        backoff_max_seconds=30.0,
        output_dir=tmp_path / "out",
    )
