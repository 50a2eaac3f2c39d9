"""Scan orchestrator — runs every domain scanner concurrently and assembles a report.

One slow or broken domain never aborts the others: each scanner runs under its
own deadline and any timeout or error is replaced by an empty result marked
``degraded``. The report is built only after every domain has resolved.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Awaitable, Callable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone

from vigil.audit.models import (
    DOMAIN_ORDER,
    RESULT_TYPES,
    Domain,
    DomainResult,
    ScanReport,
    ScanWarning,
    empty_result,
)
from vigil.audit.risk import summarize
from vigil.config import DEFAULT_SCANNER_TIMEOUT
from vigil.scanners.base import DomainScanner

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[DomainResult]]


@dataclass(frozen=True)
class TaskOutcome:
    """Either a scanner's result or the warning explaining why there is none."""

    domain: Domain
    result: DomainResult | None = None
    warning: ScanWarning | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None

    def unwrap(self) -> DomainResult:
        """Return the result, or an empty degraded one carrying the warning."""
        if self.result is not None:
            return self.result
        warnings = [self.warning] if self.warning else []
        return empty_result(self.domain, degraded=True, warnings=warnings)


async def _run_task(domain: Domain, factory: TaskFactory, timeout: float) -> TaskOutcome:
    try:
        result = await asyncio.wait_for(factory(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Scanner '%s' timed out after %.1fs", domain.value, timeout)
        return TaskOutcome(
            domain, warning=ScanWarning(domain.value, f"timed out after {timeout:g}s")
        )
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("Scanner '%s' failed: %s", domain.value, exc, exc_info=True)
        return TaskOutcome(
            domain, warning=ScanWarning(domain.value, f"{type(exc).__name__}: {exc}")
        )

    expected = RESULT_TYPES[domain]
    if not isinstance(result, expected):
        logger.warning(
            "Scanner '%s' returned %s, expected %s",
            domain.value,
            type(result).__name__,
            expected.__name__,
        )
        return TaskOutcome(
            domain,
            warning=ScanWarning(
                domain.value, f"unexpected result type {type(result).__name__}"
            ),
        )
    return TaskOutcome(domain, result=result)


async def fan_out(
    tasks: Mapping[Domain, TaskFactory],
    timeout: float = DEFAULT_SCANNER_TIMEOUT,
) -> dict[Domain, TaskOutcome]:
    """Run all tasks concurrently, each under its own deadline.

    Returns once every task has completed, failed or timed out. A timeout
    cancels only the task that hit it.
    """
    domains = list(tasks)
    outcomes = await asyncio.gather(
        *(_run_task(d, tasks[d], timeout) for d in domains)
    )
    return dict(zip(domains, outcomes))


def _default_hostname() -> str:
    try:
        return socket.gethostname() or "unknown"
    except OSError:
        return "unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Orchestrator:
    """Fans out to the domain scanners and builds the aggregated report."""

    def __init__(
        self,
        scanners: Sequence[DomainScanner],
        timeout: float = DEFAULT_SCANNER_TIMEOUT,
        clock: Callable[[], datetime] = _utcnow,
        hostname: Callable[[], str] = _default_hostname,
    ) -> None:
        self._scanners = {s.domain: s for s in scanners}
        self._timeout = timeout
        self._clock = clock
        self._hostname = hostname

    async def run_full_scan(self) -> ScanReport:
        """Run every scanner and return the summarized report."""
        tasks = {domain: scanner.run for domain, scanner in self._scanners.items()}
        logger.info(
            "Starting scan of %d domain(s), timeout %.1fs", len(tasks), self._timeout
        )
        outcomes = await fan_out(tasks, timeout=self._timeout)

        results: dict[Domain, DomainResult] = {}
        for domain in DOMAIN_ORDER:
            outcome = outcomes.get(domain)
            if outcome is None:
                logger.debug("No scanner for '%s', marking degraded", domain.value)
                outcome = TaskOutcome(
                    domain, warning=ScanWarning(domain.value, "scanner disabled")
                )
            results[domain] = outcome.unwrap()

        # Stamped after the barrier so sequential scans order by timestamp.
        timestamp = self._clock()
        hostname = self._hostname()

        report = ScanReport(
            timestamp=timestamp,
            hostname=hostname,
            results=results,
            summary=summarize(results),
        )
        degraded = report.degraded_domains
        if degraded:
            logger.warning(
                "Scan completed with degraded domain(s): %s",
                ", ".join(d.value for d in degraded),
            )
        return report

    def scan(self) -> ScanReport:
        """Synchronous wrapper around :meth:`run_full_scan`.

        Uses a private executor that is not joined on exit, so a blocking
        probe that outlived its deadline is abandoned instead of awaited.
        """
        loop = asyncio.new_event_loop()
        executor = ThreadPoolExecutor(
            max_workers=len(DOMAIN_ORDER) * 2, thread_name_prefix="vigil-scan"
        )
        loop.set_default_executor(executor)
        try:
            return loop.run_until_complete(self.run_full_scan())
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
            loop.close()
