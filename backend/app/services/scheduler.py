"""Daily ranking cycle across every (sport, category) partition."""

from __future__ import annotations

import asyncio
import enum
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import sessionmaker

from .. import db
from ..config import (
    RANKING_MAX_PARALLEL_PARTITIONS,
    RANKING_RUN_TIMEOUT_SECONDS,
    RANKING_SCHEDULE_TIME,
)
from ..exceptions import ConcurrencyConflict, PartitionRunFailure
from ..models import RankingCategory, RankingType, SportType, enum_value
from ..time_utils import coerce_utc, utcnow
from .locks import Partition, PartitionLocks, partition_key, partition_locks
from .ranking import RunResult, recalculate_rankings

logger = logging.getLogger(__name__)


class PartitionStatus(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PartitionOutcome:
    sport_type: str
    category: str
    status: PartitionStatus
    count: int = 0
    ranking_date: Optional[datetime] = None
    error: Optional[str] = None


@dataclass
class CycleReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcomes: list[PartitionOutcome] = field(default_factory=list)

    def _with_status(self, status: PartitionStatus) -> list[PartitionOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def succeeded(self) -> list[PartitionOutcome]:
        return self._with_status(PartitionStatus.SUCCEEDED)

    @property
    def failed(self) -> list[PartitionOutcome]:
        return self._with_status(PartitionStatus.FAILED)

    @property
    def skipped(self) -> list[PartitionOutcome]:
        return self._with_status(PartitionStatus.SKIPPED)


def all_partitions(sport_types: Iterable | None = None) -> list[Partition]:
    """Every sport type crossed with PLAYER and TEAM."""
    sports = list(sport_types) if sport_types is not None else list(SportType)
    return [
        partition_key(sport, category)
        for sport, category in itertools.product(sports, RankingCategory)
    ]


def next_run_after(now: datetime, run_at: time) -> datetime:
    """Return the first UTC datetime strictly after ``now`` at ``run_at``."""
    now = coerce_utc(now)
    candidate = now.replace(
        hour=run_at.hour, minute=run_at.minute, second=0, microsecond=0
    )
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class RankingScheduler:
    """Drives :func:`recalculate_rankings` over all partitions once a day.

    Partitions are isolated from each other: a failure or timeout in one is
    recorded in the cycle report and logged, and the rest still run. A
    partition that already has a run in flight (from a previous cycle or a
    manual trigger) is skipped. The scheduler never raises partition errors
    out of :meth:`run_cycle`.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        *,
        run_at: time = RANKING_SCHEDULE_TIME,
        timeout_seconds: float = RANKING_RUN_TIMEOUT_SECONDS,
        max_parallel: int = RANKING_MAX_PARALLEL_PARTITIONS,
        partitions: Optional[Iterable[Partition]] = None,
        locks: Optional[PartitionLocks] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.run_at = run_at
        self.timeout_seconds = timeout_seconds
        self.max_parallel = max(1, max_parallel)
        self.partitions = list(partitions) if partitions is not None else all_partitions()
        self.locks = locks or partition_locks
        self.clock = clock
        self.last_report: Optional[CycleReport] = None
        self._cycle_task: Optional[asyncio.Task] = None

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            return db.get_sessionmaker()
        return self._session_factory

    async def run_partition(
        self, sport_type, category, *, ranking_type=RankingType.GLOBAL
    ) -> RunResult:
        """Recalculate one partition under its single-flight lease.

        Raises:
            ConcurrencyConflict: if the partition already has a run in flight.
            PartitionRunFailure: if the run failed or exceeded the timeout.
        """
        sport = enum_value(sport_type)
        cat = enum_value(category)
        async with self.locks.single_flight(sport, cat):
            async with self.session_factory() as session:
                try:
                    return await asyncio.wait_for(
                        recalculate_rankings(
                            session,
                            sport,
                            cat,
                            ranking_type=ranking_type,
                            locks=self.locks,
                        ),
                        timeout=self.timeout_seconds,
                    )
                except asyncio.TimeoutError as exc:
                    raise PartitionRunFailure(
                        sport, cat, f"timed out after {self.timeout_seconds:g}s"
                    ) from exc

    async def _run_isolated(
        self, sport: str, category: str, semaphore: asyncio.Semaphore
    ) -> PartitionOutcome:
        async with semaphore:
            try:
                result = await self.run_partition(sport, category)
            except ConcurrencyConflict:
                logger.info("Ranking run for %s/%s still in flight; skipping", sport, category)
                return PartitionOutcome(sport, category, PartitionStatus.SKIPPED)
            except PartitionRunFailure as exc:
                logger.error(
                    "Ranking run for %s/%s failed: %s",
                    sport,
                    category,
                    exc.reason,
                    exc_info=exc.__cause__,
                )
                return PartitionOutcome(
                    sport, category, PartitionStatus.FAILED, error=exc.reason
                )
            except Exception as exc:
                logger.exception("Unexpected error ranking %s/%s", sport, category)
                return PartitionOutcome(
                    sport, category, PartitionStatus.FAILED, error=str(exc)
                )
        return PartitionOutcome(
            sport,
            category,
            PartitionStatus.SUCCEEDED,
            count=result.count,
            ranking_date=result.ranking_date,
        )

    async def run_cycle(
        self,
        partitions: Optional[Iterable[Partition]] = None,
        *,
        record: bool = True,
    ) -> CycleReport:
        """Run every partition once and return the per-partition report.

        With ``record`` the report becomes :attr:`last_report`; admin runs of
        a single sport pass ``record=False`` so the daily report survives.
        """
        targets = list(partitions) if partitions is not None else self.partitions
        report = CycleReport(started_at=self.clock())
        semaphore = asyncio.Semaphore(self.max_parallel)
        outcomes = await asyncio.gather(
            *(self._run_isolated(sport, cat, semaphore) for sport, cat in targets)
        )
        report.outcomes = list(outcomes)
        report.finished_at = self.clock()
        if record:
            self.last_report = report
        logger.info(
            "Ranking cycle finished: %d succeeded, %d failed, %d skipped",
            len(report.succeeded),
            len(report.failed),
            len(report.skipped),
        )
        return report

    async def run_sport(self, sport_type) -> list[PartitionOutcome]:
        """Run the PLAYER and TEAM partitions of one sport."""
        report = await self.run_cycle(all_partitions([sport_type]), record=False)
        return report.outcomes

    def tick(self) -> Optional[asyncio.Task]:
        """Start a cycle unless the previous one is still running."""
        if self._cycle_task is not None and not self._cycle_task.done():
            logger.warning("Previous ranking cycle still running; skipping this tick")
            return None
        self._cycle_task = asyncio.create_task(self.run_cycle())
        return self._cycle_task

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """Tick once a day at ``run_at`` until ``stop_event`` is set."""
        logger.info("Ranking scheduler started; daily run at %s UTC", self.run_at.isoformat())
        try:
            while not stop_event.is_set():
                now = self.clock()
                delay = (next_run_after(now, self.run_at) - coerce_utc(now)).total_seconds()
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=max(delay, 0.0))
                except asyncio.TimeoutError:
                    self.tick()
        finally:
            if self._cycle_task is not None and not self._cycle_task.done():
                self._cycle_task.cancel()
                try:
                    await self._cycle_task
                except asyncio.CancelledError:
                    pass
            logger.info("Ranking scheduler stopped")

    def start(self, stop_event: asyncio.Event) -> asyncio.Task:
        return asyncio.create_task(self.run_forever(stop_event))


_scheduler: Optional[RankingScheduler] = None


def get_ranking_scheduler() -> RankingScheduler:
    """Return the process-wide scheduler, created on first use."""
    global _scheduler
    if _scheduler is None:
        _scheduler = RankingScheduler()
    return _scheduler
