# newhighs/services/pipeline.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from newhighs.logging_config import get_logger
from newhighs.models import Quote, StoredHigh
from newhighs.services.aggregate import merge_batches
from newhighs.services.highs_store import HighsStore
from newhighs.services.new_high import derive_quote
from newhighs.services.oauth import AccessCredentials
from newhighs.services.partition import partition_symbols
from newhighs.services.quote_fetcher import BatchResult, QuoteBatchFetcher
from newhighs.utils.timeutils import fmt_pull_time

logger = get_logger("pipeline")


class PipelineState(str, Enum):
    STARTED = "started"
    PARTITIONED = "partitioned"
    FETCHING = "fetching"
    AGGREGATED = "aggregated"
    PERSISTED = "persisted"
    PERSIST_SKIPPED = "persist_skipped"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineError(RuntimeError):
    """Unrecoverable run failure (universe load, partitioning, aggregation)."""

    def __init__(self, message: str, *, states: Optional[List[PipelineState]] = None):
        super().__init__(message)
        self.states = list(states or [])


@dataclass(frozen=True)
class StepOutcome:
    ok: bool
    error: Optional[str] = None


@dataclass
class PipelineResult:
    states: List[PipelineState] = field(default_factory=list)
    batch_count: int = 0
    failed_batches: List[int] = field(default_factory=list)
    fetched: int = 0
    quotes: List[Quote] = field(default_factory=list)
    insert: Optional[StepOutcome] = None  # None: nothing to insert
    pull_time: Optional[str] = None
    pull_time_recorded: Optional[StepOutcome] = None
    history: Optional[StepOutcome] = None
    historical: Optional[List[StoredHigh]] = None

    @property
    def state(self) -> PipelineState:
        return self.states[-1] if self.states else PipelineState.STARTED


async def _best_effort(step: str, call: Callable[[], Awaitable[Any]]) -> Tuple[StepOutcome, Any]:
    """Run one downstream call; failures are logged and returned, never raised."""
    try:
        value = await call()
    except Exception as e:
        logger.exception("pipeline_step_failed | step=%s", step)
        return StepOutcome(ok=False, error=f"{type(e).__name__}: {e}"), None
    return StepOutcome(ok=True), value


class HighsPipeline:
    """
    partition -> concurrent batch fetch -> derive -> dedupe -> insert -> pull time -> history.

    Only universe loading, partitioning and aggregation can fail the run.
    Batch fetches, insert, pull-time and history calls are best-effort.
    """

    def __init__(
        self,
        *,
        fetcher: QuoteBatchFetcher,
        store: HighsStore,
        universe_loader: Callable[[], Sequence[str]],
        batch_size: int = 50,
        clock: Callable[[], str] = fmt_pull_time,
    ):
        self.fetcher = fetcher
        self.store = store
        self.universe_loader = universe_loader
        self.batch_size = int(batch_size)
        self.clock = clock

    def _fail(self, result: PipelineResult, message: str) -> PipelineError:
        result.states.append(PipelineState.FAILED)
        logger.error("pipeline_failed | state=%s err=%s", result.states[-2].value, message)
        return PipelineError(message, states=result.states)

    def _stamp_pull_time(self, result: PipelineResult) -> None:
        try:
            result.pull_time = self.clock()
        except Exception:
            logger.exception("pipeline_clock_failed")

    async def _record_pull_time(self, result: PipelineResult) -> None:
        if not result.pull_time:
            raise ValueError("no pull time was stamped for this run")
        await self.store.record_pull_time(result.pull_time)

    async def run(self, credentials: Optional[AccessCredentials]) -> PipelineResult:
        t0 = time.perf_counter()
        result = PipelineResult(states=[PipelineState.STARTED])

        # 1) universe + partition
        try:
            symbols = list(self.universe_loader())
            batches = partition_symbols(symbols, self.batch_size)
        except Exception as e:
            raise self._fail(result, f"universe/partition: {type(e).__name__}: {e}") from e
        result.batch_count = len(batches)
        result.states.append(PipelineState.PARTITIONED)
        logger.info("pipeline_partitioned | symbols=%s batches=%s size=%s", len(symbols), len(batches), self.batch_size)

        if credentials is None:
            logger.warning("pipeline_unauthorized | every batch will fail closed")

        # 2) fan-out / fan-in
        result.states.append(PipelineState.FETCHING)
        batch_results: List[BatchResult] = await self.fetcher.fetch_all(batches, credentials)
        # the pull time is when the fetch phase ended
        self._stamp_pull_time(result)

        # 3) derive + dedupe, sequential after the barrier
        try:
            result.failed_batches = [b.index for b in batch_results if not b.ok]
            result.fetched = sum(len(b.quotes) for b in batch_results)
            derived = [[derive_quote(raw) for raw in b.quotes] for b in sorted(batch_results, key=lambda b: b.index)]
            result.quotes = merge_batches(derived)
        except Exception as e:
            raise self._fail(result, f"aggregate: {type(e).__name__}: {e}") from e
        result.states.append(PipelineState.AGGREGATED)

        # 4) insert (skipped when empty)
        if result.quotes:
            quotes = list(result.quotes)
            result.insert, _ = await _best_effort("insert_highs", lambda: self.store.insert_highs(quotes))
            result.states.append(PipelineState.PERSISTED)
        else:
            logger.info("pipeline_no_quotes | insert skipped")
            result.states.append(PipelineState.PERSIST_SKIPPED)

        # 5) record the pull time, regardless of the insert outcome
        result.pull_time_recorded, _ = await _best_effort("record_pull_time", lambda: self._record_pull_time(result))
        result.states.append(PipelineState.COMPLETED)

        # 6) history only when this run produced quotes
        if result.quotes:
            result.history, result.historical = await _best_effort("list_historical", self.store.list_historical)

        ms = (time.perf_counter() - t0) * 1000.0
        logger.info(
            "pipeline_done | batches=%s failed=%s fetched=%s unique=%s insert_ok=%s pull_time=%s ms=%.1f",
            result.batch_count,
            len(result.failed_batches),
            result.fetched,
            len(result.quotes),
            result.insert.ok if result.insert else None,
            result.pull_time,
            ms,
        )
        return result
