"""
Pipeline driver: runs phases strictly in order over one workspace.

Before each phase the scanner is asked again what is pending, so a phase
sees everything the previous phases of the same run produced. Within a
phase, one item's failure is logged and the rest carry on:

    NotFoundError, ShutdownRequested  warning, item skipped
    other PipelineError              error, item failed
    RasterizerMissingError           raised, the whole run stops

A stop request (SIGINT/SIGTERM) lets the running batch finish and starts
nothing after it.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from infra.batcher import RateLimitedBatcher
from infra.errors import NotFoundError, PipelineError, RasterizerMissingError, ShutdownRequested
from infra.logger import PipelineLogger, create_logger
from infra.result import Err

from .phases import PhaseHandler
from .scanner import PHASE_ORDER, Phase, PhaseScanner
from .schemas import WorkItem


class ItemOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PhaseReport:
    phase: Phase
    pending: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    stopped: bool = False

    def record(self, outcome: ItemOutcome) -> None:
        if outcome == ItemOutcome.SUCCEEDED:
            self.succeeded += 1
        elif outcome == ItemOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def processed(self) -> int:
        return self.succeeded + self.skipped + self.failed


class PipelineDriver:
    def __init__(
        self,
        scanner: PhaseScanner,
        handlers: Iterable[PhaseHandler],
        logger: Optional[PipelineLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.scanner = scanner
        self.handlers: Dict[Phase, PhaseHandler] = {h.phase: h for h in handlers}
        self.logger = logger or create_logger("pipeline", json_output=False)
        self.sleep = sleep

        self._shutdown = False
        self._batcher: Optional[RateLimitedBatcher] = None
        self._current: Optional[PhaseHandler] = None

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown

    def request_shutdown(self) -> None:
        if self._shutdown:
            return
        self._shutdown = True
        self.logger.warning("Shutdown requested, finishing current batch")
        if self._batcher:
            self._batcher.request_stop()
        if self._current:
            self._current.request_stop()

    async def run(self, phases: Optional[List[Phase]] = None) -> List[PhaseReport]:
        selected = [Phase(p) for p in phases] if phases else PHASE_ORDER
        reports: List[PhaseReport] = []

        for phase in PHASE_ORDER:
            if phase not in selected:
                continue
            if self._shutdown:
                break

            handler = self.handlers.get(phase)
            if handler is None:
                self.logger.info(f"Phase {phase.value} disabled, skipping")
                continue

            reports.append(await self.run_phase(handler))

        self._log_summary(reports)
        return reports

    async def run_phase(self, handler: PhaseHandler) -> PhaseReport:
        phase = handler.phase
        items = self.scanner.pending(phase)
        report = PhaseReport(phase=phase, pending=len(items))

        if not items:
            self.logger.debug(f"Nothing pending for {phase.value}")
            return report

        self.logger.info(f"Phase {phase.value}: {len(items)} pending")
        await handler.before()

        self._current = handler
        self._batcher = RateLimitedBatcher(handler.batch_config(), logger=self.logger, sleep=self.sleep)
        try:
            results = await self._batcher.run(
                items,
                lambda item: self.process_item(handler, item),
            )
        finally:
            self._batcher = None
            self._current = None

        for item, result in zip(items, results):
            if isinstance(result, Err):
                # not a PipelineError: a bug, keep the traceback
                self.logger.error(
                    "Unexpected error",
                    item=item.name,
                    error=str(result.error),
                    exc_info=result.error,
                )
                report.record(ItemOutcome.FAILED)
            else:
                report.record(result.value)

        # a stop inside an item (page or import batches) leaves it skipped, not unprocessed
        report.stopped = report.processed < report.pending or self._shutdown
        return report

    async def process_item(self, handler: PhaseHandler, item: WorkItem) -> ItemOutcome:
        start = time.time()
        logger = handler.logger
        try:
            await handler.handle(item)
        except RasterizerMissingError:
            raise
        except (NotFoundError, ShutdownRequested) as e:
            logger.warning("Skipped", item=item.name, error=str(e))
            return ItemOutcome.SKIPPED
        except PipelineError as e:
            logger.error("Failed", item=item.name, error=str(e))
            return ItemOutcome.FAILED

        logger.debug(
            "Done",
            item=item.name,
            duration_seconds=round(time.time() - start, 2),
        )
        return ItemOutcome.SUCCEEDED

    def _log_summary(self, reports: List[PhaseReport]) -> None:
        for report in reports:
            if report.pending == 0:
                continue
            self.logger.info(
                f"{report.phase.value}: {report.succeeded} succeeded, "
                f"{report.skipped} skipped, {report.failed} failed"
                + (" (stopped early)" if report.stopped else "")
            )
