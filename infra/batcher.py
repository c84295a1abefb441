"""
Bounded-concurrency runner for async work items.

Items are split into consecutive chunks (batch_size), chunks run strictly one
after another with inter_batch_delay between them, and items inside a chunk
run concurrently up to `concurrency`. Every item runs to completion even when
a sibling fails: failures are captured as Err and kept in place, so result i
belongs to item i. Every caller here relies on that; keep_failures=False
drops the Err entries instead, for callers that only want the successes.

Errors listed in `fatal` stop the run once the current chunk has finished;
request_stop() does the same for graceful shutdown.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Sequence, Tuple, Type, TypeVar

from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeRemainingColumn

from .logger import PipelineLogger, create_logger
from .result import Err, Ok, Result

T = TypeVar('T')


@dataclass
class BatchConfig:
    concurrency: int = 1
    batch_size: Optional[int] = None
    inter_batch_delay: float = 0.0
    keep_failures: bool = True
    fatal: Tuple[Type[BaseException], ...] = ()
    description: str = ""
    show_progress: bool = False

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.batch_size is not None and self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.inter_batch_delay < 0:
            raise ValueError(f"inter_batch_delay must be >= 0, got {self.inter_batch_delay}")


def chunked(items: Sequence[T], size: Optional[int]) -> Iterator[Sequence[T]]:
    if not items:
        return
    if size is None:
        yield items
        return
    for start in range(0, len(items), size):
        yield items[start:start + size]


class RateLimitedBatcher:
    def __init__(
        self,
        config: BatchConfig,
        logger: Optional[PipelineLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.logger = logger or create_logger("batcher", json_output=False)
        self.sleep = sleep

        self._stop_requested = False
        self.in_flight = 0
        self.max_in_flight = 0

    def request_stop(self) -> None:
        """Finish the chunk in progress, then start no further chunks."""
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    async def run(
        self,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[Any]],
    ) -> List[Result]:
        items = list(items)
        chunks = list(chunked(items, self.config.batch_size))
        results: List[Result] = []

        if not chunks:
            return results

        semaphore = asyncio.Semaphore(self.config.concurrency)

        async def run_one(item: T) -> Result:
            async with semaphore:
                self.in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self.in_flight)
                try:
                    return Ok(await handler(item))
                except Exception as e:
                    return Err(e)
                finally:
                    self.in_flight -= 1

        progress = self._create_progress()
        task_id = None
        if progress:
            progress.start()
            task_id = progress.add_task(self.config.description, total=len(items))

        try:
            for index, chunk in enumerate(chunks):
                if self._stop_requested:
                    self.logger.warning(
                        f"Stop requested, skipping {len(chunks) - index} remaining batch(es)"
                    )
                    break

                if len(chunks) > 1:
                    self.logger.debug(f"Batch {index + 1}/{len(chunks)} ({len(chunk)} items)")

                tasks = [asyncio.ensure_future(run_one(item)) for item in chunk]
                if progress:
                    for task in tasks:
                        task.add_done_callback(lambda _: progress.advance(task_id))

                chunk_results = await asyncio.gather(*tasks)

                fatal_error = None
                for result in chunk_results:
                    if isinstance(result, Err):
                        if self.config.fatal and isinstance(result.error, self.config.fatal):
                            fatal_error = fatal_error or result.error
                        if not self.config.keep_failures:
                            continue
                    results.append(result)

                if fatal_error is not None:
                    raise fatal_error

                is_last = index == len(chunks) - 1
                if not is_last and self.config.inter_batch_delay > 0 and not self._stop_requested:
                    await self.sleep(self.config.inter_batch_delay)
        finally:
            if progress:
                progress.stop()

        return results

    def _create_progress(self) -> Optional[Progress]:
        if not self.config.show_progress:
            return None
        return Progress(
            TextColumn("   {task.description}"),
            BarColumn(bar_width=40),
            TaskProgressColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            transient=True,
        )
