import asyncio
from typing import Awaitable, Callable, Optional, Union

from .logger import PipelineLogger, create_logger
from .result import Err, Ok, Result


Delay = Union[float, Callable[[int], float]]


def always_retryable(error: BaseException) -> bool:
    return True


def exponential_delay(base: float, factor: float = 2.0, max_delay: Optional[float] = None) -> Callable[[int], float]:
    """Delay after the n-th failed attempt: base, base*factor, base*factor**2, ..."""
    def delay(attempt: int) -> float:
        value = base * (factor ** (attempt - 1))
        if max_delay is not None:
            value = min(value, max_delay)
        return value
    return delay


class RetryPolicy:
    """Bounded retries around an async operation returning Ok/Err.

    An Err is retried while attempts remain and retryable(error) is True;
    otherwise the last Err is returned. Exhausting every attempt is logged at
    warning level and reported to on_exhausted(error, attempts).
    """

    def __init__(
        self,
        max_attempts: int = 3,
        delay: Delay = 1.0,
        retryable: Optional[Callable[[BaseException], bool]] = None,
        on_exhausted: Optional[Callable[[BaseException, int], None]] = None,
        name: str = "operation",
        logger: Optional[PipelineLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.delay = delay
        self.retryable = retryable or always_retryable
        self.on_exhausted = on_exhausted
        self.name = name
        self.logger = logger or create_logger("retry", json_output=False)
        self.sleep = sleep

    @classmethod
    def fixed(cls, max_attempts: int, seconds: float, **kwargs) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, delay=seconds, **kwargs)

    @classmethod
    def exponential(
        cls,
        max_attempts: int,
        base: float,
        factor: float = 2.0,
        max_delay: Optional[float] = None,
        **kwargs
    ) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts,
            delay=exponential_delay(base, factor, max_delay),
            **kwargs
        )

    def delay_for(self, attempt: int) -> float:
        if callable(self.delay):
            return self.delay(attempt)
        return float(self.delay)

    async def run(self, operation: Callable[[], Awaitable[Result]], **log_context) -> Result:
        result: Result = Err(RuntimeError(f"{self.name} was never attempted"))

        for attempt in range(1, self.max_attempts + 1):
            result = await operation()

            if isinstance(result, Ok):
                if attempt > 1:
                    self.logger.debug(
                        f"{self.name} succeeded after {attempt} attempts",
                        attempt=attempt,
                        **log_context
                    )
                return result

            error = result.error

            if not self.retryable(error):
                self.logger.debug(
                    f"{self.name} failed with non-retryable error",
                    attempt=attempt,
                    error=str(error),
                    **log_context
                )
                return result

            if attempt < self.max_attempts:
                wait = self.delay_for(attempt)
                self.logger.debug(
                    f"{self.name} failed, retrying in {wait:.1f}s",
                    attempt=attempt,
                    error=str(error),
                    **log_context
                )
                await self.sleep(wait)

        self.logger.warning(
            f"{self.name} failed after {self.max_attempts} attempts",
            attempt=self.max_attempts,
            error=str(result.error),
            **log_context
        )
        if self.on_exhausted:
            self.on_exhausted(result.error, self.max_attempts)

        return result
