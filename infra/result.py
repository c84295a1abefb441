"""
Tagged result values for operations whose failure is part of normal flow.

Clients raise PipelineError subclasses; the seams that need to inspect or
retry a failure (RetryPolicy, the ISBN chain, the OCR page pipeline, the
profile page cache) turn the call into an Ok/Err with attempt() and work
with the combinators below.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Tuple, Type, TypeVar, Union

from .errors import PipelineError

T = TypeVar('T')
E = TypeVar('E', bound=BaseException)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]


def map_err(result: Result, fn: Callable[[E], BaseException]) -> Result:
    if isinstance(result, Err):
        return Err(fn(result.error))
    return result


def unwrap(result: Result) -> Any:
    """Return the value or raise the carried error."""
    if isinstance(result, Ok):
        return result.value
    raise result.error


def recover(result: Result, handler: Callable[[E], T]) -> Ok:
    """Replace an Err with Ok(handler(error))."""
    if isinstance(result, Err):
        return Ok(handler(result.error))
    return result


async def attempt(
    fn: Callable[..., Awaitable[T]],
    *args,
    errors: Tuple[Type[BaseException], ...] = (PipelineError,),
    **kwargs,
) -> Result:
    """Await fn(*args, **kwargs), capturing the listed exception types as Err."""
    try:
        return Ok(await fn(*args, **kwargs))
    except errors as e:
        return Err(e)
