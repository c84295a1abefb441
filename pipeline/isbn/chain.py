"""
ISBN resolution: bibliographic strategies in priority order, then the operator.

Each strategy's failure is captured and the chain falls through to the next.
The outcome keeps "nobody knows this book" (IsbnNotFoundError) apart from
"every lookup broke" (ApiError) so the caller can skip the former and
escalate the latter.
"""

from typing import Awaitable, List, Optional, Protocol

from infra.errors import ApiError, IsbnNotFoundError, NotFoundError
from infra.logger import PipelineLogger, create_logger
from infra.result import Err, Ok, Result, attempt
from pipeline.schemas import BookInfo


class IsbnSource(Protocol):
    name: str

    def search_by_title(self, title: str) -> Awaitable[BookInfo]:
        ...


class Prompter(Protocol):
    def ask(self, title: str) -> Awaitable[Optional[str]]:
        ...


class IsbnResolutionChain:
    def __init__(
        self,
        strategies: List[IsbnSource],
        prompter: Optional[Prompter] = None,
        interactive: bool = True,
        logger: Optional[PipelineLogger] = None,
    ):
        self.strategies = list(strategies)
        self.prompter = prompter
        self.interactive = interactive and prompter is not None
        self.logger = logger or create_logger("resolve-isbn", json_output=False)

    async def resolve(self, title: str) -> Result:
        """Ok(BookInfo), Err(IsbnNotFoundError) or Err(ApiError)."""
        api_errors: List[ApiError] = []

        for strategy in self.strategies:
            result = await attempt(strategy.search_by_title, title)

            if isinstance(result, Ok):
                self.logger.info(
                    f"ISBN {result.value.isbn} found via {strategy.name}",
                    item=title,
                )
                return result

            error = result.error
            if isinstance(error, NotFoundError):
                self.logger.debug(f"{strategy.name}: no ISBN", item=title)
            else:
                self.logger.warning(
                    f"{strategy.name} lookup failed",
                    item=title,
                    error=str(error),
                )
                if isinstance(error, ApiError):
                    api_errors.append(error)
                else:
                    api_errors.append(ApiError(f"{strategy.name} lookup failed", cause=error))

        isbn = await self._ask_operator(title)
        if isbn:
            self.logger.info(f"ISBN {isbn} entered manually", item=title)
            return Ok(BookInfo(isbn=isbn, title=title))

        if self.strategies and len(api_errors) == len(self.strategies):
            return Err(api_errors[-1])
        return Err(IsbnNotFoundError(title))

    async def _ask_operator(self, title: str) -> Optional[str]:
        if not self.interactive:
            return None
        return await self.prompter.ask(title)
