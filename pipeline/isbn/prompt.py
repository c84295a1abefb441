import asyncio
import sys
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt


def normalize_isbn(raw: str) -> Optional[str]:
    """Strip separators; blank input means skip."""
    cleaned = raw.strip().replace("-", "").replace(" ", "")
    return cleaned or None


class IsbnPrompter:
    """Ask the operator for an ISBN when every lookup strategy came up empty.

    Prompt.ask blocks, so it runs in a worker thread; the pipeline still waits
    for the answer because ISBN resolution runs one book at a time.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)

    @staticmethod
    def available() -> bool:
        return sys.stdin is not None and sys.stdin.isatty()

    def _ask(self, title: str) -> str:
        self.console.print(f"[yellow]No ISBN found for[/yellow] [bold]{escape(title)}[/bold]")
        return Prompt.ask(
            "Enter ISBN (blank to skip)",
            console=self.console,
            default="",
            show_default=False,
        )

    async def ask(self, title: str) -> Optional[str]:
        raw = await asyncio.to_thread(self._ask, title)
        return normalize_isbn(raw)
