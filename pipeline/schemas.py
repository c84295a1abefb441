from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class Page(BaseModel):
    """One wiki page. lines[0] repeats the title."""
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Page title")
    lines: List[str] = Field(default_factory=list, description="Page body, one entry per line")


class Project(BaseModel):
    """Full import payload for one book, persisted as {dir}-ocr.json."""
    model_config = ConfigDict(frozen=True)

    pages: List[Page] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)


class BookInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    isbn: str = Field(..., min_length=1, description="ISBN-10 or ISBN-13 without separators")
    title: str
    authors: Tuple[str, ...] = Field(default_factory=tuple)


@dataclass(frozen=True)
class WorkItem:
    """A unit of phase work: the path it concerns and its position in the batch."""
    path: Path
    index: int = 0

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self) -> str:
        return self.path.name
