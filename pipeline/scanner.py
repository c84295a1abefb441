from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from infra.logger import PipelineLogger

from .schemas import WorkItem
from . import workspace as ws


class Phase(str, Enum):
    RASTERIZE = "rasterize"
    RESOLVE_ISBN = "resolve-isbn"
    BUILD_OCR = "build-ocr"
    IMPORT = "import"


PHASE_ORDER = [Phase.RASTERIZE, Phase.RESOLVE_ISBN, Phase.BUILD_OCR, Phase.IMPORT]


class PhaseScanner:
    """Computes, per phase, which workspace entries still lack their marker.

    Read-only. Each query looks at the filesystem as it is now, so asking
    again after a phase has run sees the artifacts it produced. An entry
    that cannot be stat'ed is treated as "not a match" and skipped.
    """

    def __init__(self, workspace_dir: Path, logger: Optional[PipelineLogger] = None):
        self.workspace_dir = Path(workspace_dir)
        self.logger = logger

    def pending(self, phase: Phase) -> List[WorkItem]:
        discoverers: Dict[Phase, Callable[[], List[Path]]] = {
            Phase.RASTERIZE: self.pdfs_needing_rasterize,
            Phase.RESOLVE_ISBN: self.dirs_without_isbn,
            Phase.BUILD_OCR: self.books_without_json,
            Phase.IMPORT: self.jsons_pending_import,
        }
        paths = discoverers[Phase(phase)]()
        return [WorkItem(path=path, index=i) for i, path in enumerate(paths)]

    def status(self) -> Dict[Phase, int]:
        return {phase: len(self.pending(phase)) for phase in PHASE_ORDER}

    def pdfs_needing_rasterize(self) -> List[Path]:
        """*.pdf files without a sibling directory of the same name."""
        return [
            path for path in self._entries()
            if ws.is_pdf(path.name)
            and self._is_file(path)
            and self._missing(ws.image_dir_for_pdf(path))
        ]

    def dirs_without_isbn(self) -> List[Path]:
        return [d for d in self.image_dirs() if self._missing(ws.isbn_marker(d))]

    def books_without_json(self) -> List[Path]:
        return [
            d for d in self.image_dirs()
            if self._exists(ws.isbn_marker(d)) and self._missing(ws.ocr_json_path(d))
        ]

    def jsons_pending_import(self) -> List[Path]:
        return [
            path for path in self._entries()
            if ws.is_ocr_json(path.name)
            and self._is_file(path)
            and self._missing(ws.imported_marker(ws.image_dir_for_json(path)))
        ]

    def image_dirs(self) -> List[Path]:
        """Visible subdirectories of the workspace (staging and log dirs are hidden)."""
        return [
            path for path in self._entries()
            if not path.name.startswith(".") and self._is_dir(path)
        ]

    def _entries(self) -> List[Path]:
        try:
            names = sorted(p.name for p in self.workspace_dir.iterdir())
        except FileNotFoundError:
            return []
        return [self.workspace_dir / name for name in names]

    def _is_dir(self, path: Path) -> bool:
        try:
            return path.is_dir()
        except OSError as e:
            self._skip(path, e)
            return False

    def _is_file(self, path: Path) -> bool:
        try:
            return path.is_file()
        except OSError as e:
            self._skip(path, e)
            return False

    def _stat_state(self, path: Path) -> Optional[bool]:
        """True if present, False if absent, None if stat itself failed."""
        try:
            path.stat()
            return True
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            self._skip(path, e)
            return None

    def _exists(self, path: Path) -> bool:
        return self._stat_state(path) is True

    def _missing(self, path: Path) -> bool:
        return self._stat_state(path) is False

    def _skip(self, path: Path, error: OSError) -> None:
        if self.logger:
            self.logger.warning("Cannot stat entry, skipping", item=path.name, error=str(error))
