"""
Scanned book PDFs -> wiki projects.

Phases, in order, each idempotent through a marker in the workspace:
1. rasterize     - PDF pages to numbered PNGs (mutool)
2. resolve-isbn  - title to ISBN (NDL, Google Books, operator prompt)
3. build-ocr     - upload pages, poll OCR, write {dir}-ocr.json
4. import        - create the wiki project and import the pages
"""

from .scanner import Phase, PHASE_ORDER, PhaseScanner
from .schemas import BookInfo, Page, Project, WorkItem

__all__ = [
    "Phase",
    "PHASE_ORDER",
    "PhaseScanner",
    "BookInfo",
    "Page",
    "Project",
    "WorkItem",
]
