"""
Build OCR pages: image directory -> hosted images + OCR text -> Project.

Each page image is uploaded, given time for the hosting service to run OCR,
then polled until its text appears. The resulting pages link to their
neighbours (prev/next) and embed the hosted image above the quoted OCR text.
"""

from .pipeline import (
    ImageHost,
    OcrPagePipeline,
    PageOutcome,
    PageState,
    is_ocr_pending,
    is_transient_upload_error,
)
from .render import page_title, render_page

__all__ = [
    "ImageHost",
    "OcrPagePipeline",
    "PageOutcome",
    "PageState",
    "is_ocr_pending",
    "is_transient_upload_error",
    "page_title",
    "render_page",
]
