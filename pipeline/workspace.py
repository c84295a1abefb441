"""
Workspace layout and marker artifacts.

    workspace/
      book.pdf              source document
      book/                 page images (1.png, 2.png, ...)   <- Rasterize marker
      book/.isbn            resolved identifier               <- Resolve ISBN marker
      book-ocr.json         serialized Project                <- Build OCR pages marker
      book/.imported        wiki project name                 <- Import marker
      .book.rasterizing/    staging dir while mutool runs (hidden, never scanned)
      .logs/                JSONL logs

Markers are always written last, through a temp file and os.replace, so a
marker on disk means the phase finished.
"""

import os
from pathlib import Path
from typing import List

from infra.errors import WorkspaceIOError


PDF_SUFFIX = ".pdf"
OCR_JSON_SUFFIX = "-ocr.json"
ISBN_MARKER = ".isbn"
IMPORTED_MARKER = ".imported"
STAGING_SUFFIX = ".rasterizing"
IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg")


def image_dir_for_pdf(pdf_path: Path) -> Path:
    return pdf_path.with_name(pdf_path.name[:-len(PDF_SUFFIX)])


def staging_dir_for_pdf(pdf_path: Path) -> Path:
    return pdf_path.with_name(f".{image_dir_for_pdf(pdf_path).name}{STAGING_SUFFIX}")


def isbn_marker(image_dir: Path) -> Path:
    return image_dir / ISBN_MARKER


def imported_marker(image_dir: Path) -> Path:
    return image_dir / IMPORTED_MARKER


def ocr_json_path(image_dir: Path) -> Path:
    return image_dir.with_name(f"{image_dir.name}{OCR_JSON_SUFFIX}")


def image_dir_for_json(json_path: Path) -> Path:
    return json_path.with_name(json_path.name[:-len(OCR_JSON_SUFFIX)])


def is_pdf(name: str) -> bool:
    return name.lower().endswith(PDF_SUFFIX)


def is_ocr_json(name: str) -> bool:
    return name.endswith(OCR_JSON_SUFFIX)


def _image_sort_key(path: Path):
    # numeric stems in numeric order (2.png before 10.png), anything else after
    stem = path.stem
    if stem.isdigit():
        return (0, int(stem), stem)
    return (1, 0, stem)


def list_images(image_dir: Path) -> List[Path]:
    """Page images of a directory in page order."""
    try:
        entries = [
            p for p in image_dir.iterdir()
            if p.suffix.lower() in IMAGE_SUFFIXES and not p.name.startswith(".")
        ]
    except OSError as e:
        raise WorkspaceIOError(f"Cannot list images in {image_dir}", cause=e)
    return sorted(entries, key=_image_sort_key)


def atomic_write_text(path: Path, text: str) -> None:
    temp_file = path.with_name(f"{path.name}.tmp")
    try:
        with open(temp_file, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(temp_file, path)
    except OSError as e:
        if temp_file.exists():
            temp_file.unlink()
        raise WorkspaceIOError(f"Failed to write {path}", cause=e)


def read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise WorkspaceIOError(f"Failed to read {path}", cause=e)


def read_isbn(image_dir: Path) -> str:
    return read_text(isbn_marker(image_dir)).strip()


def write_isbn(image_dir: Path, isbn: str) -> None:
    atomic_write_text(isbn_marker(image_dir), isbn.strip())
