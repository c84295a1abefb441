from typing import List, Optional

from pipeline.schemas import Page


def page_title(index: int, total: int) -> str:
    """Zero-padded page number; width is the digit count of the page total."""
    return str(index).zfill(len(str(total)))


def render_page(index: int, total: int, image_url: Optional[str], text: str) -> Page:
    """
    Render one scanned page:

        07
        prev: [06]
        next: [08]
        [[https://gyazo.com/<image_id>]]

        > first OCR line
        > second OCR line

    prev on the first page points at itself; next on the last page points
    one past the end. The image line is left out when the upload failed.
    """
    title = page_title(index, total)
    prev_title = page_title(max(index - 1, 0), total)
    next_title = page_title(index + 1, total)

    lines: List[str] = [
        title,
        f"prev: [{prev_title}]",
        f"next: [{next_title}]",
    ]
    if image_url:
        lines.append(f"[[{image_url}]]")
    lines.append("")
    lines.extend(f"> {line}" for line in text.split("\n"))

    return Page(title=title, lines=lines)
