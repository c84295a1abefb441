"""
Pytest configuration for project root.

Ensures project modules can be imported in tests and provides the shared
workspace fixtures. Everything runs against a real temporary filesystem;
network collaborators are replaced by small fakes or httpx.MockTransport.
"""

import sys
import pytest
from pathlib import Path

from PIL import Image

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def workspace(tmp_path):
    """An empty workspace directory."""
    workspace_dir = tmp_path / "workspace"
    workspace_dir.mkdir()
    return workspace_dir


def write_png(path: Path, size=(40, 60)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new('RGB', size, color='white').save(path)
    return path


@pytest.fixture
def make_png():
    """Write a small white PNG at the given path."""
    return write_png


@pytest.fixture
def image_dir(workspace):
    """workspace/book with three page images (1.png .. 3.png)."""
    book_dir = workspace / "book"
    for i in range(1, 4):
        write_png(book_dir / f"{i}.png")
    return book_dir


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns at once and remembers delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def no_sleep():
    return RecordingSleep()
