"""
PDF rasterization via MuPDF's `mutool convert`.

    mutool convert -F png -O resolution=600,gamma=1 -o <out>/%d.png <book.pdf>

produces one image per page named 1.png, 2.png, ... (numeric order is page
order). The process runs as a subprocess so the event loop keeps serving
other work while it renders.
"""

import asyncio
import shutil
from pathlib import Path
from typing import List, Optional

from infra.errors import RasterizerMissingError, ToolError
from infra.logger import PipelineLogger, create_logger


class MutoolRasterizer:
    def __init__(
        self,
        command: str = "mutool",
        resolution: int = 600,
        logger: Optional[PipelineLogger] = None,
    ):
        self.command = command
        self.resolution = resolution
        self.logger = logger or create_logger("rasterize", json_output=False)

    def ensure_available(self) -> str:
        path = shutil.which(self.command)
        if path is None:
            raise RasterizerMissingError(
                f"{self.command} is not installed or not found in PATH "
                f"(install MuPDF tools to rasterize PDFs)"
            )
        return path

    def build_args(self, pdf_path: Path, output_dir: Path) -> List[str]:
        return [
            self.command,
            "convert",
            "-F", "png",
            "-O", f"resolution={self.resolution},gamma=1",
            "-o", str(output_dir / "%d.png"),
            str(pdf_path),
        ]

    async def rasterize(self, pdf_path: Path, output_dir: Path) -> Path:
        """Render every page of pdf_path into output_dir (which must exist)."""
        args = self.build_args(pdf_path, output_dir)
        self.logger.debug("Running rasterizer", item=pdf_path.name, command=" ".join(args))

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise RasterizerMissingError(f"{self.command} could not be started", cause=e)

        _, stderr = await process.communicate()

        if process.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise ToolError(
                f"{self.command} convert failed with exit code {process.returncode} "
                f"for {pdf_path.name}" + (f": {detail}" if detail else "")
            )

        return output_dir
