"""
Shared utilities for the pipeline.

Provides:
- PDF utilities: mutool-based page rasterization
"""

from infra.utils.pdf import MutoolRasterizer

__all__ = [
    "MutoolRasterizer",
]
