"""Utilities for codemend."""

from codemend.utils.diff_generator import (
    build_file_diff,
    count_changed_lines,
    generate_unified_diff,
)

__all__ = [
    "build_file_diff",
    "count_changed_lines",
    "generate_unified_diff",
]
