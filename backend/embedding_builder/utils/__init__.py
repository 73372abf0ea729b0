"""Utility functions for embedding-builder."""

from .file_utils import (
    ensure_dir,
    is_binary_file,
)

__all__ = [
    "ensure_dir",
    "is_binary_file",
]
