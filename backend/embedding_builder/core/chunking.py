"""Line-based chunking of repository files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from ..utils.file_utils import is_binary_file
from .errors import ChunkingIOError
from .models import Chunk

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500

# Source, config and markup files worth embedding
SUPPORTED_EXTENSIONS = frozenset({
    ".js", ".ts", ".jsx", ".tsx",
    ".py", ".java", ".go",
    ".c", ".cpp", ".h", ".hpp", ".cs",
    ".php", ".rb", ".swift", ".dart",
    ".json", ".yml", ".html", ".css",
})

IGNORED_DIRS = frozenset({
    # VCS
    ".git", ".svn", ".hg",
    # Node / JS
    "node_modules",
    # Python
    "__pycache__", "venv", ".venv", "env",
    # Java / JVM
    "target",
    # Build / artifacts
    "dist", "build", "out", "coverage",
    # Vendored packages
    "vendor",
    # IDE / editor
    ".idea", ".vscode",
    # CMake
    "CMakeFiles", "cmake-build-debug",
})

PathLike = Union[str, Path]


def is_ignored_dir(name: str) -> bool:
    """Return True for directory names the walker never descends into."""
    return name in IGNORED_DIRS or name.startswith(".")


def should_include(path: PathLike, root: Optional[PathLike] = None) -> bool:
    """Decide whether a file takes part in embedding.

    Args:
        path: File path, absolute or relative
        root: Repository root; when given, only segments below it are checked

    Returns:
        True if the extension is supported and no parent directory is ignored
    """
    p = Path(path)
    if root is not None:
        try:
            p = p.relative_to(root)
        except ValueError:
            pass

    if p.suffix.lower() not in SUPPORTED_EXTENSIONS:
        return False

    return not any(is_ignored_dir(part) for part in p.parts[:-1])


def _read_lines(path: Path) -> List[str]:
    if is_binary_file(path):
        raise ChunkingIOError(f"{path} looks like a binary file")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ChunkingIOError(f"Cannot read {path} as text: {e}") from e
    return text.splitlines(keepends=True)


class Chunker:
    """Abstract base class for text chunking."""

    def chunk(self, lines: List[str], file_path: str) -> List[Chunk]:
        raise NotImplementedError


class LineChunker(Chunker):
    """Splits a file into consecutive blocks of at most ``chunk_size`` lines."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.chunk_size = chunk_size

    def chunk(self, lines: List[str], file_path: str) -> List[Chunk]:
        chunks: List[Chunk] = []
        for chunk_index, start in enumerate(range(0, len(lines), self.chunk_size)):
            block = lines[start:start + self.chunk_size]
            chunks.append(
                Chunk(
                    file_path=file_path,
                    chunk_index=chunk_index,
                    start_line=start + 1,
                    end_line=start + len(block),
                    content="".join(block),
                )
            )
        return chunks


def chunk_file(
    path: PathLike,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    root: Optional[PathLike] = None,
) -> List[Chunk]:
    """Chunk a single file.

    Unreadable files are logged and produce no chunks.

    Args:
        path: File to read
        chunk_size: Maximum number of lines per chunk
        root: Repository root used to make ``Chunk.file_path`` relative

    Returns:
        Chunks in file order; empty for empty or unreadable files
    """
    chunker = LineChunker(chunk_size)
    path = Path(path)
    rel = path.relative_to(root).as_posix() if root is not None else path.as_posix()

    try:
        lines = _read_lines(path)
    except ChunkingIOError as e:
        logger.warning(f"Skipping file: {e}")
        return []

    return chunker.chunk(lines, rel)


def walk_and_chunk(root_dir: PathLike, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[Chunk]:
    """Chunk every supported file below ``root_dir``, depth first."""
    root = Path(root_dir)
    chunks: List[Chunk] = []

    def _on_error(err: OSError) -> None:
        logger.error(f"Error walking directory {err.filename}: {err}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if not is_ignored_dir(d))
        for fname in sorted(filenames):
            fp = Path(dirpath, fname)
            # Symlinks may point outside the working copy
            if fp.is_symlink():
                logger.warning(f"Skipping symlink: {fp.relative_to(root).as_posix()}")
                continue
            if not should_include(fp, root) or not fp.is_file():
                continue
            chunks.extend(chunk_file(fp, chunk_size, root=root))

    logger.debug(f"Produced {len(chunks)} chunks from {root}")
    return chunks
