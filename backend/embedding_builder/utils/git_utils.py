"""Job-scoped working copies of remote git repositories.

- git is always invoked with ``shell=False``.
- ``GIT_TOKEN`` is injected into HTTPS clone URLs in memory only; credentials
  are scrubbed from every log line and error message.
- A failed clone or checkout never leaves a partial directory behind.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import urllib.parse
from pathlib import Path
from typing import List, Optional, Union

from ..core.errors import CleanupError, WorkingCopyError
from .file_utils import ensure_dir

logger = logging.getLogger(__name__)

_REPO_URL_PATTERNS = [
    re.compile(r"^https?://.*\.git$", re.IGNORECASE),
    re.compile(r"^git@.*:.*\.git$", re.IGNORECASE),
    re.compile(r"^git://.*\.git$", re.IGNORECASE),
]

_CRED_RE = re.compile(r"(https?://)([^@/\s]+@)", re.IGNORECASE)


def sanitise_url(text: str) -> str:
    """Remove embedded credentials from any URL inside *text*."""
    return _CRED_RE.sub(r"\1***@", text)


def looks_like_repository_url(url: str) -> bool:
    """Cheap pre-flight check for HTTPS, SSH and git:// repository URLs."""
    return any(p.match(url) for p in _REPO_URL_PATTERNS)


def inject_token(url: str) -> str:
    """Return *url* with ``GIT_TOKEN`` as HTTPS credentials, if one is set."""
    token = os.environ.get("GIT_TOKEN", "")
    if not token or not url.startswith(("https://", "http://")):
        return url
    parsed = urllib.parse.urlparse(url)
    if "@" in parsed.netloc:
        return url
    return parsed._replace(netloc=f"{token}@{parsed.netloc}").geturl()


class WorkingCopyManager:
    """Clones repositories into ``<temp_root>/<job_id>`` and removes them again."""

    def __init__(self, temp_root: Union[str, Path]):
        self.temp_root = Path(temp_root)

    def acquire(self, repo_url: str, job_id: str, revision: Optional[str] = None) -> Path:
        """Clone *repo_url* for *job_id*, optionally checking out *revision*.

        Returns:
            Path of the working copy

        Raises:
            WorkingCopyError: If the clone or checkout fails. The partially
                created directory has been removed by then.
        """
        if not job_id or Path(job_id).name != job_id or job_id in (".", ".."):
            raise WorkingCopyError(f"Invalid job id for a working directory: {job_id!r}")
        if revision and revision.startswith("-"):
            raise WorkingCopyError(f"Invalid revision: {revision!r}")

        work_dir = self.temp_root / job_id
        safe_url = sanitise_url(repo_url)

        try:
            ensure_dir(work_dir)
            logger.info(f"Created work directory {work_dir}")

            self._git(["clone", "--", inject_token(repo_url), str(work_dir)])
            logger.info(f"Cloned {safe_url} into {work_dir}")

            if revision:
                self._git(["checkout", revision], cwd=work_dir)
                logger.info(f"Checked out {revision} for {safe_url}")
        except Exception as e:
            logger.error(f"Failed to clone or checkout {safe_url} into {work_dir}: {e}")
            self.release(work_dir)
            if isinstance(e, WorkingCopyError):
                raise
            raise WorkingCopyError(f"Failed to prepare working copy of {safe_url}: {e}") from e

        return work_dir

    def release(self, path: Union[str, Path]) -> None:
        """Remove a working copy. Failures are logged and swallowed."""
        try:
            self._remove_tree(Path(path))
            logger.info(f"Cleaned working directory {path}")
        except CleanupError as e:
            logger.error(f"Failed to clean working directory {path}: {e}")

    @staticmethod
    def _remove_tree(path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            raise CleanupError(str(e)) from e

    @staticmethod
    def _git(args: List[str], cwd: Optional[Path] = None) -> None:
        """Run a git command. Raises WorkingCopyError on a non-zero exit."""
        try:
            subprocess.run(
                ["git", *args],
                cwd=cwd,
                shell=False,
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as exc:
            stderr_safe = sanitise_url((exc.stderr or "").strip())
            raise WorkingCopyError(f"git {args[0]} failed: {stderr_safe}") from None
