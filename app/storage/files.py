"""Stored session files (uploads directory)"""
import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional

from app.config import settings

logger = logging.getLogger(__name__)


class FileStorage:
    """Removes files from the uploads directory. Cleanup is best-effort and never raises."""

    def __init__(self, uploads_dir: Optional[str] = None):
        self.base_dir = Path(uploads_dir or settings.uploads_dir).resolve()

    def safe_resolve(self, relative_path: str) -> Optional[Path]:
        """Resolve ``relative_path`` under the uploads dir, or None on traversal"""
        full_path = (self.base_dir / relative_path.lstrip("/")).resolve()
        if full_path != self.base_dir and self.base_dir not in full_path.parents:
            logger.error(
                f"[SECURITY] Path traversal attempt detected: base={self.base_dir} path={relative_path}"
            )
            return None
        return full_path

    def _unlink(self, path: Path) -> bool:
        if not path.exists():
            return False
        path.unlink()
        return True

    async def delete_files(self, relative_paths: Iterable[str]) -> int:
        """Delete every file it safely can; returns how many were removed"""
        removed = 0
        for relative_path in relative_paths:
            if not relative_path:
                continue
            path = self.safe_resolve(relative_path)
            if path is None:
                continue
            try:
                if await asyncio.to_thread(self._unlink, path):
                    removed += 1
                    logger.info(f"Deleted file: {relative_path}")
            except OSError as e:
                logger.error(f"Failed to delete file {relative_path}: {e}")
        return removed
