"""Directory scanning for notebooks and pages."""
import datetime
import logging
import os
from datetime import timezone
from pathlib import Path
from typing import List, Optional, Tuple, Union

from notevault.config import config
from notevault.exceptions import ErrorCode, StorageError
from notevault.models.schema import ScanEntry, ScanKind

logger = logging.getLogger(__name__)

HIDDEN_PREFIX = "."


def _timestamp(seconds: float) -> datetime.datetime:
    return datetime.datetime.fromtimestamp(seconds, tz=timezone.utc)


def _creation_time(st: os.stat_result) -> float:
    # st_birthtime exists on macOS/BSD (and Windows on 3.12+); elsewhere
    # st_ctime is the closest available value
    birthtime = getattr(st, "st_birthtime", None)
    return birthtime if birthtime is not None else st.st_ctime


class DirectoryScanner:
    """Lists the immediate children of a library or notebook directory.

    Every call performs a fresh scan. The listing is fully materialized before
    it is returned, so callers get either every matching child or a
    StorageError, never a partial result.
    """

    def __init__(
        self,
        note_extension: Optional[str] = None,
        media_dir_name: Optional[str] = None,
    ):
        self.note_extension = note_extension or config.note_extension
        self.media_dir_name = media_dir_name or config.media_dir_name

    def scan_children(
        self, path: Union[str, Path], kind: ScanKind
    ) -> Tuple[ScanEntry, ...]:
        """Scan ``path`` for notebook directories or page files.

        Args:
            path: Directory to list.
            kind: NOTEBOOKS for subdirectories (minus the media directory),
                  PAGES for files with the note extension.

        Returns:
            Matching children in filesystem enumeration order.

        Raises:
            StorageError: If the directory is missing or cannot be read.
        """
        path = Path(path)
        entries: List[ScanEntry] = []
        try:
            with os.scandir(path) as it:
                for dirent in it:
                    if dirent.name.startswith(HIDDEN_PREFIX):
                        continue
                    entry = self._observe(dirent, kind)
                    if entry is not None:
                        entries.append(entry)
        except OSError as e:
            raise StorageError(
                f"Failed to scan directory {path.name or path}",
                operation=f"scan_{kind.value}",
                path=str(path),
                code=ErrorCode.SCAN_FAILED,
                original_error=e,
            ) from e

        logger.debug(f"Scanned {path}: {len(entries)} {kind.value}")
        return tuple(entries)

    def count_pages(self, path: Union[str, Path]) -> int:
        """Number of pages in a notebook, 0 if it cannot be listed."""
        try:
            return len(self.scan_children(path, ScanKind.PAGES))
        except StorageError as e:
            logger.warning(f"Cannot count pages in {Path(path).name}: {e}")
            return 0

    def _observe(self, dirent: os.DirEntry, kind: ScanKind) -> Optional[ScanEntry]:
        is_directory = dirent.is_dir(follow_symlinks=True)
        if kind == ScanKind.NOTEBOOKS:
            if not is_directory or dirent.name == self.media_dir_name:
                return None
        else:
            if not dirent.is_file(follow_symlinks=True):
                return None
            if os.path.splitext(dirent.name)[1] != self.note_extension:
                return None

        st = dirent.stat(follow_symlinks=True)
        return ScanEntry(
            name=dirent.name,
            is_directory=is_directory,
            created_at=_timestamp(_creation_time(st)),
            modified_at=_timestamp(st.st_mtime),
        )
