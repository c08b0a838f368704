"""Persistence of library indexes and notebook TOCs.

Records are JSON files at fixed names inside the directory they describe.
Writes go to a temporary file in the same directory which is then moved over
the target with ``os.replace``, so a concurrent reader sees either the old
record or the new one, never a partial file.
"""
import json
import logging
import os
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, Optional, Type, TypeVar, Union

from pydantic import ValidationError as PydanticValidationError

from notevault.config import config
from notevault.exceptions import ErrorCode, RecordNotFoundError, StorageError
from notevault.models.schema import IndexModel, LibraryIndex, NotebookTOC, RecordLevel

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=IndexModel)

_DEFAULT_FILE_MODE = 0o644


@contextmanager
def atomic_writer(path: Path) -> Iterator[IO[bytes]]:
    """Yield a binary file that replaces ``path`` when the block exits cleanly.

    The temporary file is created next to the target (same filesystem, so the
    rename is atomic) with a hidden name so directory scans skip it. If the
    block raises, the temporary file is removed and the target is untouched.
    """
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        try:
            mode = stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            mode = _DEFAULT_FILE_MODE
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise


class MetadataStore:
    """Loads and saves the two record types.

    Serialization is canonical: keys sorted, two-space indentation, UTF-8
    with literal non-ASCII characters, timestamps in UTC. Saving the same
    logical record twice produces identical bytes.
    """

    def __init__(
        self,
        index_filename: Optional[str] = None,
        toc_filename: Optional[str] = None,
    ):
        self.index_filename = index_filename or config.index_filename
        self.toc_filename = toc_filename or config.toc_filename

    def record_path(self, root: Union[str, Path], level: RecordLevel) -> Path:
        """Path of the record file describing ``root`` at ``level``."""
        filename = (
            self.index_filename if level == RecordLevel.LIBRARY else self.toc_filename
        )
        return Path(root) / filename

    @staticmethod
    def serialize(record: IndexModel) -> bytes:
        """Encode a record in its canonical byte form."""
        text = json.dumps(
            record.to_record(), sort_keys=True, indent=2, ensure_ascii=False
        )
        return (text + "\n").encode("utf-8")

    def load_library_index(self, root: Union[str, Path]) -> LibraryIndex:
        """Load the index at a library root.

        Raises:
            RecordNotFoundError: If the library has no index file yet.
            StorageError: If the file cannot be read or decoded.
        """
        return self._load(self.record_path(root, RecordLevel.LIBRARY), LibraryIndex)

    def load_notebook_toc(self, root: Union[str, Path]) -> NotebookTOC:
        """Load the TOC at a notebook root.

        Raises:
            RecordNotFoundError: If the notebook has no TOC file yet.
            StorageError: If the file cannot be read or decoded.
        """
        return self._load(self.record_path(root, RecordLevel.NOTEBOOK), NotebookTOC)

    def save_library_index(self, index: LibraryIndex, root: Union[str, Path]) -> Path:
        """Atomically write a library index. Returns the record path."""
        return self._save(index, self.record_path(root, RecordLevel.LIBRARY))

    def save_notebook_toc(self, toc: NotebookTOC, root: Union[str, Path]) -> Path:
        """Atomically write a notebook TOC, newest pages first."""
        toc.sort_pages()
        return self._save(toc, self.record_path(root, RecordLevel.NOTEBOOK))

    def _load(self, path: Path, model: Type[R]) -> R:
        try:
            raw = path.read_bytes()
        except FileNotFoundError as e:
            raise RecordNotFoundError(str(path)) from e
        except OSError as e:
            raise StorageError(
                f"Failed to read record {path.name}",
                operation="load",
                path=str(path),
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            ) from e

        try:
            return model.model_validate(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, PydanticValidationError) as e:
            raise StorageError(
                f"Record {path.name} is corrupted",
                operation="load",
                path=str(path),
                code=ErrorCode.RECORD_CORRUPTED,
                original_error=e,
            ) from e

    def _save(self, record: IndexModel, path: Path) -> Path:
        data = self.serialize(record)
        try:
            with atomic_writer(path) as handle:
                handle.write(data)
        except OSError as e:
            raise StorageError(
                f"Failed to write record {path.name}",
                operation="save",
                path=str(path),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e
        logger.info(f"Record saved to: {path}")
        return path
