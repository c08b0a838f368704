"""Service layer tying scanning, reconciliation and mutation together."""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from notevault.config import NotevaultConfig, config
from notevault.exceptions import ErrorCode, RecordNotFoundError, ValidationError
from notevault.models.schema import (
    LibraryIndex,
    NotebookEntry,
    NotebookFieldsUpdate,
    NotebookTOC,
    PageEntry,
    ReconcileStats,
    RecordLevel,
    TocFieldsUpdate,
    validate_entry_id,
)
from notevault.observability import timed_operation
from notevault.services.content_extractor import ContentExtractor
from notevault.services.mutators import MetadataMutator
from notevault.services.reconciler import Clock, Reconciler
from notevault.storage.content_provider import FileContentProvider
from notevault.storage.metadata_store import MetadataStore
from notevault.storage.scanner import DirectoryScanner

logger = logging.getLogger(__name__)


class IndexService:
    """Entry point for everything that reads or changes a library's records.

    Paths are plain directories the caller can already access. Operations run
    to completion on the calling thread; two callers working on the same
    library at once race, and the last full save wins.
    """

    def __init__(
        self,
        library_dir: Optional[Union[str, Path]] = None,
        settings: Optional[NotevaultConfig] = None,
        clock: Optional[Clock] = None,
    ):
        settings = settings or config
        self.settings = settings
        self.library_dir = Path(library_dir) if library_dir else settings.library_dir
        self.store = MetadataStore(settings.index_filename, settings.toc_filename)
        scanner = DirectoryScanner(settings.note_extension, settings.media_dir_name)
        extractor = ContentExtractor(
            note_extension=settings.note_extension,
            preview_line_count=settings.preview_line_count,
            preview_max_chars=settings.preview_max_chars,
            header_delimiter=settings.header_delimiter,
        )
        self.reconciler = Reconciler(
            store=self.store,
            scanner=scanner,
            content_provider=FileContentProvider(),
            extractor=extractor,
            clock=clock,
            default_icon=settings.default_icon,
            default_color=settings.default_color,
            seed_page_tags_from_header=settings.seed_page_tags_from_header,
        )
        self.mutator = MetadataMutator(store=self.store, clock=clock)

    def notebook_path(self, notebook_id: str) -> Path:
        """Directory of a notebook in this service's library.

        Ids arrive from callers, so on top of the record-level id rules any
        backslash is refused, as are hidden names and the media directory,
        neither of which a scan would ever report as a notebook.

        Raises:
            ValidationError: PATH_TRAVERSAL_DETECTED for ids that would
                resolve outside the library, VALIDATION_FAILED otherwise.
        """
        if not notebook_id:
            raise ValidationError("Notebook ID cannot be empty", field="notebook_id")
        try:
            validate_entry_id(notebook_id, "Notebook ID")
            if "\\" in notebook_id:
                raise ValueError("Notebook ID cannot contain path separators")
        except ValueError as e:
            raise ValidationError(
                str(e),
                field="notebook_id",
                value=notebook_id,
                code=ErrorCode.PATH_TRAVERSAL_DETECTED,
            ) from e
        if notebook_id.startswith("."):
            raise ValidationError(
                f"Notebook ID '{notebook_id}' names a hidden directory",
                field="notebook_id",
                value=notebook_id,
            )
        if notebook_id == self.settings.media_dir_name:
            raise ValidationError(
                f"'{notebook_id}' is the reserved media directory",
                field="notebook_id",
                value=notebook_id,
            )
        return self.library_dir / notebook_id

    # Reconciliation

    def reconcile_library(self) -> ReconcileStats:
        with timed_operation("reconcile_library", library=self.library_dir.name) as op:
            stats = self.reconciler.reconcile(self.library_dir, RecordLevel.LIBRARY)
            op["total"] = stats.total
            return stats

    def reconcile_notebook(self, notebook_id: str) -> ReconcileStats:
        path = self.notebook_path(notebook_id)
        with timed_operation("reconcile_notebook", notebook=notebook_id) as op:
            stats = self.reconciler.reconcile(path, RecordLevel.NOTEBOOK)
            op["total"] = stats.total
            return stats

    def reconcile_all(self) -> List[ReconcileStats]:
        with timed_operation("reconcile_all", library=self.library_dir.name) as op:
            results = self.reconciler.reconcile_all(self.library_dir)
            op["records"] = len(results)
            return results

    # Read-only views

    def get_library_index(self) -> LibraryIndex:
        """The library index, created empty on first access."""
        with timed_operation("get_library_index"):
            return self.reconciler.load_or_create_library(self.library_dir)

    def get_notebook_toc(self, notebook_id: str) -> NotebookTOC:
        """A notebook's TOC, created empty on first access."""
        path = self.notebook_path(notebook_id)
        with timed_operation("get_notebook_toc", notebook=notebook_id):
            if not path.is_dir():
                raise RecordNotFoundError(str(path), f"Notebook '{notebook_id}' does not exist")
            return self.reconciler.load_or_create_toc(path)

    # Mutators

    def update_notebook(self, notebook_id: str, fields: NotebookFieldsUpdate) -> NotebookEntry:
        with timed_operation("update_notebook", notebook=notebook_id):
            return self.mutator.update_notebook_fields(self.library_dir, notebook_id, fields)

    def update_page_tags(
        self, notebook_id: str, page_id: str, tags: Iterable[str]
    ) -> PageEntry:
        path = self.notebook_path(notebook_id)
        with timed_operation("update_page_tags", notebook=notebook_id, page=page_id):
            return self.mutator.update_page_tags(path, page_id, tags)

    def update_notebook_toc(self, notebook_id: str, fields: TocFieldsUpdate) -> NotebookTOC:
        path = self.notebook_path(notebook_id)
        with timed_operation("update_notebook_toc", notebook=notebook_id):
            return self.mutator.update_toc_fields(path, fields)
