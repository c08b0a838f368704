"""Targeted edits of user-owned fields, without rescanning."""
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

from notevault.exceptions import EntryNotFoundError
from notevault.models.schema import (
    NotebookEntry,
    NotebookFieldsUpdate,
    NotebookTOC,
    PageEntry,
    TocFieldsUpdate,
    normalize_tags,
    utc_now,
)
from notevault.services.reconciler import Clock
from notevault.storage.metadata_store import MetadataStore

logger = logging.getLogger(__name__)


class MetadataMutator:
    """Load a record, patch one entry, save.

    A missing record raises RecordNotFoundError and a missing entry raises
    EntryNotFoundError; in both cases nothing is written.

    The touched entry and its record take lastModified straight from the
    clock, so the value is monotonic only if the clock is.
    """

    def __init__(self, store: Optional[MetadataStore] = None, clock: Optional[Clock] = None):
        self.store = store or MetadataStore()
        self.clock: Clock = clock or utc_now

    def update_notebook_fields(
        self,
        library_root: Union[str, Path],
        notebook_id: str,
        fields: NotebookFieldsUpdate,
    ) -> NotebookEntry:
        """Apply the explicitly set fields of ``fields`` to one notebook entry.

        Args:
            library_root: Library directory holding the index.
            notebook_id: Directory name of the notebook.
            fields: Partial update; unset fields keep their current value.

        Returns:
            The updated notebook entry.
        """
        index = self.store.load_library_index(library_root)
        notebook = index.find_notebook(notebook_id)
        if notebook is None:
            raise EntryNotFoundError(notebook_id, kind="notebook")

        now = self.clock()
        for name, value in fields.changes().items():
            setattr(notebook, name, value)
        notebook.last_modified = now
        index.last_modified = now

        self.store.save_library_index(index, library_root)
        logger.info(
            f"Updated notebook {notebook_id}: {sorted(fields.changes()) or 'no fields'}"
        )
        return notebook

    def update_page_tags(
        self,
        notebook_root: Union[str, Path],
        page_id: str,
        tags: Iterable[str],
    ) -> PageEntry:
        """Replace the tags of one page.

        The page's own ``last_modified`` stays the file's modification time;
        only the TOC's timestamp moves.
        """
        toc = self.store.load_notebook_toc(notebook_root)
        page = toc.find_page(page_id)
        if page is None:
            raise EntryNotFoundError(page_id, kind="page")

        page.tags = normalize_tags(tags)
        toc.last_modified = self.clock()

        self.store.save_notebook_toc(toc, notebook_root)
        logger.info(f"Updated tags of page {page_id}: {page.tags}")
        return page

    def update_toc_fields(
        self,
        notebook_root: Union[str, Path],
        fields: TocFieldsUpdate,
    ) -> NotebookTOC:
        """Patch the display name, description or tags of a notebook TOC itself."""
        toc = self.store.load_notebook_toc(notebook_root)
        for name, value in fields.changes().items():
            setattr(toc, name, value)
        toc.last_modified = self.clock()

        self.store.save_notebook_toc(toc, notebook_root)
        logger.info(f"Updated TOC of {Path(notebook_root).name}")
        return toc
