"""Reconciliation of persisted records with the directory tree.

The filesystem decides which entries exist and supplies every derived field
(counts, timestamps, titles, previews). The persisted record is the only home
of user-edited fields (display names, descriptions, tags, icons, colors), so a
rescan copies those forward untouched and only fills them in for entries it
has never seen before.
"""
import datetime
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Union

from notevault.config import config
from notevault.exceptions import RecordNotFoundError
from notevault.models.schema import (
    LibraryIndex,
    NotebookEntry,
    NotebookTOC,
    PageEntry,
    ReconcileStats,
    RecordLevel,
    ScanEntry,
    ScanKind,
    utc_now,
)
from notevault.services.content_extractor import ContentExtractor
from notevault.storage.content_provider import FileContentProvider
from notevault.storage.metadata_store import MetadataStore
from notevault.storage.scanner import DirectoryScanner

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]


@dataclass
class MergeResult:
    """Entries produced by a merge plus what changed relative to the old set."""

    entries: List = field(default_factory=list)
    added: int = 0
    updated: int = 0
    removed: int = 0


def merge_notebooks(
    existing: Sequence[NotebookEntry],
    observations: Sequence[ScanEntry],
    note_counts: Mapping[str, int],
    default_icon: Optional[str] = None,
    default_color: Optional[str] = None,
) -> MergeResult:
    """Fold fresh notebook observations into the previously persisted entries.

    Args:
        existing: Notebook entries from the last saved index.
        observations: Notebook directories seen by the current scan.
        note_counts: Page count per observed directory name.
        default_icon: Icon given to notebooks seen for the first time.
        default_color: Color given to notebooks seen for the first time.

    Returns:
        One entry per observation, in observation order. Entries whose
        directory was not observed are dropped.
    """
    previous: Dict[str, NotebookEntry] = {nb.id: nb for nb in existing}
    result = MergeResult()

    for obs in observations:
        count = note_counts.get(obs.name, 0)
        old = previous.get(obs.name)
        if old is not None:
            result.entries.append(
                old.model_copy(
                    deep=True,
                    update={"note_count": count, "last_modified": obs.modified_at},
                )
            )
            result.updated += 1
        else:
            result.entries.append(
                NotebookEntry(
                    id=obs.name,
                    display_name=obs.name,
                    description="",
                    tags=[],
                    icon=default_icon,
                    color=default_color,
                    note_count=count,
                    created_at=obs.created_at,
                    last_modified=obs.modified_at,
                )
            )
            result.added += 1

    observed = {obs.name for obs in observations}
    result.removed = sum(1 for nb_id in previous if nb_id not in observed)
    return result


def merge_pages(
    existing: Sequence[PageEntry],
    observations: Sequence[ScanEntry],
    contents: Mapping[str, Optional[str]],
    extractor: ContentExtractor,
    seed_tags_from_header: bool = False,
) -> MergeResult:
    """Fold fresh page observations into the previously persisted entries.

    Title, preview, word count and header-block flag are re-derived from the
    current text of every page; missing text counts as empty. Tags survive
    from the old entry, or start empty (or from the page's header block when
    ``seed_tags_from_header`` is set) for new pages.
    """
    previous: Dict[str, PageEntry] = {page.id: page for page in existing}
    result = MergeResult()

    for obs in observations:
        text = contents.get(obs.name) or ""
        info = extractor.extract(text, obs.name)
        derived = {
            "title": info.title,
            "preview": info.preview,
            "word_count": info.word_count,
            "last_modified": obs.modified_at,
            "has_header_block": extractor.has_header_block(text),
        }
        old = previous.get(obs.name)
        if old is not None:
            result.entries.append(old.model_copy(deep=True, update=derived))
            result.updated += 1
        else:
            tags: List[str] = []
            if seed_tags_from_header:
                header = extractor.parse_header_block(text)
                if header is not None:
                    tags = list(header.tags)
            result.entries.append(
                PageEntry(id=obs.name, tags=tags, created_at=obs.created_at, **derived)
            )
            result.added += 1

    observed = {obs.name for obs in observations}
    result.removed = sum(1 for page_id in previous if page_id not in observed)
    return result


class Reconciler:
    """Brings index.json and toc.json files in line with the directories they describe.

    A saved record's lastModified is whatever the clock returns at save time.
    It only moves forward as far as that clock does, so a wall clock stepped
    backwards yields an earlier value than the one already on disk.
    """

    def __init__(
        self,
        store: Optional[MetadataStore] = None,
        scanner: Optional[DirectoryScanner] = None,
        content_provider: Optional[FileContentProvider] = None,
        extractor: Optional[ContentExtractor] = None,
        clock: Optional[Clock] = None,
        default_icon: Optional[str] = None,
        default_color: Optional[str] = None,
        seed_page_tags_from_header: Optional[bool] = None,
    ):
        self.store = store or MetadataStore()
        self.scanner = scanner or DirectoryScanner()
        self.content_provider = content_provider or FileContentProvider()
        self.extractor = extractor or ContentExtractor()
        self.clock: Clock = clock or utc_now
        self.default_icon = default_icon if default_icon is not None else config.default_icon
        self.default_color = (
            default_color if default_color is not None else config.default_color
        )
        self.seed_page_tags_from_header = (
            seed_page_tags_from_header
            if seed_page_tags_from_header is not None
            else config.seed_page_tags_from_header
        )

    def reconcile(self, root: Union[str, Path], level: RecordLevel) -> ReconcileStats:
        """Scan ``root`` and merge the result into its record at ``level``.

        Raises:
            StorageError: If the directory cannot be scanned or the record
                cannot be read or written. Nothing is saved past the initial
                empty record in that case.
        """
        if level == RecordLevel.LIBRARY:
            return self.reconcile_library(root)
        return self.reconcile_notebook(root)

    def reconcile_library(self, root: Union[str, Path]) -> ReconcileStats:
        """Reconcile a library index against its notebook directories."""
        root = Path(root)
        index = self.load_or_create_library(root)

        observations = self.scanner.scan_children(root, ScanKind.NOTEBOOKS)
        note_counts = {
            obs.name: self.scanner.count_pages(root / obs.name) for obs in observations
        }
        merged = merge_notebooks(
            index.notebooks,
            observations,
            note_counts,
            default_icon=self.default_icon,
            default_color=self.default_color,
        )

        index.notebooks = merged.entries
        index.last_modified = self.clock()
        self.store.save_library_index(index, root)
        return self._stats(RecordLevel.LIBRARY, root, merged)

    def reconcile_notebook(self, root: Union[str, Path]) -> ReconcileStats:
        """Reconcile a notebook TOC against its page files."""
        root = Path(root)
        toc = self.load_or_create_toc(root)

        observations = self.scanner.scan_children(root, ScanKind.PAGES)
        contents = {
            obs.name: self.content_provider.read(root, obs.name) for obs in observations
        }
        merged = merge_pages(
            toc.pages,
            observations,
            contents,
            self.extractor,
            seed_tags_from_header=self.seed_page_tags_from_header,
        )

        toc.pages = merged.entries
        toc.last_modified = self.clock()
        self.store.save_notebook_toc(toc, root)
        return self._stats(RecordLevel.NOTEBOOK, root, merged)

    def reconcile_all(self, library_root: Union[str, Path]) -> List[ReconcileStats]:
        """Reconcile a library and then every notebook it lists."""
        library_root = Path(library_root)
        results = [self.reconcile_library(library_root)]
        index = self.store.load_library_index(library_root)
        for notebook in index.notebooks:
            results.append(self.reconcile_notebook(library_root / notebook.id))
        return results

    def load_or_create_library(self, root: Union[str, Path]) -> LibraryIndex:
        """Load a library index, persisting an empty one first if there is none."""
        root = Path(root)
        try:
            return self.store.load_library_index(root)
        except RecordNotFoundError:
            index = LibraryIndex.new(_directory_name(root), self.clock())
            self.store.save_library_index(index, root)
            logger.info(f"Created library index for {root}")
            return index

    def load_or_create_toc(self, root: Union[str, Path]) -> NotebookTOC:
        """Load a notebook TOC, persisting an empty one first if there is none."""
        root = Path(root)
        try:
            return self.store.load_notebook_toc(root)
        except RecordNotFoundError:
            toc = NotebookTOC.new(_directory_name(root), self.clock())
            self.store.save_notebook_toc(toc, root)
            logger.info(f"Created notebook TOC for {root}")
            return toc

    @staticmethod
    def _stats(level: RecordLevel, root: Path, merged: MergeResult) -> ReconcileStats:
        stats = ReconcileStats(
            level=level,
            root=str(root),
            added=merged.added,
            updated=merged.updated,
            removed=merged.removed,
            total=len(merged.entries),
        )
        logger.info(
            f"Reconciled {level.value} {root.name}: {stats.total} entries "
            f"(+{stats.added} ~{stats.updated} -{stats.removed})"
        )
        return stats


def _directory_name(root: Path) -> str:
    return root.name or root.resolve().name
