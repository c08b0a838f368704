"""Tests for targeted metadata edits."""
import datetime
from datetime import timezone

import pytest

from fakes import START, write_page
from notevault.exceptions import EntryNotFoundError, ErrorCode, RecordNotFoundError
from notevault.models.schema import NotebookFieldsUpdate, TocFieldsUpdate

T0 = datetime.datetime(2025, 11, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def reconciled_library(reconciler, library_dir):
    """A library with one notebook holding one page, both reconciled."""
    write_page(library_dir / "Notes", "a.md", "# Hello\nworld", modified=T0)
    reconciler.reconcile_all(library_dir)
    return library_dir


class TestUpdateNotebookFields:
    """Tests for editing a notebook entry of the library index."""

    def test_partial_update_keeps_other_fields(self, mutator, store, reconciled_library, clock):
        clock.advance(30)
        entry = mutator.update_notebook_fields(
            reconciled_library, "Notes", NotebookFieldsUpdate(tags=["Work", "Work"])
        )

        assert entry.tags == ["Work"]
        saved = store.load_library_index(reconciled_library).find_notebook("Notes")
        assert saved.tags == ["Work"]
        assert saved.display_name == "Notes"
        assert saved.icon == "\U0001f4d3"
        assert saved.note_count == 1

    def test_bumps_entry_and_index_timestamps(self, mutator, store, reconciled_library, clock):
        now = clock.advance(30)
        mutator.update_notebook_fields(
            reconciled_library, "Notes", NotebookFieldsUpdate(display_name="Work")
        )

        index = store.load_library_index(reconciled_library)
        assert index.last_modified == now
        assert index.find_notebook("Notes").last_modified == now
        assert index.created_at == START

    def test_timestamps_follow_clock_backwards(self, mutator, store, reconciled_library, clock):
        earlier = clock.advance(-60)
        mutator.update_notebook_fields(
            reconciled_library, "Notes", NotebookFieldsUpdate(color="red")
        )

        index = store.load_library_index(reconciled_library)
        assert index.last_modified == earlier
        assert index.find_notebook("Notes").last_modified == earlier

    def test_several_fields_at_once(self, mutator, store, reconciled_library):
        mutator.update_notebook_fields(
            reconciled_library,
            "Notes",
            NotebookFieldsUpdate(
                display_name="Journal", description="Daily log", icon=None, color="green"
            ),
        )
        saved = store.load_library_index(reconciled_library).find_notebook("Notes")
        assert saved.display_name == "Journal"
        assert saved.description == "Daily log"
        assert saved.icon is None
        assert saved.color == "green"

    def test_unknown_notebook_leaves_file_untouched(self, mutator, reconciled_library):
        path = reconciled_library / "index.json"
        before = path.read_bytes()

        with pytest.raises(EntryNotFoundError) as exc_info:
            mutator.update_notebook_fields(
                reconciled_library, "Nope", NotebookFieldsUpdate(tags=["x"])
            )

        assert exc_info.value.code == ErrorCode.ENTRY_NOT_FOUND
        assert exc_info.value.kind == "notebook"
        assert path.read_bytes() == before

    def test_missing_index_raises_not_found(self, mutator, library_dir):
        with pytest.raises(RecordNotFoundError):
            mutator.update_notebook_fields(library_dir, "Notes", NotebookFieldsUpdate(tags=[]))
        assert not (library_dir / "index.json").exists()

    def test_rescan_preserves_mutated_fields(
        self, mutator, reconciler, store, reconciled_library
    ):
        mutator.update_notebook_fields(
            reconciled_library, "Notes", NotebookFieldsUpdate(description="Kept")
        )
        reconciler.reconcile_library(reconciled_library)
        saved = store.load_library_index(reconciled_library).find_notebook("Notes")
        assert saved.description == "Kept"


class TestUpdatePageTags:
    """Tests for replacing the tags of a page."""

    def test_replaces_tags(self, mutator, store, reconciled_library):
        notebook = reconciled_library / "Notes"
        mutator.update_page_tags(notebook, "a.md", ["one", "two"])
        page = mutator.update_page_tags(notebook, "a.md", ["three", " ", "three"])

        assert page.tags == ["three"]
        assert store.load_notebook_toc(notebook).find_page("a.md").tags == ["three"]

    def test_page_timestamp_unchanged(self, mutator, store, reconciled_library, clock):
        notebook = reconciled_library / "Notes"
        now = clock.advance(120)
        mutator.update_page_tags(notebook, "a.md", ["x"])

        toc = store.load_notebook_toc(notebook)
        assert toc.find_page("a.md").last_modified == T0
        assert toc.last_modified == now

    def test_unknown_page_leaves_file_untouched(self, mutator, reconciled_library):
        notebook = reconciled_library / "Notes"
        before = (notebook / "toc.json").read_bytes()

        with pytest.raises(EntryNotFoundError) as exc_info:
            mutator.update_page_tags(notebook, "missing.md", ["x"])

        assert exc_info.value.kind == "page"
        assert (notebook / "toc.json").read_bytes() == before

    def test_clearing_tags(self, mutator, reconciled_library):
        notebook = reconciled_library / "Notes"
        mutator.update_page_tags(notebook, "a.md", ["x"])
        assert mutator.update_page_tags(notebook, "a.md", []).tags == []


class TestUpdateTocFields:
    """Tests for editing a notebook TOC's own fields."""

    def test_updates_toc_header(self, mutator, store, reconciled_library, clock):
        notebook = reconciled_library / "Notes"
        now = clock.advance(5)
        toc = mutator.update_toc_fields(
            notebook, TocFieldsUpdate(display_name="My Notes", tags=["a"])
        )

        assert toc.display_name == "My Notes"
        saved = store.load_notebook_toc(notebook)
        assert saved.display_name == "My Notes"
        assert saved.tags == ["a"]
        assert saved.description == ""
        assert saved.name == "Notes"
        assert saved.last_modified == now
        assert len(saved.pages) == 1

    def test_missing_toc_raises_not_found(self, mutator, library_dir):
        (library_dir / "Empty").mkdir()
        with pytest.raises(RecordNotFoundError):
            mutator.update_toc_fields(library_dir / "Empty", TocFieldsUpdate(description="x"))


def test_clock_consulted_once_per_notebook_edit(mutator, reconciled_library, clock):
    calls = clock.calls
    mutator.update_notebook_fields(reconciled_library, "Notes", NotebookFieldsUpdate(tags=["t"]))
    assert clock.calls == calls + 1
