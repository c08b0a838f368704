"""Tests for the IndexService facade."""
import pytest

from fakes import write_page
from notevault.config import NotevaultConfig
from notevault.exceptions import ErrorCode, StorageError, ValidationError
from notevault.models.schema import RecordLevel, TocFieldsUpdate
from notevault.observability import metrics
from notevault.services.index_service import IndexService


class TestNotebookPath:
    """Tests for resolving notebook ids to directories."""

    def test_plain_id(self, index_service, library_dir):
        assert index_service.notebook_path("My Notes") == library_dir / "My Notes"

    @pytest.mark.parametrize("notebook_id", ["..", ".", "a/b", "x\\y", "..\\x", "a\x00b"])
    def test_traversal_id_rejected(self, index_service, notebook_id):
        with pytest.raises(ValidationError) as exc_info:
            index_service.notebook_path(notebook_id)
        assert exc_info.value.code == ErrorCode.PATH_TRAVERSAL_DETECTED
        assert exc_info.value.field == "notebook_id"

    @pytest.mark.parametrize("notebook_id", ["", ".x", ".git", "media"])
    def test_non_notebook_id_rejected(self, index_service, notebook_id):
        with pytest.raises(ValidationError) as exc_info:
            index_service.notebook_path(notebook_id)
        assert exc_info.value.code == ErrorCode.VALIDATION_FAILED
        assert exc_info.value.field == "notebook_id"

    def test_configured_media_name_rejected(self, library_dir):
        service = IndexService(library_dir, settings=NotevaultConfig(media_dir_name="assets"))
        with pytest.raises(ValidationError):
            service.notebook_path("assets")
        assert service.notebook_path("media") == library_dir / "media"

    def test_traversal_never_touches_disk(self, index_service, library_dir):
        with pytest.raises(ValidationError):
            index_service.update_page_tags("..", "a.md", ["x"])
        assert not (library_dir.parent / "toc.json").exists()


class TestSettings:
    """The service builds its components from a config object."""

    def test_custom_layout(self, tmp_path, clock):
        library = tmp_path / "Vault"
        write_page(library / "Notes", "a.txt", "Plain text page")
        write_page(library / "Notes", "b.md", "ignored")
        settings = NotevaultConfig(
            library_dir=library,
            note_extension=".txt",
            index_filename="library.json",
            toc_filename="contents.json",
            default_icon="\u2605",
            default_color="gold",
        )
        service = IndexService(settings=settings, clock=clock)

        service.reconcile_all()

        assert (library / "library.json").is_file()
        assert (library / "Notes" / "contents.json").is_file()
        notebook = service.get_library_index().notebooks[0]
        assert notebook.note_count == 1
        assert (notebook.icon, notebook.color) == ("\u2605", "gold")
        assert service.get_notebook_toc("Notes").pages[0].id == "a.txt"

    def test_explicit_library_dir_wins(self, tmp_path, settings, clock):
        other = tmp_path / "Other"
        other.mkdir()
        service = IndexService(library_dir=other, settings=settings, clock=clock)
        assert service.library_dir == other


class TestOperations:
    """Service calls are timed and delegate to the reconciler and mutator."""

    def test_reconcile_dispatch(self, index_service, library_dir):
        write_page(library_dir / "Notes", "a.md", "A")
        assert index_service.reconcile_library().level == RecordLevel.LIBRARY
        stats = index_service.reconcile_notebook("Notes")
        assert stats.level == RecordLevel.NOTEBOOK
        assert stats.total == 1

    def test_metrics_recorded(self, index_service, library_dir):
        index_service.reconcile_library()
        with pytest.raises(StorageError):
            index_service.reconcile_notebook("Missing")

        data = metrics.get_metrics()
        assert data["reconcile_library"]["success_count"] == 1
        assert data["reconcile_notebook"]["error_count"] == 1

    def test_update_notebook_toc(self, index_service, library_dir):
        write_page(library_dir / "Notes", "a.md", "A")
        index_service.reconcile_notebook("Notes")
        toc = index_service.update_notebook_toc(
            "Notes", TocFieldsUpdate(description="Meeting notes")
        )
        assert toc.description == "Meeting notes"
        assert index_service.get_notebook_toc("Notes").description == "Meeting notes"
