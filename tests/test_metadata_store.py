"""Tests for record persistence."""
import datetime
import json
import os
from datetime import timezone
from unittest.mock import patch

import pytest

from notevault.exceptions import ErrorCode, RecordNotFoundError, StorageError
from notevault.models.schema import (
    LibraryIndex,
    NotebookEntry,
    NotebookTOC,
    PageEntry,
    RecordLevel,
)
from notevault.storage.metadata_store import MetadataStore, atomic_writer

T0 = datetime.datetime(2025, 11, 7, 14, 30, 0, tzinfo=timezone.utc)


def _index() -> LibraryIndex:
    index = LibraryIndex.new("Lib", T0)
    index.notebooks = [
        NotebookEntry(
            id="Notes",
            display_name="Notes été",
            tags=["Work"],
            icon="\U0001f4d3",
            color="blue",
            note_count=2,
            created_at=T0,
            last_modified=T0,
        )
    ]
    return index


class TestLoad:
    """Tests for MetadataStore loading."""

    def test_missing_record_raises_not_found(self, store, library_dir):
        with pytest.raises(RecordNotFoundError) as exc_info:
            store.load_library_index(library_dir)
        assert exc_info.value.code == ErrorCode.RECORD_NOT_FOUND

    def test_missing_root_raises_not_found(self, store, tmp_path):
        with pytest.raises(RecordNotFoundError):
            store.load_notebook_toc(tmp_path / "nowhere")

    def test_corrupted_json_raises_storage_error(self, store, library_dir):
        (library_dir / "index.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError) as exc_info:
            store.load_library_index(library_dir)
        assert exc_info.value.code == ErrorCode.RECORD_CORRUPTED

    def test_schema_violation_raises_storage_error(self, store, library_dir):
        (library_dir / "index.json").write_text(
            json.dumps({"name": "Lib", "notebooks": [{"id": "x"}]}), encoding="utf-8"
        )
        with pytest.raises(StorageError) as exc_info:
            store.load_library_index(library_dir)
        assert exc_info.value.code == ErrorCode.RECORD_CORRUPTED

    def test_reads_record_written_by_older_versions(self, store, library_dir):
        legacy = {
            "libraryName": "Lib",
            "createdDate": "2025-11-07T14:30:00Z",
            "lastModified": "2025-11-07T14:30:00Z",
            "notebooks": [
                {
                    "id": "Notes",
                    "displayName": "Notes",
                    "description": "",
                    "tags": ["Work"],
                    "icon": "\U0001f4d3",
                    "color": "blue",
                    "noteCount": 1,
                    "lastModified": "2025-11-07T14:30:00Z",
                    "createdDate": "2025-11-07T14:30:00Z",
                }
            ],
        }
        (library_dir / "index.json").write_text(json.dumps(legacy), encoding="utf-8")
        index = store.load_library_index(library_dir)
        assert index.name == "Lib"
        assert index.notebooks[0].tags == ["Work"]
        assert index.notebooks[0].created_at == T0


class TestSave:
    """Tests for MetadataStore saving."""

    def test_round_trip(self, store, library_dir):
        index = _index()
        store.save_library_index(index, library_dir)
        loaded = store.load_library_index(library_dir)
        assert loaded.to_record() == index.to_record()
        assert loaded.notebooks[0].created_at == T0

    def test_output_is_canonical(self, store, library_dir):
        path = store.save_library_index(_index(), library_dir)
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        assert list(data) == sorted(data)
        assert list(data["notebooks"][0]) == sorted(data["notebooks"][0])
        assert data["createdAt"] == "2025-11-07T14:30:00.000000Z"
        assert "été" in text  # non-ASCII kept literal
        assert text.endswith("}\n")

    def test_repeated_saves_are_byte_identical(self, store, library_dir):
        path = store.save_library_index(_index(), library_dir)
        first = path.read_bytes()
        store.save_library_index(store.load_library_index(library_dir), library_dir)
        assert path.read_bytes() == first

    def test_toc_saved_newest_first(self, store, library_dir):
        toc = NotebookTOC.new("Notes", T0)
        toc.pages = [
            PageEntry(id="a.md", title="a", created_at=T0, last_modified=T0),
            PageEntry(
                id="b.md",
                title="b",
                created_at=T0,
                last_modified=T0 + datetime.timedelta(days=1),
            ),
        ]
        store.save_notebook_toc(toc, library_dir)
        data = json.loads((library_dir / "toc.json").read_text(encoding="utf-8"))
        assert [p["id"] for p in data["pages"]] == ["b.md", "a.md"]

    def test_no_temporary_files_left_behind(self, store, library_dir):
        store.save_library_index(_index(), library_dir)
        assert sorted(os.listdir(library_dir)) == ["index.json"]

    def test_save_into_missing_directory_fails(self, store, tmp_path):
        with pytest.raises(StorageError) as exc_info:
            store.save_library_index(_index(), tmp_path / "missing")
        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED

    def test_failed_replace_keeps_previous_record(self, store, library_dir):
        path = store.save_library_index(_index(), library_dir)
        before = path.read_bytes()

        changed = _index()
        changed.notebooks[0].tags = ["Changed"]
        with patch(
            "notevault.storage.metadata_store.os.replace",
            side_effect=OSError("disk full"),
        ):
            with pytest.raises(StorageError):
                store.save_library_index(changed, library_dir)

        assert path.read_bytes() == before
        assert sorted(os.listdir(library_dir)) == ["index.json"]

    def test_record_path(self, store, library_dir):
        assert store.record_path(library_dir, RecordLevel.LIBRARY).name == "index.json"
        assert store.record_path(library_dir, RecordLevel.NOTEBOOK).name == "toc.json"

    def test_custom_filenames(self, library_dir):
        custom = MetadataStore(index_filename="library.json", toc_filename="contents.json")
        custom.save_library_index(_index(), library_dir)
        assert (library_dir / "library.json").is_file()


class TestAtomicWriter:
    """Tests for the atomic_writer context manager."""

    def test_exception_in_block_leaves_target_untouched(self, tmp_path):
        target = tmp_path / "record.json"
        target.write_bytes(b"old")
        with pytest.raises(RuntimeError):
            with atomic_writer(target) as handle:
                handle.write(b"new partial")
                raise RuntimeError("interrupted")
        assert target.read_bytes() == b"old"
        assert os.listdir(tmp_path) == ["record.json"]

    def test_preserves_existing_permissions(self, tmp_path):
        target = tmp_path / "record.json"
        target.write_bytes(b"old")
        os.chmod(target, 0o640)
        with atomic_writer(target) as handle:
            handle.write(b"new")
        assert target.read_bytes() == b"new"
        assert (target.stat().st_mode & 0o777) == 0o640
