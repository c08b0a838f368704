"""Common test fixtures for notevault."""

from pathlib import Path

import pytest

from fakes import FakeClock
from notevault.config import NotevaultConfig, config
from notevault.observability import metrics
from notevault.services.content_extractor import ContentExtractor
from notevault.services.index_service import IndexService
from notevault.services.mutators import MetadataMutator
from notevault.services.reconciler import Reconciler
from notevault.storage.content_provider import FileContentProvider
from notevault.storage.metadata_store import MetadataStore
from notevault.storage.scanner import DirectoryScanner


@pytest.fixture
def library_dir(tmp_path) -> Path:
    """An empty library directory named ``Lib``."""
    lib = tmp_path / "Lib"
    lib.mkdir()
    return lib


@pytest.fixture
def test_config(library_dir, monkeypatch):
    """Point the global config at the temporary library (auto-restored)."""
    monkeypatch.setattr(config, "library_dir", library_dir)
    monkeypatch.setattr(config, "seed_page_tags_from_header", False)
    yield config


@pytest.fixture
def settings(library_dir) -> NotevaultConfig:
    """A standalone config with the default layout."""
    return NotevaultConfig(
        library_dir=library_dir,
        note_extension=".md",
        media_dir_name="media",
        default_icon="\U0001f4d3",
        default_color="blue",
        seed_page_tags_from_header=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MetadataStore:
    return MetadataStore("index.json", "toc.json")


@pytest.fixture
def scanner() -> DirectoryScanner:
    return DirectoryScanner(".md", "media")


@pytest.fixture
def extractor() -> ContentExtractor:
    return ContentExtractor(
        note_extension=".md",
        preview_line_count=3,
        preview_max_chars=200,
        header_delimiter="---",
    )


@pytest.fixture
def reconciler(store, scanner, extractor, clock) -> Reconciler:
    return Reconciler(
        store=store,
        scanner=scanner,
        content_provider=FileContentProvider(),
        extractor=extractor,
        clock=clock,
        default_icon="\U0001f4d3",
        default_color="blue",
        seed_page_tags_from_header=False,
    )


@pytest.fixture
def mutator(store, clock) -> MetadataMutator:
    return MetadataMutator(store=store, clock=clock)


@pytest.fixture
def index_service(library_dir, settings, clock) -> IndexService:
    return IndexService(library_dir=library_dir, settings=settings, clock=clock)


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector independent between tests."""
    metrics.reset()
    yield
    metrics.reset()
