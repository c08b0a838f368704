"""Data models for the notebook index."""

import datetime
import os
from dataclasses import asdict, dataclass
from datetime import timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
    model_validator,
)

# Timestamps are always written in UTC with microseconds and a Z suffix so that
# logically equal records serialize to identical bytes.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The datetime converted to UTC (naive values are assumed to be UTC).
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value.astimezone(timezone.utc)


def format_timestamp(dt_value: datetime.datetime) -> str:
    """Render a datetime in the canonical on-disk form."""
    return ensure_timezone_aware(dt_value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Any) -> datetime.datetime:
    """Parse an on-disk timestamp.

    Accepts the canonical form, any ISO-8601 string with an offset (records
    written by older versions carry no fractional seconds), POSIX epoch
    numbers and datetime objects.

    Raises:
        ValueError: If the value is not a recognizable timestamp.
    """
    if isinstance(value, datetime.datetime):
        return ensure_timezone_aware(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return ensure_timezone_aware(datetime.datetime.fromisoformat(text))
    raise ValueError(f"Unrecognized timestamp: {value!r}")


_SEPARATORS = tuple(sep for sep in ("/", os.sep, os.altsep) if sep)


def validate_entry_id(value: str, field_name: str = "id") -> str:
    """Validate that an entry id names a direct child of a directory.

    Entry ids are directory and file names, so spaces, brackets, unicode and
    (on POSIX) backslashes are fine; the platform's path separators and
    relative references are not.

    Raises:
        ValueError: If the value cannot name a direct child of a directory.
    """
    if not value:
        raise ValueError(f"{field_name} cannot be empty")
    if value in (".", ".."):
        raise ValueError(f"{field_name} cannot be '.' or '..' (path traversal)")
    if any(sep in value for sep in _SEPARATORS):
        raise ValueError(f"{field_name} cannot contain path separators")
    if "\x00" in value:
        raise ValueError(f"{field_name} cannot contain NUL characters")
    return value


def normalize_tags(tags: Optional[Iterable[Any]]) -> List[str]:
    """Strip tags, drop empty ones and duplicates, keep first-seen order."""
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    seen: Dict[str, None] = {}
    for tag in tags:
        name = str(tag).strip()
        if name and name not in seen:
            seen[name] = None
    return list(seen)


class RecordLevel(str, Enum):
    """Which level of the hierarchy a record describes."""

    LIBRARY = "library"  # index.json over notebook directories
    NOTEBOOK = "notebook"  # toc.json over page files


class ScanKind(str, Enum):
    """Which children a directory scan should return."""

    NOTEBOOKS = "notebooks"
    PAGES = "pages"


class IndexModel(BaseModel):
    """Base for persisted models: camelCase keys, canonical timestamps."""

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("created_at", "last_modified", mode="before", check_fields=False)
    @classmethod
    def _parse_timestamps(cls, v: Any) -> datetime.datetime:
        return parse_timestamp(v)

    @field_validator("tags", mode="before", check_fields=False)
    @classmethod
    def _normalize_tags(cls, v: Any) -> List[str]:
        return normalize_tags(v)

    @field_serializer("created_at", "last_modified", check_fields=False)
    def _serialize_timestamps(self, v: datetime.datetime) -> str:
        return format_timestamp(v)

    def to_record(self) -> Dict[str, Any]:
        """Dump with on-disk key names."""
        return self.model_dump(mode="json", by_alias=True)


class NotebookEntry(IndexModel):
    """A notebook as listed in the library index.

    The id is the directory name. ``note_count``, ``created_at`` and
    ``last_modified`` come from the filesystem; the rest belongs to the user.
    """

    id: str = Field(..., alias="id", description="Directory name")
    display_name: str = Field(..., alias="displayName")
    description: str = Field(default="", alias="description")
    tags: List[str] = Field(default_factory=list, alias="tags")
    icon: Optional[str] = Field(default=None, alias="icon")
    color: Optional[str] = Field(default=None, alias="color")
    note_count: int = Field(default=0, ge=0, alias="noteCount")
    created_at: datetime.datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "createdDate", "created_at"),
    )
    last_modified: datetime.datetime = Field(
        default_factory=utc_now,
        alias="lastModified",
        validation_alias=AliasChoices("lastModified", "last_modified"),
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return validate_entry_id(v, "Notebook ID")


class PageEntry(IndexModel):
    """A page (note file) as listed in a notebook TOC."""

    id: str = Field(..., alias="id", description="File name")
    title: str = Field(..., alias="title")
    tags: List[str] = Field(default_factory=list, alias="tags")
    preview: str = Field(default="", alias="preview")
    word_count: int = Field(default=0, ge=0, alias="wordCount")
    created_at: datetime.datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "createdDate", "created_at"),
    )
    last_modified: datetime.datetime = Field(
        default_factory=utc_now,
        alias="lastModified",
        validation_alias=AliasChoices("lastModified", "last_modified"),
    )
    has_header_block: bool = Field(
        default=False,
        alias="hasHeaderBlock",
        validation_alias=AliasChoices(
            "hasHeaderBlock", "hasFrontmatter", "has_header_block"
        ),
    )

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        return validate_entry_id(v, "Page ID")


def _ensure_unique_ids(entries: Iterable[Any], kind: str) -> None:
    seen = set()
    for entry in entries:
        if entry.id in seen:
            raise ValueError(f"Duplicate {kind} id '{entry.id}'")
        seen.add(entry.id)


class LibraryIndex(IndexModel):
    """The record stored at a library root."""

    name: str = Field(
        ...,
        alias="name",
        validation_alias=AliasChoices("name", "libraryName"),
    )
    created_at: datetime.datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "createdDate", "created_at"),
    )
    last_modified: datetime.datetime = Field(
        default_factory=utc_now,
        alias="lastModified",
        validation_alias=AliasChoices("lastModified", "last_modified"),
    )
    notebooks: List[NotebookEntry] = Field(default_factory=list, alias="notebooks")

    @model_validator(mode="after")
    def _unique_notebooks(self) -> "LibraryIndex":
        _ensure_unique_ids(self.notebooks, "notebook")
        return self

    @classmethod
    def new(cls, name: str, now: datetime.datetime) -> "LibraryIndex":
        """An empty index created at ``now``."""
        return cls(name=name, created_at=now, last_modified=now, notebooks=[])

    def find_notebook(self, notebook_id: str) -> Optional[NotebookEntry]:
        for notebook in self.notebooks:
            if notebook.id == notebook_id:
                return notebook
        return None


class NotebookTOC(IndexModel):
    """The table-of-contents record stored at a notebook root."""

    name: str = Field(
        ...,
        alias="name",
        validation_alias=AliasChoices("name", "notebookName"),
    )
    display_name: str = Field(..., alias="displayName")
    description: str = Field(default="", alias="description")
    tags: List[str] = Field(default_factory=list, alias="tags")
    created_at: datetime.datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "createdDate", "created_at"),
    )
    last_modified: datetime.datetime = Field(
        default_factory=utc_now,
        alias="lastModified",
        validation_alias=AliasChoices("lastModified", "last_modified"),
    )
    pages: List[PageEntry] = Field(default_factory=list, alias="pages")

    @model_validator(mode="after")
    def _unique_pages(self) -> "NotebookTOC":
        _ensure_unique_ids(self.pages, "page")
        return self

    @classmethod
    def new(cls, name: str, now: datetime.datetime) -> "NotebookTOC":
        """An empty TOC created at ``now``, displayed under its directory name."""
        return cls(
            name=name,
            display_name=name,
            description="",
            tags=[],
            created_at=now,
            last_modified=now,
            pages=[],
        )

    def find_page(self, page_id: str) -> Optional[PageEntry]:
        for page in self.pages:
            if page.id == page_id:
                return page
        return None

    def sort_pages(self) -> None:
        """Order pages newest first; equal timestamps fall back to id."""
        by_id = sorted(self.pages, key=lambda p: p.id)
        self.pages = sorted(by_id, key=lambda p: p.last_modified, reverse=True)


class PageHeader(BaseModel):
    """YAML header block at the top of a page.

    Format::

        ---
        title: My Note Title
        tags: [tag1, tag2]
        created: 2025-11-07T14:30:00Z
        modified: 2025-11-07T15:45:00Z
        ---
    """

    title: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created: Optional[datetime.datetime] = None
    modified: Optional[datetime.datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v: Any) -> List[str]:
        return normalize_tags(v)

    @field_validator("created", "modified", mode="before")
    @classmethod
    def _parse_optional_timestamp(cls, v: Any) -> Optional[datetime.datetime]:
        if v is None or v == "":
            return None
        if isinstance(v, datetime.date) and not isinstance(v, datetime.datetime):
            v = datetime.datetime(v.year, v.month, v.day)
        return parse_timestamp(v)


class _FieldsUpdate(BaseModel):
    """Fields shared by the partial-update payloads."""

    display_name: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None

    model_config = {"extra": "forbid"}

    @field_validator("display_name", "description", "tags", mode="before")
    @classmethod
    def _not_null(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("display_name")
    @classmethod
    def _display_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Display name cannot be empty")
        return v

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)

    def changes(self) -> Dict[str, Any]:
        """The explicitly set fields."""
        return self.model_dump(exclude_unset=True)


class NotebookFieldsUpdate(_FieldsUpdate):
    """Partial update of a notebook entry's user-editable fields.

    Only fields explicitly passed are applied. ``icon`` and ``color`` may be
    set to None to clear them; the other fields cannot be null.
    """

    icon: Optional[str] = None
    color: Optional[str] = None


class TocFieldsUpdate(_FieldsUpdate):
    """Partial update of a notebook TOC's own display name, description and tags."""


@dataclass(frozen=True)
class ScanEntry:
    """One directory child as observed on disk."""

    name: str
    is_directory: bool
    created_at: datetime.datetime
    modified_at: datetime.datetime


@dataclass(frozen=True)
class ExtractedContent:
    """Display facts derived from a page's text."""

    title: str
    preview: str
    word_count: int


@dataclass
class ReconcileStats:
    """Outcome of one reconciliation."""

    level: RecordLevel
    root: str
    added: int = 0
    updated: int = 0
    removed: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["level"] = self.level.value
        return data
