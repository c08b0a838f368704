"""Derivation of page titles, previews and word counts from raw text.

Everything here is a pure function of the text passed in; reading files is
the content provider's job.
"""
import logging
from typing import Any, Dict, List, Optional

import frontmatter
import yaml
from pydantic import ValidationError as PydanticValidationError

from notevault.config import config
from notevault.models.schema import ExtractedContent, PageHeader

logger = logging.getLogger(__name__)


def _non_blank_lines(text: str) -> List[str]:
    return [line for line in text.splitlines() if line.strip()]


def strip_extension(filename: str, extension: str) -> str:
    """Drop ``extension`` from the end of ``filename`` if present."""
    if extension and filename.endswith(extension) and len(filename) > len(extension):
        return filename[: -len(extension)]
    return filename


class ContentExtractor:
    """Computes the derived display fields of a page."""

    def __init__(
        self,
        note_extension: Optional[str] = None,
        preview_line_count: Optional[int] = None,
        preview_max_chars: Optional[int] = None,
        header_delimiter: Optional[str] = None,
    ):
        self.note_extension = note_extension or config.note_extension
        self.preview_line_count = preview_line_count or config.preview_line_count
        self.preview_max_chars = (
            preview_max_chars
            if preview_max_chars is not None
            else config.preview_max_chars
        )
        self.header_delimiter = header_delimiter or config.header_delimiter

    def extract(self, text: str, fallback_name: str) -> ExtractedContent:
        """Derive title, preview and word count.

        Args:
            text: Full page text (may be empty).
            fallback_name: Page filename, used as the title when the text has
                no non-blank line.

        Returns:
            The title is the first non-blank line as written. The preview is
            the first few non-blank lines joined by single spaces and cut at
            a fixed number of characters, mid-word if need be. The word count
            covers the whole text.
        """
        lines = _non_blank_lines(text)
        title = lines[0] if lines else strip_extension(fallback_name, self.note_extension)
        preview = " ".join(lines[: self.preview_line_count])[: self.preview_max_chars]
        return ExtractedContent(
            title=title,
            preview=preview,
            word_count=len(text.split()),
        )

    def has_header_block(self, text: str) -> bool:
        """True iff the text opens with the header-block delimiter."""
        return text.startswith(self.header_delimiter)

    def parse_header_block(self, text: str) -> Optional[PageHeader]:
        """Parse the YAML header block at the top of a page.

        Returns:
            The header, or None when the page has none or it is malformed.
        """
        if not self.has_header_block(text):
            return None
        try:
            metadata = frontmatter.loads(text).metadata
        except (yaml.YAMLError, ValueError) as e:
            logger.warning(f"Malformed header block: {e}")
            return None
        if not metadata:
            return None

        fields: Dict[str, Any] = {
            "title": str(metadata["title"]) if metadata.get("title") is not None else None,
            "tags": metadata.get("tags"),
            "created": metadata.get("created"),
            "modified": metadata.get("modified"),
        }
        try:
            return PageHeader(**fields)
        except PydanticValidationError as e:
            logger.warning(f"Header block has invalid fields: {e.error_count()} error(s)")
            return None
