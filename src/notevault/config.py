"""Configuration module for notevault."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from notevault import __version__
from notevault.exceptions import ConfigurationError

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, lives alongside the logs
_USER_ENV = Path.home() / ".notevault" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class NotevaultConfig(BaseModel):
    """Configuration for the notebook index."""

    # Library root scanned when no explicit path is given
    library_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEVAULT_LIBRARY_DIR", "."))
    )
    # Only files with this extension are pages
    note_extension: str = Field(
        default_factory=lambda: os.getenv("NOTEVAULT_NOTE_EXTENSION", ".md")
    )
    # Reserved per-notebook directory for binary assets, never a notebook
    media_dir_name: str = Field(
        default_factory=lambda: os.getenv("NOTEVAULT_MEDIA_DIR", "media")
    )
    # Record file names
    index_filename: str = Field(default="index.json")
    toc_filename: str = Field(default="toc.json")
    # Content extraction
    header_delimiter: str = Field(default="---")
    preview_line_count: int = Field(default=3)
    preview_max_chars: int = Field(default=200)
    # Defaults for newly discovered notebooks
    default_icon: Optional[str] = Field(
        default_factory=lambda: os.getenv("NOTEVAULT_DEFAULT_ICON", "\U0001f4d3")
    )
    default_color: Optional[str] = Field(
        default_factory=lambda: os.getenv("NOTEVAULT_DEFAULT_COLOR", "blue")
    )
    # When True, a page seen for the first time takes its tags from its
    # YAML header block instead of starting empty
    seed_page_tags_from_header: bool = Field(
        default_factory=lambda: _env_flag("NOTEVAULT_SEED_PAGE_TAGS", "false")
    )
    # Server configuration
    server_name: str = Field(
        default_factory=lambda: os.getenv("NOTEVAULT_SERVER_NAME", "notevault")
    )
    server_version: str = Field(default=__version__)
    log_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEVAULT_LOG_DIR", str(Path.home() / ".notevault" / "logs"))
        )
    )

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def _validate_layout(self) -> "NotevaultConfig":
        """Reject settings that would make the directory layout ambiguous.

        Raises:
            ConfigurationError: Naming the offending setting.
        """
        if not self.note_extension.startswith(".") or len(self.note_extension) < 2:
            raise ConfigurationError(
                f"note_extension must start with '.', got {self.note_extension!r}",
                config_key="note_extension",
            )
        if not self.media_dir_name or any(
            sep in self.media_dir_name for sep in ("/", "\\")
        ):
            raise ConfigurationError(
                "media_dir_name must be a single directory name",
                config_key="media_dir_name",
            )
        if self.preview_line_count < 1:
            raise ConfigurationError(
                "preview_line_count must be >= 1", config_key="preview_line_count"
            )
        if self.preview_max_chars < 0:
            raise ConfigurationError(
                "preview_max_chars must be >= 0", config_key="preview_max_chars"
            )
        if self.index_filename == self.toc_filename:
            logger.warning(
                "index_filename and toc_filename are both %r; a notebook "
                "directory used as a library will share its record file",
                self.index_filename,
            )
        return self


# Create a global config instance
config = NotevaultConfig()
