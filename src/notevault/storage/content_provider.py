"""Raw page text for content extraction."""
import logging
from pathlib import Path
from typing import Optional, Union

from notevault.exceptions import UnreadableContentError

logger = logging.getLogger(__name__)


class FileContentProvider:
    """Reads page files as UTF-8 text.

    ``read`` never raises: a missing, unreadable or undecodable page is logged
    and reported as None, and the reconciler indexes it as empty.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def read(self, notebook_root: Union[str, Path], page_id: str) -> Optional[str]:
        """Return the text of ``page_id`` inside ``notebook_root``, or None."""
        try:
            return self.read_strict(notebook_root, page_id)
        except UnreadableContentError as e:
            logger.warning(str(e))
            return None

    def read_strict(self, notebook_root: Union[str, Path], page_id: str) -> str:
        """Return the text of a page.

        Raises:
            UnreadableContentError: If the file is gone, unreadable, or not
                valid text in the configured encoding.
        """
        file_path = Path(notebook_root) / page_id
        try:
            with open(file_path, "r", encoding=self.encoding) as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise UnreadableContentError(page_id, original_error=e) from e
