"""MCP server exposing the notebook index."""

import json
import logging
import uuid
from pathlib import Path
from typing import Optional

from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError as PydanticValidationError

from notevault.config import config
from notevault.exceptions import NotevaultError
from notevault.models.schema import (
    NotebookFieldsUpdate,
    ReconcileStats,
    TocFieldsUpdate,
    normalize_tags,
)
from notevault.observability import metrics, timed_operation
from notevault.services.index_service import IndexService

logger = logging.getLogger(__name__)


def _format_stats(stats: ReconcileStats) -> str:
    return (
        f"{stats.level.value} '{Path(stats.root).name}': {stats.total} entries "
        f"({stats.added} added, {stats.updated} updated, {stats.removed} removed)"
    )


def _parse_tags(tags: Optional[str]) -> Optional[list]:
    if tags is None:
        return None
    return normalize_tags(tags)


class NotevaultMcpServer:
    """MCP server for a notebook library."""

    def __init__(self, library_dir: Optional[Path] = None):
        """Initialize the MCP server.

        Args:
            library_dir: Library root. Defaults to config.library_dir.
        """
        self.mcp = FastMCP(config.server_name)
        self.index_service = IndexService(library_dir=library_dir)
        self._register_tools()

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Domain errors carry a message safe to show; anything else is logged
        with a short reference id and reported generically.
        """
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, NotevaultError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message}"
        elif isinstance(error, PydanticValidationError):
            logger.error(f"Validation error [{error_id}]: {error}")
            first = error.errors()[0] if error.errors() else {}
            return f"Error: Invalid input: {first.get('msg', 'validation failed')}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, (IOError, OSError)):
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _register_tools(self) -> None:
        """Register MCP tools."""

        @self.mcp.tool(name="nv_reconcile_library")
        def nv_reconcile_library() -> str:
            """Rescan the library for notebook directories and update index.json.

            Notebook display names, descriptions, tags, icons and colors are kept;
            note counts and modification times are refreshed.
            """
            try:
                stats = self.index_service.reconcile_library()
                return f"Reconciled {_format_stats(stats)}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="nv_reconcile_notebook")
        def nv_reconcile_notebook(notebook_id: str) -> str:
            """Rescan one notebook's pages and update its toc.json.

            Args:
                notebook_id: Directory name of the notebook
            """
            try:
                stats = self.index_service.reconcile_notebook(str(notebook_id))
                return f"Reconciled {_format_stats(stats)}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="nv_reconcile_all")
        def nv_reconcile_all() -> str:
            """Rescan the library and every notebook in it."""
            try:
                results = self.index_service.reconcile_all()
                lines = [f"Reconciled {len(results)} record(s):"]
                lines.extend(f"- {_format_stats(stats)}" for stats in results)
                return "\n".join(lines)
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="nv_get_library")
        def nv_get_library(format: str = "summary") -> str:
            """Show the library index.

            Args:
                format: "summary" (default) for a readable list, "json" for the
                    record exactly as stored
            """
            try:
                index = self.index_service.get_library_index()
                if format == "json":
                    return json.dumps(index.to_record(), indent=2, ensure_ascii=False)

                result = f"# {index.name}\n"
                result += f"Notebooks: {len(index.notebooks)}\n"
                result += f"Last modified: {index.last_modified.isoformat()}\n\n"
                for nb in index.notebooks:
                    icon = f"{nb.icon} " if nb.icon else ""
                    result += f"- {icon}{nb.display_name} (ID: {nb.id}, {nb.note_count} notes)"
                    if nb.tags:
                        result += f" [{', '.join(nb.tags)}]"
                    result += "\n"
                    if nb.description:
                        result += f"  {nb.description}\n"
                return result
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="nv_get_notebook")
        def nv_get_notebook(notebook_id: str, format: str = "summary") -> str:
            """Show a notebook's table of contents, newest pages first.

            Args:
                notebook_id: Directory name of the notebook
                format: "summary" (default) or "json"
            """
            try:
                toc = self.index_service.get_notebook_toc(str(notebook_id))
                if format == "json":
                    return json.dumps(toc.to_record(), indent=2, ensure_ascii=False)

                result = f"# {toc.display_name}\n"
                if toc.description:
                    result += f"{toc.description}\n"
                if toc.tags:
                    result += f"Tags: {', '.join(toc.tags)}\n"
                result += f"Pages: {len(toc.pages)}\n\n"
                for page in toc.pages:
                    result += (
                        f"- {page.title} (ID: {page.id}, {page.word_count} words, "
                        f"modified {page.last_modified.isoformat()})"
                    )
                    if page.tags:
                        result += f" [{', '.join(page.tags)}]"
                    result += "\n"
                    if page.preview:
                        result += f"  {page.preview}\n"
                return result
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="nv_update_notebook")
        def nv_update_notebook(
            notebook_id: str,
            display_name: Optional[str] = None,
            description: Optional[str] = None,
            tags: Optional[str] = None,
            icon: Optional[str] = None,
            color: Optional[str] = None,
        ) -> str:
            """Edit a notebook's user metadata. Omitted fields are left as they are.

            Args:
                notebook_id: Directory name of the notebook
                display_name: New display name
                description: New description
                tags: Comma-separated tags, replacing the current ones ("" clears them)
                icon: New icon (emoji or symbol name)
                color: New color identifier
            """
            try:
                changes = {
                    key: value
                    for key, value in (
                        ("display_name", display_name),
                        ("description", description),
                        ("tags", _parse_tags(tags)),
                        ("icon", icon),
                        ("color", color),
                    )
                    if value is not None
                }
                if not changes:
                    return "Error: No fields to update."
                notebook = self.index_service.update_notebook(
                    str(notebook_id), NotebookFieldsUpdate(**changes)
                )
                return (
                    f"Notebook '{notebook.id}' updated ({', '.join(sorted(changes))})"
                )
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="nv_update_page_tags")
        def nv_update_page_tags(notebook_id: str, page_id: str, tags: str) -> str:
            """Replace the tags of a page.

            Args:
                notebook_id: Directory name of the notebook
                page_id: File name of the page
                tags: Comma-separated tags ("" clears them)
            """
            try:
                page = self.index_service.update_page_tags(
                    str(notebook_id), str(page_id), normalize_tags(tags)
                )
                shown = ", ".join(page.tags) if page.tags else "none"
                return f"Tags of page '{page.id}' set to: {shown}"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="nv_update_notebook_toc")
        def nv_update_notebook_toc(
            notebook_id: str,
            display_name: Optional[str] = None,
            description: Optional[str] = None,
            tags: Optional[str] = None,
        ) -> str:
            """Edit the display name, description or tags stored in a notebook's toc.json.

            Args:
                notebook_id: Directory name of the notebook
                display_name: New display name
                description: New description
                tags: Comma-separated tags, replacing the current ones
            """
            try:
                changes = {
                    key: value
                    for key, value in (
                        ("display_name", display_name),
                        ("description", description),
                        ("tags", _parse_tags(tags)),
                    )
                    if value is not None
                }
                if not changes:
                    return "Error: No fields to update."
                toc = self.index_service.update_notebook_toc(
                    str(notebook_id), TocFieldsUpdate(**changes)
                )
                return f"Notebook TOC '{toc.name}' updated ({', '.join(sorted(changes))})"
            except Exception as e:
                return self.format_error_response(e)

        @self.mcp.tool(name="nv_status")
        def nv_status() -> str:
            """Show operation counts, error rates and timings since startup."""
            with timed_operation("nv_status"):
                summary = metrics.get_summary()
                result = "# notevault status\n"
                result += f"Version: {config.server_version}\n"
                result += f"Library: {self.index_service.library_dir}\n"
                result += f"Uptime: {summary['uptime_seconds']:.0f}s\n"
                result += (
                    f"Operations: {summary['total_operations']} "
                    f"({summary['total_errors']} failed)\n"
                )
                for op, data in sorted(metrics.get_metrics().items()):
                    result += (
                        f"- {op}: {data['count']} calls, "
                        f"avg {data['avg_duration_ms']}ms"
                    )
                    if data["last_error"]:
                        result += f", last error: {data['last_error']}"
                    result += "\n"
                return result

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
