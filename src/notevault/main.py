#!/usr/bin/env python
"""Main entry point for notevault."""
import argparse
import logging
import os
import sys
from pathlib import Path

from notevault.config import config
from notevault.exceptions import NotevaultError
from notevault.observability import configure_logging


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Notebook library index")
    parser.add_argument(
        "--library-dir",
        help="Library directory containing notebook folders",
        type=str,
        default=os.environ.get("NOTEVAULT_LIBRARY_DIR"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NOTEVAULT_LOG_LEVEL", "INFO"),
    )
    parser.add_argument(
        "--reconcile",
        help="Reconcile the library and all notebooks once, then exit",
        action="store_true",
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.library_dir:
        config.library_dir = Path(args.library_dir)


def run_reconcile() -> int:
    """Reconcile everything under the configured library; return an exit status."""
    from notevault.services.index_service import IndexService

    logger = logging.getLogger(__name__)
    service = IndexService()
    try:
        results = service.reconcile_all()
    except NotevaultError as e:
        logger.error(f"Reconciliation failed: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    for stats in results:
        print(
            f"{stats.level.value}\t{Path(stats.root).name}\t{stats.total}\t"
            f"+{stats.added} ~{stats.updated} -{stats.removed}"
        )
    return 0


def main(argv=None):
    """Run the notevault MCP server, or a one-off reconciliation."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    library_dir = config.library_dir
    if not library_dir.is_dir():
        logger.error(f"Library directory does not exist: {library_dir}")
        sys.exit(1)

    if args.reconcile:
        sys.exit(run_reconcile())

    from notevault.server.mcp_server import NotevaultMcpServer

    try:
        logger.info(f"Starting notevault MCP server for {library_dir}")
        server = NotevaultMcpServer()
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
