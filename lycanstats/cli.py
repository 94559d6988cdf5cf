from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .config import DATA_SOURCES, sync_config_from_env
from .log import setup_logging
from .pipeline import PipelineError, generate_titles
from .sync import SyncError, sync_data_source

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lycans match-log sync and player titles")
    parser.add_argument("--base-dir", default=".", help="Directory holding the data folders")
    parser.add_argument("--verbose", action="store_true", help="Print debug logs")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Fetch session files and merge them into gameLog.json")
    sync.add_argument(
        "source", nargs="?", default="main", help=f"Data source ({', '.join(DATA_SOURCES)})"
    )
    sync.add_argument("--full", "-f", action="store_true", help="Force a full resync")

    titles = sub.add_parser("titles", help="Generate playerTitles.json from gameLog.json")
    titles.add_argument(
        "source", nargs="?", default="main", help=f"Data source ({', '.join(DATA_SOURCES)})"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    load_dotenv()
    args = _parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)
    base_dir = Path(args.base_dir)

    if args.command == "sync":
        try:
            sync_data_source(
                args.source, sync_config_from_env(), base_dir=base_dir, full_sync=args.full
            )
        except SyncError as exc:
            logger.error(f"Sync failed: {exc}")
            raise SystemExit(f"Sync failed: {exc}")
        return

    try:
        generate_titles(args.source, base_dir=base_dir)
    except (SyncError, PipelineError) as exc:
        logger.error(f"Title generation failed: {exc}")
        raise SystemExit(f"Title generation failed: {exc}")


if __name__ == "__main__":
    main()
