"""
main.py – riftgrab command-line entry point.
Discovers League client events and downloads their web-experience assets.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

# ── PyInstaller binary path resolution ──────────────────────────────────────
if hasattr(sys, "_MEIPASS"):
    BASE_PATH = sys._MEIPASS
else:
    BASE_PATH = os.path.abspath(".")

# Expose globally so services can locate bin/
os.environ.setdefault("RIFTGRAB_BASE", BASE_PATH)

from services.coordinator import NAVIGATION_URL, displayable_events
from services.event_processor import select_main_link
from services.fetch_service import create_client
from services.pipeline import Pipeline
from services.storage_service import MANIFESTS_DIR

logger = logging.getLogger("riftgrab")

# ── Configuration ────────────────────────────────────────────────────────────
DEFAULT_OUTPUT_DIR: str = "Assets"
DEFAULT_LOG_FILE: str = os.path.join("Logs", "application.log")
LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
EXIT_USAGE: int = 2


def configure_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """Console handler plus an optional file handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="riftgrab",
        description="Download the web-experience assets of League client events.",
    )
    p.add_argument("--output", default=DEFAULT_OUTPUT_DIR, help="assets root directory")
    p.add_argument(
        "--log-file", default=DEFAULT_LOG_FILE, help="log file path ('' to disable)"
    )
    p.add_argument("--verbose", action="store_true", help="debug logging")
    p.add_argument("--navigation-url", default=NAVIGATION_URL, help=argparse.SUPPRESS)

    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="list the events currently in the client")

    dl = sub.add_parser("download", help="download the assets of one or more events")
    dl.add_argument("event_ids", nargs="*", metavar="EVENT_ID", help="navigation item id")
    dl.add_argument("--all", action="store_true", help="download every listed event")
    dl.add_argument(
        "--link", type=int, default=None, help="index of the main link to use (single event)"
    )

    sub.add_parser("manifests", help="download the Riot client theme manifests")
    return p


# ── Commands ─────────────────────────────────────────────────────────────────


async def _list(pipeline: Pipeline, args: argparse.Namespace) -> int:
    events = await pipeline.coordinator.track_events(args.navigation_url)
    for record in displayable_events(events.values()):
        print(f"{record.navigation_item_id}\t{record.title}")
        for index, link in enumerate(record.main_links):
            print(f"    [{index}] {link}")
    return 0


async def _download(pipeline: Pipeline, args: argparse.Namespace) -> int:
    if not args.all and not args.event_ids:
        logger.error("Give at least one EVENT_ID or --all.")
        return EXIT_USAGE
    if args.link is not None and (args.all or len(args.event_ids) != 1):
        logger.error("--link can only be used with a single EVENT_ID.")
        return EXIT_USAGE

    events = await pipeline.coordinator.track_events(args.navigation_url)
    if args.all:
        selected = displayable_events(events.values())
    else:
        missing = [i for i in args.event_ids if i not in events]
        if missing:
            logger.error("Unknown event id(s): %s", ", ".join(missing))
            return EXIT_USAGE
        selected = [events[i] for i in args.event_ids]

    assets_root = Path(args.output)
    if args.link is not None:
        record = selected[0]
        try:
            link = select_main_link(record, args.link)
        except IndexError as exc:
            logger.error("%s", exc)
            return EXIT_USAGE
        results = [await pipeline.processor.process_event(record, assets_root, link)]
    else:
        results = await pipeline.processor.process_events(selected, assets_root)

    for result in results:
        state = "ok" if result.succeeded else f"{len(result.failures)} failure(s)"
        logger.info(
            "%s: %d file(s), %s", result.navigation_item_id, len(result.written), state
        )
    return 0


async def _manifests(pipeline: Pipeline, args: argparse.Namespace) -> int:
    await pipeline.manifests.download_all(Path(args.output) / MANIFESTS_DIR)
    return 0


COMMANDS = {
    "list": _list,
    "download": _download,
    "manifests": _manifests,
}


async def run(args: argparse.Namespace, pipeline_factory=Pipeline.create) -> int:
    async with create_client() as client:
        return await COMMANDS[args.command](pipeline_factory(client), args)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_arg_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file or None)
    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.warning("Interrupted.")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
