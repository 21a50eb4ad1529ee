"""
workers/event_worker.py – Background QThread workers for event discovery,
per-event downloads and theme-manifest downloads.

Each worker owns a private asyncio event loop (via asyncio.run) and a fresh
httpx.AsyncClient for the duration of run(), so a host UI never blocks.

Signal contract
---------------
  status(str)     : Human-readable status message for the log area
  finished(...)   : Result of the run (see each worker)
  error(str)      : User-friendly error message on failure
"""

import asyncio
from pathlib import Path
from typing import List, Optional

from PySide6.QtCore import QThread, Signal

from models.event_record import EventRecord
from services import storage_service
from services.coordinator import NAVIGATION_URL, displayable_events
from services.event_processor import select_main_link
from services.exceptions import (
    ConversionError,
    DownloadError,
    ExtractionError,
    FetchError,
    RiftGrabError,
    ScrapeError,
    StorageError,
)
from services.fetch_service import create_client
from services.pipeline import Pipeline


def error_message(exc: BaseException) -> str:
    """Map an exception raised during a run to a user-facing message."""
    if isinstance(exc, FetchError):
        return f"Network error:\n{exc}"
    if isinstance(exc, DownloadError):
        return f"Download failed:\n{exc}"
    if isinstance(exc, ExtractionError):
        return f"Extraction failed:\n{exc}"
    if isinstance(exc, ConversionError):
        return f"Conversion failed:\n{exc}"
    if isinstance(exc, ScrapeError):
        return f"Scrape failed:\n{exc}"
    if isinstance(exc, StorageError):
        return f"Storage error:\n{exc}"
    if isinstance(exc, RiftGrabError):
        return f"Error:\n{exc}"
    if isinstance(exc, IndexError):
        return f"Invalid link selection:\n{exc}"
    return f"Unexpected error:\n{type(exc).__name__}: {exc}"


class _PipelineWorker(QThread):
    status = Signal(str)
    error = Signal(str)

    def __init__(self, pipeline_factory=Pipeline.create, parent=None) -> None:
        super().__init__(parent)
        self._pipeline_factory = pipeline_factory

    def run(self) -> None:
        try:
            asyncio.run(self._main())
        except Exception as exc:  # noqa: BLE001
            # Catch-all so the worker thread never silently dies.
            self.error.emit(error_message(exc))

    async def _main(self) -> None:
        async with create_client() as client:
            await self._run_pipeline(self._pipeline_factory(client))

    async def _run_pipeline(self, pipeline: Pipeline) -> None:
        raise NotImplementedError


class DiscoveryWorker(_PipelineWorker):
    """
    Resolves the navigation listing.

    finished(object) carries the list of displayable EventRecords in
    listing order.
    """

    finished = Signal(object)

    def __init__(self, navigation_url: str = NAVIGATION_URL, parent=None, **kwargs) -> None:
        super().__init__(parent=parent, **kwargs)
        self._navigation_url = navigation_url

    async def _run_pipeline(self, pipeline: Pipeline) -> None:
        self.status.emit("Loading events…")
        events = await pipeline.coordinator.track_events(self._navigation_url)
        shown = displayable_events(events.values())
        self.status.emit(f"{len(shown)} event(s) available.")
        self.finished.emit(shown)


class EventDownloadWorker(_PipelineWorker):
    """
    Downloads one event's assets.

    finished(str) carries the event directory; per-asset failures are
    reported through status() and do not abort the run.
    """

    finished = Signal(str)

    def __init__(
        self,
        record: EventRecord,
        assets_root: Path,
        link_index: Optional[int] = None,
        parent=None,
        **kwargs,
    ) -> None:
        super().__init__(parent=parent, **kwargs)
        self._record = record
        self._assets_root = assets_root
        self._link_index = link_index

    async def _run_pipeline(self, pipeline: Pipeline) -> None:
        link = select_main_link(self._record, self._link_index)
        self.status.emit(f"Processing {self._record.title}…")
        result = await pipeline.processor.process_event(self._record, self._assets_root, link)
        for failure in result.failures:
            self.status.emit(f"Failed: {failure}")

        event_dir = storage_service.EventPaths.for_event(
            self._assets_root, self._record.navigation_item_id
        ).root
        await storage_service.remove_empty_directories(event_dir)
        self.status.emit(f"{len(result.written)} file(s) in {event_dir}")
        self.finished.emit(str(event_dir))


class ManifestDownloadWorker(_PipelineWorker):
    """finished(int) carries the number of manifest assets on disk."""

    finished = Signal(int)

    def __init__(self, dest_root: Path, parent=None, **kwargs) -> None:
        super().__init__(parent=parent, **kwargs)
        self._dest_root = dest_root

    async def _run_pipeline(self, pipeline: Pipeline) -> None:
        self.status.emit("Downloading Riot Client asset manifests…")
        written: List[Path] = await pipeline.manifests.download_all(self._dest_root)
        self.status.emit("Manifest download complete.")
        self.finished.emit(len(written))
