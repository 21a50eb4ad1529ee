"""
services/storage_service.py – Event directory layout and filesystem cleanup.

Responsibilities
----------------
1. Name the per-event directories the pipeline writes into.
2. Create fresh scratch directories and remove them afterwards.
3. Prune empty directories left behind by a run.
"""

import asyncio
import logging
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from services.exceptions import StorageError

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────
BUNDLES_DIR: str = "Bundles"
EXTRACTED_DIR: str = "ExtractedAssets"
AUDIO_DIR: str = "Audio"
EMBED_DIR: str = "EmbedScrapedContent"
ADDITIONAL_DIR: str = "AdditionalAssets"
MANIFESTS_DIR: str = "RiotClientAssets"
TEMP_PREFIX: str = "riftgrab_"


@dataclass(frozen=True)
class EventPaths:
    """Directories used for one event under the assets root."""

    root: Path

    @classmethod
    def for_event(cls, assets_root: Path, event_id: str) -> "EventPaths":
        # Event ids come from the backend; keep them to one path component.
        safe_id = Path(event_id).name
        if not safe_id or safe_id in (".", ".."):
            raise StorageError(f"Invalid event id for a directory name: {event_id!r}")
        return cls(root=assets_root / safe_id)

    @property
    def bundles(self) -> Path:
        return self.root / BUNDLES_DIR

    @property
    def extracted(self) -> Path:
        return self.root / EXTRACTED_DIR

    @property
    def audio(self) -> Path:
        return self.extracted / AUDIO_DIR

    @property
    def embed(self) -> Path:
        return self.root / EMBED_DIR

    @property
    def additional(self) -> Path:
        return self.root / ADDITIONAL_DIR


def make_temp_dir() -> Path:
    """Create an isolated scratch directory under the system temp dir."""
    path = Path(tempfile.gettempdir()) / f"{TEMP_PREFIX}{uuid.uuid4().hex}"
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Cannot create temp directory '{path}': {exc}") from exc
    return path


def cleanup_temp(temp_dir: Path) -> None:
    """
    Remove the temporary working directory and all its contents.

    Logs (but does not raise) if removal fails, since cleanup failure should
    not mask the result of the step that used the directory.
    """
    try:
        if temp_dir.exists():
            shutil.rmtree(temp_dir)
            logger.debug("Temporary directory %s deleted.", temp_dir)
    except OSError as exc:
        logger.warning("Could not remove temp directory '%s': %s", temp_dir, exc)


async def remove_empty_directories(
    directory: Path, base_for_logging: Optional[Path] = None
) -> None:
    """
    Recursively remove empty directories below and including *directory*.

    Sibling sub-directories are independent, so they are pruned concurrently
    and joined before *directory* itself is checked.
    """
    if not directory.is_dir():
        return

    try:
        children = [p for p in directory.iterdir() if p.is_dir()]
        await asyncio.gather(
            *(remove_empty_directories(child, base_for_logging) for child in children)
        )

        if not any(directory.iterdir()):
            shown = directory
            if base_for_logging is not None:
                try:
                    shown = directory.relative_to(base_for_logging)
                except ValueError:
                    pass
            logger.info("Removing empty directory: %s", shown)
            directory.rmdir()
    except PermissionError as exc:
        logger.error("Access denied when trying to remove directory '%s': %s", directory, exc)
    except OSError as exc:
        logger.debug("Directory '%s' could not be removed: %s", directory, exc)
