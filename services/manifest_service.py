"""
services/manifest_service.py – Riot client theme manifests.

Each launcher theme publishes a manifest.json whose (nested) string values
are asset paths relative to the manifest's own directory.  Every media path
is downloaded into a per-game folder.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

from services.download_service import download_file
from services.exceptions import DownloadError
from services.fetch_service import UrlFetcher

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

MANIFEST_URLS: Tuple[str, ...] = (
    "https://lol.secure.dyn.riotcdn.net/channels/public/rccontent/tft/theme/manifest.json",
    "https://riot-client.secure.dyn.riotcdn.net/channels/public/rccontent/arcane/theme/manifest.json",
    "https://wildrift.secure.dyn.riotcdn.net/channels/public/rccontent/theme/manifest.json",
    "https://valorant.secure.dyn.riotcdn.net/channels/public/rccontent/theme/03/manifest.json",
    "https://bacon.secure.dyn.riotcdn.net/channels/public/rccontent/theme/manifest.json",
    "https://lol.secure.dyn.riotcdn.net/channels/public/rccontent/theme/manifest_default.json",
    "https://riot-client.secure.dyn.riotcdn.net/channels/public/rccontent/theme/manifest_live.json",
)

ASSET_EXTENSIONS: Tuple[str, ...] = (
    ".png", ".jpg", ".jpeg", ".webp",
    ".svg", ".ico", ".webm", ".mp4",
    ".mp3", ".ogg", ".wav", ".json",
)

# First match wins; checked against the full manifest URL.
GAME_SUBDIRS: Tuple[Tuple[str, str], ...] = (
    ("tft", "tft"),
    ("arcane", "arcane"),
    ("wildrift", "wr"),
    ("valorant", "val"),
    ("bacon", "lor"),
    ("manifest_default.json", "lol"),
    ("manifest_live.json", "riot-client"),
)
UNKNOWN_SUBDIR: str = "unknown"


def flatten_object(obj: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested dicts, joining keys with ``_``.  Lists are kept as values."""
    flat: Dict[str, Any] = {}
    for key, value in obj.items():
        name = f"{prefix}_{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_object(value, name))
        else:
            flat[name] = value
    return flat


def is_valid_asset(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    if value.lower().startswith("http"):
        return False
    return value.lower().endswith(ASSET_EXTENSIONS)


def subdir_for_url(manifest_url: str) -> str:
    lowered = manifest_url.lower()
    for marker, subdir in GAME_SUBDIRS:
        if marker in lowered:
            return subdir
    return UNKNOWN_SUBDIR


def manifest_base_url(manifest_url: str) -> str:
    """Directory URL of *manifest_url*, always ending in ``/``."""
    return manifest_url.rsplit("/", 1)[0] + "/"


class ManifestService:
    """Downloads every media file listed by the theme manifests."""

    def __init__(self, fetcher: UrlFetcher, manifest_urls: Tuple[str, ...] = MANIFEST_URLS) -> None:
        self._fetcher = fetcher
        self._manifest_urls = manifest_urls

    async def download_all(self, dest_root: Path) -> List[Path]:
        dest_root.mkdir(parents=True, exist_ok=True)
        logger.info("Starting processing Riot Client Manifests...")
        written: List[Path] = []
        for url in self._manifest_urls:
            written.extend(await self.download_manifest(url, dest_root))
        logger.info("Download completed: Assets from Manifests -> %s", dest_root)
        return written

    async def download_manifest(self, manifest_url: str, dest_root: Path) -> List[Path]:
        logger.debug("Processing manifest: %s", manifest_url)
        document = await self._fetcher.try_get_json(manifest_url)
        if not isinstance(document, dict):
            logger.warning("The manifest could not be obtained: %s", manifest_url)
            return []

        assets = [v for v in flatten_object(document).values() if is_valid_asset(v)]
        logger.info("Found %d valid assets in the manifest.", len(assets))

        base = manifest_base_url(manifest_url)
        target_dir = dest_root / subdir_for_url(manifest_url)
        written: List[Path] = []
        for asset_path in assets:
            url = base + asset_path
            try:
                written.append(await download_file(self._fetcher.client, url, target_dir))
            except DownloadError as exc:
                logger.error("Error downloading asset '%s': %s", asset_path, exc)
        return written
