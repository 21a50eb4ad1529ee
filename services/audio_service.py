"""
services/audio_service.py – Motion-comic audio discovery and download.

AssetStudio dumps every MonoBehaviour of the comic prefabs as a JSON file.
Lettering behaviours name a localized voice/sfx clip; panel behaviours name
a panel sound plus any number of timed audio events.  Clip names map onto
fixed CDN folders next to the catalog.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List

import httpx

from services.download_service import download_file
from services.exceptions import DownloadError
from services.json_tree import dig_list, dig_str

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

COMICS_SUBDIR = Path("Assets") / "Prefabs" / "Comics"
LETTERING_PREFIX: str = "motioncomiclettering"
PANEL_PREFIX: str = "motioncomicpanel"
VOICE_LOCALE: str = "en_US"
DOWNLOAD_DELAY: float = 0.1  # seconds between clips, CDN courtesy


def clean_base_url(catalog_base_url: str) -> str:
    """Strip a trailing ``/WebGL`` and then ``/aa`` from the catalog base."""
    base = catalog_base_url.rstrip("/")
    for suffix in ("/WebGL", "/aa"):
        if base.lower().endswith(suffix.lower()):
            base = base[: -len(suffix)]
    return base


class AudioReferenceResolver:
    """Finds and downloads the audio clips referenced by extracted comics."""

    def __init__(self, client: httpx.AsyncClient, delay: float = DOWNLOAD_DELAY) -> None:
        self._client = client
        self._delay = delay

    def resolve_urls(self, extracted_dir: Path, catalog_base_url: str) -> List[str]:
        """Distinct clip URLs referenced under *extracted_dir*, in scan order."""
        search_dir = extracted_dir / COMICS_SUBDIR
        if not search_dir.is_dir():
            logger.warning(
                "Comics directory does not exist: %s. No audio will be searched.", search_dir
            )
            return []

        base = clean_base_url(catalog_base_url)
        lettering: List[str] = []
        panel: List[str] = []

        for json_file in sorted(search_dir.glob("*.json")):
            name = json_file.name.lower()
            if not (name.startswith(LETTERING_PREFIX) or name.startswith(PANEL_PREFIX)):
                continue
            try:
                root = json.loads(json_file.read_text(encoding="utf-8"))
            except ValueError as exc:
                logger.warning("Error parsing JSON file '%s': %s. Skipping file.", json_file.name, exc)
                continue
            except OSError as exc:
                logger.error("Error reading '%s': %s. Skipping file.", json_file.name, exc)
                continue

            if name.startswith(LETTERING_PREFIX):
                clip = dig_str(root, "letteringSfx.clipName")
                if clip:
                    lettering.append(f"{base}/AudioLocales/{VOICE_LOCALE}/{clip}.ogg")
            else:
                clips = [dig_str(root, "panelSfx.clipName")]
                clips += [dig_str(e, "clipName") for e in dig_list(root, "audioEvents")]
                panel.extend(f"{base}/SoundFX/{c}.ogg" for c in clips if c)

        if lettering:
            logger.info("Audio clips found in MotionComicLettering: %d", len(lettering))
        if panel:
            logger.info("Audio clips found in MotionComicPanel: %d", len(panel))
        return list(dict.fromkeys(lettering + panel))

    async def download(self, extracted_dir: Path, catalog_base_url: str, audio_dir: Path) -> List[Path]:
        """Download every clip referenced under *extracted_dir* into *audio_dir*."""
        return await self.download_urls(self.resolve_urls(extracted_dir, catalog_base_url), audio_dir)

    async def download_urls(self, urls: List[str], audio_dir: Path) -> List[Path]:
        """Download already resolved clip *urls* into *audio_dir*; failures are logged."""
        if not urls:
            logger.info("No audio clips found in any MotionComic file.")
            return []

        logger.info("Found %d unique audio URLs. Starting download...", len(urls))
        written: List[Path] = []
        for url in urls:
            try:
                written.append(await download_file(self._client, url, audio_dir, label="audio"))
            except DownloadError as exc:
                logger.error("Error downloading %s: %s", url.rsplit("/", 1)[-1], exc)
            await asyncio.sleep(self._delay)

        logger.info("Audio download completed.")
        return written
