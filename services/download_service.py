"""
services/download_service.py – Idempotent async streaming download.

Uses httpx in streaming mode so large bundles are never held fully in memory.
A file that already exists at the destination is never fetched again; that is
the only resume mechanism across runs.
"""

import logging
from pathlib import Path
from typing import Callable, Optional
from urllib.parse import unquote, urlparse

import httpx

from services.exceptions import DownloadError

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────
CHUNK_SIZE: int = 1024 * 1024  # 1 MiB
FALLBACK_FILENAME: str = "download.bin"

# ── Types ────────────────────────────────────────────────────────────────────
ProgressCallback = Callable[[int, int], None]


def filename_from_url(url: str) -> str:
    """Derive a filename from the last path segment of the URL."""
    parsed = urlparse(url)
    name = unquote(parsed.path.split("/")[-1])
    return name if name else FALLBACK_FILENAME


# ── Public API ───────────────────────────────────────────────────────────────


async def download_file(
    client: httpx.AsyncClient,
    url: str,
    dest_dir: Path,
    *,
    filename_override: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
    label: str = "asset",
) -> Path:
    """
    Stream-download *url* into *dest_dir*, skipping files already present.

    Parameters
    ----------
    client            : Shared AsyncClient.
    url               : Absolute URL to download.
    dest_dir          : Directory where the file will be written.
    filename_override : Force a specific filename; otherwise derived from URL.
    progress_callback : Optional callable receiving (downloaded, total).
    label             : Kind of file, only used in log messages.

    Returns
    -------
    Path to the (possibly pre-existing) file.

    Raises
    ------
    DownloadError on any network or I/O failure.
    """
    filename = Path(filename_override or filename_from_url(url)).name
    dest_path = dest_dir / filename

    if dest_path.exists():
        logger.warning("File %s already exists, skipping download.", filename)
        return dest_path

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DownloadError(f"Cannot create directory '{dest_dir}': {exc}") from exc

    logger.info("Downloading %s: %s", label, filename)
    try:
        async with client.stream("GET", url) as resp:
            try:
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code == 404:
                    logger.warning("%s not found at %s", filename, url)
                raise DownloadError(
                    f"Server returned HTTP {exc.response.status_code} for URL: {url}"
                ) from exc

            total_bytes = int(resp.headers.get("content-length", -1))
            downloaded = 0
            with open(dest_path, "wb") as fh:
                async for chunk in resp.aiter_bytes(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    fh.write(chunk)
                    downloaded += len(chunk)
                    if progress_callback:
                        progress_callback(downloaded, total_bytes)
    except httpx.RequestError as exc:
        _cleanup_partial(dest_path)
        raise DownloadError(f"Network error during download of {url}: {exc}") from exc
    except OSError as exc:
        _cleanup_partial(dest_path)
        raise DownloadError(f"I/O error writing {dest_path}: {exc}") from exc
    except DownloadError:
        _cleanup_partial(dest_path)
        raise

    return dest_path


def _cleanup_partial(partial: Path) -> None:
    try:
        if partial.exists():
            partial.unlink()
    except OSError as exc:
        logger.warning("Could not remove partial file '%s': %s", partial, exc)
