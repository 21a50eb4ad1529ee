"""
services/conversion_service.py – Catalog conversion and bundle extraction.

Wraps bintojson (addressables catalog.bin → catalog.json) and
AssetStudioModCLI (Unity bundles → loose files) via asyncio subprocesses.
The pipeline only depends on the CatalogConverter / BundleExtractor
protocols, so tests substitute in-process fakes.

Security notes
--------------
* All arguments are passed to the subprocess as a list (never a shell).
* Binary paths are resolved via the RIFTGRAB_BASE env var set in main.py;
  they are never derived from backend data.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

from services.exceptions import ConversionError, ExtractionError

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

CATALOG_CONVERTER_NAME: str = "bintojson"
BUNDLE_EXTRACTOR_NAME: str = "AssetStudioModCLI"
BUNDLE_EXTRACTOR_DIR: str = "AssetStudio"
SUBPROCESS_TIMEOUT: float = 3600.0  # 1-hour hard limit for very large events

# ── Capability interfaces ────────────────────────────────────────────────────


class CatalogConverter(Protocol):
    async def convert(self, bin_path: Path, json_path: Path) -> Path:
        """Convert *bin_path* into *json_path*; raise ConversionError on failure."""
        ...


class BundleExtractor(Protocol):
    async def extract(self, bundles_dir: Path, output_dir: Path) -> Path:
        """Unpack every bundle in *bundles_dir* into *output_dir*."""
        ...


# ── Binary resolution ────────────────────────────────────────────────────────


def _bin_path(*parts: str) -> Path:
    """Resolve a bundled binary from BASE_PATH/bin, falling back to PATH."""
    base = Path(os.environ.get("RIFTGRAB_BASE", os.path.abspath(".")))
    candidate = base.joinpath("bin", *parts)
    for path in (candidate, candidate.with_suffix(".exe")):
        if path.exists():
            return path
    on_path = shutil.which(parts[-1])
    if on_path:
        return Path(on_path)
    raise ConversionError(
        f"Conversion binary not found: {candidate}. "
        "Ensure the bin/ directory is present alongside the application."
    )


# ── Implementations ──────────────────────────────────────────────────────────


class SubprocessCatalogConverter:
    """
    Runs ``bintojson convert <in.bin> <out.json>``.

    Exit code 0 plus an existing output file is the only success signal.
    """

    def __init__(self, binary: Optional[Path] = None) -> None:
        self._binary = binary

    async def convert(self, bin_path: Path, json_path: Path) -> Path:
        binary = self._binary or _bin_path(CATALOG_CONVERTER_NAME)
        cmd = [str(binary), "convert", str(bin_path), str(json_path)]
        stdout, _ = await _run_subprocess(cmd, label=CATALOG_CONVERTER_NAME)
        logger.debug(".bin to .json conversion complete. Output: %s", stdout.strip())
        if not json_path.exists():
            raise ConversionError(
                f"File {json_path} was not created by the conversion process."
            )
        return json_path


class SubprocessBundleExtractor:
    """
    Runs ``AssetStudioModCLI <bundles_dir> -o <output_dir>``.

    Every stderr line is logged as an error for the current event.
    """

    def __init__(self, binary: Optional[Path] = None) -> None:
        self._binary = binary

    async def extract(self, bundles_dir: Path, output_dir: Path) -> Path:
        if not bundles_dir.is_dir():
            raise ExtractionError(f"No bundles found in {bundles_dir}.")
        output_dir.mkdir(parents=True, exist_ok=True)

        binary = self._binary or _bin_path(BUNDLE_EXTRACTOR_DIR, BUNDLE_EXTRACTOR_NAME)
        cmd = [str(binary), str(bundles_dir), "-o", str(output_dir)]
        _, stderr = await _run_subprocess(cmd, label=BUNDLE_EXTRACTOR_NAME)
        for line in _lines(stderr):
            logger.error("AssetStudio error: %s", line)
        return output_dir


# ── Subprocess plumbing ──────────────────────────────────────────────────────


def _lines(text: str) -> List[str]:
    return [line for line in text.splitlines() if line.strip()]


async def _run_subprocess(cmd: list, label: str) -> Tuple[str, str]:
    """
    Execute *cmd* and wait for it without blocking the event loop.

    Returns
    -------
    (stdout, stderr) decoded as UTF-8.

    Raises
    ------
    ConversionError if the process exits non-zero, times out or cannot be
    launched.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise ConversionError(
            f"{label} executable not found at the expected path. "
            "Ensure it exists in the bin/ directory."
        ) from exc
    except OSError as exc:
        raise ConversionError(f"OS error launching {label}: {exc}") from exc

    try:
        out, err = await asyncio.wait_for(process.communicate(), SUBPROCESS_TIMEOUT)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise ConversionError(
            f"{label} exceeded the {SUBPROCESS_TIMEOUT:.0f}s time limit and was terminated."
        ) from exc

    stdout = (out or b"").decode("utf-8", errors="replace")
    stderr = (err or b"").decode("utf-8", errors="replace")
    if process.returncode != 0:
        for line in _lines(stderr):
            logger.error("%s: %s", label, line)
        raise ConversionError(
            f"{label} exited with code {process.returncode}.\n"
            f"STDOUT: {stdout[:500]}\n"
            f"STDERR: {stderr[:500]}"
        )
    return stdout, stderr
