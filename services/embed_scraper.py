"""
services/embed_scraper.py – Asset discovery inside an embed page's dist bundle.

Used when an event has no resolvable catalog.  The embed page references its
main JS / CSS bundle on the asset CDN; that bundle in turn references images,
videos, audio and JSON files, and the JS bundle inlines SVG markup.  All of
it is mirrored under the scrape directory.

Discovery is regex based and best effort.  The one hard failure is a main
dist file whose name does not match a known bundling scheme: that raises
UnknownDistFileError and aborts the scrape for the current event.
"""

import hashlib
import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Set, Tuple
from urllib.parse import urlparse

from services.download_service import download_file, filename_from_url
from services.exceptions import DownloadError, FetchError, UnknownDistFileError
from services.fetch_service import UrlFetcher

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

MEDIA_EXTENSIONS: str = "jpg|png|gif|webm|svg|webp|ogg|json"
MANIFEST_FILENAME: str = "files.txt"
SVG_DIR: str = "svg"
SVG_NOISE: str = '<svg>"+r+"</svg>'

CSS_URL_RE: re.Pattern = re.compile(
    r"url\((['\"]?)(?P<url>https?://[^'\")]+\.(?:" + MEDIA_EXTENSIONS + r"))\1\)",
    re.IGNORECASE,
)
JS_PATH_RE: re.Pattern = re.compile(
    r"\.?(?P<path>[\w./-]*\.(?:" + MEDIA_EXTENSIONS + r"))",
    re.IGNORECASE,
)
SVG_RE: re.Pattern = re.compile(
    r"<svg\b[^>]*?(?:viewBox=\"(\b[^\"]*)\")?>([\s\S]*?)</svg>",
    re.IGNORECASE,
)
# One or more ".<6-16 hex>" segments immediately before the final extension.
HASH_SEGMENT_RE: re.Pattern = re.compile(r"(?:\.[0-9a-fA-F]{6,16})+(\.[a-zA-Z][a-zA-Z0-9]*)$")

CSS_DIST_STRIP: Tuple[str, ...] = (
    "_next/static/media",
    "_next/static/chunks",
    "_next/static/css",
)


@dataclass(frozen=True)
class MainFileRules:
    """
    Recognised main dist files of embed front ends.

    A known name matches exactly or as ``<name>.`` prefix (``app.1a2b3c.js``);
    otherwise one of the patterns must match the bare file name.
    """

    known_names: Tuple[str, ...] = ("app", "app.css")
    known_patterns: Tuple[str, ...] = (
        r"^\d+-[a-f0-9]{8,}\.js$",
        r"^[a-f0-9]{8,}\.css$",
    )
    dist_url_pattern: str = (
        r"https://assetcdn\.rgpub\.io/public/live/bundle-offload/[^/]+/[^/]+/"
        r"app\.[a-f0-9]+\.(?:js|css)"
    )


@dataclass
class ScrapeSession:
    """
    Mutable state of a single scrape, created per call and passed explicitly.

    Attributes
    ----------
    out_dir    : Root directory of the mirrored content.
    seen       : Normalized names already handled in this session.
    asset_urls : URLs selected for download, one per normalized name.
    written    : Files written (or found already present) during the session.
    """

    out_dir: Path
    seen: Set[str] = field(default_factory=set)
    asset_urls: List[str] = field(default_factory=list)
    written: List[Path] = field(default_factory=list)

    @property
    def manifest_path(self) -> Path:
        return self.out_dir / MANIFEST_FILENAME

    def claim(self, normalized_name: str) -> bool:
        """Return True the first time *normalized_name* is seen."""
        if normalized_name in self.seen:
            return False
        self.seen.add(normalized_name)
        return True

    def record(self, relative_path: str) -> None:
        # Append-only; a session has a single writer.
        with open(self.manifest_path, "a", encoding="utf-8") as fh:
            fh.write(relative_path + "\n")


# ── Pure helpers ─────────────────────────────────────────────────────────────


def normalize_asset_name(url_or_name: str) -> str:
    """
    Strip a cache-busting hash segment from a file name.

    ``image.4f9a2b1.png`` → ``image.png``; descriptive suffixes such as
    ``image-immortalized.png`` are left alone.
    """
    name = posixpath.basename(urlparse(url_or_name).path or url_or_name)
    return HASH_SEGMENT_RE.sub(r"\1", name)


def check_main_file(file_name: str, rules: MainFileRules = MainFileRules()) -> None:
    """Raise UnknownDistFileError unless *file_name* is a known main dist file."""
    if any(file_name == n or file_name.startswith(n + ".") for n in rules.known_names):
        return
    if any(re.match(p, file_name) for p in rules.known_patterns):
        return
    raise UnknownDistFileError(file_name)


def find_dist_urls(html: str, rules: MainFileRules = MainFileRules()) -> List[str]:
    """Distinct main dist URLs in *html*, in first-seen order."""
    pattern = re.compile(rules.dist_url_pattern, re.IGNORECASE)
    return list(dict.fromkeys(m.group(0) for m in pattern.finditer(html)))


def extract_css_asset_urls(css: str) -> List[str]:
    return list(dict.fromkeys(m.group("url") for m in CSS_URL_RE.finditer(css)))


def extract_asset_paths(js: str) -> List[str]:
    """
    Path-like substrings of a JS bundle that end in a media extension.

    ``/vendor`` is served from ``/commons`` on the CDN; paths under ``/fe/``
    belong to the shared front-end shell and are dropped.
    """
    paths = (m.group("path").replace("/vendor", "/commons") for m in JS_PATH_RE.finditer(js))
    return [p for p in dict.fromkeys(paths) if "/fe/" not in p]


def find_svgs(js: str) -> List[str]:
    """Inline ``<svg>…</svg>`` fragments, without the known template noise."""
    found = [m.group(0) for m in SVG_RE.finditer(js)]
    logger.info("Found %d SVGs.", len(found))
    kept = []
    for svg in found:
        if SVG_NOISE in svg:
            logger.warning("Ignoring SVG containing '%s'.", SVG_NOISE)
            continue
        kept.append(svg)
    return kept


def svg_file_name(svg: str) -> str:
    return hashlib.md5(svg.strip().encode("utf-8")).hexdigest() + ".svg"


def dist_directory(dist_url: str) -> str:
    """URL of the directory holding *dist_url* (no trailing slash)."""
    return dist_url.split("?")[0].rsplit("/", 1)[0]


def css_asset_directory(asset_url: str, dist_url: str) -> str:
    """Local directory (relative, POSIX) mirroring a CSS-referenced asset."""
    base = dist_directory(dist_url)
    for segment in CSS_DIST_STRIP:
        base = base.replace(segment, "")
    relative = asset_url.replace(base, "") if base else asset_url
    relative = relative.replace("_/lib-embed/", "lib-embed/").replace("_next/static/", "")
    if urlparse(relative).scheme:
        # Asset lives on another host; mirror its path only.
        relative = urlparse(relative).path
    return posixpath.dirname(relative).strip("/")


def js_asset_directory(asset_path: str) -> str:
    directory = posixpath.dirname(asset_path).replace("_/lib-embed/", "lib-embed/")
    return directory.strip("/")


def _safe_subdir(root: Path, relative_dir: str) -> Optional[Path]:
    """Resolve *relative_dir* under *root*; None if it would escape it."""
    clean = posixpath.normpath(relative_dir) if relative_dir else "."
    if clean.startswith("..") or PurePosixPath(clean).is_absolute():
        return None
    target = (root / clean).resolve()
    try:
        target.relative_to(root.resolve())
    except ValueError:
        return None
    return target


# ── Scraper ──────────────────────────────────────────────────────────────────


class EmbeddedBundleScraper:
    """Mirrors the media referenced by an embed page's main JS / CSS bundle."""

    def __init__(self, fetcher: UrlFetcher, rules: MainFileRules = MainFileRules()) -> None:
        self._fetcher = fetcher
        self._rules = rules

    async def scrape(self, embed_url: str, out_dir: Path) -> ScrapeSession:
        """
        Scrape *embed_url* into *out_dir*.

        Returns
        -------
        The finished ScrapeSession (written files, seen names).

        Raises
        ------
        UnknownDistFileError when a main dist file has an unknown name.
        """
        session = ScrapeSession(out_dir=out_dir)
        try:
            html = await self._fetcher.get_text(embed_url)
        except FetchError as exc:
            logger.error("Failed to download HTML content from %s: %s", embed_url, exc)
            return session

        dist_urls = find_dist_urls(html, self._rules)
        if not dist_urls:
            logger.error("Could not find any main JS/CSS dist files in %s.", embed_url)
            return session
        logger.info("Found %d unique main dist files in %s.", len(dist_urls), embed_url)

        out_dir.mkdir(parents=True, exist_ok=True)
        for dist_url in dist_urls:
            await self._process_dist(dist_url, session)
        return session

    async def _process_dist(self, dist_url: str, session: ScrapeSession) -> None:
        file_name = filename_from_url(dist_url)
        logger.info("Validating main file: %s", file_name)
        check_main_file(file_name, self._rules)
        session.asset_urls.append(dist_url)

        try:
            path = await download_file(
                self._fetcher.client, dist_url, session.out_dir, label="dist"
            )
        except DownloadError as exc:
            logger.error("Failed to download dist file %s: %s", dist_url, exc)
            return
        session.written.append(path)
        content = path.read_text(encoding="utf-8", errors="replace")

        if file_name.lower().endswith(".css"):
            await self._download_css_assets(content, dist_url, session)
        elif file_name.lower().endswith(".js"):
            await self._download_js_assets(content, dist_url, session)

    async def _download_css_assets(self, css: str, dist_url: str, session: ScrapeSession) -> None:
        urls = extract_css_asset_urls(css)
        logger.info("Found %d asset URLs in CSS.", len(urls))
        for url in urls:
            await self._download_asset(url, css_asset_directory(url, dist_url), session)

    async def _download_js_assets(self, js: str, dist_url: str, session: ScrapeSession) -> None:
        paths = extract_asset_paths(js)
        logger.info("Found %d unique potential asset paths in the JS file.", len(paths))
        base = dist_directory(dist_url)
        for asset_path in paths:
            url = f"{base}/{asset_path.lstrip('/')}"
            await self._download_asset(url, js_asset_directory(asset_path), session)
        self._save_svgs(find_svgs(js), session)

    async def _download_asset(self, url: str, relative_dir: str, session: ScrapeSession) -> None:
        normalized = normalize_asset_name(url)
        if not session.claim(normalized):
            logger.debug("Skipping %s, already downloaded (normalized: %s).", url, normalized)
            return
        session.asset_urls.append(url)

        target_dir = _safe_subdir(session.out_dir, relative_dir)
        if target_dir is None:
            logger.warning("Skipping %s: path escapes the scrape directory.", url)
            return

        try:
            path = await download_file(
                self._fetcher.client, url, target_dir, filename_override=normalized
            )
        except DownloadError as exc:
            logger.error("Failed to download asset %s from %s: %s", normalized, url, exc)
            return
        session.written.append(path)
        session.record(posixpath.join(relative_dir, normalized) if relative_dir else normalized)

    def _save_svgs(self, svgs: List[str], session: ScrapeSession) -> None:
        export_dir = session.out_dir / SVG_DIR
        saved = 0
        for svg in svgs:
            name = svg_file_name(svg)
            if not session.claim(name):
                continue
            path = export_dir / name
            try:
                export_dir.mkdir(parents=True, exist_ok=True)
                if not path.exists():
                    path.write_text(svg, encoding="utf-8")
            except OSError as exc:
                logger.error("Error saving SVG file %s: %s", name, exc)
                continue
            saved += 1
            session.written.append(path)
            session.record(f"{SVG_DIR}/{name}")

        if saved:
            logger.info("Finished saving inline SVGs. Successfully saved %d files.", saved)
        elif svgs:
            logger.warning("Finished saving inline SVGs, but no files were successfully saved.")
