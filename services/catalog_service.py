"""
services/catalog_service.py – Addressables catalog discovery and parsing.

Two steps:

1. CatalogBaseResolver scrapes an embed page for the Next.js font-preload
   hint, which reveals the CDN root of the event's WebGL build, and appends
   the catalog path for the kind of experience (minigame or comic).
2. CatalogBundleResolver downloads that binary catalog, has it converted to
   JSON by the external converter, and rewrites ``m_InternalIds`` into full
   bundle URLs.

A missing catalog is a normal outcome (the caller falls back to embedded
scraping), so neither resolver raises.
"""

import json
import logging
import posixpath
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from bs4 import BeautifulSoup

from services import storage_service
from services.conversion_service import CatalogConverter
from services.download_service import download_file
from services.exceptions import ConversionError, DownloadError, FetchError, StorageError
from services.fetch_service import UrlFetcher
from services.json_tree import dig

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

FONT_MEDIA_MARKER: str = "_next/static/media/"
MINIGAME_CATALOG_SUFFIX: str = "WebGLBuild/StreamingAssets/aa/catalog.bin"
COMIC_CATALOG_SUFFIX: str = "Comic/WebGLBuild/StreamingAssets/aa/catalog.bin"

RUNTIME_PATH_PLACEHOLDER: str = "{UnityEngine.AddressableAssets.Addressables.RuntimePath}"
BUNDLE_PREFIX_REWRITES: Tuple[Tuple[str, str], ...] = (
    ("0#", "WebGL/"),
    ("1#", "WebGL/ui_assets_assets/prefabs/ui/"),
)
COMIC_BUNDLE_PREFIX: str = "comics_assets_mc_"
MIN_FILTER_TOKEN_LENGTH: int = 3


@dataclass(frozen=True)
class CatalogSuffixRules:
    """
    Maps a link-title hint to the catalog path under the CDN root.

    ``default_suffix`` is used when the hint matches nothing.  It defaults to
    the comic path; set it to None to report "no catalog" instead of guessing.
    """

    minigame_keywords: Tuple[str, ...] = ("play", "minigame")
    comic_keywords: Tuple[str, ...] = ("comic",)
    minigame_suffix: str = MINIGAME_CATALOG_SUFFIX
    comic_suffix: str = COMIC_CATALOG_SUFFIX
    default_suffix: Optional[str] = COMIC_CATALOG_SUFFIX

    def suffix_for(self, hint: Optional[str]) -> Optional[str]:
        lowered = (hint or "").lower()
        if hint is not None:
            if any(k in lowered for k in self.minigame_keywords):
                return self.minigame_suffix
            if any(k in lowered for k in self.comic_keywords):
                return self.comic_suffix
        return self.default_suffix


# ── Catalog base ─────────────────────────────────────────────────────────────


def cdn_root_from_html(html: str) -> Optional[str]:
    """Return the CDN root revealed by a woff2 font preload, if any."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all("link", href=True):
        rel = tag.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "preload" not in [r.lower() for r in rel]:
            continue
        if (tag.get("as") or "").lower() != "font":
            continue
        href: str = tag["href"]
        if "woff2" not in href:
            continue
        index = href.find(FONT_MEDIA_MARKER)
        return href[:index] if index != -1 else None
    return None


class CatalogBaseResolver:
    """Derives the full catalog.bin URL of an embed page."""

    def __init__(self, fetcher: UrlFetcher, rules: CatalogSuffixRules = CatalogSuffixRules()) -> None:
        self._fetcher = fetcher
        self._rules = rules

    async def resolve(self, embed_url: str, link_title: Optional[str] = None) -> Optional[str]:
        try:
            html = await self._fetcher.get_text(embed_url)
        except FetchError as exc:
            logger.error("Error getting HTML from %s: %s", embed_url, exc)
            return None

        try:
            root = cdn_root_from_html(html)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error processing HTML from %s: %s", embed_url, exc)
            return None

        if root is None:
            return None
        suffix = self._rules.suffix_for(link_title)
        if suffix is None:
            logger.debug("No catalog suffix for hint %r at %s", link_title, embed_url)
            return None
        return root + suffix


# ── Catalog parsing ──────────────────────────────────────────────────────────


def rewrite_internal_id(internal_id: str, base_url: str) -> Tuple[str, str]:
    """
    Turn one ``m_InternalIds`` entry into (full_url, path_for_checks).

    ``0#`` / ``1#`` prefixes are rewritten to their WebGL sub-paths under
    *base_url*; older catalogs carry the runtime-path placeholder, which is
    replaced verbatim with *base_url* (checks then run on the raw id).
    """
    for prefix, replacement in BUNDLE_PREFIX_REWRITES:
        if internal_id.startswith(prefix):
            path = replacement + internal_id[len(prefix):]
            return base_url + path, path
    return internal_id.replace(RUNTIME_PATH_PLACEHOLDER, base_url), internal_id


def _tokens(text: str) -> List[str]:
    return [t for t in text.lower().split("_") if t]


def comic_bundle_matches(file_name: str, filter_keywords: Optional[str]) -> bool:
    """
    Decide whether a bundle belongs to the selected comic.

    Only ``comics_assets_mc_*`` bundles are filtered, and only when a keyword
    string is given.  A bundle is kept when any keyword token (3+ chars) is a
    substring of, or contains, any token of the file name.
    """
    name = file_name.lower()
    if not name.startswith(COMIC_BUNDLE_PREFIX) or not filter_keywords:
        return True

    context = [t for t in _tokens(filter_keywords) if len(t) >= MIN_FILTER_TOKEN_LENGTH]
    if not context:
        return True
    file_tokens = _tokens(name)
    return any(c in f or f in c for c in context for f in file_tokens)


def parse_bundle_urls(root: Any, base_url: str, filter_keywords: Optional[str] = None) -> List[str]:
    """Extract the WebGL bundle URLs of a converted catalog document."""
    internal_ids = dig(root, "m_InternalIds")
    if not isinstance(internal_ids, list):
        logger.error(
            "The catalog document has no 'm_InternalIds' array. "
            "No bundles could be extracted."
        )
        return []

    urls: List[str] = []
    for entry in internal_ids:
        if not isinstance(entry, str) or not entry:
            continue
        full_url, check_path = rewrite_internal_id(entry, base_url)
        if not check_path.lower().endswith(".bundle") or "webgl" not in check_path.lower():
            continue
        file_name = posixpath.basename(check_path)
        if not comic_bundle_matches(file_name, filter_keywords):
            logger.debug(
                "Skipping comic bundle '%s': no match for keywords '%s'.",
                file_name, filter_keywords,
            )
            continue
        urls.append(full_url)
    return urls


class CatalogBundleResolver:
    """Downloads, converts and parses an event's catalog.bin."""

    def __init__(self, fetcher: UrlFetcher, converter: CatalogConverter) -> None:
        self._fetcher = fetcher
        self._converter = converter

    async def resolve(
        self,
        catalog_url: Optional[str],
        base_url: Optional[str],
        filter_keywords: Optional[str] = None,
    ) -> List[str]:
        """
        Return the bundle URLs listed by the catalog at *catalog_url*.

        Every failure (download, converter, malformed output) is logged and
        reported as an empty list.
        """
        if not catalog_url or not base_url:
            logger.info("Catalog: Not available")
            return []

        logger.info("Catalog: %s", catalog_url)
        logger.debug("Base URL for assets/bundles: %s", base_url)
        logger.debug("Filter keywords received: %s", filter_keywords or "N/A")

        try:
            scratch = storage_service.make_temp_dir()
        except StorageError as exc:
            logger.error("Catalog skipped, no scratch directory: %s", exc)
            return []
        bin_path = scratch / "catalog.bin"
        json_path = scratch / "catalog.json"
        try:
            await download_file(
                self._fetcher.client, catalog_url, scratch,
                filename_override=bin_path.name, label="catalog",
            )
            await self._converter.convert(bin_path, json_path)
            root = json.loads(json_path.read_text(encoding="utf-8"))
            urls = parse_bundle_urls(root, base_url, filter_keywords)
            logger.info("Found %d valid bundle URLs in the catalog.", len(urls))
            return urls
        except DownloadError as exc:
            logger.error("Could not download catalog %s: %s", catalog_url, exc)
        except ConversionError as exc:
            logger.error("Catalog conversion failed: %s", exc)
        except (OSError, ValueError) as exc:
            logger.error("Converted catalog could not be read: %s", exc)
        finally:
            storage_service.cleanup_temp(scratch)
        return []
