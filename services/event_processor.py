"""
services/event_processor.py – Per-event download driver.

Given a resolved EventRecord and the chosen main link, downloads either the
catalog bundles (then extracts them and fetches their audio) or, when the
catalog yields nothing, mirrors the embed page's dist bundle.  Background,
icon and detail-page assets are downloaded in every case.

Errors are contained at the smallest unit: one asset, or one event's scrape.
"""

import logging
import posixpath
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import urlparse

import httpx

from models.event_record import EventRecord, MainLink, ProcessResult
from services import storage_service
from services.audio_service import AudioReferenceResolver
from services.catalog_service import CatalogBundleResolver
from services.conversion_service import BundleExtractor
from services.download_service import download_file
from services.embed_scraper import EmbeddedBundleScraper, normalize_asset_name
from services.exceptions import (
    ConversionError,
    DownloadError,
    ExtractionError,
    RiftGrabError,
    ScrapeError,
)
from services.storage_service import EventPaths

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

LOCALE_PLACEHOLDER: str = "{locale}"
DEFAULT_LOCALE: str = "en-us"
CMS_ASSETS_HOST: str = "cmsassets.rgpub.io"


def select_main_link(record: EventRecord, index: Optional[int] = None) -> Optional[MainLink]:
    """
    Pick the link to process.

    An explicit *index* wins; otherwise the first (navigation-sourced) link
    is used.  Returns None when the event has no main links.

    Raises
    ------
    IndexError when *index* is out of range.
    """
    if index is not None:
        if not 0 <= index < len(record.main_links):
            raise IndexError(
                f"Link index {index} out of range; '{record.title}' has "
                f"{len(record.main_links)} main link(s)."
            )
        return record.main_links[index]
    return record.default_link()


def build_filter_keywords(link: Optional[MainLink]) -> str:
    """
    Metagame id plus the stem of the final URL path component, joined with
    underscores.  A trailing slash leaves the final component empty, so such
    links contribute no keyword.
    """
    if link is None:
        return ""
    parts: List[str] = []
    if link.metagame_id:
        parts.append(link.metagame_id)
    stem = posixpath.splitext(posixpath.basename(urlparse(link.url).path))[0]
    if stem:
        parts.append(stem)
    return "_".join(dict.fromkeys(parts))


def localize_url(url: str, locale: str = DEFAULT_LOCALE) -> str:
    if LOCALE_PLACEHOLDER in url:
        url = url.replace(LOCALE_PLACEHOLDER, locale)
        logger.warning("Replaced %s with %s in main URL: %s", LOCALE_PLACEHOLDER, locale, url)
    return url


def is_downloadable_asset_url(url: str) -> bool:
    """Absolute http(s) URL with a file extension or on the CMS asset host."""
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        return False
    has_extension = bool(posixpath.splitext(parsed.path)[1])
    return has_extension or parsed.netloc.lower() == CMS_ASSETS_HOST


class EventProcessor:
    """Downloads everything that belongs to one resolved event."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        bundle_resolver: CatalogBundleResolver,
        extractor: BundleExtractor,
        audio_resolver: AudioReferenceResolver,
        scraper: EmbeddedBundleScraper,
    ) -> None:
        self._client = client
        self._bundles = bundle_resolver
        self._extractor = extractor
        self._audio = audio_resolver
        self._scraper = scraper

    async def process_events(
        self, records: Iterable[EventRecord], assets_root: Path
    ) -> List[ProcessResult]:
        """Process events one after another, then prune empty directories."""
        results = []
        for record in records:
            try:
                results.append(await self.process_event(record, assets_root))
            except RiftGrabError as exc:
                logger.error("Event '%s' failed: %s", record.navigation_item_id, exc)
                results.append(
                    ProcessResult(record.navigation_item_id, failures=[str(exc)])
                )
        await storage_service.remove_empty_directories(assets_root)
        return results

    async def process_event(
        self,
        record: EventRecord,
        assets_root: Path,
        link: Optional[MainLink] = None,
    ) -> ProcessResult:
        """
        Download the assets of *record* below *assets_root*.

        Parameters
        ----------
        record      : Resolved event.
        assets_root : Root of the assets tree; the event gets its own folder.
        link        : Chosen main link; defaults to the record's first link.

        Returns
        -------
        ProcessResult listing written files and per-step failures.
        """
        link = link or record.default_link()
        paths = EventPaths.for_event(assets_root, record.navigation_item_id)
        result = ProcessResult(navigation_item_id=record.navigation_item_id)

        logger.info("Processing Event: %s (ID: %s)", record.title, record.navigation_item_id)
        for position, main_link in enumerate(record.main_links[:2]):
            logger.info("%s Main URL: %s", "Initial" if position == 0 else "Secondary", main_link)

        filter_keywords = build_filter_keywords(link)
        logger.debug("Combined filtering keywords: %s", filter_keywords)

        catalog = record.catalog_info
        bundle_urls = await self._bundles.resolve(
            catalog.catalog_json_url if catalog else None,
            catalog.base_url if catalog else None,
            filter_keywords,
        )

        if bundle_urls:
            await self._process_bundles(bundle_urls, catalog.base_url, paths, result)
        elif link is not None:
            await self._process_embed(localize_url(link.url), paths, result)
        else:
            logger.warning(
                "Event '%s' has neither a catalog nor a main URL to process.", record.title
            )

        for url in (record.background_url, record.icon_url):
            if url:
                await self._download(url, paths.root, result)

        extra = [u for u in record.additional_asset_urls if u]
        if extra:
            logger.info("Downloading %d additional assets...", len(extra))
        for url in extra:
            if not is_downloadable_asset_url(url):
                logger.warning("Skipped non-downloadable additional asset URL: %s", url)
                continue
            if result.assets.add_asset(url):
                await self._download(url, paths.additional, result)

        return result

    async def _process_bundles(
        self, bundle_urls: List[str], base_url: str, paths: EventPaths, result: ProcessResult
    ) -> None:
        for url in bundle_urls:
            if result.assets.add_bundle(url):
                await self._download(url, paths.bundles, result, label="bundle")

        try:
            await self._extractor.extract(paths.bundles, paths.extracted)
            logger.info("Bundle asset extraction completed: %s", paths.extracted)
        except (ConversionError, ExtractionError) as exc:
            logger.error("Bundle extraction failed: %s", exc)
            result.failures.append(f"extract: {exc}")
            return

        audio_urls = self._audio.resolve_urls(paths.extracted, base_url)
        for url in audio_urls:
            result.assets.add_audio(url)
        result.written.extend(await self._audio.download_urls(audio_urls, paths.audio))

    async def _process_embed(self, url: str, paths: EventPaths, result: ProcessResult) -> None:
        logger.info("Attempting to get assets from main URL: %s", url)
        try:
            session = await self._scraper.scrape(url, paths.embed)
        except ScrapeError as exc:
            logger.error("Embedded scrape aborted: %s", exc)
            result.failures.append(f"scrape: {exc}")
            return
        for asset_url in session.asset_urls:
            result.assets.add_asset(asset_url, key=normalize_asset_name(asset_url))
        result.written.extend(session.written)

    async def _download(
        self, url: str, dest_dir: Path, result: ProcessResult, label: str = "asset"
    ) -> None:
        try:
            result.written.append(
                await download_file(self._client, url, dest_dir, label=label)
            )
        except DownloadError as exc:
            logger.error("Error downloading %s '%s': %s", label, url, exc)
            result.failures.append(f"{label}: {url}: {exc}")
