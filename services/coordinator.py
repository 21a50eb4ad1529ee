"""
services/coordinator.py – Event discovery across the navigation listing and
the page-detail documents.

For every navigation entry the coordinator builds one EventRecord:

  navigation link  →  catalog (title hint)  →  detail page (links, assets)
                   →  catalog retry (first link's title)  →  complete

A failure while resolving one entry is logged and the partially filled
record is still returned; it never aborts the listing.
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from models.event_record import CatalogInfo, EventRecord, MainLink, ResolutionStage
from services.catalog_service import CatalogBaseResolver
from services.fetch_service import UrlFetcher
from services.json_tree import dig_str
from services.link_resolver import (
    additional_asset_urls,
    main_links_from_detail_page,
    main_url_from_navigation_item,
)

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

NAVIGATION_URL: str = (
    "https://content.publishing.riotgames.com/publishing-content/v1.0/public/"
    "client-navigation/league_client_navigation"
)
DETAIL_BASE_URL: str = (
    "https://content.publishing.riotgames.com/publishing-content/v2.0/public/"
    "channel/league_of_legends_client"
)
# Info and patch-note pages carry no event assets.
DETAIL_EXCLUDED_IDS: FrozenSet[str] = frozenset({"info-hub", "lol-patch-notes"})
HIDDEN_ID_MARKERS: Tuple[str, ...] = ("patch", "info-hub")


def detail_page_url(navigation_item_id: str, base_url: str = DETAIL_BASE_URL) -> str:
    return f"{base_url}/page/{navigation_item_id}"


def displayable_events(events: Iterable[EventRecord]) -> List[EventRecord]:
    """Events worth offering for download (patch notes and info hub hidden)."""
    return [
        e for e in events
        if not any(m in e.navigation_item_id.lower() for m in HIDDEN_ID_MARKERS)
    ]


class EventResolutionCoordinator:
    """Builds EventRecords from the navigation listing."""

    def __init__(
        self,
        fetcher: UrlFetcher,
        catalog_base_resolver: CatalogBaseResolver,
        detail_base_url: str = DETAIL_BASE_URL,
        excluded_ids: FrozenSet[str] = DETAIL_EXCLUDED_IDS,
    ) -> None:
        self._fetcher = fetcher
        self._catalog_base = catalog_base_resolver
        self._detail_base_url = detail_base_url
        self._excluded_ids = frozenset(i.lower() for i in excluded_ids)

    async def track_events(self, navigation_url: str = NAVIGATION_URL) -> Dict[str, EventRecord]:
        """
        Fetch the navigation listing and resolve every entry.

        Returns
        -------
        Dict keyed by navigation item id, in listing order.  Empty when the
        listing cannot be fetched or has no ``data`` array.
        """
        events: Dict[str, EventRecord] = {}

        document = await self._fetcher.try_get_json(navigation_url)
        if document is None:
            logger.warning(
                "The navigation document could not be fetched. "
                "Check the URL or your connection."
            )
            return events

        data = document.get("data") if isinstance(document, dict) else None
        if not isinstance(data, list):
            logger.warning("The navigation document has no 'data' array. No events loaded.")
            return events

        for node in data:
            item_id = dig_str(node, "navigationItemID")
            title = dig_str(node, "title")
            if not item_id or title is None:
                continue
            if item_id in events:
                logger.warning("Duplicate navigation item '%s' ignored.", item_id)
                continue
            events[item_id] = await self.resolve_event(node, item_id, title)

        logger.info("Tracked %d events.", len(events))
        return events

    async def resolve_event(self, node: Any, item_id: str, title: str) -> EventRecord:
        record = EventRecord(navigation_item_id=item_id, title=title)
        attempts: Set[Tuple[str, Optional[str]]] = set()
        try:
            await self._resolve_navigation(node, record, attempts)
            if item_id.lower() not in self._excluded_ids:
                await self._resolve_detail(record, attempts)
        except Exception as exc:  # noqa: BLE001
            logger.error("Error resolving event '%s': %s", item_id, exc)
        record.advance(ResolutionStage.COMPLETE)
        return record

    async def _resolve_navigation(
        self, node: Any, record: EventRecord, attempts: Set[Tuple[str, Optional[str]]]
    ) -> None:
        nav_url = main_url_from_navigation_item(node)
        if nav_url is not None:
            record.add_main_link(MainLink(url=nav_url, title=record.title))
            record.advance(ResolutionStage.LINK_RESOLVED)
            await self._resolve_catalog(record, nav_url, record.title, attempts)

        record.background_url = dig_str(node, "background.url")
        record.icon_url = dig_str(node, "icon.url")

    async def _resolve_detail(
        self, record: EventRecord, attempts: Set[Tuple[str, Optional[str]]]
    ) -> None:
        url = detail_page_url(record.navigation_item_id, self._detail_base_url)
        document = await self._fetcher.try_get_json(url)
        if document is None:
            return

        for link in main_links_from_detail_page(document, record):
            record.add_main_link(link)
        if record.main_links:
            record.advance(ResolutionStage.LINK_RESOLVED)

        if record.catalog_info is None and record.main_links:
            first = record.main_links[0]
            await self._resolve_catalog(record, first.url, first.title, attempts)

        for asset_url in additional_asset_urls(document):
            if asset_url not in record.additional_asset_urls:
                record.additional_asset_urls.append(asset_url)
        record.advance(ResolutionStage.DETAIL_ENRICHED)

    async def _resolve_catalog(
        self,
        record: EventRecord,
        embed_url: str,
        hint: Optional[str],
        attempts: Set[Tuple[str, Optional[str]]],
    ) -> None:
        key = (embed_url.lower(), hint)
        if key in attempts:
            return
        attempts.add(key)

        catalog_url = await self._catalog_base.resolve(embed_url, hint)
        if catalog_url is not None:
            record.catalog_info = CatalogInfo.from_catalog_url(catalog_url)
            record.advance(ResolutionStage.CATALOG_RESOLVED)
