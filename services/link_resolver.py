"""
services/link_resolver.py – Main-link and auxiliary-asset extraction from the
navigation listing and the page-detail documents.

Both documents are loosely structured; every function here is total and
treats a missing or wrong-typed field as "not present".
"""

import logging
from typing import Any, List, Optional

from models.event_record import EventRecord, MainLink
from services.json_tree import dig, dig_list, dig_str

logger = logging.getLogger(__name__)

# ── Configuration ────────────────────────────────────────────────────────────

# Every playable / readable event experience is served from this host.
EMBED_URL_IDENTIFIER: str = "https://embed.rgpub.io/"

METAGAME_ACTION: str = "lc_open_metagame"
IFRAME_ACTION: str = "open_iframe"


def is_embed_url(url: Optional[str]) -> bool:
    return isinstance(url, str) and EMBED_URL_IDENTIFIER.lower() in url.lower()


# ── Navigation listing ───────────────────────────────────────────────────────


def main_url_from_navigation_item(node: Any) -> Optional[str]:
    """Return ``action.payload.url`` when it points at the embed host."""
    url = dig_str(node, "action.payload.url")
    return url if is_embed_url(url) else None


# ── Page detail ──────────────────────────────────────────────────────────────


def _blade_links(blade: Any) -> List[Any]:
    header_links = dig(blade, "header.links")
    if isinstance(header_links, list):
        return header_links
    return dig_list(blade, "links")


def main_links_from_detail_page(doc: Any, record: EventRecord) -> List[MainLink]:
    """
    Collect every metagame link of a page-detail document.

    Also copies the page ``title`` onto *record*.  Links are returned in
    document order, de-duplicated by exact URL.
    """
    links: List[MainLink] = []
    if not isinstance(doc, dict):
        return links

    try:
        title = dig_str(doc, "title")
        if title is not None:
            record.title = title

        for blade in dig_list(doc, "blades"):
            for link in _blade_links(blade):
                if dig_str(link, "action.type") != METAGAME_ACTION:
                    continue
                url = dig_str(link, "action.payload.url")
                if not is_embed_url(url):
                    continue
                metagame_id = dig(link, "action.payload.metagameId")
                main_link = MainLink(
                    url=url,
                    metagame_id=str(metagame_id) if metagame_id is not None else None,
                    title=dig_str(link, "title"),
                )
                logger.debug("Main metagame URL found: %s", main_link)
                links.append(main_link)
    except Exception as exc:  # noqa: BLE001
        logger.error("Error extracting main URLs from the detail page: %s", exc)

    seen: set = set()
    unique: List[MainLink] = []
    for link in links:
        if link.url not in seen:
            seen.add(link.url)
            unique.append(link)
    return unique


def additional_asset_urls(doc: Any) -> List[str]:
    """
    Collect backdrop images/videos, header media, CTA media, link media and
    iframe targets from every blade of a page-detail document.
    """
    urls: List[str] = []

    def _add(value: Any) -> None:
        if isinstance(value, str) and value:
            urls.append(value)

    try:
        for blade in dig_list(doc, "blades"):
            _add(dig(blade, "backdrop.background.url"))
            for source in dig_list(blade, "backdrop.background.sources"):
                _add(dig(source, "src"))
            _add(dig(blade, "backdrop.background.thumbnail.url"))
            _add(dig(blade, "header.media.url"))
            for group in dig_list(blade, "leagueClientTabContentGroups"):
                for cta in dig_list(group, "ctas"):
                    _add(dig(cta, "media.url"))
            for link in dig_list(blade, "header.links") + dig_list(blade, "links"):
                _add(dig(link, "media.url"))
                if dig_str(link, "action.type") == IFRAME_ACTION:
                    _add(dig(link, "action.payload.url"))
    except Exception as exc:  # noqa: BLE001
        logger.error("Error extracting additional assets from the detail page: %s", exc)

    return list(dict.fromkeys(urls))
