"""Event discovery over the navigation listing and detail pages."""

import asyncio

from models.event_record import ResolutionStage
from services.catalog_service import (
    COMIC_CATALOG_SUFFIX,
    MINIGAME_CATALOG_SUFFIX,
    CatalogBaseResolver,
)
from services.coordinator import (
    NAVIGATION_URL,
    EventResolutionCoordinator,
    detail_page_url,
    displayable_events,
)
from services.fetch_service import UrlFetcher

CDN = "https://cdn.example.com/hero/"
FONT_HTML = (
    f'<link rel="preload" href="{CDN}_next/static/media/font.woff2" as="font" crossorigin>'
)


def _metagame(url, title, metagame_id=None):
    return {
        "title": title,
        "action": {"type": "lc_open_metagame", "payload": {"url": url, "metagameId": metagame_id}},
    }


def _coordinator(web) -> EventResolutionCoordinator:
    fetcher = UrlFetcher(web.client())
    return EventResolutionCoordinator(fetcher, CatalogBaseResolver(fetcher))


def _navigation(web) -> None:
    web.add(
        NAVIGATION_URL,
        {
            "data": [
                {
                    "navigationItemID": "hero-event",
                    "title": "Hero Event",
                    "action": {"payload": {"url": "https://embed.rgpub.io/hero/"}},
                    "background": {"url": "https://cdn.example.com/bg.jpg"},
                    "icon": {"url": "https://cdn.example.com/icon.png"},
                },
                {
                    "navigationItemID": "store",
                    "title": "Store",
                    "action": {"payload": {"url": "https://store.example.com/"}},
                },
                {"navigationItemID": "hero-event", "title": "Duplicate"},
                {"navigationItemID": "", "title": "No id"},
                {"navigationItemID": "untitled"},
                {"navigationItemID": "info-hub", "title": "Info"},
                "garbage",
            ]
        },
    )


def test_track_events(web) -> None:
    _navigation(web)
    web.add("https://embed.rgpub.io/hero/", FONT_HTML)
    web.add(
        detail_page_url("hero-event"),
        {
            "title": "Hero Event: Legends",
            "blades": [
                {
                    "header": {
                        "links": [
                            _metagame("https://EMBED.rgpub.io/hero/", "Play", "hero"),
                            _metagame("https://embed.rgpub.io/hero/comic/", "Read comic", "hero"),
                        ],
                        "media": {"url": "https://cdn.example.com/header.webm"},
                    },
                    "backdrop": {"background": {"url": "https://cdn.example.com/backdrop.jpg"}},
                }
            ],
        },
    )

    events = asyncio.run(_coordinator(web).track_events())

    assert list(events) == ["hero-event", "store", "info-hub"]
    hero = events["hero-event"]
    assert hero.title == "Hero Event: Legends"
    assert [l.url for l in hero.main_links] == [
        "https://embed.rgpub.io/hero/",
        "https://embed.rgpub.io/hero/comic/",
    ]
    assert hero.main_links[0].title == "Hero Event"
    assert hero.catalog_info.catalog_json_url == CDN + COMIC_CATALOG_SUFFIX
    assert hero.catalog_info.base_url.endswith("/StreamingAssets/aa/")
    assert hero.background_url == "https://cdn.example.com/bg.jpg"
    assert hero.icon_url == "https://cdn.example.com/icon.png"
    assert hero.additional_asset_urls == [
        "https://cdn.example.com/backdrop.jpg",
        "https://cdn.example.com/header.webm",
    ]
    assert all(e.stage == ResolutionStage.COMPLETE for e in events.values())

    store = events["store"]
    assert store.main_links == []
    assert store.catalog_info is None

    # Info pages are never looked up in detail and are hidden from users.
    assert detail_page_url("info-hub") not in web.requests
    assert [e.navigation_item_id for e in displayable_events(events.values())] == [
        "hero-event",
        "store",
    ]


def test_catalog_retry_uses_detail_link_title(web) -> None:
    web.add(
        NAVIGATION_URL,
        {"data": [{"navigationItemID": "arcade", "title": "Arcade"}]},
    )
    web.add(
        detail_page_url("arcade"),
        {"blades": [{"links": [_metagame("https://embed.rgpub.io/arcade/", "Play the minigame")]}]},
    )
    web.add("https://embed.rgpub.io/arcade/", FONT_HTML)

    events = asyncio.run(_coordinator(web).track_events())

    arcade = events["arcade"]
    assert arcade.title == "Arcade"
    assert arcade.catalog_info.catalog_json_url == CDN + MINIGAME_CATALOG_SUFFIX
    assert web.count("https://embed.rgpub.io/arcade/") == 1


def test_identical_catalog_attempt_is_not_repeated(web) -> None:
    web.add(
        NAVIGATION_URL,
        {
            "data": [
                {
                    "navigationItemID": "plain",
                    "title": "Plain",
                    "action": {"payload": {"url": "https://embed.rgpub.io/plain/"}},
                }
            ]
        },
    )
    web.add("https://embed.rgpub.io/plain/", "<html>no font</html>")
    web.add(detail_page_url("plain"), {"blades": []})

    events = asyncio.run(_coordinator(web).track_events())

    assert events["plain"].catalog_info is None
    assert web.count("https://embed.rgpub.io/plain/") == 1


def test_unreachable_navigation(web) -> None:
    assert asyncio.run(_coordinator(web).track_events()) == {}
    web.add(NAVIGATION_URL, {"items": []})
    assert asyncio.run(_coordinator(web).track_events()) == {}
