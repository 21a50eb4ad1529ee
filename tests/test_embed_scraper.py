"""Embedded dist-bundle scraping."""

import asyncio

import pytest

from services.embed_scraper import (
    EmbeddedBundleScraper,
    MainFileRules,
    check_main_file,
    css_asset_directory,
    extract_asset_paths,
    extract_css_asset_urls,
    find_svgs,
    normalize_asset_name,
)
from services.exceptions import UnknownDistFileError
from services.fetch_service import UrlFetcher

EMBED = "https://embed.rgpub.io/hero/"
DIST_DIR = "https://assetcdn.rgpub.io/public/live/bundle-offload/hero/abc123"
DIST_JS = DIST_DIR + "/app.1a2b3c4d.js"
SVG = '<svg viewBox="0 0 10 10"><path d="M0 0h10v10z"/></svg>'
JS = (
    'var a="/static/img/a.b2c3d4e5.png";'
    'var b="/static/img/a.c0ffee12.png";'
    'var c="/fe/shell/logo.png";'
    f"var s='{SVG}';"
)


def _site(web) -> None:
    web.add(EMBED, f'<html><script src="{DIST_JS}"></script><script src="{DIST_JS}"></script></html>')
    web.add(DIST_JS, JS)
    web.add(DIST_DIR + "/static/img/a.b2c3d4e5.png", b"PNG")
    web.add(DIST_DIR + "/static/img/a.c0ffee12.png", b"PNG2")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("image.4f9a2b1.png", "image.png"),
        ("image-immortalized.png", "image-immortalized.png"),
        ("https://cdn.example.com/x/preview.d4eac4.webm?v=1", "preview.webm"),
        ("plain.png", "plain.png"),
        ("f.abcdef.aaaaaa.png", "f.png"),
    ],
)
def test_normalize_asset_name(name, expected) -> None:
    assert normalize_asset_name(name) == expected
    assert normalize_asset_name(expected) == expected


def test_check_main_file() -> None:
    check_main_file("app.1a2b3c4d.js")
    check_main_file("app.css")
    check_main_file("123-0123abcd.js")
    with pytest.raises(UnknownDistFileError) as info:
        check_main_file("vendor.0123abcd.js")
    assert info.value.file_name == "vendor.0123abcd.js"
    assert "Please provide the dist file" in str(info.value)


def test_extract_asset_paths_rewrites_vendor_and_drops_shell() -> None:
    js = '"/vendor/img/x.png" "/fe/y.png" "/static/z.json"'
    assert extract_asset_paths(js) == ["/commons/img/x.png", "/static/z.json"]


def test_css_asset_urls_and_directories() -> None:
    css = (
        "a{background:url(https://assetcdn.rgpub.io/hero/_next/static/media/bg.1234abcd.jpg)}"
        "b{background:url('https://assetcdn.rgpub.io/hero/_next/static/media/bg.1234abcd.jpg')}"
    )
    urls = extract_css_asset_urls(css)
    assert urls == ["https://assetcdn.rgpub.io/hero/_next/static/media/bg.1234abcd.jpg"]
    dist = "https://assetcdn.rgpub.io/hero/_next/static/css/app.css"
    assert css_asset_directory(urls[0], dist) == "media"


def test_find_svgs_drops_template_noise() -> None:
    js = SVG + '"<svg>"+r+"</svg>"'
    assert find_svgs(js) == [SVG]


def test_scrape_end_to_end(web, tmp_path) -> None:
    _site(web)
    scraper = EmbeddedBundleScraper(UrlFetcher(web.client()))
    out = tmp_path / "EmbedScrapedContent"

    session = asyncio.run(scraper.scrape(EMBED, out))

    assert (out / "app.1a2b3c4d.js").is_file()
    assert (out / "static" / "img" / "a.png").read_bytes() == b"PNG"
    svgs = list((out / "svg").glob("*.svg"))
    assert len(svgs) == 1
    assert svgs[0].read_text(encoding="utf-8") == SVG

    # One download per normalized name, shell assets never requested.
    assert web.count(DIST_JS) == 1
    assert web.count(DIST_DIR + "/static/img/a.b2c3d4e5.png") == 1
    assert web.count(DIST_DIR + "/static/img/a.c0ffee12.png") == 0
    assert not any("/fe/" in url for url in web.requests)

    manifest = (out / "files.txt").read_text(encoding="utf-8").split()
    assert "static/img/a.png" in manifest
    assert f"svg/{svgs[0].name}" in manifest
    assert session.asset_urls == [DIST_JS, DIST_DIR + "/static/img/a.b2c3d4e5.png"]


def test_second_scrape_fetches_nothing_new(web, tmp_path) -> None:
    _site(web)
    scraper = EmbeddedBundleScraper(UrlFetcher(web.client()))
    out = tmp_path / "embed"

    asyncio.run(scraper.scrape(EMBED, out))
    requests_after_first = len(web.requests)
    asyncio.run(scraper.scrape(EMBED, out))

    # Only the embed page itself is read again.
    assert web.requests[requests_after_first:] == [EMBED]


def test_unknown_dist_file_aborts(web, tmp_path) -> None:
    vendor = DIST_DIR + "/vendor.0123abcd.js"
    web.add(EMBED, f'<script src="{vendor}"></script>')
    rules = MainFileRules(dist_url_pattern=r"https://assetcdn\.rgpub\.io/[^\"']+\.js")
    scraper = EmbeddedBundleScraper(UrlFetcher(web.client()), rules)

    with pytest.raises(UnknownDistFileError):
        asyncio.run(scraper.scrape(EMBED, tmp_path / "embed"))
    assert web.count(vendor) == 0


def test_scrape_without_dist_files(web, tmp_path) -> None:
    web.add(EMBED, "<html>nothing here</html>")
    scraper = EmbeddedBundleScraper(UrlFetcher(web.client()))

    session = asyncio.run(scraper.scrape(EMBED, tmp_path / "embed"))

    assert session.written == []
    assert not (tmp_path / "embed").exists()
