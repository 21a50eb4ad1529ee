"""Motion-comic audio references and Riot client theme manifests."""

import asyncio
import json

from services.audio_service import AudioReferenceResolver, clean_base_url
from services.fetch_service import UrlFetcher
from services.manifest_service import (
    ManifestService,
    flatten_object,
    is_valid_asset,
    manifest_base_url,
    subdir_for_url,
)

CATALOG_BASE = "https://cdn.example.com/hero/Comic/WebGLBuild/StreamingAssets/aa/"
AUDIO_BASE = "https://cdn.example.com/hero/Comic/WebGLBuild/StreamingAssets"


def _write_comics(extracted):
    comics = extracted / "Assets" / "Prefabs" / "Comics"
    comics.mkdir(parents=True)
    (comics / "MotionComicLettering_01.json").write_text(
        json.dumps({"letteringSfx": {"clipName": "vo_hero_01"}}), encoding="utf-8"
    )
    (comics / "MotionComicPanel_01.json").write_text(
        json.dumps(
            {
                "panelSfx": {"clipName": "sfx_wind"},
                "audioEvents": [{"clipName": "sfx_door"}, {"clipName": ""}, {"other": 1}],
            }
        ),
        encoding="utf-8",
    )
    (comics / "MotionComicPanel_02.json").write_text("{broken", encoding="utf-8")
    (comics / "Unrelated.json").write_text(json.dumps({"panelSfx": {"clipName": "nope"}}))
    return comics


def test_clean_base_url() -> None:
    assert clean_base_url(CATALOG_BASE) == AUDIO_BASE
    assert clean_base_url("https://cdn.example.com/x/WebGL/") == "https://cdn.example.com/x"


def test_resolve_audio_urls(tmp_path) -> None:
    _write_comics(tmp_path)
    resolver = AudioReferenceResolver(client=None, delay=0)

    assert resolver.resolve_urls(tmp_path, CATALOG_BASE) == [
        AUDIO_BASE + "/AudioLocales/en_US/vo_hero_01.ogg",
        AUDIO_BASE + "/SoundFX/sfx_wind.ogg",
        AUDIO_BASE + "/SoundFX/sfx_door.ogg",
    ]
    assert resolver.resolve_urls(tmp_path / "missing", CATALOG_BASE) == []


def test_download_audio_skips_failures(web, tmp_path) -> None:
    _write_comics(tmp_path / "ExtractedAssets")
    web.add(AUDIO_BASE + "/SoundFX/sfx_wind.ogg", b"OGG")
    resolver = AudioReferenceResolver(web.client(), delay=0)

    written = asyncio.run(
        resolver.download(tmp_path / "ExtractedAssets", CATALOG_BASE, tmp_path / "Audio")
    )

    assert written == [tmp_path / "Audio" / "sfx_wind.ogg"]
    assert len(web.requests) == 3


def test_flatten_and_filter_manifest() -> None:
    manifest = {
        "theme": {"background": {"image": "img/bg.png", "video": "vid/intro.webm"}},
        "logo": "https://elsewhere.com/logo.png",
        "version": 3,
        "name": "tft",
    }
    flat = flatten_object(manifest)

    assert flat["theme_background_image"] == "img/bg.png"
    assert [v for v in flat.values() if is_valid_asset(v)] == ["img/bg.png", "vid/intro.webm"]


def test_manifest_subdirs_and_base() -> None:
    assert subdir_for_url("https://lol.secure.dyn.riotcdn.net/channels/public/rccontent/tft/theme/manifest.json") == "tft"
    assert subdir_for_url("https://bacon.secure.dyn.riotcdn.net/x/manifest.json") == "lor"
    assert subdir_for_url("https://lol.secure.dyn.riotcdn.net/x/manifest_default.json") == "lol"
    assert subdir_for_url("https://example.com/manifest.json") == "unknown"
    assert manifest_base_url("https://a.net/theme/03/manifest.json") == "https://a.net/theme/03/"


def test_manifest_download(web, tmp_path) -> None:
    manifest_url = "https://valorant.secure.dyn.riotcdn.net/channels/public/rccontent/theme/03/manifest.json"
    web.add(manifest_url, {"bg": {"img": "bg.jpg"}, "music": "audio/theme.ogg"})
    web.add("https://valorant.secure.dyn.riotcdn.net/channels/public/rccontent/theme/03/bg.jpg", b"JPG")
    service = ManifestService(
        UrlFetcher(web.client()),
        manifest_urls=(manifest_url, "https://example.com/missing/manifest.json"),
    )

    written = asyncio.run(service.download_all(tmp_path))

    assert written == [tmp_path / "val" / "bg.jpg"]
    assert "https://valorant.secure.dyn.riotcdn.net/channels/public/rccontent/theme/03/audio/theme.ogg" in web.requests
