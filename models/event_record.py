"""
models/event_record.py – Data model for discovered events and their assets.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import List, Optional, Set

CATALOG_FILE_NAME: str = "catalog.bin"


class ResolutionStage(IntEnum):
    """Progress of one navigation entry through the resolution pipeline."""

    DISCOVERED = 0
    LINK_RESOLVED = 1
    CATALOG_RESOLVED = 2
    DETAIL_ENRICHED = 3
    COMPLETE = 4


@dataclass
class MainLink:
    """
    A URL pointing to an embeddable web experience for an event.

    Attributes
    ----------
    url         : Embed URL (unique within an event, case-insensitive).
    metagame_id : Optional metagame id from the detail page.
    title       : Optional link title, used as a catalog classification hint.
    """

    url: str
    metagame_id: Optional[str] = None
    title: Optional[str] = None

    def __str__(self) -> str:
        parts = [self.url]
        if self.metagame_id:
            parts.append(f"- Metagame ID: {self.metagame_id}")
        if self.title:
            parts.append(f"(Link Title: {self.title})")
        return " ".join(parts)


@dataclass(frozen=True)
class CatalogInfo:
    """
    Location of an event's WebGL addressables catalog.

    Attributes
    ----------
    base_url         : CDN root used to resolve bundle and audio paths
                       (everything up to and including ``/aa/``).
    catalog_json_url : Full URL of the binary catalog to convert.
    """

    base_url: str
    catalog_json_url: str

    @classmethod
    def from_catalog_url(cls, catalog_url: str) -> "CatalogInfo":
        return cls(
            base_url=catalog_url.replace(CATALOG_FILE_NAME, ""),
            catalog_json_url=catalog_url,
        )


@dataclass
class EventRecord:
    """
    One promotional event discovered from the navigation listing.

    Mutated only by the coordinator during discovery; read-only afterwards.
    """

    navigation_item_id: str
    title: str
    background_url: Optional[str] = None
    icon_url: Optional[str] = None
    main_links: List[MainLink] = field(default_factory=list)
    catalog_info: Optional[CatalogInfo] = None
    additional_asset_urls: List[str] = field(default_factory=list)
    stage: ResolutionStage = ResolutionStage.DISCOVERED

    def __str__(self) -> str:
        return self.title

    @property
    def has_main_embed_url(self) -> bool:
        return bool(self.main_links)

    @property
    def main_event_url(self) -> Optional[str]:
        return self.main_links[0].url if self.main_links else None

    def add_main_link(self, link: MainLink) -> bool:
        """Append *link* unless its URL is already present (case-insensitive)."""
        key = link.url.lower()
        if any(existing.url.lower() == key for existing in self.main_links):
            return False
        self.main_links.append(link)
        return True

    def default_link(self) -> Optional[MainLink]:
        """The first link added is preferred when the user does not choose."""
        return self.main_links[0] if self.main_links else None

    def advance(self, stage: ResolutionStage) -> None:
        # Stages only ever move forward.
        if stage > self.stage:
            self.stage = stage


@dataclass
class ResolvedAssetSet:
    """
    Everything selected for download for one event.

    Bundles and audio are keyed by literal URL; scraped assets by their
    normalized file name so cache-busted copies collapse into one entry.
    """

    bundles: List[str] = field(default_factory=list)
    assets: List[str] = field(default_factory=list)
    audio: List[str] = field(default_factory=list)
    _asset_keys: Set[str] = field(default_factory=set, repr=False)

    def add_bundle(self, url: str) -> bool:
        if url in self.bundles:
            return False
        self.bundles.append(url)
        return True

    def add_audio(self, url: str) -> bool:
        if url in self.audio:
            return False
        self.audio.append(url)
        return True

    def add_asset(self, url: str, key: Optional[str] = None) -> bool:
        key = key if key is not None else url
        if key in self._asset_keys:
            return False
        self._asset_keys.add(key)
        self.assets.append(url)
        return True

    def __len__(self) -> int:
        return len(self.bundles) + len(self.assets) + len(self.audio)


@dataclass
class ProcessResult:
    """Outcome of processing one event."""

    navigation_item_id: str
    assets: ResolvedAssetSet = field(default_factory=ResolvedAssetSet)
    written: List[Path] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures
