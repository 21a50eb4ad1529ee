"""
services/pipeline.py – Wires the services of one run around a shared client.

Both the CLI and the Qt workers build their object graph here so that every
component of a run shares the same httpx.AsyncClient and tool binaries.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from services.audio_service import AudioReferenceResolver
from services.catalog_service import (
    CatalogBaseResolver,
    CatalogBundleResolver,
    CatalogSuffixRules,
)
from services.conversion_service import (
    BundleExtractor,
    CatalogConverter,
    SubprocessBundleExtractor,
    SubprocessCatalogConverter,
)
from services.coordinator import EventResolutionCoordinator
from services.embed_scraper import EmbeddedBundleScraper, MainFileRules
from services.event_processor import EventProcessor
from services.fetch_service import UrlFetcher
from services.manifest_service import ManifestService


@dataclass
class Pipeline:
    coordinator: EventResolutionCoordinator
    processor: EventProcessor
    manifests: ManifestService

    @classmethod
    def create(
        cls,
        client: httpx.AsyncClient,
        converter: Optional[CatalogConverter] = None,
        extractor: Optional[BundleExtractor] = None,
        suffix_rules: CatalogSuffixRules = CatalogSuffixRules(),
        main_file_rules: MainFileRules = MainFileRules(),
    ) -> "Pipeline":
        """
        Build every service of a run.

        Tool binaries are only looked up when first used, so a run that
        never converts a catalog does not need them installed.
        """
        fetcher = UrlFetcher(client)
        processor = EventProcessor(
            client=client,
            bundle_resolver=CatalogBundleResolver(
                fetcher, converter or SubprocessCatalogConverter()
            ),
            extractor=extractor or SubprocessBundleExtractor(),
            audio_resolver=AudioReferenceResolver(client),
            scraper=EmbeddedBundleScraper(fetcher, main_file_rules),
        )
        return cls(
            coordinator=EventResolutionCoordinator(
                fetcher, CatalogBaseResolver(fetcher, suffix_rules)
            ),
            processor=processor,
            manifests=ManifestService(fetcher),
        )
