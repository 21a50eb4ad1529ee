"""
services/exceptions.py – Structured custom exception hierarchy for riftgrab.

All service-level errors derive from RiftGrabError so callers can catch broadly
or specifically depending on context.
"""


class RiftGrabError(Exception):
    """Base class for all riftgrab exceptions."""


class FetchError(RiftGrabError):
    """Raised when a page or JSON document cannot be fetched or decoded."""


class DownloadError(RiftGrabError):
    """Raised when an asset download fails or cannot be written to disk."""


class ConversionError(RiftGrabError):
    """Raised when bintojson or AssetStudioModCLI fails or is missing."""


class ExtractionError(RiftGrabError):
    """Raised when the bundle extractor produces no usable output."""


class ScrapeError(RiftGrabError):
    """Raised when an embed page cannot be scraped."""


class UnknownDistFileError(ScrapeError):
    """
    Raised when a main dist file does not match any known bundling scheme.

    Attributes
    ----------
    file_name : The rejected dist file name.
    """

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        super().__init__(
            f"Unrecognised main dist file '{file_name}'. "
            "Please provide the dist file."
        )


class StorageError(RiftGrabError):
    """Raised on filesystem errors while laying out event directories."""
