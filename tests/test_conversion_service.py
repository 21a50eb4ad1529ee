"""Subprocess wrappers around the catalog converter and bundle extractor."""

import asyncio
import sys
from pathlib import Path

import pytest

from services import conversion_service
from services.conversion_service import (
    SubprocessBundleExtractor,
    SubprocessCatalogConverter,
    _bin_path,
    _run_subprocess,
)
from services.exceptions import ConversionError, ExtractionError


def test_bin_path_prefers_base_dir(tmp_path, monkeypatch) -> None:
    tool = tmp_path / "bin" / "AssetStudio" / "AssetStudioModCLI"
    tool.parent.mkdir(parents=True)
    tool.write_text("")
    monkeypatch.setenv("RIFTGRAB_BASE", str(tmp_path))

    assert _bin_path("AssetStudio", "AssetStudioModCLI") == tool


def test_bin_path_missing(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("RIFTGRAB_BASE", str(tmp_path))
    monkeypatch.setattr(conversion_service.shutil, "which", lambda name: None)

    with pytest.raises(ConversionError):
        _bin_path("bintojson")


def test_run_subprocess_success_and_failure() -> None:
    out, err = asyncio.run(
        _run_subprocess([sys.executable, "-c", "import sys; print('ok'); print('warn', file=sys.stderr)"], "py")
    )
    assert out.strip() == "ok"
    assert err.strip() == "warn"

    with pytest.raises(ConversionError) as info:
        asyncio.run(_run_subprocess([sys.executable, "-c", "raise SystemExit(3)"], "py"))
    assert "exited with code 3" in str(info.value)


def test_run_subprocess_missing_executable(tmp_path) -> None:
    with pytest.raises(ConversionError):
        asyncio.run(_run_subprocess([str(tmp_path / "no-such-tool")], "bintojson"))


def test_converter_failure_raises(tmp_path) -> None:
    # The interpreter rejects "convert" as a script path and exits non-zero.
    converter = SubprocessCatalogConverter(binary=Path(sys.executable))

    with pytest.raises(ConversionError):
        asyncio.run(converter.convert(tmp_path / "catalog.bin", tmp_path / "catalog.json"))
    assert not (tmp_path / "catalog.json").exists()


def test_extractor_requires_bundles_dir(tmp_path) -> None:
    extractor = SubprocessBundleExtractor(binary=Path(sys.executable))

    with pytest.raises(ExtractionError):
        asyncio.run(extractor.extract(tmp_path / "Bundles", tmp_path / "out"))
