"""Tests for the content store ingestion pipeline."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from aem2hierarchy.csv_export import CsvOptions
from aem2hierarchy.exceptions import AuthenticationExpiredError
from aem2hierarchy.image_download import DownloadReport
from aem2hierarchy.ingestion import (
    COMBINED_MODEL_FILE,
    CSV_FILE,
    HIERARCHY_FILE,
    JCR_FILE,
    MOST_COMPREHENSIVE_MODEL_FILE,
    IngestionOptions,
    ingest_content_store,
    output_dir_for,
)

BRAND_TABS = "/jcr:content/root/container/section_brand/tabs"


def test_output_dir_for(tmp_path: Path, content_path: str) -> None:
    """Each store gets its own extracted-results folder."""
    assert output_dir_for(content_path, tmp_path) == tmp_path / "all-content-stores-fanta" / "extracted-results"


class TestIngestContentStore:
    """Tests for ingest_content_store function."""

    @pytest.mark.asyncio
    async def test_writes_all_outputs(
        self, tmp_path: Path, content_path: str, page_jcr: dict, tabs_model: dict
    ) -> None:
        """Sources, hierarchy and CSV land in the store's folders."""
        options = IngestionOptions(output_root=tmp_path, download_images=False, write_csv=True)

        with (
            patch("aem2hierarchy.ingestion.fetch_jcr", new_callable=AsyncMock) as mock_jcr,
            patch("aem2hierarchy.ingestion.fetch_tabs_models", new_callable=AsyncMock) as mock_models,
            patch("aem2hierarchy.ingestion.download_images", new_callable=AsyncMock) as mock_images,
        ):
            mock_jcr.return_value = page_jcr
            mock_models.return_value = [(BRAND_TABS, tabs_model)]
            result = await ingest_content_store(content_path, options)

        output_dir = tmp_path / "all-content-stores-fanta" / "extracted-results"
        assert result.output_dir == output_dir
        assert mock_models.call_args.args == (content_path, [BRAND_TABS])
        mock_images.assert_not_called()

        assert json.loads((output_dir / JCR_FILE).read_text(encoding="utf-8")) == page_jcr
        combined = json.loads((output_dir / COMBINED_MODEL_FILE).read_text(encoding="utf-8"))
        assert combined[":items"]["item_1__tabs0"]["__jcrSection"] == "Brand Assets"
        assert json.loads((output_dir / MOST_COMPREHENSIVE_MODEL_FILE).read_text(encoding="utf-8")) == tabs_model

        hierarchy = json.loads((output_dir / HIERARCHY_FILE).read_text(encoding="utf-8"))
        assert hierarchy["title"] == "Fanta Content Store"
        assert hierarchy["linkURL"] == content_path
        assert [item["title"] for item in hierarchy["items"]] == ["Brand Assets", "More Resources"]

        assert result.csv_file == tmp_path / "all-content-stores-fanta" / "derived-results" / CSV_FILE
        assert result.csv_file.read_text(encoding="utf-8").startswith("path,title,imageUrl,linkURL,type,text\n")
        assert "Items: 6" in result.summary

    @pytest.mark.asyncio
    async def test_jcr_only_when_no_models(self, tmp_path: Path, content_path: str, page_jcr: dict) -> None:
        """Without tabs models the page is reconciled from the JCR tree alone."""
        options = IngestionOptions(output_root=tmp_path, download_images=False)

        with (
            patch("aem2hierarchy.ingestion.fetch_jcr", new_callable=AsyncMock) as mock_jcr,
            patch("aem2hierarchy.ingestion.fetch_tabs_models", new_callable=AsyncMock) as mock_models,
        ):
            mock_jcr.return_value = page_jcr
            mock_models.return_value = []
            result = await ingest_content_store(content_path, options)

        assert not (result.output_dir / COMBINED_MODEL_FILE).exists()
        assert result.csv_file is None
        assert [item.title for item in result.document.items] == ["Brand Assets", "More Resources"]

    @pytest.mark.asyncio
    async def test_downloads_images_into_store(self, tmp_path: Path, content_path: str, page_jcr: dict) -> None:
        """Image URLs are handed to the downloader and the CSV checks the folder."""
        page_jcr["root"]["container"]["hero"] = {
            "sling:resourceType": "tccc-dam/components/image",
            "fileName": "hero.png",
        }
        options = IngestionOptions(output_root=tmp_path, write_csv=True, csv_options=CsvOptions(keep_html=True))

        with (
            patch("aem2hierarchy.ingestion.fetch_jcr", new_callable=AsyncMock) as mock_jcr,
            patch("aem2hierarchy.ingestion.fetch_tabs_models", new_callable=AsyncMock) as mock_models,
            patch("aem2hierarchy.ingestion.download_images", new_callable=AsyncMock) as mock_images,
            patch("aem2hierarchy.ingestion.render_csv", return_value="") as mock_csv,
        ):
            mock_jcr.return_value = page_jcr
            mock_models.return_value = []
            mock_images.return_value = DownloadReport(downloaded=["hero.png"])
            result = await ingest_content_store(content_path, options)

        urls, images_dir = mock_images.call_args.args
        assert urls == [f"{content_path}/_jcr_content/root/container/hero.coreimg.png/0/hero.png"]
        assert images_dir == result.output_dir / "images"
        csv_options = mock_csv.call_args.args[1]
        assert csv_options.images_dir == images_dir
        assert csv_options.keep_html
        assert result.image_report is mock_images.return_value

    @pytest.mark.asyncio
    async def test_expired_session_propagates(self, tmp_path: Path, content_path: str) -> None:
        """An expired session stops the ingestion."""
        options = IngestionOptions(output_root=tmp_path, download_images=False)

        with patch("aem2hierarchy.ingestion.fetch_jcr", new_callable=AsyncMock) as mock_jcr:
            mock_jcr.side_effect = AuthenticationExpiredError("login page")
            with pytest.raises(AuthenticationExpiredError):
                await ingest_content_store(content_path, options)

        assert not (tmp_path / "all-content-stores-fanta" / "extracted-results" / HIERARCHY_FILE).exists()
