"""Ingestion pipeline for one AEM content store page."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from aem2hierarchy.cache_utils import mkdir_async, write_text_async
from aem2hierarchy.config import AEM2HIERARCHY_DATA_DIR
from aem2hierarchy.csv_export import CsvOptions, render_csv
from aem2hierarchy.dialect import DEFAULT_DIALECT, SourceDialect
from aem2hierarchy.fetch import fetch_jcr, fetch_tabs_models
from aem2hierarchy.http_utils import create_client
from aem2hierarchy.image_download import DownloadReport, cleanup_corrupted_images, download_images
from aem2hierarchy.images import collect_image_urls
from aem2hierarchy.loaders import (
    combine_tabs_models,
    find_tabs_paths,
    most_comprehensive_model,
    section_for_tabs_path,
    top_level_tabs_paths,
)
from aem2hierarchy.naming import output_dir_name
from aem2hierarchy.output_formatter import format_document, summarize
from aem2hierarchy.reconcile import reconcile
from aem2hierarchy.schemas import HierarchyDocument

logger = logging.getLogger(__name__)

HIERARCHY_FILE = "hierarchy-structure.json"
CSV_FILE = "hierarchy-structure.csv"
JCR_FILE = "jcr-content.json"
COMBINED_MODEL_FILE = "combined-tabs.model.json"
MOST_COMPREHENSIVE_MODEL_FILE = "most-comprehensive-tabs.model.json"


@dataclass
class IngestionOptions:
    """Options for content store ingestion.

    Attributes:
        output_root: Directory holding one folder per content store.
        use_cache: If True, reuse fresh cached copies of fetched documents.
        download_images: If True, download teaser and banner images.
        write_csv: If True, also write the CSV rendering.
        csv_options: Options of the CSV rendering.
        cookie: Session cookie; defaults to ``AEM2HIERARCHY_AUTH_COOKIE``.
        dialect: Naming patterns of the export.
    """

    output_root: Path = AEM2HIERARCHY_DATA_DIR
    use_cache: bool = True
    download_images: bool = True
    write_csv: bool = False
    csv_options: CsvOptions = field(default_factory=CsvOptions)
    cookie: str | None = None
    dialect: SourceDialect = DEFAULT_DIALECT


@dataclass
class IngestionResult:
    """Files and document produced for one content store."""

    content_path: str
    output_dir: Path
    document: HierarchyDocument
    hierarchy_file: Path
    summary: str
    csv_file: Path | None = None
    image_report: DownloadReport | None = None


def output_dir_for(content_path: str, output_root: Path) -> Path:
    """Return ``<output_root>/<store>/extracted-results`` for a content path."""
    return output_root / output_dir_name(content_path) / "extracted-results"


async def _write_json(path: Path, data: dict) -> None:
    await write_text_async(path, json.dumps(data, indent=2, ensure_ascii=False))


async def ingest_content_store(
    content_path: str,
    options: IngestionOptions | None = None,
) -> IngestionResult:
    """Fetch, reconcile and write the hierarchy of one content store.

    Args:
        content_path: Repository path of the content store page.
        options: Processing options. Uses defaults if None.

    Returns:
        The ingestion result.

    Raises:
        FetchError: If the JCR tree cannot be fetched.
        AuthenticationExpiredError: If AEM answers with its login page.
        SourceLoadError: If the JCR tree is not valid JSON.
    """
    opts = options or IngestionOptions()
    output_dir = output_dir_for(content_path, opts.output_root)
    cache_dir = output_dir / "caches"
    images_dir = output_dir / "images"
    await mkdir_async(output_dir, parents=True, exist_ok=True)

    if opts.download_images:
        removed = await asyncio.to_thread(cleanup_corrupted_images, images_dir)
        if removed:
            logger.info("Removed %s corrupted image(s) from a previous run", removed)

    async with create_client(opts.cookie) as client:
        jcr = await fetch_jcr(content_path, cache_dir=cache_dir, use_cache=opts.use_cache, client=client)
        await _write_json(output_dir / JCR_FILE, jcr)

        tabs_paths = top_level_tabs_paths(find_tabs_paths(jcr))
        logger.info("Found %s top-level tabs component(s)", len(tabs_paths))
        fetched = await fetch_tabs_models(
            content_path,
            tabs_paths,
            cache_dir=cache_dir,
            use_cache=opts.use_cache,
            client=client,
        )

        model = None
        if fetched:
            models = [tabs_model for _, tabs_model in fetched]
            sections = [section_for_tabs_path(jcr, path, opts.dialect) for path, _ in fetched]
            model = combine_tabs_models(models, sections, opts.dialect)
            await _write_json(output_dir / COMBINED_MODEL_FILE, model)
            best = most_comprehensive_model(models)
            if best is not None:
                await _write_json(output_dir / MOST_COMPREHENSIVE_MODEL_FILE, best)
        else:
            logger.info("No tabs model available; extracting from the JCR tree only")

        document = reconcile(jcr, model, content_path=content_path, dialect=opts.dialect)
        hierarchy_file = output_dir / HIERARCHY_FILE
        await write_text_async(hierarchy_file, format_document(document))
        logger.info("Wrote %s", hierarchy_file)

        image_urls = collect_image_urls(document.items, document.banner_images or [])
        report = None
        if opts.download_images:
            report = await download_images(image_urls, images_dir, client=client)

    csv_file = None
    if opts.write_csv:
        csv_options = opts.csv_options
        if opts.download_images and csv_options.images_dir is None:
            csv_options = CsvOptions(
                store_prefix=csv_options.store_prefix,
                image_base_url=csv_options.image_base_url,
                images_dir=images_dir,
                keep_html=csv_options.keep_html,
            )
        derived_dir = output_dir.parent / "derived-results"
        await mkdir_async(derived_dir, parents=True, exist_ok=True)
        csv_file = derived_dir / CSV_FILE
        await write_text_async(csv_file, render_csv(document, csv_options))
        logger.info("Wrote %s", csv_file)

    return IngestionResult(
        content_path=content_path,
        output_dir=output_dir,
        document=document,
        hierarchy_file=hierarchy_file,
        summary=summarize(document, image_urls),
        csv_file=csv_file,
        image_report=report,
    )
