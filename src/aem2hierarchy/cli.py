"""Command line entry point for aem2hierarchy."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from aem2hierarchy.config import (
    AEM2HIERARCHY_AUTH_COOKIE,
    AEM2HIERARCHY_CONTENT_PATH,
    AEM2HIERARCHY_DATA_DIR,
    read_cookie_file,
)
from aem2hierarchy.csv_export import CsvOptions, render_csv
from aem2hierarchy.exceptions import (
    AuthenticationExpiredError,
    ConversionError,
    FetchError,
    SourceLoadError,
)
from aem2hierarchy.ingestion import IngestionOptions, ingest_content_store
from aem2hierarchy.links import linked_content_stores
from aem2hierarchy.loaders import load_json_file
from aem2hierarchy.output_formatter import format_document, load_document, summarize
from aem2hierarchy.reconcile import reconcile
from aem2hierarchy.schemas import HierarchyDocument

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_AUTH_EXPIRED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aem2hierarchy",
        description="Reconcile AEM content store pages into one hierarchy.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Fetch a content store from AEM and write its hierarchy")
    extract.add_argument(
        "content_path",
        nargs="?",
        default=AEM2HIERARCHY_CONTENT_PATH,
        help="Repository path of the content store page",
    )
    extract.add_argument("--output-dir", type=Path, default=AEM2HIERARCHY_DATA_DIR, help="Root output directory")
    extract.add_argument("--no-images", action="store_true", help="Skip image downloads")
    extract.add_argument("--no-cache", action="store_true", help="Always fetch fresh copies")
    extract.add_argument("--csv", action="store_true", help="Also write the CSV rendering")
    extract.add_argument("--store-prefix", default="", help="Prefix of rewritten content store links")
    extract.add_argument("--cookie-file", type=Path, help="Config file holding AUTHOR_AUTH_COOKIE=...")
    extract.add_argument(
        "--follow-links",
        action="store_true",
        help="Also extract every content store linked from the hierarchy",
    )

    rec = subparsers.add_parser("reconcile", help="Reconcile local JCR and model files")
    rec.add_argument("--jcr", type=Path, required=True, help="Path to the jcr:content JSON file")
    rec.add_argument("--model", type=Path, help="Path to the (combined) tabs model JSON file")
    rec.add_argument("--content-path", default="", help="Repository path of the page")
    rec.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")

    csv_cmd = subparsers.add_parser("csv", help="Render a hierarchy JSON file as CSV")
    csv_cmd.add_argument("input", type=Path, help="hierarchy-structure.json file")
    csv_cmd.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    csv_cmd.add_argument("--store-prefix", default="", help="Prefix of rewritten content store links")
    csv_cmd.add_argument("--image-base-url", help="Base URL for image cells")
    csv_cmd.add_argument("--images-dir", type=Path, help="Leave image cells empty for files missing here")
    csv_cmd.add_argument("--keep-html", action="store_true", help="Keep rich text markup in the text column")

    links = subparsers.add_parser("links", help="List content stores linked from a hierarchy JSON file")
    links.add_argument("input", type=Path, help="hierarchy-structure.json file")

    return parser


def _write_output(content: str, output: Path | None) -> None:
    if output is None:
        sys.stdout.write(content)
        if not content.endswith("\n"):
            sys.stdout.write("\n")
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    logger.info("Wrote %s", output)


def _read_document(path: Path) -> HierarchyDocument:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceLoadError(f"Cannot read {path}: {exc}") from exc
    return load_document(content)


async def _run_extract(args: argparse.Namespace) -> None:
    cookie = AEM2HIERARCHY_AUTH_COOKIE
    if args.cookie_file:
        try:
            cookie = read_cookie_file(args.cookie_file)
        except (OSError, ValueError) as exc:
            raise SourceLoadError(str(exc)) from exc

    options = IngestionOptions(
        output_root=args.output_dir,
        use_cache=not args.no_cache,
        download_images=not args.no_images,
        write_csv=args.csv,
        csv_options=CsvOptions(store_prefix=args.store_prefix),
        cookie=cookie,
    )
    pending = [args.content_path]
    seen: set[str] = set()
    while pending:
        content_path = pending.pop(0)
        if content_path in seen:
            continue
        seen.add(content_path)
        result = await ingest_content_store(content_path, options)
        print(result.summary)
        print(f"Output: {result.output_dir}")
        if args.follow_links:
            linked = [path for path in linked_content_stores(result.document) if path not in seen]
            if linked:
                logger.info("Following %s linked content store(s)", len(linked))
            pending.extend(linked)


def _run_reconcile(args: argparse.Namespace) -> None:
    jcr = load_json_file(args.jcr)
    model = load_json_file(args.model) if args.model else None
    content_path = args.content_path or args.jcr.stem
    document = reconcile(jcr, model, content_path=content_path)
    _write_output(format_document(document), args.output)
    logger.info("%s", summarize(document).replace("\n", "; "))


def _run_csv(args: argparse.Namespace) -> None:
    document = _read_document(args.input)
    options = CsvOptions(
        store_prefix=args.store_prefix,
        image_base_url=args.image_base_url,
        images_dir=args.images_dir,
        keep_html=args.keep_html,
    )
    _write_output(render_csv(document, options), args.output)


def _run_links(args: argparse.Namespace) -> None:
    document = _read_document(args.input)
    for path in linked_content_stores(document):
        print(path)


def main(argv: list[str] | None = None) -> int:
    """Run the command line interface and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "extract":
            asyncio.run(_run_extract(args))
        elif args.command == "reconcile":
            _run_reconcile(args)
        elif args.command == "csv":
            _run_csv(args)
        elif args.command == "links":
            _run_links(args)
    except AuthenticationExpiredError as exc:
        logger.error("Authentication expired: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_AUTH_EXPIRED
    except (FetchError, SourceLoadError, ConversionError) as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
