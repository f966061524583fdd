"""Tests for document serialization and summaries."""

from __future__ import annotations

import json

import pytest

from aem2hierarchy.exceptions import ConversionError
from aem2hierarchy.output_formatter import (
    count_by_kind,
    count_items,
    document_to_dict,
    format_document,
    load_document,
    summarize,
)
from aem2hierarchy.schemas import BannerImage, HierarchyDocument, HierarchyItem, ItemKind, LinkSources, SourceTag

CP = "/content/share/us/en/all-content-stores/fanta"


def _document() -> HierarchyDocument:
    button = HierarchyItem(
        title="Download Logos",
        path="Brand Assets > Download Logos",
        kind=ItemKind.BUTTON,
        key="button",
        id="button-5f2e",
        link_sources=LinkSources(clickable_url="/content/dam/fanta/logos.zip"),
        source=SourceTag.SECONDARY,
        section_order=3,
    )
    section = HierarchyItem(
        title="Brand Assets",
        path="Brand Assets",
        kind=ItemKind.TITLE,
        children=[button],
        section="Brand Assets",
    )
    return HierarchyDocument(title="Fanta Content Store", items=[section], link_url=CP)


class TestDocumentToDict:
    """Tests for document_to_dict function."""

    def test_wire_names(self) -> None:
        """Fields use their wire names and bookkeeping fields are dropped."""
        data = document_to_dict(_document())
        section = data["items"][0]
        button = section["items"][0]

        assert data["linkURL"] == CP
        assert "bannerImages" not in data
        assert section["type"] == "title"
        assert button == {
            "title": "Download Logos",
            "path": "Brand Assets > Download Logos",
            "type": "button",
            "key": "button",
            "id": "button-5f2e",
            "linkSources": {"clickableUrl": "/content/dam/fanta/logos.zip"},
        }

    def test_leaves_have_no_items(self) -> None:
        """Empty child lists are omitted."""
        data = document_to_dict(_document())
        assert "items" in data["items"][0]
        assert "items" not in data["items"][0]["items"][0]

    def test_banner_images(self) -> None:
        """Banner images are serialized when present."""
        document = _document()
        document.banner_images = [BannerImage(image_url="/hero.png", alt="Hero", file_name="hero.png")]
        data = document_to_dict(document)
        assert data["bannerImages"] == [{"imageUrl": "/hero.png", "alt": "Hero", "fileName": "hero.png"}]


class TestFormatAndLoad:
    """Tests for format_document and load_document functions."""

    def test_format_is_pretty_json(self) -> None:
        """The output is indented JSON of the dumped document."""
        output = format_document(_document())
        assert output.startswith("{\n  ")
        assert json.loads(output) == document_to_dict(_document())

    def test_load_formatted_document(self) -> None:
        """A formatted document loads back with its tree."""
        loaded = load_document(format_document(_document()))
        assert loaded.title == "Fanta Content Store"
        assert loaded.items[0].children[0].kind is ItemKind.BUTTON
        assert loaded.items[0].children[0].link_sources == LinkSources(clickable_url="/content/dam/fanta/logos.zip")

    def test_load_invalid(self) -> None:
        """Documents missing required fields are rejected."""
        with pytest.raises(ConversionError, match="Invalid hierarchy document"):
            load_document('{"title": "No link"}')


class TestSummaries:
    """Tests for count_items, count_by_kind and summarize functions."""

    def test_counts(self) -> None:
        """Every node is counted, grouped by kind."""
        items = _document().items
        assert count_items(items) == 2
        assert count_by_kind(items) == {ItemKind.TITLE: 1, ItemKind.BUTTON: 1}

    def test_summary(self) -> None:
        """The summary lists title, link, counts and images."""
        summary = summarize(_document(), ["/a.png", "/b.png"])
        assert summary.splitlines() == [
            "Title: Fanta Content Store",
            f"Link: {CP}",
            "Sections: 1",
            "Items: 2",
            "Kinds: button=1, title=1",
            "Images: 2",
        ]
