"""Test setup for aem2hierarchy."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

CONTENT_PATH = "/content/share/us/en/all-content-stores/fanta"
COMPONENTS = "tccc-dam/components"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for pytest.

    This allows running integration tests selectively:
        pytest -m integration       # run only integration tests
        pytest -m "not integration" # skip integration tests
    """
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (talk to a real AEM author)",
    )


@pytest.fixture
def content_path() -> str:
    """Repository path of the sample content store."""
    return CONTENT_PATH


@pytest.fixture
def page_jcr() -> dict:
    """A ``jcr:content`` tree with two titled sections.

    "Brand Assets" holds a tabs component with one "Logos" panel and a
    download button; "More Resources" holds a text component and a button
    linking to another content store.
    """
    return {
        "jcr:title": "Fanta Content Store",
        "sling:resourceType": f"{COMPONENTS}/page",
        "root": {
            "sling:resourceType": f"{COMPONENTS}/container",
            "container": {
                "sling:resourceType": f"{COMPONENTS}/container",
                "section_brand": {
                    "sling:resourceType": f"{COMPONENTS}/container",
                    "title": {
                        "sling:resourceType": f"{COMPONENTS}/title",
                        "jcr:title": "Brand Assets",
                    },
                    "tabs": {
                        "sling:resourceType": f"{COMPONENTS}/tabs",
                        "item_1": {
                            "sling:resourceType": f"{COMPONENTS}/container",
                            "cq:panelTitle": "Logos",
                            "button": {
                                "sling:resourceType": f"{COMPONENTS}/button",
                                "jcr:title": "Download Logos",
                                "linkURL": "/content/dam/fanta/logos.zip",
                            },
                        },
                    },
                },
                "section_more": {
                    "sling:resourceType": f"{COMPONENTS}/container",
                    "title": {
                        "sling:resourceType": f"{COMPONENTS}/title",
                        "jcr:title": "More Resources",
                    },
                    "text": {
                        "sling:resourceType": f"{COMPONENTS}/text",
                        "text": "<p>Contact the brand team.</p>",
                    },
                    "button": {
                        "sling:resourceType": f"{COMPONENTS}/button",
                        "jcr:title": "Request Access",
                        "linkURL": "/content/share/us/en/all-content-stores/access.html",
                    },
                },
            },
        },
    }


@pytest.fixture
def tabs_model() -> dict:
    """The Sling model of the "Brand Assets" tabs component."""
    return {
        ":type": f"{COMPONENTS}/tabs",
        "id": "tabs-1f2e3d",
        ":itemsOrder": ["item_1"],
        ":items": {
            "item_1": {
                ":type": f"{COMPONENTS}/container",
                "cq:panelTitle": "Logos",
                "id": "container-8a7b",
                ":itemsOrder": ["button"],
                ":items": {
                    "button": {
                        ":type": f"{COMPONENTS}/button",
                        "id": "button-5f2e",
                        "title": "Download Logos",
                        "link": {"url": "https://author.example.com/content/dam/fanta/logos.zip"},
                    },
                },
            },
        },
    }
