"""Tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from aem2hierarchy.cli import EXIT_AUTH_EXPIRED, EXIT_FAILURE, EXIT_OK, build_parser, main
from aem2hierarchy.exceptions import AuthenticationExpiredError
from aem2hierarchy.ingestion import IngestionResult
from aem2hierarchy.loaders import combine_tabs_models
from aem2hierarchy.output_formatter import format_document
from aem2hierarchy.reconcile import reconcile


@pytest.fixture
def hierarchy_file(tmp_path: Path, page_jcr: dict, content_path: str) -> Path:
    """A hierarchy document of the sample page written to disk."""
    path = tmp_path / "hierarchy-structure.json"
    path.write_text(format_document(reconcile(page_jcr, None, content_path=content_path)), encoding="utf-8")
    return path


def _result(content_path: str, document: object, tmp_path: Path) -> IngestionResult:
    return IngestionResult(
        content_path=content_path,
        output_dir=tmp_path,
        document=document,
        hierarchy_file=tmp_path / "hierarchy-structure.json",
        summary=f"Link: {content_path}",
    )


class TestBuildParser:
    """Tests for build_parser function."""

    def test_requires_command(self) -> None:
        """A subcommand is mandatory."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_extract_defaults(self) -> None:
        """Extraction downloads images and uses the cache by default."""
        args = build_parser().parse_args(["extract", "/content/share/us/en/all-content-stores/fanta"])
        assert args.content_path == "/content/share/us/en/all-content-stores/fanta"
        assert not args.no_images
        assert not args.no_cache
        assert not args.follow_links


class TestReconcileCommand:
    """Tests for the reconcile subcommand."""

    def test_writes_document(self, tmp_path: Path, page_jcr: dict, tabs_model: dict, content_path: str) -> None:
        """Local source files are reconciled into the output file."""
        jcr_file = tmp_path / "jcr-content.json"
        jcr_file.write_text(json.dumps(page_jcr), encoding="utf-8")
        model_file = tmp_path / "combined-tabs.model.json"
        model_file.write_text(json.dumps(combine_tabs_models([tabs_model], ["Brand Assets"])), encoding="utf-8")
        output = tmp_path / "out" / "hierarchy-structure.json"

        code = main(
            [
                "reconcile",
                "--jcr",
                str(jcr_file),
                "--model",
                str(model_file),
                "--content-path",
                content_path,
                "-o",
                str(output),
            ]
        )

        assert code == EXIT_OK
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["linkURL"] == content_path
        assert data["items"][0]["items"][0]["items"][0]["id"] == "button-5f2e"

    def test_missing_input(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A missing source file exits with a failure code."""
        code = main(["reconcile", "--jcr", str(tmp_path / "missing.json")])
        assert code == EXIT_FAILURE
        assert "Input file not found" in capsys.readouterr().err

    def test_stdout(self, tmp_path: Path, page_jcr: dict, capsys: pytest.CaptureFixture[str]) -> None:
        """Without an output file the document goes to stdout, named after the file."""
        jcr_file = tmp_path / "fanta.json"
        jcr_file.write_text(json.dumps(page_jcr), encoding="utf-8")

        assert main(["reconcile", "--jcr", str(jcr_file)]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["linkURL"] == "fanta"


class TestCsvCommand:
    """Tests for the csv subcommand."""

    def test_renders_csv(self, hierarchy_file: Path, tmp_path: Path) -> None:
        """The hierarchy file is written as CSV."""
        output = tmp_path / "hierarchy-structure.csv"
        assert main(["csv", str(hierarchy_file), "-o", str(output), "--store-prefix", "stores"]) == EXIT_OK
        lines = output.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "path,title,imageUrl,linkURL,type,text"
        assert lines[-1].startswith("More Resources > Request Access,Request Access,,/stores/content-stores/")

    def test_invalid_document(self, tmp_path: Path) -> None:
        """A file that is not a hierarchy document fails."""
        bad = tmp_path / "bad.json"
        bad.write_text("[]", encoding="utf-8")
        assert main(["csv", str(bad)]) == EXIT_FAILURE


class TestLinksCommand:
    """Tests for the links subcommand."""

    def test_prints_linked_stores(self, hierarchy_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """Each linked content store is printed on its own line."""
        assert main(["links", str(hierarchy_file)]) == EXIT_OK
        assert capsys.readouterr().out.splitlines() == ["/content/share/us/en/all-content-stores/access"]


class TestExtractCommand:
    """Tests for the extract subcommand."""

    def test_passes_options(self, tmp_path: Path, content_path: str) -> None:
        """Command line flags become ingestion options."""
        with patch("aem2hierarchy.cli.ingest_content_store", new_callable=AsyncMock) as mock_ingest:
            mock_ingest.return_value = _result(content_path, reconcile({}, None, content_path=content_path), tmp_path)
            code = main(["extract", content_path, "--output-dir", str(tmp_path), "--no-images", "--csv"])

        assert code == EXIT_OK
        path, options = mock_ingest.call_args.args
        assert path == content_path
        assert options.output_root == tmp_path
        assert not options.download_images
        assert options.write_csv
        assert options.use_cache

    def test_follow_links(self, tmp_path: Path, page_jcr: dict, content_path: str) -> None:
        """Linked content stores are extracted after the first one."""
        linked = "/content/share/us/en/all-content-stores/access"
        documents = {
            content_path: reconcile(page_jcr, None, content_path=content_path),
            linked: reconcile({}, None, content_path=linked),
        }

        async def fake_ingest(path: str, options: object) -> IngestionResult:
            return _result(path, documents[path], tmp_path)

        with patch("aem2hierarchy.cli.ingest_content_store", side_effect=fake_ingest) as mock_ingest:
            code = main(["extract", content_path, "--output-dir", str(tmp_path), "--follow-links"])

        assert code == EXIT_OK
        assert [call.args[0] for call in mock_ingest.call_args_list] == [content_path, linked]

    def test_expired_session_exit_code(self, tmp_path: Path, content_path: str) -> None:
        """An expired session has its own exit code."""
        with patch("aem2hierarchy.cli.ingest_content_store", new_callable=AsyncMock) as mock_ingest:
            mock_ingest.side_effect = AuthenticationExpiredError("login page")
            code = main(["extract", content_path, "--output-dir", str(tmp_path)])

        assert code == EXIT_AUTH_EXPIRED

    def test_cookie_file(self, tmp_path: Path, content_path: str) -> None:
        """The session cookie is read from the config file."""
        cookie_file = tmp_path / "config"
        cookie_file.write_text("AEM_AUTHOR=http://localhost:4502\nAUTHOR_AUTH_COOKIE=login-token=abc\n")

        with patch("aem2hierarchy.cli.ingest_content_store", new_callable=AsyncMock) as mock_ingest:
            mock_ingest.return_value = _result(content_path, reconcile({}, None, content_path=content_path), tmp_path)
            main(["extract", content_path, "--output-dir", str(tmp_path), "--cookie-file", str(cookie_file)])

        assert mock_ingest.call_args.args[1].cookie == "login-token=abc"

    def test_cookie_file_without_cookie(self, tmp_path: Path, content_path: str) -> None:
        """A config file without the cookie entry fails."""
        cookie_file = tmp_path / "config"
        cookie_file.write_text("AEM_AUTHOR=http://localhost:4502\n")
        assert main(["extract", content_path, "--cookie-file", str(cookie_file)]) == EXIT_FAILURE
