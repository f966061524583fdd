"""Tests for HTTP utilities module."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from aem2hierarchy.exceptions import AuthenticationExpiredError, FetchError
from aem2hierarchy.http_utils import (
    LOGIN_PATH,
    RETRY_STATUS_CODES,
    fetch_with_retries,
    is_login_response,
    request_headers,
)

JCR_URL = "http://localhost:4502/content/share/us/en/all-content-stores/jcr:content.infinity.json"


def _ok_response(text: str = '{"jcr:title": "Stores"}') -> MagicMock:
    response = MagicMock()
    response.status_code = 200
    response.text = text
    response.raise_for_status = MagicMock()
    return response


def _login_response(status_code: int = 200, url: str = JCR_URL) -> httpx.Response:
    request = httpx.Request("GET", url)
    return httpx.Response(
        status_code,
        headers={"content-type": "text/html; charset=utf-8"},
        text="<html><title>AEM Sign In</title><form action='j_security_check'></form></html>",
        request=request,
    )


class TestRetryStatusCodes:
    """Tests for RETRY_STATUS_CODES constant."""

    def test_contains_expected_codes(self) -> None:
        """Should contain all expected retryable status codes."""
        expected = {429, 500, 502, 503, 504}
        assert RETRY_STATUS_CODES == frozenset(expected)

    def test_is_immutable(self) -> None:
        """Should be a frozenset (immutable)."""
        assert isinstance(RETRY_STATUS_CODES, frozenset)


class TestRequestHeaders:
    """Tests for request_headers function."""

    def test_includes_cookie(self) -> None:
        """Sends the session cookie when one is given."""
        headers = request_headers("login-token=abc")
        assert headers["Cookie"] == "login-token=abc"
        assert "User-Agent" in headers

    def test_omits_empty_cookie(self) -> None:
        """Sends no Cookie header for an empty cookie."""
        assert "Cookie" not in request_headers("")


class TestIsLoginResponse:
    """Tests for is_login_response function."""

    def test_json_response_is_not_login(self) -> None:
        """A JSON answer is regular content."""
        response = httpx.Response(
            200,
            headers={"content-type": "application/json"},
            text="{}",
            request=httpx.Request("GET", JCR_URL),
        )
        assert not is_login_response(response)

    def test_unauthorized_is_login(self) -> None:
        """HTTP 401 means the session is gone."""
        response = httpx.Response(401, request=httpx.Request("GET", JCR_URL))
        assert is_login_response(response)

    def test_login_page_markup_is_login(self) -> None:
        """An HTML sign-in page is detected by its markers."""
        assert is_login_response(_login_response())

    def test_redirect_to_login_path_is_login(self) -> None:
        """A final URL on the login path is detected."""
        response = httpx.Response(
            200,
            headers={"content-type": "application/json"},
            text="{}",
            request=httpx.Request("GET", f"http://localhost:4502{LOGIN_PATH}.html"),
        )
        assert is_login_response(response)

    def test_plain_html_is_not_login(self) -> None:
        """HTML without sign-in markers is not a login page."""
        response = httpx.Response(
            200,
            headers={"content-type": "text/html"},
            text="<html><body>Hello</body></html>",
            request=httpx.Request("GET", JCR_URL),
        )
        assert not is_login_response(response)


class TestFetchWithRetries:
    """Tests for fetch_with_retries function."""

    @pytest.mark.asyncio
    async def test_returns_text_by_default(self) -> None:
        """Returns text content when return_bytes=False (default)."""
        mock_response = _ok_response()

        with patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=mock_response)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            result = await fetch_with_retries(JCR_URL)

        assert result == '{"jcr:title": "Stores"}'
        assert isinstance(result, str)

    @pytest.mark.asyncio
    async def test_returns_bytes_when_requested(self) -> None:
        """Returns bytes content when return_bytes=True."""
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.content = b"\x89PNG binary content"
        mock_response.raise_for_status = MagicMock()

        with patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=mock_response)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            result = await fetch_with_retries(JCR_URL, return_bytes=True)

        assert result == b"\x89PNG binary content"
        assert isinstance(result, bytes)

    @pytest.mark.asyncio
    async def test_raises_on_404_with_default_message(self) -> None:
        """Raises FetchError on 404 with default message."""
        mock_response = MagicMock()
        mock_response.status_code = 404

        with patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=mock_response)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            with pytest.raises(FetchError, match="Resource not found"):
                await fetch_with_retries("http://localhost:4502/content/missing.model.json")

    @pytest.mark.asyncio
    async def test_raises_custom_exception_on_404(self) -> None:
        """Raises custom exception class on 404 when specified."""

        class CustomError(Exception):
            pass

        mock_response = MagicMock()
        mock_response.status_code = 404

        with patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=mock_response)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            with pytest.raises(CustomError, match="No tabs model"):
                await fetch_with_retries(
                    JCR_URL,
                    on_404=CustomError,
                    on_404_message="No tabs model",
                )

    @pytest.mark.asyncio
    async def test_raises_auth_expired_on_login_page(self) -> None:
        """The login page is never returned as content."""
        mock_client = AsyncMock()
        mock_client.get = AsyncMock(return_value=_login_response())

        with pytest.raises(AuthenticationExpiredError, match="refresh the session cookie"):
            await fetch_with_retries(JCR_URL, client=mock_client)

    @pytest.mark.asyncio
    async def test_auth_expiry_is_not_retried(self) -> None:
        """An expired session fails on the first attempt."""
        mock_client = AsyncMock()
        mock_client.get = AsyncMock(return_value=_login_response(status_code=401))

        with (
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_MAX_RETRIES", 3),
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_BACKOFF_S", 0.01),
        ):
            with pytest.raises(AuthenticationExpiredError):
                await fetch_with_retries(JCR_URL, client=mock_client)

        assert mock_client.get.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_on_503(self) -> None:
        """Retries on 503 status code."""
        fail_response = MagicMock()
        fail_response.status_code = 503

        with (
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_MAX_RETRIES", 2),
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_BACKOFF_S", 0.01),
            patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class,
        ):
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(side_effect=[fail_response, _ok_response("success")])
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            result = await fetch_with_retries(JCR_URL)

        assert result == "success"
        assert mock_client.get.call_count == 2

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self) -> None:
        """With the default configuration a failure is final."""
        fail_response = MagicMock()
        fail_response.status_code = 503

        with (
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_MAX_RETRIES", 0),
            patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class,
        ):
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=fail_response)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            with pytest.raises(FetchError, match="HTTP 503"):
                await fetch_with_retries(JCR_URL)

        assert mock_client.get.call_count == 1

    @pytest.mark.asyncio
    async def test_raises_after_max_retries(self) -> None:
        """Raises FetchError after exhausting retries."""
        fail_response = MagicMock()
        fail_response.status_code = 503

        with (
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_MAX_RETRIES", 2),
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_BACKOFF_S", 0.01),
            patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class,
        ):
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=fail_response)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            with pytest.raises(FetchError, match="Failed to fetch"):
                await fetch_with_retries(JCR_URL)

            # Initial attempt + 2 retries = 3 total
            assert mock_client.get.call_count == 3

    @pytest.mark.asyncio
    async def test_retries_on_request_error(self) -> None:
        """Retries on network request errors."""
        with (
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_MAX_RETRIES", 2),
            patch("aem2hierarchy.http_utils.AEM2HIERARCHY_FETCH_BACKOFF_S", 0.01),
            patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class,
        ):
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(
                side_effect=[
                    httpx.RequestError("Connection failed"),
                    _ok_response("success"),
                ]
            )
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            result = await fetch_with_retries(JCR_URL)

        assert result == "success"

    @pytest.mark.asyncio
    async def test_uses_provided_client(self) -> None:
        """Uses provided httpx.AsyncClient if passed."""
        mock_client = AsyncMock()
        mock_client.get = AsyncMock(return_value=_ok_response("success"))

        result = await fetch_with_retries(JCR_URL, client=mock_client)

        assert result == "success"
        mock_client.get.assert_called_once_with(JCR_URL)

    @pytest.mark.asyncio
    async def test_client_has_correct_settings(self) -> None:
        """Creates client with cookie, timeout and redirect settings."""
        with patch("aem2hierarchy.http_utils.httpx.AsyncClient") as mock_client_class:
            mock_client = AsyncMock()
            mock_client.get = AsyncMock(return_value=_ok_response("success"))
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=None)
            mock_client_class.return_value = mock_client

            await fetch_with_retries(JCR_URL, cookie="login-token=xyz")

            call_kwargs = mock_client_class.call_args[1]
            assert call_kwargs["follow_redirects"] is True
            assert call_kwargs["max_redirects"] == 5
            assert "timeout" in call_kwargs
            assert call_kwargs["headers"]["Cookie"] == "login-token=xyz"
