"""Tests for contribution sources."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from bounty_distribution.contributions import (
    ContributionSourceAuthError,
    ContributionSourceConfig,
    ContributionSourceError,
    Contributor,
    HttpContributionSource,
    StaticContributionSource,
)

BASE_URL = "https://contrib.example.com"
ENDPOINT = f"{BASE_URL}/api/github/repositories/42/contributors"


def _response(status_code: int, **kwargs) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("GET", ENDPOINT), **kwargs)


@pytest.fixture
def source() -> HttpContributionSource:
    return HttpContributionSource(ContributionSourceConfig(url=f"{BASE_URL}/"))


class TestContributorParsing:
    """Tests for Contributor.from_api_response."""

    def test_nested_contributions(self):
        contributor = Contributor.from_api_response(
            {
                "id": 7,
                "login": "octocat",
                "avatarUrl": "https://avatars.example.com/7",
                "contributions": {"commits": 10, "pullRequests": 2, "reviews": 4},
            }
        )

        assert contributor.id == "7"
        assert contributor.login == "octocat"
        assert contributor.activity.commits == 10
        assert contributor.activity.pull_requests == 2
        assert contributor.activity.reviews == 4

    def test_top_level_counts(self):
        contributor = Contributor.from_api_response({"id": "9", "commits": 3})

        assert contributor.activity.commits == 3
        assert contributor.activity.reviews == 0
        assert not contributor.activity.is_empty


class TestHttpContributionSource:
    """Tests for HttpContributionSource."""

    async def test_fetches_contributor_list(self, source):
        payload = [
            {"id": "1", "login": "alice", "contributions": {"commits": 5}},
            {"id": "2", "login": "bob", "contributions": {"reviews": 3}},
        ]
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            return_value=_response(200, json=payload),
        ) as mock_request:
            contributors = await source.fetch_contributors("42", "secret-token")

        assert [c.login for c in contributors] == ["alice", "bob"]
        args, kwargs = mock_request.call_args
        assert args == ("GET", ENDPOINT)
        assert kwargs["headers"]["Authorization"] == "Bearer secret-token"

    async def test_accepts_wrapped_payload(self, source):
        payload = {"contributors": [{"id": "1", "commits": 2}]}
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            return_value=_response(200, json=payload),
        ):
            contributors = await source.fetch_contributors("42")

        assert contributors[0].activity.commits == 2

    async def test_no_token_sends_no_auth_header(self, source):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            return_value=_response(200, json=[]),
        ) as mock_request:
            await source.fetch_contributors("42")

        assert "Authorization" not in mock_request.call_args.kwargs["headers"]

    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_failure(self, source, status_code):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            return_value=_response(status_code),
        ):
            with pytest.raises(ContributionSourceAuthError):
                await source.fetch_contributors("42", "expired")

    async def test_http_error(self, source):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            return_value=_response(500),
        ) as mock_request:
            with pytest.raises(ContributionSourceError, match="500"):
                await source.fetch_contributors("42")

        # HTTP statuses are not retried
        assert mock_request.call_count == 1

    async def test_connection_error_retried(self, source):
        """Connection errors retry, then surface as ContributionSourceError."""
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            side_effect=httpx.ConnectError("refused"),
        ) as mock_request:
            with pytest.raises(ContributionSourceError, match="Connection error"):
                await source.fetch_contributors("42")

        assert mock_request.call_count == 3

    async def test_recovers_after_transient_error(self, source):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            side_effect=[
                httpx.ConnectError("refused"),
                _response(200, json=[{"id": "1", "commits": 1}]),
            ],
        ):
            contributors = await source.fetch_contributors("42")

        assert len(contributors) == 1

    async def test_invalid_json(self, source):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            return_value=_response(200, content=b"<html>"),
        ):
            with pytest.raises(ContributionSourceError, match="Invalid JSON"):
                await source.fetch_contributors("42")

    async def test_unexpected_payload_shape(self, source):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            return_value=_response(200, json={"data": "nope"}),
        ):
            with pytest.raises(ContributionSourceError, match="payload"):
                await source.fetch_contributors("42")

    async def test_item_without_id(self, source):
        with patch.object(
            httpx.AsyncClient,
            "request",
            new_callable=AsyncMock,
            return_value=_response(200, json=[{"login": "ghost"}]),
        ):
            with pytest.raises(ContributionSourceError, match="Invalid contributor"):
                await source.fetch_contributors("42")


class TestStaticContributionSource:
    """Tests for StaticContributionSource."""

    async def test_returns_copy(self, make_contributor):
        alice = make_contributor("alice", commits=1)
        source = StaticContributionSource([alice])

        first = await source.fetch_contributors("42")
        first.clear()

        assert await source.fetch_contributors("42") == [alice]
