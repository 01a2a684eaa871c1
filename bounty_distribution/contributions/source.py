"""Contribution sources: where raw per-contributor activity comes from."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from .errors import ContributionSourceAuthError, ContributionSourceError
from .models import Contributor

logger = logging.getLogger(__name__)


class ContributionSource(Protocol):
    """Yields per-contributor raw activity counts for a repository."""

    async def fetch_contributors(
        self, repository_id: str, access_token: str | None = None
    ) -> list[Contributor]: ...


class _TransientSourceError(ContributionSourceError):
    """Connection-level failure worth retrying."""

    pass


@dataclass(frozen=True)
class ContributionSourceConfig:
    """Configuration for the HTTP contribution source."""

    url: str  # e.g., "https://app.example.com"
    contributors_endpoint: str = "/api/github/repositories/{repository_id}/contributors"
    timeout: float = 30.0
    max_retries: int = 3


class HttpContributionSource:
    """
    Fetch contributors from the repository contributors API.

    The API aggregates commit, pull request and review counts per
    contributor. Connection errors are retried with exponential backoff;
    HTTP error statuses are not.
    """

    def __init__(self, config: ContributionSourceConfig):
        """
        Initialize contribution source.

        Args:
            config: Source configuration
        """
        self._config = config
        self._base_url = config.url.rstrip("/")
        self._retry_decorator = retry(
            wait=wait_exponential_jitter(initial=0.1, jitter=0.2),
            stop=stop_after_attempt(config.max_retries),
            retry=retry_if_exception_type(_TransientSourceError),
            reraise=True,
        )

    async def fetch_contributors(
        self, repository_id: str, access_token: str | None = None
    ) -> list[Contributor]:
        """
        Fetch contributors with activity counts.

        Args:
            repository_id: Repository identifier understood by the API
            access_token: Bearer token for the API, if required

        Returns:
            Contributors in the order the API returned them

        Raises:
            ContributionSourceAuthError: If the token is rejected
            ContributionSourceError: If the request fails or payload is invalid
        """
        data = await self._retry_decorator(self._get)(repository_id, access_token)

        items = data.get("contributors") if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise ContributionSourceError(
                f"Unexpected contributors payload type: {type(items).__name__}"
            )

        try:
            contributors = [Contributor.from_api_response(item) for item in items]
        except (KeyError, TypeError, AttributeError) as e:
            raise ContributionSourceError(f"Invalid contributor item: {e}") from e

        logger.info(f"Fetched {len(contributors)} contributors for {repository_id}")
        return contributors

    async def _get(self, repository_id: str, access_token: str | None) -> Any:
        endpoint = self._config.contributors_endpoint.format(repository_id=repository_id)
        url = f"{self._base_url}{endpoint}"
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        async with httpx.AsyncClient(timeout=self._config.timeout) as client:
            try:
                response = await client.request("GET", url, headers=headers)

                if response.status_code in (401, 403):
                    raise ContributionSourceAuthError(
                        f"Access denied for repository {repository_id}: {response.status_code}"
                    )

                response.raise_for_status()

                try:
                    return response.json()
                except ValueError as e:
                    raise ContributionSourceError(
                        f"Invalid JSON response from contribution source: {e}"
                    ) from e

            except httpx.HTTPStatusError as e:
                raise ContributionSourceError(
                    f"Failed to fetch contributors: {e.response.status_code}"
                ) from e
            except httpx.RequestError as e:
                raise _TransientSourceError(f"Connection error: {e}") from e


class StaticContributionSource:
    """Serve a fixed contributor list, e.g. counts pinned in a plan file."""

    def __init__(self, contributors: Sequence[Contributor]):
        self._contributors = list(contributors)

    async def fetch_contributors(
        self, repository_id: str, access_token: str | None = None
    ) -> list[Contributor]:
        return list(self._contributors)
