from __future__ import annotations

import logging

import httpx
from pydantic import BaseModel, Field, ValidationError

from . import __version__

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class ResolutionError(Exception):
    """The latest release of an upstream project could not be determined."""


class Release(BaseModel):
    tag_name: str = Field(..., description="Git tag of the release, e.g. v1.2.3")
    name: str | None = None
    html_url: str | None = None
    published_at: str | None = None


def split_project(identifier: str) -> tuple[str, str]:
    """Split an "owner/repo" identifier; anything else is a ValueError."""
    parts = identifier.strip().split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Invalid upstream project {identifier!r}, expected 'owner/repo'.")
    return parts[0], parts[1]


class GitHubReleaseClient:
    """Minimal client for the GitHub releases API."""

    def __init__(
        self,
        base_url: str = GITHUB_API_URL,
        token: str | None = None,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": f"versions-exporter/{__version__}",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_s,
            follow_redirects=True,
            transport=transport,
        )

    def get_latest_release(self, owner: str, repo: str) -> Release:
        path = f"/repos/{owner}/{repo}/releases/latest"
        try:
            resp = self._client.get(path)
        except httpx.HTTPError as e:
            raise ResolutionError(f"{owner}/{repo}: {type(e).__name__}: {e}") from e

        if resp.status_code != 200:
            detail = f"HTTP {resp.status_code}"
            if resp.status_code in {403, 429} and resp.headers.get("x-ratelimit-remaining") == "0":
                detail += " (rate limit exceeded)"
            raise ResolutionError(f"{owner}/{repo}: {detail}")

        try:
            return Release.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ResolutionError(f"{owner}/{repo}: invalid release payload: {e}") from e

    def close(self) -> None:
        self._client.close()


class VersionResolver:
    """Turns an upstream project identifier into its latest release tag.

    Failures are logged and resolve to "" so a cycle never aborts on them.
    """

    def __init__(self, client: GitHubReleaseClient):
        self.client = client

    def resolve(self, project: str) -> str:
        try:
            owner, repo = split_project(project)
        except ValueError as e:
            logger.warning("%s", e)
            return ""
        try:
            release = self.client.get_latest_release(owner, repo)
        except ResolutionError as e:
            logger.error("Latest release lookup failed: %s", e)
            return ""
        logger.debug("Latest release of %s/%s is %s", owner, repo, release.tag_name)
        return release.tag_name
