"""Hosting-platform client that fetches per-repository metadata."""

from __future__ import annotations

from typing import Any

from ..models import RepositoryMetadata
from .graphql import GraphQLClient, GraphQLError
from .search import _dig

_METADATA_QUERY = """
query RepositoryMetadata($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    defaultBranchRef {
      target {
        ... on Commit {
          history {
            totalCount
          }
        }
      }
    }
    openIssues: issues(states: OPEN) {
      totalCount
    }
    closedIssues: issues(states: CLOSED) {
      totalCount
    }
    stargazerCount
    licenseInfo {
      key
    }
    createdAt
    latestRelease {
      publishedAt
    }
    primaryLanguage {
      name
    }
  }
}
"""


class PlatformClient:
    """Issues the bundled metadata query for a single repository."""

    def __init__(self, client: GraphQLClient) -> None:
        self._client = client

    def fetch_metadata(self, owner: str, name: str) -> RepositoryMetadata:
        data = self._client.execute(_METADATA_QUERY, {"owner": owner, "name": name})
        repository = data.get("repository")
        if not isinstance(repository, dict):
            raise GraphQLError(f"Repository {owner}/{name} not found")

        return RepositoryMetadata(
            open_issue_count=_as_int(_dig(repository, "openIssues", "totalCount")),
            closed_issue_count=_as_int(_dig(repository, "closedIssues", "totalCount")),
            commit_count=_as_int(
                _dig(repository, "defaultBranchRef", "target", "history", "totalCount")
            ),
            stargazer_count=_as_int(repository.get("stargazerCount")),
            license_key=_as_str(_dig(repository, "licenseInfo", "key")),
            primary_language=_as_str(_dig(repository, "primaryLanguage", "name")),
            creation_date=_as_str(repository.get("createdAt")),
            latest_release=_as_str(_dig(repository, "latestRelease", "publishedAt")),
        )


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    return value if isinstance(value, int) else 0


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


__all__ = ["PlatformClient"]
