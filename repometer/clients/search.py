"""Code-search client used to discover candidate repositories."""

from __future__ import annotations

from typing import Any, List

from .graphql import GraphQLClient, GraphQLError

_SEARCH_QUERY = """
query DiscoverRepositories($query: String!) {
  search(query: $query, version: V2) {
    results {
      repositories {
        name
      }
    }
  }
}
"""


def build_search_query(language: str, manifest_file: str, count: int) -> str:
    return (
        f"lang:{language} AND select:repo AND repohasfile:{manifest_file} AND count:{count}"
    )


class SearchClient:
    """Queries the code-search GraphQL API for repositories owning a manifest."""

    def __init__(self, client: GraphQLClient) -> None:
        self._client = client

    def search_repositories(self, language: str, manifest_file: str, count: int) -> List[str]:
        """Return repository names in the order the search API ranks them."""
        query = build_search_query(language, manifest_file, count)
        data = self._client.execute(_SEARCH_QUERY, {"query": query})
        repositories = _dig(data, "search", "results", "repositories")
        if not isinstance(repositories, list):
            raise GraphQLError("Search response did not contain a repository list")
        names: List[str] = []
        for entry in repositories:
            name = entry.get("name") if isinstance(entry, dict) else None
            if isinstance(name, str) and name:
                names.append(name)
        return names


def _dig(payload: Any, *keys: str) -> Any:
    current = payload
    for key in keys:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


__all__ = ["SearchClient", "build_search_query"]
