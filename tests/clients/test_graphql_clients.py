"""Tests for the GraphQL client and the search/platform wrappers."""

from __future__ import annotations

import http.client
import json
from typing import Any, Dict, List

import pytest

from repometer.clients import graphql as graphql_module
from repometer.clients import (
    GraphQLClient,
    GraphQLError,
    GraphQLRequest,
    PlatformClient,
    SearchClient,
    build_search_query,
)


class _Transport:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.requests: List[GraphQLRequest] = []

    def __call__(self, request: GraphQLRequest) -> bytes:
        self.requests.append(request)
        if isinstance(self.response, bytes):
            return self.response
        return json.dumps(self.response).encode("utf-8")

    def payload(self, index: int = 0) -> Dict[str, Any]:
        return json.loads(self.requests[index].body.decode("utf-8"))


def test_execute_posts_query_with_token() -> None:
    transport = _Transport({"data": {"ok": True}})
    client = GraphQLClient(
        "https://api.example/graphql", token="secret", username="bot", transport=transport
    )

    data = client.execute("{ ok }", {"a": 1})

    assert data == {"ok": True}
    request = transport.requests[0]
    assert request.endpoint == "https://api.example/graphql"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["User-Agent"] == "bot"
    assert transport.payload() == {"query": "{ ok }", "variables": {"a": 1}}


def test_execute_raises_on_error_payload() -> None:
    transport = _Transport({"errors": [{"message": "rate limited"}]})
    client = GraphQLClient("https://api.example/graphql", transport=transport)

    with pytest.raises(GraphQLError, match="rate limited"):
        client.execute("{ ok }")


def test_execute_raises_on_invalid_json() -> None:
    client = GraphQLClient("https://api.example/graphql", transport=_Transport(b"<html>"))

    with pytest.raises(GraphQLError, match="invalid JSON"):
        client.execute("{ ok }")


def test_client_requires_endpoint() -> None:
    with pytest.raises(GraphQLError):
        GraphQLClient("")


def test_search_query_shape() -> None:
    assert build_search_query("go", "go.mod", 25) == (
        "lang:go AND select:repo AND repohasfile:go.mod AND count:25"
    )


def test_search_returns_names_in_order() -> None:
    transport = _Transport(
        {
            "data": {
                "search": {
                    "results": {
                        "repositories": [
                            {"name": "github.com/org/a"},
                            {"name": "github.com/org/b"},
                            {"name": ""},
                        ]
                    }
                }
            }
        }
    )
    search = SearchClient(GraphQLClient("https://sg.example/graphql", transport=transport))

    names = search.search_repositories("go", "go.mod", 2)

    assert names == ["github.com/org/a", "github.com/org/b"]
    assert transport.payload()["variables"] == {
        "query": "lang:go AND select:repo AND repohasfile:go.mod AND count:2"
    }


def test_search_without_repository_list_raises() -> None:
    transport = _Transport({"data": {"search": None}})
    search = SearchClient(GraphQLClient("https://sg.example/graphql", transport=transport))

    with pytest.raises(GraphQLError):
        search.search_repositories("go", "go.mod", 1)


def test_platform_maps_metadata_fields() -> None:
    transport = _Transport(
        {
            "data": {
                "repository": {
                    "defaultBranchRef": {"target": {"history": {"totalCount": 10}}},
                    "openIssues": {"totalCount": 0},
                    "closedIssues": {"totalCount": 3},
                    "stargazerCount": 7,
                    "licenseInfo": {"key": "mit"},
                    "createdAt": "2020-01-01T00:00:00Z",
                    "latestRelease": None,
                    "primaryLanguage": {"name": "Go"},
                }
            }
        }
    )
    platform = PlatformClient(GraphQLClient("https://gh.example/graphql", transport=transport))

    metadata = platform.fetch_metadata("org", "a")

    assert metadata.commit_count == 10
    assert metadata.open_issue_count == 0
    assert metadata.closed_issue_count == 3
    assert metadata.stargazer_count == 7
    assert metadata.license_key == "mit"
    assert metadata.primary_language == "Go"
    assert metadata.latest_release == ""
    assert transport.payload()["variables"] == {"owner": "org", "name": "a"}


def test_platform_missing_repository_raises() -> None:
    transport = _Transport({"data": {"repository": None}, "errors": [{"message": "NOT_FOUND"}]})
    platform = PlatformClient(GraphQLClient("https://gh.example/graphql", transport=transport))

    with pytest.raises(GraphQLError, match="not found"):
        platform.fetch_metadata("org", "gone")


class _BrokenResponse:
    def __init__(self, error: BaseException) -> None:
        self.error = error

    def __enter__(self) -> "_BrokenResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def read(self) -> bytes:
        raise self.error


@pytest.mark.parametrize(
    "error",
    [
        ConnectionResetError("peer reset"),
        http.client.IncompleteRead(b"{\"da"),
        http.client.RemoteDisconnected("closed"),
    ],
)
def test_connection_errors_during_read_become_graphql_errors(
    monkeypatch: pytest.MonkeyPatch, error: BaseException
) -> None:
    monkeypatch.setattr(
        graphql_module, "urlopen", lambda request, timeout=None: _BrokenResponse(error)
    )
    client = GraphQLClient("https://search.example/graphql")

    with pytest.raises(GraphQLError, match="connection failed"):
        client.execute("{ ping }")
