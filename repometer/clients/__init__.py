"""GraphQL API clients for repository discovery and metadata."""

from .graphql import GraphQLClient, GraphQLError, GraphQLRequest
from .platform import PlatformClient
from .search import SearchClient, build_search_query

__all__ = [
    "GraphQLClient",
    "GraphQLError",
    "GraphQLRequest",
    "PlatformClient",
    "SearchClient",
    "build_search_query",
]
