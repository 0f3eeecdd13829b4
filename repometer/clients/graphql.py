"""Minimal GraphQL-over-HTTP client."""

from __future__ import annotations

import http.client
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


class GraphQLError(RuntimeError):
    """Raised for transport failures and GraphQL error payloads."""


@dataclass
class GraphQLRequest:
    """A single POST to a GraphQL endpoint."""

    endpoint: str
    body: bytes
    headers: Dict[str, str]
    timeout: float


Transport = Callable[[GraphQLRequest], bytes]


class GraphQLClient:
    """Posts GraphQL documents and returns the ``data`` member of the response."""

    def __init__(
        self,
        endpoint: str,
        *,
        token: str | None = None,
        username: str | None = None,
        timeout: float = 600.0,
        headers: Mapping[str, str] | None = None,
        transport: Transport | None = None,
    ) -> None:
        if not endpoint:
            raise GraphQLError("GraphQL endpoint is not configured")
        self.endpoint = endpoint
        self.token = token
        self.username = username
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._transport = transport or self._urllib_transport

    def execute(self, query: str, variables: Mapping[str, Any] | None = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = dict(variables)
        request = GraphQLRequest(
            endpoint=self.endpoint,
            body=json.dumps(payload).encode("utf-8"),
            headers=self._build_headers(),
            timeout=self.timeout,
        )
        raw = self._transport(request)

        try:
            response = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise GraphQLError(f"{self.endpoint} returned invalid JSON") from exc
        if not isinstance(response, dict):
            raise GraphQLError(f"{self.endpoint} returned an unexpected payload")

        data = response.get("data")
        errors = response.get("errors")
        if not isinstance(data, dict):
            raise GraphQLError(f"{self.endpoint} query failed: {_format_errors(errors)}")
        return data

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self.username or "repometer",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        headers.update(self.headers)
        return headers

    @staticmethod
    def _urllib_transport(request: GraphQLRequest) -> bytes:
        http_request = Request(
            request.endpoint, data=request.body, headers=request.headers, method="POST"
        )
        try:
            with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
                return response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            message = detail.strip() or exc.reason
            raise GraphQLError(
                f"{request.endpoint} failed with status {exc.code}: {message}"
            ) from exc
        except URLError as exc:
            raise GraphQLError(f"{request.endpoint} request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise GraphQLError(f"{request.endpoint} request timed out") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise GraphQLError(f"{request.endpoint} connection failed: {exc!r}") from exc


def _format_errors(errors: Optional[object]) -> str:
    if not isinstance(errors, list) or not errors:
        return "response has no data"
    messages = []
    for error in errors:
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            messages.append(error["message"])
        else:
            messages.append(str(error))
    return "; ".join(messages)


__all__ = ["GraphQLClient", "GraphQLError", "GraphQLRequest", "Transport"]
