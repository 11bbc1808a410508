"""Thin Supabase PostgREST client (no supabase-py).

Talks to /rest/v1 with the service-role key. Queries are built fluently
(table().select().eq().order().limit()) and executed with execute() for
rows or count() for an exact row count. All HTTP calls use
httpx.AsyncClient so they do not block the event loop.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_REST_PATH = "/rest/v1"


class PostgrestError(Exception):
    """Raised for non-2xx PostgREST responses and transport failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_message(resp: httpx.Response) -> str:
    """Extract PostgREST's error message ({"message": ..., "code": ...}) or fall back to reason."""
    try:
        body = resp.json()
    except ValueError:
        return resp.reason_phrase or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("message"):
        code = body.get("code")
        return f"{body['message']} ({code})" if code else str(body["message"])
    return resp.reason_phrase or f"HTTP {resp.status_code}"


def parse_content_range_total(header: str | None) -> int:
    """Return the total from a Content-Range header ('0-24/3573' or '*/0').

    Raises:
        PostgrestError: If the header is missing or carries no exact total.
    """
    if not header or "/" not in header:
        raise PostgrestError(f"Missing or invalid Content-Range header: {header!r}")
    total = header.rsplit("/", 1)[1]
    if not total.isdigit():
        raise PostgrestError(f"Content-Range has no exact count: {header!r}")
    return int(total)


class _Query:
    """Fluent query builder for one table; filters are PostgREST query params."""

    def __init__(self, client: SupabaseRESTClient, table: str) -> None:
        self._client = client
        self._table = table
        self._columns = "*"
        self._params: list[tuple[str, str]] = []
        self._order: str | None = None
        self._limit: int | None = None

    def select(self, columns: str) -> _Query:
        self._columns = columns
        return self

    def _filter(self, column: str, op: str, value: Any) -> _Query:
        self._params.append((column, f"{op}.{value}"))
        return self

    def eq(self, column: str, value: Any) -> _Query:
        return self._filter(column, "eq", value)

    def gt(self, column: str, value: Any) -> _Query:
        return self._filter(column, "gt", value)

    def gte(self, column: str, value: Any) -> _Query:
        return self._filter(column, "gte", value)

    def lt(self, column: str, value: Any) -> _Query:
        return self._filter(column, "lt", value)

    def lte(self, column: str, value: Any) -> _Query:
        return self._filter(column, "lte", value)

    def not_null(self, column: str) -> _Query:
        self._params.append((column, "not.is.null"))
        return self

    def order(self, column: str, desc: bool = True) -> _Query:
        self._order = f"{column}.{'desc' if desc else 'asc'}"
        return self

    def limit(self, n: int) -> _Query:
        self._limit = n
        return self

    def _build_params(self, columns: str) -> list[tuple[str, str]]:
        params = [("select", columns), *self._params]
        if self._order:
            params.append(("order", self._order))
        if self._limit is not None:
            params.append(("limit", str(self._limit)))
        return params

    async def execute(self) -> list[dict[str, Any]]:
        """Run the query and return the matching rows."""
        resp = await self._client.request(
            "GET", f"/{self._table}", params=self._build_params(self._columns)
        )
        data = resp.json() if resp.content else []
        if not isinstance(data, list):
            raise PostgrestError(f"Expected a JSON array from {self._table}", resp.status_code)
        return data

    async def count(self) -> int:
        """Return the exact number of matching rows (HEAD + Prefer: count=exact)."""
        resp = await self._client.request(
            "HEAD",
            f"/{self._table}",
            params=self._build_params("id"),
            headers={"Prefer": "count=exact"},
        )
        return parse_content_range_total(resp.headers.get("content-range"))


class SupabaseRESTClient:
    """Lightweight PostgREST client for a Supabase project."""

    def __init__(
        self,
        project_url: str,
        api_key: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self._base_url = project_url.rstrip("/") + _REST_PATH
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None

    async def aclose(self) -> None:
        """Close the HTTP client only if we created it (do not close injected client)."""
        if self._owns_http:
            await self._http.aclose()

    def table(self, name: str) -> _Query:
        return _Query(self, name)

    async def rpc(self, function: str, params: dict[str, Any]) -> Any:
        """Call a Postgres function exposed at /rpc/<function>."""
        resp = await self.request("POST", f"/rpc/{function}", json=params)
        return resp.json() if resp.content else None

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: list[tuple[str, str]] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request to /rest/v1<path>; raise PostgrestError unless 2xx."""
        merged = {**self._headers, **(headers or {})}
        try:
            resp = await self._http.request(
                method,
                f"{self._base_url}{path}",
                params=params,
                json=json,
                headers=merged,
            )
        except httpx.TimeoutException as e:
            raise PostgrestError(f"Timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            raise PostgrestError(f"Transport error: {method} {path}: {e}") from e
        if resp.is_success:
            return resp
        message = _error_message(resp)
        logger.debug("PostgREST %s %s -> %s: %s", method, path, resp.status_code, message)
        raise PostgrestError(message, resp.status_code)
