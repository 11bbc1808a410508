"""Supabase implementation of IStatsDataSource.

Translates QueryFilter DTOs into PostgREST filters and PostgrestError into
DataSourceException so the use case only deals with domain errors.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from app.application.dtos.query import QueryFilter
from app.domain.exceptions import DataSourceException
from app.infrastructure.supabase._rest_client import (
    PostgrestError,
    SupabaseRESTClient,
    _Query,
)


def _apply_filters(query: _Query, filters: Sequence[QueryFilter]) -> _Query:
    for f in filters:
        if f.op == "not_null":
            query = query.not_null(f.column)
        else:
            query = getattr(query, f.op)(f.column, f.value)
    return query


class SupabaseStatsSource:
    """Reads dashboard inputs from Supabase tables and RPC functions."""

    def __init__(self, client: SupabaseRESTClient) -> None:
        self.client = client

    async def count(
        self,
        table: str,
        user_id: str,
        filters: Sequence[QueryFilter] = (),
    ) -> int:
        query = _apply_filters(self.client.table(table).eq("user_id", user_id), filters)
        try:
            return await query.count()
        except PostgrestError as e:
            raise DataSourceException("count", table, e.message, e.status_code) from e

    async def fetch_rows(
        self,
        table: str,
        user_id: str,
        columns: Sequence[str],
        *,
        filters: Sequence[QueryFilter] = (),
        order_by: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        query = self.client.table(table).select(",".join(columns)).eq("user_id", user_id)
        query = _apply_filters(query, filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        try:
            return await query.execute()
        except PostgrestError as e:
            raise DataSourceException("select", table, e.message, e.status_code) from e

    async def call_rpc(self, function: str, params: dict[str, Any]) -> Any:
        try:
            return await self.client.rpc(function, params)
        except PostgrestError as e:
            raise DataSourceException("rpc", function, e.message, e.status_code) from e
