# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Outbound port: the executor that runs rendered queries against the store.

The query core never opens a connection. It hands an immutable
:class:`SqlQuerySpec` plus :class:`FeedOptions` to an executor adapter and
receives a :class:`FeedResponse` carrying the next continuation token.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class SqlParameter:
    """A named query parameter (``@name``) and its bound value."""

    name: str
    value: Any


@dataclass(frozen=True)
class SqlQuerySpec:
    """Rendered query text with its parameters in placeholder order."""

    query_text: str
    parameters: tuple[SqlParameter, ...] = ()

    @property
    def parameter_values(self) -> list[Any]:
        return [p.value for p in self.parameters]

    def to_dict(self) -> dict[str, Any]:
        """The ``{"query": ..., "parameters": [...]}`` shape accepted by Cosmos SDKs."""
        return {
            "query": self.query_text,
            "parameters": [{"name": p.name, "value": p.value} for p in self.parameters],
        }


@dataclass(frozen=True)
class FeedOptions:
    """Per-request execution hints passed through to the store."""

    max_item_count: int | None = None
    continuation: str | bytes | None = None
    enable_cross_partition_query: bool = True
    partition_key: Any = None
    populate_query_metrics: bool = False


@dataclass(frozen=True)
class FeedResponse:
    """One fetch worth of result rows (documents or scalars) and the store's next cursor."""

    items: list[Any] = field(default_factory=list)
    continuation: str | bytes | None = None
    diagnostics: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class CosmosQueryExecutorPort(Protocol):
    """Run queries, point upserts and point deletes against a container.

    Adapters wrap a concrete client (e.g. the Azure Cosmos SDK). When
    ``options.max_item_count`` is set, a single bounded fetch is performed and
    the response carries the continuation token; otherwise all results are
    drained and ``continuation`` is ``None``.
    """

    async def query_items(self, container: str, spec: SqlQuerySpec, options: FeedOptions) -> FeedResponse: ...

    async def upsert_item(self, container: str, document: dict[str, Any], partition_key: Any = None) -> dict[str, Any]:
        """Create or replace *document* by its ``id`` and return the stored document."""
        ...

    async def delete_item(self, container: str, item_id: Any, partition_key: Any = None) -> None: ...
