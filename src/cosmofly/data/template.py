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
"""CosmosTemplate: runs rendered queries through the executor port."""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Iterable, Sequence
from typing import Any, TypeVar

import structlog

from cosmofly.config.properties.cosmos import CosmosProperties
from cosmofly.data.assembler import DerivedQuery
from cosmofly.data.criteria import Criteria, CriteriaType
from cosmofly.data.document_query import DocumentQuery
from cosmofly.data.generator import (
    CountQuerySpecGenerator,
    DeleteQuerySpecGenerator,
    FindQuerySpecGenerator,
    to_store_value,
)
from cosmofly.data.mapping import CosmosEntityInformation, PropertyResolver, TypeHintPropertyResolver
from cosmofly.data.page import CosmosPage
from cosmofly.data.pageable import CosmosPageRequest, Sort
from cosmofly.data.ports.executor import CosmosQueryExecutorPort, FeedOptions, FeedResponse, SqlQuerySpec
from cosmofly.kernel.exceptions import CosmosAccessException, CosmoFlyException, InvalidEntityException

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CosmosTemplate:
    """Query operations against a Cosmos container, one entity type at a time.

    The template validates a :class:`DocumentQuery`, renders it, decides
    whether the query must fan out across partitions and hands the result to
    the :class:`CosmosQueryExecutorPort`. Executor failures are wrapped once
    into :class:`CosmosAccessException`; nothing is retried.
    """

    def __init__(
        self,
        executor: CosmosQueryExecutorPort,
        properties: CosmosProperties | None = None,
        resolver: PropertyResolver | None = None,
    ) -> None:
        self._executor = executor
        self._properties = properties or CosmosProperties()
        self._resolver = resolver or TypeHintPropertyResolver()
        self._find_generator = FindQuerySpecGenerator(self._resolver)
        self._count_generator = CountQuerySpecGenerator(self._resolver)
        self._delete_generator = DeleteQuerySpecGenerator(self._resolver)
        self._information: dict[type, CosmosEntityInformation[Any]] = {}

    @property
    def properties(self) -> CosmosProperties:
        return self._properties

    def entity_information(self, entity: type[T]) -> CosmosEntityInformation[T]:
        info = self._information.get(entity)
        if info is None:
            info = CosmosEntityInformation(entity)
            self._information[entity] = info
        return info

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def find(self, query: DocumentQuery, entity: type[T]) -> list[T]:
        """Return every entity matching *query*, in sort order."""
        if query.is_paged:
            return (await self.paginate(query, entity)).items

        info = self.entity_information(entity)
        self._validate(query, info)
        spec = self._find_generator.generate(query, entity)
        response = await self._query(info, spec, self._options(query, info))
        return [info.to_entity(document) for document in response.items]

    async def paginate(self, query: DocumentQuery, entity: type[T]) -> CosmosPage[T]:
        """Fetch one page of *query*.

        The page request's continuation token is handed to the executor as is
        and the page size becomes the fetch-size hint. The returned page
        carries the request for the following fetch.
        """
        info = self.entity_information(entity)
        page_request = query.page_request or CosmosPageRequest.first_page(self._properties.default_page_size)
        query = query.with_page_request(page_request)
        self._validate(query, info)

        spec = self._find_generator.generate(query, entity)
        options = self._options(query, info, max_item_count=page_request.size, continuation=page_request.continuation)
        response = await self._query(info, spec, options)

        items = [info.to_entity(document) for document in response.items[: page_request.size]]
        size = len(items) if 0 < len(items) < page_request.size else page_request.size
        next_request = CosmosPageRequest(
            page=page_request.page + 1,
            size=size,
            continuation=response.continuation,
            sort=query.sort,
        )
        total = await self.count(DocumentQuery(criteria=query.criteria), entity)
        return CosmosPage(items=items, total=total, page_request=next_request)

    async def count(self, query: DocumentQuery, entity: type) -> int:
        info = self.entity_information(entity)
        spec = self._count_generator.generate(query, entity)
        response = await self._query(info, spec, self._options(query, info))
        return int(response.items[0]) if response.items else 0

    async def exists(self, query: DocumentQuery, entity: type) -> bool:
        return await self.count(query, entity) > 0

    async def delete(self, query: DocumentQuery, entity: type[T]) -> list[T]:
        """Delete every document matching *query* and return the deleted entities."""
        info = self.entity_information(entity)
        spec = self._delete_generator.generate(query, entity)
        return await self._delete_matching(info, spec, self._options(query, info))

    async def delete_by_id(self, entity: type[T], item_id: Any, partition_key: Any = None) -> T | None:
        """Delete the document with *item_id*; a given *partition_key* routes the lookup to one partition."""
        info = self.entity_information(entity)
        query = _id_query(item_id)
        options = _routed(self._options(query, info), partition_key)
        deleted = await self._delete_matching(info, self._delete_generator.generate(query), options)
        return deleted[0] if deleted else None

    async def delete_all(self, entity: type[T]) -> list[T]:
        """Delete every document of *entity*'s container."""
        return await self.delete(DocumentQuery(), entity)

    async def delete_entity(self, item: Any) -> None:
        """Delete *item* by its id and partition key value, without a lookup."""
        info = self.entity_information(type(item))
        item_id = info.get_id(item)
        if item_id is None:
            raise InvalidEntityException("Entity id must not be None", context={"container": info.container_name})
        await self._delete_item(info, item_id, to_store_value(info.get_partition_key_value(item)))
        logger.info("items_deleted", container=info.container_name, count=1)

    async def find_by_id(self, entity: type[T], item_id: Any, partition_key: Any = None) -> T | None:
        # Documents always carry their key as "id", whatever the entity calls it.
        if item_id is None or (isinstance(item_id, str) and not item_id.strip()):
            return None
        info = self.entity_information(entity)
        query = _id_query(item_id)
        spec = self._find_generator.generate(query)
        response = await self._query(info, spec, _routed(self._options(query, info), partition_key))
        return info.to_entity(response.items[0]) if response.items else None

    async def find_all_by_id(self, entity: type[T], ids: Iterable[Any]) -> list[T]:
        """Return the entities whose id is in *ids*, in store order."""
        id_list = list(ids)
        if not id_list:
            return []
        info = self.entity_information(entity)
        query = DocumentQuery(criteria=Criteria.of(CriteriaType.IN, "id", id_list))
        response = await self._query(info, self._find_generator.generate(query), self._options(query, info))
        return [info.to_entity(document) for document in response.items]

    async def find_all(self, entity: type[T], sort: Sort | None = None) -> list[T]:
        return await self.find(DocumentQuery(sort=sort or Sort()), entity)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(self, item: T) -> T:
        """Create or replace *item* by id and return the entity as stored."""
        info = self.entity_information(type(item))
        document = {key: to_store_value(value) for key, value in info.to_document(item).items()}
        item_id = document.get("id")
        if item_id is None:
            raise InvalidEntityException("Entity id must not be None", context={"container": info.container_name})

        partition_key = to_store_value(info.get_partition_key_value(item))
        try:
            stored = await self._executor.upsert_item(info.container_name, document, partition_key)
        except CosmoFlyException:
            raise
        except Exception as exc:
            raise CosmosAccessException(
                "Failed to upsert item",
                context={"container": info.container_name, "id": item_id},
            ) from exc

        logger.info("item_saved", container=info.container_name, id=item_id)
        return info.to_entity(stored) if stored else item

    async def save_all(self, items: Iterable[T]) -> list[T]:
        """Save *items* one by one; the first failure stops the batch."""
        return [await self.save(item) for item in items]

    async def _delete_matching(
        self, info: CosmosEntityInformation[T], spec: SqlQuerySpec, options: FeedOptions
    ) -> list[T]:
        response = await self._query(info, spec, options)
        deleted: list[T] = []
        for document in response.items:
            await self._delete_item(info, document.get("id"), info.get_partition_key_value(document))
            deleted.append(info.to_entity(document))

        logger.info("items_deleted", container=info.container_name, count=len(deleted))
        return deleted

    async def _delete_item(self, info: CosmosEntityInformation[Any], item_id: Any, partition_key: Any) -> None:
        try:
            await self._executor.delete_item(info.container_name, item_id, partition_key)
        except CosmoFlyException:
            raise
        except Exception as exc:
            raise CosmosAccessException(
                "Failed to delete item",
                context={"container": info.container_name, "id": item_id},
            ) from exc

    async def execute(self, derived: DerivedQuery, entity: type, args: Sequence[Any]) -> Any:
        """Bind *args* into *derived* and run it according to its prefix."""
        query = derived.create_query(args)
        if derived.prefix == "count":
            return await self.count(query, entity)
        if derived.prefix == "exists":
            return await self.exists(query, entity)
        if derived.prefix == "delete":
            return await self.delete(query, entity)
        if derived.is_paged:
            return await self.paginate(query, entity)
        return await self.find(query, entity)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate(self, query: DocumentQuery, info: CosmosEntityInformation[Any]) -> None:
        query.validate_sort(info, self._properties.string_sort_supported, self._resolver)
        query.validate_starts_with(info, self._properties.starts_with_supported, self._resolver)

    def _options(
        self,
        query: DocumentQuery,
        info: CosmosEntityInformation[Any],
        max_item_count: int | None = None,
        continuation: str | bytes | None = None,
    ) -> FeedOptions:
        cross_partition = query.is_cross_partition_query(info.partition_key_names)
        partition_key = None
        if not cross_partition and query.criteria is not None and info.partition_key is not None:
            leaf = query.criteria.find_subject(info.partition_key)
            partition_key = to_store_value(leaf.values[0]) if leaf is not None else None
        return FeedOptions(
            max_item_count=max_item_count,
            continuation=continuation,
            enable_cross_partition_query=cross_partition,
            partition_key=partition_key,
            populate_query_metrics=self._properties.populate_query_metrics,
        )

    async def _query(
        self, info: CosmosEntityInformation[Any], spec: SqlQuerySpec, options: FeedOptions
    ) -> FeedResponse:
        start = time.perf_counter()
        try:
            response = await self._executor.query_items(info.container_name, spec, options)
        except CosmoFlyException:
            raise
        except Exception as exc:
            logger.error("query_failed", container=info.container_name, query=spec.query_text, error=str(exc))
            raise CosmosAccessException(
                "Failed to query items",
                context={"container": info.container_name, "query": spec.query_text},
            ) from exc

        logger.info(
            "query_executed",
            container=info.container_name,
            query=spec.query_text,
            items=len(response.items),
            cross_partition=options.enable_cross_partition_query,
            has_continuation=bool(response.continuation),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response


def _id_query(item_id: Any) -> DocumentQuery:
    return DocumentQuery(criteria=Criteria.of(CriteriaType.IS_EQUAL, "id", item_id))


def _routed(options: FeedOptions, partition_key: Any) -> FeedOptions:
    if partition_key is None:
        return options
    return dataclasses.replace(
        options, enable_cross_partition_query=False, partition_key=to_store_value(partition_key)
    )
