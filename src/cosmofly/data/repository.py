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
"""Generic async repository over a Cosmos container."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Generic, TypeVar, get_args, get_origin

from cosmofly.data.criteria import Criteria
from cosmofly.data.document_query import DocumentQuery
from cosmofly.data.page import CosmosPage
from cosmofly.data.pageable import CosmosPageRequest, Sort
from cosmofly.data.template import CosmosTemplate

T = TypeVar("T")
ID = TypeVar("ID")


class CosmosRepository(Generic[T, ID]):
    """Generic query repository for Cosmos entities.

    Derived query methods are declared as stubs and implemented at
    registration time by
    :class:`~cosmofly.data.post_processor.CosmosRepositoryPostProcessor`.

    Type Parameters:
        T: The entity type (Pydantic model or dataclass).
        ID: The id type (typically ``str``).

    Usage::

        class UserRepository(CosmosRepository[User, str]):
            async def find_by_last_name_and_age_greater_than(self, last_name: str, age: int) -> list[User]: ...
    """

    _entity_type: type | None = None
    _id_type: type | None = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", []):
            origin = get_origin(base)
            if origin is CosmosRepository:
                args = get_args(base)
                if args and not isinstance(args[0], TypeVar):
                    cls._entity_type = args[0]
                if len(args) > 1 and not isinstance(args[1], TypeVar):
                    cls._id_type = args[1]
                break

    def __init__(self, template: CosmosTemplate, model: type[T] | None = None) -> None:
        self._template = template
        self._model = model or getattr(type(self), "_entity_type", None)
        if self._model is None:
            raise TypeError(
                f"{type(self).__name__} requires either CosmosRepository[Entity, ID] "
                f"declaration or explicit model argument"
            )

    @property
    def template(self) -> CosmosTemplate:
        return self._template

    async def save(self, entity: T) -> T:
        """Create or replace *entity* by its id."""
        return await self._template.save(entity)

    async def save_all(self, entities: Iterable[T]) -> list[T]:
        return await self._template.save_all(entities)

    async def find_by_id(self, id: ID, partition_key: Any = None) -> T | None:
        """Find an entity by its id, within one partition when *partition_key* is given."""
        return await self._template.find_by_id(self._model, id, partition_key)

    async def find_all_by_id(self, ids: Iterable[ID]) -> list[T]:
        return await self._template.find_all_by_id(self._model, ids)

    async def find_all(self, sort: Sort | None = None) -> list[T]:
        """Find all entities, optionally sorted."""
        return await self._template.find_all(self._model, sort)

    async def find_all_paged(self, page_request: CosmosPageRequest) -> CosmosPage[T]:
        """Fetch one page of all entities; follow ``page.next_page_request()`` for the next."""
        query = DocumentQuery(sort=page_request.sort, page_request=page_request)
        return await self._template.paginate(query, self._model)

    async def find_all_by_criteria(self, criteria: Criteria, sort: Sort | None = None) -> list[T]:
        """Find entities matching an explicitly built criteria tree."""
        return await self._template.find(DocumentQuery(criteria=criteria, sort=sort or Sort()), self._model)

    async def find_all_by_criteria_paged(self, criteria: Criteria, page_request: CosmosPageRequest) -> CosmosPage[T]:
        query = DocumentQuery(criteria=criteria, sort=page_request.sort, page_request=page_request)
        return await self._template.paginate(query, self._model)

    async def count(self) -> int:
        """Return the total number of entities."""
        return await self._template.count(DocumentQuery(), self._model)

    async def count_by_criteria(self, criteria: Criteria) -> int:
        return await self._template.count(DocumentQuery(criteria=criteria), self._model)

    async def exists(self, id: ID, partition_key: Any = None) -> bool:
        """Check if an entity with the given id exists."""
        return await self.find_by_id(id, partition_key) is not None

    async def delete(self, id: ID, partition_key: Any = None) -> None:
        """Delete an entity by its id."""
        await self._template.delete_by_id(self._model, id, partition_key)

    async def delete_entity(self, entity: T) -> None:
        await self._template.delete_entity(entity)

    async def delete_all(self, entities: Iterable[T] | None = None) -> None:
        """Delete *entities*, or every entity of the container when none are given."""
        if entities is None:
            await self._template.delete_all(self._model)
            return
        for entity in entities:
            await self._template.delete_entity(entity)

    async def delete_all_by_criteria(self, criteria: Criteria) -> list[T]:
        """Delete every entity matching *criteria*; returns the deleted entities."""
        return await self._template.delete(DocumentQuery(criteria=criteria), self._model)
