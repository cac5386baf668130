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
"""Entity metadata and property-path resolution.

Entities are Pydantic models, dataclasses, or plain annotated classes.
Container-level metadata is declared on an inner ``Settings`` class, the
same way Beanie documents declare their collection::

    class User(BaseModel):
        id: str
        last_name: str
        address: Address

        class Settings:
            container = "users"
            partition_key = "last_name"
"""

from __future__ import annotations

import dataclasses
import types
import typing
from typing import Any, Generic, Protocol, TypeVar, get_args, get_origin, get_type_hints, runtime_checkable

from pydantic import BaseModel

from cosmofly.kernel.exceptions import UnknownPropertyException

T = TypeVar("T")

_ID_PROPERTY = "id"


@runtime_checkable
class PropertyResolver(Protocol):
    """Resolve a dot-separated property path against an entity type.

    Returns the declared type of the property and raises
    :class:`UnknownPropertyException` when the path does not exist.
    """

    def resolve(self, entity: type, path: str) -> Any: ...


class TypeHintPropertyResolver:
    """Resolve property paths from type hints, descending into nested models.

    ``Optional[X]`` resolves through ``X``, and ``list[X]`` resolves through
    its element type so paths may address fields of array items.
    """

    def resolve(self, entity: type, path: str) -> Any:
        current: Any = entity
        for part in path.split("."):
            hints = self._hints(current)
            if part not in hints:
                raise UnknownPropertyException(
                    f"Property '{path}' does not exist on {entity.__name__}",
                    context={"entity": entity.__name__, "property": path, "segment": part},
                )
            current = self._unwrap(hints[part])
        return current

    def has_property(self, entity: type, path: str) -> bool:
        try:
            self.resolve(entity, path)
        except UnknownPropertyException:
            return False
        return True

    @staticmethod
    def _hints(cls: Any) -> dict[str, Any]:
        if not isinstance(cls, type):
            return {}
        if issubclass(cls, BaseModel):
            return {name: info.annotation for name, info in cls.model_fields.items()}
        try:
            hints = get_type_hints(cls)
        except (NameError, TypeError):
            hints = dict(getattr(cls, "__annotations__", {}))
        return {name: hint for name, hint in hints.items() if not name.startswith("_")}

    @staticmethod
    def _unwrap(hint: Any) -> Any:
        origin = get_origin(hint)
        if origin in (typing.Union, types.UnionType):
            args = [a for a in get_args(hint) if a is not type(None)]
            return TypeHintPropertyResolver._unwrap(args[0]) if len(args) == 1 else hint
        if origin in (list, tuple, set, frozenset):
            args = get_args(hint)
            return TypeHintPropertyResolver._unwrap(args[0]) if args else hint
        return hint


class CosmosEntityInformation(Generic[T]):
    """Container name, id field and partition key of an entity type."""

    def __init__(self, entity: type[T]) -> None:
        self.entity = entity
        settings = getattr(entity, "Settings", None)
        self.container_name: str = getattr(settings, "container", None) or entity.__name__.lower()
        self.id_field: str = getattr(settings, "id_field", None) or _ID_PROPERTY
        self.partition_key: str | None = getattr(settings, "partition_key", None)

    @property
    def partition_key_names(self) -> list[str]:
        return [self.partition_key] if self.partition_key else []

    def is_id_property(self, path: str) -> bool:
        return path in (_ID_PROPERTY, self.id_field)

    def get_id(self, document: Any) -> Any:
        return _read(document, self.id_field)

    def get_partition_key_value(self, document: Any) -> Any:
        if self.partition_key is None:
            return None
        value: Any = document
        for part in self.partition_key.split("."):
            value = _read(value, part)
        return value

    def to_entity(self, document: dict[str, Any]) -> T:
        """Map a raw store document onto the entity type.

        System properties of the store (``_rid``, ``_etag`` ...) are dropped.
        """
        data = {key: value for key, value in document.items() if not key.startswith("_")}
        if self.id_field != _ID_PROPERTY and _ID_PROPERTY in data and self.id_field not in data:
            data[self.id_field] = data.pop(_ID_PROPERTY)
        entity = self.entity
        if isinstance(entity, type) and issubclass(entity, BaseModel):
            return entity.model_validate(data)  # type: ignore[return-value]
        if dataclasses.is_dataclass(entity):
            names = {f.name for f in dataclasses.fields(entity)}
            return entity(**{k: v for k, v in data.items() if k in names})
        return entity(**data)

    def to_document(self, item: T) -> dict[str, Any]:
        """Map an entity onto a store document keyed by ``id``."""
        if isinstance(item, BaseModel):
            data = item.model_dump(mode="json")
        elif dataclasses.is_dataclass(item) and not isinstance(item, type):
            data = dataclasses.asdict(item)
        else:
            data = {key: value for key, value in vars(item).items() if not key.startswith("_")}
        if self.id_field != _ID_PROPERTY and self.id_field in data:
            data[_ID_PROPERTY] = data.pop(self.id_field)
        return data


def _read(document: Any, name: str) -> Any:
    if isinstance(document, dict):
        return document.get(name)
    return getattr(document, name, None)
