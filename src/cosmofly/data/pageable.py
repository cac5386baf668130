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
"""Spring-like Sort types and the continuation-token page request."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Literal


@dataclass(frozen=True)
class Order:
    """A single sort order: property name + direction."""

    property: str
    direction: Literal["asc", "desc"] = "asc"
    ignore_case: bool = False

    @staticmethod
    def asc(property: str) -> Order:
        """Create an ascending order for the given property."""
        return Order(property=property, direction="asc")

    @staticmethod
    def desc(property: str) -> Order:
        """Create a descending order for the given property."""
        return Order(property=property, direction="desc")

    @property
    def is_descending(self) -> bool:
        return self.direction == "desc"

    def ignoring_case(self) -> Order:
        return Order(property=self.property, direction=self.direction, ignore_case=True)


@dataclass(frozen=True)
class Sort:
    """Collection of sort orders."""

    orders: tuple[Order, ...] = ()

    @staticmethod
    def by(*properties: str) -> Sort:
        """Create ascending sort by properties."""
        return Sort(orders=tuple(Order.asc(p) for p in properties))

    @staticmethod
    def of(*orders: Order) -> Sort:
        return Sort(orders=tuple(orders))

    @staticmethod
    def unsorted() -> Sort:
        """No sorting."""
        return Sort()

    @property
    def is_sorted(self) -> bool:
        return bool(self.orders)

    def __iter__(self) -> Iterator[Order]:
        return iter(self.orders)

    def __len__(self) -> int:
        return len(self.orders)

    def and_then(self, other: Sort) -> Sort:
        """Combine sorts, appending *other*'s orders after this sort's orders."""
        return Sort(orders=self.orders + other.orders)

    def descending(self) -> Sort:
        """Return same sort but all directions flipped to desc."""
        return Sort(orders=tuple(Order(o.property, "desc", o.ignore_case) for o in self.orders))

    def ascending(self) -> Sort:
        """Return same sort but all directions flipped to asc."""
        return Sort(orders=tuple(Order(o.property, "asc", o.ignore_case) for o in self.orders))


@dataclass(frozen=True)
class CosmosPageRequest:
    """Pagination request driven by the store's continuation token.

    Identity is ``(size, continuation, sort)``: ``page`` is advisory display
    metadata and takes no part in equality or hashing, because the store's own
    cursor lives in the continuation token.

    Instances are never mutated; the executor answers a fetch with a new
    request carrying the next token (see :meth:`next`).
    """

    page: int = field(default=0, compare=False)
    size: int = 20
    continuation: str | bytes | None = None
    sort: Sort = field(default_factory=Sort)

    def __post_init__(self) -> None:
        if self.page < 0:
            raise ValueError(f"page must be >= 0, got {self.page}")
        if self.size < 1:
            raise ValueError(f"size must be >= 1, got {self.size}")

    @staticmethod
    def of(
        page: int,
        size: int,
        continuation: str | bytes | None = None,
        sort: Sort | None = None,
    ) -> CosmosPageRequest:
        """Create a page request for the given page, size, token and optional sort."""
        return CosmosPageRequest(page=page, size=size, continuation=continuation, sort=sort or Sort())

    @staticmethod
    def first_page(size: int, sort: Sort | None = None) -> CosmosPageRequest:
        """Request the first page (no continuation token)."""
        return CosmosPageRequest(page=0, size=size, sort=sort or Sort())

    @property
    def is_last_page(self) -> bool:
        """Whether this request, as returned after a fetch, has nothing left to fetch."""
        return not self.continuation

    def next(self, continuation: str | bytes | None) -> CosmosPageRequest:
        """Return the request for the following page, bearing *continuation*."""
        return CosmosPageRequest(page=self.page + 1, size=self.size, continuation=continuation, sort=self.sort)

    def first(self) -> CosmosPageRequest:
        """Return the request for the first page with the same size and sort."""
        return CosmosPageRequest(page=0, size=self.size, sort=self.sort)

    def with_size(self, size: int) -> CosmosPageRequest:
        return CosmosPageRequest(page=self.page, size=size, continuation=self.continuation, sort=self.sort)

    def with_sort(self, sort: Sort) -> CosmosPageRequest:
        return CosmosPageRequest(page=self.page, size=self.size, continuation=self.continuation, sort=sort)
