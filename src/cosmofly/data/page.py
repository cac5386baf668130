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
"""Pagination types for continuation-token query results."""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from cosmofly.data.pageable import CosmosPageRequest

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class CosmosPage(Generic[T]):
    """A page of results from a continuation-token query.

    Attributes:
        items: The items on this page.
        total: Total number of items matching the query.
        page_request: The request for the *next* fetch; it carries the
            store's continuation token (``None`` on the last page).
    """

    items: list[T]
    total: int
    page_request: CosmosPageRequest

    @property
    def page(self) -> int:
        """Zero-based index of this page."""
        return max(0, self.page_request.page - 1)

    @property
    def size(self) -> int:
        return self.page_request.size

    @property
    def total_pages(self) -> int:
        """Total number of pages at the current page size."""
        if self.total == 0:
            return 0
        return math.ceil(self.total / self.size)

    @property
    def has_next(self) -> bool:
        """Whether the store reported more results."""
        return not self.page_request.is_last_page

    def next_page_request(self) -> CosmosPageRequest:
        """The request that fetches the following page."""
        return self.page_request

    def map(self, func: Callable[[T], U]) -> CosmosPage[U]:
        """Transform items using a mapping function, preserving pagination metadata."""
        return CosmosPage(items=[func(item) for item in self.items], total=self.total, page_request=self.page_request)
