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
"""DocumentQuery: criteria tree plus sort and page request for one execution."""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass, field

from cosmofly.data.criteria import Criteria, CriteriaType
from cosmofly.data.mapping import CosmosEntityInformation, PropertyResolver, TypeHintPropertyResolver
from cosmofly.data.pageable import CosmosPageRequest, Sort
from cosmofly.kernel.exceptions import IllegalQueryException, UnknownPropertyException


@dataclass(frozen=True)
class DocumentQuery:
    """An immutable query: optional criteria (``None`` matches everything), sort and page request."""

    criteria: Criteria | None = None
    sort: Sort = field(default_factory=Sort)
    page_request: CosmosPageRequest | None = None

    def with_sort(self, sort: Sort) -> DocumentQuery:
        """Return a copy whose sort puts *sort*'s orders ahead of the existing ones."""
        if not sort.is_sorted:
            return self
        return dataclasses.replace(self, sort=sort.and_then(self.sort))

    def with_page_request(self, page_request: CosmosPageRequest) -> DocumentQuery:
        return dataclasses.replace(self, page_request=page_request)

    @property
    def is_paged(self) -> bool:
        return self.page_request is not None

    # ------------------------------------------------------------------
    # Partitioning
    # ------------------------------------------------------------------

    def has_keyword_or(self) -> bool:
        if self.criteria is None:
            return False
        return any(node.type is CriteriaType.OR for node in self.criteria.walk())

    def is_cross_partition_query(self, partition_keys: Sequence[str]) -> bool:
        """Whether the query must fan out across partitions.

        Single-partition execution is only possible when every partition key
        is pinned by a non-negated, case-sensitive equality and the tree
        contains no OR. An ignore-case equality may match documents stored
        under differently cased keys, which live in other partitions.
        """
        if not partition_keys:
            return True
        for key in partition_keys:
            leaf = self.criteria.find_subject(key) if self.criteria is not None else None
            if leaf is None or leaf.type is not CriteriaType.IS_EQUAL or leaf.negated or leaf.ignore_case:
                return True
        return self.has_keyword_or()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_sort(
        self,
        info: CosmosEntityInformation,
        string_sort_supported: bool,
        resolver: PropertyResolver | None = None,
    ) -> None:
        """Check the sort against what the store can serve.

        Raises:
            IllegalQueryException: more than one order, an ignore-case order,
                an order on the id field, an unknown property, or a string
                order on a container without string range indexing.
        """
        if not self.sort.is_sorted:
            return
        if len(self.sort) != 1:
            raise IllegalQueryException("only one order of Sort is supported")

        order = self.sort.orders[0]
        context = {"entity": info.entity.__name__, "property": order.property}
        if order.ignore_case:
            raise IllegalQueryException("sort within case insensitive is not supported", context=context)
        if info.is_id_property(order.property):
            raise IllegalQueryException("sort by id field is not supported", context=context)

        resolver = resolver or TypeHintPropertyResolver()
        try:
            property_type = resolver.resolve(info.entity, order.property)
        except UnknownPropertyException as exc:
            raise IllegalQueryException(
                f"order property '{order.property}' must exist on {info.entity.__name__}", context=context
            ) from exc

        if property_type is str and not string_sort_supported:
            raise IllegalQueryException(
                "order by string requires range indexing with max precision", context=context
            )

    def validate_starts_with(
        self,
        info: CosmosEntityInformation,
        starts_with_supported: bool,
        resolver: PropertyResolver | None = None,
    ) -> None:
        """Reject STARTSWITH on string properties when the container lacks string range indexes."""
        if self.criteria is None or starts_with_supported:
            return
        resolver = resolver or TypeHintPropertyResolver()
        for leaf in self.criteria.leaves():
            if leaf.type is not CriteriaType.STARTS_WITH or leaf.subject is None:
                continue
            if resolver.resolve(info.entity, leaf.subject) is str:
                raise IllegalQueryException(
                    "STARTSWITH requires range indexing on string properties",
                    context={"entity": info.entity.__name__, "property": leaf.subject},
                )
