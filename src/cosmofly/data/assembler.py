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
"""Fold parsed predicate clauses into criteria trees, and memoize the result.

Folding is strictly sequential: ``A And B Or C`` becomes
``OR(AND(A, B), C)``. No precedence rebalancing is applied beyond what the
left fold produces, matching the documented behavior of the method-name
convention.

Parsing and folding happen once per ``(descriptor, argument shapes)``: the
resulting template tree holds :class:`~cosmofly.data.criteria.ArgumentRef`
placeholders, and every call binds its own arguments into a fresh tree.
"""

from __future__ import annotations

import functools
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from cosmofly.data.criteria import ArgumentRef, Criteria, CriteriaType
from cosmofly.data.document_query import DocumentQuery
from cosmofly.data.pageable import CosmosPageRequest, Order, Sort
from cosmofly.data.query_parser import ArgumentShape, ParsedQuery, PredicateClause, QueryMethodParser

logger = structlog.get_logger(__name__)

_CONJUNCTIONS = {"and": CriteriaType.AND, "or": CriteriaType.OR}


class CriteriaAssembler:
    """Build criteria trees from :class:`PredicateClause` lists."""

    def assemble(self, clauses: Sequence[PredicateClause], args: Sequence[Any]) -> Criteria | None:
        """Fold *clauses* into a tree bound to the concrete *args*.

        Returns ``None`` for an empty clause list (no criteria).
        """
        template = self.template(clauses)
        return template.bind(args) if template is not None else None

    def template(self, clauses: Sequence[PredicateClause]) -> Criteria | None:
        """Fold *clauses* into a tree whose values are argument placeholders."""
        if not clauses:
            return None

        result = self._leaf(clauses[0])
        for previous, clause in zip(clauses, clauses[1:]):
            conjunction = _CONJUNCTIONS[previous.conjunction or "and"]
            result = Criteria.combine(conjunction, result, self._leaf(clause))
        return result

    @staticmethod
    def _leaf(clause: PredicateClause) -> Criteria:
        return Criteria.of(
            clause.operator,
            clause.property_path,
            *(ArgumentRef(i) for i in clause.argument_indexes),
            ignore_case=clause.ignore_case,
            negated=clause.negated,
        )


@dataclass(frozen=True)
class DerivedQuery:
    """A parsed descriptor with its criteria template, ready to bind call arguments."""

    parsed: ParsedQuery
    template: Criteria | None

    @property
    def prefix(self) -> str:
        return self.parsed.prefix

    @property
    def is_paged(self) -> bool:
        return self.parsed.page_request_index is not None

    def create_query(self, args: Sequence[Any]) -> DocumentQuery:
        """Bind *args* (in declaration order) into a :class:`DocumentQuery`.

        Trailing sort / page request arguments may be omitted.
        """
        required = min(
            (i for i in (self.parsed.sort_index, self.parsed.page_request_index) if i is not None),
            default=self.parsed.argument_count,
        )
        if not required <= len(args) <= self.parsed.argument_count:
            raise TypeError(
                f"{self.parsed.descriptor} takes {required} to {self.parsed.argument_count} "
                f"arguments but {len(args)} were given"
            )

        criteria = self.template.bind(args) if self.template is not None else None

        sort = Sort(orders=tuple(Order(o.property, o.direction) for o in self.parsed.order_clauses))
        sort_arg = self._optional(args, self.parsed.sort_index)
        if sort_arg is not None:
            sort = sort.and_then(sort_arg)

        page_request: CosmosPageRequest | None = self._optional(args, self.parsed.page_request_index)
        if page_request is not None:
            sort = sort.and_then(page_request.sort)

        return DocumentQuery(criteria=criteria, sort=sort, page_request=page_request)

    @staticmethod
    def _optional(args: Sequence[Any], index: int | None) -> Any:
        if index is None or index >= len(args):
            return None
        return args[index]


class DerivedQueryCache:
    """Thread-safe memo of :class:`DerivedQuery` objects keyed by descriptor and argument shapes.

    Parse errors are raised on first lookup and never cached.
    """

    def __init__(
        self,
        parser: QueryMethodParser | None = None,
        assembler: CriteriaAssembler | None = None,
        maxsize: int | None = 256,
    ) -> None:
        self._parser = parser or QueryMethodParser()
        self._assembler = assembler or CriteriaAssembler()
        self._lookup = functools.lru_cache(maxsize=maxsize)(self._build)

    def get(self, descriptor: str, arguments: Sequence[ArgumentShape] | None = None) -> DerivedQuery:
        key = tuple(arguments) if arguments is not None else None
        return self._lookup(descriptor, key)

    def cache_info(self) -> Any:
        return self._lookup.cache_info()

    def clear(self) -> None:
        self._lookup.cache_clear()

    def _build(self, descriptor: str, arguments: tuple[ArgumentShape, ...] | None) -> DerivedQuery:
        parsed = self._parser.parse(descriptor, arguments)
        template = self._assembler.template(parsed.clauses)
        logger.debug("derived_query_cached", descriptor=descriptor, arguments=parsed.argument_count)
        return DerivedQuery(parsed=parsed, template=template)
