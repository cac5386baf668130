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
"""Render criteria trees into Cosmos DB SQL.

Every leaf becomes ``r.<path> <op> @<param>`` (or a function call form),
parameters are collected in the same depth-first, left-to-right traversal
that emits their placeholders, and OR combinators are wrapped in parentheses
as a whole so a rendered fragment keeps its meaning when it is embedded as an
operand of a surrounding AND.

Example::

    >>> tree = (where("name").is_equal("a") & where("email").is_equal("b")) | where("address").is_equal("c")
    >>> FindQuerySpecGenerator().generate(DocumentQuery(tree)).query_text
    'SELECT * FROM ROOT r WHERE ((r.name = @name_0 AND r.email = @email_1) OR r.address = @address_2)'
"""

from __future__ import annotations

import datetime
import enum
import uuid
from typing import Any, ClassVar

import structlog

from cosmofly.data.criteria import Criteria, CriteriaType, is_collection
from cosmofly.data.document_query import DocumentQuery
from cosmofly.data.mapping import PropertyResolver, TypeHintPropertyResolver
from cosmofly.data.pageable import Sort
from cosmofly.data.ports.executor import SqlParameter, SqlQuerySpec
from cosmofly.kernel.exceptions import (
    InvalidCriteriaShapeException,
    UnsupportedNegationException,
    UnsupportedOperatorCombinationException,
)

logger = structlog.get_logger(__name__)

_ALIAS = "r"

_COMPARISON_TOKENS: dict[CriteriaType, str] = {
    CriteriaType.IS_EQUAL: "=",
    CriteriaType.LESS_THAN: "<",
    CriteriaType.LESS_THAN_EQUAL: "<=",
    CriteriaType.GREATER_THAN: ">",
    CriteriaType.GREATER_THAN_EQUAL: ">=",
    CriteriaType.LIKE: "LIKE",
}

_FUNCTION_TOKENS: dict[CriteriaType, str] = {
    CriteriaType.CONTAINING: "CONTAINS",
    CriteriaType.STARTS_WITH: "STARTSWITH",
    CriteriaType.ENDS_WITH: "ENDSWITH",
    CriteriaType.REGEX: "RegexMatch",
}

_DIRECTION_TOKENS = {"asc": "ASC", "desc": "DESC"}


def to_store_value(value: Any) -> Any:
    """Convert a bound argument into its JSON document representation."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _subject_of(leaf: Criteria) -> str:
    if leaf.subject is None:
        raise InvalidCriteriaShapeException("Leaf criteria has no subject", context={"type": leaf.type.value})
    return leaf.subject


class _Parameters:
    """Accumulates ``@<path>_<n>`` placeholders for one statement."""

    def __init__(self) -> None:
        self.items: list[SqlParameter] = []

    def add(self, subject: str, value: Any) -> str:
        name = f"@{subject.replace('.', '_')}_{len(self.items)}"
        self.items.append(SqlParameter(name=name, value=to_store_value(value)))
        return name


class AbstractQueryGenerator:
    """Base renderer: statement head, optional WHERE clause and ORDER BY tail.

    When *entity* is passed to :meth:`generate`, every subject and sort
    property is first checked with the configured :class:`PropertyResolver`.
    """

    head: ClassVar[str] = "SELECT * FROM ROOT r"
    include_sort: ClassVar[bool] = True

    def __init__(self, resolver: PropertyResolver | None = None) -> None:
        self._resolver = resolver or TypeHintPropertyResolver()

    def generate(self, query: DocumentQuery, entity: type | None = None) -> SqlQuerySpec:
        if entity is not None:
            self._validate_properties(query, entity)

        parameters = _Parameters()
        parts = [self.head]
        if query.criteria is not None:
            parts.append(f"WHERE {self.render_criteria(query.criteria, parameters)}")
        if self.include_sort and query.sort.is_sorted:
            parts.append(self.render_sort(query.sort))

        spec = SqlQuerySpec(query_text=" ".join(parts), parameters=tuple(parameters.items))
        logger.debug("query_rendered", query=spec.query_text, parameters=len(spec.parameters))
        return spec

    # ------------------------------------------------------------------
    # Criteria
    # ------------------------------------------------------------------

    def render_criteria(self, criteria: Criteria, parameters: _Parameters) -> str:
        if criteria.type is CriteriaType.AND:
            return f"{self.render_criteria(criteria.left, parameters)} AND {self.render_criteria(criteria.right, parameters)}"
        if criteria.type is CriteriaType.OR:
            left = self._or_operand(criteria.left, parameters)
            right = self._or_operand(criteria.right, parameters)
            return f"({left} OR {right})"

        self._check_modifiers(criteria)
        rendered = self._render_leaf(criteria, parameters)
        return f"NOT ({rendered})" if criteria.negated else rendered

    def _or_operand(self, criteria: Criteria, parameters: _Parameters) -> str:
        rendered = self.render_criteria(criteria, parameters)
        return f"({rendered})" if criteria.type is CriteriaType.AND else rendered

    def _render_leaf(self, leaf: Criteria, parameters: _Parameters) -> str:
        path = _subject_of(leaf)
        subject = f"{_ALIAS}.{path}"
        field = f"UPPER({subject})" if leaf.ignore_case else subject

        def param(value: Any) -> str:
            name = parameters.add(path, value)
            return f"UPPER({name})" if leaf.ignore_case else name

        kind = leaf.type
        if kind in _COMPARISON_TOKENS:
            return f"{field} {_COMPARISON_TOKENS[kind]} {param(leaf.values[0])}"
        if kind in _FUNCTION_TOKENS:
            return f"{_FUNCTION_TOKENS[kind]}({field}, {param(leaf.values[0])})"
        if kind is CriteriaType.BETWEEN:
            low, high = leaf.values
            return f"{field} BETWEEN {param(low)} AND {param(high)}"
        if kind is CriteriaType.IN:
            items = leaf.values[0] if is_collection(leaf.values[0]) else (leaf.values[0],)
            return f"{field} IN ({', '.join(param(item) for item in items)})"
        if kind is CriteriaType.NEAR:
            point, distance = leaf.values
            return f"ST_DISTANCE({subject}, {param(point)}) <= {param(distance)}"
        if kind is CriteriaType.IS_NULL:
            return f"IS_NULL({subject})"
        if kind is CriteriaType.EXISTS:
            return f"IS_DEFINED({subject})"
        if kind is CriteriaType.IS_EMPTY:
            return f"ARRAY_LENGTH({subject}) = 0"
        raise InvalidCriteriaShapeException(f"No rendering for criteria type {kind.name}", context={"type": kind.value})

    @staticmethod
    def _check_modifiers(leaf: Criteria) -> None:
        # Construction enforces these as well; trees built through
        # dataclasses.replace or object.__setattr__ bypass it.
        context = {"type": leaf.type.value, "subject": leaf.subject}
        if leaf.negated and not leaf.type.is_negatable:
            raise UnsupportedNegationException(f"{leaf.type.name} cannot be negated", context=context)
        if leaf.ignore_case and not leaf.type.is_string_comparable:
            raise UnsupportedOperatorCombinationException(
                f"ignore_case is not supported for {leaf.type.name}", context=context
            )

    # ------------------------------------------------------------------
    # Sort
    # ------------------------------------------------------------------

    @staticmethod
    def render_sort(sort: Sort) -> str:
        orders = []
        for order in sort:
            if order.ignore_case:
                raise UnsupportedOperatorCombinationException(
                    "Ignore case is not supported in ORDER BY", context={"property": order.property}
                )
            orders.append(f"{_ALIAS}.{order.property} {_DIRECTION_TOKENS[order.direction]}")
        return "ORDER BY " + ", ".join(orders)

    def _validate_properties(self, query: DocumentQuery, entity: type) -> None:
        if query.criteria is not None:
            for leaf in query.criteria.leaves():
                self._resolver.resolve(entity, _subject_of(leaf))
        for order in query.sort:
            self._resolver.resolve(entity, order.property)


class FindQuerySpecGenerator(AbstractQueryGenerator):
    """``SELECT * FROM ROOT r [WHERE ...] [ORDER BY ...]``."""


class CountQuerySpecGenerator(AbstractQueryGenerator):
    """``SELECT VALUE COUNT(1) FROM r [WHERE ...]``."""

    head = "SELECT VALUE COUNT(1) FROM r"
    include_sort = False


class ExistsQuerySpecGenerator(CountQuerySpecGenerator):
    """Existence is answered by a count greater than zero."""


class DeleteQuerySpecGenerator(AbstractQueryGenerator):
    """Selects the documents to delete; ordering is irrelevant."""

    include_sort = False


GENERATORS: dict[str, type[AbstractQueryGenerator]] = {
    "find": FindQuerySpecGenerator,
    "count": CountQuerySpecGenerator,
    "exists": ExistsQuerySpecGenerator,
    "delete": DeleteQuerySpecGenerator,
}


def generator_for(prefix: str, resolver: PropertyResolver | None = None) -> AbstractQueryGenerator:
    """Return the renderer for a descriptor prefix (``find``, ``count``, ``exists``, ``delete``)."""
    return GENERATORS[prefix](resolver)
