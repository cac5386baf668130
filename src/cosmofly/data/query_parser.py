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
"""Derived query descriptor parser for Spring Data-style repositories.

Parses descriptors like ``findByNameAndEmailOrAddress`` (or the Python
spelling ``find_by_name_and_email_or_address``) into an ordered list of
:class:`PredicateClause` objects, validated against the declared argument
shapes of the repository method.

Grammar
-------
**Prefixes:** ``findBy``, ``countBy``, ``existsBy``, ``deleteBy``
(``find_by_`` ... in snake case). No prefix means ``find``.

**Connectors:** ``And``, ``Or`` (``_and_``, ``_or_``). A connector must be
followed by a capitalized property segment.

**Operators (suffix on property segment):**
    - *(none)*, ``Is``, ``Equals`` = equality
    - ``LessThan``, ``LessThanEqual``, ``GreaterThan``, ``GreaterThanEqual``
    - ``Before`` / ``After`` = ``<`` / ``>``
    - ``Between`` (takes 2 args), ``Near`` (point + max distance)
    - ``Containing``, ``StartingWith``, ``EndingWith``, ``Like``, ``Regex``
    - ``In`` / ``NotIn`` (takes one collection arg)
    - ``IsNull``, ``IsNotNull``, ``IsEmpty``, ``IsNotEmpty``, ``Exists`` (no arg)

**Modifiers:** ``Not`` before an operator negates it; ``IgnoreCase`` after
it compares case-insensitively; ``AllIgnoreCase`` applies to every clause.

**Ordering suffix:** ``OrderBy{Property}{Asc|Desc}`` (can chain multiple).

Example::

    parser = QueryMethodParser()
    parsed = parser.parse(
        "findByNameAndEmailOrAddress",
        [ArgumentShape.value("name"), ArgumentShape.value("email"), ArgumentShape.value("address")],
    )
"""

from __future__ import annotations

import inspect
import re
import types
import typing
from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, get_args, get_origin

import structlog

from cosmofly.data.criteria import CriteriaType
from cosmofly.data.pageable import CosmosPageRequest, Sort
from cosmofly.kernel.exceptions import MalformedDescriptorException

logger = structlog.get_logger(__name__)

ArgumentKind = Literal["value", "collection", "any", "sort", "page_request"]
Conjunction = Literal["and", "or"]

# CamelCase keyword -> (operator, negated). Matched longest-first because
# some keywords are suffixes of others (``GreaterThan`` / ``GreaterThanEqual``).
_KEYWORDS: dict[str, tuple[CriteriaType, bool]] = {
    "GreaterThanEqual": (CriteriaType.GREATER_THAN_EQUAL, False),
    "LessThanEqual": (CriteriaType.LESS_THAN_EQUAL, False),
    "GreaterThan": (CriteriaType.GREATER_THAN, False),
    "LessThan": (CriteriaType.LESS_THAN, False),
    "Before": (CriteriaType.LESS_THAN, False),
    "After": (CriteriaType.GREATER_THAN, False),
    "Between": (CriteriaType.BETWEEN, False),
    "Containing": (CriteriaType.CONTAINING, False),
    "Contains": (CriteriaType.CONTAINING, False),
    "StartingWith": (CriteriaType.STARTS_WITH, False),
    "StartsWith": (CriteriaType.STARTS_WITH, False),
    "EndingWith": (CriteriaType.ENDS_WITH, False),
    "EndsWith": (CriteriaType.ENDS_WITH, False),
    "Like": (CriteriaType.LIKE, False),
    "Regex": (CriteriaType.REGEX, False),
    "Matches": (CriteriaType.REGEX, False),
    "Near": (CriteriaType.NEAR, False),
    "Exists": (CriteriaType.EXISTS, False),
    "IsNotNull": (CriteriaType.IS_NULL, True),
    "NotNull": (CriteriaType.IS_NULL, True),
    "IsNull": (CriteriaType.IS_NULL, False),
    "Null": (CriteriaType.IS_NULL, False),
    "IsNotEmpty": (CriteriaType.IS_EMPTY, True),
    "NotEmpty": (CriteriaType.IS_EMPTY, True),
    "IsEmpty": (CriteriaType.IS_EMPTY, False),
    "Empty": (CriteriaType.IS_EMPTY, False),
    "NotIn": (CriteriaType.IN, True),
    "In": (CriteriaType.IN, False),
    "IsNot": (CriteriaType.IS_EQUAL, True),
    "Equals": (CriteriaType.IS_EQUAL, False),
    "Is": (CriteriaType.IS_EQUAL, False),
}

# Keywords of the wider naming convention that this store cannot serve.
_UNSUPPORTED_KEYWORDS = ("IsWithin", "Within", "IsTrue", "True", "IsFalse", "False")

_IGNORE_CASE = ("IgnoringCase", "IgnoreCase")
_ALL_IGNORE_CASE = ("AllIgnoringCase", "AllIgnoreCase")

_PREFIX_ALIASES = {
    "find": "find",
    "read": "find",
    "query": "find",
    "count": "count",
    "exists": "exists",
    "delete": "delete",
    "remove": "delete",
}

_CAMEL_PREFIX_RE = re.compile(r"^(find|read|query|count|exists|delete|remove)By(?=[A-Z]|$)")
_SNAKE_PREFIX_RE = re.compile(r"^(find|read|query|count|exists|delete|remove)_by(?:_|$)")


def _snake(keyword: str) -> str:
    return re.sub(r"(?<!^)([A-Z])", r"_\1", keyword).lower()


def _by_length(names: Collection[str]) -> list[str]:
    return sorted(names, key=len, reverse=True)


_CAMEL_KEYWORDS = _by_length(_KEYWORDS)
_SNAKE_KEYWORDS = {_snake(k): v for k, v in _KEYWORDS.items()}
_SNAKE_KEYWORD_ORDER = _by_length(_SNAKE_KEYWORDS)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArgumentShape:
    """Static description of one declared query-method argument.

    ``kind`` drives parse-time validation: ``collection`` arguments bind to
    ``In`` clauses, ``sort`` / ``page_request`` arguments are routed to the
    sort and page request slots, ``any`` is accepted everywhere.
    """

    name: str
    kind: ArgumentKind = "any"

    @staticmethod
    def value(name: str) -> ArgumentShape:
        return ArgumentShape(name, "value")

    @staticmethod
    def collection(name: str) -> ArgumentShape:
        return ArgumentShape(name, "collection")

    @staticmethod
    def sort(name: str = "sort") -> ArgumentShape:
        return ArgumentShape(name, "sort")

    @staticmethod
    def page_request(name: str = "page_request") -> ArgumentShape:
        return ArgumentShape(name, "page_request")

    @staticmethod
    def from_annotation(name: str, annotation: Any) -> ArgumentShape:
        """Derive a shape from a parameter annotation (``inspect.Parameter.empty`` means ``any``)."""
        if annotation is None or annotation is typing.Any or annotation is inspect.Parameter.empty:
            return ArgumentShape(name, "any")
        if isinstance(annotation, str):
            # Unresolved forward reference.
            return ArgumentShape(name, "any")
        origin = get_origin(annotation) or annotation
        if origin in (typing.Union, types.UnionType):
            shapes = {
                ArgumentShape.from_annotation(name, arg).kind for arg in get_args(annotation) if arg is not type(None)
            }
            return ArgumentShape(name, shapes.pop() if len(shapes) == 1 else "any")
        if isinstance(origin, type):
            if issubclass(origin, Sort):
                return ArgumentShape(name, "sort")
            if issubclass(origin, CosmosPageRequest):
                return ArgumentShape(name, "page_request")
            if issubclass(origin, (str, bytes, bytearray, Mapping)):
                return ArgumentShape(name, "value")
            if issubclass(origin, (list, tuple, set, frozenset, Collection)):
                return ArgumentShape(name, "collection")
        return ArgumentShape(name, "value")

    @property
    def is_special(self) -> bool:
        """Whether this argument feeds sorting/pagination instead of a clause."""
        return self.kind in ("sort", "page_request")


@dataclass(frozen=True)
class PredicateClause:
    """A single property/operator clause parsed from a descriptor.

    ``conjunction`` joins this clause to the *following* one; it is ``None``
    for the terminal clause. ``argument_indexes`` are positions in the
    declared argument list consumed by this clause.
    """

    property_path: str
    operator: CriteriaType = CriteriaType.IS_EQUAL
    conjunction: Conjunction | None = None
    negated: bool = False
    ignore_case: bool = False
    argument_indexes: tuple[int, ...] = ()


@dataclass(frozen=True)
class OrderClause:
    """A single order-by clause taken from the descriptor."""

    property: str
    direction: Literal["asc", "desc"] = "asc"


@dataclass(frozen=True)
class ParsedQuery:
    """Result of parsing a derived query descriptor."""

    prefix: str  # find, count, exists, delete
    descriptor: str
    clauses: tuple[PredicateClause, ...] = ()
    order_clauses: tuple[OrderClause, ...] = ()
    arguments: tuple[ArgumentShape, ...] = ()
    sort_index: int | None = None
    page_request_index: int | None = None

    @property
    def connectors(self) -> list[str]:
        """Conjunctions between consecutive clauses, in order."""
        return [c.conjunction for c in self.clauses[:-1] if c.conjunction is not None]

    @property
    def argument_count(self) -> int:
        return len(self.arguments)


@dataclass
class _Segment:
    text: str
    conjunction: Conjunction | None = None


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class QueryMethodParser:
    """Parse derived query descriptors into :class:`ParsedQuery` objects.

    Examples::

        parse("findByEmail")                       -> email = ?
        parse("find_by_status_and_role")           -> status = ? AND role = ?
        parse("findByAgeGreaterThan")              -> age > ?
        parse("findByNameOrderByCreatedAtDesc")    -> name = ? ORDER BY createdAt DESC
        parse("countByActive")                     -> count where active = ?
    """

    def parse(self, descriptor: str, arguments: Sequence[ArgumentShape] | None = None) -> ParsedQuery:
        """Parse *descriptor*, validating it against *arguments* when given.

        Raises:
            MalformedDescriptorException: unknown keyword, dangling conjunction,
                or a consumed-argument count that differs from the declaration.
        """
        if not descriptor or not descriptor.strip():
            raise self._error(descriptor, "Descriptor must not be empty")

        snake = descriptor == descriptor.lower()
        prefix, body = self._split_prefix(descriptor, snake)
        body, order_clauses = self._split_order(descriptor, body, snake)
        body, all_ignore_case = self._split_all_ignore_case(body, snake)

        segments = self._split_segments(descriptor, body, snake)
        raw_clauses = [self._parse_segment(descriptor, seg, snake, all_ignore_case) for seg in segments]

        clauses, shapes, sort_index, page_index = self._bind_arguments(descriptor, raw_clauses, arguments)

        parsed = ParsedQuery(
            prefix=prefix,
            descriptor=descriptor,
            clauses=tuple(clauses),
            order_clauses=tuple(order_clauses),
            arguments=tuple(shapes),
            sort_index=sort_index,
            page_request_index=page_index,
        )
        logger.debug(
            "derived_query_parsed",
            descriptor=descriptor,
            prefix=prefix,
            clauses=len(clauses),
            orders=len(order_clauses),
        )
        return parsed

    # ------------------------------------------------------------------
    # Prefix / suffix handling
    # ------------------------------------------------------------------

    @staticmethod
    def _split_prefix(descriptor: str, snake: bool) -> tuple[str, str]:
        match = (_SNAKE_PREFIX_RE if snake else _CAMEL_PREFIX_RE).match(descriptor)
        if match is None:
            return "find", descriptor
        return _PREFIX_ALIASES[match.group(1)], descriptor[match.end() :]

    def _split_order(self, descriptor: str, body: str, snake: bool) -> tuple[str, list[OrderClause]]:
        pattern = r"(?:^|_)order_by_(.+)$" if snake else r"OrderBy(?=[A-Z])(.+)$"
        match = re.search(pattern, body)
        if match is None:
            if re.search(r"(?:^|_)order_by$" if snake else r"OrderBy$", body):
                raise self._error(descriptor, "OrderBy must be followed by a property")
            return body, []
        orders = self._parse_snake_order(match.group(1)) if snake else self._parse_camel_order(match.group(1))
        return body[: match.start()], orders

    @staticmethod
    def _parse_camel_order(order_body: str) -> list[OrderClause]:
        """Parse ``NameDescAgeAsc`` into order clauses."""
        parts = re.split(r"(Asc|Desc)(?=[A-Z]|$)", order_body)
        clauses: list[OrderClause] = []
        for i in range(0, len(parts), 2):
            name = parts[i]
            if not name:
                continue
            direction = parts[i + 1].lower() if i + 1 < len(parts) else "asc"
            clauses.append(OrderClause(property=_camel_path(name), direction=direction))  # type: ignore[arg-type]
        return clauses

    @staticmethod
    def _parse_snake_order(order_body: str) -> list[OrderClause]:
        """Parse ``name_desc_created_at`` into order clauses."""
        clauses: list[OrderClause] = []
        parts = order_body.split("_")
        i = 0
        while i < len(parts):
            field_parts: list[str] = []
            while i < len(parts) and parts[i] not in ("asc", "desc"):
                field_parts.append(parts[i])
                i += 1
            direction = "asc"
            if i < len(parts):
                direction = parts[i]
                i += 1
            if field_parts:
                path = _snake_path("_".join(field_parts))
                clauses.append(OrderClause(property=path, direction=direction))  # type: ignore[arg-type]
        return clauses

    @staticmethod
    def _split_all_ignore_case(body: str, snake: bool) -> tuple[str, bool]:
        for suffix in _ALL_IGNORE_CASE:
            token = "_" + _snake(suffix) if snake else suffix
            if body.endswith(token):
                return body[: -len(token)], True
        return body, False

    # ------------------------------------------------------------------
    # Segmentation
    # ------------------------------------------------------------------

    def _split_segments(self, descriptor: str, body: str, snake: bool) -> list[_Segment]:
        if not body:
            return []

        if snake:
            if body.startswith(("and_", "or_")):
                raise self._error(descriptor, "Conjunction without a preceding property")
            if body.endswith(("_and", "_or")):
                raise self._error(descriptor, "Conjunction without a following property")
            parts = re.split(r"_(and|or)_", body)
        else:
            if re.match(r"^(And|Or)(?=[A-Z])", body):
                raise self._error(descriptor, "Conjunction without a preceding property")
            if re.search(r"(?<=[a-z0-9])(And|Or)$", body):
                raise self._error(descriptor, "Conjunction without a following property")
            parts = re.split(r"(?<=[a-z0-9])(And|Or)(?=[A-Z])", body)

        segments: list[_Segment] = []
        for i in range(0, len(parts), 2):
            text = parts[i]
            conjunction = parts[i + 1].lower() if i + 1 < len(parts) else None
            if not text:
                raise self._error(descriptor, "Conjunction without a following property")
            segments.append(_Segment(text=text, conjunction=conjunction))  # type: ignore[arg-type]
        return segments

    def _parse_segment(
        self, descriptor: str, segment: _Segment, snake: bool, all_ignore_case: bool
    ) -> PredicateClause:
        """Parse a single ``Property[Not][Operator][IgnoreCase]`` segment."""
        text = segment.text
        ignore_case = all_ignore_case

        for suffix in _IGNORE_CASE:
            token = "_" + _snake(suffix) if snake else suffix
            if text.endswith(token):
                text = text[: -len(token)]
                ignore_case = True
                break

        for unsupported in _UNSUPPORTED_KEYWORDS:
            token = "_" + _snake(unsupported) if snake else unsupported
            if text.endswith(token) and len(text) > len(token):
                raise self._error(descriptor, f"Unsupported keyword '{unsupported}' in '{segment.text}'")

        operator, negated, text = self._strip_operator(text, snake)

        not_token = "_not" if snake else "Not"
        if text.endswith(not_token) and len(text) > len(not_token):
            text = text[: -len(not_token)]
            negated = not negated

        if not text or (snake and text.endswith("_")):
            raise self._error(descriptor, f"Missing property before operator in '{segment.text}'")

        path = _snake_path(text) if snake else _camel_path(text)
        if not path or any(not part for part in path.split(".")):
            raise self._error(descriptor, f"Invalid property path in '{segment.text}'")

        if ignore_case and not operator.is_string_comparable:
            if not all_ignore_case:
                raise self._error(descriptor, f"IgnoreCase is not supported for {operator.name} in '{segment.text}'")
            ignore_case = False

        return PredicateClause(
            property_path=path,
            operator=operator,
            conjunction=segment.conjunction,
            negated=negated,
            ignore_case=ignore_case,
        )

    @staticmethod
    def _strip_operator(text: str, snake: bool) -> tuple[CriteriaType, bool, str]:
        if snake:
            for keyword in _SNAKE_KEYWORD_ORDER:
                token = "_" + keyword
                if text.endswith(token):
                    operator, negated = _SNAKE_KEYWORDS[keyword]
                    return operator, negated, text[: -len(token)]
        else:
            for keyword in _CAMEL_KEYWORDS:
                # The keyword must start a new camel-case word of the segment.
                if text.endswith(keyword) and len(text) > len(keyword):
                    operator, negated = _KEYWORDS[keyword]
                    return operator, negated, text[: -len(keyword)]
        return CriteriaType.IS_EQUAL, False, text

    # ------------------------------------------------------------------
    # Argument binding
    # ------------------------------------------------------------------

    def _bind_arguments(
        self,
        descriptor: str,
        clauses: list[PredicateClause],
        arguments: Sequence[ArgumentShape] | None,
    ) -> tuple[list[PredicateClause], list[ArgumentShape], int | None, int | None]:
        if arguments is None:
            inferred: list[ArgumentShape] = []
            for clause in clauses:
                kind: ArgumentKind = "collection" if clause.operator is CriteriaType.IN else "any"
                for _ in range(clause.operator.arity):
                    inferred.append(ArgumentShape(f"arg{len(inferred)}", kind))
            arguments = inferred

        shapes = list(arguments)
        sort_index: int | None = None
        page_index: int | None = None

        # Trailing sort / page request parameters are optional and never bound to clauses.
        value_count = len(shapes)
        while value_count > 0 and shapes[value_count - 1].is_special:
            value_count -= 1
            shape = shapes[value_count]
            if shape.kind == "sort":
                if sort_index is not None:
                    raise self._error(descriptor, "At most one Sort parameter is allowed")
                sort_index = value_count
            else:
                if page_index is not None:
                    raise self._error(descriptor, "At most one page request parameter is allowed")
                page_index = value_count

        for shape in shapes[:value_count]:
            if shape.is_special:
                raise self._error(descriptor, f"Parameter '{shape.name}' of kind {shape.kind} must be trailing")

        bound: list[PredicateClause] = []
        cursor = 0
        for clause in clauses:
            arity = clause.operator.arity
            if cursor + arity > value_count:
                raise self._error(
                    descriptor,
                    f"Clause '{clause.property_path} {clause.operator.name}' needs {arity} argument(s) "
                    f"but only {value_count - cursor} remain",
                )
            indexes = tuple(range(cursor, cursor + arity))
            if clause.operator is CriteriaType.IN and shapes[cursor].kind == "value":
                raise self._error(
                    descriptor, f"IN clause on '{clause.property_path}' requires a collection argument"
                )
            cursor += arity
            bound.append(_with_indexes(clause, indexes))

        if cursor != value_count:
            raise self._error(
                descriptor, f"Descriptor consumes {cursor} argument(s) but {value_count} were declared"
            )
        return bound, shapes, sort_index, page_index

    @staticmethod
    def _error(descriptor: str | None, message: str) -> MalformedDescriptorException:
        return MalformedDescriptorException(f"{message}: {descriptor!r}", context={"descriptor": descriptor})


def _with_indexes(clause: PredicateClause, indexes: tuple[int, ...]) -> PredicateClause:
    return PredicateClause(
        property_path=clause.property_path,
        operator=clause.operator,
        conjunction=clause.conjunction,
        negated=clause.negated,
        ignore_case=clause.ignore_case,
        argument_indexes=indexes,
    )


def _decapitalize(name: str) -> str:
    # ``URL`` stays ``URL``; ``EmailAddress`` becomes ``emailAddress``.
    if len(name) > 1 and name[0].isupper() and name[1].isupper():
        return name
    return name[:1].lower() + name[1:]


def _camel_path(text: str) -> str:
    return ".".join(_decapitalize(part) for part in text.split("_"))


def _snake_path(text: str) -> str:
    return text.replace("__", ".")
