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
"""Criteria trees: the immutable predicate representation shared by every query path.

A :class:`Criteria` is either a *leaf* (``subject`` + operator + bound values)
or a *combinator* (``AND`` / ``OR``) with exactly two children. All structural
invariants are enforced at construction, so the query generators never see a
malformed tree.

Criteria can be built programmatically with :func:`where` and combined using
the standard Python operators::

    active = where("status").is_equal("active")
    adults = where("age").greater_than_equal(18)
    named = where("name").starts_with("al", ignore_case=True)

    criteria = (active & adults) | ~named
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cosmofly.kernel.exceptions import (
    InvalidCriteriaShapeException,
    UnsupportedNegationException,
    UnsupportedOperatorCombinationException,
)


class CriteriaType(str, Enum):
    """Closed set of criteria kinds: leaf operators plus the two combinators."""

    IS_EQUAL = "is_equal"
    LESS_THAN = "less_than"
    LESS_THAN_EQUAL = "less_than_equal"
    GREATER_THAN = "greater_than"
    GREATER_THAN_EQUAL = "greater_than_equal"
    BETWEEN = "between"
    CONTAINING = "containing"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    LIKE = "like"
    REGEX = "regex"
    IS_NULL = "is_null"
    IS_EMPTY = "is_empty"
    EXISTS = "exists"
    IN = "in"
    NEAR = "near"
    AND = "and"
    OR = "or"

    @property
    def is_combinator(self) -> bool:
        return self in _COMBINATORS

    @property
    def arity(self) -> int:
        """Number of positional values a leaf of this kind binds."""
        if self.is_combinator:
            return 0
        return _ARITY.get(self, 1)

    @property
    def is_negatable(self) -> bool:
        return self not in _NON_NEGATABLE

    @property
    def is_string_comparable(self) -> bool:
        return self in _STRING_COMPARABLE


_COMBINATORS = frozenset({CriteriaType.AND, CriteriaType.OR})

_ARITY: dict[CriteriaType, int] = {
    CriteriaType.BETWEEN: 2,
    CriteriaType.NEAR: 2,
    CriteriaType.IS_NULL: 0,
    CriteriaType.IS_EMPTY: 0,
    CriteriaType.EXISTS: 0,
}

_NON_NEGATABLE = frozenset({CriteriaType.NEAR, CriteriaType.AND, CriteriaType.OR})

_STRING_COMPARABLE = frozenset(
    {
        CriteriaType.IS_EQUAL,
        CriteriaType.LESS_THAN,
        CriteriaType.LESS_THAN_EQUAL,
        CriteriaType.GREATER_THAN,
        CriteriaType.GREATER_THAN_EQUAL,
        CriteriaType.BETWEEN,
        CriteriaType.CONTAINING,
        CriteriaType.STARTS_WITH,
        CriteriaType.ENDS_WITH,
        CriteriaType.LIKE,
    }
)


@dataclass(frozen=True)
class ArgumentRef:
    """Placeholder for the *index*-th declared argument inside a cached template tree."""

    index: int


def is_collection(value: Any) -> bool:
    """Whether *value* can bind to an ``IN`` leaf."""
    if isinstance(value, (str, bytes, bytearray, Mapping)):
        return False
    return isinstance(value, (Sequence, set, frozenset)) or hasattr(value, "__iter__")


@dataclass(frozen=True)
class Criteria:
    """A node of a criteria tree.

    Attributes:
        type: The operator (leaf) or combinator kind.
        subject: Dot-separated property path; ``None`` for combinators.
        values: Bound argument values; empty for combinators and zero-arity leaves.
        ignore_case: Compare case-insensitively (string-comparable leaves only).
        negated: Wrap the leaf in ``NOT``.
        children: The ``(left, right)`` pair of a combinator; empty for leaves.
    """

    type: CriteriaType
    subject: str | None = None
    values: tuple[Any, ...] = ()
    ignore_case: bool = False
    negated: bool = False
    children: tuple[Criteria, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))
        object.__setattr__(self, "children", tuple(self.children))
        if self.type.is_combinator:
            self._validate_combinator()
        else:
            self._validate_leaf()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @staticmethod
    def of(
        type: CriteriaType,
        subject: str,
        *values: Any,
        ignore_case: bool = False,
        negated: bool = False,
    ) -> Criteria:
        """Create a leaf criteria."""
        return Criteria(type=type, subject=subject, values=values, ignore_case=ignore_case, negated=negated)

    @staticmethod
    def combine(type: CriteriaType, left: Criteria, right: Criteria) -> Criteria:
        """Create an ``AND`` / ``OR`` combinator over *left* and *right*."""
        return Criteria(type=type, children=(left, right))

    def __and__(self, other: Criteria) -> Criteria:
        return Criteria.combine(CriteriaType.AND, self, other)

    def __or__(self, other: Criteria) -> Criteria:
        return Criteria.combine(CriteriaType.OR, self, other)

    def __invert__(self) -> Criteria:
        return self.negate()

    def negate(self) -> Criteria:
        """Return a copy of this leaf with the negation flag toggled."""
        if self.type.is_combinator:
            raise UnsupportedNegationException(
                f"Cannot negate a {self.type.name} combinator; negate its leaves instead",
                context={"type": self.type.value},
            )
        return dataclasses.replace(self, negated=not self.negated)

    def ignoring_case(self) -> Criteria:
        """Return a copy of this leaf that compares case-insensitively."""
        return dataclasses.replace(self, ignore_case=True)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def is_leaf(self) -> bool:
        return not self.type.is_combinator

    @property
    def left(self) -> Criteria:
        return self.children[0]

    @property
    def right(self) -> Criteria:
        return self.children[1]

    def walk(self) -> Iterator[Criteria]:
        """Yield every node depth-first, left to right (pre-order)."""
        yield self
        for child in self.children:
            yield from child.walk()

    def leaves(self) -> Iterator[Criteria]:
        return (node for node in self.walk() if node.is_leaf)

    def find_subject(self, subject: str) -> Criteria | None:
        """Return the first leaf constraining *subject*, or ``None``."""
        return next((leaf for leaf in self.leaves() if leaf.subject == subject), None)

    # ------------------------------------------------------------------
    # Template binding
    # ------------------------------------------------------------------

    def bind(self, args: Sequence[Any]) -> Criteria:
        """Substitute :class:`ArgumentRef` placeholders with *args*.

        Returns a new tree; the receiver is never modified, so a cached
        template can be bound concurrently by many callers.
        """
        if self.is_leaf:
            if not any(isinstance(v, ArgumentRef) for v in self.values):
                return self
            values = tuple(args[v.index] if isinstance(v, ArgumentRef) else v for v in self.values)
            return dataclasses.replace(self, values=values)
        left, right = (child.bind(args) for child in self.children)
        if left is self.left and right is self.right:
            return self
        return dataclasses.replace(self, children=(left, right))

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    def _validate_combinator(self) -> None:
        context = {"type": self.type.value}
        if len(self.children) != 2:
            raise InvalidCriteriaShapeException(
                f"{self.type.name} criteria requires exactly 2 children, got {len(self.children)}",
                context=context,
            )
        if not all(isinstance(child, Criteria) for child in self.children):
            raise InvalidCriteriaShapeException(f"{self.type.name} children must be Criteria", context=context)
        if self.subject is not None or self.values:
            raise InvalidCriteriaShapeException(
                f"{self.type.name} criteria must not carry a subject or values", context=context
            )
        if self.negated:
            raise UnsupportedNegationException(f"Cannot negate a {self.type.name} combinator", context=context)
        if self.ignore_case:
            raise UnsupportedOperatorCombinationException(
                f"ignore_case is not applicable to a {self.type.name} combinator", context=context
            )

    def _validate_leaf(self) -> None:
        context = {"type": self.type.value, "subject": self.subject}
        if self.children:
            raise InvalidCriteriaShapeException(f"{self.type.name} leaf must not have children", context=context)
        if not isinstance(self.subject, str) or not self.subject:
            raise InvalidCriteriaShapeException(f"{self.type.name} leaf requires a subject", context=context)
        if self.negated and not self.type.is_negatable:
            raise UnsupportedNegationException(f"{self.type.name} cannot be negated", context=context)
        if self.ignore_case and not self.type.is_string_comparable:
            raise UnsupportedOperatorCombinationException(
                f"ignore_case is not supported for {self.type.name}", context=context
            )

        expected = self.type.arity
        if len(self.values) != expected:
            raise InvalidCriteriaShapeException(
                f"{self.type.name} on '{self.subject}' expects {expected} value(s), got {len(self.values)}",
                context={**context, "expected": expected, "actual": len(self.values)},
            )

        if self.type is CriteriaType.IN:
            value = self.values[0]
            if isinstance(value, ArgumentRef):
                return
            if not is_collection(value):
                raise InvalidCriteriaShapeException(
                    f"IN on '{self.subject}' expects a collection, got {type(value).__name__}", context=context
                )
            items = tuple(value)
            if not items:
                raise InvalidCriteriaShapeException(f"IN on '{self.subject}' expects a non-empty collection", context=context)
            object.__setattr__(self, "values", (items,))


# ---------------------------------------------------------------------------
# Fluent builder
# ---------------------------------------------------------------------------


class PropertyCriteria:
    """Fluent factory for leaf criteria on a single property path.

    Obtained through :func:`where`; every method returns an immutable
    :class:`Criteria` leaf.
    """

    def __init__(self, subject: str, negated: bool = False) -> None:
        self._subject = subject
        self._negated = negated

    def not_(self) -> PropertyCriteria:
        """Negate the next operator."""
        return PropertyCriteria(self._subject, negated=not self._negated)

    def _leaf(self, type: CriteriaType, *values: Any, ignore_case: bool = False) -> Criteria:
        return Criteria.of(type, self._subject, *values, ignore_case=ignore_case, negated=self._negated)

    def is_equal(self, value: Any, *, ignore_case: bool = False) -> Criteria:
        return self._leaf(CriteriaType.IS_EQUAL, value, ignore_case=ignore_case)

    def less_than(self, value: Any) -> Criteria:
        return self._leaf(CriteriaType.LESS_THAN, value)

    def less_than_equal(self, value: Any) -> Criteria:
        return self._leaf(CriteriaType.LESS_THAN_EQUAL, value)

    def greater_than(self, value: Any) -> Criteria:
        return self._leaf(CriteriaType.GREATER_THAN, value)

    def greater_than_equal(self, value: Any) -> Criteria:
        return self._leaf(CriteriaType.GREATER_THAN_EQUAL, value)

    def between(self, low: Any, high: Any) -> Criteria:
        return self._leaf(CriteriaType.BETWEEN, low, high)

    def containing(self, value: Any, *, ignore_case: bool = False) -> Criteria:
        return self._leaf(CriteriaType.CONTAINING, value, ignore_case=ignore_case)

    def starts_with(self, value: Any, *, ignore_case: bool = False) -> Criteria:
        return self._leaf(CriteriaType.STARTS_WITH, value, ignore_case=ignore_case)

    def ends_with(self, value: Any, *, ignore_case: bool = False) -> Criteria:
        return self._leaf(CriteriaType.ENDS_WITH, value, ignore_case=ignore_case)

    def like(self, pattern: str, *, ignore_case: bool = False) -> Criteria:
        return self._leaf(CriteriaType.LIKE, pattern, ignore_case=ignore_case)

    def regex(self, pattern: str) -> Criteria:
        return self._leaf(CriteriaType.REGEX, pattern)

    def in_(self, values: Any) -> Criteria:
        return self._leaf(CriteriaType.IN, values)

    def near(self, point: Any, max_distance: float) -> Criteria:
        return self._leaf(CriteriaType.NEAR, point, max_distance)

    def is_null(self) -> Criteria:
        return self._leaf(CriteriaType.IS_NULL)

    def is_empty(self) -> Criteria:
        return self._leaf(CriteriaType.IS_EMPTY)

    def exists(self) -> Criteria:
        return self._leaf(CriteriaType.EXISTS)


def where(subject: str) -> PropertyCriteria:
    """Start a criteria on the property path *subject*."""
    return PropertyCriteria(subject)
