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
"""Tests for criteria trees and the fluent criteria builder."""

from __future__ import annotations

import pytest

from cosmofly.data.criteria import ArgumentRef, Criteria, CriteriaType, where
from cosmofly.kernel.exceptions import (
    InvalidCriteriaShapeException,
    UnsupportedNegationException,
    UnsupportedOperatorCombinationException,
)

# ---------------------------------------------------------------------------
# Leaf construction
# ---------------------------------------------------------------------------


class TestLeafArity:
    @pytest.mark.parametrize(
        ("kind", "values"),
        [
            (CriteriaType.IS_EQUAL, ("a",)),
            (CriteriaType.LESS_THAN, (1,)),
            (CriteriaType.GREATER_THAN_EQUAL, (1,)),
            (CriteriaType.BETWEEN, (1, 5)),
            (CriteriaType.CONTAINING, ("x",)),
            (CriteriaType.IN, (["a", "b"],)),
            (CriteriaType.NEAR, ((1.0, 2.0), 10)),
            (CriteriaType.IS_NULL, ()),
            (CriteriaType.IS_EMPTY, ()),
            (CriteriaType.EXISTS, ()),
        ],
    )
    def test_matching_arity_succeeds(self, kind: CriteriaType, values: tuple) -> None:
        leaf = Criteria.of(kind, "field", *values)
        assert leaf.is_leaf
        assert leaf.subject == "field"
        assert len(leaf.values) == kind.arity
        assert leaf.children == ()

    @pytest.mark.parametrize(
        ("kind", "values"),
        [
            (CriteriaType.IS_EQUAL, ()),
            (CriteriaType.IS_EQUAL, ("a", "b")),
            (CriteriaType.BETWEEN, (1,)),
            (CriteriaType.BETWEEN, (1, 2, 3)),
            (CriteriaType.IS_NULL, ("x",)),
            (CriteriaType.EXISTS, (True,)),
            (CriteriaType.IN, ()),
        ],
    )
    def test_mismatched_arity_raises(self, kind: CriteriaType, values: tuple) -> None:
        with pytest.raises(InvalidCriteriaShapeException):
            Criteria.of(kind, "field", *values)

    def test_in_requires_collection(self) -> None:
        with pytest.raises(InvalidCriteriaShapeException, match="collection"):
            Criteria.of(CriteriaType.IN, "status", "active")

    def test_in_rejects_empty_collection(self) -> None:
        with pytest.raises(InvalidCriteriaShapeException, match="non-empty"):
            Criteria.of(CriteriaType.IN, "status", [])

    def test_in_normalizes_collection_to_tuple(self) -> None:
        leaf = Criteria.of(CriteriaType.IN, "status", {"a"})
        assert leaf.values == (("a",),)

    def test_in_accepts_argument_placeholder(self) -> None:
        leaf = Criteria.of(CriteriaType.IN, "status", ArgumentRef(0))
        assert leaf.values == (ArgumentRef(0),)

    def test_leaf_requires_subject(self) -> None:
        with pytest.raises(InvalidCriteriaShapeException, match="subject"):
            Criteria(type=CriteriaType.IS_EQUAL, values=("a",))

    def test_leaf_rejects_children(self) -> None:
        child = Criteria.of(CriteriaType.IS_EQUAL, "a", 1)
        with pytest.raises(InvalidCriteriaShapeException, match="children"):
            Criteria(type=CriteriaType.IS_EQUAL, subject="a", values=(1,), children=(child, child))

    def test_error_carries_code_and_context(self) -> None:
        with pytest.raises(InvalidCriteriaShapeException) as exc_info:
            Criteria.of(CriteriaType.BETWEEN, "age", 1)
        assert exc_info.value.code == "QUERY_CRITERIA_SHAPE"
        assert exc_info.value.context["expected"] == 2
        assert exc_info.value.context["actual"] == 1


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


class TestCombinators:
    def test_combine_has_two_children_and_no_subject(self) -> None:
        left = Criteria.of(CriteriaType.IS_EQUAL, "a", 1)
        right = Criteria.of(CriteriaType.IS_NULL, "b")
        node = Criteria.combine(CriteriaType.AND, left, right)
        assert node.children == (left, right)
        assert node.subject is None
        assert node.values == ()
        assert node.left is left
        assert node.right is right

    def test_combine_nested_combinators(self) -> None:
        a = Criteria.of(CriteriaType.IS_EQUAL, "a", 1)
        b = Criteria.of(CriteriaType.IS_EQUAL, "b", 2)
        inner = a | b
        node = inner & Criteria.of(CriteriaType.EXISTS, "c")
        assert len(node.children) == 2
        assert node.subject is None
        assert node.left.type is CriteriaType.OR

    def test_combinator_with_one_child_raises(self) -> None:
        a = Criteria.of(CriteriaType.IS_EQUAL, "a", 1)
        with pytest.raises(InvalidCriteriaShapeException, match="exactly 2 children"):
            Criteria(type=CriteriaType.AND, children=(a,))

    def test_combinator_with_subject_raises(self) -> None:
        a = Criteria.of(CriteriaType.IS_EQUAL, "a", 1)
        with pytest.raises(InvalidCriteriaShapeException):
            Criteria(type=CriteriaType.OR, subject="a", children=(a, a))

    def test_operators_build_combinators(self) -> None:
        a = where("a").is_equal(1)
        b = where("b").is_equal(2)
        assert (a & b).type is CriteriaType.AND
        assert (a | b).type is CriteriaType.OR


# ---------------------------------------------------------------------------
# Modifiers
# ---------------------------------------------------------------------------


class TestNegation:
    def test_negating_equality_succeeds(self) -> None:
        leaf = ~where("name").is_equal("x")
        assert leaf.negated is True
        assert (~leaf).negated is False

    def test_negating_near_raises(self) -> None:
        with pytest.raises(UnsupportedNegationException):
            where("location").not_().near((1.0, 2.0), 5)

    def test_negate_existing_near_leaf_raises(self) -> None:
        leaf = where("location").near((1.0, 2.0), 5)
        with pytest.raises(UnsupportedNegationException):
            leaf.negate()

    def test_negating_combinator_raises(self) -> None:
        node = where("a").is_equal(1) & where("b").is_equal(2)
        with pytest.raises(UnsupportedNegationException):
            ~node

    def test_negation_checked_before_arity(self) -> None:
        with pytest.raises(UnsupportedNegationException):
            Criteria.of(CriteriaType.NEAR, "location", negated=True)


class TestIgnoreCase:
    def test_string_comparable_accepts_ignore_case(self) -> None:
        leaf = where("name").starts_with("al", ignore_case=True)
        assert leaf.ignore_case is True

    def test_ignore_case_on_in_raises(self) -> None:
        with pytest.raises(UnsupportedOperatorCombinationException):
            Criteria.of(CriteriaType.IN, "status", ["a"], ignore_case=True)

    def test_ignore_case_on_exists_raises(self) -> None:
        with pytest.raises(UnsupportedOperatorCombinationException):
            where("name").exists().ignoring_case()


# ---------------------------------------------------------------------------
# Traversal and binding
# ---------------------------------------------------------------------------


class TestTraversal:
    def test_walk_is_pre_order_left_to_right(self) -> None:
        a, b, c = where("a").is_equal(1), where("b").is_equal(2), where("c").is_equal(3)
        tree = (a & b) | c
        assert [n.subject for n in tree.walk()] == [None, None, "a", "b", "c"]
        assert [leaf.subject for leaf in tree.leaves()] == ["a", "b", "c"]

    def test_find_subject(self) -> None:
        tree = where("a").is_equal(1) & where("b").greater_than(2)
        leaf = tree.find_subject("b")
        assert leaf is not None
        assert leaf.type is CriteriaType.GREATER_THAN
        assert tree.find_subject("missing") is None


class TestBind:
    def test_bind_substitutes_placeholders(self) -> None:
        template = Criteria.of(CriteriaType.BETWEEN, "age", ArgumentRef(0), ArgumentRef(1)) & Criteria.of(
            CriteriaType.IS_EQUAL, "name", ArgumentRef(2)
        )
        bound = template.bind([18, 65, "x"])
        assert bound.left.values == (18, 65)
        assert bound.right.values == ("x",)

    def test_bind_never_mutates_template(self) -> None:
        template = Criteria.of(CriteriaType.IS_EQUAL, "name", ArgumentRef(0))
        first = template.bind(["a"])
        second = template.bind(["b"])
        assert template.values == (ArgumentRef(0),)
        assert first.values == ("a",)
        assert second.values == ("b",)

    def test_bind_returns_same_tree_without_placeholders(self) -> None:
        tree = where("a").is_equal(1) & where("b").is_null()
        assert tree.bind([]) is tree

    def test_bind_validates_in_argument(self) -> None:
        template = Criteria.of(CriteriaType.IN, "status", ArgumentRef(0))
        with pytest.raises(InvalidCriteriaShapeException):
            template.bind(["not-a-collection"])

    def test_trees_are_immutable(self) -> None:
        leaf = where("a").is_equal(1)
        with pytest.raises(AttributeError):
            leaf.subject = "b"  # type: ignore[misc]
