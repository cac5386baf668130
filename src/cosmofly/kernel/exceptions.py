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
"""Unified exception hierarchy for CosmoFly.

All library exceptions inherit from CosmoFlyException, enabling unified
error handling across modules.

Categories:
- BusinessException: Defects in the way a query was declared or built
- InfrastructureException: Failures reported by the store executor
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class CosmoFlyException(Exception):
    """Base exception for all CosmoFly errors.

    Carries an optional error code and context dict for structured error data.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "QUERY_001").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    default_code: str | None = None

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code if code is not None else self.default_code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Business Exceptions
# =============================================================================


class BusinessException(CosmoFlyException):
    """Domain rule violations and business logic errors."""


class InvalidRequestException(BusinessException):
    """Request is syntactically valid but semantically incorrect."""


class QueryDefinitionException(InvalidRequestException):
    """A query was declared or assembled incorrectly.

    These are defects in how the query was declared: they are never
    retried and are surfaced to the caller unchanged.
    """


class MalformedDescriptorException(QueryDefinitionException):
    """A derived-query descriptor could not be parsed.

    Raised for unknown operator keywords, dangling ``And`` / ``Or``
    conjunctions, and argument arity mismatches.
    """

    default_code = "QUERY_DESCRIPTOR"


class InvalidCriteriaShapeException(QueryDefinitionException):
    """A criteria node violates its structural invariants."""

    default_code = "QUERY_CRITERIA_SHAPE"


class UnsupportedNegationException(QueryDefinitionException):
    """A negation modifier was applied to an operator that rejects it."""

    default_code = "QUERY_NEGATION"


class UnsupportedOperatorCombinationException(QueryDefinitionException):
    """A modifier (e.g. ignore-case) is incompatible with the operator kind."""

    default_code = "QUERY_OPERATOR_COMBINATION"


class UnknownPropertyException(QueryDefinitionException):
    """A property path does not resolve against the entity schema."""

    default_code = "QUERY_UNKNOWN_PROPERTY"


class IllegalQueryException(QueryDefinitionException):
    """The query is well-formed but cannot be served by the store (e.g. sort rules)."""

    default_code = "QUERY_ILLEGAL"


class InvalidEntityException(InvalidRequestException):
    """An entity cannot be written as it is (e.g. it has no id)."""

    default_code = "ENTITY_INVALID"


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(CosmoFlyException):
    """Infrastructure failures: store access, network."""


class CosmosAccessException(InfrastructureException):
    """The query executor failed while talking to the store."""

    default_code = "COSMOS_ACCESS"
