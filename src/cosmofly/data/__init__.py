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
"""CosmoFly Data: derived queries over a partitioned document store.

A query starts either as a method-name descriptor parsed by
:class:`QueryMethodParser` and folded by :class:`CriteriaAssembler`, or as an
explicit tree built with :func:`where`. Either way it ends as a
:class:`DocumentQuery` that a :class:`CosmosTemplate` renders and hands to a
:class:`CosmosQueryExecutorPort`.
"""

from cosmofly.data.assembler import CriteriaAssembler, DerivedQuery, DerivedQueryCache
from cosmofly.data.criteria import ArgumentRef, Criteria, CriteriaType, PropertyCriteria, where
from cosmofly.data.document_query import DocumentQuery
from cosmofly.data.generator import (
    AbstractQueryGenerator,
    CountQuerySpecGenerator,
    DeleteQuerySpecGenerator,
    ExistsQuerySpecGenerator,
    FindQuerySpecGenerator,
    generator_for,
)
from cosmofly.data.mapping import CosmosEntityInformation, PropertyResolver, TypeHintPropertyResolver
from cosmofly.data.page import CosmosPage
from cosmofly.data.pageable import CosmosPageRequest, Order, Sort
from cosmofly.data.ports.executor import (
    CosmosQueryExecutorPort,
    FeedOptions,
    FeedResponse,
    SqlParameter,
    SqlQuerySpec,
)
from cosmofly.data.post_processor import CosmosRepositoryPostProcessor
from cosmofly.data.query_parser import ArgumentShape, ParsedQuery, PredicateClause, QueryMethodParser
from cosmofly.data.repository import CosmosRepository
from cosmofly.data.template import CosmosTemplate

__all__ = [
    # Criteria
    "ArgumentRef",
    "Criteria",
    "CriteriaType",
    "PropertyCriteria",
    "where",
    # Parsing and assembly
    "ArgumentShape",
    "CriteriaAssembler",
    "DerivedQuery",
    "DerivedQueryCache",
    "ParsedQuery",
    "PredicateClause",
    "QueryMethodParser",
    # Rendering
    "AbstractQueryGenerator",
    "CountQuerySpecGenerator",
    "DeleteQuerySpecGenerator",
    "ExistsQuerySpecGenerator",
    "FindQuerySpecGenerator",
    "generator_for",
    # Queries and pagination
    "CosmosPage",
    "CosmosPageRequest",
    "DocumentQuery",
    "Order",
    "Sort",
    # Mapping
    "CosmosEntityInformation",
    "PropertyResolver",
    "TypeHintPropertyResolver",
    # Execution
    "CosmosQueryExecutorPort",
    "CosmosRepository",
    "CosmosRepositoryPostProcessor",
    "CosmosTemplate",
    "FeedOptions",
    "FeedResponse",
    "SqlParameter",
    "SqlQuerySpec",
]
