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
"""Cosmos query subsystem configuration properties."""

from __future__ import annotations

from dataclasses import dataclass

from cosmofly.core.config import config_properties


@config_properties(prefix="cosmofly.cosmos")
@dataclass
class CosmosProperties:
    """Configuration for the Cosmos query subsystem (cosmofly.cosmos.*)."""

    database: str = "cosmofly"
    populate_query_metrics: bool = False
    query_cache_size: int = 256
    default_page_size: int = 20
    # Container indexing capabilities, used to validate sorts and STARTSWITH.
    string_sort_supported: bool = True
    starts_with_supported: bool = True
