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
"""StructlogAdapter: default LoggingPort implementation using structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

from cosmofly.config.properties.logging import LoggingProperties
from cosmofly.core.config import Config
from cosmofly.logging.port import QUERY_LOGGERS


class StructlogAdapter:
    """Logging adapter backed by structlog over the stdlib ``logging`` tree.

    Events are rendered for humans (``console``) or as one JSON object per
    line (``json``). Per-module levels come from ``cosmofly.logging.level``,
    where ``root`` sets the default; ``cosmofly.logging.queries`` overrides
    the query path loggers.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self._root_level = "INFO"
        self._format = "console"
        self._module_levels: dict[str, str] = {}

    @property
    def format(self) -> str:
        return self._format

    @property
    def root_level(self) -> str:
        return self._root_level

    def configure(self, config: Config) -> None:
        props = config.bind(LoggingProperties)
        levels = {name: str(level).upper() for name, level in dict(props.level).items()}
        self._root_level = levels.pop("root", "INFO")
        if props.queries:
            levels.update(dict.fromkeys(QUERY_LOGGERS, str(props.queries).upper()))
        self._module_levels = levels
        self._format = str(props.format).lower()
        if self._format not in ("console", "json"):
            raise ValueError(f"Unknown log format '{props.format}', expected 'console' or 'json'")

        structlog.configure(
            processors=self._processors(),
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(
            format="%(message)s",
            stream=self._stream or sys.stdout,
            level=getattr(logging, self._root_level, logging.INFO),
            force=True,
        )
        for name, level in self._module_levels.items():
            self.set_level(name, level)

    def get_logger(self, name: str) -> Any:
        return structlog.get_logger(name)

    def set_level(self, name: str, level: str) -> None:
        """Set the level of a stdlib logger; unknown level names fall back to INFO."""
        logging.getLogger(name).setLevel(getattr(logging, level.upper(), logging.INFO))

    def set_query_level(self, level: str) -> None:
        for name in QUERY_LOGGERS:
            self.set_level(name, level)

    def _processors(self) -> list[structlog.types.Processor]:
        processors: list[structlog.types.Processor] = [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
        ]
        if self._format == "json":
            processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
        else:
            processors += [structlog.processors.UnicodeDecoder(), structlog.dev.ConsoleRenderer()]
        return processors
