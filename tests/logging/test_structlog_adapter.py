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
"""Tests for StructlogAdapter, the default LoggingPort implementation."""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Iterator
from typing import Any

import pytest
import structlog

from cosmofly.core.config import Config
from cosmofly.logging import QUERY_LOGGERS, LoggingPort, StructlogAdapter


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    structlog.reset_defaults()
    for name in (*QUERY_LOGGERS, "cosmofly.cli"):
        logging.getLogger(name).setLevel(logging.NOTSET)


def _config(**logging_section: Any) -> Config:
    return Config({"cosmofly": {"logging": logging_section}})


class TestLoggingPort:
    def test_adapter_implements_port(self) -> None:
        assert isinstance(StructlogAdapter(), LoggingPort)

    def test_port_requires_query_level(self) -> None:
        class Partial:
            def configure(self, config: Any) -> None: ...
            def get_logger(self, name: str) -> Any: ...
            def set_level(self, name: str, level: str) -> None: ...

        assert not isinstance(Partial(), LoggingPort)


class TestConfigure:
    def test_defaults(self) -> None:
        adapter = StructlogAdapter()
        adapter.configure(Config({}))
        assert adapter.root_level == "INFO"
        assert adapter.format == "console"

    def test_root_level_and_format(self) -> None:
        adapter = StructlogAdapter()
        adapter.configure(_config(level={"root": "debug"}, format="JSON"))
        assert adapter.root_level == "DEBUG"
        assert adapter.format == "json"

    def test_module_levels(self) -> None:
        adapter = StructlogAdapter()
        adapter.configure(_config(level={"root": "INFO", "cosmofly.cli": "warning"}))
        assert logging.getLogger("cosmofly.cli").level == logging.WARNING

    def test_queries_shortcut(self) -> None:
        adapter = StructlogAdapter()
        adapter.configure(_config(queries="DEBUG"))
        assert logging.getLogger("cosmofly.data").level == logging.DEBUG

    def test_unknown_format_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown log format"):
            StructlogAdapter().configure(_config(format="xml"))

    def test_packaged_defaults(self, tmp_path: Any) -> None:
        adapter = StructlogAdapter()
        adapter.configure(Config.from_sources(tmp_path))
        assert adapter.format == "console"


class TestOutput:
    def test_json_lines(self) -> None:
        stream = io.StringIO()
        adapter = StructlogAdapter(stream=stream)
        adapter.configure(_config(format="json"))

        adapter.get_logger("cosmofly.data.template").info("query_executed", container="people", items=3)

        event = json.loads(stream.getvalue().splitlines()[-1])
        assert event["event"] == "query_executed"
        assert event["logger"] == "cosmofly.data.template"
        assert event["level"] == "info"
        assert event["items"] == 3

    def test_query_level_filters_debug_events(self) -> None:
        stream = io.StringIO()
        adapter = StructlogAdapter(stream=stream)
        adapter.configure(_config(format="json", level={"root": "INFO"}))
        logger = adapter.get_logger("cosmofly.data.generator")

        logger.debug("query_rendered", query="SELECT * FROM ROOT r")
        assert stream.getvalue() == ""

        adapter.set_query_level("DEBUG")
        logger.debug("query_rendered", query="SELECT * FROM ROOT r")
        assert json.loads(stream.getvalue().splitlines()[-1])["query"] == "SELECT * FROM ROOT r"


class TestSetLevel:
    def test_set_level(self) -> None:
        StructlogAdapter().set_level("cosmofly.cli", "ERROR")
        assert logging.getLogger("cosmofly.cli").level == logging.ERROR

    def test_unknown_level_falls_back_to_info(self) -> None:
        StructlogAdapter().set_level("cosmofly.cli", "LOUD")
        assert logging.getLogger("cosmofly.cli").level == logging.INFO
