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
"""Tests for the 'cosmofly explain' command."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from cosmofly.cli.main import cli
from cosmofly.logging import QUERY_LOGGERS


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _explain_json(runner: CliRunner, *args: str) -> dict:
    result = runner.invoke(cli, ["explain", *args, "--json"])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class TestCLI:
    def test_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "CosmoFly" in result.output
        assert "explain" in result.output


class TestExplainJson:
    def test_inferred_arguments(self, runner: CliRunner) -> None:
        payload = _explain_json(runner, "findByNameAndAgeGreaterThan")
        assert payload == {
            "prefix": "find",
            "query": "SELECT * FROM ROOT r WHERE r.name = @name_0 AND r.age > @age_1",
            "parameters": [
                {"name": "@name_0", "argument": "arg0"},
                {"name": "@age_1", "argument": "arg1"},
            ],
        }

    def test_declared_arguments(self, runner: CliRunner) -> None:
        payload = _explain_json(runner, "find_by_name_or_age_between", "-a", "name", "-a", "low:value", "-a", "high")
        assert payload["query"] == "SELECT * FROM ROOT r WHERE (r.name = @name_0 OR r.age BETWEEN @age_1 AND @age_2)"
        assert [p["argument"] for p in payload["parameters"]] == ["name", "low", "high"]

    def test_in_clause_renders_one_placeholder_per_argument(self, runner: CliRunner) -> None:
        payload = _explain_json(runner, "findByStatusIn")
        assert payload["query"] == "SELECT * FROM ROOT r WHERE r.status IN (@status_0)"

    def test_order_by(self, runner: CliRunner) -> None:
        payload = _explain_json(runner, "findByNameOrderByAgeDesc")
        assert payload["query"].endswith("WHERE r.name = @name_0 ORDER BY r.age DESC")

    def test_count_prefix(self, runner: CliRunner) -> None:
        payload = _explain_json(runner, "countByStatus")
        assert payload["prefix"] == "count"
        assert payload["query"] == "SELECT VALUE COUNT(1) FROM r WHERE r.status = @status_0"

    def test_trailing_page_request_argument(self, runner: CliRunner) -> None:
        payload = _explain_json(runner, "findByCity", "-a", "city", "-a", "page:page_request")
        assert [p["argument"] for p in payload["parameters"]] == ["city"]


class TestExplainTable:
    def test_prints_clauses_and_query(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["explain", "findByNameNotIgnoreCase"])
        assert result.exit_code == 0, result.output
        assert "Clauses" in result.output
        assert "IS_EQUAL" in result.output
        assert "not, ignore case" in result.output
        assert "NOT (UPPER(r.name) = UPPER(@name_0))" in result.output


class TestExplainErrors:
    def test_malformed_descriptor(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["explain", "findByNameAnd"])
        assert result.exit_code == 1
        assert "MalformedDescriptorException" in result.output

    def test_argument_count_mismatch(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["explain", "findByNameAndEmail", "-a", "name"])
        assert result.exit_code == 1
        assert "MalformedDescriptorException" in result.output

    def test_unknown_argument_kind(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["explain", "findByName", "-a", "name:weird"])
        assert result.exit_code == 2
        assert "--arg" in result.output


class TestExplainVerbose:
    @pytest.fixture(autouse=True)
    def _restore_logging(self) -> Iterator[None]:
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        structlog.reset_defaults()
        root.handlers[:] = handlers
        root.setLevel(level)
        for name in QUERY_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)

    def test_logs_parse_and_render_events(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["explain", "findByName", "--verbose"])
        assert result.exit_code == 0, result.output
        assert "derived_query_parsed" in result.output
        assert "query_rendered" in result.output
