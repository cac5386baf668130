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
"""'cosmofly explain': show how a derived-query descriptor is parsed and rendered."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.table import Table

from cosmofly.cli.console import console
from cosmofly.core.config import Config
from cosmofly.data.assembler import DerivedQueryCache
from cosmofly.data.criteria import ArgumentRef
from cosmofly.data.document_query import DocumentQuery
from cosmofly.data.generator import generator_for
from cosmofly.data.pageable import Order, Sort
from cosmofly.data.query_parser import ArgumentShape
from cosmofly.kernel.exceptions import QueryDefinitionException
from cosmofly.logging import StructlogAdapter

_KINDS = ("value", "collection", "any", "sort", "page_request")


def _parse_shape(text: str) -> ArgumentShape:
    name, _, kind = text.partition(":")
    kind = kind or "any"
    if not name or kind not in _KINDS:
        raise click.BadParameter(f"expected NAME[:{'|'.join(_KINDS)}], got '{text}'", param_hint="--arg")
    return ArgumentShape(name, kind)  # type: ignore[arg-type]


@click.command()
@click.argument("descriptor")
@click.option(
    "-a",
    "--arg",
    "args",
    multiple=True,
    help="Declared argument as NAME[:KIND], in order (KIND: value, collection, any, sort, page_request).",
)
@click.option("--json", "as_json", is_flag=True, help="Print the rendered query as JSON.")
@click.option("-v", "--verbose", is_flag=True, help="Log parser and renderer events to stderr.")
def explain_command(descriptor: str, args: tuple[str, ...], as_json: bool, verbose: bool) -> None:
    """Parse DESCRIPTOR and print its clauses and rendered query."""
    if verbose:
        adapter = StructlogAdapter(stream=sys.stderr)
        adapter.configure(Config.from_sources(Path.cwd()))
        adapter.set_query_level("DEBUG")

    shapes = [_parse_shape(a) for a in args] if args else None

    try:
        derived = DerivedQueryCache(maxsize=None).get(descriptor, shapes)
        parsed = derived.parsed
        sort = Sort(orders=tuple(Order(o.property, o.direction) for o in parsed.order_clauses))
        spec = generator_for(parsed.prefix).generate(DocumentQuery(criteria=derived.template, sort=sort))
    except QueryDefinitionException as exc:
        raise click.ClickException(f"{type(exc).__name__}: {exc}") from exc

    def argument_name(value: object) -> str:
        if isinstance(value, ArgumentRef):
            return parsed.arguments[value.index].name
        return repr(value)

    if as_json:
        payload = {
            "prefix": parsed.prefix,
            "query": spec.query_text,
            "parameters": [{"name": p.name, "argument": argument_name(p.value)} for p in spec.parameters],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    console.print(f"\n[cosmofly]{descriptor}[/cosmofly] [dim]({parsed.prefix})[/dim]\n")

    clauses = Table(title="Clauses", border_style="dim")
    clauses.add_column("#", style="dim")
    clauses.add_column("Property", style="info")
    clauses.add_column("Operator")
    clauses.add_column("Modifiers")
    clauses.add_column("Arguments")
    clauses.add_column("Then", style="dim")
    for i, clause in enumerate(parsed.clauses):
        modifiers = [m for m, on in (("not", clause.negated), ("ignore case", clause.ignore_case)) if on]
        clauses.add_row(
            str(i),
            clause.property_path,
            clause.operator.name,
            ", ".join(modifiers),
            ", ".join(parsed.arguments[j].name for j in clause.argument_indexes),
            (clause.conjunction or "").upper(),
        )
    console.print(clauses)

    console.print(f"\n[info]Query:[/info] {spec.query_text}")
    for parameter in spec.parameters:
        console.print(f"  {parameter.name} [dim]<-[/dim] {argument_name(parameter.value)}")
    console.print()
