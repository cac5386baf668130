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
"""Tests for CosmosRepository base operations."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel

from cosmofly.data.criteria import where
from cosmofly.data.page import CosmosPage
from cosmofly.data.pageable import CosmosPageRequest, Sort
from cosmofly.data.repository import CosmosRepository
from cosmofly.data.template import CosmosTemplate
from cosmofly.kernel.exceptions import CosmosAccessException, InvalidEntityException
from cosmofly.testing import RecordingCosmosExecutor


class Book(BaseModel):
    id: str
    title: str
    pages: int
    shelf: str

    class Settings:
        container = "books"
        partition_key = "shelf"


class BookRepository(CosmosRepository[Book, str]):
    pass


@pytest.fixture
def documents() -> list[dict[str, Any]]:
    return [{"id": f"b{i}", "title": f"t{i}", "pages": 100 * i, "shelf": "A"} for i in range(3)]


@pytest.fixture
def repo(executor: RecordingCosmosExecutor) -> BookRepository:
    return BookRepository(CosmosTemplate(executor))


class TestGenericTypes:
    def test_entity_and_id_types_extracted(self) -> None:
        assert BookRepository._entity_type is Book
        assert BookRepository._id_type is str

    def test_explicit_model(self, executor: RecordingCosmosExecutor) -> None:
        repo = CosmosRepository(CosmosTemplate(executor), Book)
        assert repo._model is Book

    def test_missing_model_raises(self, executor: RecordingCosmosExecutor) -> None:
        with pytest.raises(TypeError, match="requires either"):
            CosmosRepository(CosmosTemplate(executor))


class TestOperations:
    async def test_find_by_id(self, repo: BookRepository) -> None:
        book = await repo.find_by_id("b0")
        assert book == Book(id="b0", title="t0", pages=0, shelf="A")

    async def test_find_all_sorted(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        books = await repo.find_all(Sort.by("pages").descending())
        assert len(books) == 3
        assert executor.last_spec.query_text == "SELECT * FROM ROOT r ORDER BY r.pages DESC"

    async def test_find_all_paged(self, repo: BookRepository) -> None:
        page = await repo.find_all_paged(CosmosPageRequest.first_page(2))
        assert isinstance(page, CosmosPage)
        assert [b.id for b in page.items] == ["b0", "b1"]
        assert page.total == 3
        assert page.has_next

        rest = await repo.find_all_paged(page.next_page_request())
        assert [b.id for b in rest.items] == ["b2"]
        assert not rest.has_next

    async def test_find_all_by_criteria(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        await repo.find_all_by_criteria(where("pages").greater_than(50) | where("title").starts_with("t"))
        assert executor.last_spec.query_text == (
            "SELECT * FROM ROOT r WHERE (r.pages > @pages_0 OR STARTSWITH(r.title, @title_1))"
        )

    async def test_find_all_by_criteria_paged(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        page = await repo.find_all_by_criteria_paged(where("shelf").is_equal("A"), CosmosPageRequest.first_page(5))
        assert len(page.items) == 3
        assert executor.calls[0][2].partition_key == "A"

    async def test_count(self, repo: BookRepository) -> None:
        assert await repo.count() == 3
        assert await repo.count_by_criteria(where("pages").less_than(10)) == 3

    async def test_exists(self, repo: BookRepository) -> None:
        assert await repo.exists("b1")

    async def test_exists_missing(self) -> None:
        repo = BookRepository(CosmosTemplate(RecordingCosmosExecutor()))
        assert not await repo.exists("nope")

    async def test_delete(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        executor.documents = executor.documents[:1]
        await repo.delete("b0")
        assert executor.deleted == [("books", "b0", "A")]

    async def test_delete_all_by_criteria(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        deleted = await repo.delete_all_by_criteria(where("shelf").is_equal("A"))
        assert [b.id for b in deleted] == ["b0", "b1", "b2"]
        assert len(executor.deleted) == 3

    async def test_find_by_id_with_partition_key(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        assert await repo.exists("b1", partition_key="A")
        assert not executor.last_options.enable_cross_partition_query
        assert executor.last_options.partition_key == "A"

    async def test_blank_id_is_not_queried(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        assert await repo.find_by_id("  ") is None
        assert executor.calls == []

    async def test_find_all_by_id(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        books = await repo.find_all_by_id(["b0", "b2"])
        assert len(books) == 3
        assert executor.last_spec.query_text == "SELECT * FROM ROOT r WHERE r.id IN (@id_0, @id_1)"
        assert executor.last_spec.parameter_values == ["b0", "b2"]
        assert executor.last_options.enable_cross_partition_query

    async def test_find_all_by_id_empty(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        assert await repo.find_all_by_id([]) == []
        assert executor.calls == []

    async def test_delete_with_partition_key(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        executor.documents = executor.documents[:1]
        await repo.delete("b0", partition_key="A")
        assert executor.last_options.partition_key == "A"
        assert executor.deleted == [("books", "b0", "A")]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


class TestWrites:
    async def test_save_upserts_document(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        saved = await repo.save(Book(id="b9", title="new", pages=12, shelf="B"))

        assert saved == Book(id="b9", title="new", pages=12, shelf="B")
        assert executor.saved == [("books", {"id": "b9", "title": "new", "pages": 12, "shelf": "B"}, "B")]
        assert await repo.count() == 4

    async def test_save_replaces_existing(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        await repo.save(Book(id="b0", title="renamed", pages=1, shelf="A"))
        assert len(executor.documents) == 3
        assert executor.documents[0]["title"] == "renamed"

    async def test_save_all(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        books = [Book(id=f"n{i}", title="x", pages=i, shelf="C") for i in range(2)]
        assert await repo.save_all(books) == books
        assert [document["id"] for _, document, _ in executor.saved] == ["n0", "n1"]

    async def test_save_without_id_rejected(self, executor: RecordingCosmosExecutor) -> None:
        class Draft(BaseModel):
            id: str | None = None
            title: str

        repo = CosmosRepository(CosmosTemplate(executor), Draft)
        with pytest.raises(InvalidEntityException) as exc_info:
            await repo.save(Draft(title="untitled"))
        assert exc_info.value.context == {"container": "draft"}
        assert executor.saved == []

    async def test_save_failure_is_wrapped(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        executor.error = TimeoutError("slow")
        with pytest.raises(CosmosAccessException, match="Failed to upsert item") as exc_info:
            await repo.save(Book(id="b1", title="t", pages=1, shelf="A"))
        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert exc_info.value.context == {"container": "books", "id": "b1"}

    async def test_delete_entity(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        await repo.delete_entity(Book(id="b1", title="t1", pages=100, shelf="A"))
        assert executor.deleted == [("books", "b1", "A")]
        assert executor.calls == []

    async def test_delete_all_entities(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        books = [Book(id="b0", title="t0", pages=0, shelf="A"), Book(id="b1", title="t1", pages=100, shelf="B")]
        await repo.delete_all(books)
        assert executor.deleted == [("books", "b0", "A"), ("books", "b1", "B")]

    async def test_delete_all(self, repo: BookRepository, executor: RecordingCosmosExecutor) -> None:
        await repo.delete_all()
        assert executor.last_spec.query_text == "SELECT * FROM ROOT r"
        assert [item_id for _, item_id, _ in executor.deleted] == ["b0", "b1", "b2"]
