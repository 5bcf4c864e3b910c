"""Unit tests for HistoryService - persistence mocked, stores real."""

import asyncio
import uuid
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from app.services.history.exceptions import (
    RepositoryExists,
    RepositoryNotFound,
    RevisionNotFound,
    StaleRevision,
)
from app.services.history.service import HistoryService, default_readme
from app.services.history.snapshot import Snapshot
from app.services.history.types import CommitInfo, CommitRecord

from tests.helpers.mock_factories import make_mock_commit, make_mock_repository


def _initial_row(repo_id, author_id):
    return make_mock_commit(
        repository_id=repo_id,
        revision=1,
        author_id=author_id,
        snapshot=Snapshot({"README.md": "# Hello\n"}).to_json(),
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


def _row_for(record: CommitRecord):
    return make_mock_commit(
        repository_id=record.repository_id,
        revision=record.revision,
        author_id=record.author_id,
        message=record.message,
        snapshot=record.snapshot.to_json(),
        created_at=record.created_at,
    )


@pytest.fixture
def mock_ops():
    """Patch the domain operations used by the service.

    ``commit_ops.rows`` stands in for the commits table: ``create`` appends
    to it and ``get_all`` / ``get_head_revision`` read from it.
    """
    with (
        patch("app.services.history.service.repository_ops") as repo_ops,
        patch("app.services.history.service.commit_ops") as commit_ops,
    ):
        rows: list = []

        async def create(db, record):
            rows.append(_row_for(record))

        commit_ops.rows = rows
        commit_ops.create = AsyncMock(side_effect=create)
        commit_ops.get_all = AsyncMock(
            side_effect=lambda db, repository_id: [
                r for r in rows if r.repository_id == repository_id
            ]
        )
        commit_ops.get_history_page = AsyncMock(return_value=[])
        commit_ops.get_head_revision = AsyncMock(
            side_effect=lambda db, repository_id: max(
                (r.revision for r in rows if r.repository_id == repository_id), default=0
            )
        )
        commit_ops.to_record = MagicMock(
            side_effect=lambda row: CommitRecord(
                repository_id=row.repository_id,
                revision=row.revision,
                author_id=row.author_id,
                message=row.message,
                created_at=row.created_at,
                snapshot=Snapshot.from_json(row.snapshot),
            )
        )
        repo_ops.touch = AsyncMock()
        repo_ops.get_by_owner_and_name = AsyncMock(return_value=None)
        yield repo_ops, commit_ops


class TestCreateRepository:
    """Tests for repository creation with its initial commit."""

    def setup_method(self):
        self.service = HistoryService()
        self.db = AsyncMock()

    @pytest.mark.asyncio
    async def test_default_readme(self, mock_ops):
        repo_ops, commit_ops = mock_ops
        owner_id = uuid.uuid4()
        repo = make_mock_repository(owner_id=owner_id, name="demo")
        repo_ops.create = AsyncMock(return_value=repo)

        result = await self.service.create_repository(
            self.db, owner_id, "demo", description="A demo"
        )

        assert result is repo
        record = commit_ops.create.call_args[0][1]
        assert record.revision == 1
        assert record.message == "Initial commit"
        assert record.snapshot.to_dict() == {"README.md": "# demo\n\nA demo\n"}
        self.db.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_name(self, mock_ops):
        repo_ops, _ = mock_ops
        repo_ops.get_by_owner_and_name = AsyncMock(return_value=make_mock_repository())
        repo_ops.create = AsyncMock()

        with pytest.raises(RepositoryExists):
            await self.service.create_repository(self.db, uuid.uuid4(), "demo")
        repo_ops.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_files_create_nothing(self, mock_ops):
        repo_ops, _ = mock_ops
        repo_ops.create = AsyncMock()

        with pytest.raises(Exception, match="parent directory"):
            await self.service.create_repository(
                self.db, uuid.uuid4(), "demo", files={"../x": "y"}
            )
        repo_ops.create.assert_not_awaited()

    def test_default_readme_format(self):
        assert default_readme("hello", "world") == "# hello\n\nworld\n"


class TestCommitToRepository:
    """Tests for commits through the service."""

    def setup_method(self):
        self.service = HistoryService()
        self.db = AsyncMock()
        self.author_id = uuid.uuid4()
        self.repo = make_mock_repository(owner_id=self.author_id)

    def _seed(self, mock_ops):
        repo_ops, commit_ops = mock_ops
        repo_ops.get = AsyncMock(return_value=self.repo)
        commit_ops.rows.append(_initial_row(self.repo.id, self.author_id))
        return repo_ops, commit_ops

    @pytest.mark.asyncio
    async def test_unknown_repository(self, mock_ops):
        repo_ops, _ = mock_ops
        repo_ops.get = AsyncMock(return_value=None)

        with pytest.raises(RepositoryNotFound):
            await self.service.commit_to_repository(
                self.db, uuid.uuid4(), 1, {"a": "b"}, self.author_id, "msg"
            )

    @pytest.mark.asyncio
    async def test_commit_persists_and_touches(self, mock_ops):
        repo_ops, commit_ops = self._seed(mock_ops)

        record = await self.service.commit_to_repository(
            self.db, self.repo.id, 1, {"LICENSE": "MIT\n"}, self.author_id, "Add license"
        )

        assert record.revision == 2
        commit_ops.create.assert_awaited_once_with(self.db, record)
        repo_ops.touch.assert_awaited_once_with(self.db, self.repo, record.created_at)
        self.db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_is_loaded_once(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)

        await self.service.commit_to_repository(
            self.db, self.repo.id, 1, {"a": "1"}, self.author_id, "one"
        )
        await self.service.commit_to_repository(
            self.db, self.repo.id, 2, {"b": "2"}, self.author_id, "two"
        )
        commit_ops.get_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_persistence_failure_evicts_store(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        commit_ops.create = AsyncMock(side_effect=RuntimeError("connection lost"))

        with pytest.raises(RuntimeError, match="connection lost"):
            await self.service.commit_to_repository(
                self.db, self.repo.id, 1, {"a": "1"}, self.author_id, "msg"
            )

        self.db.rollback.assert_awaited_once()
        await self.service.get_store(self.db, self.repo.id)
        assert commit_ops.get_all.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_commits_on_same_base(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        rows = commit_ops.rows

        async def slow_create(db, record):
            await asyncio.sleep(0.01)
            rows.append(_row_for(record))

        commit_ops.create = AsyncMock(side_effect=slow_create)
        # Load the store first so both commits share it
        await self.service.get_store(self.db, self.repo.id)

        results = await asyncio.gather(
            self.service.commit_to_repository(
                self.db, self.repo.id, 1, {"a": "1"}, self.author_id, "a"
            ),
            self.service.commit_to_repository(
                self.db, self.repo.id, 1, {"b": "2"}, self.author_id, "b"
            ),
            return_exceptions=True,
        )

        assert sum(isinstance(r, CommitRecord) for r in results) == 1
        assert sum(isinstance(r, StaleRevision) for r in results) == 1
        assert commit_ops.create.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_eviction_during_commit_keeps_commits_serialized(self, mock_ops):
        repo_ops, commit_ops = self._seed(mock_ops)
        service = HistoryService(cache_size=1)
        other_repo = make_mock_repository()
        repo_ops.get = AsyncMock(
            side_effect=lambda db, repository_id: (
                self.repo if repository_id == self.repo.id else other_repo
            )
        )
        rows = commit_ops.rows
        persisting = asyncio.Event()
        release = asyncio.Event()

        async def slow_create(db, record):
            persisting.set()
            await release.wait()
            rows.append(_row_for(record))

        commit_ops.create = AsyncMock(side_effect=slow_create)

        first = asyncio.create_task(
            service.commit_to_repository(self.db, self.repo.id, 1, {"a": "1"}, self.author_id, "a")
        )
        await persisting.wait()

        # Loading another repository pushes this one out of the one-slot cache
        rows.append(_initial_row(other_repo.id, self.author_id))
        await service.get_store(self.db, other_repo.id)
        assert self.repo.id not in service._stores

        second = asyncio.create_task(
            service.commit_to_repository(self.db, self.repo.id, 1, {"b": "2"}, self.author_id, "b")
        )
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(first, second, return_exceptions=True)

        created = [call.args[1].revision for call in commit_ops.create.await_args_list]
        assert created == [2]
        assert isinstance(results[0], CommitRecord)
        assert isinstance(results[1], StaleRevision)
        assert results[1].head == 2

    @pytest.mark.asyncio
    async def test_commit_reloads_when_database_moved_ahead(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        await self.service.get_store(self.db, self.repo.id)
        # Another worker commits revision 2
        commit_ops.rows.append(
            make_mock_commit(
                repository_id=self.repo.id,
                revision=2,
                author_id=self.author_id,
                snapshot=Snapshot({"README.md": "# Hello\n", "a": "1"}).to_json(),
                created_at=datetime(2024, 1, 2, tzinfo=UTC),
            )
        )

        with pytest.raises(StaleRevision) as exc_info:
            await self.service.commit_to_repository(
                self.db, self.repo.id, 1, {"b": "2"}, self.author_id, "b"
            )
        assert exc_info.value.head == 2

        record = await self.service.commit_to_repository(
            self.db, self.repo.id, 2, {"b": "2"}, self.author_id, "b"
        )
        assert record.revision == 3
        commit_ops.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_revision_maps_to_stale(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        rows = commit_ops.rows

        async def lose_race(db, record):
            # Another process wrote the same revision after our head check
            rows.append(_row_for(record))
            raise IntegrityError("INSERT INTO commits", {}, Exception("duplicate key"))

        commit_ops.create = AsyncMock(side_effect=lose_race)

        with pytest.raises(StaleRevision) as exc_info:
            await self.service.commit_to_repository(
                self.db, self.repo.id, 1, {"a": "1"}, self.author_id, "a"
            )

        assert exc_info.value.head == 2
        self.db.rollback.assert_awaited_once()
        assert self.repo.id not in self.service._stores

    @pytest.mark.asyncio
    async def test_other_integrity_errors_propagate(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        commit_ops.create = AsyncMock(
            side_effect=IntegrityError("INSERT INTO commits", {}, Exception("fk violation"))
        )

        with pytest.raises(IntegrityError):
            await self.service.commit_to_repository(
                self.db, self.repo.id, 1, {"a": "1"}, self.author_id, "a"
            )
        self.db.rollback.assert_awaited_once()


class TestReads:
    """Tests for history reads."""

    def setup_method(self):
        self.service = HistoryService(page_size=2)
        self.db = AsyncMock()
        self.author_id = uuid.uuid4()
        self.repo = make_mock_repository()

    def _seed(self, mock_ops):
        repo_ops, commit_ops = mock_ops
        repo_ops.get = AsyncMock(return_value=self.repo)
        commit_ops.rows.append(_initial_row(self.repo.id, self.author_id))
        return repo_ops, commit_ops

    def _add_revision_two(self, commit_ops):
        commit_ops.rows.append(
            make_mock_commit(
                repository_id=self.repo.id,
                revision=2,
                author_id=self.author_id,
                snapshot=Snapshot({"README.md": "# Hello\nWorld\n"}).to_json(),
                created_at=datetime(2024, 1, 2, tzinfo=UTC),
            )
        )

    @pytest.mark.asyncio
    async def test_list_history_uses_database_when_not_cached(self, mock_ops):
        repo_ops, commit_ops = mock_ops
        repo_ops.get = AsyncMock(return_value=self.repo)
        page = [
            CommitInfo(self.repo.id, 1, self.author_id, "Initial commit", datetime.now(UTC), 1)
        ]
        commit_ops.get_history_page = AsyncMock(return_value=page)

        result = await self.service.list_history(self.db, self.repo.id, page=3)

        assert result == page
        commit_ops.get_history_page.assert_awaited_once_with(
            self.db, self.repo.id, skip=4, limit=2
        )

    @pytest.mark.asyncio
    async def test_list_history_uses_cached_store(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        await self.service.get_store(self.db, self.repo.id)

        result = await self.service.list_history(self.db, self.repo.id)

        assert [c.revision for c in result] == [1]
        commit_ops.get_history_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_history_skips_stale_cache(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        await self.service.get_store(self.db, self.repo.id)
        self._add_revision_two(commit_ops)

        await self.service.list_history(self.db, self.repo.id)

        commit_ops.get_history_page.assert_awaited_once()
        assert self.repo.id not in self.service._stores

    @pytest.mark.asyncio
    async def test_empty_history_is_not_cached(self, mock_ops):
        repo_ops, commit_ops = mock_ops
        repo_ops.get = AsyncMock(return_value=self.repo)

        await self.service.get_store(self.db, self.repo.id)
        await self.service.get_store(self.db, self.repo.id)
        assert commit_ops.get_all.await_count == 2

    @pytest.mark.asyncio
    async def test_get_diff_from_zero(self, mock_ops):
        self._seed(mock_ops)

        diff = await self.service.get_diff(self.db, self.repo.id, 0, 1)
        assert [c.path for c in diff.changed] == ["README.md"]

    @pytest.mark.asyncio
    async def test_revision_past_cached_head_reloads(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        await self.service.get_store(self.db, self.repo.id)
        self._add_revision_two(commit_ops)

        snapshot = await self.service.get_snapshot(self.db, self.repo.id, 2)
        assert snapshot.get("README.md") == "# Hello\nWorld\n"

        diff = await self.service.get_diff(self.db, self.repo.id, 1, 2)
        assert [c.path for c in diff.changed] == ["README.md"]
        assert commit_ops.get_all.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_revision_after_reload(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)

        with pytest.raises(RevisionNotFound) as exc_info:
            await self.service.get_commit(self.db, self.repo.id, 5)
        assert exc_info.value.head == 1

    @pytest.mark.asyncio
    async def test_head_follows_database(self, mock_ops):
        _, commit_ops = self._seed(mock_ops)
        assert (await self.service.head(self.db, self.repo.id)).revision == 1

        self._add_revision_two(commit_ops)
        assert (await self.service.head(self.db, self.repo.id)).revision == 2
