"""Tests for effective-view resolution."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from repoplane.auth.context import AccessContext
from repoplane.core.errors import AccessDeniedError, ErrorCode, InvalidArgumentError, NotFoundError
from repoplane.plane import RepoPlane
from repoplane.store.indexes import drop_additional_indexes
from repoplane.store.models import StagedChange, StagedOperation


def _paths(
    plane: RepoPlane, ctx: AccessContext, repo_id: str, prefix: str | None = None
) -> list[str]:
    return [e.path for e in plane.list_effective_tree(ctx, repo_id, prefix)]


def _insert_row(plane: RepoPlane, seeded, **fields) -> str:
    """Write a staging row directly, bypassing the handlers."""
    with plane.db.session() as session:
        row = StagedChange(repo_id=seeded.repo_id, project_id=seeded.project_id, **fields)
        session.add(row)
        session.commit()
        return row.id


class TestGetEffectiveFile:
    """Single-file overlay tests."""

    def test_committed_file_verbatim(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        """With nothing staged the committed row is returned as-is."""
        fid = commit_file(seeded.repo_id, "src/a.ts", "A", sha="abc123")

        f = plane.get_effective_file(seeded.viewer, fid)

        assert (f.id, f.path, f.content, f.source) == (fid, "src/a.ts", "A", "committed")
        assert f.last_commit_sha == "abc123"
        assert f.is_binary is False

    def test_staged_edit_substitutes_content(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        fid = commit_file(seeded.repo_id, "src/a.ts", "A")
        plane.edit_file(seeded.editor, fid, "B")

        f = plane.get_effective_file(seeded.viewer, fid)

        assert (f.path, f.content, f.source) == ("src/a.ts", "B", "staged")

    def test_staged_delete_masks_file(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        fid = commit_file(seeded.repo_id, "src/a.ts", "A")
        plane.delete_file(seeded.editor, fid)

        with pytest.raises(NotFoundError) as exc_info:
            plane.get_effective_file(seeded.viewer, fid)
        assert exc_info.value.code == ErrorCode.FILE_NOT_FOUND

    def test_staged_add_readable_by_its_id(self, plane: RepoPlane, seeded) -> None:
        info = plane.create_file(seeded.editor, seeded.repo_id, "src/new.ts", "hi")

        f = plane.get_effective_file(seeded.viewer, info.id)

        assert (f.id, f.path, f.content, f.source) == (info.id, "src/new.ts", "hi", "staged")
        assert f.last_commit_sha is None

    def test_binary_flag_propagates(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        fid = commit_file(seeded.repo_id, "img.png", "aGVsbG8=", is_binary=True)
        plane.rename_file(seeded.editor, fid, "assets/img.png")

        f = plane.get_effective_file(seeded.viewer, fid)
        entry = plane.list_effective_tree(seeded.viewer, seeded.repo_id)[0]

        assert f.is_binary is True
        assert f.content == "aGVsbG8="
        assert entry.is_binary is True

    def test_resolution_is_idempotent(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        """Two reads with no mutation in between are identical."""
        fid = commit_file(seeded.repo_id, "src/a.ts", "A")
        plane.edit_file(seeded.editor, fid, "B")
        plane.rename_file(seeded.editor, fid, "src/b.ts")

        assert plane.get_effective_file(seeded.viewer, fid) == plane.get_effective_file(
            seeded.viewer, fid
        )

    def test_unknown_id_not_found(self, plane: RepoPlane, seeded) -> None:
        with pytest.raises(NotFoundError):
            plane.get_effective_file(seeded.viewer, "0" * 32)

    def test_file_of_other_project_not_found(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        """A file id never resolves through another project's context."""
        fid = commit_file(seeded.repo_id, "secret.txt", "s")
        other, _ = plane.create_project("bob", "Other")
        bob = AccessContext(project_id=other.id, identity="bob")

        with pytest.raises(NotFoundError):
            plane.get_effective_file(bob, fid)

    def test_denied_before_lookup(self, plane: RepoPlane, seeded) -> None:
        """Unauthorized callers get AccessDenied even for unknown ids."""
        with pytest.raises(AccessDeniedError):
            plane.get_effective_file(AccessContext(project_id=seeded.project_id), "missing")


class TestEffectiveTree:
    """Tree listing tests."""

    def test_merges_committed_and_staged(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        # Given
        a = commit_file(seeded.repo_id, "src/a.ts", "A")
        b = commit_file(seeded.repo_id, "src/b.ts", "B")
        commit_file(seeded.repo_id, "README.md", "R")
        plane.rename_file(seeded.editor, a, "lib/a.ts")
        plane.delete_file(seeded.editor, b)
        added = plane.create_file(seeded.editor, seeded.repo_id, "src/c.ts", "C")

        # When
        entries = plane.list_effective_tree(seeded.viewer, seeded.repo_id)

        # Then
        assert [e.path for e in entries] == ["README.md", "lib/a.ts", "src/c.ts"]
        by_path = {e.path: e for e in entries}
        assert by_path["README.md"].source == "committed"
        assert by_path["README.md"].operation is None
        assert by_path["lib/a.ts"].content_ref == a
        assert by_path["lib/a.ts"].operation is StagedOperation.RENAME
        assert by_path["src/c.ts"].content_ref == added.id
        assert by_path["src/c.ts"].operation is StagedOperation.ADD

    def test_content_refs_resolve(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        """Every tree entry's content_ref is readable and agrees on path."""
        fid = commit_file(seeded.repo_id, "a.txt", "A")
        plane.edit_file(seeded.editor, fid, "A2")
        plane.create_file(seeded.editor, seeded.repo_id, "b.txt", "B")

        for entry in plane.list_effective_tree(seeded.viewer, seeded.repo_id):
            f = plane.get_effective_file(seeded.viewer, entry.content_ref)
            assert f.path == entry.path

    def test_prefix_respects_segments(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        commit_file(seeded.repo_id, "src/a.ts")
        commit_file(seeded.repo_id, "src2/b.ts")
        commit_file(seeded.repo_id, "src")

        assert _paths(plane, seeded.viewer, seeded.repo_id, "src") == ["src", "src/a.ts"]

    def test_prefix_applies_to_effective_path(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        fid = commit_file(seeded.repo_id, "old/a.ts")
        plane.rename_file(seeded.editor, fid, "new/a.ts")

        assert _paths(plane, seeded.viewer, seeded.repo_id, "old") == []
        assert _paths(plane, seeded.viewer, seeded.repo_id, "new") == ["new/a.ts"]

    def test_invalid_prefix_rejected(self, plane: RepoPlane, seeded) -> None:
        with pytest.raises(InvalidArgumentError):
            plane.list_effective_tree(seeded.viewer, seeded.repo_id, "/abs")

    def test_unknown_repository(self, plane: RepoPlane, seeded) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            plane.list_effective_tree(seeded.viewer, "missing")
        assert exc_info.value.code == ErrorCode.REPOSITORY_NOT_FOUND

    def test_deleted_path_never_listed(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        fid = commit_file(seeded.repo_id, "src/a.ts", "A")
        plane.edit_file(seeded.editor, fid, "B")
        plane.rename_file(seeded.editor, fid, "src/b.ts")
        plane.delete_file(seeded.editor, fid)

        assert _paths(plane, seeded.viewer, seeded.repo_id) == []


class TestLastWriteWins:
    """Duplicate staging rows, as left behind by a race without the unique index."""

    @pytest.fixture(autouse=True)
    def _no_unique_index(self, plane: RepoPlane) -> None:
        drop_additional_indexes(plane.db.engine)

    def test_newest_row_wins_for_file(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        # Given
        fid = commit_file(seeded.repo_id, "a.txt", "A")
        _insert_row(
            plane, seeded, file_path="a.txt", operation="edit",
            old_content="A", new_content="older", created_at=100.0, updated_at=100.0,
        )
        _insert_row(
            plane, seeded, file_path="a.txt", operation="edit",
            old_content="A", new_content="newer", created_at=200.0, updated_at=200.0,
        )

        # When
        f = plane.get_effective_file(seeded.viewer, fid)
        entries = plane.list_effective_tree(seeded.viewer, seeded.repo_id)

        # Then
        assert f.content == "newer"
        assert [(e.path, e.content_ref) for e in entries] == [("a.txt", fid)]

    def test_newer_delete_masks_older_edit(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        fid = commit_file(seeded.repo_id, "a.txt", "A")
        _insert_row(
            plane, seeded, file_path="a.txt", operation="edit",
            new_content="B", created_at=100.0, updated_at=100.0,
        )
        _insert_row(
            plane, seeded, file_path="a.txt", operation="delete",
            created_at=200.0, updated_at=200.0,
        )

        with pytest.raises(NotFoundError):
            plane.get_effective_file(seeded.viewer, fid)
        assert _paths(plane, seeded.viewer, seeded.repo_id) == []

    def test_tree_collision_prefers_newest_row(
        self, plane: RepoPlane, seeded, commit_file: Callable[..., str]
    ) -> None:
        """A rename and an add landing on one path list once, newest first."""
        commit_file(seeded.repo_id, "a.txt", "A")
        _insert_row(
            plane, seeded, file_path="b.txt", old_path="a.txt", operation="rename",
            old_content="A", new_content="A", created_at=100.0, updated_at=100.0,
        )
        added = _insert_row(
            plane, seeded, file_path="b.txt", operation="add",
            new_content="fresh", created_at=200.0, updated_at=200.0,
        )

        entries = plane.list_effective_tree(seeded.viewer, seeded.repo_id)

        assert [(e.path, e.content_ref) for e in entries] == [("b.txt", added)]
