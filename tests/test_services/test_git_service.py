"""Tests for the git CLI facade."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from repository_usage.exceptions import GitObjectError, RepositoryNotFoundError
from repository_usage.services.git_service import (
    GITLINK_MODE,
    Branch,
    RepositoryManager,
)
from tests._git_helpers import GitRepoBuilder, Gitlink, gitmodules

if TYPE_CHECKING:
    from pathlib import Path

SUB_SHA = "deadbeef" * 5


class TestRepositoryManager:
    def test_opens_bare_repository(self, repositories_dir: Path, make_repo) -> None:  # type: ignore[no-untyped-def]
        make_repo("platform/app")
        repo = RepositoryManager(repositories_dir).open_repository("platform/app")
        assert repo.git_dir == repositories_dir / "platform" / "app.git"

    def test_missing_repository(self, repositories_dir: Path) -> None:
        with pytest.raises(RepositoryNotFoundError):
            RepositoryManager(repositories_dir).open_repository("nope")

    @pytest.mark.parametrize("project", ["", "/etc", "../outside", "a/../../b"])
    def test_rejects_escaping_names(self, repositories_dir: Path, project: str) -> None:
        with pytest.raises(RepositoryNotFoundError):
            RepositoryManager(repositories_dir).open_repository(project)

    def test_list_projects(self, repositories_dir: Path, make_repo) -> None:  # type: ignore[no-untyped-def]
        make_repo("b")
        make_repo("a/nested")
        (repositories_dir / "not-a-repo").mkdir()
        assert RepositoryManager(repositories_dir).list_projects() == ["a/nested", "b"]

    def test_list_projects_missing_dir(self, tmp_path: Path) -> None:
        assert RepositoryManager(tmp_path / "missing").list_projects() == []


class TestGitRepository:
    @pytest.fixture
    def builder(self, make_repo) -> GitRepoBuilder:  # type: ignore[no-untyped-def]
        return make_repo("host/proj")

    @pytest.fixture
    def manager(self, repositories_dir: Path) -> RepositoryManager:
        return RepositoryManager(repositories_dir)

    def test_resolve_commit(self, builder: GitRepoBuilder, manager: RepositoryManager) -> None:
        commit = builder.commit({"README": b"hi"})
        repo = manager.open_repository("host/proj")
        assert repo.resolve_commit(commit) == commit
        assert repo.resolve_commit(commit[:10]) == commit

    def test_resolve_unknown_commit(self, builder: GitRepoBuilder, manager: RepositoryManager) -> None:
        builder.commit({"README": b"hi"})
        repo = manager.open_repository("host/proj")
        with pytest.raises(GitObjectError):
            repo.resolve_commit("0123456789" * 4)
        with pytest.raises(GitObjectError):
            repo.resolve_commit("--upload-pack=evil")

    def test_list_tree(self, builder: GitRepoBuilder, manager: RepositoryManager) -> None:
        commit = builder.commit({"README": b"hi", "dir/file.txt": b"x", "lib": Gitlink(SUB_SHA)})
        repo = manager.open_repository("host/proj")

        root = {entry.path: entry for entry in repo.list_tree(commit)}
        assert set(root) == {"README", "dir", "lib"}
        assert root["dir"].type == "tree"
        assert root["lib"].mode == GITLINK_MODE
        assert root["lib"].object_id == SUB_SHA

        recursive = {entry.path for entry in repo.list_tree(commit, recursive=True)}
        assert recursive == {"README", "dir/file.txt", "lib"}

    def test_read_blob_and_size(self, builder: GitRepoBuilder, manager: RepositoryManager) -> None:
        commit = builder.commit({"default.xml": b"<manifest/>"})
        repo = manager.open_repository("host/proj")
        (entry,) = repo.list_tree(commit)
        assert repo.blob_size(entry.object_id) == len(b"<manifest/>")
        assert repo.read_blob(entry.object_id) == b"<manifest/>"

    def test_diff_trees_against_parent(
        self, builder: GitRepoBuilder, manager: RepositoryManager
    ) -> None:
        first = builder.commit({"a.txt": b"a", "lib": Gitlink(SUB_SHA)})
        second = builder.commit({"b.txt": b"a", "lib": Gitlink("c" * 40)}, parent=first)
        repo = manager.open_repository("host/proj")

        entries = repo.diff_trees(first, second)
        renamed = [entry for entry in entries if entry.status.startswith("R")]
        assert [(entry.old_path, entry.new_path) for entry in renamed] == [("a.txt", "b.txt")]
        gitlinks = [entry for entry in entries if entry.new_path == "lib"]
        assert gitlinks[0].old_mode == GITLINK_MODE
        assert gitlinks[0].new_mode == GITLINK_MODE

    def test_diff_trees_from_empty(self, builder: GitRepoBuilder, manager: RepositoryManager) -> None:
        commit = builder.commit({"a.txt": b"a"})
        repo = manager.open_repository("host/proj")
        (entry,) = repo.diff_trees(None, commit)
        assert entry.status == "A"
        assert entry.new_path == "a.txt"

    def test_submodules_use_gitmodules_urls(
        self, builder: GitRepoBuilder, manager: RepositoryManager
    ) -> None:
        commit = builder.commit(
            {
                ".gitmodules": gitmodules(("lib", "lib", "../other"), ("x/deep", "x/deep", "/abs")),
                "lib": Gitlink(SUB_SHA),
                "x/deep": Gitlink("c" * 40),
            }
        )
        repo = manager.open_repository("host/proj")
        walked = {entry.path: entry for entry in repo.submodules(commit)}
        assert walked["lib"].modules_url == "../other"
        assert walked["lib"].object_id == SUB_SHA
        assert walked["x/deep"].modules_url == "/abs"

    def test_submodules_without_gitmodules(
        self, builder: GitRepoBuilder, manager: RepositoryManager
    ) -> None:
        commit = builder.commit({"lib": Gitlink(SUB_SHA)})
        repo = manager.open_repository("host/proj")
        (entry,) = repo.submodules(commit)
        assert entry.modules_url is None

    def test_branches(self, builder: GitRepoBuilder, manager: RepositoryManager) -> None:
        main = builder.commit({"a": b"1"})
        dev = builder.commit({"a": b"2"}, parent=main)
        builder.set_ref("refs/heads/main", main)
        builder.set_ref("refs/heads/dev", dev)
        builder.set_ref("refs/tags/v1", main)

        repo = manager.open_repository("host/proj")
        assert sorted(repo.branches(), key=lambda b: b.ref) == [
            Branch("refs/heads/dev", dev),
            Branch("refs/heads/main", main),
        ]
