"""Git service: read-only repository access via the git CLI."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

from repository_usage.exceptions import GitObjectError, RepositoryNotFoundError

logger = logging.getLogger(__name__)

ZERO_ID = "0" * 40
EMPTY_TREE_ID = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
GITLINK_MODE = "160000"
R_HEADS = "refs/heads/"
R_TAGS = "refs/tags/"
DOT_GIT_MODULES = ".gitmodules"

_GIT_TIMEOUT_SECONDS = 60
_OBJECT_ID_RE = re.compile(r"^[0-9a-f]{4,40}$")
_REF_NAME_RE = re.compile(r"^refs/[^\s\x00]+$")


@dataclass(frozen=True)
class TreeEntry:
    mode: str
    type: str
    object_id: str
    path: str


@dataclass(frozen=True)
class DiffEntry:
    old_mode: str
    new_mode: str
    status: str
    old_path: str
    new_path: str


@dataclass(frozen=True)
class SubmoduleEntry:
    """A gitlink in a tree and the URL the walker found for it, if any."""

    path: str
    object_id: str
    modules_url: str | None


@dataclass(frozen=True)
class Branch:
    ref: str
    object_id: str


class GitRepository:
    """Wraps read-only git CLI operations on one repository."""

    def __init__(self, git_dir: Path) -> None:
        self.git_dir = git_dir

    def _run(
        self,
        *args: str,
        check: bool = False,
        input_text: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command against the repository."""
        return subprocess.run(
            ["git", f"--git-dir={self.git_dir}", *args],
            check=check,
            capture_output=True,
            text=True,
            input=input_text,
            timeout=_GIT_TIMEOUT_SECONDS,
        )

    def _run_bytes(self, *args: str) -> bytes:
        result = subprocess.run(
            ["git", f"--git-dir={self.git_dir}", *args],
            check=False,
            capture_output=True,
            timeout=_GIT_TIMEOUT_SECONDS,
        )
        if result.returncode != 0:
            raise GitObjectError(
                f"git {' '.join(args)} failed in {self.git_dir}: "
                f"{result.stderr.decode(errors='replace').strip()}"
            )
        return result.stdout

    def resolve_commit(self, object_id: str) -> str:
        """Return the full id of the commit named by ``object_id``.

        Raises GitObjectError if it is not a commit in this repository.
        """
        if not _OBJECT_ID_RE.match(object_id):
            raise GitObjectError(f"Invalid object id {object_id!r}")
        result = self._run("rev-parse", "--verify", "--quiet", f"{object_id}^{{commit}}", check=False)
        if result.returncode != 0:
            raise GitObjectError(f"Unknown commit {object_id} in {self.git_dir}")
        return result.stdout.strip()

    def list_tree(self, commit: str, recursive: bool = False) -> list[TreeEntry]:
        """List the entries of a commit's tree (root level unless recursive)."""
        args = ["ls-tree", "-z"]
        if recursive:
            args.append("-r")
        output = self._run_bytes(*args, commit).decode("utf-8", errors="surrogateescape")
        entries: list[TreeEntry] = []
        for record in output.split("\0"):
            if not record:
                continue
            meta, _, path = record.partition("\t")
            mode, obj_type, object_id = meta.split(" ")
            entries.append(TreeEntry(mode, obj_type, object_id, path))
        return entries

    def diff_trees(self, old_commit: str | None, new_commit: str) -> list[DiffEntry]:
        """Recursive diff with rename detection between two commits' trees.

        A missing ``old_commit`` diffs against the empty tree.
        """
        old_tree = EMPTY_TREE_ID if old_commit is None else f"{old_commit}^{{tree}}"
        output = self._run_bytes(
            "diff-tree", "-r", "-z", "-M", "--raw", old_tree, f"{new_commit}^{{tree}}"
        ).decode("utf-8", errors="surrogateescape")
        fields = output.split("\0")
        entries: list[DiffEntry] = []
        i = 0
        while i < len(fields):
            meta = fields[i]
            if not meta.startswith(":"):
                i += 1
                continue
            old_mode, new_mode, _old_id, _new_id, status = meta[1:].split(" ")
            old_path = fields[i + 1]
            if status[0] in ("R", "C"):
                new_path = fields[i + 2]
                i += 3
            else:
                new_path = old_path
                i += 2
            entries.append(DiffEntry(old_mode, new_mode, status, old_path, new_path))
        return entries

    def blob_size(self, object_id: str) -> int:
        return int(self._run_bytes("cat-file", "-s", object_id).strip())

    def read_blob(self, object_id: str) -> bytes:
        return self._run_bytes("cat-file", "blob", object_id)

    def submodules(self, commit: str) -> list[SubmoduleEntry]:
        """Walk every gitlink in the commit's tree.

        URLs are looked up in ``.gitmodules`` by submodule name equal to the
        gitlink path, which is what git itself writes by default. Entries
        whose name differs from their path come back with no URL.
        """
        urls = self._modules_urls(commit)
        return [
            SubmoduleEntry(entry.path, entry.object_id, urls.get(entry.path))
            for entry in self.list_tree(commit, recursive=True)
            if entry.mode == GITLINK_MODE
        ]

    def _modules_urls(self, commit: str) -> dict[str, str]:
        result = self._run(
            "config",
            "--blob",
            f"{commit}:{DOT_GIT_MODULES}",
            "--null",
            "--get-regexp",
            r"^submodule\..*\.url$",
            check=False,
        )
        if result.returncode != 0:
            return {}
        urls: dict[str, str] = {}
        for record in result.stdout.split("\0"):
            if not record:
                continue
            key, _, value = record.partition("\n")
            name = key.removeprefix("submodule.").removesuffix(".url")
            urls.setdefault(name, value)
        return urls

    def branches(self) -> list[Branch]:
        """Return every head ref with the commit it points to."""
        result = self._run(
            "for-each-ref", "--format=%(refname)%00%(objectname)", R_HEADS, check=False
        )
        if result.returncode != 0:
            raise GitObjectError(
                f"Unable to list branches in {self.git_dir}: {result.stderr.strip()}"
            )
        branches: list[Branch] = []
        for line in result.stdout.splitlines():
            ref, _, object_id = line.partition("\0")
            if _REF_NAME_RE.match(ref):
                branches.append(Branch(ref, object_id))
        return branches


class RepositoryManager:
    """Locates project repositories below a base directory.

    A project ``platform/build`` lives at ``<base>/platform/build.git`` or,
    for non-bare checkouts, ``<base>/platform/build/.git``.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir

    def open_repository(self, project: str) -> GitRepository:
        if not project or project.startswith("/") or ".." in project.split("/"):
            raise RepositoryNotFoundError(f"Invalid project name {project!r}")
        for candidate in (
            self.base_dir / f"{project}.git",
            self.base_dir / project / ".git",
            self.base_dir / project,
        ):
            if (candidate / "HEAD").is_file() and (candidate / "objects").is_dir():
                return GitRepository(candidate)
        raise RepositoryNotFoundError(f"Repository not found: {project}")

    def list_projects(self) -> list[str]:
        """Names of every repository below the base directory, sorted."""
        if not self.base_dir.is_dir():
            logger.warning("Repository directory %s does not exist", self.base_dir)
            return []
        projects: set[str] = set()
        for head in self.base_dir.rglob("HEAD"):
            git_dir = head.parent
            if not (git_dir / "objects").is_dir() or not (git_dir / "refs").is_dir():
                continue
            if git_dir.name == ".git":
                git_dir = git_dir.parent
            relative = git_dir.relative_to(self.base_dir).as_posix()
            if relative == ".":
                continue
            projects.add(relative.removesuffix(".git"))
        return sorted(projects)
