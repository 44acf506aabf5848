"""On-demand rescans: synthesize ref-update events for existing branches."""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from typing import TYPE_CHECKING

from repository_usage.exceptions import GitError
from repository_usage.services.git_service import R_HEADS, ZERO_ID
from repository_usage.services.ref_update_handler import RefUpdate, RefUpdateTask

if TYPE_CHECKING:
    from repository_usage.services.git_service import Branch, RepositoryManager
    from repository_usage.services.ref_update_handler import RefUpdateHandler
    from repository_usage.services.scanning_queue import ScanningQueue

logger = logging.getLogger(__name__)

ALL_WITH_PROJECTS_ERROR = "error: cannot combine --all and PROJECT"

_GLOB_CHARS = frozenset("*?[")


def full_branch_name(branch: str) -> str:
    """Qualify a short branch name with ``refs/heads/``."""
    if branch.startswith(R_HEADS):
        return branch
    return R_HEADS + branch


def select_branches(
    project: str, available: list[Branch], requested: list[str] | None
) -> list[Branch]:
    """Pick the branches to rescan; missing requested branches are logged."""
    if not requested:
        return list(available)
    by_ref = {branch.ref: branch for branch in available}
    selected: list[Branch] = []
    for name in requested:
        ref = full_branch_name(name)
        branch = by_ref.get(ref)
        if branch is None:
            logger.warning("Branch %s not found in project %s; skipping", ref, project)
            continue
        selected.append(branch)
    return selected


def synthetic_create(project: str, branch: Branch) -> RefUpdate:
    """A create event for ``branch`` so its whole tree is rescanned."""
    return RefUpdate(project, branch.ref, ZERO_ID, branch.object_id)


class ScanService:
    """Expands scan requests into ref-update tasks on the shared queue."""

    def __init__(
        self,
        repo_manager: RepositoryManager,
        handler: RefUpdateHandler,
        queue: ScanningQueue,
    ) -> None:
        self.repo_manager = repo_manager
        self.handler = handler
        self.queue = queue

    def resolve_projects(self, all_projects: bool, projects: list[str]) -> list[str]:
        """Turn ``--all`` or project patterns into concrete project names.

        Raises ValueError when ``--all`` is combined with explicit projects.
        """
        if all_projects and projects:
            raise ValueError(ALL_WITH_PROJECTS_ERROR)
        if all_projects:
            return self.repo_manager.list_projects()

        resolved: list[str] = []
        known: list[str] | None = None
        for pattern in projects:
            if _GLOB_CHARS.isdisjoint(pattern):
                resolved.append(pattern)
                continue
            if known is None:
                known = self.repo_manager.list_projects()
            matches = fnmatch.filter(known, pattern)
            if not matches:
                logger.warning("No project matches %s", pattern)
            resolved.extend(matches)
        return list(dict.fromkeys(resolved))

    async def scan(
        self,
        all_projects: bool = False,
        projects: list[str] | None = None,
        branches: list[str] | None = None,
    ) -> list[str]:
        """Queue a synthetic create event per selected branch.

        Returns descriptions of the queued tasks.
        """
        names = await asyncio.to_thread(self.resolve_projects, all_projects, projects or [])
        queued: list[str] = []
        for project in names:
            try:
                available = await asyncio.to_thread(self._branches, project)
            except GitError as exc:
                logger.error("Unable to scan %s: %s", project, exc)
                continue
            for branch in select_branches(project, available, branches):
                task = RefUpdateTask(self.handler, synthetic_create(project, branch))
                if self.queue.submit(task):
                    queued.append(str(task))
        logger.info("Scan queued %d branch(es) across %d project(s)", len(queued), len(names))
        return queued

    def _branches(self, project: str) -> list[Branch]:
        return self.repo_manager.open_repository(project).branches()
