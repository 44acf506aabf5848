"""Ref-update handling: classify an event, extract dependencies, reconcile."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from repository_usage.exceptions import GitError
from repository_usage.models.ref import RefStatus
from repository_usage.services.git_service import R_HEADS, R_TAGS, ZERO_ID
from repository_usage.services.manifest_service import ManifestExtractor
from repository_usage.services.submodule_service import SubmoduleExtractor, is_submodule_update
from repository_usage.services.url_normalizer import UrlNormalizer, parse_server_host

if TYPE_CHECKING:
    from repository_usage.config import Settings
    from repository_usage.services.git_service import RepositoryManager
    from repository_usage.services.ref_service import RefService
    from repository_usage.services.usage_service import UsageService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefUpdate:
    """A ref moving from ``old_object_id`` to ``new_object_id``.

    The all-zero id marks a ref that did not exist before (create) or no
    longer exists after (delete).
    """

    project_name: str
    ref_name: str
    old_object_id: str
    new_object_id: str
    is_create: bool = field(init=False)
    is_delete: bool = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "is_create", self.old_object_id == ZERO_ID)
        object.__setattr__(self, "is_delete", self.new_object_id == ZERO_ID)


class RefUpdateHandler:
    """Applies ref updates to the RefStatus and RepoUsage tables.

    One handler is shared by all events; it keeps no per-event state, so it
    is safe to reuse as long as events are processed one at a time.
    """

    def __init__(
        self,
        settings: Settings,
        repo_manager: RepositoryManager,
        ref_service: RefService,
        usage_service: UsageService,
    ) -> None:
        self.refresh_all_submodules = settings.refresh_all_submodules
        self.parse_manifests = settings.parse_manifests
        self.repo_manager = repo_manager
        self.ref_service = ref_service
        self.usage_service = usage_service
        self.normalizer = UrlNormalizer(parse_server_host(settings.canonical_web_url))
        self.submodules = SubmoduleExtractor(self.normalizer)
        self.manifests = ManifestExtractor(self.normalizer, settings.large_blob_threshold)

    async def handle(self, event: RefUpdate) -> None:
        ref_name = event.ref_name
        project = self.normalizer.canonical_project(event.project_name)
        is_head = ref_name.startswith(R_HEADS)
        is_tag = ref_name.startswith(R_TAGS)

        # Every tag event lands here, so tag updates are delete-then-insert.
        if (event.is_delete and is_head) or is_tag:
            existing = await self.ref_service.fetch_by_ref(project, ref_name)
            if existing is not None:
                await self.ref_service.delete(existing)
            if is_head:
                await self.usage_service.delete_by_branch(project, ref_name)

        if event.is_delete:
            return
        if is_tag:
            await self.ref_service.save(
                RefStatus(project=project, ref=ref_name, commit=event.new_object_id)
            )
        elif is_head:
            await self.ref_service.save(
                RefStatus(project=project, ref=ref_name, commit=event.new_object_id)
            )
            try:
                await self._update_dependencies(event)
            except GitError as exc:
                logger.error(
                    "Unable to process %s branch %s: %s", event.project_name, ref_name, exc
                )

    async def _update_dependencies(self, event: RefUpdate) -> None:
        repo = await asyncio.to_thread(self.repo_manager.open_repository, event.project_name)
        new_commit = await asyncio.to_thread(repo.resolve_commit, event.new_object_id)

        run_submodules = self.refresh_all_submodules or event.is_create
        if not run_submodules:
            old_commit = await asyncio.to_thread(repo.resolve_commit, event.old_object_id)
            run_submodules = await asyncio.to_thread(
                is_submodule_update, repo, old_commit, new_commit
            )
        if run_submodules:
            source, submodules = await asyncio.to_thread(
                self.submodules.extract, repo, new_commit, event.project_name, event.ref_name
            )
            await self.update_projects(source, event.ref_name, submodules)

        if self.parse_manifests:
            manifests = await asyncio.to_thread(
                self.manifests.extract, repo, new_commit, event.project_name, event.ref_name
            )
            for source, projects in manifests:
                await self.update_projects(source, event.ref_name, projects)

    async def update_projects(self, source: str, branch: str, projects: dict[str, str]) -> None:
        """Reconcile the extracted map for ``source`` into RepoUsage."""
        await self.usage_service.reconcile(
            self.normalizer.canonical_project(source), branch, projects
        )


@dataclass(frozen=True)
class RefUpdateTask:
    """Queue entry that runs one event through the handler."""

    handler: RefUpdateHandler
    event: RefUpdate

    async def run(self) -> None:
        await self.handler.handle(self.event)

    def __str__(self) -> str:
        return (
            f"(repository-usage) {self.event.project_name} {self.event.ref_name} "
            f"{self.event.old_object_id[:7]}..{self.event.new_object_id[:7]}"
        )
