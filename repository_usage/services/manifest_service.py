"""Manifest dependency extraction from root-level ``*.xml`` blobs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from repository_usage.services.manifest_parser import parse_manifest

if TYPE_CHECKING:
    from repository_usage.services.git_service import GitRepository
    from repository_usage.services.url_normalizer import UrlNormalizer

logger = logging.getLogger(__name__)


def manifest_source(project: str, path: str) -> str:
    """Virtual source name of a manifest: ``"<project>:<path>"``."""
    return f"{project}:{path}"


class ManifestExtractor:
    """Parses every manifest in the root tree of a commit."""

    def __init__(self, normalizer: UrlNormalizer, large_blob_threshold: int) -> None:
        self.normalizer = normalizer
        self.large_blob_threshold = large_blob_threshold

    def extract(
        self, repo: GitRepository, commit: str, project: str, branch: str
    ) -> list[tuple[str, dict[str, str]]]:
        """Return one ``(source, {destination: revision})`` pair per manifest."""
        results: list[tuple[str, dict[str, str]]] = []
        for entry in repo.list_tree(commit):
            if entry.type != "blob" or not entry.path.endswith(".xml"):
                continue
            if repo.blob_size(entry.object_id) > self.large_blob_threshold:
                logger.warning(
                    "project: %s, branch: %s, file: %s is too large, skipping manifest parse",
                    project,
                    branch,
                    entry.path,
                )
                continue
            source = manifest_source(project, entry.path)
            projects = {
                self.normalizer.normalize(source, destination, is_manifest=True): revision
                for destination, revision in parse_manifest(repo.read_blob(entry.object_id)).items()
            }
            results.append((source, projects))
        return results
