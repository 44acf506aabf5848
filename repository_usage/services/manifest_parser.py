"""Parser for repo-tool XML manifests.

Understands the ``<remote>``, ``<default>`` and ``<project>`` children of a
root ``<manifest>`` element. Besides the standard ``revision`` attribute the
non-standard ``branch``, ``tag`` and ``commit-id`` attributes are accepted as
revision fallbacks, in that order.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_ROOT_TAG = "manifest"
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class Project:
    """A ``<project>`` entry; the manifest default has ``name=None``."""

    remote: str | None
    name: str | None
    revision: str | None


def pick_revision(
    revision: str | None,
    branch: str | None,
    tag: str | None,
    commit_id: str | None,
) -> str | None:
    """Return the first of the revision attributes that is present."""
    for candidate in (revision, branch, tag, commit_id):
        if candidate is not None:
            return candidate
    return None


def _revision_of(attrib: dict[str, str]) -> str | None:
    return pick_revision(
        attrib.get("revision"),
        attrib.get("branch"),
        attrib.get("tag"),
        attrib.get("commit-id"),
    )


@dataclass
class ManifestParser:
    """Accumulates manifest elements and resolves them to destinations.

    A parser instance holds state for a single document; create a new one
    per manifest.
    """

    remotes: dict[str, str | None] = field(default_factory=dict)
    default: Project = field(default_factory=lambda: Project(None, None, None))
    projects: list[Project] = field(default_factory=list)

    def add_remote(self, name: str | None, fetch: str | None) -> None:
        if name is None:
            return
        self.remotes.setdefault(name, fetch)

    def add_default(self, remote: str | None, revision: str | None) -> None:
        self.default = Project(remote, None, revision)

    def add_project(self, remote: str | None, name: str | None, revision: str | None) -> None:
        if name is None:
            logger.warning("Project name not specified in manifest")
            return
        self.projects.append(Project(remote, name, revision))

    def feed(self, contents: bytes) -> None:
        """Stream the document into the accumulator.

        Malformed XML is logged; whatever was read before the error is kept.
        """
        parser = ET.XMLPullParser(events=("start", "end"))
        depth = 0
        root_tag: str | None = None
        try:
            for offset in range(0, len(contents), _CHUNK_SIZE):
                parser.feed(contents[offset : offset + _CHUNK_SIZE])
                for event, element in parser.read_events():
                    if event == "end":
                        depth -= 1
                        element.clear()
                        continue
                    if depth == 0:
                        root_tag = element.tag
                    elif depth == 1 and root_tag == _ROOT_TAG:
                        self._handle(element.tag, element.attrib)
                    depth += 1
            parser.close()
        except ET.ParseError as exc:
            logger.warning("Unable to parse manifest: %s", exc)

    def _handle(self, tag: str, attrib: dict[str, str]) -> None:
        if tag == "remote":
            self.add_remote(attrib.get("name"), attrib.get("fetch"))
        elif tag == "default":
            self.add_default(attrib.get("remote"), _revision_of(attrib))
        elif tag == "project":
            self.add_project(attrib.get("remote"), attrib.get("name"), _revision_of(attrib))

    def resolve(self) -> dict[str, str]:
        """Map each project's fetch URI to its revision.

        When two projects resolve to the same URI the first one wins.
        """
        resolved: dict[str, str] = {}
        for project in self.projects:
            uri: str | None = None
            if project.remote is not None:
                uri = self.remotes.get(project.remote)
            if uri is None and self.default.remote is not None:
                uri = self.remotes.get(self.default.remote)
            if uri is None and project.remote is not None:
                uri = project.remote
            if uri is not None:
                uri = f"{uri}/{project.name}"

            revision = project.revision if project.revision is not None else self.default.revision

            if uri is not None and revision is not None:
                resolved.setdefault(uri, revision)
            else:
                logger.warning("Invalid project description in manifest: %s", project.name)
        return resolved


def parse_manifest(contents: bytes) -> dict[str, str]:
    """Parse a manifest document into ``destination -> revision``."""
    parser = ManifestParser()
    parser.feed(contents)
    return parser.resolve()
