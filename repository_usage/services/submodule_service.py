"""Submodule dependency extraction from gitlinks and ``.gitmodules``."""

from __future__ import annotations

import configparser
import logging
import re
from typing import TYPE_CHECKING

from repository_usage.services.git_service import DOT_GIT_MODULES, GITLINK_MODE

if TYPE_CHECKING:
    from repository_usage.services.git_service import GitRepository
    from repository_usage.services.url_normalizer import UrlNormalizer

logger = logging.getLogger(__name__)

_UTF8_BOM = b"\xef\xbb\xbf"
_SUBMODULE_SECTION_RE = re.compile(r'^submodule\s+"(?P<name>.*)"$')


def decode_modules_blob(contents: bytes) -> str:
    """Decode ``.gitmodules`` bytes, dropping a leading UTF-8 BOM."""
    return contents.removeprefix(_UTF8_BOM).decode("utf-8", errors="replace")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def parse_modules_config(text: str) -> dict[str, dict[str, str]]:
    """Parse git-config text into ``{submodule name: {key: value}}``.

    Only ``[submodule "name"]`` sections are kept. Raises
    ``configparser.Error`` on malformed input.
    """
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        allow_no_value=True,
        delimiters=("=",),
        comment_prefixes=("#", ";"),
        inline_comment_prefixes=None,
    )
    # Git has no indentation-based continuation lines.
    text = "\n".join(line.lstrip() for line in text.splitlines())
    parser.read_string(text, source=DOT_GIT_MODULES)
    modules: dict[str, dict[str, str]] = {}
    for section in parser.sections():
        match = _SUBMODULE_SECTION_RE.match(section.strip())
        if match is None:
            continue
        values = {
            key: _unquote(value)
            for key, value in parser.items(section)
            if value is not None
        }
        modules.setdefault(match.group("name"), {}).update(values)
    return modules


def url_for_path(modules: dict[str, dict[str, str]], path: str) -> str | None:
    """URL of the submodule section whose ``path`` equals ``path``."""
    for values in modules.values():
        if values.get("path") == path:
            return values.get("url")
    return None


def is_submodule_update(
    repo: GitRepository, old_commit: str | None, new_commit: str
) -> bool:
    """True when the diff between the two commits touches a gitlink."""
    for entry in repo.diff_trees(old_commit, new_commit):
        if GITLINK_MODE in (entry.old_mode, entry.new_mode):
            return True
    return False


class SubmoduleExtractor:
    """Builds the ``destination -> sha`` map of a commit's submodules."""

    def __init__(self, normalizer: UrlNormalizer) -> None:
        self.normalizer = normalizer

    def load_modules_config(
        self, repo: GitRepository, commit: str, project: str, branch: str
    ) -> dict[str, dict[str, str]] | None:
        """Read and parse the root ``.gitmodules`` independently of the walker.

        Returns None when there is no such file or it cannot be parsed.
        """
        blob = next(
            (
                entry
                for entry in repo.list_tree(commit)
                if entry.path == DOT_GIT_MODULES and entry.type == "blob"
            ),
            None,
        )
        if blob is None:
            return None
        text = decode_modules_blob(repo.read_blob(blob.object_id))
        try:
            return parse_modules_config(text)
        except configparser.Error as exc:
            logger.warning(
                "Invalid .gitmodules configuration while parsing %s branch %s: %s",
                project,
                branch,
                exc,
            )
            return None

    def extract(
        self, repo: GitRepository, commit: str, project: str, branch: str
    ) -> tuple[str, dict[str, str]]:
        """Return ``(project, {normalized url: gitlink sha})`` for ``commit``."""
        modules_config = self.load_modules_config(repo, commit, project, branch)
        submodules: dict[str, str] = {}
        for entry in repo.submodules(commit):
            url = entry.modules_url
            if url is None and modules_config is not None:
                url = url_for_path(modules_config, entry.path)
            if url is None:
                logger.warning(
                    "invalid .gitmodules in %s %s configuration: missing url for %s",
                    project,
                    branch,
                    entry.path,
                )
                continue
            submodules[self.normalizer.normalize(project, url, is_manifest=False)] = (
                entry.object_id
            )
        return project, submodules
