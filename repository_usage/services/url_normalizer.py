"""Canonicalization of repository locations into ``host + path`` keys.

Destinations come from ``.gitmodules`` URLs and manifest remotes and may be
relative (``../lib``), server-absolute (``/platform/lib``), UNC-style
(``//server/share``), scheme-less (``lib``) or fully qualified
(``ssh://host:29418/lib.git``). All of them are folded into the same key
space as the canonical project name so usage rows can be joined on it.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import SplitResult, urlsplit

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[^:]+://")


def _normalize_path(path: str) -> str:
    """Collapse ``.`` and ``..`` segments and repeated slashes.

    As with ``posixpath.normpath``, a ``..`` above the root of an absolute
    path is dropped. An empty path stays empty.
    """
    if not path:
        return ""
    absolute = path.startswith("/")
    segments: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments and segments[-1] != "..":
                segments.pop()
                continue
            if absolute:
                continue
        segments.append(segment)
    normalized = "/".join(segments)
    return "/" + normalized if absolute else normalized


def _host_of(parts: SplitResult) -> str:
    """Host of a split URL without user info or port, case preserved."""
    netloc = parts.netloc.rpartition("@")[2]
    if netloc.startswith("["):
        return netloc[: netloc.find("]") + 1]
    return netloc.partition(":")[0]


def _split_https(location: str) -> SplitResult:
    """Split ``https://<location>``; raises ValueError on a malformed authority."""
    parts = urlsplit(f"https://{location}")
    # Accessing the port validates it.
    _ = parts.port
    return parts


def parse_server_host(canonical_web_url: str | None) -> str | None:
    """Extract the host from the canonical web URL.

    A URL that cannot be parsed is logged and returned unprocessed.
    """
    if canonical_web_url is None:
        return None
    try:
        parts = urlsplit(canonical_web_url)
        _ = parts.port
    except ValueError as exc:
        logger.warning("Could not parse canonical_web_url %r: %s", canonical_web_url, exc)
        return canonical_web_url
    if not parts.scheme or not parts.netloc:
        logger.warning("Could not parse canonical_web_url %r", canonical_web_url)
        return canonical_web_url
    return _host_of(parts)


class UrlNormalizer:
    """Normalizes project names and destinations against a server host."""

    def __init__(self, server_host: str | None) -> None:
        self.server_host = server_host

    def canonical_project(self, project: str) -> str:
        """Return ``host + "/" + project`` in normalized URL form."""
        candidate = f"{self.server_host or ''}/{project}"
        try:
            parts = _split_https(candidate)
        except ValueError:
            logger.warning("Could not parse project as URL: https://%s", candidate)
            return candidate
        return _host_of(parts) + parts.path

    def normalize(self, project: str, destination: str, is_manifest: bool = False) -> str:
        """Canonicalize a dependency destination seen in ``project``.

        For manifests ``project`` is ``"<name>:<manifest path>"``; scheme-less
        destinations are resolved against ``<name>`` alone, relative ones
        against the full qualified string.
        """
        original_project = project.rpartition(":")[0] if is_manifest else project

        destination = destination.removesuffix("/")
        destination = destination.removesuffix(".git")

        if destination.startswith("//"):
            # UNC path; passes through unaltered.
            return destination
        if destination.startswith("/"):
            if self.server_host is not None:
                destination = self.server_host + destination
            else:
                logger.warning("Could not parse absolute path; canonical_web_url not set")
        elif destination.startswith("."):
            if self.server_host is not None:
                destination = self.server_host + _normalize_path(f"/{project}/{destination}")
            else:
                logger.warning("Could not parse relative path; canonical_web_url not set")
                return destination
        elif not _SCHEME_RE.match(destination):
            if self.server_host is not None:
                destination = f"{self.server_host}/{original_project}/{destination}"
            else:
                logger.warning("Could not parse relative path; canonical_web_url not set")

        destination = _SCHEME_RE.sub("", destination, count=1)
        try:
            parts = _split_https(destination)
        except ValueError:
            logger.warning("Could not parse destination as URL: %s", destination)
            return destination
        return _host_of(parts) + _normalize_path(parts.path)
