"""Application-level exception types.

Convention:
- ``GitError`` and its subclasses are raised by the Git facade for repository
  and object failures. The ref-update handler logs them at ERROR and abandons
  the current event; the worker continues with the next task.
- ``ValueError`` is used for request validation problems that are safe to
  forward to clients (for example combining ``--all`` with project names).
  The global ``ValueError`` handler returns ``str(exc)`` as the 422 detail.
- Database errors never escape the persistence services; each failed
  statement is logged and skipped.
"""

from __future__ import annotations


class GitError(Exception):
    """Base class for failures while reading a Git repository."""


class RepositoryNotFoundError(GitError):
    """Raised when no repository exists for a project name."""


class GitObjectError(GitError):
    """Raised when an object id cannot be resolved or read."""
