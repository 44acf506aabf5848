"""CLI for triggering repository usage rescans on a running server."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any

import httpx

ALL_WITH_PROJECTS_ERROR = "error: cannot combine --all and PROJECT"
DEFAULT_SERVER = "http://localhost:8080"


class ScanClient:
    """Client for the repository usage admin API."""

    def __init__(
        self, server_url: str, token: str, transport: httpx.BaseTransport | None = None
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.server_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=60.0,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> ScanClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def scan(self, all_projects: bool, projects: list[str], branches: list[str]) -> list[str]:
        """Request a rescan and return the queued task descriptions."""
        payload: dict[str, Any] = {
            "all": all_projects,
            "projects": projects,
            "branches": branches,
        }
        resp = self.client.post("/api/admin/scan", json=payload)
        resp.raise_for_status()
        queued: list[str] = resp.json()["queued"]
        return queued


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repository-usage",
        description="Rescan projects and rebuild their repository usage records",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("REPOSITORY_USAGE_SERVER", DEFAULT_SERVER),
        help=f"Server URL (default: $REPOSITORY_USAGE_SERVER or {DEFAULT_SERVER})",
    )
    parser.add_argument(
        "--token",
        default=os.environ.get("REPOSITORY_USAGE_ADMIN_TOKEN", ""),
        help="Administrator token (default: $REPOSITORY_USAGE_ADMIN_TOKEN)",
    )

    subparsers = parser.add_subparsers(dest="command")
    scan_parser = subparsers.add_parser("scan", help="Rescan projects")
    scan_parser.add_argument("--all", action="store_true", help="Rescan every project")
    scan_parser.add_argument(
        "--branch",
        "-b",
        action="append",
        default=[],
        help="Branch to rescan; may be repeated (default: all branches)",
    )
    scan_parser.add_argument("projects", nargs="*", metavar="PROJECT")
    return parser


def main(argv: list[str] | None = None, transport: httpx.BaseTransport | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "scan":
        parser.print_help()
        sys.exit(1)

    if args.all and args.projects:
        print(ALL_WITH_PROJECTS_ERROR, file=sys.stderr)
        sys.exit(1)
    if not args.all and not args.projects:
        print("error: specify --all or at least one PROJECT", file=sys.stderr)
        sys.exit(1)
    if not args.token:
        print(
            "error: no admin token; pass --token or set REPOSITORY_USAGE_ADMIN_TOKEN",
            file=sys.stderr,
        )
        sys.exit(1)

    with ScanClient(args.server, args.token, transport=transport) as client:
        try:
            queued = client.scan(args.all, args.projects, args.branch)
        except httpx.HTTPStatusError as exc:
            print(
                f"error: scan request failed ({exc.response.status_code}): {exc.response.text}",
                file=sys.stderr,
            )
            sys.exit(1)
        except httpx.HTTPError as exc:
            print(f"error: {exc}", file=sys.stderr)
            sys.exit(1)

    for task in queued:
        print(f"  Queued: {task}")
    print(f"Scan queued {len(queued)} task(s).")


if __name__ == "__main__":
    main()
