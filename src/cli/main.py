"""tabvc CLI entry points.
This module exposes project, version, and history commands.
It maps argparse commands onto version service calls.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Sequence

from core.config import TabvcConfig, default_database_url
from core.errors import TabvcError
from ingest.csv_table import read_csv_snapshot, write_csv_snapshot
from store.version_service import VersionService, build_version_service

_CommandHandler = Callable[[VersionService, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser.

    Returns:
        Configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="tabvc", description="Versioned tabular dataset store")
    parser.add_argument("--data-root", help="Override TABVC_DATA_ROOT for this command")
    parser.add_argument("--database-url", help="Override TABVC_DATABASE_URL for this command")
    parser.add_argument("--tenant", help="Tenant id that owns the projects")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_init_db_command(subparsers)
    _add_save_command(subparsers)
    _add_commit_command(subparsers)
    _add_projects_command(subparsers)
    _add_history_command(subparsers)
    _add_log_command(subparsers)
    _add_export_command(subparsers)
    _add_rename_command(subparsers)
    _add_status_command(subparsers)
    _add_delete_command(subparsers)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the tabvc CLI.

    Args:
        argv: Optional argument vector.

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command != "init-db" and not args.tenant:
        parser.error(f"--tenant is required for '{args.command}'")
    handler = _HANDLERS[args.command]
    try:
        service = _build_service(args.data_root, args.database_url)
        return handler(service, args)
    except TabvcError as error:
        print(f"error={error.code}: {error}", file=sys.stderr)
        return 1


def _build_service(data_root: str | None, database_url: str | None) -> VersionService:
    """Build the version service with optional overrides.

    Args:
        data_root: Optional data root override; also moves the default index.
        database_url: Optional index database URL override.

    Returns:
        Configured version service.
    """
    config = TabvcConfig.from_env()
    if data_root:
        root = Path(data_root).expanduser().resolve()
        config = replace(config, data_root=root, database_url=default_database_url(root))
    if database_url:
        config = replace(config, database_url=database_url)
    return build_version_service(config)


def _run_init_db_command(service: VersionService, args: argparse.Namespace) -> int:
    # Schema creation happens while building the service.
    print("index_ready")
    return 0


def _run_save_command(service: VersionService, args: argparse.Namespace) -> int:
    """Handle save command: create a project from a CSV file."""
    snapshot = read_csv_snapshot(Path(args.source).expanduser())
    ref = service.save_new_project(args.tenant, args.name, snapshot)
    print(f"group_id={ref.group_id}")
    print(f"commit_id={ref.commit_id}")
    return 0


def _run_commit_command(service: VersionService, args: argparse.Namespace) -> int:
    """Handle commit command: save a CSV file as a new version."""
    snapshot = read_csv_snapshot(Path(args.source).expanduser())
    ref = service.save_new_version(
        args.tenant,
        args.project,
        args.parent,
        snapshot,
        args.message or [],
    )
    print(f"commit_id={ref.commit_id}")
    return 0


def _run_projects_command(service: VersionService, args: argparse.Namespace) -> int:
    for project in service.list_projects(args.tenant):
        print(f"{project.name}\t{project.group_id}\t{project.root_commit_id}")
    return 0


def _run_history_command(service: VersionService, args: argparse.Namespace) -> int:
    """Handle history command: print the commit tree, one commit per line."""
    tree = service.list_project_history(args.tenant, args.project)
    leaves = set(tree.leaves())
    for record in tree.commits:
        marker = "*" if record.commit_id in leaves else "-"
        indent = "  " * tree.depth(record.commit_id)
        print(f"{indent}{marker} {record.commit_id}\t{record.parent_commit_id or '-'}")
    return 0


def _run_log_command(service: VersionService, args: argparse.Namespace) -> int:
    for entry in service.get_modifications(args.tenant, args.commit):
        print(f"{entry.order}\t{entry.description}")
    return 0


def _run_export_command(service: VersionService, args: argparse.Namespace) -> int:
    """Handle export command: write a commit (or the root) to CSV."""
    if args.commit:
        snapshot = service.load_snapshot(args.tenant, args.project, args.commit)
    else:
        snapshot = service.load_root(args.tenant, args.project)
    output_path = Path(args.output).expanduser()
    write_csv_snapshot(snapshot, output_path)
    print(output_path)
    return 0


def _run_rename_command(service: VersionService, args: argparse.Namespace) -> int:
    service.rename_project(args.tenant, args.project, args.name)
    print(f"name={args.name.strip()}")
    return 0


def _run_status_command(service: VersionService, args: argparse.Namespace) -> int:
    """Handle status command: report commit states or pending commits."""
    if args.commit:
        state = service.commit_state(args.tenant, args.project, args.commit)
        print(f"{args.commit}\t{state.value}")
        return 0
    for commit_id in service.list_pending_commits(args.tenant, args.project):
        print(f"{commit_id}\tPENDING_BLOB")
    return 0


def _run_delete_command(service: VersionService, args: argparse.Namespace) -> int:
    result = service.delete_project(args.tenant, args.project)
    print(f"blobs_deleted={result.blobs_deleted}")
    if result.blob_cleanup_failed:
        print("warning=blob cleanup failed; orphaned blobs may remain", file=sys.stderr)
    return 0


def _add_init_db_command(subparsers: Any) -> None:
    """Register init-db subcommand."""
    subparsers.add_parser("init-db", help="Create the commit index tables")


def _add_save_command(subparsers: Any) -> None:
    """Register save subcommand."""
    parser = subparsers.add_parser("save", help="Create a project from a CSV file")
    parser.add_argument("source", help="CSV file with a header row")
    parser.add_argument("--name", required=True, help="Project name, unique per tenant")


def _add_commit_command(subparsers: Any) -> None:
    """Register commit subcommand."""
    parser = subparsers.add_parser("commit", help="Save a CSV file as a new version")
    parser.add_argument("source", help="CSV file with a header row")
    parser.add_argument("--project", required=True, help="Project (group) id")
    parser.add_argument("--parent", required=True, help="Parent commit id")
    parser.add_argument(
        "-m",
        "--message",
        action="append",
        help="Modification description; repeat for each change in order",
    )


def _add_projects_command(subparsers: Any) -> None:
    """Register projects subcommand."""
    subparsers.add_parser("projects", help="List the tenant's projects")


def _add_history_command(subparsers: Any) -> None:
    """Register history subcommand."""
    parser = subparsers.add_parser("history", help="Print a project's commit tree")
    parser.add_argument("--project", required=True, help="Project (group) id")


def _add_log_command(subparsers: Any) -> None:
    """Register log subcommand."""
    parser = subparsers.add_parser("log", help="Print a commit's modification log")
    parser.add_argument("--commit", required=True, help="Commit id")


def _add_export_command(subparsers: Any) -> None:
    """Register export subcommand."""
    parser = subparsers.add_parser("export", help="Write a commit snapshot to CSV")
    parser.add_argument("--project", required=True, help="Project (group) id")
    parser.add_argument("--commit", help="Commit id; the root commit when omitted")
    parser.add_argument("--output", required=True, help="Destination CSV path")


def _add_rename_command(subparsers: Any) -> None:
    """Register rename subcommand."""
    parser = subparsers.add_parser("rename", help="Rename a project")
    parser.add_argument("--project", required=True, help="Project (group) id")
    parser.add_argument("--name", required=True, help="New project name")


def _add_status_command(subparsers: Any) -> None:
    """Register status subcommand."""
    parser = subparsers.add_parser("status", help="Show commit blob states")
    parser.add_argument("--project", required=True, help="Project (group) id")
    parser.add_argument("--commit", help="Commit id; lists pending commits when omitted")


def _add_delete_command(subparsers: Any) -> None:
    """Register delete subcommand."""
    parser = subparsers.add_parser("delete", help="Delete a project and all its versions")
    parser.add_argument("--project", required=True, help="Project (group) id")


_HANDLERS: dict[str, _CommandHandler] = {
    "init-db": _run_init_db_command,
    "save": _run_save_command,
    "commit": _run_commit_command,
    "projects": _run_projects_command,
    "history": _run_history_command,
    "log": _run_log_command,
    "export": _run_export_command,
    "rename": _run_rename_command,
    "status": _run_status_command,
    "delete": _run_delete_command,
}
