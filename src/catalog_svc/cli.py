#!/usr/bin/env python3
"""
CLI tool for the data catalog service.

Usage:
    catalog-svc serve
    catalog-svc init-db --db catalog.db
    catalog-svc load-snapshot snapshot.yaml
    catalog-svc --user JANE --role STEWARD pending --family glossary
    catalog-svc --user JANE mine
    catalog-svc show <request-id>
    catalog-svc --role STEWARD approve <request-id> --comment "looks good"
    catalog-svc --role STEWARD deny <request-id>
    catalog-svc --role STEWARD return <request-id> "which team owns this?"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any

from colorama import Fore, Style, init as colorama_init

from .config import CONFIG_ENV_VAR, Config

colorama_init()

STATUS_COLORS = {
    "pending": Fore.YELLOW,
    "more_info_needed": Fore.MAGENTA,
    "approved": Fore.GREEN,
    "denied": Fore.RED,
}


def colorize(text: str, color: str) -> str:
    return f"{color}{text}{Style.RESET_ALL}"


def print_json(data: Any, indent: int = 2) -> None:
    print(json.dumps(data, indent=indent, default=str))


def print_error(response) -> None:
    """Print an error envelope from the service."""
    try:
        error = response.json().get("error", {})
        message = f"{error.get('kind', 'error')}: {error.get('message', response.text)}"
    except ValueError:
        message = response.text
    print(colorize(f"Error {response.status_code} - {message}", Fore.RED), file=sys.stderr)


def print_request_line(req: dict) -> None:
    status = req.get("status", "")
    print(
        f"  {colorize(status.ljust(16), STATUS_COLORS.get(status, ''))} "
        f"{colorize(req.get('requestType', '').ljust(18), Fore.CYAN)} "
        f"{req.get('targetObject', '')}  "
        f"{colorize(req.get('id', ''), Style.DIM)}"
    )


def print_request(req: dict) -> None:
    """Pretty print a single change request."""
    status = req.get("status", "")
    print(f"\n{colorize('Change request', Style.BRIGHT)} {req.get('id')}")
    fields = [
        ("Type", req.get("requestType")),
        ("Target", req.get("targetObject")),
        ("Status", colorize(status, STATUS_COLORS.get(status, ""))),
        ("Requester", req.get("requester")),
        ("Requested", req.get("requestedAt")),
        ("Assigned to", req.get("assignedTo")),
        ("Justification", req.get("justification")),
        ("Decision", req.get("decisionComment")),
        ("Decided", req.get("decisionDate")),
    ]
    for label, value in fields:
        if value:
            print(f"  {colorize(label + ':', Fore.CYAN)} {value}")

    print(colorize("\nProposed change:", Style.BRIGHT))
    print_json(req.get("proposedChange"))
    if req.get("currentValue") is not None:
        print(colorize("Current value:", Style.BRIGHT))
        print_json(req.get("currentValue"))


def _get_headers(args) -> dict:
    """Build identity headers."""
    headers = {}
    if args.user:
        headers["X-User"] = args.user
    if args.role:
        headers["X-Role"] = args.role
    return headers


async def _call(args, method: str, path: str, **kwargs) -> dict | None:
    """Call the service; returns the ``data`` of a success envelope, or None after printing the error."""
    import httpx

    async with httpx.AsyncClient(base_url=args.base_url) as client:
        response = await client.request(method, path, headers=_get_headers(args), **kwargs)

    if response.status_code != 200:
        print_error(response)
        return None
    return response.json()


# =============================================================================
# Remote commands (talk to a running service)
# =============================================================================

async def cmd_pending(args):
    """List requests awaiting review."""
    params = {"family": args.family} if args.family else None
    body = await _call(args, "GET", "/change-requests/pending", params=params)
    if body is None:
        return 1
    requests = body["data"]
    print(colorize(f"\n{len(requests)} request(s) awaiting review:", Style.BRIGHT))
    for req in requests:
        print_request_line(req)
    return 0


async def cmd_mine(args):
    body = await _call(args, "GET", "/change-requests/my-requests")
    if body is None:
        return 1
    requests = body["data"]
    print(colorize(f"\n{len(requests)} request(s):", Style.BRIGHT))
    for req in requests:
        print_request_line(req)
    return 0


async def cmd_show(args):
    body = await _call(args, "GET", f"/change-requests/{args.request_id}")
    if body is None:
        return 1
    print_request(body["data"])
    return 0


async def cmd_decide(args):
    """Approve, deny or return a request."""
    if args.command == "return":
        payload = {"comment": args.comment}
    else:
        payload = {"comment": args.comment} if args.comment else {}
    body = await _call(args, "PUT", f"/change-requests/{args.request_id}/{args.command}", json=payload)
    if body is None:
        return 1
    print(colorize(body.get("message") or "Done", Fore.GREEN))
    print_request(body["data"])
    return 0


# =============================================================================
# Local commands
# =============================================================================

def _load_config(args) -> Config:
    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config
    config = Config.from_env()
    if getattr(args, "db", None):
        config.store.db_path = args.db
    return config


def cmd_serve(args):
    from .main import run

    config = _load_config(args)
    if args.port:
        config.server.port = args.port
    run(config)
    return 0


def cmd_init_db(args):
    from .db import init_db
    from .permissions import RolePermissionStore

    config = _load_config(args)
    conn = init_db(config.store.db_path, config.store.timeout_seconds)
    try:
        seeded = RolePermissionStore(conn).seed(config.permissions.roles)
    finally:
        conn.close()
    print(colorize(f"Initialized {config.store.db_path}", Fore.GREEN), f"({seeded} role grants seeded)")
    return 0


def cmd_load_snapshot(args):
    from .catalog.loader import SnapshotLoader
    from .db import init_db

    config = _load_config(args)
    conn = init_db(config.store.db_path, config.store.timeout_seconds)
    try:
        stats = SnapshotLoader().apply_file(conn, args.file)
    finally:
        conn.close()
    print(colorize(f"Loaded {args.file} into {config.store.db_path}", Fore.GREEN))
    print_json(stats)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="CLI tool for the Data Catalog Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--base-url",
        default="http://localhost:8060",
        help="Base URL of the catalog service",
    )
    parser.add_argument("--user", help="Caller user name (sent as X-User)")
    parser.add_argument("--role", help="Caller role (sent as X-Role)")
    parser.add_argument("--config", help=f"Config file (default: ${CONFIG_ENV_VAR})")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # local commands
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--port", type=int, help="Override the configured port")

    init_parser = subparsers.add_parser("init-db", help="Create the store schema and seed roles")
    init_parser.add_argument("--db", help="Database path (overrides config)")

    load_parser = subparsers.add_parser("load-snapshot", help="Load a metadata snapshot file")
    load_parser.add_argument("file", help="YAML or JSON snapshot")
    load_parser.add_argument("--db", help="Database path (overrides config)")

    # remote commands
    pending_parser = subparsers.add_parser("pending", help="List requests awaiting review")
    pending_parser.add_argument("--family", choices=["content", "glossary"], help="Only one family of request types")

    subparsers.add_parser("mine", help="List my change requests")

    show_parser = subparsers.add_parser("show", help="Show one change request")
    show_parser.add_argument("request_id")

    approve_parser = subparsers.add_parser("approve", help="Approve a change request")
    approve_parser.add_argument("request_id")
    approve_parser.add_argument("--comment", help="Decision comment")

    deny_parser = subparsers.add_parser("deny", help="Deny a change request")
    deny_parser.add_argument("request_id")
    deny_parser.add_argument("--comment", help="Decision comment")

    return_parser = subparsers.add_parser("return", help="Return a request for more information")
    return_parser.add_argument("request_id")
    return_parser.add_argument("comment", help="What the requester needs to add")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    # Run the appropriate command
    if args.command == "serve":
        return cmd_serve(args)
    elif args.command == "init-db":
        return cmd_init_db(args)
    elif args.command == "load-snapshot":
        return cmd_load_snapshot(args)
    elif args.command == "pending":
        return asyncio.run(cmd_pending(args))
    elif args.command == "mine":
        return asyncio.run(cmd_mine(args))
    elif args.command == "show":
        return asyncio.run(cmd_show(args))
    elif args.command in ("approve", "deny", "return"):
        return asyncio.run(cmd_decide(args))
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
