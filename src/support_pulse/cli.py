from __future__ import annotations

import argparse
import asyncio
import inspect
import json
import logging
import os
import time
from pathlib import Path
from typing import List, Optional

from support_pulse.config import SyncSettings
from support_pulse.connectors.zendesk import ZendeskCredentials
from support_pulse.db import resolve_db_uri
from support_pulse.storage import create_store

DEFAULT_BACKFILL_DAYS = 60


def _load_dotenv(path: Path) -> int:
    """
    Load a .env file into process environment (without overriding existing vars).
    """
    if not path.exists():
        return 0
    loaded = 0
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key or key in os.environ:
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ[key] = value
        loaded += 1
    return loaded


def _credentials(ns: argparse.Namespace) -> ZendeskCredentials:
    email = ns.email or os.getenv("ZENDESK_EMAIL", "")
    token = ns.token or os.getenv("ZENDESK_TOKEN", "")
    if not email or not token:
        raise SystemExit(
            "Zendesk credentials are required (--email/--token or ZENDESK_EMAIL/ZENDESK_TOKEN)"
        )
    return ZendeskCredentials(email=email, token=token)


def _domain(ns: argparse.Namespace) -> str:
    domain = ns.domain or os.getenv("ZENDESK_DOMAIN", "")
    if not domain:
        raise SystemExit("Zendesk domain is required (--domain or ZENDESK_DOMAIN)")
    return domain


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _cmd_sync(ns: argparse.Namespace) -> int:
    from support_pulse.sync.orchestrator import DeltaSyncOrchestrator

    start_time = ns.start_time
    if start_time is None:
        start_time = int(time.time()) - 86400 * ns.backfill_days
    domain, credentials = _domain(ns), _credentials(ns)

    async with create_store(resolve_db_uri(ns)) as store:
        orchestrator = DeltaSyncOrchestrator(store, settings=SyncSettings.from_env())
        result = await orchestrator.run_delta_sync(
            ns.instance_id, domain, credentials, start_time
        )
    _print_json(result.to_dict())
    return 1 if result.aborted else 0


async def _cmd_sync_staff(ns: argparse.Namespace) -> int:
    from support_pulse.sync.orchestrator import DeltaSyncOrchestrator

    domain, credentials = _domain(ns), _credentials(ns)

    async with create_store(resolve_db_uri(ns)) as store:
        orchestrator = DeltaSyncOrchestrator(store, settings=SyncSettings.from_env())
        result = await orchestrator.run_staff_sync(ns.instance_id, domain, credentials)
    _print_json({"count": result.count, "error": result.error})
    return 0 if result.success else 1


async def _cmd_tickets(ns: argparse.Namespace) -> int:
    from support_pulse.analytics.themes import summarize_tickets

    limit = ns.limit or SyncSettings.from_env().ticket_limit
    async with create_store(resolve_db_uri(ns)) as store:
        tickets = await store.get_tickets(ns.instance_id, limit)
        users = await store.get_users(ns.instance_id) if ns.summary else []
    if ns.summary:
        _print_json(summarize_tickets(tickets, users))
    else:
        _print_json(tickets)
    return 0


def _cmd_serve(ns: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("support_pulse.api.main:app", host=ns.host, port=ns.port)
    return 0


def _add_remote_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--instance-id", required=True)
    parser.add_argument("--domain", help="Zendesk domain (env ZENDESK_DOMAIN).")
    parser.add_argument("--email", help="Agent email (env ZENDESK_EMAIL).")
    parser.add_argument("--token", help="API token (env ZENDESK_TOKEN).")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="support-pulse",
        description="Mirror helpdesk tickets locally and serve support analytics.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING). Defaults to env LOG_LEVEL or INFO.",
    )
    parser.add_argument("--db", help="Database URI (env SUPPORT_PULSE_DB_URI).")
    sub = parser.add_subparsers(dest="command", required=True)

    sync_parser = sub.add_parser("sync", help="Run one incremental ticket sync.")
    _add_remote_args(sync_parser)
    sync_parser.add_argument(
        "--start-time",
        type=int,
        help="Epoch seconds to start from when no cursor is stored.",
    )
    sync_parser.add_argument(
        "--backfill-days",
        type=int,
        default=DEFAULT_BACKFILL_DAYS,
        help="Fallback window when neither cursor nor --start-time exist.",
    )
    sync_parser.set_defaults(func=_cmd_sync)

    staff_parser = sub.add_parser("sync-staff", help="Refresh the agent roster.")
    _add_remote_args(staff_parser)
    staff_parser.set_defaults(func=_cmd_sync_staff)

    tickets_parser = sub.add_parser("tickets", help="Print mirrored tickets.")
    tickets_parser.add_argument("--instance-id", required=True)
    tickets_parser.add_argument("--limit", type=int)
    tickets_parser.add_argument(
        "--summary", action="store_true", help="Print theme, status and agent breakdowns."
    )
    tickets_parser.set_defaults(func=_cmd_tickets)

    serve_parser = sub.add_parser("serve", help="Run the HTTP API.")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(func=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    if os.getenv("DISABLE_DOTENV", "").strip().lower() not in {
        "1",
        "true",
        "yes",
        "on",
    }:
        _load_dotenv(Path.cwd() / ".env")

    parser = build_parser()
    ns = parser.parse_args(argv)

    level_name = str(getattr(ns, "log_level", "") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    func = getattr(ns, "func", None)
    if func is None:
        parser.print_help()
        return 2
    if inspect.iscoroutinefunction(func):
        return asyncio.run(func(ns))
    return int(func(ns))


if __name__ == "__main__":
    raise SystemExit(main())
