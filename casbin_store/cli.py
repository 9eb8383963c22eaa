"""
casbin-store command line.

Commands:
  migrate             Apply pending schema migrations (or --down N to revert)
  status              List applied migrations
  list                Print stored rules as policy lines (optionally --filter JSON)
  import-csv          Load a policy CSV file (--replace clears the table first)
  export-csv          Write every stored rule to a policy CSV file
  stats               Rule count per ptype
  clear               Delete every stored rule

Usage:
  casbin-store --db casbin.db import-csv policy.csv --replace
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from . import errors
from .config import load_options
from .repository import CasbinRepository
from .services import csv_svc
from .services.policy_svc import PolicyAdapter, format_policy_line


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="casbin-store")
    ap.add_argument("--config", default="config.yaml", help="YAML config file (casbin: section)")
    ap.add_argument("--db", help="SQLite database path (overrides config)")
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("migrate")
    p.add_argument("--down", type=int, default=0, metavar="N", help="revert the last N migrations")
    sub.add_parser("status")
    p = sub.add_parser("list")
    p.add_argument("--filter", help='JSON filter, e.g. \'{"p": ["alice"]}\'')
    p = sub.add_parser("import-csv")
    p.add_argument("path")
    p.add_argument("--replace", action="store_true")
    p = sub.add_parser("export-csv")
    p.add_argument("path")
    sub.add_parser("stats")
    sub.add_parser("clear")
    return ap


async def _run(args: argparse.Namespace) -> int:
    overrides = {"db_path": args.db, "connection_string": None} if args.db else {}
    # migrate/status manage the schema themselves
    if args.cmd in ("migrate", "status"):
        overrides["migrate"] = False
    options = load_options(args.config, **overrides)

    async with CasbinRepository(options) as repo:
        if args.cmd == "migrate":
            if args.down:
                names = await repo.revert_schema(args.down)
                print({"message": "ok", "reverted": names})
            else:
                names = await repo.apply_schema()
                print({"message": "ok", "applied": names})
        elif args.cmd == "status":
            for name in await repo.schema_status():
                print(name)
        elif args.cmd == "list":
            flt = json.loads(args.filter) if args.filter else None
            for r in await repo.get_filtered_policies(flt):
                print(format_policy_line(r))
        elif args.cmd == "import-csv":
            rules = csv_svc.read_policy_csv(args.path)
            if args.replace:
                await PolicyAdapter(repo).save_policy(rules)
            else:
                await repo.insert_policies(rules)
            print({"message": "ok", "imported": len(rules)})
        elif args.cmd == "export-csv":
            n = csv_svc.write_policy_csv(await repo.get_all_policies(), args.path)
            print({"message": "ok", "exported": n})
        elif args.cmd == "stats":
            df = csv_svc.summarize(await repo.get_all_policies())
            print(df.to_string(index=False) if not df.empty else "no rules")
        elif args.cmd == "clear":
            n = await repo.clear_policies()
            print({"message": "ok", "deleted": n})
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except errors.StoreError as e:
        print(f"error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
