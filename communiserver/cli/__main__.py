# communiserver/cli/__main__.py
from __future__ import annotations

import argparse
import json

from communiserver.db import Base, engine, session_scope
from communiserver.logging_config import configure_logging
from communiserver.services.settings_service import seed_all


def _seed(args: argparse.Namespace) -> dict:
    if args.create_tables:
        import communiserver.models  # noqa: F401  (registers tables on Base)

        Base.metadata.create_all(bind=engine)

    with session_scope() as db:
        return seed_all(db, demo=args.demo)


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="python -m communiserver.cli")
    sub = p.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="seed the admin account and default settings (idempotent)")
    seed.add_argument("--demo", action="store_true", help="also create a demo location chain")
    seed.add_argument("--create-tables", action="store_true", help="create tables without running migrations")

    args = p.parse_args(argv)
    configure_logging()

    if args.command == "seed":
        out = _seed(args)
        print(json.dumps({"ok": True, **out}, default=str))


if __name__ == "__main__":
    main()
