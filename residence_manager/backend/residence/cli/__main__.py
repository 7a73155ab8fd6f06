# backend/residence/cli/__main__.py
from __future__ import annotations

import argparse
import json
import sys

from residence.config import settings
from residence.db import SessionLocal, init_db
from residence.logging_config import configure_logging
from residence.cli.seed_demo import seed_demo
from residence.services.integrity import integrity_report


def _init_db(_args) -> int:
    init_db()
    print({"ok": True, "database_url": settings.database_url})
    return 0


def _seed_demo(_args) -> int:
    init_db()
    out = seed_demo()
    print(
        {
            "ok": True,
            "created": out.created,
            "houses": out.houses,
            "beds": out.beds,
            "residents": out.residents,
            "assigned": out.assigned,
            "serenity_house_id": out.serenity_house_id,
        }
    )
    return 0


def _check_integrity(_args) -> int:
    db = SessionLocal()
    try:
        report = integrity_report(db)
    finally:
        db.close()
    print(json.dumps(report, indent=2))
    return 0 if report["ok"] else 1


def _serve(args) -> int:
    import uvicorn

    uvicorn.run("residence.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="residence")
    p.add_argument("--log-level", default=None)
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables").set_defaults(func=_init_db)
    sub.add_parser("seed-demo", help="load the demo facility").set_defaults(func=_seed_demo)
    sub.add_parser("check-integrity", help="report bed/resident invariant violations").set_defaults(func=_check_integrity)

    serve = sub.add_parser("serve", help="run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=_serve)

    args = p.parse_args(argv)
    configure_logging(args.log_level)
    return int(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
