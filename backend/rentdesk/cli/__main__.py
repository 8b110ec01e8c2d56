# backend/rentdesk/cli/__main__.py
from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from datetime import date

from rentdesk.cli.seed_demo import seed_demo
from rentdesk.config import settings
from rentdesk.db import Database
from rentdesk.logging_config import configure_logging
from rentdesk.services.batch_jobs import generate_installments_batch, repair_start_dates


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="rentdesk", description="rentdesk batch jobs")
    p.add_argument("--database-url", default=None, help="defaults to DATABASE_URL / settings")
    p.add_argument("--tenant-id", default=settings.default_tenant_id)
    sub = p.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate-installments", help="backfill missing installments of ACTIVE contracts")
    gen.add_argument("--all-tenants", action="store_true")
    gen.add_argument("--contract-id", type=int, default=None)

    sub.add_parser("repair-start-dates", help="normalise contract start dates to canonical noon")

    seed = sub.add_parser("seed-demo", help="create demo owner/tenant/property (+ contract)")
    seed.add_argument("--no-contract", action="store_true")
    seed.add_argument("--start-date", type=date.fromisoformat, default=None)

    args = p.parse_args(argv)

    configure_logging()
    database = Database(args.database_url or settings.database_url)
    database.create_schema()

    db = database.session()
    try:
        if args.command == "generate-installments":
            res = generate_installments_batch(
                db,
                tenant_id=None if args.all_tenants else args.tenant_id,
                contract_id=args.contract_id,
            )
            out = {"ok": not res.errors, **res.as_dict()}
        elif args.command == "repair-start-dates":
            res = repair_start_dates(db, tenant_id=args.tenant_id)
            out = {"ok": True, **res.as_dict()}
        else:
            seeded = seed_demo(db, tenant_id=args.tenant_id, with_contract=not args.no_contract, start_date=args.start_date)
            out = {"ok": True, **asdict(seeded)}
    finally:
        db.close()
        database.dispose()

    print(json.dumps(out, default=str))
    return 0 if out["ok"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
