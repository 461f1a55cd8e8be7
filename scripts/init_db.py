#!/usr/bin/env python3
"""Initialize (or upgrade) the database and optionally seed accounts from YAML."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from busmate.db.database import Database
from busmate.logging_setup import configure_logging
from busmate.models.account import AccountRole
from busmate.services.account_service import AccountService


def main():
    parser = argparse.ArgumentParser(description="Initialize the BusMate database")
    parser.add_argument("--db-path", type=str, help="Override database path")
    parser.add_argument("--version", type=int, help="Schema version to open with")
    parser.add_argument("--seed", type=str, help="YAML file with passengers/operators to register")
    parser.add_argument("--log-level", type=str, help="Logging level (default from BUSMATE_LOG_LEVEL)")
    args = parser.parse_args()

    configure_logging(args.log_level)

    db_path = Path(args.db_path) if args.db_path else None
    db = Database(path=db_path, version=args.version)
    db.init()
    print(f"Database initialized at: {db.path} (schema v{db.schema_version()})")

    if args.seed:
        _seed(AccountService(db), Path(args.seed))

    print(f"Accounts on file: {AccountService(db).count_accounts()}")
    db.close()
    print("Done.")


def _seed(service: AccountService, path: Path):
    import yaml
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    for role, key in ((AccountRole.PASSENGER, "passengers"), (AccountRole.BUS_OPERATOR, "operators")):
        for entry in data.get(key, []):
            entry = dict(entry)
            email = entry.pop("email", None)
            password = entry.pop("password", None)
            if role is AccountRole.BUS_OPERATOR:
                outcome = service.register_operator_result(email, password, **entry)
            else:
                outcome = service.register_passenger_result(email, password, **entry)
            if outcome.ok:
                print(f"  Registered {role.value}: {email} (id {outcome.value})")
            else:
                print(f"  Skipping {email or '?'}: {outcome.error}")


if __name__ == "__main__":
    main()
