from __future__ import annotations

import argparse
import json

from pydantic import ValidationError as PydanticValidationError

from badgeauth.core.config import ConfigFsPaths, ConfigManager
from badgeauth.core.store import EmployeeRecord, EmployeeStore


def main() -> None:
    ap = argparse.ArgumentParser(description="Upsert employee directory rows from a JSON list.")
    ap.add_argument("path", help="JSON file: [{employee_id, badge_number, first_name, last_name, email, supervisor_id}, ...]")
    ap.add_argument("--root", default=".")
    args = ap.parse_args()

    cm = ConfigManager(fs=ConfigFsPaths(args.root), logger=None)
    cfg = cm.load_all()
    with open(args.path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, list):
        raise SystemExit("Expected a JSON list of employee objects.")
    try:
        records = [EmployeeRecord.model_validate(r) for r in raw]
    except PydanticValidationError as e:
        raise SystemExit(f"Invalid employee record: {e}") from e

    store = EmployeeStore(db_path=cm.resolve_path(cfg.app.db_path))
    n = store.import_employees(records)
    print(f"Imported {n} employee record(s) into {store.db_path}")


if __name__ == "__main__":
    main()
