from __future__ import annotations

import contextlib
import os
import sqlite3
from typing import Any, Dict, Iterable, Iterator, Optional, Union

from badgeauth.core.store.models import Employee, EmployeeRecord, PinFailure


_EMPLOYEE_COLUMNS = (
    "employee_id, badge_number, first_name, last_name, email, supervisor_id, "
    "identity_id, pin_hash, pin_is_default, pin_attempts, pin_locked_until, otp_hash, otp_expires_at"
)


class EmployeeStore:
    """
    Employee table (SQLite).

    Every change to the per-badge counters and the OTP pair is a single SQL
    statement or a single BEGIN IMMEDIATE transaction, so concurrent requests
    for the same badge serialize in the database and never lose an update.
    """

    def __init__(self, *, db_path: str, logger: Any = None, busy_timeout_seconds: float = 10.0):
        self.db_path = str(db_path)
        self.logger = logger
        self.busy_timeout_seconds = float(busy_timeout_seconds)
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        self._init_db()

    # ---- sqlite helpers ----
    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout_seconds, isolation_level=None, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA foreign_keys=ON;")
        return conn

    @contextlib.contextmanager
    def _tx(self) -> Iterator[sqlite3.Connection]:
        conn = self._conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._tx() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS employees (
                  employee_id TEXT PRIMARY KEY,
                  badge_number TEXT NOT NULL UNIQUE,
                  first_name TEXT NOT NULL DEFAULT '',
                  last_name TEXT NOT NULL DEFAULT '',
                  email TEXT,
                  supervisor_id TEXT,
                  identity_id TEXT,
                  pin_hash TEXT,
                  pin_is_default INTEGER NOT NULL DEFAULT 0,
                  pin_attempts INTEGER NOT NULL DEFAULT 0 CHECK (pin_attempts >= 0),
                  pin_locked_until REAL,
                  otp_hash TEXT,
                  otp_expires_at REAL,
                  CHECK ((otp_hash IS NULL) = (otp_expires_at IS NULL))
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_employees_identity ON employees(identity_id)")

    @staticmethod
    def _row_to_employee(row: sqlite3.Row) -> Employee:
        data: Dict[str, Any] = dict(row)
        data["pin_is_default"] = bool(data.get("pin_is_default"))
        data["pin_attempts"] = int(data.get("pin_attempts") or 0)
        return Employee.model_validate(data)

    # ---- directory (HR import) ----
    def import_employees(self, records: Iterable[Union[EmployeeRecord, Dict[str, Any]]]) -> int:
        """
        Upsert directory fields. Auth columns of existing rows are left alone.
        """
        count = 0
        with self._tx() as conn:
            for raw in records:
                rec = raw if isinstance(raw, EmployeeRecord) else EmployeeRecord.model_validate(raw)
                conn.execute(
                    """
                    INSERT INTO employees(employee_id, badge_number, first_name, last_name, email, supervisor_id)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(employee_id) DO UPDATE SET
                      badge_number = excluded.badge_number,
                      first_name = excluded.first_name,
                      last_name = excluded.last_name,
                      email = excluded.email,
                      supervisor_id = excluded.supervisor_id
                    """,
                    (rec.employee_id, rec.badge_number.strip(), rec.first_name, rec.last_name, rec.email, rec.supervisor_id),
                )
                count += 1
        return count

    # ---- reads ----
    def get_by_badge(self, badge_number: str) -> Optional[Employee]:
        conn = self._conn()
        try:
            row = conn.execute(f"SELECT {_EMPLOYEE_COLUMNS} FROM employees WHERE badge_number = ?", (badge_number,)).fetchone()
        finally:
            conn.close()
        return self._row_to_employee(row) if row is not None else None

    def get_by_id(self, employee_id: str) -> Optional[Employee]:
        conn = self._conn()
        try:
            row = conn.execute(f"SELECT {_EMPLOYEE_COLUMNS} FROM employees WHERE employee_id = ?", (employee_id,)).fetchone()
        finally:
            conn.close()
        return self._row_to_employee(row) if row is not None else None

    # ---- account + PIN ----
    def link_account(self, badge_number: str, *, identity_id: str, pin_hash: str, pin_is_default: bool) -> bool:
        """
        Attach an identity and a PIN in one statement, only if the badge has no
        account yet. Returns False when another request got there first.
        """
        with self._tx() as conn:
            cur = conn.execute(
                """
                UPDATE employees SET
                  identity_id = ?,
                  pin_hash = ?,
                  pin_is_default = ?,
                  pin_attempts = 0,
                  pin_locked_until = NULL
                WHERE badge_number = ? AND (identity_id IS NULL OR pin_hash IS NULL)
                """,
                (identity_id, pin_hash, 1 if pin_is_default else 0, badge_number),
            )
            return cur.rowcount == 1

    def set_pin(
        self,
        badge_number: str,
        *,
        pin_hash: str,
        pin_is_default: bool,
        identity_id: Optional[str] = None,
        reset_lockout: bool = False,
        unlocked_at: Optional[float] = None,
    ) -> bool:
        """
        Replace the PIN hash. When identity_id is given it is attached only if
        the row has none, in the same statement as the hash. With unlocked_at
        the write is skipped (returns False) while a lockout is active then.
        """
        sets = ["pin_hash = ?", "pin_is_default = ?", "identity_id = COALESCE(identity_id, ?)"]
        params: list[Any] = [pin_hash, 1 if pin_is_default else 0, identity_id]
        if reset_lockout:
            sets.extend(["pin_attempts = 0", "pin_locked_until = NULL"])
        where = "badge_number = ?"
        params.append(badge_number)
        if unlocked_at is not None:
            where += " AND (pin_locked_until IS NULL OR pin_locked_until <= ?)"
            params.append(float(unlocked_at))
        with self._tx() as conn:
            cur = conn.execute(f"UPDATE employees SET {', '.join(sets)} WHERE {where}", params)
            return cur.rowcount == 1

    def record_pin_failure(self, badge_number: str, *, threshold: int, lockout_seconds: float, now: float) -> Optional[PinFailure]:
        """
        Atomically count one failed PIN check and start a lockout when the
        count reaches the threshold. A lockout that has already elapsed ends
        its episode: the count restarts at 1. While a lockout is active the
        row is left alone and the result has counted=False.
        """
        with self._tx() as conn:
            cur = conn.execute(
                """
                UPDATE employees SET
                  pin_attempts = CASE
                    WHEN pin_locked_until IS NOT NULL AND pin_locked_until <= :now THEN 1
                    ELSE pin_attempts + 1
                  END,
                  pin_locked_until = CASE
                    WHEN (CASE
                            WHEN pin_locked_until IS NOT NULL AND pin_locked_until <= :now THEN 1
                            ELSE pin_attempts + 1
                          END) >= :threshold THEN :lock_until
                    WHEN pin_locked_until IS NOT NULL AND pin_locked_until <= :now THEN NULL
                    ELSE pin_locked_until
                  END
                WHERE badge_number = :badge AND (pin_locked_until IS NULL OR pin_locked_until <= :now)
                """,
                {"now": float(now), "threshold": int(threshold), "lock_until": float(now) + float(lockout_seconds), "badge": badge_number},
            )
            counted = cur.rowcount == 1
            row = conn.execute("SELECT pin_attempts, pin_locked_until FROM employees WHERE badge_number = ?", (badge_number,)).fetchone()
        if row is None:
            return None
        return PinFailure(attempts=int(row["pin_attempts"]), locked_until=row["pin_locked_until"], counted=counted)

    def reset_pin_attempts(self, badge_number: str, *, unlocked_at: Optional[float] = None) -> bool:
        """Clear attempts and lockout; with unlocked_at, only if no lockout is active then."""
        sql = "UPDATE employees SET pin_attempts = 0, pin_locked_until = NULL WHERE badge_number = ?"
        params: list[Any] = [badge_number]
        if unlocked_at is not None:
            sql += " AND (pin_locked_until IS NULL OR pin_locked_until <= ?)"
            params.append(float(unlocked_at))
        with self._tx() as conn:
            cur = conn.execute(sql, params)
            return cur.rowcount == 1

    # ---- OTP ----
    def store_otp(self, badge_number: str, *, otp_hash: str, expires_at: float) -> bool:
        """Overwrite any outstanding code; the previous one stops verifying."""
        with self._tx() as conn:
            cur = conn.execute(
                "UPDATE employees SET otp_hash = ?, otp_expires_at = ? WHERE badge_number = ?",
                (otp_hash, float(expires_at), badge_number),
            )
            return cur.rowcount == 1

    def clear_otp_if_matches(self, badge_number: str, *, otp_hash: str) -> bool:
        """Compare-and-clear: only one concurrent verifier can consume a code."""
        with self._tx() as conn:
            cur = conn.execute(
                "UPDATE employees SET otp_hash = NULL, otp_expires_at = NULL WHERE badge_number = ? AND otp_hash = ?",
                (badge_number, otp_hash),
            )
            return cur.rowcount == 1
