from __future__ import annotations

import json
import threading
from copy import deepcopy
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from catalog.errors import AuthFailure, CatalogError, NotFound, QueryResult, RemoteError
from catalog.queries import Embed, Predicate, TableQuery, parse_select
from server.security import hash_password, new_access_token, verify_password

DEMO_DATA_PATH = Path(__file__).resolve().parent / "demo_data.json"

# parent table -> child table -> foreign key column on the child
HAS_MANY = {
    "accommodations": {"room_types": "accommodation_id"},
    "restaurants": {"menu_categories": "restaurant_id"},
    "menu_categories": {"menu_items": "category_id"},
    "clinics": {"doctors": "clinic_id"},
    "doctors": {"schedules": "doctor_id"},
}
# child table -> parent table -> foreign key column on the child
BELONGS_TO = {
    "appointments": {"clinics": "clinic_id", "doctors": "doctor_id", "schedules": "schedule_id"},
    "room_types": {"accommodations": "accommodation_id"},
    "menu_categories": {"restaurants": "restaurant_id"},
    "menu_items": {"menu_categories": "category_id"},
    "doctors": {"clinics": "clinic_id"},
    "schedules": {"doctors": "doctor_id"},
}
# Reviews point at their target through (entity_type, entity_id).
REVIEW_TARGETS = {
    "accommodations": "accommodation",
    "restaurants": "restaurant",
    "clinics": "clinic",
    "doctors": "doctor",
}
TABLES = (
    "campuses",
    "accommodations",
    "room_types",
    "restaurants",
    "menu_categories",
    "menu_items",
    "clinics",
    "doctors",
    "schedules",
    "appointments",
    "reviews",
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _TypeMismatch(Exception):
    pass


def _coerce(sample: Any, value: Any) -> Any:
    """Coerce a filter value to the type of the stored column, the way Postgres casts literals."""
    if value is None or sample is None:
        return value
    if isinstance(sample, bool):
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in {"true", "t", "1"}:
            return True
        if text in {"false", "f", "0"}:
            return False
        raise _TypeMismatch(f'invalid input syntax for type boolean: "{value}"')
    if isinstance(sample, (int, float)):
        if isinstance(value, bool):
            raise _TypeMismatch(f'invalid input syntax for type numeric: "{value}"')
        try:
            number = float(value)
        except (TypeError, ValueError):
            kind = "bigint" if isinstance(sample, int) else "numeric"
            raise _TypeMismatch(f'invalid input syntax for type {kind}: "{value}"') from None
        if isinstance(sample, int) and not number.is_integer():
            raise _TypeMismatch(f'invalid input syntax for type bigint: "{value}"')
        return number
    if isinstance(sample, list):
        return list(value) if isinstance(value, (list, tuple, set)) else [value]
    return value if isinstance(value, str) else str(value)


class InMemoryStore:
    """Demo-mode store used when Supabase is unavailable.

    Evaluates the same ``TableQuery`` values the Supabase store sends to
    PostgREST: eq/gte/lte/contains predicates, ordering, single-row reads and
    the embedded relations named in the select string.
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {name: [] for name in TABLES}
        for name, rows in (tables or {}).items():
            self.tables[name] = [deepcopy(row) for row in rows]
        self.users: Dict[str, Dict[str, Any]] = {}
        self.sessions: Dict[str, str] = {}
        self.password_reset_requests: List[str] = []
        # FastAPI runs sync routes on a thread pool; writes assign ids and must not interleave.
        self._write_lock = threading.Lock()

    @classmethod
    def from_seed_file(cls, path: Optional[Path] = None) -> "InMemoryStore":
        path = Path(path or DEMO_DATA_PATH)
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
        users = payload.pop("users", [])
        store = cls(payload)
        for user in users:
            store.sign_up(user["email"], user["password"], profile=user.get("profile"))
        return store

    # Reads ------------------------------------------------------------------------
    def fetch(self, query: TableQuery) -> QueryResult[Any]:
        try:
            rows = self._rows(query.table)
            embeds = self._parse_columns(query.columns)
            matched = [row for row in rows if all(self._matches(query.table, row, p) for p in query.predicates)]
            if query.order is not None:
                column, desc = query.order.column, query.order.desc
                present = [r for r in matched if r.get(column) is not None]
                missing = [r for r in matched if r.get(column) is None]
                matched = sorted(present, key=lambda r: r[column], reverse=desc) + missing
            result = [self._embed(query.table, row, embeds) for row in matched]
        except CatalogError as exc:
            return QueryResult.failure(exc)
        if query.single:
            if not result:
                return QueryResult.failure(NotFound("No matching row", code="PGRST116"))
            if len(result) > 1:
                return QueryResult.failure(
                    RemoteError(
                        "JSON object requested, multiple (or no) rows returned",
                        code="PGRST116",
                        details=f"The result contains {len(result)} rows",
                    )
                )
            return QueryResult.success(result[0])
        return QueryResult.success(result)

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        if table not in self.tables:
            raise RemoteError(f'relation "public.{table}" does not exist', code="42P01")
        return self.tables[table]

    @staticmethod
    def _parse_columns(columns: str) -> List[Embed]:
        try:
            return parse_select(columns)
        except ValueError as exc:
            raise RemoteError(str(exc), code="PGRST100") from exc

    def _column_sample(self, table: str, column: str) -> Any:
        rows = self.tables.get(table) or []
        if rows and not any(column in row for row in rows):
            raise RemoteError(f"column {table}.{column} does not exist", code="42703")
        for row in rows:
            if row.get(column) is not None:
                return row[column]
        return None

    def _matches(self, table: str, row: Dict[str, Any], predicate: Predicate) -> bool:
        sample = self._column_sample(table, predicate.column)
        try:
            expected = _coerce(sample, predicate.value)
        except _TypeMismatch as exc:
            raise RemoteError(str(exc), code="22P02") from exc
        actual = row.get(predicate.column)
        if predicate.op == "eq":
            if isinstance(expected, float) and isinstance(actual, (int, float)) and not isinstance(actual, bool):
                return float(actual) == expected
            return actual == expected
        if actual is None:
            return False
        if predicate.op == "gte":
            return actual >= expected
        if predicate.op == "lte":
            return actual <= expected
        if predicate.op == "contains":
            return isinstance(actual, list) and all(item in actual for item in expected)
        raise RemoteError(f"Unsupported operator {predicate.op}", code="PGRST100")

    def _embed(self, table: str, row: Dict[str, Any], embeds: List[Embed]) -> Dict[str, Any]:
        out = deepcopy(row)
        for embed in embeds:
            out[embed.alias] = self._related(table, row, embed)
        return out

    def _related(self, table: str, row: Dict[str, Any], embed: Embed) -> Any:
        child = embed.table
        if child == "reviews" and table in REVIEW_TARGETS:
            entity_type = REVIEW_TARGETS[table]
            return [
                self._embed(child, r, embed.embeds)
                for r in self._rows(child)
                if r.get("entity_type") == entity_type and r.get("entity_id") == row.get("id")
            ]
        fk = HAS_MANY.get(table, {}).get(child)
        if fk:
            return [self._embed(child, r, embed.embeds) for r in self._rows(child) if r.get(fk) == row.get("id")]
        fk = BELONGS_TO.get(table, {}).get(child)
        if fk:
            for parent in self._rows(child):
                if parent.get("id") == row.get(fk):
                    return self._embed(child, parent, embed.embeds)
            return None
        raise RemoteError(
            f"Could not find a relationship between '{table}' and '{child}' in the schema cache",
            code="PGRST200",
        )

    # Writes -----------------------------------------------------------------------
    def insert(self, table: str, payload: Dict[str, Any]) -> QueryResult[Any]:
        with self._write_lock:
            return self._insert(table, payload)

    def _insert(self, table: str, payload: Dict[str, Any]) -> QueryResult[Any]:
        try:
            rows = self._rows(table)
            self._check_foreign_keys(table, payload)
        except CatalogError as exc:
            return QueryResult.failure(exc)
        row = deepcopy(payload)
        row["id"] = max((r.get("id") or 0 for r in rows), default=0) + 1
        if table == "appointments":
            row.setdefault("status", "pending")
            row["created_at"] = row["updated_at"] = _now_iso()
        if table == "reviews":
            row.setdefault("date", date.today().isoformat())
            row.setdefault("helpful", 0)
        rows.append(row)
        return QueryResult.success([deepcopy(row)])

    def _check_foreign_keys(self, table: str, payload: Dict[str, Any]) -> None:
        for parent, fk in BELONGS_TO.get(table, {}).items():
            value = payload.get(fk)
            if value is None:
                continue
            if not any(r.get("id") == value for r in self._rows(parent)):
                raise RemoteError(
                    f'insert or update on table "{table}" violates foreign key constraint "{table}_{fk}_fkey"',
                    code="23503",
                    details=f"Key ({fk})=({value}) is not present in table \"{parent}\".",
                )

    def update(self, table: str, values: Dict[str, Any], *, match: Dict[str, Any]) -> QueryResult[Any]:
        with self._write_lock:
            return self._update(table, values, match)

    def _update(self, table: str, values: Dict[str, Any], match: Dict[str, Any]) -> QueryResult[Any]:
        predicates = [Predicate("eq", column, value) for column, value in match.items()]
        try:
            rows = self._rows(table)
            matched = [row for row in rows if all(self._matches(table, row, p) for p in predicates)]
        except CatalogError as exc:
            return QueryResult.failure(exc)
        for row in matched:
            row.update(deepcopy(values))
            if table == "appointments":
                row["updated_at"] = _now_iso()
        return QueryResult.success([deepcopy(row) for row in matched])

    # Auth -------------------------------------------------------------------------
    def sign_up(self, email: str, password: str, *, profile: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        email = email.strip().lower()
        if any(u["email"] == email for u in self.users.values()):
            raise AuthFailure("User already registered", code="user_already_exists")
        if len(password) < 6:
            raise AuthFailure("Password should be at least 6 characters.", code="weak_password")
        user_id = new_access_token()[:16]
        profile = profile or {}
        self.users[user_id] = {
            "id": user_id,
            "email": email,
            "first_name": profile.get("first_name"),
            "last_name": profile.get("last_name"),
            "password_hash": hash_password(password),
        }
        return self._open_session(user_id)

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        email = email.strip().lower()
        for user in self.users.values():
            if user["email"] == email and verify_password(password, user["password_hash"]):
                return self._open_session(user["id"])
        raise AuthFailure("Invalid login credentials", code="invalid_credentials")

    def sign_out(self, access_token: str) -> None:
        self.sessions.pop(access_token, None)

    def reset_password(self, email: str) -> None:
        self.password_reset_requests.append(email.strip().lower())

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        user_id = self.sessions.get(access_token)
        if not user_id or user_id not in self.users:
            return None
        return self._public_user(self.users[user_id])

    def _open_session(self, user_id: str) -> Dict[str, Any]:
        token = new_access_token()
        self.sessions[token] = user_id
        return {"access_token": token, "user": self._public_user(self.users[user_id])}

    @staticmethod
    def _public_user(user: Dict[str, Any]) -> Dict[str, Any]:
        return {k: user.get(k) for k in ("id", "email", "first_name", "last_name")}

    # Health -----------------------------------------------------------------------
    def ping(self) -> bool:
        return True
