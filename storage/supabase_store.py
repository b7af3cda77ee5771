from __future__ import annotations

from typing import Any, Callable, Dict, Optional

import httpx
from postgrest import APIError

from supabase import AuthError, Client, create_client

from catalog.errors import AuthFailure, NotFound, QueryResult, RemoteError
from catalog.queries import TableQuery

_SINGLE_ROW_CODES = {"PGRST116", "204"}


def _is_no_rows(exc: APIError) -> bool:
    # PGRST116 covers both "0 rows" and "multiple rows"; only the first is absence.
    if exc.code not in _SINGLE_ROW_CODES:
        return False
    return exc.code == "204" or "0 rows" in (exc.details or "")


class SupabaseStore:
    """Executes composed table queries and auth calls against a hosted Supabase project."""

    def __init__(self, url: str, key: str) -> None:
        self.client: Client = create_client(url, key)
        # Auth calls mutate the client's session; keep them off the data client.
        self.auth_client: Client = create_client(url, key)

    def _table(self, name: str):
        return self.client.table(name)

    def _build(self, query: TableQuery):
        builder = self._table(query.table).select(query.columns)
        for predicate in query.predicates:
            builder = getattr(builder, predicate.op)(predicate.column, predicate.value)
        if query.order is not None:
            builder = builder.order(query.order.column, desc=query.order.desc)
        if query.single:
            builder = builder.maybe_single()
        return builder

    def _execute(self, fn: Callable[[], Any], *, single: bool = False) -> QueryResult[Any]:
        try:
            resp = fn()
        except APIError as exc:
            if single and _is_no_rows(exc):
                return QueryResult.failure(NotFound("No matching row", code=exc.code))
            return QueryResult.failure(
                RemoteError(exc.message or str(exc), code=exc.code, details=exc.details or exc.hint)
            )
        except httpx.HTTPError as exc:
            return QueryResult.failure(RemoteError(str(exc) or type(exc).__name__, code="network"))
        data = getattr(resp, "data", None) if resp is not None else None
        if single:
            if data is None or data == []:
                return QueryResult.failure(NotFound("No matching row"))
            return QueryResult.success(data)
        return QueryResult.success(data or [])

    def fetch(self, query: TableQuery) -> QueryResult[Any]:
        return self._execute(lambda: self._build(query).execute(), single=query.single)

    def insert(self, table: str, payload: Dict[str, Any]) -> QueryResult[Any]:
        return self._execute(lambda: self._table(table).insert(payload).execute())

    def update(self, table: str, values: Dict[str, Any], *, match: Dict[str, Any]) -> QueryResult[Any]:
        def run():
            builder = self._table(table).update(values)
            for column, value in match.items():
                builder = builder.eq(column, value)
            return builder.execute()

        return self._execute(run)

    # Auth -------------------------------------------------------------------------

    def sign_up(self, email: str, password: str, *, profile: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        credentials: Dict[str, Any] = {"email": email, "password": password}
        if profile:
            credentials["options"] = {"data": profile}
        try:
            resp = self.auth_client.auth.sign_up(credentials)
        except AuthError as exc:
            raise AuthFailure(str(exc), code=getattr(exc, "code", None)) from exc
        return _auth_payload(resp)

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        try:
            resp = self.auth_client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthError as exc:
            raise AuthFailure(str(exc), code=getattr(exc, "code", None)) from exc
        return _auth_payload(resp)

    def sign_out(self, access_token: str) -> None:
        try:
            self.auth_client.auth.admin.sign_out(access_token)
        except AuthError as exc:
            raise AuthFailure(str(exc), code=getattr(exc, "code", None)) from exc

    def reset_password(self, email: str) -> None:
        try:
            self.auth_client.auth.reset_password_for_email(email)
        except AuthError as exc:
            raise AuthFailure(str(exc), code=getattr(exc, "code", None)) from exc

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        try:
            resp = self.auth_client.auth.get_user(access_token)
        except AuthError:
            return None
        user = getattr(resp, "user", None)
        return _user_payload(user) if user else None

    def ping(self) -> bool:
        return self.fetch(TableQuery("campuses", "id")).ok


def _user_payload(user: Any) -> Dict[str, Any]:
    metadata = getattr(user, "user_metadata", None) or {}
    return {
        "id": str(user.id),
        "email": getattr(user, "email", None),
        "first_name": metadata.get("first_name"),
        "last_name": metadata.get("last_name"),
    }


def _auth_payload(resp: Any) -> Dict[str, Any]:
    user = getattr(resp, "user", None)
    if user is None:
        raise AuthFailure("Authentication failed")
    session = getattr(resp, "session", None)
    return {
        "access_token": session.access_token if session else None,
        "user": _user_payload(user),
    }
