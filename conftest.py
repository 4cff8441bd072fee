"""
Shared fakes for the Supabase client and object storage.
"""

import os

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import copy
import itertools
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from adapters.storage_adapter import BaseStorageAdapter, SignedUpload
from common.exceptions import StorageUnavailableException


OWNER_ID = "user-owner"
OTHER_ID = "user-other"
COLLABORATOR_ID = "user-collaborator"
PASSWORD = "correct-horse-battery"

TOKENS = {
    "owner-token": SimpleNamespace(id=OWNER_ID, email="owner@example.com", user_metadata={"name": "Owner"}),
    "other-token": SimpleNamespace(id=OTHER_ID, email="other@example.com", user_metadata={}),
    "collaborator-token": SimpleNamespace(id=COLLABORATOR_ID, email="collab@example.com", user_metadata={}),
}


class FakeAPIError(Exception):
    """Stands in for postgrest's APIError, which carries the Postgres code."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


class FakeQuery:
    """Just enough of the PostgREST query builder for the repositories."""

    _ids = itertools.count(1)

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.operation = "select"
        self.payload: Optional[Dict[str, Any]] = None
        self.filters: List[tuple] = []
        self.row_limit: Optional[int] = None

    def select(self, *columns):
        return self

    def insert(self, payload):
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload):
        self.operation = "update"
        self.payload = payload
        return self

    def delete(self):
        self.operation = "delete"
        return self

    def eq(self, field, value):
        self.filters.append((field, value))
        return self

    def in_(self, field, values):
        self.filters.append((field, list(values)))
        return self

    def order(self, field, desc=False):
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        for field, expected in self.filters:
            if "." in field:
                relation, column = field.split(".", 1)
                related = row.get(relation) or []
                if not any(r.get(column) == expected for r in related):
                    return False
                continue
            value = row.get(field)
            if isinstance(expected, list):
                if value not in expected:
                    return False
            elif value != expected:
                return False
        return True

    def execute(self):
        error = self.client.errors.get((self.table, self.operation))
        if error is not None:
            raise error

        rows = self.client.tables.setdefault(self.table, [])
        self.client.calls.append((self.table, self.operation, list(self.filters), self.payload))

        if self.operation == "insert":
            row = dict(self.payload)
            row.setdefault("id", f"{self.table}-{next(self._ids)}")
            rows.append(row)
            return SimpleNamespace(data=[copy.deepcopy(row)])

        matched = [r for r in rows if self._matches(r)]
        if self.operation == "update":
            for r in matched:
                r.update(self.payload)
        elif self.operation == "delete":
            for r in matched:
                rows.remove(r)
        if self.row_limit is not None:
            matched = matched[:self.row_limit]
        return SimpleNamespace(data=copy.deepcopy(matched))


class FakeAuth:
    def __init__(self):
        self.signed_out: List[str] = []
        self.admin = SimpleNamespace(sign_out=self.signed_out.append)

    def get_user(self, token):
        user = TOKENS.get(token)
        if user is None:
            raise Exception("invalid JWT")
        return SimpleNamespace(user=user)

    @staticmethod
    def _session(user):
        session = SimpleNamespace(access_token=f"access-{user.id}", refresh_token="refresh", expires_in=3600)
        return SimpleNamespace(user=user, session=session)

    def sign_in_with_password(self, credentials):
        if credentials["password"] != PASSWORD:
            raise Exception("Invalid login credentials")
        return self._session(TOKENS["owner-token"])

    def sign_up(self, credentials):
        if credentials["email"] == "owner@example.com":
            raise Exception("User already registered")
        user = SimpleNamespace(id="user-new", email=credentials["email"], user_metadata=credentials["options"]["data"])
        return self._session(user)


class FakeSupabase:
    def __init__(self, tables: Optional[Dict[str, List[dict]]] = None):
        self.tables = tables or {}
        self.errors: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        self.auth = FakeAuth()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)


class FakeStorage(BaseStorageAdapter):
    """In-memory bucket; `fail_sign` / `fail_remove` simulate provider errors."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.signed_paths: List[str] = []
        self.fail_sign = False
        self.fail_remove = False
        self.silent_remove = False

    async def create_signed_upload_url(self, path: str) -> SignedUpload:
        if self.fail_sign:
            raise StorageUnavailableException(
                detail="Failed to create signed upload URL",
                operation="create_signed_upload_url",
                storage_path=path
            )
        self.signed_paths.append(path)
        token = f"token-{len(self.signed_paths)}"
        return SignedUpload(
            url=f"https://storage.test/object/upload/sign/docs/{path}?token={token}",
            token=token,
            path=path,
        )

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        if path not in self.objects:
            raise StorageUnavailableException(
                detail="Erro ao gerar link de download",
                operation="create_signed_url",
                storage_path=path
            )
        return f"https://storage.test/object/sign/docs/{path}?expires_in={expires_in}"

    async def remove(self, paths: List[str]) -> List[str]:
        if self.fail_remove:
            raise StorageUnavailableException(detail="Erro ao excluir arquivo", operation="remove")
        if self.silent_remove:
            return []
        removed = [p for p in paths if p in self.objects]
        for p in removed:
            del self.objects[p]
        return removed


def process_row(process_id: str, user_id: str, **extra) -> dict:
    row = {
        "id": process_id,
        "user_id": user_id,
        "company_id": "company-1",
        "license_type": "LP",
        "activity": "Mineração de areia",
        "status": "submitted",
        "progress": 0,
        "environmental_impact": "baixo",
        "created_at": "2024-05-01T12:00:00+00:00",
    }
    row.update(extra)
    return row


@pytest.fixture
def supabase():
    return FakeSupabase({
        "license_processes": [process_row("P1", OWNER_ID)],
        "process_collaborators": [],
    })


@pytest.fixture
def storage():
    return FakeStorage()
