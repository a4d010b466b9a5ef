"""
Shared test setup: environment, an in-memory Supabase double and a
scriptable applications backend for the client-side tests.
"""

import asyncio
import copy
import os
import uuid
from types import SimpleNamespace

import pytest

os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-for-the-portal-suite")

from app.schemas.applications import APPLICATION_ADAPTER, ApplicationStatus  # noqa: E402
from app.utils.exceptions import BackendError  # noqa: E402


# ---- Supabase double ----

class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.order_by = None

    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, data):
        self.op = "insert"
        self.payload = data
        return self

    def update(self, data):
        self.op = "update"
        self.payload = data
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def _matches(self, row):
        return all(row.get(c) == v for c, v in self.filters)

    def execute(self):
        if self.table in self.db.failing:
            raise RuntimeError(f"{self.table} unavailable")
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            rows.extend(copy.deepcopy(new_rows))
            return SimpleNamespace(data=copy.deepcopy(new_rows))

        matched = [r for r in rows if self._matches(r)]
        if self.op == "update":
            for r in matched:
                r.update(copy.deepcopy(self.payload))
        elif self.op == "delete":
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
        elif self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column) or "", reverse=desc)
        return SimpleNamespace(data=copy.deepcopy(matched))


class FakeBucket:
    def __init__(self, db, name):
        self.db = db
        self.name = name

    def upload(self, path, file, file_options=None):
        # paths look like "<application id>/<document key>_<file name>"
        if path.split("/")[-1].split("_")[0] in self.db.failing_uploads:
            raise RuntimeError(f"upload of {path} rejected")
        self.db.uploads[f"{self.name}/{path}"] = (file, (file_options or {}).get("content-type"))
        return {"path": path}

    def get_public_url(self, path):
        return f"https://storage.test/{self.name}/{path}"

    def remove(self, paths):
        for path in paths:
            self.db.uploads.pop(f"{self.name}/{path}", None)
        return [{"name": p} for p in paths]


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.uploads = {}
        self.failing = set()
        self.failing_uploads = set()
        self.storage = SimpleNamespace(from_=lambda bucket: FakeBucket(self, bucket))

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def fake_db():
    from app.db.supabase import set_supabase
    from app.services.container import application_service, auth_service
    from app.utils.limiter import limiter

    db = FakeSupabase()
    set_supabase(db)
    application_service._client = db
    auth_service._client = db
    limiter.enabled = False
    yield db
    set_supabase(None)
    application_service._client = None
    auth_service._client = None
    limiter.enabled = True


@pytest.fixture
def staff_user(fake_db):
    from app.services.container import auth_service

    user = auth_service.create_staff_user(
        email="hr@example.com", password="correct-horse-battery", name="HR Admin", role="hr"
    )
    token = auth_service.generate_token(user_id=user["id"], role=user["role"], email=user["email"])
    return {**user, "token": token, "headers": {"Authorization": f"Bearer {token}"}}


def application_row(name="Asha Verma", department="Tech", status="Pending", created_at="2026-01-10T10:00:00+05:30", **extra):
    """A database row as stored by the application service."""
    return {
        "id": extra.pop("id", str(uuid.uuid4())),
        "kind": "individual",
        "status": status,
        "form_data": {
            "full_name": name,
            "email": extra.pop("email", f"{name.split()[0].lower()}@example.com"),
            "department": department,
            **extra,
        },
        "documents": {},
        "schema_version": 1,
        "created_at": created_at,
        "updated_at": created_at,
    }


# ---- client-side backend double ----

def make_record(record_id, name, department="Tech", status="Pending", created_at="2026-01-10T10:00:00+05:30"):
    return APPLICATION_ADAPTER.validate_python({
        "kind": "individual",
        "id": record_id,
        "full_name": name,
        "email": f"{name.split()[0].lower()}@example.com",
        "department": department,
        "status": status,
        "created_at": created_at,
    })


class FakeBackend:
    """
    Scriptable stand-in for PortalClient.

    ``records`` is the server truth. Set ``fail_fetch`` / ``fail_mutations``
    to make calls raise BackendError; set ``gate`` to an asyncio.Event to hold
    mutation calls until the test releases them.
    """

    def __init__(self, records=None):
        self.records = list(records or [])
        self.fail_fetch = False
        self.fail_mutations = False
        self.gate = None
        self.fetch_gates = []
        self.calls = []

    async def fetch_applications(self):
        self.calls.append(("fetch",))
        # The response reflects server state at request time
        snapshot = list(self.records)
        if self.fetch_gates:
            await self.fetch_gates.pop(0).wait()
        if self.fail_fetch:
            raise BackendError("Failed to connect: backend down")
        return snapshot

    async def _hold(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_mutations:
            raise BackendError("Server rejected the change", status_code=500)

    async def update_status(self, application_id, status):
        self.calls.append(("update_status", application_id, ApplicationStatus(status)))
        await self._hold()
        self.records = [
            r.model_copy(update={"status": ApplicationStatus(status)}) if r.id == application_id else r
            for r in self.records
        ]
        return {"id": application_id, "status": ApplicationStatus(status).value}

    async def delete_application(self, application_id):
        self.calls.append(("delete", application_id))
        await self._hold()
        self.records = [r for r in self.records if r.id != application_id]


def run(coro):
    return asyncio.run(coro)
