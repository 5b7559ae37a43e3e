"""
Pytest configuration and an in-memory stand-in for the Supabase client.

The fake implements the slice of the SDK the application uses: the
PostgREST query builder, storage buckets and password auth. It keeps rows
in plain dicts so tests can seed and inspect them directly.
"""
import datetime
import itertools
import uuid
from types import SimpleNamespace

import pytest
from supabase import AuthError, PostgrestAPIError, StorageException

import db_utils


class FakeAuthError(AuthError):
    def __init__(self, message):
        Exception.__init__(self, message)
        self.message = message
        self.code = None
        self.name = "AuthApiError"
        self.status = 400


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


def _project(row, columns):
    if columns.strip() == "*":
        return dict(row)
    return {c.strip(): row.get(c.strip()) for c in columns.split(",")}


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.count_mode = None
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_key = None
        self.descending = False
        self.limit_n = None

    # --- builder ---
    def select(self, columns="*", count=None):
        self.action, self.columns, self.count_mode = "select", columns, count
        return self

    def insert(self, values):
        self.action, self.payload = "insert", values
        return self

    def update(self, values):
        self.action, self.payload = "update", values
        return self

    def upsert(self, values, on_conflict=None):
        self.action, self.payload, self.on_conflict = "upsert", values, on_conflict
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda r: r.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda r: r.get(column) in values)
        return self

    def is_(self, column, value):
        self.filters.append(lambda r: r.get(column) is None if value == "null" else r.get(column) == value)
        return self

    def order(self, column, desc=False):
        self.order_key, self.descending = column, desc
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    # --- execution ---
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.action))
        failure = self.db.failures.get((self.table, self.action))
        if failure:
            raise PostgrestAPIError({"message": failure, "code": "P0001"})
        rows = self.db.tables.setdefault(self.table, [])
        return getattr(self, f"_{self.action}")(rows)

    def _select(self, rows):
        found = [r for r in rows if self._matches(r)]
        if self.order_key:
            present = [r for r in found if r.get(self.order_key) is not None]
            missing = [r for r in found if r.get(self.order_key) is None]
            present.sort(key=lambda r: r[self.order_key], reverse=self.descending)
            found = present + missing
        total = len(found)
        if self.limit_n is not None:
            found = found[:self.limit_n]
        return FakeResponse([_project(r, self.columns) for r in found],
                            count=total if self.count_mode else None)

    def _insert(self, rows):
        values = self.payload if isinstance(self.payload, list) else [self.payload]
        created = []
        for value in values:
            row = {"id": str(uuid.uuid4()), "created_at": self.db.now(), **value}
            self.db.check_unique(self.table, row)
            rows.append(row)
            created.append(dict(row))
        return FakeResponse(created)

    def _update(self, rows):
        changed = []
        for row in rows:
            if self._matches(row):
                row.update(self.payload)
                changed.append(dict(row))
        return FakeResponse(changed)

    def _upsert(self, rows):
        keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
        values = self.payload if isinstance(self.payload, list) else [self.payload]
        result = []
        for value in values:
            existing = next((r for r in rows if all(r.get(k) == value.get(k) for k in keys)), None)
            if existing is not None:
                existing.update(value)
                result.append(dict(existing))
            else:
                row = {"id": str(uuid.uuid4()), "created_at": self.db.now(), **value}
                rows.append(row)
                result.append(dict(row))
        return FakeResponse(result)

    def _delete(self, rows):
        removed = [r for r in rows if self._matches(r)]
        rows[:] = [r for r in rows if not self._matches(r)]
        return FakeResponse(removed)


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, data, file_options=None):
        if self.storage.fail_uploads:
            raise StorageException("Upload rejected")
        self.storage.objects[(self.name, path)] = (data, file_options)

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"

    def download(self, path):
        if (self.name, path) not in self.storage.objects:
            raise StorageException("Object not found")
        return self.storage.objects[(self.name, path)][0]

    def remove(self, paths):
        for path in paths:
            self.storage.objects.pop((self.name, path), None)


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.fail_uploads = False

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeAuth:
    """Password auth whose sign-up also creates the profile row, like the backend trigger."""

    def __init__(self, db):
        self.db = db
        self.accounts = {}
        self.session = None
        self.confirm_email = False
        self._tokens = itertools.count(1)

    def _new_session(self, user):
        return SimpleNamespace(access_token=f"token-{next(self._tokens)}", user=user)

    def sign_up(self, credentials):
        email = credentials["email"]
        if email in self.accounts:
            raise FakeAuthError("User already registered")
        metadata = credentials.get("options", {}).get("data", {})
        user = SimpleNamespace(id=str(uuid.uuid4()), email=email, user_metadata=metadata)
        self.accounts[email] = (credentials["password"], user)
        role = metadata.get("role", "student")
        self.db.tables.setdefault("profiles", []).append({
            "id": str(uuid.uuid4()),
            "user_id": user.id,
            "full_name": metadata.get("full_name"),
            "role": role,
            "approval_status": "pending" if role == "mentor" else "approved",
            "created_at": self.db.now(),
            **{k: metadata.get(k) for k in ("expertise", "experience", "bio", "age", "phone")},
        })
        session = None if self.confirm_email else self._new_session(user)
        self.session = session
        return SimpleNamespace(user=user, session=session)

    def sign_in_with_password(self, credentials):
        account = self.accounts.get(credentials["email"])
        if account is None or account[0] != credentials["password"]:
            raise FakeAuthError("Invalid login credentials")
        self.session = self._new_session(account[1])
        return SimpleNamespace(user=account[1], session=self.session)

    def sign_out(self):
        self.session = None

    def get_session(self):
        return self.session


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = {}
        self.unique = {
            "enrollments": [("user_id", "class_id")],
            "assignment_submissions": [("assignment_id", "user_id")],
        }
        self.storage = FakeStorage()
        self.auth = FakeAuth(self)
        self._clock = itertools.count()

    def table(self, name):
        return FakeQuery(self, name)

    def now(self):
        # Strictly increasing timestamps keep "newest first" ordering deterministic.
        base = datetime.datetime(2025, 1, 1, tzinfo=datetime.timezone.utc)
        return (base + datetime.timedelta(seconds=next(self._clock))).isoformat()

    def check_unique(self, table, row):
        for keys in self.unique.get(table, []):
            if any(all(r.get(k) == row.get(k) for k in keys) for r in self.tables.get(table, [])):
                raise PostgrestAPIError({"message": f"duplicate key value violates unique constraint on {table}",
                                         "code": "23505"})

    def seed(self, table, *rows):
        created = []
        for row in rows:
            full = {"id": str(uuid.uuid4()), "created_at": self.now(), **row}
            self.tables.setdefault(table, []).append(full)
            created.append(full)
        return created[0] if len(created) == 1 else created

    def rows(self, table, **filters):
        return [r for r in self.tables.get(table, []) if all(r.get(k) == v for k, v in filters.items())]


@pytest.fixture
def fake_db(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(db_utils, "get_client", lambda: fake)
    return fake


@pytest.fixture
def state():
    return {}
