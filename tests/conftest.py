import copy
import os
import re
import uuid
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio

# Settings are read at import time.
os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017/test")
os.environ.setdefault("DB_NAME", "civreg_test")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from civreg.core import db as db_module  # noqa: E402
from civreg.core.security import create_access_token  # noqa: E402


def _get(doc, key):
    cur = doc
    for part in key.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def _match_value(doc, key, cond):
    value = _get(doc, key)
    if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
        for op, arg in cond.items():
            if op == "$in" and value not in arg:
                return False
            if op == "$ne" and value == arg:
                return False
            if op == "$exists" and (key in doc) != bool(arg):
                return False
            if op == "$regex":
                flags = re.I if "i" in cond.get("$options", "") else 0
                if value is None or not re.search(arg, str(value), flags):
                    return False
        return True
    return value == cond


def matches(doc, filt):
    for key, cond in (filt or {}).items():
        if key == "$or":
            if not any(matches(doc, f) for f in cond):
                return False
        elif not _match_value(doc, key, cond):
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs
        self._skip = 0
        self._limit = None

    def sort(self, field, direction=1):
        present = [d for d in self._docs if d.get(field) is not None]
        missing = [d for d in self._docs if d.get(field) is None]
        self._docs = sorted(present, key=lambda d: d[field], reverse=direction < 0) + missing
        return self

    def skip(self, n):
        self._skip = n
        return self

    def limit(self, n):
        self._limit = n
        return self

    async def to_list(self, length=None):
        docs = self._docs[self._skip:]
        n = self._limit or length
        if n:
            docs = docs[:n]
        return [copy.deepcopy(d) for d in docs]


class FakeCollection:
    """The slice of the Motor collection API the services use, kept in memory."""

    def __init__(self):
        self.docs = []
        self.indexes = []

    async def find_one(self, filt):
        for d in self.docs:
            if matches(d, filt):
                return copy.deepcopy(d)
        return None

    def find(self, filt=None):
        return FakeCursor([d for d in self.docs if matches(d, filt)])

    async def insert_one(self, doc):
        doc.setdefault("_id", uuid.uuid4().hex)
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, filt, ops):
        for d in self.docs:
            if matches(d, filt):
                self._apply(d, ops)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def update_many(self, filt, ops):
        hits = [d for d in self.docs if matches(d, filt)]
        for d in hits:
            self._apply(d, ops)
        return SimpleNamespace(matched_count=len(hits), modified_count=len(hits))

    @staticmethod
    def _apply(doc, ops):
        for k, v in ops.get("$set", {}).items():
            doc[k] = copy.deepcopy(v)
        for k, v in ops.get("$push", {}).items():
            doc.setdefault(k, []).append(copy.deepcopy(v))
        for k, v in ops.get("$inc", {}).items():
            doc[k] = doc.get(k, 0) + v

    async def count_documents(self, filt):
        return sum(1 for d in self.docs if matches(d, filt))

    async def distinct(self, key):
        out = []
        for d in self.docs:
            v = d.get(key)
            if v is not None and v not in out:
                out.append(v)
        return out

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return str(keys)


class FakeDB:
    def __init__(self):
        self._collections = {}

    def __getitem__(self, name):
        return self._collections.setdefault(name, FakeCollection())

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


@pytest.fixture
def fake_db(monkeypatch):
    fake = FakeDB()
    monkeypatch.setattr(db_module, "_db", fake)
    return fake


def _auth(sub, name, role):
    return {"Authorization": f"Bearer {create_access_token(sub, name, role)}"}


@pytest.fixture
def citizen_headers():
    return _auth("citizen-1", "Juana Dela Cruz", "CITIZEN")


@pytest.fixture
def other_citizen_headers():
    return _auth("citizen-2", "Pedro Santos", "CITIZEN")


@pytest.fixture
def staff_headers():
    return _auth("staff-1", "Registry Clerk", "EMPLOYEE")


@pytest.fixture
def admin_headers():
    return _auth("admin-1", "Civil Registrar", "ADMIN")


@pytest.fixture
def app(fake_db):
    from civreg.main import app as fastapi_app
    return fastapi_app


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
