import copy
from types import SimpleNamespace

import httpx
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError

from schoolvote import crud
from schoolvote.client.api import ApiClient
from schoolvote.client.storage import LocalStore
from schoolvote.database.connection import get_database
from schoolvote.main import app
from schoolvote.schemas import UserCreate
from schoolvote.security import create_access_token


# --- In-memory stand-in for the handful of pymongo calls the app makes ---

def _matches(doc, query):
    for key, cond in (query or {}).items():
        value = doc.get(key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$ne" and value == arg:
                    return False
                if op == "$in" and value not in arg:
                    return False
        elif value != cond:
            return False
    return True


def _sort_key(field):
    return lambda d: (d.get(field) is None, d.get(field) if d.get(field) is not None else "")


class FakeCursor(list):
    def sort(self, key_or_list, direction=1):
        keys = key_or_list if isinstance(key_or_list, list) else [(key_or_list, direction)]
        for field, order in reversed(keys):
            super().sort(key=_sort_key(field), reverse=order == -1)
        return self


class FakeCollection:
    def __init__(self):
        self.docs = []

    def create_index(self, *args, **kwargs):
        return "fake_index"

    def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        if any(d["_id"] == doc["_id"] for d in self.docs):
            raise DuplicateKeyError(f"duplicate _id {doc['_id']}")
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"], acknowledged=True)

    def insert_many(self, docs):
        return SimpleNamespace(inserted_ids=[self.insert_one(d).inserted_id for d in docs])

    def find(self, query=None, projection=None):
        return FakeCursor(copy.deepcopy(d) for d in self.docs if _matches(d, query))

    def find_one(self, query=None):
        for d in self.docs:
            if _matches(d, query):
                return copy.deepcopy(d)
        return None

    def update_one(self, query, update, upsert=False):
        target = next((d for d in self.docs if _matches(d, query)), None)
        upserted_id = None
        if target is None:
            if not upsert:
                return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)
            target = {k: v for k, v in query.items() if not isinstance(v, dict)}
            target.setdefault("_id", ObjectId())
            self.docs.append(target)
            upserted_id = target["_id"]
        for key, value in update.get("$set", {}).items():
            target[key] = copy.deepcopy(value)
        for key, value in update.get("$inc", {}).items():
            target[key] = target.get(key, 0) + value
        return SimpleNamespace(matched_count=0 if upserted_id else 1, modified_count=1, upserted_id=upserted_id)

    def delete_one(self, query):
        for i, d in enumerate(self.docs):
            if _matches(d, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    def delete_many(self, query):
        keep = [d for d in self.docs if not _matches(d, query)]
        deleted = len(self.docs) - len(keep)
        self.docs = keep
        return SimpleNamespace(deleted_count=deleted)

    def count_documents(self, query):
        return sum(1 for d in self.docs if _matches(d, query))

    def aggregate(self, pipeline):
        rows = copy.deepcopy(self.docs)
        for stage in pipeline:
            if "$match" in stage:
                rows = [r for r in rows if _matches(r, stage["$match"])]
            elif "$group" in stage:
                field = stage["$group"]["_id"].lstrip("$")
                counts = {}
                for r in rows:
                    counts[r.get(field)] = counts.get(r.get(field), 0) + 1
                rows = [{"_id": k, "count": v} for k, v in counts.items()]
            elif "$sort" in stage:
                (field, order), = stage["$sort"].items()
                rows = FakeCursor(rows).sort(field, order)
        return iter(rows)


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    def get_collection(self, name):
        return self[name]

    def command(self, name):
        return {"ok": 1.0}


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def client(fake_db):
    app.dependency_overrides[get_database] = lambda: fake_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db, username, role):
    user = crud.create_user(db, UserCreate(username=username, fullName=f"{username.title()} User", password="secret123", role=role))
    token = create_access_token({"sub": user["id"], "role": role})
    return user, {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(fake_db):
    return _make_user(fake_db, "admin", "admin")


@pytest.fixture
def officer(fake_db):
    return _make_user(fake_db, "officer", "officer")


@pytest.fixture
def viewer(fake_db):
    return _make_user(fake_db, "viewer", "viewer")


# --- Client side ---

@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "storage.json")


@pytest.fixture
def make_api(store):
    def factory(handler):
        return ApiClient(store, base_url="http://testserver", transport=httpx.MockTransport(handler))

    return factory
