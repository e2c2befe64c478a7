import copy
import os
import re
from datetime import datetime, timedelta, timezone

import pyotp
import pytest
import pytest_asyncio
from bson import ObjectId

os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret")

from app.core.config import Settings, get_settings
from app.core.security import get_password_hash
from app.db.mongo import mongodb
from app.services.notifier import get_notifier


_MISSING = object()


class FakeResult:
    def __init__(self, inserted_id=None, matched_count=0, modified_count=0):
        self.inserted_id = inserted_id
        self.matched_count = matched_count
        self.modified_count = modified_count


def _equals(value, expected, fold=False):
    if isinstance(expected, re.Pattern):
        return isinstance(value, str) and expected.search(value) is not None
    if value is _MISSING:
        return expected is None
    if fold and isinstance(value, str) and isinstance(expected, str):
        return value.casefold() == expected.casefold()
    return value == expected


def _matches(doc, query, fold=False):
    for key, cond in query.items():
        if key == "$or":
            if not any(_matches(doc, sub, fold) for sub in cond):
                return False
            continue
        value = doc.get(key, _MISSING)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$in":
                    if not any(_equals(value, item) for item in arg):
                        return False
                elif op == "$exists":
                    if (value is not _MISSING) != bool(arg):
                        return False
                else:
                    raise NotImplementedError(op)
        elif not _equals(value, cond, fold):
            return False
    return True


def _apply_update(doc, update):
    for op, fields in update.items():
        if op == "$set":
            doc.update(copy.deepcopy(fields))
        elif op == "$unset":
            for field in fields:
                doc.pop(field, None)
        else:
            raise NotImplementedError(op)


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: (d.get(key) is None, d.get(key)), reverse=direction < 0)
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._docs:
            yield doc

    async def to_list(self, length=None):
        return self._docs[:length] if length else list(self._docs)


class FakeCollection:
    """In-memory subset of the motor collection API used by the services."""

    def __init__(self):
        self.docs = []

    async def find_one(self, query, session=None, collation=None):
        # Any collation here stands for the case-insensitive email collation
        for doc in self.docs:
            if _matches(doc, query, fold=collation is not None):
                return copy.deepcopy(doc)
        return None

    def find(self, query, session=None):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if _matches(d, query)])

    async def insert_one(self, document, session=None):
        document.setdefault("_id", ObjectId())
        self.docs.append(copy.deepcopy(document))
        return FakeResult(inserted_id=document["_id"])

    async def update_one(self, query, update, session=None):
        for doc in self.docs:
            if _matches(doc, query):
                _apply_update(doc, update)
                return FakeResult(matched_count=1, modified_count=1)
        return FakeResult()

    async def update_many(self, query, update, session=None):
        count = 0
        for doc in self.docs:
            if _matches(doc, query):
                _apply_update(doc, update)
                count += 1
        return FakeResult(matched_count=count, modified_count=count)


class FakeDatabase:
    def __init__(self):
        self._collections = {}

    def __getitem__(self, name):
        return self._collections.setdefault(name, FakeCollection())

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


class FakeSession:
    def __init__(self, client):
        self.client = client

    async def end_session(self):
        self.client.ended += 1
        if self.client.fail_on_end:
            raise RuntimeError("connection reset while ending session")


class FakeClient:
    def __init__(self):
        self.started = 0
        self.ended = 0
        self.fail_on_start = False
        self.fail_on_end = False

    async def start_session(self):
        if self.fail_on_start:
            raise RuntimeError("no servers available")
        self.started += 1
        return FakeSession(self)


class RecordingNotifier:
    """Stands in for NotificationService and records what would have been sent."""

    def __init__(self):
        self.calls = []

    async def notify_new_lead(self, name, email, message):
        self.calls.append(("lead", name, email, message))

    async def send_activation_email(self, to_email, name, token):
        self.calls.append(("activation", to_email, name, token))


@pytest.fixture
def test_settings():
    return Settings(
        MONGO_URI="mongodb://localhost:27017",
        JWT_SECRET="test-secret",
        PASSWORD_HASH_ROUNDS=4,
    )


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_db(fake_client):
    db = FakeDatabase()
    original = (mongodb.client, mongodb.db)
    mongodb.client, mongodb.db = fake_client, db
    yield db
    mongodb.client, mongodb.db = original


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_user(fake_db, test_settings):
    """Insert an account and return (document, totp secret)."""

    async def _make_user(email="u@x.com", password="correct-horse", mfa_setup_complete=True, **extra):
        secret = pyotp.random_base32()
        doc = {
            "name": "Test User",
            "email": email,
            "password_hash": get_password_hash(password, test_settings.PASSWORD_HASH_ROUNDS),
            "totp_secret": secret,
            "monitoring_status": "ACTIVE",
            "device_count": 3,
            "mfa_setup_complete": mfa_setup_complete,
            "active": mfa_setup_complete,
        }
        doc.update(extra)
        await fake_db.users.insert_one(doc)
        return doc, secret

    return _make_user


@pytest.fixture
def reset_token_fields():
    def _fields(token="a" * 64, minutes=60):
        return {"reset_token": token, "reset_token_expires": datetime.now(timezone.utc) + timedelta(minutes=minutes)}
    return _fields


@pytest_asyncio.fixture
async def client(fake_db, test_settings, notifier):
    from main import app

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_notifier] = lambda: notifier
    from httpx import AsyncClient, ASGITransport
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
