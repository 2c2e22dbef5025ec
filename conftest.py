"""Shared fixtures: an in-memory stand-in for the Supabase client and a controllable clock."""
import copy
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from src.database import DatabaseClient


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable query mimicking the postgrest builder calls used by the app."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.filters = []
        self.payload = None
        self._single = False
        self._range = None

    def select(self, *columns, count=None):
        self.op = "select"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def single(self):
        self._single = True
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def insert(self, row):
        self.op = "insert"
        self.payload = row
        return self

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self

    def upsert(self, rows, on_conflict="id"):
        self.op = "upsert"
        self.payload = rows
        return self

    def _matching(self, rows):
        return [r for r in rows if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.op))
        if (self.table, self.op) in self.db.failures:
            raise Exception(f"simulated {self.op} failure on {self.table}")
        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for row in new_rows:
                row = dict(row)
                row.setdefault("id", str(uuid4()))
                rows.append(row)
                inserted.append(copy.deepcopy(row))
            return FakeResponse(inserted)

        if self.op == "update":
            updated = []
            for row in self._matching(rows):
                row.update(self.payload)
                updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        if self.op == "upsert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            for new in new_rows:
                existing = next((r for r in rows if r.get("id") == new.get("id")), None)
                if existing is not None:
                    existing.update(new)
                else:
                    rows.append(dict(new))
            return FakeResponse(copy.deepcopy(new_rows))

        found = copy.deepcopy(self._matching(rows))
        if self._range is not None:
            start, end = self._range
            found = found[start:end + 1]
        if self._single:
            if len(found) != 1:
                raise Exception("JSON object requested, multiple (or no) rows returned")
            return FakeResponse(found[0])
        return FakeResponse(found, count=len(found))


class FakeSubscription:
    def __init__(self, auth, callback):
        self.auth = auth
        self.callback = callback

    def unsubscribe(self):
        if self.callback in self.auth.listeners:
            self.auth.listeners.remove(self.callback)


class FakeAuth:
    def __init__(self):
        self.session = None
        self.accounts = {}
        self.listeners = []
        self.fail_sign_out = False

    def get_session(self):
        return self.session

    def get_user(self):
        if self.session is None:
            return None
        return SimpleNamespace(user=self.session.user)

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return FakeSubscription(self, callback)

    def emit(self, event, session):
        for callback in list(self.listeners):
            callback(event, session)

    def sign_in_with_password(self, credentials):
        email = credentials["email"]
        if self.accounts.get(email) != credentials["password"]:
            raise Exception("Invalid login credentials")
        self.session = SimpleNamespace(user=SimpleNamespace(id="user-1", email=email), access_token="token")
        self.emit("SIGNED_IN", self.session)
        return SimpleNamespace(session=self.session, user=self.session.user)

    def sign_up(self, credentials):
        if credentials["email"] in self.accounts:
            raise Exception("User already registered")
        self.accounts[credentials["email"]] = credentials["password"]
        return SimpleNamespace(session=None, user=SimpleNamespace(id="user-new", email=credentials["email"]))

    def sign_out(self):
        if self.fail_sign_out:
            raise Exception("network down")
        self.session = None
        self.emit("SIGNED_OUT", None)


class FakeSupabase:
    def __init__(self, tables=None):
        self.tables = tables or {}
        self.failures = set()
        self.calls = []
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)

    def fail(self, table, op):
        self.failures.add((table, op))

    def rows(self, table):
        return self.tables.get(table, [])


def _question(qid, topic, correct="B"):
    return {
        "id": qid,
        "topic_id": topic["id"],
        "text": f"Question {qid}?",
        "options": [{"id": k, "text": f"Option {k}"} for k in "ABCD"],
        "correct_answer": correct,
        "rationale": f"<p>Because {correct}.</p>",
        "topics": {
            "id": topic["id"],
            "title": topic["title"],
            "package_id": topic["package_id"],
            "exam_packages": {"title": "Bar Exam"},
        },
    }


@pytest.fixture
def seeded_tables():
    """Package P with topics T1 (3 questions) and T2 (2 questions)."""
    t1 = {"id": "T1", "package_id": "P", "title": "Contract Law", "description": "Contracts", "question_count": 3}
    t2 = {"id": "T2", "package_id": "P", "title": "Civil Procedure", "description": "Procedure", "question_count": 2}
    t3 = {"id": "T3", "package_id": "Q", "title": "Other", "description": "Elsewhere", "question_count": 0}
    return {
        "exam_packages": [
            {"id": "P", "title": "Bar Exam", "description": "Full prep", "price": 99.9, "features": ["500 questions"]},
        ],
        "topics": [t1, t2, t3],
        "questions": [
            _question("q1", t1, "A"),
            _question("q2", t1, "B"),
            _question("q3", t1, "C"),
            _question("q4", t2, "D"),
            _question("q5", t2, "A"),
        ],
        "practice_sessions": [],
        "question_attempts": [],
    }


@pytest.fixture
def fake_supabase(seeded_tables):
    return FakeSupabase(seeded_tables)


@pytest.fixture
def database(fake_supabase):
    return DatabaseClient(fake_supabase)


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()
