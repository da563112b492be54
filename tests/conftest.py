from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from app_settings import get_settings
from contact_store import SqliteContactStore
from db_models import Contact, LinkPrecedence
from db_setup import get_db_connection, init_db
from exceptions import ConstraintError, StoreError

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryContactStore:
    """Dict-backed ContactStore used to exercise the core without sqlite."""

    def __init__(self):
        self.rows = {}
        self.writes = []
        self.fail_inserts = 0
        self._next_id = 1

    @contextmanager
    def transaction(self):
        snapshot = (dict(self.rows), self._next_id)
        try:
            yield self
        except BaseException:
            self.rows, self._next_id = snapshot
            raise

    def _live(self):
        return [c for c in self.rows.values() if c.deletedAt is None]

    def find_by_email_or_phone(self, email, phone):
        return [
            c
            for c in self._live()
            if (email is not None and c.email == email) or (phone is not None and c.phoneNumber == phone)
        ]

    def find_group(self, primary_id):
        group = [c for c in self._live() if c.id == primary_id or c.linkedId == primary_id]
        return sorted(group, key=lambda c: (c.createdAt, c.id))

    def insert(self, email, phone, linked_id, precedence, created_at=None):
        if email is None and phone is None:
            raise ConstraintError("insert: a contact needs an email or a phoneNumber")
        if self.fail_inserts:
            self.fail_inserts -= 1
            raise ConstraintError("insert: UNIQUE constraint failed")
        if any(c.email == email and c.phoneNumber == phone for c in self._live()):
            raise ConstraintError("insert: UNIQUE constraint failed")

        contact_id = self._next_id
        self._next_id += 1
        created = created_at or BASE_TIME + timedelta(minutes=contact_id)
        contact = Contact(
            id=contact_id,
            email=email,
            phoneNumber=phone,
            linkedId=linked_id,
            linkPrecedence=precedence,
            createdAt=created,
            updatedAt=created,
        )
        self.rows[contact_id] = contact
        self.writes.append(("insert", contact_id))
        return contact

    def relink(self, contact_id, precedence, linked_id):
        if contact_id not in self.rows:
            raise StoreError(f"relink: contact {contact_id} does not exist")
        self.rows[contact_id] = self.rows[contact_id].model_copy(
            update={"linkPrecedence": LinkPrecedence(precedence), "linkedId": linked_id}
        )
        self.writes.append(("relink", contact_id))

    def soft_delete(self, contact_id):
        self.rows[contact_id] = self.rows[contact_id].model_copy(update={"deletedAt": datetime.now(timezone.utc)})


@pytest.fixture
def memory_store():
    return InMemoryContactStore()


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "contacts.db")
    init_db(path)
    return path


@pytest.fixture
def sqlite_store(db_path):
    conn = get_db_connection(db_path)
    yield SqliteContactStore(conn)
    conn.close()


@pytest.fixture
def client(db_path, monkeypatch):
    monkeypatch.setenv("CONTACTS_DB_PATH", db_path)
    get_settings.cache_clear()
    from main import app

    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()


def all_rows(store):
    """Every row, deleted or not, read straight from sqlite."""
    rows = store.conn.execute("SELECT * FROM Contact ORDER BY id").fetchall()
    return [Contact(**dict(row)) for row in rows]
