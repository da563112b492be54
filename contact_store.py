"""Contact Store: durable storage of Contact rows.

All conversions between sqlite rows and ``Contact`` models happen here.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional, Protocol

import structlog

from db_models import Contact, LinkPrecedence
from db_setup import transaction
from exceptions import ConstraintError, StoreError

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp(value: datetime) -> str:
    # stored as UTC so ORDER BY createdAt matches chronological order; naive values are taken as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class ContactStore(Protocol):
    def find_by_email_or_phone(self, email: Optional[str], phone: Optional[str]) -> List[Contact]:
        ...

    def find_group(self, primary_id: int) -> List[Contact]:
        ...

    def insert(
        self,
        email: Optional[str],
        phone: Optional[str],
        linked_id: Optional[int],
        precedence: LinkPrecedence,
        created_at: Optional[datetime] = None,
    ) -> Contact:
        ...

    def relink(self, contact_id: int, precedence: LinkPrecedence, linked_id: Optional[int]) -> None:
        ...

    def soft_delete(self, contact_id: int) -> None:
        ...

    def transaction(self):
        ...


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.IntegrityError as exc:
        raise ConstraintError(f"{operation}: {exc}") from exc
    except sqlite3.Error as exc:
        raise StoreError(f"{operation}: {exc}") from exc


def _to_contact(row: sqlite3.Row) -> Contact:
    return Contact(**dict(row))


class SqliteContactStore:
    """ContactStore backed by one sqlite connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @contextmanager
    def transaction(self):
        with _translate_errors("transaction"):
            with transaction(self.conn):
                yield self

    def find_by_email_or_phone(self, email: Optional[str], phone: Optional[str]) -> List[Contact]:
        conditions = []
        params = []
        if email is not None:
            conditions.append("email = ?")
            params.append(email)
        if phone is not None:
            conditions.append("phoneNumber = ?")
            params.append(phone)
        if not conditions:
            return []

        where = " OR ".join(conditions)
        query = f"""
            SELECT * FROM Contact
            WHERE deletedAt IS NULL
            AND ({where})
        """
        with _translate_errors("find_by_email_or_phone"):
            rows = self.conn.execute(query, params).fetchall()
        return [_to_contact(row) for row in rows]

    def find_group(self, primary_id: int) -> List[Contact]:
        with _translate_errors("find_group"):
            rows = self.conn.execute(
                """
                SELECT * FROM Contact
                WHERE (id = ? OR linkedId = ?) AND deletedAt IS NULL
                ORDER BY createdAt ASC, id ASC
                """,
                (primary_id, primary_id),
            ).fetchall()
        return [_to_contact(row) for row in rows]

    def insert(
        self,
        email: Optional[str],
        phone: Optional[str],
        linked_id: Optional[int],
        precedence: LinkPrecedence,
        created_at: Optional[datetime] = None,
    ) -> Contact:
        if email is None and phone is None:
            raise ConstraintError("insert: a contact needs an email or a phoneNumber")

        now = utc_now()
        created = created_at or now
        with _translate_errors("insert"):
            cursor = self.conn.execute(
                """
                INSERT INTO Contact (phoneNumber, email, linkedId, linkPrecedence, createdAt, updatedAt)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (phone, email, linked_id, LinkPrecedence(precedence).value, _timestamp(created), _timestamp(now)),
            )
            row = self.conn.execute("SELECT * FROM Contact WHERE id = ?", (cursor.lastrowid,)).fetchone()

        contact = _to_contact(row)
        logger.info(
            "contact_created",
            contact_id=contact.id,
            link_precedence=contact.linkPrecedence.value,
            linked_id=contact.linkedId,
        )
        return contact

    def relink(self, contact_id: int, precedence: LinkPrecedence, linked_id: Optional[int]) -> None:
        with _translate_errors("relink"):
            cursor = self.conn.execute(
                """
                UPDATE Contact
                SET linkPrecedence = ?, linkedId = ?, updatedAt = ?
                WHERE id = ?
                """,
                (LinkPrecedence(precedence).value, linked_id, _timestamp(utc_now()), contact_id),
            )
        if cursor.rowcount == 0:
            raise StoreError(f"relink: contact {contact_id} does not exist")
        logger.info(
            "contact_relinked",
            contact_id=contact_id,
            link_precedence=LinkPrecedence(precedence).value,
            linked_id=linked_id,
        )

    def soft_delete(self, contact_id: int) -> None:
        now = _timestamp(utc_now())
        with _translate_errors("soft_delete"):
            cursor = self.conn.execute(
                "UPDATE Contact SET deletedAt = ?, updatedAt = ? WHERE id = ? AND deletedAt IS NULL",
                (now, now, contact_id),
            )
        if cursor.rowcount == 0:
            raise StoreError(f"soft_delete: contact {contact_id} does not exist")
