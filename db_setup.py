import sqlite3
from contextlib import contextmanager

DB_NAME = "contacts.db"

SCHEMA = """
    CREATE TABLE IF NOT EXISTS Contact (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        phoneNumber TEXT,
        email TEXT,
        linkedId INTEGER,
        linkPrecedence TEXT NOT NULL CHECK(linkPrecedence IN ('secondary', 'primary')),
        createdAt DATETIME NOT NULL,
        updatedAt DATETIME NOT NULL,
        deletedAt DATETIME,
        CHECK (email IS NOT NULL OR phoneNumber IS NOT NULL),
        CHECK (
            (linkPrecedence = 'primary' AND linkedId IS NULL)
            OR (linkPrecedence = 'secondary' AND linkedId IS NOT NULL)
        ),
        FOREIGN KEY (linkedId) REFERENCES Contact (id)
    );

    CREATE INDEX IF NOT EXISTS idx_contact_email ON Contact (email);
    CREATE INDEX IF NOT EXISTS idx_contact_phone ON Contact (phoneNumber);
    CREATE INDEX IF NOT EXISTS idx_contact_linked ON Contact (linkedId);

    -- one live row per verbatim (email, phoneNumber) pair
    CREATE UNIQUE INDEX IF NOT EXISTS uq_contact_pair
        ON Contact (IFNULL(email, ''), IFNULL(phoneNumber, ''))
        WHERE deletedAt IS NULL;
"""


def init_db(db_path: str = DB_NAME):
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


def get_db_connection(db_path: str = DB_NAME, timeout: float = 5.0):
    # isolation_level=None leaves transaction control to transaction()
    conn = sqlite3.connect(
        db_path,
        timeout=timeout,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection):
    """Run a block as one write transaction.

    BEGIN IMMEDIATE takes the database write lock up front, so concurrent
    connections queue for the whole read-then-write sequence instead of
    racing between their reads and their inserts.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")
