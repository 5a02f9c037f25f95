"""Single-statement CRUD procedures for the ``users`` table.

Every procedure takes a :class:`~usersapi.store.Handle` for the current
unit of work; committing and releasing it is left to the gateway.
"""
from __future__ import annotations

import logging
from typing import List

from .models import COLUMNS, Record
from .store import Handle, QueryError

logger = logging.getLogger("usersapi.crud")

_SELECT_ALL = f"SELECT {', '.join(COLUMNS)} FROM users"

_INSERT = """
    INSERT INTO users (username, email, firstname, lastname, sex)
    VALUES (%s, %s, %s, %s, %s)
"""

_UPDATE = """
    UPDATE users SET
        username = %s,
        email = %s,
        firstname = %s,
        lastname = %s,
        sex = %s
    WHERE id = %s
"""

_DELETE = "DELETE FROM users WHERE id = %s"


def list_records(handle: Handle) -> List[Record]:
    """Return every stored record in the order the store yields them."""

    records: List[Record] = []
    for row in handle.fetchall(_SELECT_ALL):
        try:
            records.append(Record.from_row(row))
        except (TypeError, ValueError) as exc:
            raise QueryError(f"Unable to decode user row: {exc}") from exc
    return records


def create_record(handle: Handle, record: Record) -> None:
    """Insert ``record``; the store assigns its id and creation timestamp."""

    affected = handle.execute(
        _INSERT,
        (record.username, record.email, record.firstname, record.lastname, record.sex),
    )
    logger.info("Inserted %s user row(s) for %r", affected, record.username)


def update_record(handle: Handle, record: Record) -> int:
    """Overwrite the mutable columns of the row with ``record.id``.

    Returns the number of rows affected; zero when no row has that id.
    """

    if record.id is None:
        raise ValueError("Cannot update a user record without an id")
    affected = handle.execute(
        _UPDATE,
        (record.username, record.email, record.firstname, record.lastname, record.sex, record.id),
    )
    if affected == 0:
        logger.info("Update matched no user with id %s", record.id)
    else:
        logger.info("Updated %s user row(s) with id %s", affected, record.id)
    return affected


def delete_record(handle: Handle, record_id: int) -> int:
    affected = handle.execute(_DELETE, (record_id,))
    if affected == 0:
        logger.info("Delete matched no user with id %s", record_id)
    else:
        logger.info("Deleted %s user row(s) with id %s", affected, record_id)
    return affected


__all__ = ["create_record", "delete_record", "list_records", "update_record"]
