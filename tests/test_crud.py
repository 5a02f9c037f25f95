from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import pytest

from usersapi.crud import create_record, delete_record, list_records, update_record
from usersapi.models import Record
from usersapi.store import QueryError, SQLiteGateway


@pytest.fixture()
def gateway(tmp_path: Path) -> SQLiteGateway:
    db = SQLiteGateway(tmp_path / "users.sqlite3")
    db.initialize()
    return db


def _create(gateway: SQLiteGateway, username: str, **fields: str) -> None:
    with gateway.acquire() as handle:
        create_record(handle, Record(username=username, email=f"{username}@example.com", **fields))


def _list(gateway: SQLiteGateway) -> List[Record]:
    with gateway.acquire() as handle:
        return list_records(handle)


def test_create_assigns_increasing_ids_and_timestamps(gateway: SQLiteGateway) -> None:
    received = datetime.now(timezone.utc)
    received = received.replace(microsecond=received.microsecond // 1000 * 1000)

    _create(gateway, "bash", firstname="Bashir", lastname="Anakobe", sex="male")
    _create(gateway, "teemah")

    records = _list(gateway)
    assert [record.username for record in records] == ["bash", "teemah"]
    assert records[0].id is not None and records[1].id is not None
    assert records[0].id < records[1].id
    for record in records:
        assert record.date_created is not None
        assert datetime.fromisoformat(record.date_created) >= received

    assert records[0].firstname == "Bashir"
    assert records[1].firstname is None


def test_create_ignores_caller_supplied_generated_fields(gateway: SQLiteGateway) -> None:
    with gateway.acquire() as handle:
        create_record(
            handle,
            Record(username="medo", email="medo@example.com", id=999, date_created="1999-01-01T00:00:00+00:00"),
        )

    (stored,) = _list(gateway)
    assert stored.id != 999
    assert stored.date_created != "1999-01-01T00:00:00+00:00"


def test_update_overwrites_all_mutable_fields(gateway: SQLiteGateway) -> None:
    _create(gateway, "wasman", firstname="Abdulwasiu", lastname="Anakobe", sex="male")
    (original,) = _list(gateway)

    with gateway.acquire() as handle:
        affected = update_record(
            handle,
            Record(id=original.id, username="wasman01", email="new@example.com", firstname="Abdul"),
        )

    assert affected == 1
    (updated,) = _list(gateway)
    assert updated.id == original.id
    assert updated.username == "wasman01"
    assert updated.email == "new@example.com"
    assert updated.firstname == "Abdul"
    assert updated.lastname is None
    assert updated.sex is None
    assert updated.date_created == original.date_created


def test_update_missing_id_is_a_no_op(gateway: SQLiteGateway) -> None:
    _create(gateway, "zain")
    before = _list(gateway)

    with gateway.acquire() as handle:
        affected = update_record(handle, Record(id=12345, username="ghost", email="ghost@example.com"))

    assert affected == 0
    assert _list(gateway) == before


def test_update_requires_an_id(gateway: SQLiteGateway) -> None:
    with gateway.acquire() as handle:
        with pytest.raises(ValueError):
            update_record(handle, Record(username="nobody", email="nobody@example.com"))


def test_delete_removes_row_and_missing_id_is_a_no_op(gateway: SQLiteGateway) -> None:
    _create(gateway, "stacia")
    _create(gateway, "medo")
    stacia, medo = _list(gateway)

    with gateway.acquire() as handle:
        assert delete_record(handle, stacia.id) == 1  # type: ignore[arg-type]
        assert delete_record(handle, stacia.id) == 0  # type: ignore[arg-type]

    remaining = _list(gateway)
    assert remaining == [medo]
    assert stacia.id not in {record.id for record in remaining}


def test_list_returns_fresh_sequence_per_call(gateway: SQLiteGateway) -> None:
    _create(gateway, "bash")

    first = _list(gateway)
    second = _list(gateway)

    assert first == second
    assert len(second) == 1
    assert first is not second


def test_concurrent_lists_are_isolated(gateway: SQLiteGateway) -> None:
    for index in range(25):
        _create(gateway, f"user{index:02d}")
    expected = _list(gateway)

    with ThreadPoolExecutor(max_workers=8) as executor:
        results = list(executor.map(lambda _: _list(gateway), range(64)))

    assert all(result == expected for result in results)


def test_list_surfaces_undecodable_rows_as_query_error(gateway: SQLiteGateway) -> None:
    with gateway.acquire() as handle:
        handle.execute(
            "INSERT INTO users (username, email, firstname) VALUES (%s, %s, %s)",
            ("bash", "bash@example.com", b"\x00\x01"),
        )

    with pytest.raises(QueryError):
        _list(gateway)


def test_writes_log_affected_row_counts(gateway: SQLiteGateway, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="usersapi.crud")

    _create(gateway, "bash")
    (stored,) = _list(gateway)
    with gateway.acquire() as handle:
        update_record(handle, Record(id=stored.id, username="bashir", email="bash@example.com"))
        update_record(handle, Record(id=9999, username="ghost", email="ghost@example.com"))
        delete_record(handle, stored.id)

    messages = [record.getMessage() for record in caplog.records if record.name == "usersapi.crud"]
    assert messages == [
        "Inserted 1 user row(s) for 'bash'",
        f"Updated 1 user row(s) with id {stored.id}",
        "Update matched no user with id 9999",
        f"Deleted 1 user row(s) with id {stored.id}",
    ]
