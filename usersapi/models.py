"""User record model and its JSON wire encoding."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, field_validator

# Range of a signed 64-bit integer column.
RecordId = Annotated[StrictInt, Field(ge=-(2**63), le=2**63 - 1)]

COLUMNS = ("id", "username", "email", "firstname", "lastname", "sex", "date_created")


class DecodeError(ValueError):
    """Raised when an inbound body cannot be decoded into a :class:`Record`."""


def _format_timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"Expected text column, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class Record:
    """A row of the ``users`` table.

    ``id`` and ``date_created`` are assigned by the store and are only
    meaningful on records read back from it.
    """

    username: str
    email: str
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    sex: Optional[str] = None
    id: Optional[int] = None
    date_created: Optional[str] = None

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Record":
        """Decode a row selected in :data:`COLUMNS` order."""

        if len(row) != len(COLUMNS):
            raise ValueError(f"Expected {len(COLUMNS)} columns, got {len(row)}")
        record_id, username, email, firstname, lastname, sex, date_created = row
        if not isinstance(username, str) or not isinstance(email, str):
            raise TypeError("username and email must be text")
        return cls(
            id=int(record_id),
            username=username,
            email=email,
            firstname=_optional_text(firstname),
            lastname=_optional_text(lastname),
            sex=_optional_text(sex),
            date_created=_format_timestamp(date_created),
        )


class RecordPayload(BaseModel):
    """JSON shape of a user record on the wire."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[RecordId] = None
    username: str = ""
    email: str = ""
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    sex: Optional[str] = None
    date_created: Optional[str] = None

    @field_validator("username", "email", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        return "" if value is None else value

    def to_record(self) -> Record:
        return Record(
            id=self.id,
            username=self.username,
            email=self.email,
            firstname=self.firstname,
            lastname=self.lastname,
            sex=self.sex,
            date_created=self.date_created,
        )


def record_to_payload(record: Record) -> RecordPayload:
    return RecordPayload(
        id=record.id,
        username=record.username,
        email=record.email,
        firstname=record.firstname,
        lastname=record.lastname,
        sex=record.sex,
        date_created=record.date_created,
    )


def decode_record(raw: Union[bytes, str], *, require_id: bool = False) -> Record:
    """Decode a JSON request body into a :class:`Record`.

    Raises :class:`DecodeError` for malformed JSON, a body that is not an
    object, wrongly typed fields, or a missing ``id`` when ``require_id``
    is set.
    """

    try:
        payload = RecordPayload.model_validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(f"Invalid user record: {exc.error_count()} error(s)") from exc
    if require_id and payload.id is None:
        raise DecodeError("User record must include an id")
    return payload.to_record()


__all__ = [
    "COLUMNS",
    "DecodeError",
    "Record",
    "RecordPayload",
    "decode_record",
    "record_to_payload",
]
