"""FastAPI application exposing CRUD endpoints for user records."""
from __future__ import annotations

import logging
import os
from http import HTTPStatus
from typing import Callable, List, Optional, TypeVar

import anyio
from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from . import __version__
from .config import ServiceSettings, load_settings, resolve_config_path
from .crud import create_record, delete_record, list_records, update_record
from .models import DecodeError, Record, RecordPayload, decode_record, record_to_payload
from .security import APIKeyAuth, APIKeyChecker, StaticAPIKey
from .store import Handle, QueryError, StoreConnectionError, StoreGateway, create_gateway

logger = logging.getLogger("usersapi.api")

T = TypeVar("T")


def _error_response(code: int) -> JSONResponse:
    return JSONResponse(status_code=code, content={"detail": HTTPStatus(code).phrase})


def create_app(
    *,
    gateway: Optional[StoreGateway] = None,
    key_checker: Optional[APIKeyChecker] = None,
    settings: Optional[ServiceSettings] = None,
) -> FastAPI:
    if gateway is None or key_checker is None:
        if settings is None:
            settings = load_settings(resolve_config_path(os.getenv("USERS_CONFIG")))
        if gateway is None:
            gateway = create_gateway(settings.store)
        if key_checker is None:
            key_checker = StaticAPIKey(settings.api_key)

    require_api_key = APIKeyAuth(key_checker)

    app = FastAPI(
        title="Users CRUD API",
        description="Create, list, update and delete user records",
        version=__version__,
    )
    app.state.gateway = gateway

    async def run_unit(work: Callable[[Handle], T]) -> T:
        """Run ``work`` on a worker thread inside one scoped store handle."""

        def _unit() -> T:
            with gateway.acquire() as handle:
                return work(handle)

        return await anyio.to_thread.run_sync(_unit)

    @app.get("/users", response_model=List[RecordPayload])
    async def view_users() -> List[RecordPayload]:
        records = await run_unit(list_records)
        return [record_to_payload(record) for record in records]

    @app.post(
        "/newuser",
        status_code=status.HTTP_201_CREATED,
        response_model=RecordPayload,
        dependencies=[Depends(require_api_key)],
    )
    async def create_user(request: Request) -> RecordPayload:
        body = await request.body()

        def _create(handle: Handle) -> Record:
            record = decode_record(body)
            create_record(handle, record)
            return record

        record = await run_unit(_create)
        logger.info("Created user %r", record.username)
        return record_to_payload(record)

    @app.post("/userupdate", status_code=status.HTTP_201_CREATED, response_model=RecordPayload)
    async def update_user(request: Request) -> RecordPayload:
        body = await request.body()

        def _update(handle: Handle) -> Record:
            record = decode_record(body, require_id=True)
            update_record(handle, record)
            return record

        record = await run_unit(_update)
        logger.info("Updated user %s", record.id)
        return record_to_payload(record)

    @app.post("/deleteuser", status_code=status.HTTP_201_CREATED, response_model=RecordPayload)
    async def delete_user(request: Request) -> RecordPayload:
        body = await request.body()

        def _delete(handle: Handle) -> Record:
            record = decode_record(body, require_id=True)
            delete_record(handle, record.id)  # type: ignore[arg-type]
            return record

        record = await run_unit(_delete)
        logger.info("Deleted user %s", record.id)
        return record_to_payload(record)

    @app.exception_handler(DecodeError)
    async def handle_decode_error(_: object, exc: DecodeError):
        logger.info("Rejected request body: %s", exc)
        return _error_response(status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(StoreConnectionError)
    async def handle_store_connection_error(_: object, exc: StoreConnectionError):
        logger.error("User store unavailable: %s", exc)
        return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE)

    @app.exception_handler(QueryError)
    async def handle_query_error(_: object, exc: QueryError):
        logger.error("User store query failed: %s", exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR)

    return app


__all__ = ["create_app"]
