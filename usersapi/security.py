"""Shared-secret authentication for write endpoints."""
from __future__ import annotations

import secrets
from typing import Protocol

from fastapi import HTTPException, Request, status
from fastapi.security import APIKeyHeader

API_KEY_HEADER = "API-KEY"


class APIKeyChecker(Protocol):
    def check_key(self, key: str) -> bool:
        ...


class StaticAPIKey:
    """Accepts exactly one configured key, compared in constant time."""

    def __init__(self, key: str) -> None:
        if not key or not key.strip():
            raise ValueError("API key must not be empty")
        self._key = key.encode("utf-8")

    def check_key(self, key: str) -> bool:
        return secrets.compare_digest(key.encode("utf-8"), self._key)


class APIKeyAuth:
    """FastAPI dependency that rejects requests without a valid ``API-KEY`` header."""

    def __init__(self, checker: APIKeyChecker) -> None:
        self._checker = checker
        self._header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)

    async def __call__(self, request: Request) -> None:
        provided = await self._header(request)
        if provided is None or not self._checker.check_key(provided):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
        return None


__all__ = ["API_KEY_HEADER", "APIKeyAuth", "APIKeyChecker", "StaticAPIKey"]
